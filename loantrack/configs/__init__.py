#!/usr/bin/env python

"""
    Configurations for Loantrack

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
SCHEME = 'http'
HOST = os.environ.get('LOANTRACK_HOST', 'localhost')
PORT = int(os.environ.get('LOANTRACK_PORT', 8080))
WORKERS = int(os.environ.get('LOANTRACK_WORKERS', 1))
DEBUG = bool(int(os.environ.get('LOANTRACK_DEBUG', 0)))
LOG_LEVEL = os.environ.get('LOANTRACK_LOG_LEVEL', 'info')
SSL_CRT = os.environ.get('LOANTRACK_SSL_CRT')
SSL_KEY = os.environ.get('LOANTRACK_SSL_KEY')
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')

# Session cookies are signed with SEED; never leave the default in production
SEED = os.environ.get('LOANTRACK_SEED', 'loantrack-dev-seed')
COOKIE_NAME = 'session'
COOKIE_TTL = int(os.environ.get('COOKIE_TTL', 8 * 60 * 60))
REMEMBER_ME_TTL = int(os.environ.get('REMEMBER_ME_TTL', 30 * 24 * 60 * 60))
BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', 4 if TESTING else 12))

# Business rules
OVERDUE_DAYS = int(os.environ.get('OVERDUE_DAYS', 7))
DEFAULT_ROLE = 'Operator'
ADMIN_ROLE = 'Administrator'

# Optional bootstrap administrator, created at startup when both are set
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}
if SSL_CRT and SSL_KEY:
    OPTIONS['ssl_keyfile'] = SSL_KEY
    OPTIONS['ssl_certfile'] = SSL_CRT
    SCHEME = 'https'

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'loantrack'),
}

# Database configuration
DB_URI = (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

__all__ = [
    'SCHEME', 'HOST', 'PORT', 'DEBUG', 'OPTIONS', 'DB_URI', 'DB_CONFIG',
    'TESTING', 'SEED', 'COOKIE_NAME', 'COOKIE_TTL', 'REMEMBER_ME_TTL',
    'BCRYPT_ROUNDS', 'OVERDUE_DAYS', 'DEFAULT_ROLE', 'ADMIN_ROLE',
    'ADMIN_EMAIL', 'ADMIN_PASSWORD', 'CORS_ORIGINS', 'LOG_LEVEL',
]
