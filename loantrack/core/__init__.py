#!/usr/bin/env python

"""
    Core module for Loantrack: database setup and seeding

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from loantrack.configs import ADMIN_EMAIL, ADMIN_PASSWORD
from loantrack.core.db import Base, engine, SessionLocal
from loantrack.core import models  # noqa: F401 registers the tables
from loantrack.core.audit import SYSTEM_ACTOR
from loantrack.core.uow import UnitOfWork
from loantrack.core.users import RoleService, ensure_admin

logger = logging.getLogger(__name__)


def init_db(bind=None, session_factory=None):
    """Creates the schema, seeds the fixed roles and the optional bootstrap admin."""
    bind = bind or engine
    session_factory = session_factory or SessionLocal
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")
        return False

    session = session_factory()
    try:
        uow = UnitOfWork(session)
        RoleService(uow).seed_roles(SYSTEM_ACTOR)
        if ADMIN_EMAIL and ADMIN_PASSWORD:
            ensure_admin(uow, SYSTEM_ACTOR, ADMIN_EMAIL, ADMIN_PASSWORD)
    finally:
        session.close()
    return True


__all__ = ["Base", "engine", "SessionLocal", "init_db"]
