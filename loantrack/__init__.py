#!/usr/bin/env python

"""
    Loantrack, inventory and loan tracking web application

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = '0.1.0'
