"""
    Unit of work for Loantrack: groups the repositories behind one
    session so every change made during a use case commits, or rolls
    back, together.
"""

import logging
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from loantrack.core.db import SYSTEM_IDENTITY
from loantrack.core.exceptions import DatabaseError
from loantrack.core.repositories import (
    AuditLogRepository,
    ItemRepository,
    LoanRepository,
    RoleRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class UnitOfWork:

    def __init__(self, session):
        self.session = session
        self.roles = RoleRepository(session)
        self.users = UserRepository(session)
        self.items = ItemRepository(session)
        self.loans = LoanRepository(session)
        self.audit_logs = AuditLogRepository(session)

    def _set_actor(self, actor):
        # Read by the before_flush hook that fills created_by/modified_by
        self.session.info["actor"] = getattr(actor, "identity", None) or SYSTEM_IDENTITY

    def begin(self):
        if not self.session.in_transaction():
            self.session.begin()

    def flush(self, actor=None):
        """Sends pending changes so generated keys are available, without committing."""
        self._set_actor(actor)
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.rollback()
            logger.exception("Flush failed")
            raise DatabaseError(f"Failed to write changes: {e}.") from e

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def save_changes(self, actor=None):
        """Flushes and commits everything pending as one transaction."""
        self._set_actor(actor)
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.rollback()
            logger.exception("Commit failed")
            raise DatabaseError(f"Failed to save changes: {e}.") from e

    @contextmanager
    def atomic(self, actor=None):
        """Commits on a clean exit; rolls back when anything inside raises."""
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.save_changes(actor)
