import logging
import sqlite3
from sqlalchemy import create_engine, event, Column, DateTime, String
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from loantrack.configs import DB_URI, DEBUG
from loantrack.core.utils import utcnow

logger = logging.getLogger(__name__)

SYSTEM_IDENTITY = "System"

engine_kwargs = {'echo': DEBUG}
if DB_URI.startswith('sqlite'):
    engine_kwargs['connect_args'] = {'check_same_thread': False}
    if ':memory:' in DB_URI:
        # A single shared connection, otherwise every checkout sees an empty db
        engine_kwargs['poolclass'] = StaticPool
else:
    engine_kwargs['client_encoding'] = 'utf8'
engine = create_engine(DB_URI, **engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autoflush=False)


class LoantrackBase:

    def __repr__(self):
        return f"<{type(self).__name__} id={getattr(self, 'id', None)}>"


Base = declarative_base(cls=LoantrackBase)


class AuditableMixin:
    """Created/modified stamps shared by every persisted entity.

    The stamps are filled in by the ``before_flush`` hook below, using the
    actor identity the unit of work stored in ``session.info["actor"]``.
    """
    created_date = Column(DateTime, nullable=False, default=utcnow)
    modified_date = Column(DateTime)
    created_by = Column(String(100), nullable=False, default=SYSTEM_IDENTITY)
    modified_by = Column(String(100))


@event.listens_for(Session, "before_flush")
def stamp_auditable(session, flush_context, instances):
    actor = session.info.get("actor") or SYSTEM_IDENTITY
    now = utcnow()
    for obj in session.new:
        if isinstance(obj, AuditableMixin):
            if obj.created_date is None:
                obj.created_date = now
            if not obj.created_by:
                obj.created_by = actor
    for obj in session.dirty:
        if isinstance(obj, AuditableMixin) and session.is_modified(obj, include_collections=False):
            obj.modified_date = now
            obj.modified_by = actor


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless asked to enforce them
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_session():
    """One session per request; closed when the request ends."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
