"""
    Audit trail for Loantrack.

    Every significant mutation appends one ``AuditLog`` row carrying JSON
    snapshots of the values before and after the change, who made it, and
    from where. The row is added to the caller's unit of work and commits
    in the same transaction as the mutation it describes: if writing the
    audit record fails, the mutation is rolled back too. The same policy
    holds for every call site, including login and logout.
"""

import datetime
import enum
import json
import logging
from dataclasses import dataclass
from typing import Optional
from loantrack.core.db import SYSTEM_IDENTITY
from loantrack.core.exceptions import Result
from loantrack.core.models import AuditLog
from loantrack.core.utils import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """Who is calling and from where, passed explicitly into every service call."""
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def identity(self) -> str:
        return self.email or SYSTEM_IDENTITY

    def with_user(self, user) -> "ActorContext":
        return ActorContext(
            user_id=user.id,
            email=user.email,
            role=user.role_name,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )


SYSTEM_ACTOR = ActorContext()


def _json_default(value):
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.name
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def serialize(values) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(values, default=_json_default, sort_keys=True)


class AuditService:

    def __init__(self, uow):
        self.uow = uow

    def record(self, actor: ActorContext, table_name: str, action: str, primary_key,
               old_values=None, new_values=None, description: str = None) -> AuditLog:
        entry = AuditLog(
            table_name=table_name,
            action=action,
            primary_key=str(primary_key),
            old_values=serialize(old_values),
            new_values=serialize(new_values),
            action_date=utcnow(),
            action_by=actor.identity,
            action_description=description,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent[:500] if actor.user_agent else None,
        )
        self.uow.audit_logs.add(entry)
        logger.info("audit %s %s %s by %s", table_name, action, primary_key, entry.action_by)
        return entry

    def get_audit_trail(self, table_name: str, primary_key) -> Result:
        return Result.success(
            self.uow.audit_logs.get_by_table_and_primary_key(table_name, primary_key))

    def get_user_activity(self, action_by: str, from_date=None, to_date=None) -> Result:
        from_date, to_date = as_utc(from_date), as_utc(to_date)
        if from_date and to_date and from_date > to_date:
            return Result.invalid("from_date must not be after to_date")
        return Result.success(self.uow.audit_logs.get_by_user(action_by, from_date, to_date))

    def get_system_activity(self, from_date, to_date) -> Result:
        from_date, to_date = as_utc(from_date), as_utc(to_date)
        if from_date > to_date:
            return Result.invalid("from_date must not be after to_date")
        return Result.success(self.uow.audit_logs.get_by_date_range(from_date, to_date))
