"""
    Repositories for Loantrack: thin query wrappers over a SQLAlchemy
    session, one per entity. They never commit; the unit of work does.
"""

import logging
from typing import Optional
from sqlalchemy import func, or_
from loantrack.core.models import (
    AuditLog,
    Item,
    ItemStatus,
    Loan,
    LoanStatus,
    Role,
    User,
)
from loantrack.core.utils import normalize_email

logger = logging.getLogger(__name__)


def like_pattern(term: str) -> str:
    """Substring pattern for ILIKE with the wildcard characters escaped."""
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class Repository:

    model = None

    def __init__(self, session):
        self.session = session

    def query(self):
        return self.session.query(self.model)

    def get(self, id):
        return self.session.get(self.model, id)

    def get_all(self):
        return self.query().order_by(self.model.id).all()

    def get_many(self, offset=None, limit=None):
        return self.query().order_by(self.model.id).offset(offset).limit(limit).all()

    def find(self, *criteria):
        return self.query().filter(*criteria).all()

    def exists(self, *criteria) -> bool:
        return self.session.query(self.query().filter(*criteria).exists()).scalar()

    def count(self, *criteria) -> int:
        return self.query().filter(*criteria).count()

    def add(self, entity):
        self.session.add(entity)
        return entity

    def delete(self, entity):
        self.session.delete(entity)


class RoleRepository(Repository):
    model = Role

    def get_by_name(self, name: str):
        return self.query().filter(Role.name == name).first()

    def name_exists(self, name: str) -> bool:
        return self.exists(func.lower(Role.name) == name.strip().lower())

    def has_users(self, role_id: int) -> bool:
        return self.session.query(
            self.session.query(User).filter(User.role_id == role_id).exists()
        ).scalar()


class UserRepository(Repository):
    model = User

    def get_by_email(self, email: str):
        return self.query().filter(func.lower(User.email) == normalize_email(email)).first()

    def email_exists(self, email: str, exclude_id=None) -> bool:
        criteria = [func.lower(User.email) == normalize_email(email)]
        if exclude_id is not None:
            criteria.append(User.id != exclude_id)
        return self.exists(*criteria)

    def get_by_role(self, role_id: int):
        return self.query().filter(User.role_id == role_id).order_by(User.name).all()


class ItemRepository(Repository):
    model = Item

    def get_by_code(self, code: str):
        return self.query().filter(Item.code == code).first()

    def code_exists(self, code: str) -> bool:
        return self.exists(Item.code == code)

    def code_exists_for_other_item(self, code: str, item_id: int) -> bool:
        return self.exists(Item.code == code, Item.id != item_id)

    def filtered(self, search=None, category=None, status=None):
        """Query with each provided filter ANDed in; missing filters pass all rows."""
        q = self.query()
        if search:
            pattern = like_pattern(search)
            q = q.filter(or_(
                Item.name.ilike(pattern, escape='\\'),
                Item.code.ilike(pattern, escape='\\'),
                Item.category.ilike(pattern, escape='\\'),
                Item.location.ilike(pattern, escape='\\'),
            ))
        if category:
            q = q.filter(func.lower(Item.category) == category.lower())
        if status is not None:
            q = q.filter(Item.status == status)
        return q

    def search(self, term: str):
        return self.filtered(search=term).order_by(Item.name, Item.id).all()

    def get_by_category(self, category: str):
        return self.filtered(category=category).order_by(Item.name, Item.id).all()

    def get_by_status(self, status: ItemStatus):
        return self.filtered(status=status).order_by(Item.name, Item.id).all()

    def categories(self):
        rows = self.session.query(Item.category).distinct().order_by(Item.category).all()
        return [category for (category,) in rows]


class LoanRepository(Repository):
    model = Loan

    def newest_first(self, q):
        return q.order_by(Loan.request_date.desc(), Loan.id.desc())

    def get_all(self):
        return self.newest_first(self.query()).all()

    def get_recent(self, limit: int):
        return self.newest_first(self.query()).limit(limit).all()

    def with_status(self, q, status=None):
        return q if status is None else q.filter(Loan.status == status)

    def get_by_user(self, user_id: int, status: Optional[LoanStatus] = None):
        q = self.with_status(self.query().filter(Loan.user_id == user_id), status)
        return self.newest_first(q).all()

    def get_by_item(self, item_id: int):
        return self.newest_first(self.query().filter(Loan.item_id == item_id)).all()

    def get_by_status(self, status: LoanStatus):
        return self.newest_first(self.query().filter(Loan.status == status)).all()

    def get_pending(self):
        return self.query().filter(
            Loan.status == LoanStatus.Pending
        ).order_by(Loan.request_date, Loan.id).all()

    def get_active_by_item(self, item_id: int):
        return self.newest_first(self.query().filter(
            Loan.item_id == item_id, Loan.is_active
        )).all()

    def has_active_loan(self, item_id: int) -> bool:
        return self.exists(Loan.item_id == item_id, Loan.is_active)

    def has_active_loan_for_user(self, user_id: int) -> bool:
        return self.exists(Loan.user_id == user_id, Loan.is_active)

    def get_overdue(self, delivered_before):
        return self.query().filter(
            Loan.status == LoanStatus.Delivered,
            Loan.return_date.is_(None),
            Loan.delivery_date.isnot(None),
            Loan.delivery_date < delivered_before,
        ).order_by(Loan.delivery_date, Loan.id).all()

    def get_by_date_range(self, from_date, to_date, status: Optional[LoanStatus] = None):
        q = self.query().filter(
            Loan.request_date >= from_date,
            Loan.request_date <= to_date,
        )
        return self.newest_first(self.with_status(q, status)).all()

    def detach_closed(self, user_id=None, item_id=None) -> int:
        """Unlinks terminal loans from a user or item about to be deleted."""
        q = self.query().filter(~Loan.is_active)
        if user_id is not None:
            q = q.filter(Loan.user_id == user_id)
        if item_id is not None:
            q = q.filter(Loan.item_id == item_id)
        loans = q.all()
        for loan in loans:
            if user_id is not None:
                loan.user = None
            if item_id is not None:
                loan.item = None
        return len(loans)


class AuditLogRepository(Repository):
    model = AuditLog

    def get_by_table_and_primary_key(self, table_name: str, primary_key: str):
        return self.query().filter(
            AuditLog.table_name == table_name,
            AuditLog.primary_key == str(primary_key),
        ).order_by(AuditLog.action_date.desc(), AuditLog.id.desc()).all()

    def get_by_user(self, action_by: str, from_date=None, to_date=None):
        q = self.query().filter(AuditLog.action_by == action_by)
        if from_date is not None:
            q = q.filter(AuditLog.action_date >= from_date)
        if to_date is not None:
            q = q.filter(AuditLog.action_date <= to_date)
        return q.order_by(AuditLog.action_date.desc(), AuditLog.id.desc()).all()

    def get_by_date_range(self, from_date, to_date):
        return self.query().filter(
            AuditLog.action_date >= from_date,
            AuditLog.action_date <= to_date,
        ).order_by(AuditLog.action_date.desc(), AuditLog.id.desc()).all()
