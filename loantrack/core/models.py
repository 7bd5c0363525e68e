#!/usr/bin/env python

"""
    Models for Loantrack,
    including the definition of the users, roles, items, loans and
    audit log tables.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
from sqlalchemy import Column, String, Boolean, Integer, DateTime, Text, ForeignKey, Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from loantrack.core.db import Base, AuditableMixin
from loantrack.core.utils import utcnow


class ItemStatus(enum.Enum):
    Available = 0
    OnLoan = 1
    Maintenance = 2
    Decommissioned = 3


class LoanStatus(enum.Enum):
    Pending = 0
    Approved = 1
    Rejected = 2
    Delivered = 3
    Returned = 4


# A loan holds its item until it is rejected or returned
ACTIVE_LOAN_STATUSES = (LoanStatus.Pending, LoanStatus.Approved, LoanStatus.Delivered)


class Role(AuditableMixin, Base):
    __tablename__ = 'roles'

    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(200))

    users = relationship('User', back_populates='role')


class User(AuditableMixin, Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role_id = Column(Integer, ForeignKey('roles.id', ondelete='RESTRICT'), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = relationship('Role', back_populates='users', lazy='joined')
    loans = relationship('Loan', back_populates='user', passive_deletes='all')

    @property
    def role_name(self):
        return self.role.name if self.role else None


class Item(AuditableMixin, Base):
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False)
    status = Column(SQLAlchemyEnum(ItemStatus), default=ItemStatus.Available, nullable=False)
    location = Column(String(100))

    loans = relationship('Loan', back_populates='item', passive_deletes='all')


class Loan(AuditableMixin, Base):
    __tablename__ = 'loans'

    id = Column(Integer, primary_key=True)
    # Nullable only so closed loans survive the deletion of their user or item
    user_id = Column(Integer, ForeignKey('users.id', ondelete='RESTRICT'), index=True)
    item_id = Column(Integer, ForeignKey('items.id', ondelete='RESTRICT'), index=True)
    request_date = Column(DateTime, default=utcnow, nullable=False, index=True)
    delivery_date = Column(DateTime)
    return_date = Column(DateTime)
    status = Column(SQLAlchemyEnum(LoanStatus), default=LoanStatus.Pending, nullable=False, index=True)
    comments = Column(String(500))

    user = relationship('User', back_populates='loans', lazy='joined')
    item = relationship('Item', back_populates='loans', lazy='joined')

    @hybrid_property
    def is_active(self):
        """True until the loan reaches a terminal state."""
        return self.status in ACTIVE_LOAN_STATUSES

    @is_active.expression
    def is_active(cls):
        return cls.status.in_(ACTIVE_LOAN_STATUSES)


class AuditLog(Base):
    """Append-only record of a mutation; never updated or deleted."""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    table_name = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    primary_key = Column(String(50), nullable=False)
    old_values = Column(Text)
    new_values = Column(Text)
    action_date = Column(DateTime, default=utcnow, nullable=False, index=True)
    action_by = Column(String(100), nullable=False, index=True)
    action_description = Column(String(200))
    ip_address = Column(String(45))
    user_agent = Column(String(500))
