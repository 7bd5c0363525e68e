#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_users
    ~~~~~~~~~~~~~~~~

    User and role management.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import json
import pytest

from loantrack.core.audit import SYSTEM_ACTOR
from loantrack.core.auth import verify_password
from loantrack.core.exceptions import ErrorKind
from loantrack.core.loans import LoanService
from loantrack.core.models import AuditLog
from loantrack.core.users import RoleService, UserService, ensure_admin
from loantrack.schemas.role import CreateRole
from loantrack.schemas.user import CreateUser, UpdateUser
from conftest import make_item, make_user


@pytest.fixture
def service(uow):
    return UserService(uow)


@pytest.fixture
def actor(uow, admin):
    return SYSTEM_ACTOR.with_user(uow.users.get(admin.id))


def role_id(uow, name):
    return uow.roles.get_by_name(name).id


def test_roles_are_seeded_once(uow):
    assert {r.name for r in RoleService(uow).get_all().value} == {"Administrator", "Operator"}
    assert RoleService(uow).seed_roles(SYSTEM_ACTOR) == 0
    assert uow.roles.count() == 2


def test_create_user(uow, service, actor):
    result = service.create(actor, CreateUser(
        name="Bo", email="Bo@Example.com", password="pass1234", role_id=role_id(uow, "Operator")))

    assert result.ok
    assert result.value.email == "bo@example.com"
    assert result.value.is_active
    entity = uow.users.get(result.value.id)
    assert entity.password_hash != "pass1234"
    assert verify_password("pass1234", entity.password_hash)
    assert entity.created_by == "admin@example.com"

    entry = uow.audit_logs.get_by_table_and_primary_key("Users", entity.id)[0]
    assert entry.action == "CREATE"
    assert "password" not in entry.new_values


def test_create_user_conflicts(uow, service, actor, operator):
    dup = service.create(actor, CreateUser(
        name="Ana 2", email="ANA@example.com", password="pass1234", role_id=role_id(uow, "Operator")))
    assert dup.error.kind == ErrorKind.CONFLICT

    no_role = service.create(actor, CreateUser(
        name="Bo", email="bo@example.com", password="pass1234", role_id=999))
    assert no_role.error.kind == ErrorKind.NOT_FOUND


def test_update_user(uow, service, actor, operator):
    other = make_user(uow, "bo@example.com")
    clash = service.update(actor, operator.id, UpdateUser(
        name="Ana", email="bo@example.com", role_id=role_id(uow, "Operator")))
    assert clash.error.kind == ErrorKind.CONFLICT

    updated = service.update(actor, operator.id, UpdateUser(
        name="Ana Maria", email="ana.maria@example.com",
        role_id=role_id(uow, "Administrator"), is_active=False)).value
    assert updated.name == "Ana Maria"
    assert updated.role_name == "Administrator"
    assert not updated.is_active

    entry = uow.audit_logs.get_by_table_and_primary_key("Users", operator.id)[0]
    assert entry.action == "UPDATE"
    assert json.loads(entry.old_values)["email"] == "ana@example.com"
    assert json.loads(entry.new_values)["is_active"] is False
    assert service.get(other.id).value.email == "bo@example.com"


def test_change_role(uow, service, actor, operator):
    result = service.change_role(actor, operator.id, role_id(uow, "Administrator"))
    assert result.value.role_name == "Administrator"

    entry = uow.audit_logs.get_by_table_and_primary_key("Users", operator.id)[0]
    assert entry.action == "ROLE_CHANGE"
    assert entry.action_description == "Role changed from Operator to Administrator"

    assert service.change_role(actor, operator.id, 999).error.kind == ErrorKind.NOT_FOUND
    assert service.change_role(actor, 999, 1).error.kind == ErrorKind.NOT_FOUND


def test_list_users(uow, service, admin, operator):
    assert [u.name for u in service.get_all().value] == ["Admin", "Ana"]
    operators = service.get_by_role(role_id(uow, "Operator")).value
    assert [u.email for u in operators] == ["ana@example.com"]
    assert service.get_by_role(999).error.kind == ErrorKind.NOT_FOUND
    assert service.get(999).error.kind == ErrorKind.NOT_FOUND


def test_delete_user_with_open_loan(uow, service, actor, operator):
    item = make_item(uow, "LP-100")
    loans = LoanService(uow)
    loan = loans.create_loan(SYSTEM_ACTOR, operator.id, item.id).value
    loans.approve_or_reject(actor, loan.id, True)
    loans.deliver(actor, loan.id)

    result = service.delete(actor, operator.id)
    assert result.error.kind == ErrorKind.CONFLICT
    assert result.error.message == "Cannot delete user with active loans"

    loans.return_loan(actor, loan.id)
    assert service.delete(actor, operator.id).ok
    assert uow.users.get(operator.id) is None

    history = loans.get(loan.id).value
    assert history.status == "Returned"
    assert history.user_id is None
    assert history.user_name == "Unknown"
    assert uow.audit_logs.count(AuditLog.table_name == "Users", AuditLog.action == "DELETE") == 1


def test_delete_missing_user(service, actor):
    assert service.delete(actor, 999).error.kind == ErrorKind.NOT_FOUND


def test_role_management(uow, actor, operator):
    roles = RoleService(uow)
    created = roles.create(actor, CreateRole(name="Auditor", description="Read-only")).value
    assert created.name == "Auditor"
    assert roles.create(actor, CreateRole(name="auditor")).error.kind == ErrorKind.CONFLICT

    assert roles.delete(actor, role_id(uow, "Operator")).error.kind == ErrorKind.CONFLICT
    assert roles.delete(actor, created.id).ok
    assert roles.delete(actor, created.id).error.kind == ErrorKind.NOT_FOUND
    assert uow.audit_logs.count(AuditLog.table_name == "Roles") == 2


def test_fixed_roles_cannot_be_deleted(uow, actor):
    roles = RoleService(uow)
    # no user holds Operator here, the name alone blocks deletion
    assert not uow.roles.has_users(role_id(uow, "Operator"))
    for name in ("Administrator", "Operator"):
        result = roles.delete(actor, role_id(uow, name))
        assert result.error.kind == ErrorKind.CONFLICT
        assert uow.roles.get_by_name(name) is not None
    assert uow.audit_logs.count(AuditLog.table_name == "Roles") == 0
    assert make_user(uow, "new@example.com").role_name == "Operator"


def test_bootstrap_admin(uow):
    assert ensure_admin(uow, SYSTEM_ACTOR, "root@example.com", "pass1234")
    assert not ensure_admin(uow, SYSTEM_ACTOR, "ROOT@example.com", "other")
    root = uow.users.get_by_email("root@example.com")
    assert root.role_name == "Administrator"
    assert verify_password("pass1234", root.password_hash)
