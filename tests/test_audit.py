#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_audit
    ~~~~~~~~~~~~~~~~

    Audit trail recording and queries.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import datetime
import enum
import json
import pytest
from unittest import mock

from loantrack.core.audit import ActorContext, AuditService, SYSTEM_ACTOR, serialize
from loantrack.core.exceptions import ErrorKind
from loantrack.core.items import ItemService
from loantrack.core.models import AuditLog, ItemStatus
from loantrack.core.utils import utcnow
from loantrack.schemas.item import CreateItem


class Colour(enum.Enum):
    Red = 1


def test_serialize():
    assert serialize(None) is None
    data = json.loads(serialize({
        "when": datetime.datetime(2025, 1, 2, 3, 4, 5),
        "status": ItemStatus.OnLoan,
        "colour": Colour.Red,
        "missing": None,
    }))
    assert data == {
        "when": "2025-01-02T03:04:05",
        "status": "OnLoan",
        "colour": "Red",
        "missing": None,
    }


def test_actor_identity():
    assert SYSTEM_ACTOR.identity == "System"
    assert not SYSTEM_ACTOR.is_authenticated
    actor = ActorContext(user_id=1, email="a@example.com", role="Operator")
    assert actor.identity == "a@example.com"
    assert actor.is_authenticated


def test_record_captures_actor(uow):
    actor = ActorContext(user_id=3, email="a@example.com", ip_address="10.1.1.1",
                         user_agent="x" * 600)
    with uow.atomic(actor):
        AuditService(uow).record(actor, "Items", "UPDATE", 12,
                                 {"name": "Old"}, {"name": "New"}, "Item updated")

    entry = uow.audit_logs.query().one()
    assert entry.table_name == "Items"
    assert entry.primary_key == "12"
    assert entry.action_by == "a@example.com"
    assert entry.ip_address == "10.1.1.1"
    assert len(entry.user_agent) == 500
    assert json.loads(entry.old_values) == {"name": "Old"}
    assert entry.action_description == "Item updated"


def test_record_failure_rolls_back_mutation(uow):
    with mock.patch.object(uow.audit_logs, "add", side_effect=RuntimeError("audit table gone")):
        with pytest.raises(RuntimeError):
            ItemService(uow).create(SYSTEM_ACTOR, CreateItem(code="LP-1", name="L", category="E"))
    assert uow.items.count() == 0
    assert uow.audit_logs.count() == 0


def test_queries(uow):
    audit = AuditService(uow)
    alice = ActorContext(user_id=1, email="alice@example.com")
    bob = ActorContext(user_id=2, email="bob@example.com")
    with uow.atomic(alice):
        audit.record(alice, "Items", "CREATE", 1)
        audit.record(alice, "Items", "UPDATE", 1)
        audit.record(bob, "Items", "CREATE", 2)

    trail = audit.get_audit_trail("Items", 1).value
    assert [e.action for e in trail] == ["UPDATE", "CREATE"]

    assert len(audit.get_user_activity("alice@example.com").value) == 2
    now = utcnow()
    past = now - datetime.timedelta(days=1)
    assert audit.get_user_activity("bob@example.com", past, now + datetime.timedelta(seconds=1)).value[0].primary_key == "2"
    assert audit.get_user_activity("bob@example.com", now, past).error.kind == ErrorKind.VALIDATION

    assert len(audit.get_system_activity(past, now + datetime.timedelta(seconds=1)).value) == 3
    assert audit.get_system_activity(now, past).error.kind == ErrorKind.VALIDATION
    assert uow.audit_logs.count(AuditLog.action_by == "System") == 0
