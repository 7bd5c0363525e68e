#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.conftest
    ~~~~~~~~~~~~~~

    Shared fixtures: a fresh in-memory database per test, seeded with the
    fixed roles, plus helpers to create users and items.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import os
os.environ["TESTING"] = "true"
os.environ.pop("ADMIN_EMAIL", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from loantrack.app import app
from loantrack.configs import ADMIN_ROLE, DEFAULT_ROLE
from loantrack.core import init_db
from loantrack.core.audit import SYSTEM_ACTOR
from loantrack.core.db import Base, get_session
from loantrack.core.items import ItemService
from loantrack.core.models import ItemStatus
from loantrack.core.uow import UnitOfWork
from loantrack.core.users import UserService
from loantrack.schemas.item import CreateItem
from loantrack.schemas.user import CreateUser

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(bind=engine, autoflush=False)
    init_db(bind=engine, session_factory=factory)
    return factory


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def uow(db_session):
    return UnitOfWork(db_session)


def make_user(uow, email, role=DEFAULT_ROLE, name=None, password=PASSWORD):
    role_id = uow.roles.get_by_name(role).id
    result = UserService(uow).create(SYSTEM_ACTOR, CreateUser(
        name=name or email.split("@")[0].title(),
        email=email,
        password=password,
        role_id=role_id,
    ))
    assert result.ok, result.error
    return result.value


def make_item(uow, code, name=None, category="Electronics", status=ItemStatus.Available,
              location=None):
    result = ItemService(uow).create(SYSTEM_ACTOR, CreateItem(
        code=code,
        name=name or f"Item {code}",
        category=category,
        status=status,
        location=location,
    ))
    assert result.ok, result.error
    return result.value


@pytest.fixture
def admin(uow):
    return make_user(uow, "admin@example.com", role=ADMIN_ROLE, name="Admin")


@pytest.fixture
def operator(uow):
    return make_user(uow, "ana@example.com", name="Ana")


@pytest.fixture
def client(session_factory):
    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def login(client, email, password=PASSWORD):
    """Logs in and returns Bearer headers, leaving the client's cookie jar empty."""
    response = client.post("/v1/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    token = response.cookies["session"]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}
