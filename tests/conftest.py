"""
Pytest fixtures for the test suite.

Data-layer and security tests use an in-memory SQLite engine and a session
that rolls back after each test, so tests do not affect each other. API
tests run the FastAPI app against a separate in-memory database shared
through a StaticPool, with ``get_db`` overridden.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm.db import filters as _filters  # noqa: F401  (register SQLAlchemy scope hooks)
from crm.db.base import Base
from crm.db.init_db import seed, seed_system_roles
from crm.db.session import SCOPE_INFO_KEY, bind_request_scope, get_db
from crm.models.crm import Lead
from crm.models.security import Department, Role, User
from crm.security.config import load_security_config
from crm.security.tokens import create_access_token
from crm.settings import get_settings

TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def use_scope(db_session):
    """Attach a ScopeContext to db_session the way get_db does for a request."""

    def attach(context) -> Session:
        db_session.info[SCOPE_INFO_KEY] = context
        return db_session

    return attach


@pytest.fixture
def org(db_session):
    """
    Two departments with one plain user each, plus the system roles.

    ``org.sales_user`` created ``org.sales_lead``; ``org.support_user``
    created ``org.support_lead``.
    """
    roles = seed_system_roles(db_session)

    sales = Department(name="Sales")
    support = Department(name="Support")
    db_session.add_all([sales, support])
    db_session.flush()

    sales_user = User(name="Sam", email="sam@example.com", department_id=sales.id)
    sales_user.roles.append(roles["User"])
    support_user = User(name="Sue", email="sue@example.com", department_id=support.id)
    support_user.roles.append(roles["User"])
    db_session.add_all([sales_user, support_user])
    db_session.flush()

    sales_lead = Lead(first_name="Ada", company="Acme", created_by_id=sales_user.id)
    sales_lead.departments = [sales]
    support_lead = Lead(first_name="Hank", company="Globex", created_by_id=support_user.id)
    support_lead.departments = [support]
    db_session.add_all([sales_lead, support_lead])
    db_session.commit()

    return SimpleNamespace(
        roles=roles,
        sales=sales,
        support=support,
        sales_user=sales_user,
        support_user=support_user,
        sales_lead=sales_lead,
        support_lead=support_lead,
    )


@pytest.fixture
def api_sessionmaker():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    maker = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)
    with maker() as db:
        seed(db)
    return maker


@pytest.fixture
def client(api_sessionmaker):
    """
    TestClient over the real app, without running its lifespan.

    The security config is loaded from the repo's YAML file and the seeded
    demo data (see crm/db/init_db.py) is available.
    """
    from crm.main import app

    def override_get_db(request: Request):
        db = api_sessionmaker()
        try:
            yield bind_request_scope(db, request)
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.security_config = load_security_config(get_settings().resolved_security_config_path())
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(api_sessionmaker):
    """Ids from the seeded demo data, looked up by email / name."""
    with api_sessionmaker() as db:
        users = {u.email.split("@")[0]: u.id for u in db.scalars(select(User)).all()}
        departments = {d.name: d.id for d in db.scalars(select(Department)).all()}
        leads = {lead.company: lead.id for lead in db.scalars(select(Lead)).all()}
        roles = {r.name: r.id for r in db.scalars(select(Role)).all()}
    return SimpleNamespace(users=users, departments=departments, leads=leads, roles=roles)


@pytest.fixture
def auth_header():
    def make(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return make
