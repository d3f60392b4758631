from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from crm.settings import get_settings

SCOPE_INFO_KEY = "scope"

_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

# expire_on_commit=False: handlers return ORM rows that are serialized after commit.
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


def bind_request_scope(db: Session, request: Request) -> Session:
    """
    Copy the request's ScopeContext into ``Session.info``.

    The query filter injector (crm/db/filters.py) reads it from there, so
    handler code such as ``db.scalars(select(Lead))`` is narrowed without
    passing the scope around.
    """

    scope = getattr(getattr(request, "state", None), "scope", None)
    if scope is not None:
        db.info[SCOPE_INFO_KEY] = scope
    return db


def get_db(request: Request) -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield bind_request_scope(db, request)
    finally:
        db.close()
