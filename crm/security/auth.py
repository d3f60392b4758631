from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm.db.filters import SKIP_SCOPE
from crm.errors import Unauthenticated
from crm.models.security import User
from crm.security.config import SecurityConfig

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Read ``Authorization: Bearer <jwt>``.

    Returns None when the header is absent. A present but malformed header is
    rejected outright.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Missing token after '{bearer_prefix}'.")

    return token


def load_user(db: Session, user_id: int) -> User:
    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.department),
            selectinload(User.roles),
        )
        .execution_options(**{SKIP_SCOPE: True})
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        logger.info("Rejected principal user_id=%s (missing or not Active)", user_id)
        raise Unauthenticated("Invalid or inactive user")

    return user
