from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

import jwt

from crm.errors import Unauthenticated
from crm.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


def create_access_token(user_id: int, settings: Settings | None = None, expires_delta: timedelta | None = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=settings.jwt_access_expiration_minutes))
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings | None = None) -> int:
    """
    Validate an access token and return the user id it was issued for.

    Any failure (bad signature, expiry, wrong type, malformed subject) is
    reported as Unauthenticated; the token itself is never logged.
    """

    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        logger.info("Rejected expired access token")
        raise Unauthenticated("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected invalid access token: %s", type(exc).__name__)
        raise Unauthenticated("Please authenticate") from exc

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise Unauthenticated("Please authenticate")

    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise Unauthenticated("Please authenticate") from exc
