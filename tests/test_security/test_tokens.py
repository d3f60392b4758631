from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from crm.errors import Unauthenticated
from crm.security.tokens import create_access_token, decode_access_token
from crm.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret="test-secret")


def test_round_trip_returns_user_id(settings):
    token = create_access_token(42, settings)

    assert decode_access_token(token, settings) == 42


def test_expired_token(settings):
    token = create_access_token(42, settings, expires_delta=timedelta(minutes=-5))

    with pytest.raises(Unauthenticated) as exc_info:
        decode_access_token(token, settings)
    assert exc_info.value.message == "Token expired"


def test_wrong_signature(settings):
    token = create_access_token(42, Settings(jwt_secret="other-secret"))

    with pytest.raises(Unauthenticated):
        decode_access_token(token, settings)


def test_wrong_token_type(settings):
    token = jwt.encode({"sub": "42", "exp": 4102444800, "type": "refresh"}, settings.jwt_secret, algorithm="HS256")

    with pytest.raises(Unauthenticated):
        decode_access_token(token, settings)


def test_non_numeric_subject(settings):
    token = jwt.encode({"sub": "abc", "exp": 4102444800, "type": "access"}, settings.jwt_secret, algorithm="HS256")

    with pytest.raises(Unauthenticated):
        decode_access_token(token, settings)


def test_garbage(settings):
    with pytest.raises(Unauthenticated):
        decode_access_token("not-a-jwt", settings)
