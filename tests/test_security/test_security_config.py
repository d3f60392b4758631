"""
Tests for the YAML route rules and the code-level permission decorator.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from crm.security.config import SecurityConfig, SecurityConfigModel, load_security_config
from crm.security.decorators import require_permissions, required_permissions
from crm.security.permissions import Permission
from crm.settings import get_settings


@pytest.fixture
def config() -> SecurityConfig:
    return load_security_config(get_settings().resolved_security_config_path())


def test_health_is_public(config):
    rule = config.match("/health", "GET")

    assert rule.auth_required is False
    assert rule.permissions == frozenset()


def test_me_needs_a_token_only(config):
    rule = config.match("/me", "get")

    assert rule.auth_required is True
    assert rule.permissions == frozenset()


def test_templates_match_concrete_paths(config):
    assert config.match("/leads/42", "GET").permissions == {Permission.CAN_VIEW_LEADS}
    assert config.match("/leads/42", "PATCH").permissions == {Permission.CAN_MANAGE_LEADS}
    assert config.match("/leads/42/notes", "POST").permissions == {Permission.CAN_MANAGE_LEADS}


def test_exact_paths_win_over_templates(config):
    assert config.match("/tasks/due-today", "GET").permissions == {Permission.CAN_VIEW_TASKS}


def test_unlisted_routes_fall_back_to_the_default(config):
    rule = config.match("/analytics/dashboard", "GET")

    assert rule.auth_required is True
    assert rule.permissions == frozenset()


def test_rule_with_permissions_is_auth_required_even_when_default_is_public():
    model = SecurityConfigModel.model_validate(
        {
            "default": {"auth_required": False},
            "routes": [{"path": "/leads", "methods": ["GET"], "permissions": ["canViewLeads"]}],
        }
    )

    rule = SecurityConfig(model).match("/leads", "GET")

    assert rule.auth_required is True


def test_unknown_permission_names_are_rejected():
    with pytest.raises(ValidationError):
        SecurityConfigModel.model_validate({"routes": [{"path": "/x", "permissions": ["canFly"]}]})


def test_missing_security_key_is_rejected(tmp_path: Path):
    path = tmp_path / "security.yaml"
    path.write_text("routes: []\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_security_config(path)


def test_require_permissions_attaches_metadata():
    @require_permissions([Permission.CAN_VIEW_DEALS])
    @require_permissions([Permission.CAN_VIEW_LEADS])
    def endpoint():
        return None

    assert required_permissions(endpoint) == {Permission.CAN_VIEW_LEADS, Permission.CAN_VIEW_DEALS}
    assert required_permissions(None) == frozenset()
