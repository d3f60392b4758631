from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from crm.security.permissions import Permission, parse_permission


class AuthConfig(BaseModel):
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


def _validate_permission_names(names: list[str]) -> list[str]:
    unknown = [n for n in names if parse_permission(n) is None]
    if unknown:
        raise ValueError(f"Unknown permission flags: {unknown}")
    return names


class DefaultRule(BaseModel):
    auth_required: bool = True
    permissions: list[str] = Field(default_factory=list)

    check_permissions = field_validator("permissions")(_validate_permission_names)


class RouteRule(BaseModel):
    """
    One route entry.

    ``permissions`` is any-of: holding at least one listed flag passes.
    """

    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    permissions: list[str] = Field(default_factory=list)

    check_permissions = field_validator("permissions")(_validate_permission_names)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    permissions: frozenset[Permission]


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/leads/{id}/notes" -> r"^/leads/[^/]+/notes$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


def _as_permissions(names: list[str]) -> frozenset[Permission]:
    return frozenset(p for p in (parse_permission(n) for n in names) if p is not None)


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        # Exact paths win over templates; among templates, declaration order wins.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        self._template_rules: list[tuple[re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            if "{" in rule.path:
                self._template_rules.append((_path_template_to_regex(rule.path), rule))
            else:
                self._exact_rules.setdefault(rule.path, []).append(rule)

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        method = method.upper()
        default = self.model.default

        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        for regex, candidate in self._template_rules:
            if method in candidate.normalized_methods() and regex.match(path):
                return _effective(candidate, default)

        return EffectiveRule(auth_required=default.auth_required, permissions=_as_permissions(default.permissions))


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A rule that names permissions is auth-required even if the default is public.
    inferred_auth_required = default.auth_required or bool(rule.permissions)

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        permissions=_as_permissions(rule.permissions or default.permissions),
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
