from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from crm.db.session import bind_request_scope, get_db
from crm.errors import Forbidden, Unauthenticated
from crm.models.security import User
from crm.security.auth import extract_bearer_token, load_user
from crm.security.config import SecurityConfig
from crm.security.context import ScopeContext
from crm.security.decorators import required_permissions
from crm.security.roles import EffectiveRole, resolve_effective_role
from crm.security.scope import build_context, classify_scope
from crm.security.tokens import decode_access_token
from crm.services.departments import ManagerLookup

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise Unauthenticated("Please authenticate")
    return user


def get_effective_role(request: Request) -> EffectiveRole:
    role = getattr(request.state, "effective_role", None)
    if role is None:
        raise Unauthenticated("Please authenticate")
    return role


def get_scope_context(request: Request) -> ScopeContext:
    scope = getattr(request.state, "scope", None)
    if scope is None:
        raise Unauthenticated("Please authenticate")
    return scope


def get_manager_lookup(request: Request) -> ManagerLookup:
    managers = getattr(request.state, "manager_lookup", None)
    if managers is None:
        raise Unauthenticated("Please authenticate")
    return managers


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db),
) -> None:
    """
    Global security dependency.

    Pipeline: route rule -> authenticate -> effective role -> permission gate
    -> manager lookup -> scope classification -> scope context. The results
    land on ``request.state``. The session is the one handlers get from
    ``get_db`` (FastAPI caches it per request), so the scope is bound to it
    here and every handler query is narrowed without handler changes.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)
    decorator_permissions = required_permissions(request.scope.get("endpoint"))

    auth_required = rule.auth_required or bool(decorator_permissions)
    if not auth_required:
        return

    token = extract_bearer_token(request, config)
    if token is None:
        raise Unauthenticated("Please authenticate")

    user = load_user(db, decode_access_token(token))
    effective = resolve_effective_role(user)

    required = set(rule.permissions) | set(decorator_permissions)
    if required and not effective.has_any(required):
        logger.info(
            "Permission denied user_id=%s path=%s method=%s required_any=%s",
            user.id,
            path,
            method,
            sorted(p.value for p in required),
        )
        raise Forbidden("You do not have permission to perform this action")

    managers = ManagerLookup(db)
    scope = classify_scope(effective.permissions, effective.all_role_names, managers.is_manager(user))
    context = build_context(user, scope)

    request.state.user = user
    request.state.effective_role = effective
    request.state.scope = context
    request.state.manager_lookup = managers
    bind_request_scope(db, request)
