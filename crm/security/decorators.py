from __future__ import annotations

from collections.abc import Callable, Iterable

from crm.security.permissions import Permission

REQUIRED_PERMISSIONS_ATTR = "__security_required_permissions__"


def require_permissions(permissions: Iterable[Permission]) -> Callable:
    """
    Declare route permissions in code, next to the handler.

    The decorator does NOT check anything itself. It attaches metadata that
    the global ``enforce_security`` dependency reads after routing and merges
    with the YAML rule (any-of across both).
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, REQUIRED_PERMISSIONS_ATTR, set()))
        setattr(fn, REQUIRED_PERMISSIONS_ATTR, existing | set(permissions))
        return fn

    return decorator


def required_permissions(endpoint: Callable | None) -> frozenset[Permission]:
    if endpoint is None:
        return frozenset()
    return frozenset(getattr(endpoint, REQUIRED_PERMISSIONS_ATTR, set()))
