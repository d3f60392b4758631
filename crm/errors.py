"""
Error taxonomy shared by the access-control core and the HTTP surface.

The core never imports FastAPI; ``crm.main`` registers one exception handler
that renders any ``CrmError`` as ``{"code": <status>, "message": <text>}``.
"""

from __future__ import annotations


class CrmError(Exception):
    """Base class. ``status_code`` is the HTTP-equivalent status."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(CrmError):
    """No credential, an invalid credential, or a principal that may not act."""

    status_code = 401


class Forbidden(CrmError):
    """Authenticated, but the permission or scope check failed."""

    status_code = 403


class NotFound(CrmError):
    """The record does not exist at all."""

    status_code = 404


class InvalidRequest(CrmError):
    """A business rule rejected the request (role subset, last role, duplicates)."""

    status_code = 400


class ConfigurationError(CrmError):
    """
    A scoped write could not resolve a tenancy marker.

    Fatal and never retried: it means the caller skipped a required step.
    """

    status_code = 500
