"""
Authorization error taxonomy.

Every error carries an HTTP-ish ``status_code`` and a short machine-readable
``reason`` so the web layer can map it without string matching. Messages are
safe to return to the caller: they never echo target organization ids.
"""

from __future__ import annotations


class AuthzError(Exception):
    """Base class for every failure raised by the authorization engine."""

    status_code: int = 500
    reason: str = "Authorization error"
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)

    @property
    def message(self) -> str:
        return str(self)


class Unauthenticated(AuthzError):
    status_code = 401
    reason = "Unauthenticated"


class Forbidden(AuthzError):
    status_code = 403
    reason = "Forbidden"


class RoleForbidden(Forbidden):
    """The actor's role permissions do not satisfy a route requirement."""

    reason = "Forbidden (role)"


class ScopeForbidden(Forbidden):
    """Neither the home scope nor any active delegated scope covers the target."""

    reason = "Forbidden (scope)"


class RoleAssignmentForbidden(Forbidden):
    """A non site-admin tried to hand out the siteAdmin role."""

    reason = "Forbidden (role assignment)"


class AuthzValidationError(AuthzError, ValueError):
    """Malformed input (bad delegation shape, unknown permission keys, ...)."""

    status_code = 400
    reason = "Validation failed"


class NotFound(AuthzError):
    status_code = 404
    reason = "Not found"


class StoreUnavailable(AuthzError):
    """The durable store could not be reached. Safe for the caller to retry."""

    status_code = 503
    reason = "Store unavailable"
    retryable = True
