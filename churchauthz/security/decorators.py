from __future__ import annotations

from collections.abc import Callable


def require_all_permissions(permissions: list[str]) -> Callable:
    """
    Decorator-style API, alongside the YAML route table.

    Implementation detail:
    - This decorator does NOT perform any check itself.
    - It attaches metadata that the global security dependency reads
      *after* routing (during dependency resolution).
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_all_permissions__", set()))
        setattr(fn, "__security_all_permissions__", existing | set(permissions))
        return fn

    return decorator


def require_any_permission(permissions: list[str]) -> Callable:
    """Attach "at least one of" permission metadata to an endpoint."""

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_any_permissions__", set()))
        setattr(fn, "__security_any_permissions__", existing | set(permissions))
        return fn

    return decorator


def filter_by_scope() -> Callable:
    """
    Enable org-scope read filtering for this endpoint.
    """

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_filter_by_scope__", True)
        return fn

    return decorator
