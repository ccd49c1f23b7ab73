"""
Hierarchical scoped authorization engine.

This package re-exports the pure pieces (scope model, permission catalogue,
errors, cache). The store-backed services live in their own modules and are
imported from there:

    from churchauthz.authz.roles import RoleStore
    from churchauthz.authz.resolver import EffectivePermissionResolver
    from churchauthz.authz.delegations import DelegationService
"""

from .cache import PermissionCache
from .errors import (
    AuthzError,
    AuthzValidationError,
    Forbidden,
    NotFound,
    RoleAssignmentForbidden,
    RoleForbidden,
    ScopeForbidden,
    StoreUnavailable,
    Unauthenticated,
)
from .permissions import ALL_PERMISSIONS, ROLE_MATRIX, SITE_ADMIN, Permission, validate_permissions
from .scope import (
    Actor,
    OrgPayload,
    OrgScope,
    assert_lineage_in_scope,
    assert_payload_within_scope,
    assert_scope,
    can_act_in_scope,
    owns_scope,
    scope_contains,
    scope_matches,
)

__all__ = [
    "ALL_PERMISSIONS",
    "ROLE_MATRIX",
    "SITE_ADMIN",
    "Actor",
    "AuthzError",
    "AuthzValidationError",
    "Forbidden",
    "NotFound",
    "OrgPayload",
    "OrgScope",
    "Permission",
    "PermissionCache",
    "RoleAssignmentForbidden",
    "RoleForbidden",
    "ScopeForbidden",
    "StoreUnavailable",
    "Unauthenticated",
    "assert_lineage_in_scope",
    "assert_payload_within_scope",
    "assert_scope",
    "can_act_in_scope",
    "owns_scope",
    "scope_contains",
    "scope_matches",
    "validate_permissions",
]
