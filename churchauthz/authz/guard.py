"""
Route-level permission gate.

This tier looks at role permissions only (from the cache); it never queries
delegations. Delegation-aware checks happen inside business operations via
``require_effective`` and the scope authorizer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Iterable

from .errors import RoleForbidden
from .resolver import EffectivePermissions
from .scope import Actor, OrgScope, assert_lineage_in_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionRule:
    """``all_of``: every key required. ``any_of``: at least one required."""

    all_of: frozenset[str] = frozenset()
    any_of: frozenset[str] = frozenset()

    @classmethod
    def of(cls, all_of: Iterable[str] = (), any_of: Iterable[str] = ()) -> PermissionRule:
        return cls(all_of=frozenset(all_of), any_of=frozenset(any_of))

    @property
    def is_empty(self) -> bool:
        return not self.all_of and not self.any_of

    def is_satisfied_by(self, permissions: AbstractSet[str]) -> bool:
        if self.all_of and not self.all_of <= permissions:
            return False
        if self.any_of and not (self.any_of & permissions):
            return False
        return True


def require_permissions(actor: Actor, permissions: AbstractSet[str], rule: PermissionRule) -> None:
    if rule.is_satisfied_by(permissions):
        return
    logger.info(
        "Role gate denied actor=%s role=%s all_of=%s any_of=%s",
        actor.id,
        actor.role,
        sorted(rule.all_of),
        sorted(rule.any_of),
    )
    raise RoleForbidden()


def require_effective(actor: Actor, effective: EffectivePermissions, permission: str, target: OrgScope) -> None:
    """
    Resource-level check: the permission must be held (role or delegation) and
    the target must sit in the home scope or an active delegated scope.

    ``target`` is the resource's full lineage (``hierarchy.lineage_scope``).
    """

    if permission not in effective.permissions:
        logger.info("Effective permission missing actor=%s permission=%s", actor.id, permission)
        raise RoleForbidden()
    assert_lineage_in_scope(actor, target, effective.delegated_scopes)
