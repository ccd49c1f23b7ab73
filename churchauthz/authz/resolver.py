"""
Effective permission resolution.

effective(actor) = role permissions  ∪  ⋃ permissions(active delegation)

A delegation is active while ``starts_at <= now <= ends_at`` and it has not been
revoked. Delegations are never cached, so revocation and expiry take effect on
the very next call. Store errors propagate: falling back to role-only
permissions would silently strip an actor's delegated access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from churchauthz.models.security import Delegation

from .clock import Clock, as_utc, utcnow
from .errors import StoreUnavailable
from .scope import OrgScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplicitGrant:
    permissions: frozenset[str]


@dataclass(frozen=True)
class RoleEquivalentGrant:
    role_key: str


Grant = Union[ExplicitGrant, RoleEquivalentGrant]


def grant_of(delegation: Delegation) -> Grant:
    if delegation.permissions:
        return ExplicitGrant(frozenset(delegation.permissions))
    return RoleEquivalentGrant(delegation.role_like or "")


class RolePermissionSource(Protocol):
    def get_permissions_for_role(self, role_key: str | None) -> frozenset[str]: ...


@dataclass(frozen=True)
class EffectivePermissions:
    permissions: frozenset[str]
    delegated_scopes: tuple[OrgScope, ...]
    delegations: tuple[Delegation, ...] = ()

    def has(self, permission: str) -> bool:
        return permission in self.permissions

    def to_dict(self) -> dict[str, object]:
        return {
            "permissions": sorted(self.permissions),
            "delegated_scopes": [s.to_dict() for s in self.delegated_scopes],
        }


def active_delegations_query(grantee_id: str, now: datetime):
    """The single, index-backed query for a grantee's live delegations."""
    return (
        select(Delegation)
        .where(
            Delegation.grantee_id == str(grantee_id),
            Delegation.is_revoked.is_(False),
            Delegation.starts_at <= now,
            Delegation.ends_at >= now,
        )
        .order_by(Delegation.id)
    )


class EffectivePermissionResolver:
    def __init__(self, db: Session, roles: RolePermissionSource, clock: Clock = utcnow) -> None:
        self._db = db
        self._roles = roles
        self._clock = clock

    def resolve_grant(self, grant: Grant) -> frozenset[str]:
        if isinstance(grant, ExplicitGrant):
            return grant.permissions
        return self._roles.get_permissions_for_role(grant.role_key)

    def active_delegations(self, grantee_id: str, now: datetime | None = None) -> list[Delegation]:
        now = as_utc(now or self._clock())
        try:
            return list(self._db.scalars(active_delegations_query(grantee_id, now)).all())
        except SQLAlchemyError as exc:
            logger.error("Delegation query failed grantee=%s", grantee_id)
            raise StoreUnavailable("Delegation store unavailable") from exc

    def resolve(self, actor_id: str, role: str | None, now: datetime | None = None) -> EffectivePermissions:
        base = self._roles.get_permissions_for_role(role)
        delegations: Sequence[Delegation] = self.active_delegations(actor_id, now)

        merged = set(base)
        scopes: list[OrgScope] = []
        for delegation in delegations:
            merged |= self.resolve_grant(grant_of(delegation))
            scopes.append(delegation.scope)

        if delegations:
            logger.debug(
                "Resolved actor=%s role=%s base=%d effective=%d delegations=%d",
                actor_id,
                role,
                len(base),
                len(merged),
                len(delegations),
            )

        return EffectivePermissions(
            permissions=frozenset(merged),
            delegated_scopes=tuple(scopes),
            delegations=tuple(delegations),
        )
