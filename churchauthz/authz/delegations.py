"""
Delegation lifecycle: create, list, revoke.

Creation rules:
- exactly one of an explicit permission list or a role-equivalent (``role_like``);
- non-empty scope of known, mutually consistent organizations; it is stored
  exactly as requested, and its lineage must sit in the grantor's home scope
  or a scope delegated to the grantor;
- ``starts_at < ends_at``;
- every granted permission, including those reached through ``role_like``,
  must already be in the grantor's effective permissions.

Checks run once, at creation. Later changes to the grantor's own permissions do
not touch existing delegations.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from churchauthz.models.security import Delegation, User

from .clock import Clock, as_utc, utcnow
from .errors import AuthzValidationError, Forbidden, NotFound, StoreUnavailable
from .hierarchy import lineage_scope
from .permissions import validate_permissions
from .resolver import EffectivePermissionResolver, ExplicitGrant, Grant, RoleEquivalentGrant
from .roles import RoleStore
from .scope import Actor, OrgScope, assert_lineage_in_scope

logger = logging.getLogger(__name__)


def build_grant(permissions: Iterable[str] | None = None, role_like: str | None = None) -> Grant:
    """Turn request fields into a grant, enforcing "exactly one of"."""
    perms = [str(p).strip() for p in (permissions or []) if str(p).strip()]
    role_key = (role_like or "").strip()

    if perms and role_key:
        raise AuthzValidationError("Specify either permissions or role_like, not both")
    if perms:
        return ExplicitGrant(frozenset(validate_permissions(perms)))
    if role_key:
        return RoleEquivalentGrant(role_key)
    raise AuthzValidationError("Specify permissions or role_like")


class DelegationService:
    def __init__(
        self,
        db: Session,
        roles: RoleStore,
        resolver: EffectivePermissionResolver,
        clock: Clock = utcnow,
    ) -> None:
        self._db = db
        self._roles = roles
        self._resolver = resolver
        self._clock = clock

    # ---- Create -------------------------------------------------------------------

    def create_delegation(
        self,
        grantor: Actor,
        grantee_id: str,
        scope: OrgScope,
        grant: Grant,
        starts_at: datetime,
        ends_at: datetime,
        reason: str | None = None,
    ) -> Delegation:
        grantee_id = str(grantee_id or "").strip()
        if not grantee_id:
            raise AuthzValidationError("grantee_id is required")
        if scope is None or scope.is_empty:
            raise AuthzValidationError("scope is required")
        if starts_at is None or ends_at is None:
            raise AuthzValidationError("starts_at and ends_at are required")

        starts_at, ends_at = as_utc(starts_at), as_utc(ends_at)
        if starts_at >= ends_at:
            raise AuthzValidationError("Invalid date range")

        grantor_effective = self._resolver.resolve(grantor.id, grantor.role)
        # The lineage is only checked; the delegation keeps the requested scope.
        lineage = lineage_scope(self._db, **scope.to_dict())
        assert_lineage_in_scope(grantor, lineage, grantor_effective.delegated_scopes)

        if not self._user_exists(grantee_id):
            raise NotFound("Grantee not found")

        explicit: list[str] | None = None
        role_like: str | None = None
        if isinstance(grant, ExplicitGrant):
            missing = grant.permissions - grantor_effective.permissions
            if missing:
                raise AuthzValidationError(f"Grantor lacks: {', '.join(sorted(missing))}")
            explicit = sorted(grant.permissions)
        else:
            if not self._roles.exists(grant.role_key):
                raise AuthzValidationError("role_like not found")
            missing = self._roles.get_permissions_for_role(grant.role_key) - grantor_effective.permissions
            if missing:
                raise AuthzValidationError(f"Grantor lacks permissions in role_like: {', '.join(sorted(missing))}")
            role_like = grant.role_key

        delegation = Delegation(
            grantor_id=grantor.id,
            grantee_id=grantee_id,
            scope_national_id=scope.national_id,
            scope_district_id=scope.district_id,
            scope_church_id=scope.church_id,
            permissions=explicit,
            role_like=role_like,
            starts_at=starts_at,
            ends_at=ends_at,
            reason=reason,
            is_revoked=False,
            created_by=grantor.id,
        )
        self._db.add(delegation)
        self._commit()

        logger.info(
            "Delegation created id=%s grantor=%s grantee=%s kind=%s",
            delegation.id,
            grantor.id,
            grantee_id,
            "explicit" if explicit else "role_like",
        )
        return delegation

    # ---- Read ---------------------------------------------------------------------

    def get(self, delegation_id: int) -> Delegation:
        try:
            delegation = self._db.get(Delegation, delegation_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Delegation store unavailable") from exc
        if delegation is None:
            raise NotFound()
        return delegation

    def list_active_for_grantee(self, grantee_id: str, now: datetime | None = None) -> list[Delegation]:
        return self._resolver.active_delegations(grantee_id, now or self._clock())

    def list_for(
        self,
        actor_id: str,
        as_role: str = "grantor",
        active_only: bool = False,
        now: datetime | None = None,
    ) -> list[Delegation]:
        """Delegations the actor granted (``as_role="grantor"``) or received."""
        if as_role not in ("grantor", "grantee"):
            raise AuthzValidationError("as must be 'grantor' or 'grantee'")

        column = Delegation.grantee_id if as_role == "grantee" else Delegation.grantor_id
        stmt = select(Delegation).where(column == str(actor_id))
        if active_only:
            now = as_utc(now or self._clock())
            stmt = stmt.where(
                Delegation.is_revoked.is_(False),
                Delegation.starts_at <= now,
                Delegation.ends_at >= now,
            )
        stmt = stmt.order_by(Delegation.created_at.desc(), Delegation.id.desc())

        try:
            return list(self._db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Delegation store unavailable") from exc

    # ---- Revoke -------------------------------------------------------------------

    def revoke_delegation(self, delegation_id: int, requester: Actor) -> Delegation:
        """Only the original grantor or a site admin may revoke."""
        delegation = self.get(delegation_id)

        if not requester.is_site_admin and delegation.grantor_id != requester.id:
            logger.info("Revoke denied id=%s requester=%s", delegation_id, requester.id)
            raise Forbidden()

        if not delegation.is_revoked:
            delegation.is_revoked = True
            delegation.revoked_at = self._clock()
            delegation.revoked_by = requester.id
            self._commit()
            logger.info("Delegation revoked id=%s by=%s", delegation_id, requester.id)
        return delegation

    # ---- Internals ----------------------------------------------------------------

    def _user_exists(self, user_id: str) -> bool:
        try:
            return self._db.execute(select(User.id).where(User.id == user_id)).first() is not None
        except SQLAlchemyError as exc:
            raise StoreUnavailable("User store unavailable") from exc

    def _commit(self) -> None:
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Delegation store write failed")
            raise StoreUnavailable("Delegation store unavailable") from exc
