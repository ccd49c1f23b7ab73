"""
Organization scope model and scope authorizer.

Scopes are partially populated ``{national, district, church}`` tuples.
``scope_matches`` is the field-wise comparison: every level the *target*
specifies must be present and equal on the holder. Writes against a known
resource use ``assert_lineage_in_scope`` instead, which requires a holder scope
to contain the resource's full lineage (see ``hierarchy.lineage_scope``).

``siteAdmin`` owns every scope and is checked before anything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .errors import RoleAssignmentForbidden, ScopeForbidden
from .permissions import SITE_ADMIN

logger = logging.getLogger(__name__)

LEVELS: tuple[str, ...] = ("national_id", "district_id", "church_id")

# Loosely typed payloads use a mix of spellings for the same level.
_PAYLOAD_ALIASES: Mapping[str, tuple[str, ...]] = {
    "national_id": ("national_id", "nationalId", "nationalChurchId", "national_church_id"),
    "district_id": ("district_id", "districtId"),
    "church_id": ("church_id", "churchId"),
}


def _norm(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class OrgScope:
    national_id: str | None = None
    district_id: str | None = None
    church_id: str | None = None

    def __post_init__(self) -> None:
        # Ids compare as strings regardless of what the caller handed us.
        for level in LEVELS:
            object.__setattr__(self, level, _norm(getattr(self, level)))

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, level) for level in LEVELS)

    def present_levels(self) -> tuple[str, ...]:
        return tuple(level for level in LEVELS if getattr(self, level))

    def to_dict(self) -> dict[str, str | None]:
        return {level: getattr(self, level) for level in LEVELS}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> OrgScope:
        """Build a scope from a dict using any of the accepted key spellings."""
        if not data:
            return cls()
        values: dict[str, str | None] = {}
        for level, aliases in _PAYLOAD_ALIASES.items():
            values[level] = next((_norm(data[a]) for a in aliases if _norm(data.get(a))), None)
        return cls(**values)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller. Built from the identity token, never stored here."""

    id: str
    role: str
    church_id: str | None = None
    district_id: str | None = None
    national_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        for level in LEVELS:
            object.__setattr__(self, level, _norm(getattr(self, level)))

    @property
    def is_site_admin(self) -> bool:
        return self.role == SITE_ADMIN

    @property
    def home_scope(self) -> OrgScope:
        return OrgScope(
            national_id=self.national_id,
            district_id=self.district_id,
            church_id=self.church_id,
        )


@dataclass(frozen=True)
class OrgPayload:
    """
    The organization-relevant slice of a write payload.

    Request bodies are loosely shaped; this record is what the scope checks
    actually look at.
    """

    scope: OrgScope
    role: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> OrgPayload:
        payload = payload or {}
        return cls(scope=OrgScope.from_mapping(payload), role=_norm(payload.get("role")))


def is_site_admin(actor: Actor | None) -> bool:
    return actor is not None and actor.is_site_admin


def scope_matches(holder: OrgScope, target: OrgScope) -> bool:
    """
    Field-wise comparison used by every scope decision.

    For each level set on ``target`` the holder must carry the same id. Levels
    missing from ``target`` are vacuously satisfied, so an empty target matches
    any holder.
    """

    for level in LEVELS:
        wanted = getattr(target, level)
        if wanted is None:
            continue
        if getattr(holder, level) != wanted:
            return False
    return True


def owns_scope(actor: Actor, target: OrgScope) -> bool:
    if actor.is_site_admin:
        return True
    return scope_matches(actor.home_scope, target)


def can_act_in_scope(
    actor: Actor,
    target: OrgScope,
    delegated_scopes: Iterable[OrgScope] = (),
) -> bool:
    """Home scope OR any active delegated scope covering ``target``."""
    if owns_scope(actor, target):
        return True
    return any(scope_matches(scope, target) for scope in delegated_scopes)


def assert_scope(
    actor: Actor,
    target: OrgScope,
    delegated_scopes: Iterable[OrgScope] = (),
) -> None:
    if can_act_in_scope(actor, target, delegated_scopes):
        return
    logger.info("Scope denied actor=%s role=%s levels=%s", actor.id, actor.role, target.present_levels())
    raise ScopeForbidden()


def scope_contains(outer: OrgScope, inner: OrgScope) -> bool:
    """
    Hierarchical containment: every level set on ``outer`` is equal on ``inner``.

    An empty ``outer`` contains nothing.
    """

    levels = outer.present_levels()
    return bool(levels) and all(getattr(inner, level) == getattr(outer, level) for level in levels)


def assert_lineage_in_scope(
    actor: Actor,
    lineage: OrgScope,
    delegated_scopes: Iterable[OrgScope] = (),
) -> None:
    """
    Scope check for a target whose full lineage is known.

    The home scope or a delegated scope must contain the lineage from above: a
    national holder may act in any church of its national church, while a
    church or district holder never reaches a broader target.
    """

    if actor.is_site_admin:
        return
    if any(scope_contains(scope, lineage) for scope in (actor.home_scope, *delegated_scopes)):
        return
    logger.info("Scope denied actor=%s role=%s levels=%s", actor.id, actor.role, lineage.present_levels())
    raise ScopeForbidden()


def assert_payload_within_scope(actor: Actor, payload: OrgPayload | Mapping[str, Any] | None) -> None:
    """
    Guard the organization fields a write is about to persist.

    A non site-admin may only write records carrying their own home-scope ids,
    and may never assign the siteAdmin role, whatever the scope fields say.
    """

    if actor.is_site_admin:
        return

    record = payload if isinstance(payload, OrgPayload) else OrgPayload.from_mapping(payload)

    if record.role == SITE_ADMIN:
        logger.warning("Blocked siteAdmin assignment by actor=%s role=%s", actor.id, actor.role)
        raise RoleAssignmentForbidden("Forbidden: cannot assign siteAdmin role")

    home = actor.home_scope
    for level in record.scope.present_levels():
        if getattr(record.scope, level) != getattr(home, level):
            logger.info("Payload scope denied actor=%s field=%s", actor.id, level)
            raise ScopeForbidden()
