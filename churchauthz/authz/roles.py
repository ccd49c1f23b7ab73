"""
Role store: durable role -> permissions mapping, read through ``PermissionCache``.

``get_permissions_for_role`` is the one code path for "permissions of a role";
the resolver uses it both for the actor's own role and for role-equivalent
delegations. Every mutation commits and then invalidates the cache before
returning, so the next lookup sees the new permissions.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from churchauthz.models.security import Role

from .cache import PermissionCache
from .errors import AuthzValidationError, NotFound, StoreUnavailable
from .permissions import ROLE_MATRIX, label_from_key, validate_permissions

logger = logging.getLogger(__name__)


class RoleStore:
    def __init__(self, db: Session, cache: PermissionCache) -> None:
        self._db = db
        self._cache = cache

    # ---- Lookup -------------------------------------------------------------------

    def get_permissions_for_role(self, role_key: str | None) -> frozenset[str]:
        """
        Permissions of ``role_key``; empty for a missing or unknown role.

        Store failures raise ``StoreUnavailable`` rather than returning an empty
        set, so "role has no permissions" stays distinguishable from an outage.
        """

        if not role_key:
            return frozenset()

        cached = self._cache.get(role_key)
        if cached is not None:
            return cached

        generation = self._cache.generation
        permissions = self._load_permissions(role_key)
        self._cache.put(role_key, permissions, generation)
        return permissions

    def _load_permissions(self, role_key: str) -> frozenset[str]:
        try:
            stored = self._db.execute(select(Role.permissions).where(Role.key == role_key)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Role store query failed role=%s", role_key)
            raise StoreUnavailable("Role store unavailable") from exc

        if stored is None:
            logger.debug("Unknown role key=%s; treating as no permissions", role_key)
            return frozenset()
        return frozenset(stored)

    def list_roles(self) -> list[Role]:
        try:
            return list(self._db.scalars(select(Role).order_by(Role.key)).all())
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Role store unavailable") from exc

    def get_role(self, key: str) -> Role:
        try:
            role = self._db.scalars(select(Role).where(Role.key == key)).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Role store unavailable") from exc
        if role is None:
            raise NotFound("Role not found")
        return role

    def exists(self, key: str) -> bool:
        try:
            return self._db.execute(select(Role.id).where(Role.key == key)).first() is not None
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Role store unavailable") from exc

    # ---- Mutations ----------------------------------------------------------------

    def create_role(self, key: str, name: str | None = None, permissions: Iterable[str] = ()) -> Role:
        key = (key or "").strip()
        if not key:
            raise AuthzValidationError("key is required")
        perms = validate_permissions(permissions)
        if self.exists(key):
            raise AuthzValidationError("Role key already exists")

        role = Role(key=key, name=(name or "").strip() or label_from_key(key), permissions=list(perms))
        self._db.add(role)
        self._commit(key)
        logger.info("Role created key=%s permissions=%d", key, len(perms))
        return role

    def update_role(self, key: str, name: str | None = None, permissions: Iterable[str] | None = None) -> Role:
        role = self.get_role(key)
        if name is not None:
            role.name = str(name)
        if permissions is not None:
            role.permissions = list(validate_permissions(permissions))
        self._commit(key)
        logger.info("Role updated key=%s", key)
        return role

    def replace_permissions(self, key: str, permissions: Iterable[str]) -> Role:
        return self.update_role(key, permissions=permissions)

    def add_permissions(self, key: str, permissions: Iterable[str]) -> Role:
        to_add = validate_permissions(permissions)
        role = self.get_role(key)
        role.permissions = list(dict.fromkeys([*(role.permissions or []), *to_add]))
        self._commit(key)
        logger.info("Role permissions added key=%s added=%s", key, list(to_add))
        return role

    def remove_permissions(self, key: str, permissions: Iterable[str]) -> Role:
        to_remove = set(validate_permissions(permissions))
        role = self.get_role(key)
        role.permissions = [p for p in (role.permissions or []) if p not in to_remove]
        self._commit(key)
        logger.info("Role permissions removed key=%s removed=%s", key, sorted(to_remove))
        return role

    def delete_role(self, key: str) -> None:
        role = self.get_role(key)
        self._db.delete(role)
        self._commit(key)
        logger.info("Role deleted key=%s", key)

    def sync_from_matrix(self, matrix: Mapping[str, Iterable[str]] = ROLE_MATRIX) -> list[dict[str, object]]:
        """
        Upsert roles so their permissions match ``matrix`` exactly.

        Existing names are kept. Returns one entry per role that changed.
        """

        results: list[dict[str, object]] = []
        existing = {role.key: role for role in self.list_roles()}

        for key, perms in matrix.items():
            target = list(validate_permissions(perms))
            role = existing.get(key)
            if role is None:
                self._db.add(Role(key=key, name=label_from_key(key), permissions=target))
                results.append({"key": key, "action": "created", "count": len(target)})
            elif set(role.permissions or []) != set(target):
                role.permissions = target
                if not role.name:
                    role.name = label_from_key(key)
                results.append({"key": key, "action": "updated", "count": len(target)})

        if results:
            self._commit(None)
        logger.info("Role matrix sync changed=%d", len(results))
        return results

    def bootstrap_if_empty(self, matrix: Mapping[str, Iterable[str]] = ROLE_MATRIX) -> int:
        """Seed baseline roles when the table has none. Returns roles created."""
        try:
            count = self._db.execute(select(func.count(Role.id))).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Role store unavailable") from exc
        if count:
            return 0
        created = self.sync_from_matrix(matrix)
        logger.info("Bootstrapped %d roles from matrix", len(created))
        return len(created)

    def _commit(self, key: str | None) -> None:
        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise AuthzValidationError("Role key already exists") from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Role store write failed role=%s", key)
            raise StoreUnavailable("Role store unavailable") from exc

        if key is None:
            self._cache.clear()
        else:
            self._cache.invalidate(key)
