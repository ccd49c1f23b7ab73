from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from churchauthz.authz.clock import utcnow
from churchauthz.authz.scope import OrgScope
from churchauthz.db.base import Base, OrgScopedMixin, new_id


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Validated against the Permission catalogue before every write.
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class User(OrgScopedMixin, Base):
    """
    Account record. The authorization engine never reads it for decisions
    (actors come from the identity token); it backs grantee lookups and the
    user administration endpoints.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Delegation(Base):
    """
    Time-bounded grant from ``grantor_id`` to ``grantee_id`` inside ``scope``.

    Exactly one of ``permissions`` / ``role_like`` is set. Rows are never
    deleted: revocation flips ``is_revoked`` and expiry is implied by ``ends_at``.
    """

    __tablename__ = "delegations"
    __table_args__ = (
        Index("ix_delegations_grantee_window", "grantee_id", "starts_at", "ends_at", "is_revoked"),
        Index("ix_delegations_grantor_window", "grantor_id", "starts_at", "ends_at", "is_revoked"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    grantor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    grantee_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    scope_national_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    scope_district_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    scope_church_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    permissions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    role_like: Mapped[str | None] = mapped_column(String(50), nullable=True)

    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def scope(self) -> OrgScope:
        return OrgScope(
            national_id=self.scope_national_id,
            district_id=self.scope_district_id,
            church_id=self.scope_church_id,
        )
