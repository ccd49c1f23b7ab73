from __future__ import annotations

import uuid

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return uuid.uuid4().hex


class OrgScopedMixin:
    """
    Columns placing a row in the national/district/church hierarchy.

    Models using this mixin are narrowed automatically by ``db/filters.py`` when
    the request's authorization context asks for scope filtering.
    """

    @declared_attr
    def national_id(cls) -> Mapped[str | None]:
        return mapped_column(String(36), nullable=True, index=True)

    @declared_attr
    def district_id(cls) -> Mapped[str | None]:
        return mapped_column(String(36), nullable=True, index=True)

    @declared_attr
    def church_id(cls) -> Mapped[str | None]:
        return mapped_column(String(36), nullable=True, index=True)
