from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchauthz.authz.clock import utcnow
from churchauthz.db.base import Base, new_id


class NationalChurch(Base):
    __tablename__ = "national_churches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    districts: Mapped[list["District"]] = relationship(back_populates="national")


class District(Base):
    __tablename__ = "districts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    national_id: Mapped[str] = mapped_column(ForeignKey("national_churches.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    national: Mapped[NationalChurch] = relationship(back_populates="districts")
    churches: Mapped[list["Church"]] = relationship(back_populates="district")


class Church(Base):
    __tablename__ = "churches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    district_id: Mapped[str] = mapped_column(ForeignKey("districts.id"), nullable=False, index=True)

    # Denormalized so a church resolves to its full lineage with one lookup.
    national_id: Mapped[str] = mapped_column(ForeignKey("national_churches.id"), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    district: Mapped[District] = relationship(back_populates="churches")
