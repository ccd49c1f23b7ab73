from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from churchauthz.schemas.security import UtcDatetime


class EventIn(BaseModel):
    title: str
    description: str | None = None
    starts_at: datetime

    # Any level may be given; the broader levels are filled from the hierarchy.
    national_id: str | None = None
    district_id: str | None = None
    church_id: str | None = None


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    starts_at: UtcDatetime
    national_id: str | None
    district_id: str | None
    church_id: str | None
    created_by: str
    created_at: UtcDatetime
