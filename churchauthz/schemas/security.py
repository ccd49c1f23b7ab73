from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from churchauthz.authz.clock import as_utc
from churchauthz.authz.scope import OrgScope

# SQLite returns naive values; responses always carry an explicit UTC offset.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class OrgScopeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    national_id: str | None = None
    district_id: str | None = None
    church_id: str | None = None

    def to_scope(self) -> OrgScope:
        return OrgScope(national_id=self.national_id, district_id=self.district_id, church_id=self.church_id)


class RoleIn(BaseModel):
    key: str
    name: str | None = None
    permissions: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: str | None = None
    permissions: list[str] | None = None


class RolePermissionsIn(BaseModel):
    permissions: list[str]


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key: str
    name: str
    permissions: list[str]
    created_at: UtcDatetime
    updated_at: UtcDatetime


class MatrixSyncEntry(BaseModel):
    key: str
    action: str
    count: int


class MatrixSyncOut(BaseModel):
    ok: bool = True
    results: list[MatrixSyncEntry]


class DelegationIn(BaseModel):
    """
    Create-delegation body.

    Fields are optional here on purpose: shape errors are reported by the
    delegation service as 400s with a specific message.
    """

    grantee_id: str | None = None
    scope: OrgScopeSchema = Field(default_factory=OrgScopeSchema)
    permissions: list[str] | None = None
    role_like: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    reason: str | None = None


class DelegationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    grantor_id: str
    grantee_id: str
    scope: OrgScopeSchema
    permissions: list[str] | None
    role_like: str | None
    starts_at: UtcDatetime
    ends_at: UtcDatetime
    reason: str | None
    is_revoked: bool
    revoked_at: UtcDatetime | None
    revoked_by: str | None
    created_by: str
    created_at: UtcDatetime


class EffectivePermissionsOut(BaseModel):
    role: str
    permissions: list[str]
    delegated_scopes: list[OrgScopeSchema]


class ActorOut(BaseModel):
    id: str
    role: str
    national_id: str | None
    district_id: str | None
    church_id: str | None


class UserIn(BaseModel):
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str
    national_id: str | None = None
    district_id: str | None = None
    church_id: str | None = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str | None
    last_name: str | None
    role: str
    is_active: bool
    national_id: str | None
    district_id: str | None
    church_id: str | None
