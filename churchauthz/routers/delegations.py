from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from churchauthz.authz.delegations import DelegationService, build_grant
from churchauthz.authz.scope import Actor
from churchauthz.models.security import Delegation
from churchauthz.schemas.security import DelegationIn, DelegationOut
from churchauthz.security.dependencies import get_current_actor, get_delegation_service

router = APIRouter(prefix="/delegations", tags=["delegations"])

# Authentication only at the route; grantor scope, grantee existence and the
# permission-subset rule are enforced by DelegationService.


@router.post("", response_model=DelegationOut, status_code=status.HTTP_201_CREATED)
def create_delegation(
    body: DelegationIn,
    actor: Actor = Depends(get_current_actor),
    service: DelegationService = Depends(get_delegation_service),
) -> Delegation:
    grant = build_grant(body.permissions, body.role_like)
    return service.create_delegation(
        grantor=actor,
        grantee_id=body.grantee_id or "",
        scope=body.scope.to_scope(),
        grant=grant,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
        reason=body.reason,
    )


@router.get("/mine", response_model=list[DelegationOut])
def list_mine(
    as_: Literal["grantor", "grantee"] = Query("grantor", alias="as"),
    active: bool = False,
    actor: Actor = Depends(get_current_actor),
    service: DelegationService = Depends(get_delegation_service),
) -> list[Delegation]:
    return service.list_for(actor.id, as_role=as_, active_only=active)


@router.get("/for-me", response_model=list[DelegationOut])
def list_active_for_me(
    actor: Actor = Depends(get_current_actor),
    service: DelegationService = Depends(get_delegation_service),
) -> list[Delegation]:
    return service.list_active_for_grantee(actor.id)


@router.post("/{delegation_id}/revoke")
def revoke_delegation(
    delegation_id: int,
    actor: Actor = Depends(get_current_actor),
    service: DelegationService = Depends(get_delegation_service),
) -> dict:
    service.revoke_delegation(delegation_id, actor)
    return {"ok": True}
