from __future__ import annotations

from fastapi import APIRouter, Depends

from churchauthz.authz.resolver import EffectivePermissionResolver
from churchauthz.authz.scope import Actor
from churchauthz.schemas.security import ActorOut, EffectivePermissionsOut
from churchauthz.security.dependencies import get_current_actor, get_resolver

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=ActorOut)
def me(actor: Actor = Depends(get_current_actor)) -> ActorOut:
    return ActorOut(id=actor.id, role=actor.role, **actor.home_scope.to_dict())


@router.get("/permissions", response_model=EffectivePermissionsOut)
def my_permissions(
    actor: Actor = Depends(get_current_actor),
    resolver: EffectivePermissionResolver = Depends(get_resolver),
) -> EffectivePermissionsOut:
    effective = resolver.resolve(actor.id, actor.role)
    return EffectivePermissionsOut(role=actor.role, **effective.to_dict())
