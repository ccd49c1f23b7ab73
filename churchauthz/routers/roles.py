from __future__ import annotations

from fastapi import APIRouter, Depends, status

from churchauthz.authz.permissions import Permission
from churchauthz.authz.roles import RoleStore
from churchauthz.models.security import Role
from churchauthz.schemas.security import MatrixSyncOut, RoleIn, RoleOut, RolePermissionsIn, RoleUpdate
from churchauthz.security.dependencies import get_role_store

router = APIRouter(prefix="/roles", tags=["roles"])

# Permission requirements for these routes live in config/security_config.yaml.


@router.get("", response_model=list[RoleOut])
def list_roles(store: RoleStore = Depends(get_role_store)) -> list[Role]:
    return store.list_roles()


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(body: RoleIn, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.create_role(body.key, name=body.name, permissions=body.permissions)


@router.get("/permissions", response_model=list[str])
def list_permission_keys() -> list[str]:
    return [p.value for p in Permission]


@router.post("/matrix/sync", response_model=MatrixSyncOut)
def sync_from_matrix(store: RoleStore = Depends(get_role_store)) -> dict:
    return {"ok": True, "results": store.sync_from_matrix()}


@router.get("/{key}", response_model=RoleOut)
def get_role(key: str, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.get_role(key)


@router.put("/{key}", response_model=RoleOut)
def update_role(key: str, body: RoleUpdate, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.update_role(key, name=body.name, permissions=body.permissions)


@router.delete("/{key}")
def delete_role(key: str, store: RoleStore = Depends(get_role_store)) -> dict:
    store.delete_role(key)
    return {"message": "Deleted"}


@router.patch("/{key}/permissions", response_model=RoleOut)
def replace_permissions(key: str, body: RolePermissionsIn, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.replace_permissions(key, body.permissions)


@router.post("/{key}/permissions/add", response_model=RoleOut)
def add_permissions(key: str, body: RolePermissionsIn, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.add_permissions(key, body.permissions)


@router.post("/{key}/permissions/remove", response_model=RoleOut)
def remove_permissions(key: str, body: RolePermissionsIn, store: RoleStore = Depends(get_role_store)) -> Role:
    return store.remove_permissions(key, body.permissions)
