from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from churchauthz.authz.errors import AuthzValidationError
from churchauthz.authz.roles import RoleStore
from churchauthz.authz.scope import Actor, assert_payload_within_scope
from churchauthz.db.session import get_db
from churchauthz.models.security import User
from churchauthz.schemas.security import UserIn, UserOut
from churchauthz.security.decorators import filter_by_scope, require_any_permission
from churchauthz.security.dependencies import get_current_actor, get_role_store

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserOut])
@require_any_permission(["user.read"])
@filter_by_scope()
def list_users(db: Session = Depends(get_db)) -> list[User]:
    # Scoped transparently via db/filters.py.
    return list(db.scalars(select(User).order_by(User.email)).all())


@router.get("/{user_id}", response_model=UserOut)
@require_any_permission(["user.read"])
@filter_by_scope()
def get_user(user_id: str, db: Session = Depends(get_db)) -> User:
    user = db.scalars(select(User).where(User.id == user_id)).first()
    if user is None:
        # Out-of-scope users look exactly like missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
@require_any_permission(["user.create"])
def create_user(
    body: UserIn,
    actor: Actor = Depends(get_current_actor),
    roles: RoleStore = Depends(get_role_store),
    db: Session = Depends(get_db),
) -> User:
    assert_payload_within_scope(actor, body.model_dump())

    if not roles.exists(body.role):
        raise AuthzValidationError("Unknown role")

    user = User(**body.model_dump(), is_active=True)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AuthzValidationError("email already exists") from exc
    return user
