from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from churchauthz.authz.clock import as_utc
from churchauthz.authz.guard import require_effective
from churchauthz.authz.hierarchy import lineage_scope
from churchauthz.authz.permissions import Permission
from churchauthz.authz.resolver import EffectivePermissionResolver
from churchauthz.authz.scope import Actor
from churchauthz.db.session import get_db
from churchauthz.models.events import Event
from churchauthz.schemas.events import EventIn, EventOut
from churchauthz.security.dependencies import get_current_actor, get_resolver

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=list[EventOut])
def list_events(db: Session = Depends(get_db)) -> list[Event]:
    # Filters are applied transparently via db/filters.py based on request authz.
    return list(db.scalars(select(Event).order_by(Event.starts_at, Event.id)).all())


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db)) -> Event:
    event = db.scalars(select(Event).where(Event.id == event_id)).first()
    if event is None:
        # Events outside the caller's scopes are filtered out and read as "not found".
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    body: EventIn,
    actor: Actor = Depends(get_current_actor),
    resolver: EffectivePermissionResolver = Depends(get_resolver),
    db: Session = Depends(get_db),
) -> Event:
    """
    Delegation-aware write: ``event.create`` may come from the role or an
    active delegation, and the home scope or a delegated scope must contain the
    event's full lineage. Out-of-scope writes are 403.
    """

    target = lineage_scope(
        db,
        church_id=body.church_id,
        district_id=body.district_id,
        national_id=body.national_id,
    )
    effective = resolver.resolve(actor.id, actor.role)
    require_effective(actor, effective, Permission.EVENT_CREATE.value, target)

    event = Event(
        title=body.title,
        description=body.description,
        starts_at=as_utc(body.starts_at),
        created_by=actor.id,
        **target.to_dict(),
    )
    db.add(event)
    db.commit()
    return event
