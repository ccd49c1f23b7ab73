"""
National -> district -> church containment.

``lineage_scope`` expands whatever ids a caller knows into the full
``{national, district, church}`` tuple and rejects unknown or mismatched ids.
Resource writes and delegation requests are checked against that lineage.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from churchauthz.models.org import Church, District, NationalChurch

from .errors import AuthzValidationError, NotFound, StoreUnavailable
from .scope import OrgScope


def lineage_scope(
    db: Session,
    church_id: str | None = None,
    district_id: str | None = None,
    national_id: str | None = None,
) -> OrgScope:
    """
    Return an ``OrgScope`` with every broader level filled in.

    The narrowest id given wins; ids supplied for broader levels must agree with
    the stored hierarchy.
    """

    given = OrgScope(national_id=national_id, district_id=district_id, church_id=church_id)

    try:
        if given.church_id:
            church = db.get(Church, given.church_id)
            if church is None:
                raise NotFound("Church not found")
            resolved = OrgScope(
                national_id=church.national_id,
                district_id=church.district_id,
                church_id=church.id,
            )
        elif given.district_id:
            district = db.get(District, given.district_id)
            if district is None:
                raise NotFound("District not found")
            resolved = OrgScope(national_id=district.national_id, district_id=district.id)
        elif given.national_id:
            if db.get(NationalChurch, given.national_id) is None:
                raise NotFound("National church not found")
            resolved = given
        else:
            return given
    except SQLAlchemyError as exc:
        raise StoreUnavailable("Organization store unavailable") from exc

    for level in given.present_levels():
        if getattr(given, level) != getattr(resolved, level):
            raise AuthzValidationError("Organization ids do not belong to the same lineage")
    return resolved
