from __future__ import annotations

from typing import Iterable

from sqlalchemy import and_, event, false, or_
from sqlalchemy.orm import Session, with_loader_criteria

from churchauthz.authz.scope import OrgScope


def _contained_in(cls, scope: OrgScope):
    """Rows inside ``scope``: every level the scope sets must equal the row's column."""
    conditions = [getattr(cls, level) == getattr(scope, level) for level in scope.present_levels()]
    if not conditions:
        return None
    return and_(*conditions)


def org_scope_criteria(cls, home: OrgScope, delegated_scopes: Iterable[OrgScope] = ()):
    """
    Read filter for an org-scoped model.

    Visible rows sit inside the actor's home scope or any active delegated scope.
    With no scope at all nothing is visible.
    """

    branches = [c for c in (_contained_in(cls, s) for s in (home, *delegated_scopes)) if c is not None]
    if not branches:
        return false()
    return or_(*branches)


@event.listens_for(Session, "do_orm_execute")
def _apply_authorization_filters(execute_state) -> None:
    """
    Transparent org scoping.

    Existing query code stays unchanged:
        db.scalars(select(Event)).all()
    only returns rows the current actor may see when the route asks for it.
    """

    if not execute_state.is_select:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None or not authz.filter_by_scope or authz.actor.is_site_admin:
        return

    # Local import to avoid cycles.
    from churchauthz.models.events import Event  # noqa: WPS433 (local import)
    from churchauthz.models.security import User  # noqa: WPS433 (local import)

    home = authz.actor.home_scope
    delegated = authz.delegated_scopes

    # Plain (non-lambda) criteria: the bound ids are part of the statement cache key.
    execute_state.statement = execute_state.statement.options(
        *(
            with_loader_criteria(model, org_scope_criteria(model, home, delegated), include_aliases=True)
            for model in (Event, User)
        )
    )

