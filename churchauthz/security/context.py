from __future__ import annotations

from dataclasses import dataclass

from churchauthz.authz.scope import Actor, OrgScope


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Attached to ``request.state`` (request lifetime) and ``Session.info``
    (session lifetime) so the read filters can see it.
    """

    actor: Actor

    # Role-only permissions used by the route gate.
    role_permissions: frozenset[str]

    # Scope decisions (driven by config / decorators)
    filter_by_scope: bool

    # Filled only when filter_by_scope is on; the route gate never queries delegations.
    delegated_scopes: tuple[OrgScope, ...] = ()
