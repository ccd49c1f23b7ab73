from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from churchauthz.authz.cache import PermissionCache
from churchauthz.authz.clock import Clock, utcnow
from churchauthz.authz.delegations import DelegationService
from churchauthz.authz.errors import Unauthenticated
from churchauthz.authz.guard import PermissionRule, require_permissions
from churchauthz.authz.resolver import EffectivePermissionResolver
from churchauthz.authz.roles import RoleStore
from churchauthz.authz.scope import Actor
from churchauthz.db.session import get_db
from churchauthz.security.auth import extract_actor
from churchauthz.security.config import SecurityConfig
from churchauthz.security.context import AuthzContext
from churchauthz.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_permission_cache(request: Request) -> PermissionCache:
    cache = getattr(request.app.state, "permission_cache", None)
    if cache is None:
        raise RuntimeError("Permission cache not initialized. Did app startup run?")
    return cache


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or utcnow


def get_role_store(
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
) -> RoleStore:
    return RoleStore(db, cache)


def get_resolver(
    db: Session = Depends(get_db),
    roles: RoleStore = Depends(get_role_store),
    clock: Clock = Depends(get_clock),
) -> EffectivePermissionResolver:
    return EffectivePermissionResolver(db, roles, clock=clock)


def get_delegation_service(
    db: Session = Depends(get_db),
    roles: RoleStore = Depends(get_role_store),
    resolver: EffectivePermissionResolver = Depends(get_resolver),
    clock: Clock = Depends(get_clock),
) -> DelegationService:
    return DelegationService(db, roles, resolver, clock=clock)


def get_current_actor(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise Unauthenticated("Authentication required")
    return actor


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    settings: Settings = Depends(get_settings),
    cache: PermissionCache = Depends(get_permission_cache),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven, decorator-aware).

    Stages: authenticate -> role gate -> attach context. The role gate uses the
    cached role permissions only, so most rejections never touch the delegation
    table. Delegated scopes are resolved only for routes that filter reads by
    scope; resource-level checks happen inside the handlers.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    # Optional decorator metadata.
    endpoint = request.scope.get("endpoint")
    decorator_all = set(getattr(endpoint, "__security_all_permissions__", set())) if endpoint else set()
    decorator_any = set(getattr(endpoint, "__security_any_permissions__", set())) if endpoint else set()
    decorator_filter_scope = bool(getattr(endpoint, "__security_filter_by_scope__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_all) or bool(decorator_any) or decorator_filter_scope
    if not auth_required:
        return

    actor = extract_actor(request, config, settings)
    request.state.actor = actor

    roles = RoleStore(db, cache)
    role_permissions = roles.get_permissions_for_role(actor.role)

    required = PermissionRule.of(
        rule.permissions.all_of | decorator_all,
        rule.permissions.any_of | decorator_any,
    )
    require_permissions(actor, role_permissions, required)

    filter_by_scope = rule.filter_by_scope or decorator_filter_scope

    delegated_scopes = ()
    if filter_by_scope and not actor.is_site_admin:
        resolver = EffectivePermissionResolver(db, roles, clock=clock)
        delegated_scopes = resolver.resolve(actor.id, actor.role).delegated_scopes

    logger.debug(
        "Authorized actor=%s role=%s method=%s path=%s filter_by_scope=%s",
        actor.id,
        actor.role,
        method,
        path,
        filter_by_scope,
    )

    authz = AuthzContext(
        actor=actor,
        role_permissions=role_permissions,
        filter_by_scope=filter_by_scope,
        delegated_scopes=delegated_scopes,
    )
    request.state.authz = authz
    # FastAPI may hand this same session to the handler's get_db.
    db.info["authz"] = authz
