from __future__ import annotations

import logging
from typing import Any

import jwt
from fastapi import Request

from churchauthz.authz.errors import Unauthenticated
from churchauthz.authz.scope import Actor
from churchauthz.security.config import SecurityConfig
from churchauthz.settings import Settings

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str:
    """
    Read ``Authorization: Bearer <token>``.

    Never logs the token itself.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated("No token provided")

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise Unauthenticated(f"Invalid {header_name}. Missing token after '{bearer_prefix}'.")
    return token


def actor_from_claims(claims: dict[str, Any]) -> Actor:
    """
    Map identity-token claims onto an ``Actor``.

    Older tokens carry ``nationalId`` instead of ``nationalChurchId``; both are
    accepted.
    """

    actor_id = claims.get("id") or claims.get("sub")
    role = claims.get("role")
    if not actor_id or not role:
        raise Unauthenticated("Invalid or expired token")

    return Actor(
        id=str(actor_id),
        role=str(role),
        church_id=claims.get("churchId"),
        district_id=claims.get("districtId"),
        national_id=claims.get("nationalChurchId") or claims.get("nationalId"),
    )


def decode_actor(token: str, settings: Settings) -> Actor:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        logger.info("Rejected identity token: %s", type(exc).__name__)
        raise Unauthenticated("Invalid or expired token") from exc
    return actor_from_claims(claims)


def extract_actor(request: Request, config: SecurityConfig, settings: Settings) -> Actor:
    return decode_actor(extract_bearer_token(request, config), settings)
