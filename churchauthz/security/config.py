from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from churchauthz.authz.guard import PermissionRule
from churchauthz.authz.permissions import validate_permissions


class AuthConfig(BaseModel):
    provider: str = "jwt"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True
    all_permissions: list[str] = Field(default_factory=list)
    any_permissions: list[str] = Field(default_factory=list)
    filter_by_scope: bool = False


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    all_permissions: list[str] = Field(default_factory=list)
    any_permissions: list[str] = Field(default_factory=list)
    filter_by_scope: bool | None = None

    @field_validator("all_permissions", "any_permissions")
    @classmethod
    def _known_permissions(cls, value: list[str]) -> list[str]:
        # Typos in the route table would otherwise lock a route for everyone.
        return list(validate_permissions(value))

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """Route rule with the `default` block folded in."""

    auth_required: bool
    permissions: PermissionRule
    filter_by_scope: bool


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # Convert "/roles/{key}" -> r"^/roles/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """Compiled route table; `match` picks the rule that guards a request."""

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        compiled: list[tuple[str, re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            compiled.append((rule.path, _path_template_to_regex(rule.path), rule))

        # Literal paths win over "{param}" templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        method = method.upper()
        default = self.model.default

        exact_candidates = self._exact_rules.get(path, [])
        for candidate in exact_candidates:
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        for _template, regex, candidate in self._compiled_rules:
            if method not in candidate.normalized_methods():
                continue
            if regex.match(path):
                return _effective(candidate, default)

        # Unlisted routes fall back to the default block.
        return EffectiveRule(
            auth_required=default.auth_required,
            permissions=PermissionRule.of(default.all_permissions, default.any_permissions),
            filter_by_scope=default.filter_by_scope,
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A rule with any permission or scope requirement implies authentication,
    # even if the global default is "public".
    inferred_auth_required = (
        default.auth_required
        or bool(rule.all_permissions)
        or bool(rule.any_permissions)
        or bool(rule.filter_by_scope)
    )

    has_own_permissions = bool(rule.all_permissions or rule.any_permissions)
    permissions = (
        PermissionRule.of(rule.all_permissions, rule.any_permissions)
        if has_own_permissions
        else PermissionRule.of(default.all_permissions, default.any_permissions)
    )

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        permissions=permissions,
        filter_by_scope=default.filter_by_scope if rule.filter_by_scope is None else rule.filter_by_scope,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
