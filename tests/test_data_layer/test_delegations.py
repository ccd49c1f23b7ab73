"""
Tests for DelegationService: creation rules, listing and revocation.

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from churchauthz.authz.clock import as_utc
from churchauthz.authz.delegations import build_grant
from churchauthz.authz.errors import AuthzValidationError, Forbidden, NotFound, ScopeForbidden
from churchauthz.authz.resolver import ExplicitGrant, RoleEquivalentGrant
from churchauthz.authz.scope import Actor, OrgScope, assert_lineage_in_scope, can_act_in_scope, owns_scope


CHURCH_ADMIN = Actor(id="CA1", role="churchAdmin", church_id="C1", district_id="D1", national_id="N1")
NATIONAL_PASTOR = Actor(id="NP", role="nationalPastor", national_id="N1")
SITE_ADMIN = Actor(id="ROOT", role="siteAdmin")
MEMBER_U2 = Actor(id="U2", role="member", church_id="C1", district_id="D1", national_id="N1")


@pytest.fixture
def setup(role_store, orgs, add_user):
    role_store.bootstrap_if_empty()
    role_store.create_role("eventsOnly", permissions=["event.create"])
    add_user("CA1", "churchAdmin", national_id="N1", district_id="D1", church_id="C1")
    add_user("NP", "nationalPastor", national_id="N1")
    add_user("U2", "member", national_id="N1", district_id="D1", church_id="C1")
    add_user("U3", "member", national_id="N1", district_id="D1", church_id="C2")


def _window(clock, start_hours=-1, end_hours=1):
    return clock() + timedelta(hours=start_hours), clock() + timedelta(hours=end_hours)


def _create(service, clock, grantor=CHURCH_ADMIN, grantee="U2", scope=None, grant=None, **window):
    starts_at, ends_at = _window(clock, **window)
    return service.create_delegation(
        grantor=grantor,
        grantee_id=grantee,
        scope=scope or OrgScope(church_id="C1"),
        grant=grant or ExplicitGrant(frozenset({"event.create"})),
        starts_at=starts_at,
        ends_at=ends_at,
    )


# ---- build_grant ------------------------------------------------------------------------


def test_build_grant_explicit_validates_keys():
    assert build_grant([" event.create ", "event.create"]) == ExplicitGrant(frozenset({"event.create"}))
    with pytest.raises(AuthzValidationError, match="Unknown permission"):
        build_grant(["event.fly"])


def test_build_grant_role_like():
    assert build_grant(role_like="pastor") == RoleEquivalentGrant("pastor")


def test_build_grant_requires_exactly_one():
    with pytest.raises(AuthzValidationError, match="not both"):
        build_grant(["event.create"], "pastor")
    with pytest.raises(AuthzValidationError, match="Specify permissions or role_like"):
        build_grant([], None)


# ---- create -----------------------------------------------------------------------------


def test_create_stores_scope_as_requested(setup, delegation_service, clock):
    delegation = _create(delegation_service, clock)

    assert delegation.id is not None
    assert delegation.grantor_id == "CA1"
    assert delegation.created_by == "CA1"
    assert delegation.scope == OrgScope(church_id="C1")
    assert delegation.permissions == ["event.create"]
    assert delegation.role_like is None
    assert delegation.is_revoked is False


def test_create_rejects_missing_fields(setup, delegation_service, clock):
    starts_at, ends_at = _window(clock)
    grant = ExplicitGrant(frozenset({"event.create"}))

    with pytest.raises(AuthzValidationError, match="grantee_id is required"):
        delegation_service.create_delegation(CHURCH_ADMIN, "", OrgScope(church_id="C1"), grant, starts_at, ends_at)
    with pytest.raises(AuthzValidationError, match="scope is required"):
        delegation_service.create_delegation(CHURCH_ADMIN, "U2", OrgScope(), grant, starts_at, ends_at)
    with pytest.raises(AuthzValidationError, match="starts_at and ends_at are required"):
        delegation_service.create_delegation(CHURCH_ADMIN, "U2", OrgScope(church_id="C1"), grant, None, ends_at)


@pytest.mark.parametrize("start_hours,end_hours", [(1, -1), (1, 1)])
def test_create_rejects_inverted_or_empty_window(setup, delegation_service, clock, start_hours, end_hours):
    with pytest.raises(AuthzValidationError, match="Invalid date range"):
        _create(delegation_service, clock, start_hours=start_hours, end_hours=end_hours)


def test_create_rejects_scope_outside_grantor(setup, delegation_service, clock):
    with pytest.raises(ScopeForbidden):
        _create(delegation_service, clock, grantee="U3", scope=OrgScope(church_id="C2"))


def test_create_rejects_unknown_org(setup, delegation_service, clock):
    with pytest.raises(NotFound, match="Church not found"):
        _create(delegation_service, clock, scope=OrgScope(church_id="C404"))


def test_create_rejects_mismatched_org_ids(setup, delegation_service, clock):
    with pytest.raises(AuthzValidationError, match="same lineage"):
        _create(delegation_service, clock, scope=OrgScope(district_id="D5", church_id="C1"))


def test_create_rejects_unknown_grantee(setup, delegation_service, clock):
    with pytest.raises(NotFound, match="Grantee not found"):
        _create(delegation_service, clock, grantee="NOBODY")


def test_create_rejects_permissions_beyond_grantor(setup, role_store, delegation_service, clock, add_user):
    add_user("E1", "eventsOnly", national_id="N1", district_id="D1", church_id="C1")
    grantor = Actor(id="E1", role="eventsOnly", church_id="C1", district_id="D1", national_id="N1")

    with pytest.raises(AuthzValidationError) as exc_info:
        _create(
            delegation_service,
            clock,
            grantor=grantor,
            grant=ExplicitGrant(frozenset({"event.create", "event.delete"})),
        )

    assert exc_info.value.message == "Grantor lacks: event.delete"


def test_create_role_like_checks_role_permissions(setup, delegation_service, clock):
    # churchAdmin lacks role.read, which districtPastor carries.
    with pytest.raises(AuthzValidationError, match="Grantor lacks permissions in role_like: .*role.read"):
        _create(delegation_service, clock, grant=RoleEquivalentGrant("districtPastor"))

    with pytest.raises(AuthzValidationError, match="role_like not found"):
        _create(delegation_service, clock, grant=RoleEquivalentGrant("ghost"))

    delegation = _create(delegation_service, clock, grant=RoleEquivalentGrant("pastor"))
    assert delegation.role_like == "pastor"
    assert delegation.permissions is None


def test_site_admin_may_delegate_anywhere(setup, delegation_service, clock):
    delegation = _create(
        delegation_service,
        clock,
        grantor=SITE_ADMIN,
        scope=OrgScope(church_id="C7"),
        grant=ExplicitGrant(frozenset({"system.admin"})),
    )
    assert delegation.scope == OrgScope(church_id="C7")


def test_delegation_is_a_snapshot(setup, role_store, delegation_service, resolver, clock):
    _create(delegation_service, clock)

    # The grantor later loses the permission; the delegation stays in force.
    role_store.remove_permissions("churchAdmin", ["event.create"])

    assert resolver.resolve("U2", "member").has("event.create")


# ---- scenarios --------------------------------------------------------------------------


def test_church_admin_home_scope_scenario(setup, resolver):
    effective = resolver.resolve("CA1", "churchAdmin")
    assert {"event.create", "event.read"} <= effective.permissions
    assert effective.delegated_scopes == ()

    assert can_act_in_scope(CHURCH_ADMIN, OrgScope(church_id="C1"), effective.delegated_scopes)
    assert not can_act_in_scope(CHURCH_ADMIN, OrgScope(church_id="C2"), effective.delegated_scopes)


def test_national_pastor_delegates_district_scenario(setup, delegation_service, resolver, clock):
    assert "user.read" in resolver.resolve("NP", "nationalPastor").permissions

    _create(
        delegation_service,
        clock,
        grantor=NATIONAL_PASTOR,
        scope=OrgScope(district_id="D5"),
        grant=ExplicitGrant(frozenset({"user.read"})),
    )

    effective = resolver.resolve("U2", "member")
    assert "user.read" in effective.permissions
    assert not owns_scope(MEMBER_U2, OrgScope(district_id="D5"))
    assert can_act_in_scope(MEMBER_U2, OrgScope(district_id="D5"), effective.delegated_scopes)
    assert not can_act_in_scope(MEMBER_U2, OrgScope(district_id="D9"), effective.delegated_scopes)


def test_district_delegation_does_not_reach_the_national_church(setup, delegation_service, resolver, clock):
    _create(
        delegation_service,
        clock,
        grantor=NATIONAL_PASTOR,
        scope=OrgScope(district_id="D5"),
        grant=ExplicitGrant(frozenset({"user.read"})),
    )
    delegated = resolver.resolve("U2", "member").delegated_scopes

    assert delegated == (OrgScope(district_id="D5"),)
    assert not can_act_in_scope(MEMBER_U2, OrgScope(national_id="N1"), delegated)
    assert_lineage_in_scope(MEMBER_U2, OrgScope(national_id="N1", district_id="D5", church_id="C5"), delegated)
    with pytest.raises(ScopeForbidden):
        assert_lineage_in_scope(MEMBER_U2, OrgScope(national_id="N1"), delegated)
    with pytest.raises(ScopeForbidden):
        assert_lineage_in_scope(MEMBER_U2, OrgScope(national_id="N1", district_id="D5"), ())

    # Passing the grant on at national level is refused.
    with pytest.raises(ScopeForbidden):
        _create(
            delegation_service,
            clock,
            grantor=MEMBER_U2,
            grantee="U3",
            scope=OrgScope(national_id="N1"),
            grant=ExplicitGrant(frozenset({"user.read"})),
        )


def test_national_pastor_cannot_delegate_in_other_national(setup, delegation_service, clock):
    with pytest.raises(ScopeForbidden):
        _create(
            delegation_service,
            clock,
            grantor=NATIONAL_PASTOR,
            scope=OrgScope(district_id="D7"),
            grant=ExplicitGrant(frozenset({"user.read"})),
        )


# ---- timing and revocation --------------------------------------------------------------


def test_future_delegation_waits_for_start(setup, delegation_service, resolver, clock):
    _create(delegation_service, clock, grantee="U3", start_hours=3, end_hours=6)

    assert not resolver.resolve("U3", "member").has("event.create")
    assert delegation_service.list_active_for_grantee("U3") == []

    clock.advance(hours=3)

    assert resolver.resolve("U3", "member").has("event.create")
    assert len(delegation_service.list_active_for_grantee("U3")) == 1


def test_revoke_takes_effect_on_next_resolve(setup, delegation_service, resolver, clock):
    delegation = _create(delegation_service, clock)
    assert resolver.resolve("U2", "member").has("event.create")

    revoked = delegation_service.revoke_delegation(delegation.id, CHURCH_ADMIN)

    assert revoked.is_revoked
    assert revoked.revoked_by == "CA1"
    assert as_utc(revoked.revoked_at) == clock()
    assert not resolver.resolve("U2", "member").has("event.create")


def test_revoke_is_idempotent(setup, delegation_service, clock):
    delegation = _create(delegation_service, clock)
    delegation_service.revoke_delegation(delegation.id, CHURCH_ADMIN)
    first_revoked_at = delegation.revoked_at

    clock.advance(minutes=5)
    again = delegation_service.revoke_delegation(delegation.id, SITE_ADMIN)

    assert again.revoked_by == "CA1"
    assert again.revoked_at == first_revoked_at


def test_revoke_only_by_grantor_or_site_admin(setup, delegation_service, clock):
    delegation = _create(delegation_service, clock)

    with pytest.raises(Forbidden):
        delegation_service.revoke_delegation(delegation.id, MEMBER_U2)

    delegation_service.revoke_delegation(delegation.id, SITE_ADMIN)
    assert delegation_service.get(delegation.id).revoked_by == "ROOT"


def test_revoke_unknown_delegation(setup, delegation_service):
    with pytest.raises(NotFound):
        delegation_service.revoke_delegation(12345, SITE_ADMIN)


# ---- listing ----------------------------------------------------------------------------


def test_list_for_grantor_and_grantee(setup, delegation_service, clock):
    first = _create(delegation_service, clock)
    second = _create(delegation_service, clock, grantee="U3", start_hours=5, end_hours=6)

    granted = delegation_service.list_for("CA1", as_role="grantor")
    assert {d.id for d in granted} == {first.id, second.id}

    assert [d.id for d in delegation_service.list_for("U3", as_role="grantee")] == [second.id]
    assert delegation_service.list_for("U3", as_role="grantee", active_only=True) == []
    assert [d.id for d in delegation_service.list_for("CA1", active_only=True)] == [first.id]


def test_list_for_rejects_unknown_side(setup, delegation_service):
    with pytest.raises(AuthzValidationError):
        delegation_service.list_for("CA1", as_role="bystander")
