"""Tests for the delegation endpoints."""
from __future__ import annotations

from datetime import timedelta

import pytest


@pytest.fixture
def ca2(headers):
    return headers("CA2", "churchAdmin", church_id="C2", district_id="D1", national_id="N1")


@pytest.fixture
def u2(headers):
    return headers("U2", "member", church_id="C1", district_id="D1", national_id="N1")


def _body(clock, start_hours=-1, end_hours=1, **fields):
    body = {
        "grantee_id": "U2",
        "scope": {"church_id": "C2"},
        "permissions": ["event.create"],
        "starts_at": (clock() + timedelta(hours=start_hours)).isoformat(),
        "ends_at": (clock() + timedelta(hours=end_hours)).isoformat(),
        "reason": "covering the Easter service",
    }
    body.update(fields)
    return body


def test_create_delegation(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock), headers=ca2)

    assert response.status_code == 201
    body = response.json()
    assert body["grantor_id"] == "CA2"
    assert body["grantee_id"] == "U2"
    assert body["scope"] == {"national_id": None, "district_id": None, "church_id": "C2"}
    assert body["starts_at"].endswith(("Z", "+00:00"))
    assert body["created_at"].endswith(("Z", "+00:00"))
    assert body["permissions"] == ["event.create"]
    assert body["role_like"] is None
    assert body["is_revoked"] is False


def test_create_requires_authentication(client, org, clock):
    assert client.post("/delegations", json=_body(clock)).status_code == 401


@pytest.mark.parametrize(
    "fields,message",
    [
        ({"grantee_id": None}, "grantee_id is required"),
        ({"scope": {}}, "scope is required"),
        ({"role_like": "pastor"}, "Specify either permissions or role_like, not both"),
        ({"permissions": None}, "Specify permissions or role_like"),
        ({"permissions": ["event.fly"]}, "Unknown permission(s): event.fly"),
        ({"ends_at": None}, "starts_at and ends_at are required"),
    ],
)
def test_create_validation_errors(client, org, clock, ca2, fields, message):
    response = client.post("/delegations", json=_body(clock, **fields), headers=ca2)
    assert response.status_code == 400
    assert response.json() == {"detail": message, "reason": "Validation failed"}


def test_inverted_window_is_rejected(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock, start_hours=2, end_hours=1), headers=ca2)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid date range"


def test_grantor_cannot_exceed_own_permissions(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock, permissions=["event.create", "role.delete"]), headers=ca2)
    assert response.status_code == 400
    assert response.json()["detail"] == "Grantor lacks: role.delete"


def test_grantor_cannot_delegate_outside_scope(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock, scope={"church_id": "C1"}), headers=ca2)
    assert response.status_code == 403
    assert response.json() == {"detail": "Forbidden (scope)", "reason": "Forbidden (scope)"}


def test_unknown_grantee_is_not_found(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock, grantee_id="NOBODY"), headers=ca2)
    assert response.status_code == 404
    assert response.json()["detail"] == "Grantee not found"


def test_listing_for_both_sides(client, org, clock, ca2, u2):
    client.post("/delegations", json=_body(clock), headers=ca2)
    client.post("/delegations", json=_body(clock, start_hours=24, end_hours=48), headers=ca2)

    assert len(client.get("/delegations/mine", headers=ca2).json()) == 2
    assert client.get("/delegations/mine", params={"as": "grantee"}, headers=ca2).json() == []

    received = client.get("/delegations/mine", params={"as": "grantee"}, headers=u2).json()
    assert [d["grantor_id"] for d in received] == ["CA2", "CA2"]

    active = client.get("/delegations/mine", params={"as": "grantee", "active": "true"}, headers=u2).json()
    assert len(active) == 1
    assert len(client.get("/delegations/for-me", headers=u2).json()) == 1


def test_mine_rejects_unknown_side(client, org, ca2):
    assert client.get("/delegations/mine", params={"as": "bystander"}, headers=ca2).status_code == 422


def test_revoke_flow(client, org, clock, ca2, u2):
    created = client.post("/delegations", json=_body(clock), headers=ca2).json()
    assert "event.create" in client.get("/me/permissions", headers=u2).json()["permissions"]

    denied = client.post(f"/delegations/{created['id']}/revoke", headers=u2)
    assert denied.status_code == 403
    assert denied.json()["reason"] == "Forbidden"

    assert client.post(f"/delegations/{created['id']}/revoke", headers=ca2).json() == {"ok": True}
    assert "event.create" not in client.get("/me/permissions", headers=u2).json()["permissions"]
    assert client.get("/delegations/for-me", headers=u2).json() == []

    revoked = client.get("/delegations/mine", headers=ca2).json()[0]
    assert revoked["is_revoked"] is True
    assert revoked["revoked_by"] == "CA2"


def test_site_admin_may_revoke_any_delegation(client, org, clock, ca2, headers):
    created = client.post("/delegations", json=_body(clock), headers=ca2).json()
    response = client.post(f"/delegations/{created['id']}/revoke", headers=headers("ADMIN", "siteAdmin"))
    assert response.json() == {"ok": True}


def test_revoke_unknown_delegation(client, org, ca2):
    assert client.post("/delegations/999/revoke", headers=ca2).status_code == 404


def test_future_delegation_activates_with_the_clock(client, org, clock, ca2, u2):
    client.post("/delegations", json=_body(clock, start_hours=2, end_hours=4), headers=ca2)
    assert "event.create" not in client.get("/me/permissions", headers=u2).json()["permissions"]

    clock.advance(hours=2)
    assert "event.create" in client.get("/me/permissions", headers=u2).json()["permissions"]

    clock.advance(hours=2, seconds=1)
    assert "event.create" not in client.get("/me/permissions", headers=u2).json()["permissions"]


def test_national_pastor_district_delegation(client, org, clock, headers, u2):
    national_pastor = headers("N-PASTOR", "nationalPastor", national_id="N1")
    response = client.post(
        "/delegations",
        json=_body(clock, scope={"district_id": "D5"}, permissions=["user.read"]),
        headers=national_pastor,
    )
    assert response.status_code == 201
    assert response.json()["scope"] == {"national_id": None, "district_id": "D5", "church_id": None}

    mine = client.get("/me/permissions", headers=u2).json()
    assert "user.read" in mine["permissions"]
    assert mine["delegated_scopes"] == [{"national_id": None, "district_id": "D5", "church_id": None}]


def test_role_like_delegation(client, org, clock, ca2, u2):
    response = client.post("/delegations", json=_body(clock, permissions=None, role_like="pastor"), headers=ca2)
    assert response.status_code == 201
    assert response.json()["role_like"] == "pastor"
    assert "followup.assign" in client.get("/me/permissions", headers=u2).json()["permissions"]


def test_delegated_district_cannot_be_passed_on_nationally(client, org, clock, headers, u2):
    national_pastor = headers("N-PASTOR", "nationalPastor", national_id="N1")
    client.post(
        "/delegations",
        json=_body(clock, scope={"district_id": "D5"}, permissions=["event.create"]),
        headers=national_pastor,
    )

    wider = client.post(
        "/delegations",
        json=_body(clock, grantee_id="CA2", scope={"national_id": "N1"}, permissions=["event.create"]),
        headers=u2,
    )
    assert wider.status_code == 403
    assert wider.json()["reason"] == "Forbidden (scope)"


def test_mismatched_scope_ids_are_rejected(client, org, clock, ca2):
    response = client.post("/delegations", json=_body(clock, scope={"district_id": "D5", "church_id": "C2"}), headers=ca2)
    assert response.status_code == 400
    assert response.json()["detail"] == "Organization ids do not belong to the same lineage"
