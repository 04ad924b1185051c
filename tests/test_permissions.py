from datetime import datetime, timedelta

from clinicops.models.models import UserPermission
from clinicops.services.permissions import get_position_defaults, resolve_permissions


def test_resolve_permissions_applies_active_overrides_only():
    now = datetime(2024, 6, 1, 12, 0, 0)
    overrides = [
        UserPermission(permission="FINANCE_VIEW", granted=True, expires_at=None),
        UserPermission(permission="INVENTORY_TRANSACTION", granted=False, expires_at=None),
        UserPermission(permission="AUDIT_VIEW", granted=True, expires_at=now - timedelta(days=1)),
    ]

    perms = resolve_permissions("NURSE", overrides, now)

    assert "FINANCE_VIEW" in perms
    assert "INVENTORY_TRANSACTION" not in perms
    assert "AUDIT_VIEW" not in perms
    assert perms == sorted(perms)


def test_position_defaults():
    assert "QUALITY_REPORT" not in get_position_defaults("RECEPTIONIST")
    assert "PERMISSIONS_MANAGE" not in get_position_defaults("MANAGER")
    assert "PERMISSIONS_MANAGE" in get_position_defaults("ADMIN")
    assert get_position_defaults("JANITOR") == []


def test_grant_and_revoke_default_permission(client, admin, staff, auth):
    grant = client.post(
        f"/api/permissions/users/{staff.id}/grant",
        json={"permission": "FINANCE_VIEW", "reason": "monthly report"},
        headers=auth(admin),
    )
    assert grant.status_code == 200
    assert "FINANCE_VIEW" in grant.json()["effective_permissions"]

    revoke = client.post(
        f"/api/permissions/users/{staff.id}/revoke",
        json={"permission": "HANDOVER_CREATE"},
        headers=auth(admin),
    )
    assert revoke.status_code == 200
    details = revoke.json()
    assert "HANDOVER_CREATE" not in details["effective_permissions"]
    denied = [c for c in details["custom_permissions"] if c["permission"] == "HANDOVER_CREATE"]
    assert denied and denied[0]["granted"] is False

    mine = client.get("/api/permissions/my", headers=auth(staff)).json()
    assert "FINANCE_VIEW" in mine["permissions"]
    assert "HANDOVER_CREATE" not in mine["permissions"]


def test_revoked_permission_blocks_endpoint(client, admin, staff, auth):
    client.post(
        f"/api/permissions/users/{staff.id}/revoke",
        json={"permission": "HANDOVER_VIEW"},
        headers=auth(admin),
    )

    resp = client.get("/api/handovers", headers=auth(staff))
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Insufficient permissions"


def test_permission_request_flow(client, admin, staff, auth):
    too_short = client.post("/api/permissions/requests", json={"permission": "FINANCE_VIEW", "reason": "pls"}, headers=auth(staff))
    assert too_short.status_code == 422

    created = client.post(
        "/api/permissions/requests",
        json={"permission": "FINANCE_VIEW", "reason": "Need to review clinic costs"},
        headers=auth(staff),
    )
    assert created.status_code == 201
    request_id = created.json()["id"]

    duplicate = client.post(
        "/api/permissions/requests",
        json={"permission": "FINANCE_VIEW", "reason": "Need to review clinic costs"},
        headers=auth(staff),
    )
    assert duplicate.status_code == 409

    already = client.post(
        "/api/permissions/requests",
        json={"permission": "HANDOVER_VIEW", "reason": "Already have it anyway"},
        headers=auth(staff),
    )
    assert already.status_code == 400

    reviewed = client.post(
        f"/api/permissions/requests/{request_id}/review",
        json={"status": "APPROVED", "review_note": "ok"},
        headers=auth(admin),
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["status"] == "APPROVED"

    again = client.post(
        f"/api/permissions/requests/{request_id}/review",
        json={"status": "REJECTED"},
        headers=auth(admin),
    )
    assert again.status_code == 400

    mine = client.get("/api/permissions/my", headers=auth(staff)).json()
    assert "FINANCE_VIEW" in mine["permissions"]


def test_matrix_requires_permissions_manage(client, supervisor, admin, auth):
    assert client.get("/api/permissions/matrix", headers=auth(supervisor)).status_code == 403

    resp = client.get("/api/permissions/matrix", headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["total"] >= 2
