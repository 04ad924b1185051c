from datetime import datetime, timedelta


def _asset(client, headers, **overrides):
    payload = {"asset_no": "EQ-001", "name": "Ultrasound", "category": "therapy", "location": "Room 2"}
    payload.update(overrides)
    resp = client.post("/api/assets", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_asset_number_is_unique(client, supervisor, staff, auth):
    _asset(client, auth(supervisor))

    dup = client.post("/api/assets", json={"asset_no": "EQ-001", "name": "Other"}, headers=auth(supervisor))
    assert dup.status_code == 400
    assert dup.json()["error"]["message"] == "Asset number already exists"

    assert client.post("/api/assets", json={"asset_no": "EQ-002", "name": "X"}, headers=auth(staff)).status_code == 403


def test_list_and_search(client, supervisor, staff, auth):
    _asset(client, auth(supervisor))
    _asset(client, auth(supervisor), asset_no="EQ-002", name="TENS unit")

    found = client.get("/api/assets", params={"search": "tens"}, headers=auth(staff)).json()
    assert [a["asset_no"] for a in found["items"]] == ["EQ-002"]

    missing = client.get("/api/assets/00000000-0000-0000-0000-000000000000", headers=auth(staff))
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Asset not found"


def test_maintenance_record_advances_schedule(client, supervisor, staff, auth):
    asset = _asset(client, auth(supervisor))
    schedule = client.post(
        f"/api/assets/{asset['id']}/schedules",
        json={"name": "Monthly check", "frequency": "MONTHLY", "next_due_at": "2024-01-01T00:00:00Z"},
        headers=auth(supervisor),
    ).json()
    assert schedule["frequency_days"] == 30

    upcoming = client.get("/api/assets/maintenance/upcoming", headers=auth(staff)).json()
    assert [s["id"] for s in upcoming] == [schedule["id"]]

    record = client.post(
        f"/api/assets/{asset['id']}/records",
        json={"schedule_id": schedule["id"], "description": "calibrated"},
        headers=auth(staff),
    )
    assert record.status_code == 201
    assert record.json()["performed_by"]["id"] == str(staff.id)

    detail = client.get(f"/api/assets/{asset['id']}", headers=auth(staff)).json()
    updated = detail["schedules"][0]
    last_done = datetime.fromisoformat(updated["last_done_at"])
    next_due = datetime.fromisoformat(updated["next_due_at"])
    assert next_due - last_done == timedelta(days=30)
    assert len(detail["records"]) == 1

    assert client.get("/api/assets/maintenance/upcoming", headers=auth(staff)).json() == []


def test_record_with_foreign_schedule_is_rejected(client, supervisor, staff, auth):
    first = _asset(client, auth(supervisor))
    second = _asset(client, auth(supervisor), asset_no="EQ-002")
    schedule = client.post(f"/api/assets/{first['id']}/schedules", json={"name": "Weekly", "frequency": "WEEKLY"}, headers=auth(supervisor)).json()

    resp = client.post(f"/api/assets/{second['id']}/records", json={"schedule_id": schedule["id"]}, headers=auth(staff))
    assert resp.status_code == 404


def test_fault_report_and_resolution(client, supervisor, staff, auth):
    asset = _asset(client, auth(supervisor))

    low = client.post(f"/api/assets/{asset['id']}/faults", json={"description": "scratch", "severity": "LOW"}, headers=auth(staff)).json()
    critical = client.post(f"/api/assets/{asset['id']}/faults", json={"description": "no power", "severity": "CRITICAL"}, headers=auth(staff)).json()
    assert low["status"] == "REPORTED"

    sup_notes = client.get("/api/notifications", headers=auth(supervisor)).json()
    assert sup_notes["total"] == 2
    assert {n["type"] for n in sup_notes["items"]} == {"ASSET_FAULT_REPORTED"}

    ordered = client.get("/api/assets/faults", headers=auth(staff)).json()
    assert [f["id"] for f in ordered["items"]] == [critical["id"], low["id"]]

    client.patch(f"/api/assets/faults/{critical['id']}/status", json={"status": "IN_REPAIR"}, headers=auth(supervisor))
    resolved = client.post(f"/api/assets/faults/{critical['id']}/resolve", json={"resolution": "replaced fuse"}, headers=auth(supervisor))
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "RESOLVED"
    assert resolved.json()["resolved_by"]["id"] == str(supervisor.id)

    still_open = client.get("/api/assets/faults/open", headers=auth(staff)).json()
    assert [f["id"] for f in still_open] == [low["id"]]

    reporter_notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert reporter_notes["total"] == 1

    stats = client.get("/api/assets/stats", headers=auth(supervisor)).json()
    assert stats["open_faults"] == 1
    assert stats["total_assets"] == 1
