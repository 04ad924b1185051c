from clinicops.services.common import local_today


def _occurred_today():
    return f"{local_today().isoformat()}T04:00:00Z"


def _incident_type(client, headers, name="Fall", default_severity="HIGH"):
    resp = client.post("/api/quality/incident-types", json={"name": name, "default_severity": default_severity}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_incident_severity_defaults_from_type(client, admin, staff, supervisor, auth):
    fall = _incident_type(client, auth(admin))
    assert client.post("/api/quality/incident-types", json={"name": "Fall"}, headers=auth(admin)).status_code == 400

    typed = client.post(
        "/api/quality/incidents",
        json={"type_id": fall["id"], "title": "Patient slipped", "description": "wet floor", "occurred_at": _occurred_today()},
        headers=auth(staff),
    )
    assert typed.status_code == 201
    assert typed.json()["severity"] == "HIGH"
    assert typed.json()["incident_no"].startswith("INC-")

    untyped = client.post(
        "/api/quality/incidents",
        json={"title": "Wrong label", "description": "caught before use", "occurred_at": _occurred_today(), "is_near_miss": True},
        headers=auth(staff),
    ).json()
    assert untyped["severity"] == "MEDIUM"

    titles = [n["title"] for n in client.get("/api/notifications", headers=auth(supervisor)).json()["items"]]
    assert "Near-miss 事件通報" in titles
    assert "異常事件通報" in titles


def test_staff_only_see_own_incidents(client, staff, supervisor, make_user, auth):
    other = make_user("STAFF", "NURSE")
    mine = client.post(
        "/api/quality/incidents",
        json={"title": "Needle stick", "description": "minor", "occurred_at": _occurred_today()},
        headers=auth(staff),
    ).json()

    assert client.get(f"/api/quality/incidents/{mine['id']}", headers=auth(other)).status_code == 403
    assert client.get("/api/quality/incidents", headers=auth(other)).json()["total"] == 0
    assert client.get("/api/quality/incidents", headers=auth(supervisor)).json()["total"] == 1


def test_assign_close_and_follow_up(client, staff, supervisor, make_user, auth):
    handler = make_user("STAFF", "NURSE")
    incident = client.post(
        "/api/quality/incidents",
        json={"title": "Equipment burn", "description": "heat pack", "occurred_at": _occurred_today()},
        headers=auth(staff),
    ).json()

    assert client.patch(f"/api/quality/incidents/{incident['id']}", json={"status": "CLOSED"}, headers=auth(staff)).status_code == 403

    assigned = client.patch(f"/api/quality/incidents/{incident['id']}", json={"handler_id": str(handler.id), "status": "INVESTIGATING"}, headers=auth(supervisor)).json()
    assert assigned["handler"]["id"] == str(handler.id)
    notes = client.get("/api/notifications", headers=auth(handler)).json()
    assert notes["items"][0]["type"] == "INCIDENT_ASSIGNED"

    follow = client.post(f"/api/quality/incidents/{incident['id']}/follow-ups", json={"content": "checked timer", "action_taken": "replaced"}, headers=auth(handler))
    assert follow.status_code == 201

    closed = client.patch(f"/api/quality/incidents/{incident['id']}", json={"status": "CLOSED"}, headers=auth(supervisor)).json()
    assert closed["closed_at"] is not None
    assert len(closed["follow_ups"]) == 1


def test_create_task_from_incident(client, staff, supervisor, make_user, auth):
    handler = make_user("STAFF", "NURSE")
    incident = client.post(
        "/api/quality/incidents",
        json={"title": "Medication mix-up", "description": "similar packaging", "occurred_at": _occurred_today()},
        headers=auth(staff),
    ).json()
    client.patch(
        f"/api/quality/incidents/{incident['id']}",
        json={"handler_id": str(handler.id), "root_cause": "look-alike boxes", "corrective_action": "relabel shelves"},
        headers=auth(supervisor),
    )

    resp = client.post(f"/api/quality/incidents/{incident['id']}/create-task", headers=auth(supervisor))
    assert resp.status_code == 201
    task = resp.json()
    assert task["title"] == "改善措施：Medication mix-up"
    assert task["priority"] == "HIGH"
    assert task["related_incident_id"] == incident["id"]
    assert task["assignee"]["id"] == str(handler.id)
    assert "relabel shelves" in task["content"]

    detail = client.get(f"/api/quality/incidents/{incident['id']}", headers=auth(supervisor)).json()
    assert detail["status"] == "ACTION_REQUIRED"
    assert detail["task_id"] == task["id"]


def test_complaints(client, staff, supervisor, auth):
    created = client.post(
        "/api/quality/complaints",
        json={"source": "PATIENT", "subject": "Long wait", "content": "waited 40 minutes"},
        headers=auth(staff),
    )
    assert created.status_code == 201
    complaint = created.json()
    assert complaint["complaint_no"].startswith("CPL-")
    assert complaint["status"] == "RECEIVED"

    assert client.get("/api/quality/complaints", headers=auth(staff)).status_code == 403

    closed = client.patch(f"/api/quality/complaints/{complaint['id']}", json={"status": "CLOSED", "resolution": "apologised"}, headers=auth(supervisor)).json()
    assert closed["closed_at"] is not None

    stats = client.get("/api/quality/stats", headers=auth(supervisor)).json()
    assert stats["open_complaints"] == 0


def test_incident_trends_group_by_type(client, admin, staff, supervisor, auth):
    fall = _incident_type(client, auth(admin))
    for type_id in (fall["id"], fall["id"], None):
        body = {"title": "x", "description": "y", "occurred_at": _occurred_today()}
        if type_id:
            body["type_id"] = type_id
        client.post("/api/quality/incidents", json=body, headers=auth(staff))

    trends = client.get("/api/quality/trends", params={"months": 3}, headers=auth(supervisor)).json()
    assert len(trends) == 3
    current = trends[-1]
    today = local_today()
    assert current["month"] == f"{today.year}-{today.month:02d}"
    assert current["counts"] == {"Fall": 2, "未分類": 1}
    assert current["total"] == 3
    assert trends[0]["total"] == 0
