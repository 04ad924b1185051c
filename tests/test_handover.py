import uuid
from datetime import datetime

from clinicops.models.models import Handover


def _create(client, headers, **overrides):
    payload = {"title": "Check oxygen tanks", "content": "Room 3", "priority": "HIGH"}
    payload.update(overrides)
    resp = client.post("/api/handovers", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_assigns_and_notifies(client, staff, make_user, auth):
    other = make_user("STAFF", "NURSE")

    task = _create(client, auth(staff), assignee_id=str(other.id))
    assert task["status"] == "PENDING"
    assert task["version"] == 1
    assert task["assignee"]["id"] == str(other.id)

    notes = client.get("/api/notifications", headers=auth(other)).json()
    assert notes["total"] == 1
    assert notes["items"][0]["type"] == "HANDOVER_ASSIGNED"
    assert notes["items"][0]["metadata"]["handover_id"] == task["id"]

    mine = client.get("/api/handovers/my", headers=auth(other)).json()
    assert [h["id"] for h in mine] == [task["id"]]


def test_update_with_stale_version_conflicts(client, staff, auth):
    task = _create(client, auth(staff))

    first = client.patch(f"/api/handovers/{task['id']}", json={"status": "IN_PROGRESS", "version": 1}, headers=auth(staff))
    assert first.status_code == 200
    assert first.json()["version"] == 2

    stale = client.patch(f"/api/handovers/{task['id']}", json={"status": "COMPLETED", "version": 1}, headers=auth(staff))
    assert stale.status_code == 409
    assert stale.json()["error"]["code"] == "CONFLICT"


def test_completing_sets_completed_at(client, staff, auth):
    task = _create(client, auth(staff))

    done = client.patch(f"/api/handovers/{task['id']}", json={"status": "COMPLETED"}, headers=auth(staff)).json()
    assert done["completed_at"] is not None

    reopened = client.patch(f"/api/handovers/{task['id']}", json={"status": "PENDING"}, headers=auth(staff)).json()
    assert reopened["completed_at"] is None


def test_other_staff_cannot_edit_or_reassign(client, staff, supervisor, make_user, auth):
    outsider = make_user("STAFF", "NURSE")
    task = _create(client, auth(staff))

    resp = client.patch(f"/api/handovers/{task['id']}", json={"title": "hijack"}, headers=auth(outsider))
    assert resp.status_code == 403

    reassign = client.patch(f"/api/handovers/{task['id']}", json={"assignee_id": str(outsider.id)}, headers=auth(staff))
    assert reassign.status_code == 403

    ok = client.patch(f"/api/handovers/{task['id']}", json={"assignee_id": str(outsider.id)}, headers=auth(supervisor))
    assert ok.status_code == 200
    assert ok.json()["assignee"]["id"] == str(outsider.id)


def test_list_orders_by_priority(client, staff, auth):
    _create(client, auth(staff), title="low", priority="LOW")
    _create(client, auth(staff), title="urgent", priority="URGENT")
    _create(client, auth(staff), title="medium", priority="MEDIUM")

    page = client.get("/api/handovers", headers=auth(staff)).json()
    assert [h["title"] for h in page["items"]] == ["urgent", "medium", "low"]
    assert page["total"] == 3
    assert page["total_pages"] == 1

    urgent = client.get("/api/handovers/urgent", headers=auth(staff)).json()
    assert [h["title"] for h in urgent] == ["urgent"]


def test_batch_update_reports_per_item_results(client, staff, supervisor, auth):
    task = _create(client, auth(staff))
    missing = "00000000-0000-0000-0000-000000000000"
    body = {"items": [{"id": task["id"], "status": "COMPLETED"}, {"id": missing, "status": "COMPLETED"}]}

    assert client.post("/api/handovers/batch", json=body, headers=auth(staff)).status_code == 403

    resp = client.post("/api/handovers/batch", json=body, headers=auth(supervisor))
    assert resp.status_code == 200
    result = resp.json()
    assert result["total"] == 2
    assert result["success"] == 1
    assert result["failed"] == 1

    detail = client.get(f"/api/handovers/{task['id']}", headers=auth(staff)).json()
    assert detail["status"] == "COMPLETED"
    assert detail["completed_at"] is not None


def test_comments_checklist_and_subtasks(client, staff, make_user, auth):
    other = make_user("STAFF", "NURSE")
    task = _create(client, auth(staff), assignee_id=str(other.id))

    comment = client.post(f"/api/handovers/{task['id']}/comments", json={"content": "on it"}, headers=auth(other))
    assert comment.status_code == 201

    item = client.post(f"/api/handovers/{task['id']}/checklist", json={"content": "refill"}, headers=auth(staff)).json()
    client.patch(f"/api/handovers/{task['id']}/checklist/{item['id']}", json={"is_completed": True}, headers=auth(staff))

    sub = client.post(f"/api/handovers/{task['id']}/subtasks", json={"title": "order new tank"}, headers=auth(staff))
    assert sub.status_code == 201

    detail = client.get(f"/api/handovers/{task['id']}", headers=auth(staff)).json()
    assert detail["comment_count"] == 1
    assert detail["checklists"][0]["is_completed"] is True
    assert detail["subtask_count"] == 1
    assert detail["subtasks"][0]["title"] == "order new tank"

    creator_notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert any(n["type"] == "HANDOVER_COMMENTED" for n in creator_notes["items"])


def test_delete_only_by_creator_or_supervisor(client, staff, make_user, auth):
    outsider = make_user("STAFF", "NURSE")
    task = _create(client, auth(staff))

    assert client.delete(f"/api/handovers/{task['id']}", headers=auth(outsider)).status_code == 403
    assert client.delete(f"/api/handovers/{task['id']}", headers=auth(staff)).json() == {"success": True}
    assert client.get(f"/api/handovers/{task['id']}", headers=auth(staff)).status_code == 404


def test_archive_month_moves_completed_tasks(client, db, staff, admin, supervisor, auth):
    parent = _create(client, auth(staff), title="parent")
    child = client.post(f"/api/handovers/{parent['id']}/subtasks", json={"title": "child"}, headers=auth(staff)).json()

    row = db.get(Handover, uuid.UUID(parent["id"]))
    row.status = "COMPLETED"
    row.completed_at = datetime(2024, 3, 15, 9, 0, 0)
    db.commit()

    resp = client.post("/api/handovers/archives", json={"year": 2024, "month": 3}, headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["archived_count"] == 1

    assert client.get(f"/api/handovers/{parent['id']}", headers=auth(staff)).status_code == 404
    survivor = client.get(f"/api/handovers/{child['id']}", headers=auth(staff)).json()
    assert survivor["parent"] is None

    archive = client.get("/api/handovers/archives/2024/3", headers=auth(supervisor)).json()
    assert archive["count"] == 1
    items = client.get(f"/api/handovers/archives/{archive['id']}/items", headers=auth(supervisor)).json()
    assert items["items"][0]["title"] == "parent"

    empty = client.post("/api/handovers/archives", json={"year": 2024, "month": 4}, headers=auth(admin)).json()
    assert empty["archived_count"] == 0


def test_null_for_required_field_is_rejected(client, staff, auth):
    task = _create(client, auth(staff), due_date="2024-05-01T09:00:00Z")

    resp = client.patch(f"/api/handovers/{task['id']}", json={"title": None, "version": 1}, headers=auth(staff))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    unchanged = client.get(f"/api/handovers/{task['id']}", headers=auth(staff)).json()
    assert unchanged["title"] == "Check oxygen tanks"
    assert unchanged["version"] == 1

    cleared = client.patch(f"/api/handovers/{task['id']}", json={"due_date": None}, headers=auth(staff))
    assert cleared.status_code == 200
    assert cleared.json()["due_date"] is None
