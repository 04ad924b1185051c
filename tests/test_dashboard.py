def _handover(client, headers, **overrides):
    payload = {"title": "Restock gloves", "priority": "URGENT"}
    payload.update(overrides)
    resp = client.post("/api/handovers", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_summary_for_staff_and_supervisor(client, staff, supervisor, auth):
    _handover(client, auth(supervisor), assignee_id=str(staff.id))

    mine = client.get("/api/dashboard/summary", headers=auth(staff)).json()
    assert mine["pending_handovers"] == 1
    assert [h["title"] for h in mine["my_handovers"]] == ["Restock gloves"]
    assert "urgent_handovers" not in mine

    overview = client.get("/api/dashboard/summary", headers=auth(supervisor)).json()
    assert [h["title"] for h in overview["urgent_handovers"]] == ["Restock gloves"]
    assert overview["low_stock_items"] == []


def test_summary_is_cached_per_user(client, staff, auth):
    first = client.get("/api/dashboard/summary", headers=auth(staff)).json()
    _handover(client, auth(staff))
    assert client.get("/api/dashboard/summary", headers=auth(staff)).json() == first

    assert client.get("/api/dashboard/stats", headers=auth(staff)).json()["pending_handovers"] == 1


def test_operations_overview(client, staff, supervisor, auth):
    assert client.get("/api/dashboard/operations", headers=auth(staff)).status_code == 403

    _handover(client, auth(supervisor))
    ops = client.get("/api/dashboard/operations", headers=auth(supervisor)).json()
    assert ops["tasks"]["pending"] == 1
    assert ops["assets"]["open_fault_count"] == 0
    assert ops["inventory"]["pending_purchase_requests"] == 0
    assert ops["finance"]["total_revenue"] == 0
    assert ops["documents"] == {"my_unread_count": 0}


def test_notification_read_and_delete(client, staff, supervisor, auth):
    _handover(client, auth(supervisor), assignee_id=str(staff.id))
    _handover(client, auth(supervisor), assignee_id=str(staff.id), title="Check AED")

    assert client.get("/api/notifications/unread-count", headers=auth(staff)).json() == {"count": 2}

    listed = client.get("/api/notifications", headers=auth(staff)).json()
    assert listed["unread_count"] == 2
    first_id = listed["items"][0]["id"]

    assert client.post(f"/api/notifications/{first_id}/read", headers=auth(supervisor)).json() == {"updated": 0}
    assert client.post(f"/api/notifications/{first_id}/read", headers=auth(staff)).json() == {"updated": 1}
    unread = client.get("/api/notifications", params={"is_read": False}, headers=auth(staff)).json()
    assert unread["total"] == 1

    assert client.post("/api/notifications/read-all", headers=auth(staff)).json() == {"updated": 1}
    assert client.get("/api/notifications/unread-count", headers=auth(staff)).json() == {"count": 0}

    assert client.delete(f"/api/notifications/{first_id}", headers=auth(staff)).json() == {"deleted": 1}
    assert client.get("/api/notifications", headers=auth(staff)).json()["total"] == 1
