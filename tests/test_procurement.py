def _vendor(client, headers, code="V001"):
    resp = client.post(
        "/api/procurement/vendors",
        json={"name": "MedSupply", "code": code, "email": "sales@medsupply.com", "rating": 4},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _stock_item(client, headers, quantity=1, min_stock=5):
    resp = client.post(
        "/api/inventory/items",
        json={"name": "Syringe 5ml", "quantity": quantity, "min_stock": min_stock},
        headers=headers,
    )
    return resp.json()


def test_vendor_code_is_unique(client, supervisor, auth):
    _vendor(client, auth(supervisor))
    dup = client.post("/api/procurement/vendors", json={"name": "Other", "code": "V001"}, headers=auth(supervisor))
    assert dup.status_code == 400
    assert dup.json()["error"]["message"] == "Vendor code already exists"


def test_request_is_totalled_and_scoped_to_requester(client, staff, supervisor, make_user, auth):
    other = make_user("STAFF", "NURSE")
    body = {
        "reason": "restock",
        "items": [
            {"name": "Gauze", "quantity": 10, "estimated_price": 12.5},
            {"name": "Tape", "quantity": 2, "estimated_price": 30},
        ],
    }
    created = client.post("/api/procurement/requests", json=body, headers=auth(staff))
    assert created.status_code == 201
    pr = created.json()
    assert pr["request_no"].startswith("PR-")
    assert pr["total_amount"] == 185
    assert pr["status"] == "PENDING"
    assert len(pr["items"]) == 2

    sup_notes = client.get("/api/notifications", headers=auth(supervisor)).json()
    assert sup_notes["items"][0]["type"] == "PR_PENDING_APPROVAL"

    assert client.get(f"/api/procurement/requests/{pr['id']}", headers=auth(other)).status_code == 403
    assert client.get("/api/procurement/requests", headers=auth(other)).json()["total"] == 0
    assert client.get("/api/procurement/requests", headers=auth(supervisor)).json()["total"] == 1


def test_order_requires_approved_request(client, staff, supervisor, auth):
    vendor = _vendor(client, auth(supervisor))
    pr = client.post("/api/procurement/requests", json={"items": [{"name": "Gauze", "quantity": 1}]}, headers=auth(staff)).json()

    order_body = {"vendor_id": vendor["id"], "request_id": pr["id"], "items": [{"name": "Gauze", "quantity": 1, "unit_price": 10}]}
    early = client.post("/api/procurement/orders", json=order_body, headers=auth(supervisor))
    assert early.status_code == 400

    rejected = client.post(f"/api/procurement/requests/{pr['id']}/approve", json={"approved": False, "note": "not now"}, headers=auth(supervisor))
    assert rejected.json()["status"] == "REJECTED"
    again = client.post(f"/api/procurement/requests/{pr['id']}/approve", json={"approved": True}, headers=auth(supervisor))
    assert again.status_code == 400
    assert again.json()["error"]["message"] == "Request is not pending"


def test_request_to_receipt_updates_inventory(client, staff, supervisor, admin, auth):
    vendor = _vendor(client, auth(supervisor))
    stock = _stock_item(client, auth(admin), quantity=1, min_stock=5)

    pr = client.post(
        "/api/procurement/requests",
        json={"items": [{"name": "Syringe 5ml", "quantity": 10, "estimated_price": 3, "inventory_item_id": stock["id"]}]},
        headers=auth(staff),
    ).json()
    approved = client.post(f"/api/procurement/requests/{pr['id']}/approve", json={"approved": True}, headers=auth(supervisor))
    assert approved.json()["status"] == "APPROVED"

    po = client.post(
        "/api/procurement/orders",
        json={
            "vendor_id": vendor["id"],
            "request_id": pr["id"],
            "items": [{"name": "Syringe 5ml", "quantity": 10, "unit_price": 3, "inventory_item_id": stock["id"]}],
        },
        headers=auth(supervisor),
    )
    assert po.status_code == 201
    order = po.json()
    assert order["total_amount"] == 30
    assert order["request_no"] == pr["request_no"]
    line_id = order["items"][0]["id"]

    ordered_pr = client.get(f"/api/procurement/requests/{pr['id']}", headers=auth(staff)).json()
    assert ordered_pr["status"] == "ORDERED"

    partial = client.post(
        "/api/procurement/receipts",
        json={"order_id": order["id"], "items": [{"order_item_id": line_id, "received_qty": 4, "accepted_qty": 3, "rejected_qty": 1}]},
        headers=auth(staff),
    )
    assert partial.status_code == 201
    assert partial.json()["order_status"] == "PARTIAL_RECEIVED"
    assert partial.json()["receipt_no"].startswith("GR-")

    item = client.get(f"/api/inventory/items/{stock['id']}", headers=auth(staff)).json()
    assert item["quantity"] == 4
    assert item["transactions"][0]["note"].startswith("採購收貨: GR-")

    rest = client.post(
        "/api/procurement/receipts",
        json={"order_id": order["id"], "items": [{"order_item_id": line_id, "received_qty": 6, "accepted_qty": 6}]},
        headers=auth(staff),
    )
    assert rest.json()["order_status"] == "RECEIVED"
    assert client.get(f"/api/inventory/items/{stock['id']}", headers=auth(staff)).json()["quantity"] == 10

    creator_notes = client.get("/api/notifications", headers=auth(supervisor)).json()
    assert any(n["type"] == "PO_RECEIVED" for n in creator_notes["items"])

    detail = client.get(f"/api/procurement/orders/{order['id']}", headers=auth(supervisor)).json()
    assert len(detail["receipts"]) == 2
    assert detail["items"][0]["received_qty"] == 10


def test_receipt_rejects_foreign_lines_and_closed_orders(client, staff, supervisor, auth):
    vendor = _vendor(client, auth(supervisor))
    first = client.post(
        "/api/procurement/orders",
        json={"vendor_id": vendor["id"], "items": [{"name": "A", "quantity": 1, "unit_price": 1}]},
        headers=auth(supervisor),
    ).json()
    second = client.post(
        "/api/procurement/orders",
        json={"vendor_id": vendor["id"], "items": [{"name": "B", "quantity": 1, "unit_price": 1}]},
        headers=auth(supervisor),
    ).json()

    foreign = client.post(
        "/api/procurement/receipts",
        json={"order_id": first["id"], "items": [{"order_item_id": second["items"][0]["id"], "received_qty": 1}]},
        headers=auth(staff),
    )
    assert foreign.status_code == 400
    assert client.get(f"/api/procurement/orders/{first['id']}", headers=auth(supervisor)).json()["receipts"] == []

    client.patch(f"/api/procurement/orders/{first['id']}/status", json={"status": "CANCELLED"}, headers=auth(supervisor))
    closed = client.post(
        "/api/procurement/receipts",
        json={"order_id": first["id"], "items": [{"order_item_id": first["items"][0]["id"], "received_qty": 1}]},
        headers=auth(staff),
    )
    assert closed.status_code == 400
    assert closed.json()["error"]["message"] == "Purchase order is closed"


def test_procurement_stats(client, staff, supervisor, auth):
    client.post("/api/procurement/requests", json={"items": [{"name": "Gauze", "quantity": 1}]}, headers=auth(staff))

    stats = client.get("/api/procurement/stats", headers=auth(supervisor)).json()
    assert stats["pending_requests"] == 1
    assert stats["monthly_spending"] == 0
