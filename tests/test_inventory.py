import csv
import io
import uuid

import pytest
from fastapi import HTTPException

from clinicops.models.models import InventoryItem
from clinicops.services.inventory import apply_transaction, signed_quantity


def _item(client, headers, **overrides):
    payload = {"name": "Gauze", "category": "CONSUMABLE", "unit": "包", "quantity": 10, "min_stock": 5}
    payload.update(overrides)
    resp = client.post("/api/inventory/items", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_signed_quantity():
    assert signed_quantity("IN", -4) == 4
    assert signed_quantity("OUT", 4) == -4
    assert signed_quantity("EXPIRED", 2) == -2
    assert signed_quantity("ADJUST", -3) == -3


def test_transactions_update_balance(client, admin, staff, auth):
    item = _item(client, auth(admin))

    out = client.post("/api/inventory/txns", json={"item_id": item["id"], "type": "OUT", "quantity": 3}, headers=auth(staff))
    assert out.status_code == 201
    assert out.json()["quantity"] == -3
    assert out.json()["item"]["quantity"] == 7

    adjust = client.post("/api/inventory/txns", json={"item_id": item["id"], "type": "ADJUST", "quantity": 2}, headers=auth(staff))
    assert adjust.json()["item"]["quantity"] == 9

    history = client.get(f"/api/inventory/items/{item['id']}/transactions", headers=auth(staff)).json()
    assert history["total"] == 2


def test_insufficient_stock_leaves_balance_untouched(client, admin, staff, auth):
    item = _item(client, auth(admin), quantity=2)

    resp = client.post("/api/inventory/txns", json={"item_id": item["id"], "type": "OUT", "quantity": 5}, headers=auth(staff))
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Insufficient stock"

    detail = client.get(f"/api/inventory/items/{item['id']}", headers=auth(staff)).json()
    assert detail["quantity"] == 2
    assert detail["transactions"] == []


def test_stock_check_uses_current_balance_not_loaded_copy(session_factory, admin, staff, client, auth):
    item = _item(client, auth(admin), quantity=5)
    item_id = uuid.UUID(item["id"])

    first = session_factory()
    second = session_factory()
    try:
        stale = first.get(InventoryItem, item_id)
        assert stale.quantity == 5

        apply_transaction(second, second.get(InventoryItem, item_id), "OUT", 4, None, staff.id)
        second.commit()

        with pytest.raises(HTTPException) as exc:
            apply_transaction(first, stale, "OUT", 4, None, staff.id)
        assert exc.value.status_code == 400
        first.rollback()

        apply_transaction(first, stale, "OUT", 1, None, staff.id)
        first.commit()
        assert stale.quantity == 0
    finally:
        first.close()
        second.close()

    detail = client.get(f"/api/inventory/items/{item['id']}", headers=auth(staff)).json()
    assert detail["quantity"] == 0
    assert len(detail["transactions"]) == 2


def test_low_stock_notifies_admins(client, admin, staff, auth):
    item = _item(client, auth(admin), quantity=6, min_stock=5)

    client.post("/api/inventory/txns", json={"item_id": item["id"], "type": "OUT", "quantity": 2}, headers=auth(staff))

    notes = client.get("/api/notifications", headers=auth(admin)).json()
    assert [n["type"] for n in notes["items"]] == ["INVENTORY_LOW_STOCK"]
    assert client.get("/api/inventory/low-stock/count", headers=auth(staff)).json() == {"count": 1}

    low = client.get("/api/inventory/low-stock", headers=auth(admin)).json()
    assert low[0]["shortage"] == 1


def test_item_management_requires_admin(client, supervisor, auth):
    resp = client.post("/api/inventory/items", json={"name": "Tape"}, headers=auth(supervisor))
    assert resp.status_code == 403


def test_deleted_items_are_hidden(client, admin, staff, auth):
    item = _item(client, auth(admin))
    client.delete(f"/api/inventory/items/{item['id']}", headers=auth(admin))

    page = client.get("/api/inventory/items", headers=auth(staff)).json()
    assert page["total"] == 0


def test_csv_export_escapes_formulas(client, admin, supervisor, auth):
    _item(client, auth(admin), name="=HYPERLINK(\"http://x\")", location="+A1")
    _item(client, auth(admin), name="Alcohol swab", quantity=1, min_stock=5)

    resp = client.get("/api/inventory/export.csv", headers=auth(supervisor))
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")

    text = resp.content.decode("utf-8-sig")
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0][0] == "品項名稱"
    by_name = {r[0]: r for r in rows[1:]}
    assert "'=HYPERLINK(\"http://x\")" in by_name
    assert by_name["'=HYPERLINK(\"http://x\")"][6] == "'+A1"
    assert by_name["Alcohol swab"][7] == "低庫存"
