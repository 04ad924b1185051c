import pytest

from clinicops.services.finance import margin_rate


def _category(client, headers, name, type_):
    resp = client.post("/api/finance/categories", json={"name": name, "type": type_}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _cost(client, headers, category_id, amount, day):
    resp = client.post(
        "/api/finance/costs",
        json={"category_id": category_id, "amount": amount, "description": "x", "date": day},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def may_ledger(client, admin, make_user, auth):
    doctor = make_user("STAFF", "DOCTOR", name="Dr. Lin")
    headers = auth(admin)
    rent = _category(client, headers, "Rent", "FIXED")
    supplies = _category(client, headers, "Supplies", "VARIABLE")

    _cost(client, headers, rent["id"], 3000, "2024-05-01")
    _cost(client, headers, supplies["id"], 1500, "2024-05-31")
    _cost(client, headers, supplies["id"], 999, "2024-06-01")

    client.post("/api/finance/revenues", json={"amount": 6000, "doctor_id": str(doctor.id), "date": "2024-05-10"}, headers=headers)
    client.post("/api/finance/revenues", json={"amount": 4000, "source": "自費", "date": "2024-05-20"}, headers=headers)
    return {"doctor": doctor, "rent": rent, "supplies": supplies}


def test_margin_rate():
    assert margin_rate(200, 50) == 25
    assert margin_rate(0, -10) == 0


def test_monthly_summary(client, supervisor, auth, may_ledger):
    resp = client.get("/api/finance/reports/summary", params={"year": 2024, "month": 5}, headers=auth(supervisor))
    assert resp.status_code == 200
    body = resp.json()
    assert body["start_date"] == "2024-05-01"
    assert body["end_date"] == "2024-05-31"
    assert body["total_revenue"] == 10000
    assert body["total_cost"] == 4500
    assert body["fixed_costs"] == 3000
    assert body["variable_costs"] == 1500
    assert body["gross_profit"] == 5500
    assert body["gross_margin"] == 55


def test_breakdown_and_doctor_revenue(client, supervisor, auth, may_ledger):
    breakdown = client.get("/api/finance/reports/breakdown", params={"year": 2024, "month": 5}, headers=auth(supervisor)).json()
    assert [(r["name"], r["amount"]) for r in breakdown] == [("Rent", 3000), ("Supplies", 1500)]

    doctors = client.get("/api/finance/reports/by-doctor", params={"year": 2024, "month": 5}, headers=auth(supervisor)).json()
    assert doctors == [{"doctor_id": str(may_ledger["doctor"].id), "name": "Dr. Lin", "revenue": 6000, "transaction_count": 1}]


def test_yearly_margin_has_twelve_months(client, supervisor, auth, may_ledger):
    rows = client.get("/api/finance/reports/margin", params={"year": 2024}, headers=auth(supervisor)).json()
    assert [r["month"] for r in rows] == list(range(1, 13))
    assert rows[4]["profit"] == 5500
    assert rows[5]["revenue"] == 0
    assert rows[5]["cost"] == 999
    assert rows[5]["margin"] == 0


def test_inverted_range_is_rejected(client, supervisor, auth):
    resp = client.get(
        "/api/finance/reports/summary",
        params={"start_date": "2024-05-31", "end_date": "2024-05-01"},
        headers=auth(supervisor),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


def test_cost_lookup_errors(client, admin, auth):
    missing_category = client.post(
        "/api/finance/costs",
        json={"category_id": "00000000-0000-0000-0000-000000000000", "amount": 1, "date": "2024-05-01"},
        headers=auth(admin),
    )
    assert missing_category.status_code == 404
    assert missing_category.json()["error"]["message"] == "Cost category not found"

    missing_entry = client.delete("/api/finance/costs/00000000-0000-0000-0000-000000000000", headers=auth(admin))
    assert missing_entry.status_code == 404
    assert missing_entry.json()["error"]["message"] == "Cost entry not found"


def test_writes_are_admin_only(client, supervisor, staff, auth):
    assert client.post("/api/finance/categories", json={"name": "Rent", "type": "FIXED"}, headers=auth(supervisor)).status_code == 403
    assert client.post("/api/finance/revenues", json={"amount": 1, "date": "2024-05-01"}, headers=auth(supervisor)).status_code == 403
    assert client.get("/api/finance/reports/summary", headers=auth(staff)).status_code == 403


def test_snapshot_upserts_one_row_per_month(client, admin, supervisor, auth, may_ledger):
    first = client.post("/api/finance/snapshots", json={"year": 2024, "month": 5}, headers=auth(admin))
    assert first.status_code == 201
    assert first.json()["margin_rate"] == 55

    _cost(client, auth(admin), may_ledger["supplies"]["id"], 500, "2024-05-15")
    second = client.post("/api/finance/snapshots", json={"year": 2024, "month": 5}, headers=auth(admin)).json()
    assert second["id"] == first.json()["id"]
    assert second["total_cost"] == 5000
    assert second["variable_cost"] == 2000

    listed = client.get("/api/finance/snapshots", params={"year": 2024}, headers=auth(supervisor)).json()
    assert len(listed) == 1
    assert listed[0]["gross_margin"] == 5000
