from datetime import date

from clinicops.services.schedule_excel import parse_schedule


def test_duplicate_shift_is_rejected(client, supervisor, staff, auth):
    body = {"date": "2024-05-02", "type": "MORNING", "user_id": str(staff.id)}

    first = client.post("/api/scheduling/shifts", json=body, headers=auth(supervisor))
    assert first.status_code == 201
    assert first.json()["type"] == "MORNING"

    again = client.post("/api/scheduling/shifts", json=body, headers=auth(supervisor))
    assert again.status_code == 400
    assert again.json()["error"]["message"] == "Shift already exists for this user"

    notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert notes["items"][0]["type"] == "SHIFT_ASSIGNED"


def test_staff_cannot_create_shifts(client, staff, auth):
    body = {"date": "2024-05-02", "type": "MORNING", "user_id": str(staff.id)}
    assert client.post("/api/scheduling/shifts", json=body, headers=auth(staff)).status_code == 403


def test_my_shifts_filters_by_month(client, supervisor, staff, auth):
    for day in ("2024-05-02", "2024-06-01"):
        client.post("/api/scheduling/shifts", json={"date": day, "type": "NIGHT", "user_id": str(staff.id)}, headers=auth(supervisor))

    may = client.get("/api/scheduling/shifts/my", params={"month": "2024-05"}, headers=auth(staff)).json()
    assert [s["date"] for s in may] == ["2024-05-02"]

    bad = client.get("/api/scheduling/shifts/my", params={"month": "May"}, headers=auth(staff))
    assert bad.status_code == 400


def test_weekly_schedule_groups_by_day(client, supervisor, staff, auth):
    client.post("/api/scheduling/shifts", json={"date": "2024-05-03", "type": "AFTERNOON", "user_id": str(staff.id)}, headers=auth(supervisor))

    week = client.get("/api/scheduling/shifts/weekly", params={"start": "2024-05-01"}, headers=auth(supervisor)).json()
    assert len(week["schedule"]) == 7
    third = week["schedule"][2]
    assert third["date"] == "2024-05-03"
    assert len(third["shifts"]["AFTERNOON"]) == 1


def _bulk(client, headers, user_id):
    entries = [
        {"date": "2024-05-01", "user_id": str(user_id), "department": "SPORTS_MEDICINE", "shift_code": "GM", "period_a": "SPORTS", "period_b": "NURSING"},
        {"date": "2024-05-02", "user_id": str(user_id), "department": "SPORTS_MEDICINE", "shift_code": "OF", "period_a": "SPORTS"},
    ]
    resp = client.post("/api/scheduling/monthly/bulk", json={"year": 2024, "month": 5, "entries": entries}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_bulk_upsert_clears_periods_on_days_off(client, supervisor, staff, auth):
    assert _bulk(client, auth(supervisor), staff.id) == {"upserted": 2}
    assert _bulk(client, auth(supervisor), staff.id) == {"upserted": 2}

    grid = client.get("/api/scheduling/monthly", params={"year": 2024, "month": 5}, headers=auth(staff)).json()
    assert grid["days_in_month"] == 31
    assert len(grid["entries"]) == 2
    off_day = [e for e in grid["entries"] if e["shift_code"] == "OF"][0]
    assert off_day["period_a"] is None

    stats = client.get("/api/scheduling/monthly/stats", params={"year": 2024, "month": 5}, headers=auth(staff)).json()
    assert stats[0]["working_days"] == 1
    assert stats[0]["off_days"] == 1
    assert stats[0]["stats"]["SPORTS"] == 1
    assert stats[0]["stats"]["OF"] == 1


def test_bulk_upsert_rejects_dates_outside_month(client, supervisor, staff, auth):
    entries = [{"date": "2024-06-01", "user_id": str(staff.id), "department": "CLINIC", "shift_code": "GM"}]
    resp = client.post("/api/scheduling/monthly/bulk", json={"year": 2024, "month": 5, "entries": entries}, headers=auth(supervisor))
    assert resp.status_code == 400


def test_xlsx_export_parses_back(client, supervisor, staff, auth):
    _bulk(client, auth(supervisor), staff.id)

    resp = client.get(
        "/api/scheduling/export.xlsx",
        params={"year": 2024, "month": 5, "department": "SPORTS_MEDICINE"},
        headers=auth(supervisor),
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/vnd.openxmlformats")

    parsed = parse_schedule(resp.content)
    assert parsed["department"] == "SPORTS_MEDICINE"
    assert (parsed["year"], parsed["month"]) == (2024, 5)
    assert parsed["unique_names"] == [staff.name]
    by_date = {e["date"]: e for e in parsed["parsed_entries"]}
    assert by_date[date(2024, 5, 1)]["shift_code"] == "GM"
    assert by_date[date(2024, 5, 1)]["period_a"] == "SPORTS"
    assert by_date[date(2024, 5, 1)]["period_b"] == "NURSING"
    assert by_date[date(2024, 5, 2)]["shift_code"] == "OF"
    assert parsed["total_entries"] == 2


def test_import_rejects_non_excel_upload(client, supervisor, auth):
    resp = client.post(
        "/api/scheduling/import",
        files={"file": ("schedule.csv", b"a,b\n", "text/csv")},
        headers=auth(supervisor),
    )
    assert resp.status_code == 400


def test_import_previews_uploaded_workbook(client, supervisor, staff, auth):
    _bulk(client, auth(supervisor), staff.id)
    content = client.get(
        "/api/scheduling/export.xlsx",
        params={"year": 2024, "month": 5, "department": "SPORTS_MEDICINE"},
        headers=auth(supervisor),
    ).content

    resp = client.post(
        "/api/scheduling/import",
        files={"file": ("schedule.xlsx", content, "application/octet-stream")},
        headers=auth(supervisor),
    )
    assert resp.status_code == 200
    assert resp.json()["total_entries"] == 2


def test_xlsx_round_trip_keeps_working_shift_codes(client, supervisor, staff, auth):
    entries = [
        {"date": "2024-05-06", "user_id": str(staff.id), "department": "CLINIC", "shift_code": "BX", "period_a": "RECEPTION", "period_c": "ADMIN_WORK"},
        {"date": "2024-05-07", "user_id": str(staff.id), "department": "CLINIC", "shift_code": "BE"},
        {"date": "2024-05-08", "user_id": str(staff.id), "department": "CLINIC", "period_b": "ELECTRO"},
    ]
    resp = client.post("/api/scheduling/monthly/bulk", json={"year": 2024, "month": 5, "entries": entries}, headers=auth(supervisor))
    assert resp.status_code == 200, resp.text

    content = client.get(
        "/api/scheduling/export.xlsx",
        params={"year": 2024, "month": 5, "department": "CLINIC"},
        headers=auth(supervisor),
    ).content
    by_date = {e["date"]: e for e in parse_schedule(content)["parsed_entries"]}

    assert by_date[date(2024, 5, 6)] == {
        "user_name": staff.name,
        "date": date(2024, 5, 6),
        "shift_code": "BX",
        "period_a": "RECEPTION",
        "period_b": None,
        "period_c": "ADMIN_WORK",
    }
    assert by_date[date(2024, 5, 7)]["shift_code"] == "BE"
    assert by_date[date(2024, 5, 7)]["period_a"] is None
    assert by_date[date(2024, 5, 8)]["shift_code"] is None
    assert by_date[date(2024, 5, 8)]["period_b"] == "ELECTRO"
