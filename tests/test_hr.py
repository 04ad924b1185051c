from datetime import date, timedelta

from clinicops.services.common import local_today
from clinicops.services.hr import certification_status


def test_certification_status_thresholds():
    today = date(2024, 5, 1)
    assert certification_status(None, today) == "VALID"
    assert certification_status(date(2024, 4, 30), today) == "EXPIRED"
    assert certification_status(date(2024, 5, 1), today) == "EXPIRING_SOON"
    assert certification_status(date(2024, 5, 31), today) == "EXPIRING_SOON"
    assert certification_status(date(2024, 6, 1), today) == "VALID"


def test_leave_request_review_flow(client, staff, supervisor, auth):
    body = {"type": "ANNUAL", "start_date": "2024-07-01", "end_date": "2024-07-03", "reason": "vacation"}
    created = client.post("/api/hr/leaves", json=body, headers=auth(staff))
    assert created.status_code == 201
    leave = created.json()
    assert leave["days"] == 3
    assert leave["status"] == "PENDING"
    assert leave["type_label"] == "特休"

    sup_notes = client.get("/api/notifications", headers=auth(supervisor)).json()
    assert sup_notes["items"][0]["type"] == "LEAVE_REQUEST"

    assert client.post(f"/api/hr/leaves/{leave['id']}/approve", headers=auth(staff)).status_code == 403

    approved = client.post(f"/api/hr/leaves/{leave['id']}/approve", json={"note": "enjoy"}, headers=auth(supervisor))
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["approved_by"]["id"] == str(supervisor.id)

    twice = client.post(f"/api/hr/leaves/{leave['id']}/reject", headers=auth(supervisor))
    assert twice.status_code == 400
    assert twice.json()["error"]["message"] == "Leave request is not pending"

    cancel = client.post(f"/api/hr/leaves/{leave['id']}/cancel", headers=auth(staff))
    assert cancel.status_code == 400

    staff_notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert staff_notes["items"][0]["type"] == "LEAVE_APPROVED"


def test_leave_cover_user(client, staff, supervisor, make_user, auth):
    cover = make_user("STAFF", "NURSE", name="Cover Nurse")
    body = {"type": "SICK", "start_date": "2024-07-01", "end_date": "2024-07-01"}

    created = client.post("/api/hr/leaves", json={**body, "cover_user_id": str(cover.id)}, headers=auth(staff))
    assert created.status_code == 201
    assert created.json()["cover_user"]["id"] == str(cover.id)
    assert created.json()["cover_user"]["name"] == "Cover Nurse"

    listed = client.get("/api/hr/leaves", headers=auth(supervisor)).json()
    assert listed["items"][0]["cover_user_id"] == str(cover.id)

    plain = client.post("/api/hr/leaves", json=body, headers=auth(staff)).json()
    assert plain["cover_user"] is None

    myself = client.post("/api/hr/leaves", json={**body, "cover_user_id": str(staff.id)}, headers=auth(staff))
    assert myself.status_code == 400

    missing = client.post(
        "/api/hr/leaves",
        json={**body, "cover_user_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth(staff),
    )
    assert missing.status_code == 404

    client.delete(f"/api/users/{cover.id}", headers=auth(make_user("ADMIN", "ADMIN")))
    inactive = client.post("/api/hr/leaves", json={**body, "cover_user_id": str(cover.id)}, headers=auth(staff))
    assert inactive.status_code == 400
    assert inactive.json()["error"]["message"] == "Cover user is not active"


def test_leave_validation_and_visibility(client, staff, supervisor, make_user, auth):
    other = make_user("STAFF", "NURSE")

    bad = client.post("/api/hr/leaves", json={"type": "SICK", "start_date": "2024-07-03", "end_date": "2024-07-01"}, headers=auth(staff))
    assert bad.status_code == 400

    mine = client.post("/api/hr/leaves", json={"type": "SICK", "start_date": "2024-07-01", "end_date": "2024-07-01"}, headers=auth(staff)).json()
    client.post("/api/hr/leaves", json={"type": "PERSONAL", "start_date": "2024-08-10", "end_date": "2024-08-11"}, headers=auth(other))

    assert client.get("/api/hr/leaves", headers=auth(staff)).json()["total"] == 1
    assert client.get("/api/hr/leaves", headers=auth(supervisor)).json()["total"] == 2

    overlapping = client.get(
        "/api/hr/leaves",
        params={"start_date": "2024-08-11", "end_date": "2024-08-31"},
        headers=auth(supervisor),
    ).json()
    assert [lv["user"]["id"] for lv in overlapping["items"]] == [str(other.id)]

    assert client.post(f"/api/hr/leaves/{mine['id']}/cancel", headers=auth(other)).status_code == 403
    cancelled = client.post(f"/api/hr/leaves/{mine['id']}/cancel", headers=auth(staff)).json()
    assert cancelled["status"] == "CANCELLED"


def test_certifications_and_expiry_reminders(client, staff, supervisor, admin, auth):
    soon = (local_today() + timedelta(days=10)).isoformat()
    later = (local_today() + timedelta(days=200)).isoformat()

    cert = client.post(
        f"/api/hr/employees/{staff.id}/certifications",
        json={"name": "BLS", "expiry_date": soon},
        headers=auth(supervisor),
    )
    assert cert.status_code == 201
    assert cert.json()["status"] == "EXPIRING_SOON"
    client.post(f"/api/hr/employees/{staff.id}/certifications", json={"name": "ACLS", "expiry_date": later}, headers=auth(supervisor))

    expiring = client.get("/api/hr/certifications/expiring", headers=auth(supervisor)).json()
    assert [c["name"] for c in expiring] == ["BLS"]
    assert expiring[0]["days_left"] == 10

    sent = client.post("/api/hr/certifications/notify-expiring", headers=auth(admin)).json()
    assert sent == {"sent": 1}
    notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert notes["items"][0]["type"] == "CERTIFICATION_EXPIRING"

    renewed = client.patch(f"/api/hr/certifications/{cert.json()['id']}", json={"expiry_date": later}, headers=auth(supervisor))
    assert renewed.json()["status"] == "VALID"


def test_employee_profile_and_skills(client, staff, supervisor, admin, make_user, auth):
    other = make_user("STAFF", "NURSE")

    profile = client.post(f"/api/hr/employees/{staff.id}/profile", json={"department": "運醫", "employee_no": "E001"}, headers=auth(supervisor))
    assert profile.status_code == 201
    dup = client.post(f"/api/hr/employees/{staff.id}/profile", json={"department": "運醫"}, headers=auth(supervisor))
    assert dup.status_code == 400

    skill = client.post("/api/hr/skills", json={"name": "Taping", "category": "sports"}, headers=auth(admin)).json()
    assert client.post("/api/hr/skills", json={"name": "Taping"}, headers=auth(admin)).status_code == 400
    assert [s["name"] for s in client.get("/api/hr/skills", headers=auth(staff)).json()] == ["Taping"]

    assigned = client.post(f"/api/hr/employees/{staff.id}/skills", json={"skill_id": skill["id"], "level": "ADVANCED"}, headers=auth(supervisor))
    assert assigned.status_code == 201
    again = client.post(f"/api/hr/employees/{staff.id}/skills", json={"skill_id": skill["id"]}, headers=auth(supervisor))
    assert again.json()["error"]["message"] == "User already has this skill"

    own = client.get(f"/api/hr/employees/{staff.id}", headers=auth(staff)).json()
    assert own["profile"]["employee_no"] == "E001"
    assert own["skills"][0]["level"] == "ADVANCED"
    assert own["skills"][0]["skill"]["name"] == "Taping"

    assert client.get(f"/api/hr/employees/{staff.id}", headers=auth(other)).status_code == 403

    roster = client.get("/api/hr/employees", headers=auth(supervisor)).json()
    row = [r for r in roster if r["id"] == str(staff.id)][0]
    assert row["skill_count"] == 1


def test_hr_stats(client, staff, supervisor, auth):
    client.post("/api/hr/leaves", json={"type": "SICK", "start_date": "2024-07-01", "end_date": "2024-07-01"}, headers=auth(staff))

    stats = client.get("/api/hr/stats", headers=auth(supervisor)).json()
    assert stats["pending_leaves"] == 1
    assert stats["active_employees"] == 2
