def test_login_returns_tokens_and_me(client, make_user):
    user = make_user("STAFF", "NURSE", password="pass1234")

    resp = client.post("/api/auth/login", json={"email": user.email.upper(), "password": "pass1234"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == user.email

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert "HANDOVER_VIEW" in me.json()["permissions"]


def test_login_rejects_bad_password_with_error_envelope(client, make_user):
    user = make_user(password="pass1234")

    resp = client.post("/api/auth/login", json={"email": user.email, "password": "wrong"})
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"
    assert body["error"]["message"] == "Invalid email or password"
    assert body["path"] == "/api/auth/login"


def test_refresh_token_cannot_be_used_as_access_token(client, make_user):
    user = make_user(password="pass1234")
    tokens = client.post("/api/auth/login", json={"email": user.email, "password": "pass1234"}).json()

    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]


def test_missing_token_is_unauthorized(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401


def test_deactivated_user_cannot_log_in(client, admin, make_user, auth):
    user = make_user(password="pass1234")

    resp = client.delete(f"/api/users/{user.id}", headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    login = client.post("/api/auth/login", json={"email": user.email, "password": "pass1234"})
    assert login.status_code == 401


def test_user_management_requires_admin(client, supervisor, admin, auth):
    payload = {"email": "New.Nurse@Clinic.com", "name": "New Nurse", "password": "secret1"}

    forbidden = client.post("/api/users", json=payload, headers=auth(supervisor))
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["message"] == "Insufficient role"

    created = client.post("/api/users", json=payload, headers=auth(admin))
    assert created.status_code == 201
    assert created.json()["email"] == "new.nurse@clinic.com"

    duplicate = client.post("/api/users", json=payload, headers=auth(admin))
    assert duplicate.status_code == 400


def test_validation_errors_use_envelope(client, admin, auth):
    resp = client.post("/api/users", json={"email": "not-an-email"}, headers=auth(admin))
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert isinstance(body["error"]["details"], list)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    given = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert given.headers["X-Request-ID"] == "abc-123"

    generated = client.get("/api/missing-route")
    assert generated.status_code == 404
    assert generated.json()["error"]["code"] == "NOT_FOUND"
    assert generated.headers["X-Request-ID"]
