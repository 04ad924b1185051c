def _document(client, headers, doc_no="SOP-001", title="Hand hygiene"):
    resp = client.post("/api/documents", json={"doc_no": doc_no, "title": title, "content": "wash for 20s"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_category_tree(client, supervisor, staff, auth):
    root = client.post("/api/documents/categories", json={"name": "SOP"}, headers=auth(supervisor)).json()
    assert client.get("/api/documents/categories", headers=auth(staff)).json()[0]["children"] == []

    client.post("/api/documents/categories", json={"name": "Infection control", "parent_id": root["id"]}, headers=auth(supervisor))

    tree = client.get("/api/documents/categories", headers=auth(staff)).json()
    assert len(tree) == 1
    assert [c["name"] for c in tree[0]["children"]] == ["Infection control"]

    orphan = client.post(
        "/api/documents/categories",
        json={"name": "Lost", "parent_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth(supervisor),
    )
    assert orphan.status_code == 404


def test_document_number_is_unique(client, supervisor, staff, auth):
    doc = _document(client, auth(supervisor))
    assert doc["status"] == "DRAFT"
    assert doc["version"] == 1

    dup = client.post("/api/documents", json={"doc_no": "SOP-001", "title": "x"}, headers=auth(supervisor))
    assert dup.status_code == 400
    assert client.post("/api/documents", json={"doc_no": "SOP-002", "title": "x"}, headers=auth(staff)).status_code == 403


def test_publish_unread_and_confirm(client, supervisor, staff, auth):
    doc = _document(client, auth(supervisor))
    assert client.get("/api/documents/my/unread", headers=auth(staff)).json() == []

    published = client.post(f"/api/documents/{doc['id']}/publish", headers=auth(supervisor))
    assert published.status_code == 200
    body = published.json()
    assert body["status"] == "PUBLISHED"
    assert body["version"] == 2
    assert [v["version"] for v in body["versions"]] == [1]

    notes = client.get("/api/notifications", headers=auth(staff)).json()
    assert notes["items"][0]["type"] == "DOCUMENT_PUBLISHED"

    unread = client.get("/api/documents/my/unread", headers=auth(staff)).json()
    assert [d["id"] for d in unread] == [doc["id"]]

    first = client.post(f"/api/documents/{doc['id']}/confirm", headers=auth(staff)).json()
    second = client.post(f"/api/documents/{doc['id']}/confirm", headers=auth(staff)).json()
    assert first["id"] == second["id"]
    assert first["version"] == 2

    assert client.get("/api/documents/my/unread", headers=auth(staff)).json() == []

    status = client.get(f"/api/documents/{doc['id']}/read-status", headers=auth(supervisor)).json()
    assert status["confirmed_count"] == 1
    assert status["total_users"] == 2
    assert status["confirmations"][0]["user"]["id"] == str(staff.id)


def test_republish_requires_new_confirmation(client, supervisor, staff, auth):
    doc = _document(client, auth(supervisor))
    client.post(f"/api/documents/{doc['id']}/publish", headers=auth(supervisor))
    client.post(f"/api/documents/{doc['id']}/confirm", headers=auth(staff))

    client.patch(f"/api/documents/{doc['id']}", json={"content": "wash for 30s"}, headers=auth(supervisor))
    republished = client.post(f"/api/documents/{doc['id']}/publish", headers=auth(supervisor)).json()
    assert republished["version"] == 3

    stats = client.get("/api/documents/stats", headers=auth(staff)).json()
    assert stats["my_unread_documents"] == 1
    assert stats["published_documents"] == 1


def test_search_documents(client, supervisor, staff, auth):
    _document(client, auth(supervisor))
    _document(client, auth(supervisor), doc_no="SOP-002", title="Sterilisation")

    found = client.get("/api/documents", params={"search": "steril"}, headers=auth(staff)).json()
    assert [d["doc_no"] for d in found["items"]] == ["SOP-002"]


def test_announcements_sorted_and_targeted(client, supervisor, staff, auth):
    client.post("/api/documents/announcements", json={"title": "Normal news", "content": "a"}, headers=auth(supervisor))
    client.post("/api/documents/announcements", json={"title": "Urgent news", "content": "b", "priority": "URGENT"}, headers=auth(supervisor))
    pinned = client.post(
        "/api/documents/announcements",
        json={"title": "Pinned low", "content": "c", "priority": "LOW", "is_pinned": True},
        headers=auth(supervisor),
    ).json()
    client.post(
        "/api/documents/announcements",
        json={"title": "Admins only", "content": "d", "target_roles": ["ADMIN"]},
        headers=auth(supervisor),
    )
    client.post(
        "/api/documents/announcements",
        json={"title": "Later", "content": "e", "publish_at": "2999-01-01T00:00:00Z"},
        headers=auth(supervisor),
    )

    listed = client.get("/api/documents/announcements", headers=auth(staff)).json()
    assert [a["title"] for a in listed] == ["Pinned low", "Urgent news", "Normal news"]
    assert all(a["is_read"] is False for a in listed)

    client.post(f"/api/documents/announcements/{pinned['id']}/read", headers=auth(staff))
    client.post(f"/api/documents/announcements/{pinned['id']}/read", headers=auth(staff))
    listed = client.get("/api/documents/announcements", headers=auth(staff)).json()
    assert listed[0]["is_read"] is True

    notes = client.get("/api/notifications", params={"is_read": False}, headers=auth(staff)).json()
    assert notes["total"] == 3


def test_null_title_is_rejected(client, supervisor, auth):
    doc = _document(client, auth(supervisor))

    resp = client.patch(f"/api/documents/{doc['id']}", json={"title": None}, headers=auth(supervisor))
    assert resp.status_code == 422
    assert client.get(f"/api/documents/{doc['id']}", headers=auth(supervisor)).json()["title"] == "Hand hygiene"

    cleared = client.patch(f"/api/documents/{doc['id']}", json={"category_id": None}, headers=auth(supervisor))
    assert cleared.status_code == 200
