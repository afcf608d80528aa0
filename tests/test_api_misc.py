# tests/test_api_misc.py

from __future__ import annotations

from .fakes import signup


def test_register_duplicate_email_and_bad_login(api) -> None:
    body = {"name": "Ada", "email": "ada@example.com", "password": "secret-pw"}
    assert api.post("/auth/register", json=body).status_code == 201
    assert api.post("/auth/register", json=body).status_code == 400

    r = api.post("/auth/login", json={"email": "ada@example.com", "password": "wrong"})
    assert r.status_code == 401


def test_session_cookie_authenticates_and_logout_revokes(api) -> None:
    api.post("/auth/register", json={"name": "Ada", "email": "c@example.com", "password": "pw"})
    r = api.post("/auth/login", json={"email": "c@example.com", "password": "pw"})
    assert "dispatch_session" in r.cookies

    me = api.get("/me")
    assert me.status_code == 200
    assert me.json()["email"] == "c@example.com"

    api.post("/auth/logout")
    api.cookies.set("dispatch_session", r.json()["token"])
    assert api.get("/me").status_code == 401


def test_notes_crud_and_search(api, auth) -> None:
    r = api.post("/api/notes", json={"title": "Groceries", "content": "- milk"}, headers=auth)
    assert r.status_code == 201
    note = r.json()
    api.post("/api/notes", json={"title": "Meeting notes"}, headers=auth)

    assert api.post("/api/notes", json={"title": " "}, headers=auth).status_code == 400
    assert api.post("/api/notes", json={"title": "x", "content": 5}, headers=auth).status_code == 400

    found = api.get("/api/notes", params={"search": "GROC"}, headers=auth).json()
    assert [n["title"] for n in found] == ["Groceries"]
    assert len(api.get("/api/notes", headers=auth).json()) == 2

    r = api.put(f"/api/notes/{note['id']}", json={"content": "- eggs"}, headers=auth)
    assert r.json()["content"] == "- eggs"
    assert r.json()["title"] == "Groceries"

    assert api.delete(f"/api/notes/{note['id']}", headers=auth).status_code == 200
    assert api.get(f"/api/notes/{note['id']}", headers=auth).status_code == 404


def test_projects_with_stats_and_delete_unlinks_tasks(api, auth) -> None:
    project = api.post("/api/projects", json={"name": "Launch", "color": "green"}, headers=auth).json()
    assert project["status"] == "active"
    api.post("/api/projects", json={"name": "Old", "status": "archived"}, headers=auth)

    for status in ("open", "open", "done"):
        api.post(
            "/api/tasks",
            json={"title": status, "status": status, "project_id": project["id"]},
            headers=auth,
        )

    listed = api.get(
        "/api/projects", params={"status": "active", "withStats": "true"}, headers=auth
    ).json()
    assert [p["name"] for p in listed] == ["Launch"]
    assert listed[0]["stats"] == {"open": 2, "in_progress": 0, "done": 1, "total": 3}

    r = api.put(f"/api/projects/{project['id']}", json={"status": "completed"}, headers=auth)
    assert r.json()["status"] == "completed"

    assert api.delete(f"/api/projects/{project['id']}", headers=auth).status_code == 200
    tasks = api.get("/api/tasks", headers=auth).json()
    assert len(tasks) == 3
    assert all(t["project_id"] is None for t in tasks)


def test_api_key_lifecycle(api, auth, other_auth) -> None:
    r = api.post("/api/api-keys", json={"name": "cli"}, headers=auth)
    assert r.status_code == 201
    created = r.json()
    raw = created["key"]
    assert raw.startswith("dsp_")
    assert created["key_prefix"] == raw[:8]

    key_headers = {"Authorization": f"Bearer {raw}"}
    assert api.get("/api/tasks", headers=key_headers).status_code == 200

    listed = api.get("/api/api-keys", headers=auth).json()
    assert "key" not in listed[0]
    assert listed[0]["last_used_at"] is not None

    # someone else's key is simply not there
    assert api.delete(f"/api/api-keys/{created['id']}", headers=other_auth).status_code == 404

    assert api.delete(f"/api/api-keys/{created['id']}", headers=auth).json() == {"success": True}
    assert api.get("/api/tasks", headers=key_headers).status_code == 401


def test_shell_pages_and_health(api) -> None:
    r = api.get("/")
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "offline" in api.get("/offline").text
    assert api.get("/health").json() == {"backend": "running", "database": "connected"}


def test_users_are_isolated_for_notes(api) -> None:
    a = signup(api)
    b = signup(api)
    note = api.post("/api/notes", json={"title": "private"}, headers=a).json()
    assert api.get("/api/notes", headers=b).json() == []
    assert api.put(f"/api/notes/{note['id']}", json={"title": "x"}, headers=b).status_code == 404
