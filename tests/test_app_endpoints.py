from fastapi.testclient import TestClient
from sqlalchemy import func, select

from secretboard.errors import BackingStoreUnavailable
from secretboard.infra.db import SessionRow


def _register(c: TestClient, username: str, password: str):
    return c.post("/register", data={"username": username, "password": password}, follow_redirects=False)


def _login(c: TestClient, username: str, password: str):
    return c.post("/login", data={"username": username, "password": password}, follow_redirects=False)


def test_public_pages_render(client):
    for path in ("/", "/login", "/register", "/secrets", "/terms"):
        r = client.get(path)
        assert r.status_code == 200, path
        assert r.headers["content-type"].startswith("text/html")


def test_healthcheck(client):
    r = client.get("/healthcheck")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_register_submit_logout_flow(client):
    r = _register(client, "bob", "pw")
    assert r.status_code == 303
    assert r.headers["location"] == "/secrets"
    assert "secretboard_session" in r.headers["set-cookie"]
    assert "httponly" in r.headers["set-cookie"].lower()

    r = client.get("/submit", follow_redirects=False)
    assert r.status_code == 200
    assert 'name="secret"' in r.text

    r = client.post("/submit", data={"secret": "x"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/secrets"

    r = client.get("/secrets")
    assert r.status_code == 200
    assert "<p class=\"secret-text\">x</p>" in r.text
    assert "bob" in r.text

    r = client.get("/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"

    r = client.get("/submit", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"


def test_old_cookie_is_useless_after_logout(app, client):
    _register(client, "bob", "pw")
    cookie = client.cookies.get("secretboard_session")
    assert cookie
    client.get("/logout", follow_redirects=False)

    replay = TestClient(app)
    r = replay.get("/submit", headers={"Cookie": f"secretboard_session={cookie}"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"


def test_submit_requires_session(client, app):
    r = client.get("/submit", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"

    r = client.post("/submit", data={"secret": "sneaky"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"
    assert app.state.ctx.store.list_users_with_secret() == []


def test_submit_replaces_previous_secret(client):
    _register(client, "bob", "pw")
    client.post("/submit", data={"secret": "first"}, follow_redirects=False)
    client.post("/submit", data={"secret": "second"}, follow_redirects=False)
    r = client.get("/secrets")
    assert "second" in r.text
    assert "first" not in r.text


def test_blank_secret_is_not_stored(client, app):
    _register(client, "bob", "pw")
    r = client.post("/submit", data={"secret": "   "}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/submit"
    assert app.state.ctx.store.list_users_with_secret() == []


def test_secrets_are_public(client, app):
    store = app.state.ctx.store
    u = store.create_local("alice", "pw")
    store.set_secret(u.id, "<b>i like tabs</b>")
    r = client.get("/secrets")
    assert r.status_code == 200
    # rendered escaped
    assert "&lt;b&gt;i like tabs&lt;/b&gt;" in r.text


def test_duplicate_registration_redirects_without_session(client, app):
    assert _register(client, "alice", "pw1").status_code == 303

    other = TestClient(app)
    r = _register(other, "alice", "pw2")
    assert r.status_code == 303
    assert r.headers["location"] == "/register"
    assert "set-cookie" not in r.headers
    assert app.state.ctx.store.verify_local("alice", "pw1").username == "alice"


def test_register_with_blank_fields_redirects_back(client):
    r = _register(client, "", "pw")
    assert r.status_code == 303
    assert r.headers["location"] == "/register"


def test_login_success_and_failure(client, app):
    app.state.ctx.store.create_local("alice", "pw")

    r = _login(client, "alice", "wrong")
    assert r.status_code == 303
    assert r.headers["location"] == "/login"
    assert "set-cookie" not in r.headers

    r = _login(client, "nobody", "pw")
    assert r.status_code == 303
    assert r.headers["location"] == "/login"

    r = _login(client, "alice", "pw")
    assert r.status_code == 303
    assert r.headers["location"] == "/secrets"
    assert client.get("/submit", follow_redirects=False).status_code == 200


def test_login_again_replaces_previous_session(client, app):
    app.state.ctx.store.create_local("alice", "pw")
    _login(client, "alice", "pw")
    first = client.cookies.get("secretboard_session")
    _login(client, "alice", "pw")
    second = client.cookies.get("secretboard_session")
    assert first and second and first != second

    sessions = app.state.ctx.sessions
    assert not sessions.resolve(first).is_authenticated
    assert sessions.resolve(second).is_authenticated
    count = app.state.ctx.db.run("count", lambda s: s.execute(select(func.count()).select_from(SessionRow)).scalar_one())
    assert count == 1


def test_login_and_submit_are_audited(client, app):
    app.state.ctx.store.create_local("alice", "pw")
    _login(client, "alice", "nope")
    _login(client, "alice", "pw")
    client.post("/submit", data={"secret": "s"}, follow_redirects=False)

    events = app.state.ctx.audit.recent()
    assert [(e.actor, e.action) for e in reversed(events)] == [
        ("alice", "failed login"),
        ("alice", "logged in"),
        ("alice", "submitted a secret"),
    ]
    # the secret itself is not copied into the audit trail
    assert all(e.detail != "s" for e in events)


def test_logout_without_session_is_harmless(client):
    r = client.get("/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"


def test_store_failure_renders_generic_error(client, app, monkeypatch):
    def _boom():
        raise BackingStoreUnavailable("list_users_with_secret", "connection refused on db:5432")

    monkeypatch.setattr(app.state.ctx.store, "list_users_with_secret", _boom)
    r = client.get("/secrets")
    assert r.status_code == 503
    assert "Something went wrong" in r.text
    assert "5432" not in r.text
