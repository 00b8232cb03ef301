from tests.conftest import PASSWORD, login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200


def test_login_and_session(client):
    r = client.get("/auth/session")
    assert r.status_code == 200
    assert r.json["user"] is None
    assert r.json["csrf_token"]

    r = login(client, "dm")
    assert r.json["user"]["email"] == "dm@example.com"

    r = client.get("/auth/session")
    assert r.json["user"]["email"] == "dm@example.com"


def test_login_rejects_bad_password(client):
    r = client.post("/auth/login", json={"email": "dm@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json["ok"] is False
    assert r.json["errors"] == ["Invalid credentials."]


def test_login_accepts_form_post(client):
    r = client.post("/auth/login", data={"email": "PLAYER@example.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json["user"]["role"] == "USER"


def test_login_is_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", json={"email": "dm@example.com", "password": "nope"})
    r = client.post("/auth/login", json={"email": "dm@example.com", "password": PASSWORD})
    assert r.status_code == 429


def test_logout_clears_session(client):
    login(client, "player")
    r = client.post("/auth/logout")
    assert r.status_code == 200
    r = client.get("/api/campaigns")
    assert r.status_code == 401


def test_csrf_enforced_when_enabled(app, client, seed):
    app.config["CSRF_ENABLED"] = True
    token = login(client, "dm").json["csrf_token"]

    r = client.post(f"/api/campaigns/{seed['campaign']}/currencies", json={"name": "Dragon Scales", "abbreviation": "ds"})
    assert r.status_code == 400
    assert r.json["errors"] == ["CSRF token missing or invalid."]

    r = client.post(
        f"/api/campaigns/{seed['campaign']}/currencies",
        json={"name": "Dragon Scales", "abbreviation": "ds"},
        headers={"X-CSRF-Token": token},
    )
    assert r.status_code == 201


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["ok"] is False
