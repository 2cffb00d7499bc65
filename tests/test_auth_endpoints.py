"""Tests for login, logout and account endpoints."""

from datetime import timedelta

from fastapi.testclient import TestClient


def _login(client: TestClient, username: str, password: str):  # type: ignore[no-untyped-def]
    return client.post("/api/login", json={"username": username, "password": password})


def test_health_is_unguarded(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_sets_session_cookie(client: TestClient) -> None:
    response = _login(client, "admin", "password123")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["user"]["username"] == "admin"
    assert "credentialHash" not in data["user"]
    assert client.cookies.get("session") == data["token"]


def test_login_rejects_bad_credentials(client: TestClient) -> None:
    response = _login(client, "admin", "nope")

    assert response.status_code == 401
    assert response.json()["reason"] == "invalid_credentials"


def test_current_user_without_session(client: TestClient) -> None:
    response = client.get("/api/current-user")

    assert response.status_code == 200
    assert response.json() == {"user": None, "requiresSetup": False}


def test_default_account_setup_flow(client: TestClient) -> None:
    _login(client, "admin", "password123")

    current = client.get("/api/current-user").json()
    assert current["user"]["username"] == "admin"
    assert current["requiresSetup"] is True

    created = client.post(
        "/api/create-account", json={"username": "alice", "password": "secret1"}
    )
    assert created.status_code == 201
    assert created.json()["user"]["username"] == "alice"

    client.post("/api/logout")
    login = _login(client, "alice", "secret1")
    assert login.status_code == 200

    current = client.get("/api/current-user").json()
    assert current["user"]["username"] == "alice"
    assert current["requiresSetup"] is False


def test_create_account_errors(auth_client: TestClient) -> None:
    duplicate = auth_client.post(
        "/api/create-account", json={"username": "admin", "password": "secret1"}
    )
    weak = auth_client.post(
        "/api/create-account", json={"username": "bob", "password": "123"}
    )
    missing = auth_client.post("/api/create-account", json={"username": "bob"})

    assert duplicate.status_code == 400
    assert duplicate.json()["reason"] == "duplicate_username"
    assert weak.status_code == 400
    assert weak.json()["reason"] == "weak_password"
    assert missing.status_code == 400
    assert missing.json()["reason"] == "missing_fields"


def test_create_account_requires_session(client: TestClient) -> None:
    response = client.post(
        "/api/create-account", json={"username": "bob", "password": "secret1"}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "unauthenticated", "reason": "missing"}


def test_logout_invalidates_session(client: TestClient) -> None:
    token = _login(client, "admin", "password123").json()["token"]

    response = client.post("/api/logout")

    assert response.status_code == 200
    client.cookies.clear()
    guarded = client.get(
        "/api/observations", headers={"Authorization": f"Bearer {token}"}
    )
    assert guarded.status_code == 401


def test_bearer_token_is_accepted(client: TestClient) -> None:
    token = _login(client, "admin", "password123").json()["token"]
    client.cookies.clear()

    response = client.get(
        "/api/observations", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json() == []


def test_expired_session_is_rejected(client: TestClient, clock) -> None:
    _login(client, "admin", "password123")
    clock.advance(timedelta(hours=25))

    response = client.get("/api/observations")

    assert response.status_code == 401
    assert response.json()["reason"] == "expired"
