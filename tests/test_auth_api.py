from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from api import create_app
from models import storage
from utils import security
from utils.security import ACCESS

from .conftest import ALICE, bearer, login, register

PROFILE = "/api/v1/auth/profile"
REFRESH = "/api/v1/auth/refresh-token"
LOGOUT = "/api/v1/auth/logout"


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "message": "Server is running", "database": "ok"}


def test_health_reports_an_unreachable_database(client, monkeypatch):
    def broken():
        raise SQLAlchemyError("connection refused")

    monkeypatch.setattr(storage, "ping", broken)
    resp = client.get("/api/v1/health")
    assert resp.status_code == 503
    assert resp.get_json()["database"] == "unavailable"


def test_register_login_profile_logout_flow(client):
    resp = register(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["data"]["email"] == ALICE["email"]
    assert "access_token" not in body

    resp = login(client)
    assert resp.status_code == 200
    tokens = resp.get_json()
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"] and tokens["refresh_token"]

    resp = client.get(PROFILE, headers=bearer(tokens["access_token"]))
    assert resp.status_code == 200
    profile = resp.get_json()["data"]
    assert profile == {"id": profile["id"], "email": "alice@example.com", "name": "Alice"}

    resp = client.get(LOGOUT, headers=bearer(tokens["access_token"]))
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True

    resp = client.get(PROFILE, headers=bearer(tokens["access_token"]))
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Token expired or invalid"


def test_register_duplicate_email(client):
    assert register(client).status_code == 201
    resp = register(client, name="Another Alice")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "CONFLICT"


def test_register_validation_errors_are_field_level(client):
    resp = client.post(
        "/api/v1/auth/register", json={"name": "A", "email": "not-an-email", "password": "123"}
    )
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "VALIDATION_ERROR"
    paths = {item["path"] for item in body["details"]}
    assert paths == {"name", "email", "password"}


def test_register_requires_fields(client):
    resp = client.post("/api/v1/auth/register", json={})
    assert resp.status_code == 400
    assert {item["path"] for item in resp.get_json()["details"]} == {"name", "email", "password"}


def test_login_failures_share_one_message(client):
    register(client)
    wrong_password = login(client, password="wrong-password")
    unknown_email = login(client, email="nobody@example.com")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.get_json() == unknown_email.get_json()
    assert wrong_password.get_json()["message"] == "Invalid credentials"


def test_login_validation(client):
    resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com"})
    assert resp.status_code == 400


def test_profile_requires_a_token(client):
    resp = client.get(PROFILE)
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Authentication required"


def test_profile_rejects_garbage_token(client):
    resp = client.get(PROFILE, headers=bearer("garbage"))
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid or expired token"


def test_profile_rejects_refresh_token(client):
    register(client)
    tokens = login(client).get_json()
    resp = client.get(PROFILE, headers=bearer(tokens["refresh_token"]))
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid or expired token"


def test_profile_rejects_expired_token(client, codec, monkeypatch):
    user_id = register(client).get_json()["data"]["id"]
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    monkeypatch.setattr(security, "_now", lambda: past)
    expired = codec.issue(ACCESS, user_id)
    monkeypatch.undo()

    resp = client.get(PROFILE, headers=bearer(expired))
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid or expired token"


def test_profile_for_deleted_user(client):
    register(client)
    tokens = login(client).get_json()
    session = storage.get_session()
    session.delete(storage.find_by_email(ALICE["email"]))
    session.commit()

    resp = client.get(PROFILE, headers=bearer(tokens["access_token"]))
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "User not found"


def test_refresh_token_rotation(client, codec):
    register(client)
    tokens = login(client).get_json()

    first = client.post(REFRESH, json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200
    new_tokens = first.get_json()
    assert new_tokens["refresh_token"] != tokens["refresh_token"]

    resp = client.get(PROFILE, headers=bearer(new_tokens["access_token"]))
    assert resp.status_code == 200

    replay = client.post(REFRESH, json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401


def test_refresh_accepts_bearer_header(client):
    register(client)
    tokens = login(client).get_json()
    resp = client.get(REFRESH, headers=bearer(tokens["refresh_token"]))
    assert resp.status_code == 200


def test_refresh_without_token(client):
    resp = client.post(REFRESH, json={})
    assert resp.status_code == 401


def test_logout_always_succeeds(client):
    assert client.get(LOGOUT).status_code == 200
    assert client.post(LOGOUT, headers=bearer("garbage")).status_code == 200

    register(client)
    tokens = login(client).get_json()
    for _ in range(2):
        resp = client.post(
            LOGOUT,
            headers=bearer(tokens["access_token"]),
            json={"refresh_token": tokens["refresh_token"]},
        )
        assert resp.status_code == 200

    assert client.post(REFRESH, json={"refresh_token": tokens["refresh_token"]}).status_code == 401


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    body = resp.get_json()
    assert body["error"] == "NOT_FOUND"
    assert "GET /api/v1/nope" in body["message"]


@pytest.fixture()
def cookie_app():
    app = create_app("testing", overrides={"AUTH_COOKIES": True})
    yield app
    storage.close()


def test_login_sets_http_only_cookies(cookie_app):
    with cookie_app.test_client() as client:
        register(client)
        resp = login(client)
        cookies = resp.headers.getlist("Set-Cookie")

    access = next(c for c in cookies if c.startswith("access_token="))
    refresh = next(c for c in cookies if c.startswith("refresh_token="))
    for cookie in (access, refresh):
        assert "HttpOnly" in cookie
        assert "SameSite=Strict" in cookie
    assert "Path=/api/v1/auth" in refresh


def test_cookie_takes_precedence_over_header(cookie_app):
    with cookie_app.test_client() as client:
        register(client)
        login(client)
        # a bogus header is ignored while the access cookie is present
        resp = client.get(PROFILE, headers=bearer("garbage"))
        assert resp.status_code == 200

        # refresh reads the refresh cookie and rotates it
        resp = client.post(REFRESH)
        assert resp.status_code == 200

        client.post(LOGOUT)
        resp = client.get(PROFILE)
        assert resp.status_code == 401


@pytest.fixture()
def limited_app():
    app = create_app("testing", overrides={"RATE_LIMIT_ENABLED": True, "AUTH_RATE_LIMIT": 2})
    yield app
    storage.close()


def test_login_is_rate_limited(limited_app):
    with limited_app.test_client() as client:
        statuses = [login(client).status_code for _ in range(3)]

    assert statuses == [401, 401, 429]


def test_rate_limit_is_per_ip(limited_app):
    with limited_app.test_client() as client:
        for _ in range(2):
            login(client)
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": ALICE["email"], "password": "x"},
            environ_base={"REMOTE_ADDR": "10.0.0.9"},
        )
    assert resp.status_code == 401


def test_spoofed_forwarded_for_does_not_reset_the_limit(limited_app):
    with limited_app.test_client() as client:
        statuses = [
            client.post(
                "/api/v1/auth/login",
                json={"email": ALICE["email"], "password": "x"},
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            ).status_code
            for i in range(4)
        ]

    assert statuses == [401, 401, 429, 429]


def test_forwarded_for_is_honoured_behind_a_trusted_proxy():
    app = create_app(
        "testing",
        overrides={"RATE_LIMIT_ENABLED": True, "AUTH_RATE_LIMIT": 2, "TRUSTED_PROXY_COUNT": 1},
    )
    with app.test_client() as client:
        statuses = [
            client.post(
                "/api/v1/auth/login",
                json={"email": ALICE["email"], "password": "x"},
                headers={"X-Forwarded-For": forwarded},
            ).status_code
            for forwarded in ("10.0.0.1", "10.0.0.1", "10.0.0.1", "10.0.0.2")
        ]
    storage.close()

    assert statuses == [401, 401, 429, 401]
