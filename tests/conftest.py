from __future__ import annotations

import httpx
import pytest

from api import create_app
from models import storage

ALICE = {"name": "Alice", "email": "alice@example.com", "password": "password123"}


@pytest.fixture()
def app():
    app = create_app("testing")
    yield app
    storage.close()


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def auth_service(app):
    return app.extensions["auth_service"]


@pytest.fixture()
def codec(auth_service):
    return auth_service.codec


def register(client, **overrides):
    return client.post("/api/v1/auth/register", json={**ALICE, **overrides})


def login(client, email=ALICE["email"], password=ALICE["password"]):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def flask_transport(app, calls: list | None = None) -> httpx.MockTransport:
    """httpx transport that hands every request to the Flask app in-process."""
    test_client = app.test_client(use_cookies=False)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append((request.method, request.url.path))
        headers = [
            (k, v) for k, v in request.headers.items() if k.lower() not in ("host", "content-length")
        ]
        resp = test_client.open(
            request.url.path,
            method=request.method,
            headers=headers,
            data=request.content,
            query_string=request.url.query,
        )
        return httpx.Response(
            resp.status_code,
            headers=[(k, v) for k, v in resp.headers.items() if k.lower() != "content-length"],
            content=resp.get_data(),
        )

    return httpx.MockTransport(handler)
