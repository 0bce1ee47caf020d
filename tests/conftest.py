import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("WORKTRACK_APP_SECRET", "test-secret")
os.environ.setdefault("WORKTRACK_API_BASE_URL", "http://backend.test")

from fastapi.testclient import TestClient

from worktrack import create_app
from worktrack.services.backend import BackendClient
from worktrack.services.repository import QueryCache

EMPLOYEE = {"id": 7, "username": "mrossi", "fullName": "Mario Rossi", "role": "employee", "needsPasswordChange": False}
ADMIN = {"id": 1, "username": "admin", "fullName": "Anna Bianchi", "role": "admin", "needsPasswordChange": False}
BACKEND_COOKIE = "connect.sid"


class FakeBackend:
    """In-memory stand-in for the REST backend, served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.user: Dict[str, Any] = dict(EMPLOYEE)
        self.password = "secret1"
        self.lists: Dict[str, Any] = {}
        self.overrides: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if path in self.overrides:
            return self.overrides[path](request)
        if path == "/api/login":
            body = json.loads(request.content or b"{}")
            if body.get("username") == self.user["username"] and body.get("password") == self.password:
                return httpx.Response(200, json=self.user, headers={"set-cookie": f"{BACKEND_COOKIE}=s%3Aabc; Path=/"})
            return httpx.Response(401, json={"message": "Unauthorized"})
        if path == "/api/logout":
            return httpx.Response(200)
        if request.headers.get("cookie", "").find(BACKEND_COOKIE) < 0:
            return httpx.Response(401, json={"message": "Unauthorized"})
        if path == "/api/user":
            return httpx.Response(200, json=self.user)
        if path == "/api/change-password":
            body = json.loads(request.content or b"{}")
            if body.get("currentPassword") != self.password:
                return httpx.Response(400, json={"message": "Password corrente non valida"})
            self.password = body["newPassword"]
            self.user["needsPasswordChange"] = False
            return httpx.Response(200, json={"message": "Password aggiornata con successo"})
        if path in self.lists:
            return httpx.Response(200, json=self.lists[path])
        if path.startswith("/api/"):
            return httpx.Response(200, json=[])
        return httpx.Response(404, json={"message": "Not found"})

    def count(self, path: str) -> int:
        return sum(1 for _, called in self.calls if called == path)


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def backend_client(fake_backend):
    return BackendClient("http://backend.test", transport=httpx.MockTransport(fake_backend.handler))


@pytest.fixture()
def app(backend_client):
    return create_app(backend=backend_client, cache=QueryCache())


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def sign_in(client: TestClient, username: str = "mrossi", password: str = "secret1", next: str = "/"):
    return client.post(
        "/auth",
        data={"username": username, "password": password, "next": next},
        follow_redirects=False,
    )


@pytest.fixture()
def signed_in(client):
    response = sign_in(client)
    assert response.status_code == 302
    return client
