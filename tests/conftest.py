from typing import Dict, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from social_scheduler.api.server import create_app
from social_scheduler.auth.crud import create_user
from social_scheduler.config import Config


TEST_SECRET = "test-secret-do-not-use"


def make_config(tmp_path, **overrides) -> Config:
    values = dict(
        DB_DSN=str(tmp_path / "scheduler.sqlite"),
        AUTH_JWT_SECRET=TEST_SECRET,
        AUTH_BOOTSTRAP_ADMIN_EMAIL=None,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=None,
        AUTH_COOKIE_SECURE=False,
        CORS_ALLOW_ORIGINS="",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def cfg(tmp_path) -> Config:
    return make_config(tmp_path)


@pytest.fixture
def app(cfg) -> FastAPI:
    return create_app(cfg)


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    # Entering the client runs the lifespan (schema + admin bootstrap).
    with TestClient(app) as c:
        yield c


def signup(client: TestClient, email: str, password: str = "secret1", name: str = "Test User"):
    return client.post("/auth/signup", json={"name": name, "email": email, "password": password})


def login(client: TestClient, email: str, password: str = "secret1") -> str:
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    # Tests authenticate explicitly with headers; drop the session cookie.
    client.cookies.clear()
    return resp.json()["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(client) -> str:
    assert signup(client, "ann@example.com", name="Ann").status_code == 201
    return login(client, "ann@example.com")


@pytest.fixture
def other_token(client) -> str:
    assert signup(client, "bob@example.com", name="Bob").status_code == 201
    return login(client, "bob@example.com")


@pytest.fixture
def admin_token(client, app) -> str:
    with app.state.db.connection() as conn:
        create_user(conn, email="root@example.com", password="adminpass", name="Admin", role="admin")
    return login(client, "root@example.com", "adminpass")
