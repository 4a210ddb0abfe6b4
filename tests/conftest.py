"""Shared fixtures: a temp SQLite DB, a temp users file and an API client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient

from cotizaciones.api.server import create_app
from cotizaciones.auth.security import hash_password
from cotizaciones.config import Config
from cotizaciones.db import connect, init_db

SECRET = "test-secret-0123456789-abcdefghijklmnopqrstuvwxyz"

PASSWORDS = {
    "admin1": "secret",
    "editor1": "editor-pass",
    "viewer1": "viewer-pass",
}
ROLES = {
    "admin1": ["admin"],
    "editor1": ["editor"],
    "viewer1": ["viewer"],
}


@pytest.fixture(scope="session")
def user_entries() -> List[Dict[str, object]]:
    entries: List[Dict[str, object]] = [
        {"username": name, "password_hash": hash_password(pw), "roles": ROLES[name]}
        for name, pw in PASSWORDS.items()
    ]
    # Incomplete records are ignored by the credential store.
    entries.append({"username": "broken", "roles": ["admin"]})
    return entries


@pytest.fixture
def users_file(tmp_path: Path, user_entries: List[Dict[str, object]]) -> Path:
    path = tmp_path / "users.json"
    path.write_text(json.dumps(user_entries), encoding="utf-8")
    return path


@pytest.fixture
def cfg(tmp_path: Path, users_file: Path) -> Config:
    return Config(
        DB_DSN=str(tmp_path / "cotizaciones.sqlite"),
        USERS_FILE=str(users_file),
        AUTH_JWT_SECRET=SECRET,
        AUTH_TOKEN_TTL_SECONDS=3600,
        CORS_ALLOW_ORIGINS="*",
    )


@pytest.fixture
def conn(cfg: Config) -> Iterator[object]:
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as c:
        yield c


@pytest.fixture
def client(cfg: Config) -> TestClient:
    return TestClient(create_app(cfg))


@pytest.fixture
def token_for(client: TestClient) -> Callable[[str], str]:
    def _login(username: str) -> str:
        resp = client.post("/login", json={"username": username, "password": PASSWORDS[username]})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _login


@pytest.fixture
def auth_headers(token_for: Callable[[str], str]) -> Callable[[str], Dict[str, str]]:
    def _headers(username: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token_for(username)}"}

    return _headers
