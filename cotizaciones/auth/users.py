"""Credential store backed by a static JSON file.

The file is a JSON list of objects::

    [{"username": "admin1", "password_hash": "$pbkdf2-sha256$...", "roles": ["admin"]}]

It is owned outside this service and re-read on every login, so edits take
effect without a restart.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple

from cotizaciones.errors import ConfigError, InvalidCredentials

from .security import dummy_verify, verify_password

logger = logging.getLogger("cotizaciones.auth")


@dataclass(frozen=True)
class User:
    username: str
    password_hash: str
    roles: Tuple[str, ...]


def _user_from_entry(entry: Any) -> Optional[User]:
    if not isinstance(entry, dict):
        return None
    username = entry.get("username")
    password_hash = entry.get("password_hash")
    roles = entry.get("roles")
    if not isinstance(username, str) or not isinstance(password_hash, str):
        return None
    if isinstance(roles, str):
        roles = [roles]
    if not isinstance(roles, list):
        return None
    return User(username=username, password_hash=password_hash, roles=tuple(str(r) for r in roles))


def load_users(path: str | Path) -> List[User]:
    """Read every usable user record; incomplete entries are skipped."""
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("cannot read users file %s: %s", p, e)
        raise ConfigError(f"cannot read users file {p}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("invalid JSON in users file %s: %s", p, e)
        raise ConfigError(f"invalid JSON in users file {p}") from e

    if not isinstance(data, list):
        logger.error("users file %s must contain a JSON list, got %s", p, type(data).__name__)
        raise ConfigError(f"users file {p} must contain a JSON list")

    users = []
    for entry in data:
        user = _user_from_entry(entry)
        if user is not None:
            users.append(user)
    return users


def find_user(path: str | Path, username: str) -> Optional[User]:
    for user in load_users(path):
        if user.username == username:
            return user
    return None


def authenticate(path: str | Path, username: str, password: str) -> User:
    """Return the user when the password matches its stored hash.

    Unknown users and wrong passwords raise the same InvalidCredentials.
    """
    user = find_user(path, username)
    if user is None:
        dummy_verify()
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user
