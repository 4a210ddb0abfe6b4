from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import jwt
from passlib.context import CryptContext

from cotizaciones.errors import InvalidToken


# New hashes use pbkdf2_sha256; bcrypt hashes ($2y$/$2b$, e.g. from PHP's
# password_hash) in an existing users file still verify.
_pwd = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")
_JWT_ALG = "HS256"
_REQUIRED_CLAIMS = ["exp", "iat", "sub"]


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unknown or malformed hash format.
        return False


def dummy_verify() -> None:
    """Spend the time of a real verification when there is no user to check."""
    _pwd.dummy_verify()


def create_access_token(
    *,
    secret: str,
    username: str,
    roles: Iterable[str],
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or datetime.now(timezone.utc)
    exp = issued + timedelta(seconds=max(1, int(ttl_seconds)))

    payload: Dict[str, Any] = {
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
        "sub": username,
        "roles": list(roles),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry and return the claims.

    Only HS256 is accepted, so unsigned (`alg: none`) tokens and tokens signed
    with any other algorithm are rejected. A token is expired once now >= exp.
    """
    if not token:
        raise InvalidToken()
    if not secret:
        raise ValueError("jwt_secret_blank")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[_JWT_ALG],
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken() from e

    roles = claims.get("roles", [])
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise InvalidToken()
    return claims
