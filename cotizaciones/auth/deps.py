from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cotizaciones.config import Config
from cotizaciones.errors import AuthenticationError, AuthorizationError, ConfigError

from .permissions import allowed_methods
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise ConfigError("server_config_missing")
    return cfg


def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Sin token")
    return decode_access_token(token=credentials.credentials, secret=cfg.AUTH_JWT_SECRET)


def require_method_permission(
    request: Request,
    claims: Dict[str, Any] = Depends(get_current_claims),
) -> Dict[str, Any]:
    """Allow the request only if one of the token's roles grants its HTTP method."""
    if request.method.upper() not in allowed_methods(claims.get("roles", [])):
        raise AuthorizationError()
    return claims
