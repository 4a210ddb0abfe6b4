from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from cotizaciones import __version__, errors
from cotizaciones.auth import authenticate, require_method_permission
from cotizaciones.auth.deps import get_config
from cotizaciones.auth.security import create_access_token
from cotizaciones.config import Config, load_config
from cotizaciones.db import connect, init_db, redact_dsn
from cotizaciones.quotes import (
    RATE_FIELDS,
    create_quote,
    delete_quote,
    find_by_date,
    list_all,
    update_quote,
)


CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Access-Control-Allow-Headers", "Authorization", "X-Requested-With"]


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Auth
# -----------------------------


class LoginRequest(BaseModel):
    username: str
    password: str


@router.post("/login")
def login(payload: LoginRequest, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    if not payload.username or not payload.password:
        raise errors.ValidationError("Usuario y contraseña son requeridos.")

    user = authenticate(cfg.USERS_FILE, payload.username, payload.password)
    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        username=user.username,
        roles=user.roles,
        ttl_seconds=cfg.AUTH_TOKEN_TTL_SECONDS,
    )
    _debug(f"login ok: username={user.username} roles={','.join(user.roles)}")
    return {"token": token}


# -----------------------------
# Quotations
# -----------------------------


def _reject_bool(value: Any) -> Any:
    # JSON true/false would otherwise coerce to 1.0/0.0.
    if isinstance(value, bool):
        raise ValueError("rate must be a number")
    return value


class QuoteCreate(BaseModel):
    fecha: date
    bcv: float
    apertura: Optional[float] = None
    cierre: Optional[float] = None

    @field_validator(*RATE_FIELDS, mode="before")
    @classmethod
    def rates_are_numbers(cls, value: Any) -> Any:
        return _reject_bool(value)


class QuoteUpdate(BaseModel):
    """Sparse update: only fields present in the body are applied.

    An explicit null clears apertura/cierre; omitting a field leaves it as is.
    """

    fecha: date
    apertura: Optional[float] = None
    cierre: Optional[float] = None
    bcv: Optional[float] = None

    @field_validator(*RATE_FIELDS, mode="before")
    @classmethod
    def rates_are_numbers(cls, value: Any) -> Any:
        return _reject_bool(value)


@router.get("/")
def get_quotes(
    fecha: Optional[date] = Query(None),
    cfg: Config = Depends(get_config),
    _claims: Dict[str, Any] = Depends(require_method_permission),
) -> Any:
    with connect(cfg.DB_DSN) as conn:
        if fecha is None:
            return list_all(conn)
        quote = find_by_date(conn, fecha)
    if quote is None:
        raise errors.NotFound(f"Cotización no encontrada para la fecha {fecha.isoformat()}")
    return quote


@router.post("/", status_code=201)
def post_quote(
    payload: QuoteCreate,
    cfg: Config = Depends(get_config),
    _claims: Dict[str, Any] = Depends(require_method_permission),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        quote_id = create_quote(
            conn,
            fecha=payload.fecha,
            bcv=payload.bcv,
            apertura=payload.apertura,
            cierre=payload.cierre,
        )
    return {"message": "Cotización añadida exitosamente.", "id": quote_id}


@router.put("/")
def put_quote(
    payload: QuoteUpdate,
    cfg: Config = Depends(get_config),
    _claims: Dict[str, Any] = Depends(require_method_permission),
) -> Dict[str, Any]:
    fields = {name: getattr(payload, name) for name in RATE_FIELDS if name in payload.model_fields_set}
    with connect(cfg.DB_DSN) as conn:
        affected = update_quote(conn, payload.fecha, fields)
    if affected == 0:
        raise errors.NotFound(f"Cotización no encontrada para la fecha {payload.fecha.isoformat()}")
    return {"message": f"Cotización actualizada exitosamente para la fecha {payload.fecha.isoformat()}"}


@router.delete("/")
def remove_quote(
    fecha: Optional[date] = Query(None),
    cfg: Config = Depends(get_config),
    _claims: Dict[str, Any] = Depends(require_method_permission),
) -> Dict[str, Any]:
    if fecha is None:
        raise errors.ValidationError("La fecha es requerida para eliminar.")
    with connect(cfg.DB_DSN) as conn:
        affected = delete_quote(conn, fecha)
    if affected == 0:
        raise errors.NotFound(f"Cotización no encontrada para la fecha {fecha.isoformat()}")
    return {"message": f"Cotización eliminada exitosamente para la fecha {fecha.isoformat()}"}


# Registered last: unknown routes still go through token + role checks first.
@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"])
def unknown_route(
    path: str,
    _claims: Dict[str, Any] = Depends(require_method_permission),
) -> None:
    raise errors.NotFound()


# -----------------------------
# App factory
# -----------------------------


async def preflight_middleware(request: Request, call_next):  # type: ignore
    """Answer every OPTIONS request with 204 and the CORS headers, no auth.

    Other responses get the allowed origin even when the client sent no Origin.
    """
    origin = _allow_origin(request.app.state.cfg, request.headers.get("origin"))
    if request.method != "OPTIONS":
        response = await call_next(request)
        if origin and "access-control-allow-origin" not in response.headers:
            response.headers["Access-Control-Allow-Origin"] = origin
        return response
    headers = {
        "Content-Type": "application/json; charset=utf-8",
        "Access-Control-Allow-Methods": ", ".join(CORS_METHODS),
        "Access-Control-Allow-Headers": ", ".join(CORS_HEADERS),
    }
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
    return Response(status_code=204, headers=headers)


def _cors_origins(cfg: Config) -> List[str]:
    return [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]


def _allow_origin(cfg: Config, origin: Optional[str]) -> Optional[str]:
    origins = _cors_origins(cfg)
    if "*" in origins:
        return "*"
    if origin and origin in origins:
        return origin
    return None


def create_app(cfg: Config | None = None) -> FastAPI:
    """Application factory.

    Pass a Config to isolate tests (temp DB, temp users file); otherwise the
    configuration is loaded from the environment.
    """
    cfg = cfg or load_config()

    # Ensure schema exists.
    init_db(cfg.DB_DSN)

    app = FastAPI(title="Cotizaciones API", version=__version__, debug=cfg.DEBUG)
    # Handlers and dependencies read config from here, never from the environment.
    app.state.cfg = cfg

    origins = _cors_origins(cfg)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
        )
    app.middleware("http")(preflight_middleware)

    app.add_exception_handler(errors.ApiError, errors.api_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    app.include_router(router)

    _debug(f"app ready: db={redact_dsn(cfg.DB_DSN)} users_file={cfg.USERS_FILE}")
    return app
