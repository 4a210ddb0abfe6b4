"""Error taxonomy and the FastAPI handlers that render it.

Every failure leaves the API as ``{"error": "<message>"}`` with the status
code carried by the exception. Server-side failures (storage, config,
unexpected exceptions) are logged with full detail and answered with a
generic message.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("cotizaciones.errors")

INTERNAL_ERROR_MESSAGE = "Error interno del servidor."
INVALID_BODY_MESSAGE = "Cuerpo de la solicitud inválido."


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Solicitud inválida."


class AuthenticationError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "No autenticado."


class InvalidCredentials(AuthenticationError):
    default_message = "Credenciales inválidas."


class InvalidToken(AuthenticationError):
    default_message = "Token inválido o expirado"


class AuthorizationError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Método no permitido para su rol"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Ruta no encontrada"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "El recurso ya existe."


class StorageError(ApiError):
    """Relational store failure. The driver message stays in the logs."""


class ConfigError(ApiError):
    """Unreadable or malformed server-side configuration (e.g. the users file)."""


def _error_response(status_code: int, message: str) -> JSONResponse:
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def api_error_handler(request: Request, exc: ApiError):  # type: ignore
    if exc.status_code >= 500:
        # The message may carry driver or parse detail; keep it server-side.
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        if exc.__cause__ is not None:
            logger.error("caused by: %r", exc.__cause__)
        return _error_response(exc.status_code, INTERNAL_ERROR_MESSAGE)
    return _error_response(exc.status_code, exc.message)


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return _error_response(status.HTTP_404_NOT_FOUND, NotFound.default_message)
    detail = exc.detail if isinstance(exc.detail, str) else INTERNAL_ERROR_MESSAGE
    return _error_response(exc.status_code, detail)


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    missing: set[str] = set()
    invalid: set[str] = set()
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            return _error_response(status.HTTP_400_BAD_REQUEST, INVALID_BODY_MESSAGE)
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query")]
        if not loc:
            continue
        target = missing if err.get("type") == "missing" else invalid
        target.add(".".join(loc))

    if missing:
        message = "Campos requeridos: " + ", ".join(sorted(missing)) + "."
    elif invalid:
        message = "Valor inválido para: " + ", ".join(sorted(invalid)) + "."
    else:
        message = INVALID_BODY_MESSAGE
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)
