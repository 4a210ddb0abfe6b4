import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from dotenv import load_dotenv

# Load a local .env file if present; real environment variables take precedence.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _server_dsn() -> Optional[str]:
    """Build a Postgres URL from discrete DB_* connection parameters.

    Returns None when DB_SERVER is unset so the SQLite fallback applies.
    """

    host = (os.environ.get("DB_SERVER") or "").strip()
    if not host:
        return None
    user = quote(os.environ.get("DB_USERNAME", "postgres"), safe="")
    password = quote(os.environ.get("DB_PASSWORD", ""), safe="")
    name = os.environ.get("DB_NAME", "cotizaciones")
    port = (os.environ.get("DB_PORT") or "").strip()
    netloc = f"{user}:{password}@{host}" if password else f"{user}@{host}"
    if port:
        netloc += f":{port}"
    return f"postgresql://{netloc}/{name}"


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Database
    # -----------------
    # Preferred: COTIZACIONES_DATABASE_URL (or DATABASE_URL) for Postgres.
    # Then: DB_SERVER / DB_USERNAME / DB_PASSWORD / DB_NAME / DB_PORT.
    # Fallback: COTIZACIONES_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("COTIZACIONES_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or _server_dsn()
        or os.environ.get("COTIZACIONES_DB_PATH", "./cotizaciones.sqlite")
    )

    # -----------------
    # Auth (JWT + users file)
    # -----------------
    # JSON list of {"username", "password_hash", "roles"}; re-read on every login.
    USERS_FILE: str = os.environ.get("AUTH_USERS_FILE", "./users.json")

    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev_change_me_to_a_long_random_secret")
    AUTH_TOKEN_TTL_SECONDS: int = int(os.environ.get("JWT_TTL", "3600"))  # 1 hour

    # -----------------
    # HTTP
    # -----------------
    # The browser form is served from another origin, so the default is a wildcard.
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "*")

    DEBUG: bool = _env_bool("DEBUG", False) is True


def load_config() -> Config:
    return Config()
