from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence, Tuple, Type
from urllib.parse import urlparse

from cotizaciones.errors import ConfigError, StorageError
from cotizaciones.schema import get_schema_sql

logger = logging.getLogger("cotizaciones.db")


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    scheme = urlparse(s).scheme.lower()
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # sqlite:///path style and bare file paths both mean SQLite.
    return "sqlite"


def redact_dsn(dsn: str) -> str:
    """Hide the password of a URL-style DSN for log output."""
    parsed = urlparse(dsn or "")
    if not parsed.password:
        return dsn
    return dsn.replace(f":{parsed.password}@", ":***@", 1)


def dialect_of(conn: Any) -> str:
    return str(getattr(conn, "dialect", "sqlite") or "sqlite").lower()


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single-quoted string literals. Not a SQL parser, but
    sufficient for the statements in this package.
    """
    out: List[str] = []
    in_single = False
    for ch in sql:
        if ch == "'":
            in_single = not in_single
        elif ch == "?" and not in_single:
            out.append("%s")
            continue
        elif ch == "%" and not in_single:
            # Literal percent signs must be doubled for psycopg2.
            out.append("%%")
            continue
        out.append(ch)
    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _import_psycopg2() -> Any:
    try:
        import psycopg2
        import psycopg2.extras
    except ImportError as e:
        raise ConfigError(
            "Postgres selected but psycopg2 is not installed. "
            "Install psycopg2-binary (pip install .[postgres]) and try again."
        ) from e
    return psycopg2


def integrity_errors(conn: Any) -> Tuple[Type[BaseException], ...]:
    """Driver exception types raised on constraint violations for `conn`."""
    if dialect_of(conn) == "postgres":
        return (_import_psycopg2().IntegrityError,)
    return (sqlite3.IntegrityError,)


def _storage_error(exc: BaseException) -> StorageError:
    logger.error("database error: %s: %s", type(exc).__name__, exc)
    err = StorageError(f"{type(exc).__name__}: {exc}")
    err.__cause__ = exc
    return err


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Connect to SQLite or Postgres, commit on success, roll back on error.

    - SQLite: rows are sqlite3.Row (dict-like).
    - Postgres: uses psycopg2 (RealDictCursor) so rows behave like dicts.

    Driver errors surface as StorageError; other exceptions propagate unchanged.
    """
    dsn = (db_dsn or "").strip()

    if _detect_dialect(dsn) == "postgres":
        psycopg2 = _import_psycopg2()
        try:
            raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
        except psycopg2.Error as e:
            raise _storage_error(e) from e
        conn: Any = PGConnection(raw)
        driver_error: Type[BaseException] = psycopg2.Error
    else:
        if dsn.lower().startswith("sqlite:///"):
            dsn = dsn[len("sqlite:///") :]
        try:
            if dsn != ":memory:":
                Path(dsn).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(dsn, timeout=30)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA busy_timeout=5000;")  # 5s
        except (OSError, sqlite3.Error) as e:
            raise _storage_error(e) from e
        driver_error = sqlite3.Error

    try:
        yield conn
        conn.commit()
    except driver_error as e:
        conn.rollback()
        raise _storage_error(e) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create the quotations table if it does not exist."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {redact_dsn(db_dsn)}")
    ddl = get_schema_sql(dialect)
    with connect(db_dsn) as conn:
        for stmt in (s.strip() for s in ddl.split(";")):
            if stmt:
                conn.execute(stmt)
