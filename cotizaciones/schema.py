"""Database schema for the quotations API.

A single table, `dolar`, holds one row per calendar date. Dates are stored as
ISO-8601 TEXT (YYYY-MM-DD) on both engines; ISO dates sort lexicographically
in calendar order, so `ORDER BY fecha DESC` is newest first.

The UNIQUE constraint on `fecha` is what finally guarantees one row per date;
the API's existence check before insert only exists to answer 409 cleanly.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
CREATE TABLE IF NOT EXISTS dolar (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fecha TEXT NOT NULL UNIQUE,
    apertura REAL DEFAULT 0,
    cierre REAL DEFAULT 0,
    bcv REAL NOT NULL,
    CHECK (apertura IS NULL OR apertura >= 0),
    CHECK (cierre IS NULL OR cierre >= 0),
    CHECK (bcv >= 0)
);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    out = re.sub(r"\bREAL\b", "DOUBLE PRECISION", ddl)
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
