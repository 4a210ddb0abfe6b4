"""Quotation repository: CRUD over the `dolar` table.

Every function takes an open connection from `cotizaciones.db.connect` and
binds all values as parameters. Column names in dynamic UPDATEs come from a
fixed whitelist, never from the request.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from cotizaciones.db import dialect_of, integrity_errors
from cotizaciones.errors import Conflict, ValidationError

_COLUMNS = "fecha, apertura, cierre, bcv"

# Updatable columns; `fecha` is the key and never changes.
RATE_FIELDS = ("apertura", "cierre", "bcv")
_NULLABLE_FIELDS = ("apertura", "cierre")


def normalize_fecha(fecha: Any) -> str:
    """Return `fecha` as an ISO YYYY-MM-DD string or raise ValidationError."""
    if isinstance(fecha, date):
        return fecha.isoformat()
    s = str(fecha or "").strip()
    if not s:
        raise ValidationError("La fecha es requerida.")
    try:
        return date.fromisoformat(s).isoformat()
    except ValueError:
        raise ValidationError(f"Fecha inválida: {s}. Use el formato YYYY-MM-DD.")


def _rate(name: str, value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"El campo {name} debe ser numérico.")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"El campo {name} debe ser numérico.")
    if math.isnan(v) or math.isinf(v):
        raise ValidationError(f"El campo {name} debe ser numérico.")
    if v < 0:
        raise ValidationError(f"El campo {name} no puede ser negativo.")
    return v


def _as_float(value: Any) -> Optional[float]:
    # Postgres NUMERIC columns would come back as Decimal.
    return None if value is None else float(value)


def quote_from_row(row: Any) -> Dict[str, Any]:
    d = dict(row)
    fecha = d["fecha"]
    return {
        "fecha": fecha.isoformat() if isinstance(fecha, date) else str(fecha),
        "apertura": _as_float(d.get("apertura")),
        "cierre": _as_float(d.get("cierre")),
        "bcv": _as_float(d.get("bcv")),
    }


def find_by_date(conn: Any, fecha: Any) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM dolar WHERE fecha=?",
        (normalize_fecha(fecha),),
    ).fetchone()
    if row is None:
        return None
    return quote_from_row(row)


def list_all(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute(f"SELECT {_COLUMNS} FROM dolar ORDER BY fecha DESC").fetchall()
    return [quote_from_row(r) for r in rows]


def create_quote(
    conn: Any,
    *,
    fecha: Any,
    bcv: Any,
    apertura: Any = 0.0,
    cierre: Any = 0.0,
) -> int:
    """Insert a quotation and return its id.

    `apertura` and `cierre` default to 0 when omitted (None).
    """
    f = normalize_fecha(fecha)
    values = (
        f,
        _rate("apertura", 0.0 if apertura is None else apertura),
        _rate("cierre", 0.0 if cierre is None else cierre),
        _rate("bcv", bcv),
    )

    existing = conn.execute("SELECT id FROM dolar WHERE fecha=?", (f,)).fetchone()
    if existing is not None:
        raise Conflict(f"Ya existe una cotización para la fecha {f}")

    sql = "INSERT INTO dolar (fecha, apertura, cierre, bcv) VALUES (?,?,?,?)"
    postgres = dialect_of(conn) == "postgres"
    if postgres:
        sql += " RETURNING id"

    try:
        cur = conn.execute(sql, values)
    except integrity_errors(conn) as e:
        # Lost a race with a concurrent insert for the same date.
        raise Conflict(f"Ya existe una cotización para la fecha {f}") from e

    if postgres:
        return int(cur.fetchone()["id"])
    return int(cur.lastrowid)


def update_quote(conn: Any, fecha: Any, fields: Mapping[str, Any]) -> int:
    """Change only the supplied fields of the quotation for `fecha`.

    `fields` is sparse: keys outside apertura/cierre/bcv are ignored, and at
    least one recognized key is required. An explicit None clears apertura or
    cierre; bcv cannot be cleared. Returns the number of rows matched (0 when
    no quotation exists for `fecha`).
    """
    f = normalize_fecha(fecha)

    sets: List[tuple[str, Any]] = []
    for name in RATE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if value is None and name in _NULLABLE_FIELDS:
            sets.append((name, None))
        else:
            sets.append((name, _rate(name, value)))

    if not sets:
        raise ValidationError("No se proporcionaron campos para actualizar.")

    assignments = ", ".join(f"{k}=?" for k, _ in sets)
    params = [v for _, v in sets] + [f]
    cur = conn.execute(f"UPDATE dolar SET {assignments} WHERE fecha=?", params)
    return int(cur.rowcount)


def delete_quote(conn: Any, fecha: Any) -> int:
    cur = conn.execute("DELETE FROM dolar WHERE fecha=?", (normalize_fecha(fecha),))
    return int(cur.rowcount)
