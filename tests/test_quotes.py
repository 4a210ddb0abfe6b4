"""Quotation repository against a temp SQLite database."""

from datetime import date
from pathlib import Path
from typing import Any

import pytest

from cotizaciones.db import connect, init_db
from cotizaciones.errors import Conflict, StorageError, ValidationError
from cotizaciones.quotes import (
    create_quote,
    delete_quote,
    find_by_date,
    list_all,
    update_quote,
)


def test_create_then_find_returns_same_values(conn: Any) -> None:
    quote_id = create_quote(conn, fecha="2024-01-02", apertura=36.1, cierre=36.4, bcv=36.25)
    assert quote_id > 0
    assert find_by_date(conn, "2024-01-02") == {
        "fecha": "2024-01-02",
        "apertura": 36.1,
        "cierre": 36.4,
        "bcv": 36.25,
    }
    assert find_by_date(conn, date(2024, 1, 2)) is not None


def test_create_defaults_opening_and_closing_to_zero(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-03", bcv=36.3)
    quote = find_by_date(conn, "2024-01-03")
    assert quote["apertura"] == 0.0
    assert quote["cierre"] == 0.0


def test_create_duplicate_date_is_a_conflict(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)
    with pytest.raises(Conflict):
        create_quote(conn, fecha="2024-01-02", bcv=40.0)
    assert find_by_date(conn, "2024-01-02")["bcv"] == 36.25


def test_unique_constraint_still_reports_conflict_when_check_is_raced(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)

    class BlindCheck:
        """Connection whose existence check misses the row, as in a concurrent insert."""

        def execute(self, sql: str, params: Any = ()) -> Any:
            if sql.startswith("SELECT id FROM dolar"):
                return conn.execute("SELECT id FROM dolar WHERE 1=0")
            return conn.execute(sql, params)

    with pytest.raises(Conflict):
        create_quote(BlindCheck(), fecha="2024-01-02", bcv=40.0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"fecha": "", "bcv": 1.0},
        {"fecha": None, "bcv": 1.0},
        {"fecha": "02/01/2024", "bcv": 1.0},
        {"fecha": "2024-01-02", "bcv": None},
        {"fecha": "2024-01-02", "bcv": "abc"},
        {"fecha": "2024-01-02", "bcv": True},
        {"fecha": "2024-01-02", "bcv": -1},
        {"fecha": "2024-01-02", "bcv": 1.0, "apertura": -0.5},
        {"fecha": "2024-01-02", "bcv": float("nan")},
    ],
)
def test_create_rejects_invalid_input(conn: Any, kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        create_quote(conn, **kwargs)
    assert list_all(conn) == []


def test_list_all_is_newest_first(conn: Any) -> None:
    for day in ("2024-01-02", "2024-01-10", "2023-12-31"):
        create_quote(conn, fecha=day, bcv=1.0)
    assert [q["fecha"] for q in list_all(conn)] == ["2024-01-10", "2024-01-02", "2023-12-31"]


def test_list_all_empty(conn: Any) -> None:
    assert list_all(conn) == []


def test_update_changes_only_supplied_fields(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", apertura=36.1, cierre=36.4, bcv=36.25)
    assert update_quote(conn, "2024-01-02", {"cierre": 37.0}) == 1
    assert find_by_date(conn, "2024-01-02") == {
        "fecha": "2024-01-02",
        "apertura": 36.1,
        "cierre": 37.0,
        "bcv": 36.25,
    }


def test_update_ignores_unknown_keys_and_never_touches_fecha(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)
    assert update_quote(conn, "2024-01-02", {"bcv": 37.5, "fecha": "2030-01-01", "id": 99}) == 1
    assert find_by_date(conn, "2024-01-02")["bcv"] == 37.5
    assert find_by_date(conn, "2030-01-01") is None


def test_update_without_recognized_fields_is_invalid(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)
    with pytest.raises(ValidationError):
        update_quote(conn, "2024-01-02", {})
    with pytest.raises(ValidationError):
        update_quote(conn, "2024-01-02", {"fecha": "2024-01-02"})


def test_update_missing_date_affects_nothing(conn: Any) -> None:
    assert update_quote(conn, "2024-01-02", {"bcv": 1.0}) == 0


def test_update_with_same_values_still_counts_the_row(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)
    assert update_quote(conn, "2024-01-02", {"bcv": 36.25}) == 1


def test_explicit_null_clears_opening_but_not_reference_rate(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", apertura=36.1, bcv=36.25)
    assert update_quote(conn, "2024-01-02", {"apertura": None}) == 1
    assert find_by_date(conn, "2024-01-02")["apertura"] is None
    with pytest.raises(ValidationError):
        update_quote(conn, "2024-01-02", {"bcv": None})


def test_delete_then_find_is_empty(conn: Any) -> None:
    create_quote(conn, fecha="2024-01-02", bcv=36.25)
    assert delete_quote(conn, "2024-01-02") == 1
    assert find_by_date(conn, "2024-01-02") is None
    assert delete_quote(conn, "2024-01-02") == 0


def test_values_that_look_like_sql_are_just_data(conn: Any) -> None:
    with pytest.raises(ValidationError):
        find_by_date(conn, "2024-01-02' OR '1'='1")
    create_quote(conn, fecha="2024-01-02", bcv=1.0)
    assert len(list_all(conn)) == 1


def test_changes_are_committed_when_the_block_exits(tmp_path: Path) -> None:
    dsn = str(tmp_path / "commit.sqlite")
    init_db(dsn)
    with connect(dsn) as c:
        create_quote(c, fecha="2024-01-02", bcv=1.0)
    with connect(dsn) as c:
        assert find_by_date(c, "2024-01-02") is not None


def test_changes_are_rolled_back_on_error(tmp_path: Path) -> None:
    dsn = str(tmp_path / "rollback.sqlite")
    init_db(dsn)
    with pytest.raises(Conflict):
        with connect(dsn) as c:
            create_quote(c, fecha="2024-01-02", bcv=1.0)
            create_quote(c, fecha="2024-01-02", bcv=2.0)
    with connect(dsn) as c:
        assert list_all(c) == []


def test_driver_errors_become_storage_errors(tmp_path: Path) -> None:
    dsn = str(tmp_path / "no_schema.sqlite")
    with pytest.raises(StorageError) as exc_info:
        with connect(dsn) as c:
            list_all(c)
    assert "no such table" in exc_info.value.message


def test_unopenable_database_is_a_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(StorageError):
        with connect(str(blocker / "db.sqlite")):
            pass
