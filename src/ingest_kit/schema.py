from __future__ import annotations

"""
schema.py - the two fixed dump tables and the reset migration.

reset_schema() is destructive: every call drops both tables and
recreates them empty. There is no versioning.
"""

from dataclasses import fields
import logging
import sqlite3
from typing import Any

from .models import CustomerRecord, OrganizationRecord


logger = logging.getLogger(__name__)


TABLE_RECORDS: dict[str, Any] = {
    "customers": CustomerRecord,
    "organizations": OrganizationRecord,
}


def record_columns(table: str) -> tuple[str, ...]:
    """Data columns of a table (without the generated id)."""
    return tuple(f.name for f in fields(TABLE_RECORDS[table]))


def table_ddl(table: str) -> str:
    cols = ",\n    ".join(f"{c} TEXT NOT NULL" for c in record_columns(table))
    return (
        f"CREATE TABLE {table} (\n"
        f"    id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
        f"    {cols}\n"
        f")"
    )


def reset_schema(conn: sqlite3.Connection) -> None:
    """Migration step: drop customers/organizations if present, create them empty."""
    with conn:
        for table in TABLE_RECORDS:
            conn.execute(f"DROP TABLE IF EXISTS {table}")
        for table in TABLE_RECORDS:
            conn.execute(table_ddl(table))
    logger.info("schema reset: %s", ", ".join(TABLE_RECORDS))


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return [str(r[1]) for r in rows]


def schema_snapshot(conn: sqlite3.Connection) -> dict[str, str]:
    """name -> CREATE statement for every user table."""
    rows = conn.execute(
        "SELECT name, sql FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    return {str(name): str(sql) for name, sql in rows}
