from __future__ import annotations

"""
store.py - SQLite file holding the dump tables.

SQLite: one .db file, no server. The connection is opened once per run,
shared by both table loads (sequentially) and closed once.

sqlite3.Error from opening, migrating and reading comes out as StoreError.
insert_many() is the exception: it raises sqlite3.Error as is and
BatchLoader turns it into InsertError with the batch position.
"""

from pathlib import Path
import sqlite3
from typing import Any, Sequence

from .errors import StoreError
from .schema import TABLE_RECORDS, reset_schema, table_columns


def _known_table(table: str) -> None:
    if table not in TABLE_RECORDS:
        raise StoreError(f"no such table: {table}")


class DumpStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open database {self.db_path}: {e}") from e
        try:
            self.conn.execute("PRAGMA synchronous=NORMAL;")
            self.conn.execute("PRAGMA temp_store=MEMORY;")
        except sqlite3.Error as e:
            self.conn.close()
            raise StoreError(f"cannot open database {self.db_path}: {e}") from e

    def close(self) -> None:
        try:
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"commit failed on {self.db_path}: {e}") from e
        finally:
            self.conn.close()

    def __enter__(self) -> "DumpStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def reset_schema(self) -> None:
        try:
            reset_schema(self.conn)
        except sqlite3.Error as e:
            raise StoreError(f"schema reset failed on {self.db_path}: {e}") from e

    def columns(self, table: str) -> list[str]:
        try:
            return table_columns(self.conn, table)
        except sqlite3.Error as e:
            raise StoreError(f"cannot read columns of {table}: {e}") from e

    def insert_many(self, table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        """
        One executemany in its own transaction: all rows of the call land or none do.
        Raises sqlite3.Error as is; table/column names must already be validated.
        """
        if table not in TABLE_RECORDS:
            raise sqlite3.OperationalError(f"no such table: {table}")
        cols = ", ".join(columns)
        marks = ", ".join("?" for _ in columns)
        with self.conn:
            self.conn.executemany(f"INSERT INTO {table}({cols}) VALUES({marks})", rows)
        return len(rows)

    def count(self, table: str) -> int:
        _known_table(table)
        try:
            row = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"cannot count {table}: {e}") from e
        return int(row[0]) if row else 0

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        _known_table(table)
        try:
            cur = self.conn.execute(f"SELECT * FROM {table} ORDER BY id")
            names = [d[0] for d in cur.description]
            return [dict(zip(names, r)) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"cannot read {table}: {e}") from e
