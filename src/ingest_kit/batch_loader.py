from __future__ import annotations

"""
batch_loader.py - CSV -> table in fixed-size batches.

Rows are streamed from the file; every `batch_size` rows go to the store in
one executemany call, the remainder goes as a final short batch. Each batch
is committed before the next row is read, so an insert failure is raised
from the batch that caused it and never lost behind later work. Batches
committed before a failure stay in the table.
"""

import logging
import sqlite3
from typing import Iterable, Iterator, TypeVar

from .csv_source import iter_rows
from .errors import InsertError
from .models import LoadStats
from .store import DumpStore


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100


def iter_batches(rows: Iterable[T], size: int = DEFAULT_BATCH_SIZE) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    batch: list[T] = []
    for row in rows:
        batch.append(row)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


class BatchLoader:
    def __init__(self, store: DumpStore, *, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.store = store
        self.batch_size = int(batch_size)

    def _columns_for(self, table: str, header: list[str]) -> list[str]:
        known = set(self.store.columns(table))
        if not known:
            raise InsertError(f"table {table!r} does not exist (run the schema migration first)", table=table, batch_idx=0, rows=0)
        unknown = [c for c in header if c not in known]
        if unknown:
            raise InsertError(f"{table}: CSV column(s) {unknown} not in table columns {sorted(known)}", table=table, batch_idx=0, rows=0)
        return header

    def load_rows(self, table: str, rows: Iterable[dict[str, str]]) -> LoadStats:
        sizes: list[int] = []
        columns: list[str] = []
        for batch_idx, batch in enumerate(iter_batches(rows, self.batch_size)):
            if not columns:
                columns = self._columns_for(table, list(batch[0].keys()))
            values = [tuple(r.get(c, "") for c in columns) for r in batch]
            try:
                self.store.insert_many(table, columns, values)
            except sqlite3.Error as e:
                raise InsertError(
                    f"{table}: batch #{batch_idx} ({len(batch)} rows) rejected: {e}",
                    table=table,
                    batch_idx=batch_idx,
                    rows=len(batch),
                ) from e
            sizes.append(len(batch))
            logger.debug("%s: batch #%d inserted (%d rows)", table, batch_idx, len(batch))

        stats = LoadStats(table=table, rows=sum(sizes), batches=tuple(sizes))
        logger.info("%s: %d rows in %d batch(es)", table, stats.rows, len(sizes))
        return stats

    def load_csv(self, csv_path: str, table: str) -> LoadStats:
        return self.load_rows(table, iter_rows(csv_path))
