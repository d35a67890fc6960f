from __future__ import annotations

"""
dump_load.py - Pipeline B: remote .tar.gz -> work dir -> SQLite.

  download_file -> extract_tar_gz -> reset_schema -> BatchLoader (customers, organizations)

Strictly sequential. Each step is also usable alone (see cli: download,
extract, migrate, load).
"""

import logging
from typing import Any, Optional

from .batch_loader import BatchLoader
from .downloader import download_file
from .errors import IngestError
from .extractor import extract_tar_gz, list_extracted
from .http_engine import HttpEngine
from .models import LoadStats
from .settings import DumpSettings
from .store import DumpStore


logger = logging.getLogger(__name__)


def fetch_dump(settings: DumpSettings, *, engine: Optional[HttpEngine] = None) -> int:
    own_engine = engine is None
    eng = engine or HttpEngine(default_timeout=settings.timeout)
    try:
        return download_file(settings.url, settings.archive_path, engine=eng)
    finally:
        if own_engine:
            eng.close()


def unpack_dump(settings: DumpSettings) -> list[str]:
    extract_tar_gz(settings.archive_path, settings.work_dir)
    files = list_extracted(settings.work_dir)
    logger.info("Extracted files: %s", files)
    return files


def migrate(settings: DumpSettings) -> None:
    with DumpStore(settings.db_path) as store:
        store.reset_schema()


def load_tables(settings: DumpSettings, *, reset: bool = True) -> list[LoadStats]:
    """Load every configured CSV into its table over one connection, one table after another."""
    stats: list[LoadStats] = []
    with DumpStore(settings.db_path) as store:
        if reset:
            store.reset_schema()
        loader = BatchLoader(store, batch_size=settings.batch_size)
        for table in settings.tables:
            stats.append(loader.load_csv(settings.csv_path(table), table))
    return stats


def run_dump_load(
    settings: DumpSettings,
    *,
    engine: Optional[HttpEngine] = None,
    download: bool = True,
) -> dict[str, Any]:
    downloaded: Optional[int] = None
    if download:
        downloaded = fetch_dump(settings, engine=engine)
    files = unpack_dump(settings)
    stats = load_tables(settings, reset=True)
    logger.info("Data successfully processed and stored in the database.")
    return {
        "db": settings.db_path,
        "archive": settings.archive_path,
        "downloaded_bytes": downloaded,
        "extracted": files,
        "tables": [s.to_dict() for s in stats],
    }


def process_data_dump(settings: Optional[DumpSettings] = None) -> Optional[dict[str, Any]]:
    """Zero-argument entry point: run with defaults, log any failure, never raise."""
    try:
        return run_dump_load(settings or DumpSettings())
    except (IngestError, OSError) as e:
        logger.error("Error processing data dump: %s", e)
        return None
