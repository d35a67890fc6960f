"""ingest_kit package.

Two independent ingestion pipelines:
- scrape: companies CSV -> profile pages (HTML selectors) -> JSON
- dump:   .tar.gz download -> extract -> SQLite (batched inserts)

Entry point: `ingest-kit` (console script).
"""

__all__ = [
    "cli",
    "dump_load",
    "scrape",
]
