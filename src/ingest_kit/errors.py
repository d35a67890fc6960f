from __future__ import annotations

"""
errors.py - error taxonomy shared by both pipelines.

Stages raise these and never recover locally; only the outer boundary
(cli.main and the zero-argument entry points) catches and logs them.
File system failures are left as builtin OSError.
"""

from typing import Optional, Sequence


class IngestError(Exception):
    """Base class for pipeline failures."""


class ParseError(IngestError):
    """CSV or HTML payload could not be decoded."""


class NetworkError(IngestError):
    """Transport failure: DNS, connect, reset, read timeout."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class HTTPError(IngestError):
    """The server answered, but not with a success status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Failed to get '{url}' ({status_code})")
        self.url = url
        self.status_code = int(status_code)


class ExtractError(IngestError):
    """Corrupt gzip layer or tar layer, or an unsafe member path."""


class StoreError(IngestError):
    """SQLite could not be opened, migrated or read."""


class InsertError(IngestError):
    def __init__(self, message: str, *, table: str, batch_idx: int, rows: int) -> None:
        super().__init__(message)
        self.table = table
        self.batch_idx = int(batch_idx)
        self.rows = int(rows)


class ScrapeAbortedError(IngestError):
    """One or more companies failed while on_error='abort'."""

    def __init__(self, failures: Sequence[object]) -> None:
        self.failures = list(failures)
        names = ", ".join(str(getattr(f, "name", f)) for f in self.failures[:5])
        more = "" if len(self.failures) <= 5 else f" (+{len(self.failures) - 5} more)"
        super().__init__(f"{len(self.failures)} company page(s) failed: {names}{more}")


class CliError(Exception):
    """Usage/configuration mistake: message goes to stderr, no traceback."""

    def __init__(self, message: str, *, exit_code: int = 2) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)
