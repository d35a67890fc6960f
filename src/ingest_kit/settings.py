"""
settings.py - run settings for both pipelines (data only, no I/O besides loading JSON).

Layering, later wins:
  built-in defaults -> settings JSON file (`--config`) -> CLI flags

Settings file example
---------------------
{
  "scrape": {
    "input_csv": "inputs/companies.csv",
    "output_json": "out/scraped.json",
    "concurrency": 8,
    "timeout": 30.0,
    "on_error": "abort"
  },
  "dump": {
    "url": "https://fiber-challenges.s3.amazonaws.com/dump.tar.gz",
    "work_dir": "tmp",
    "db_path": "out/database.sqlite",
    "batch_size": 100
  }
}
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Literal, Optional
import json

from .errors import CliError


OnError = Literal["abort", "skip"]

DEFAULT_USER_AGENT = "ingest-kit/0.1 (+https://github.com/)"

DEFAULT_DUMP_URL = "https://fiber-challenges.s3.amazonaws.com/dump.tar.gz"


@dataclass
class ScrapeSettings:
    """
    Pipeline A.

    - concurrency: size of the worker set (simultaneous in-flight pages)
    - on_error:
        "abort" - every page is still attempted, then the run fails and writes nothing
        "skip"  - successful profiles are written, failures go to `<output>.errors.json`
    """
    input_csv: str = "inputs/companies.csv"
    output_json: str = "out/scraped.json"
    concurrency: int = 8
    timeout: float = 30.0
    on_error: OnError = "abort"
    headers: dict[str, str] = field(default_factory=lambda: {"User-Agent": DEFAULT_USER_AGENT})

    @property
    def errors_json(self) -> str:
        p = Path(self.output_json)
        return str(p.with_name(p.stem + ".errors.json"))

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "ScrapeSettings":
        base = ScrapeSettings()
        out = _apply(base, d)
        if out.on_error not in ("abort", "skip"):
            raise CliError(f"scrape.on_error must be 'abort' or 'skip', got {out.on_error!r}")
        if int(out.concurrency) < 1:
            raise CliError("scrape.concurrency must be >= 1")
        return out


@dataclass
class DumpSettings:
    """Pipeline B. Archive and CSVs live in work_dir; the DB is a single SQLite file."""
    url: str = DEFAULT_DUMP_URL
    work_dir: str = "tmp"
    archive_name: str = "dump.tar.gz"
    db_path: str = "out/database.sqlite"
    batch_size: int = 100
    timeout: float = 60.0
    tables: dict[str, str] = field(
        default_factory=lambda: {
            "customers": "customers.csv",
            "organizations": "organizations.csv",
        }
    )

    @property
    def archive_path(self) -> str:
        return str(Path(self.work_dir) / self.archive_name)

    def csv_path(self, table: str) -> str:
        return str(Path(self.work_dir) / self.tables[table])

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "DumpSettings":
        out = _apply(DumpSettings(), d)
        if int(out.batch_size) < 1:
            raise CliError("dump.batch_size must be >= 1")
        return out


@dataclass
class Settings:
    scrape: ScrapeSettings = field(default_factory=ScrapeSettings)
    dump: DumpSettings = field(default_factory=DumpSettings)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Settings":
        sc = d.get("scrape", {})
        dm = d.get("dump", {})
        sc = {} if sc is None else sc
        dm = {} if dm is None else dm
        if not isinstance(sc, dict) or not isinstance(dm, dict):
            raise CliError("settings sections 'scrape' and 'dump' must be JSON objects")
        return Settings(scrape=ScrapeSettings.from_dict(sc), dump=DumpSettings.from_dict(dm))


def _apply(obj: Any, d: dict[str, Any]) -> Any:
    """Copy known keys from d onto a dataclass instance, coercing to the default's type."""
    known = {f.name for f in fields(obj)}
    changes: dict[str, Any] = {}
    for k, v in (d or {}).items():
        if k not in known:
            raise CliError(f"unknown setting: {k!r}")
        if v is None:
            continue
        cur = getattr(obj, k)
        if isinstance(cur, dict):
            if not isinstance(v, dict):
                raise CliError(f"setting {k!r} must be an object")
            changes[k] = {str(kk): str(vv) for kk, vv in v.items()}
        elif isinstance(cur, bool):
            changes[k] = bool(v)
        elif isinstance(cur, (int, float)):
            try:
                changes[k] = type(cur)(v)
            except (TypeError, ValueError):
                raise CliError(f"setting {k!r} must be a number, got {v!r}")
        else:
            changes[k] = str(v)
    return replace(obj, **changes)


def load_settings(path: Optional[str] = None) -> Settings:
    if not path:
        return Settings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise CliError(f"settings file not found: {path}")
    except json.JSONDecodeError as e:
        raise CliError(f"settings file is not valid JSON: {path}: {e}")
    if not isinstance(raw, dict):
        raise CliError(f"settings must be a JSON object: {path}")
    return Settings.from_dict(raw)
