from __future__ import annotations

"""
cli.py - `ingest-kit` entry point.

Commands:
- scrape   : companies CSV -> profile pages -> JSON        (pipeline A)
- dump     : download -> extract -> migrate -> load         (pipeline B)
- download : fetch the dump archive only
- extract  : unpack an already downloaded archive
- migrate  : drop and recreate the dump tables (destroys their data)
- load     : load already extracted CSVs into the database

Settings: built-in defaults -> --config JSON -> command flags.
Every command prints a JSON summary on stdout; logs go to stderr.
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Optional, Sequence

from .dump_load import fetch_dump, load_tables, migrate, run_dump_load, unpack_dump
from .errors import CliError, IngestError
from .logging_setup import configure_logging
from .scrape import run_scrape
from .settings import DumpSettings, ScrapeSettings, load_settings


logger = logging.getLogger(__name__)


def _pretty(obj: Any, pretty: bool) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=(2 if pretty else None))


def _override(obj: Any, **flags: Any) -> Any:
    """Replace dataclass fields with flags that were actually given."""
    given = {k: v for k, v in flags.items() if v is not None}
    return replace(obj, **given) if given else obj


def _scrape_settings(args: argparse.Namespace) -> ScrapeSettings:
    base = load_settings(args.config).scrape
    out = _override(
        base,
        input_csv=args.input,
        output_json=args.out,
        concurrency=args.concurrency,
        timeout=args.timeout,
        on_error=args.on_error,
    )
    if out.concurrency < 1:
        raise CliError("--concurrency must be >= 1")
    return out


def _dump_settings(args: argparse.Namespace) -> DumpSettings:
    base = load_settings(args.config).dump
    out = _override(
        base,
        url=getattr(args, "url", None),
        work_dir=getattr(args, "work_dir", None),
        db_path=getattr(args, "db", None),
        batch_size=getattr(args, "batch_size", None),
    )
    if out.batch_size < 1:
        raise CliError("--batch-size must be >= 1")
    return out


def cmd_scrape(args: argparse.Namespace) -> int:
    report = run_scrape(_scrape_settings(args))
    print(_pretty(report.summary(), args.pretty))
    return 0


def cmd_dump(args: argparse.Namespace) -> int:
    summary = run_dump_load(_dump_settings(args), download=not args.no_download)
    print(_pretty(summary, args.pretty))
    return 0


def cmd_download(args: argparse.Namespace) -> int:
    st = _dump_settings(args)
    n = fetch_dump(st)
    print(_pretty({"url": st.url, "out": st.archive_path, "bytes": n}, args.pretty))
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    st = _dump_settings(args)
    files = unpack_dump(st)
    print(_pretty({"archive": st.archive_path, "work_dir": st.work_dir, "files": files}, args.pretty))
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    st = _dump_settings(args)
    migrate(st)
    print(_pretty({"db": st.db_path, "tables": list(st.tables), "reset": True}, args.pretty))
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    st = _dump_settings(args)
    stats = load_tables(st, reset=not args.no_reset)
    print(_pretty({"db": st.db_path, "tables": [s.to_dict() for s in stats]}, args.pretty))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ingest-kit")
    p.add_argument("--config", default=None, help="settings JSON with 'scrape' and/or 'dump' sections")
    p.add_argument("--verbose", "-v", action="store_true", help="DEBUG logs (per-request HTTP lines, per-batch inserts)")
    p.add_argument("--pretty", action="store_true", help="pretty JSON output")

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("scrape", help="scrape company profile pages listed in a CSV into JSON")
    s.add_argument("--input", default=None, help="companies CSV (columns: 'Company Name', 'YC URL')")
    s.add_argument("--out", default=None, help="output JSON path")
    s.add_argument("--concurrency", type=int, default=None, help="max pages fetched at once")
    s.add_argument("--timeout", type=float, default=None, help="per-request timeout, seconds")
    s.add_argument("--on-error", dest="on_error", choices=["abort", "skip"], default=None)
    s.set_defaults(fn=cmd_scrape)

    def _dump_flags(sp: argparse.ArgumentParser, *, url: bool = False, db: bool = False, batch: bool = False) -> None:
        sp.add_argument("--work-dir", dest="work_dir", default=None, help="dir for the archive and extracted CSVs")
        if url:
            sp.add_argument("--url", default=None, help="dump archive URL (.tar.gz)")
        if db:
            sp.add_argument("--db", default=None, help="SQLite database path")
        if batch:
            sp.add_argument("--batch-size", dest="batch_size", type=int, default=None)

    d = sub.add_parser("dump", help="download, extract and load the data dump")
    _dump_flags(d, url=True, db=True, batch=True)
    d.add_argument("--no-download", action="store_true", help="reuse the archive already in --work-dir")
    d.set_defaults(fn=cmd_dump)

    dl = sub.add_parser("download", help="download the dump archive only")
    _dump_flags(dl, url=True)
    dl.set_defaults(fn=cmd_download)

    ex = sub.add_parser("extract", help="extract the downloaded archive into --work-dir")
    _dump_flags(ex)
    ex.set_defaults(fn=cmd_extract)

    m = sub.add_parser("migrate", help="drop and recreate customers/organizations (data is lost)")
    m.add_argument("--db", default=None, help="SQLite database path")
    m.set_defaults(fn=cmd_migrate)

    ld = sub.add_parser("load", help="load extracted CSVs into the database")
    _dump_flags(ld, db=True, batch=True)
    ld.add_argument("--no-reset", action="store_true", help="append to existing tables instead of recreating them")
    ld.set_defaults(fn=cmd_load)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    configure_logging(verbose=bool(args.verbose))

    try:
        return int(args.fn(args) or 0)
    except CliError as e:
        print(str(e), file=sys.stderr)
        return int(e.exit_code)
    except (IngestError, OSError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
