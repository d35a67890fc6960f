from __future__ import annotations

"""
scrape.py - Pipeline A: companies CSV -> profile pages -> JSON.

  read_companies -> WorkerPool(PageFetcher.fetch) -> write_profiles

Failure policy (settings.on_error):
- "abort": every page is attempted; if any failed, ScrapeAbortedError lists
  all of them and no output is written (a previous file stays as it was).
- "skip":  successful profiles are written in input order, failures go to
  `<output>.errors.json`.
"""

import logging
from typing import Optional

from .csv_source import read_companies
from .errors import IngestError, ScrapeAbortedError
from .http_engine import HttpEngine
from .models import CompanyRef, CompanyProfile, ScrapeFailure, ScrapeReport
from .page_fetcher import PageFetcher
from .result_sink import write_failures, write_profiles
from .settings import ScrapeSettings
from .worker_pool import WorkerPool


logger = logging.getLogger(__name__)


def scrape_companies(
    companies: list[CompanyRef],
    fetcher: PageFetcher,
    *,
    concurrency: int,
) -> tuple[list[CompanyProfile], list[ScrapeFailure]]:
    """Fetch every company; returns (profiles, failures), both in input order."""
    pool: WorkerPool[CompanyRef, CompanyProfile] = WorkerPool(
        lambda c: fetcher.fetch(c.url),
        workers=concurrency,
        name="scrape",
    )
    profiles: list[CompanyProfile] = []
    failures: list[ScrapeFailure] = []
    for outcome in pool.run(companies):
        if outcome.ok and outcome.value is not None:
            profiles.append(outcome.value)
            continue
        err = outcome.error
        logger.warning("scrape failed for %s (%s): %s", outcome.item.name, outcome.item.url, err)
        failures.append(
            ScrapeFailure(
                name=outcome.item.name,
                url=outcome.item.url,
                error=str(err),
                error_type=type(err).__name__,
            )
        )
    return profiles, failures


def run_scrape(settings: ScrapeSettings, *, engine: Optional[HttpEngine] = None) -> ScrapeReport:
    companies = read_companies(settings.input_csv)
    logger.info("loaded %d companies from %s", len(companies), settings.input_csv)

    own_engine = engine is None
    eng = engine or HttpEngine(default_timeout=settings.timeout, default_headers=settings.headers)
    try:
        fetcher = PageFetcher(eng, timeout=settings.timeout)
        profiles, failures = scrape_companies(companies, fetcher, concurrency=settings.concurrency)
    finally:
        if own_engine:
            eng.close()

    if failures and settings.on_error == "abort":
        raise ScrapeAbortedError(failures)

    n = write_profiles(settings.output_json, profiles)
    logger.info("wrote %d profiles to %s", n, settings.output_json)

    errors_path: Optional[str] = None
    if failures:
        errors_path = settings.errors_json
        write_failures(errors_path, failures)
        logger.warning("%d companies failed, see %s", len(failures), errors_path)

    return ScrapeReport(
        profiles=tuple(profiles),
        failures=tuple(failures),
        output_path=settings.output_json,
        errors_path=errors_path,
    )


def process_company_list(settings: Optional[ScrapeSettings] = None) -> Optional[ScrapeReport]:
    """Zero-argument entry point: run with defaults, log any failure, never raise."""
    try:
        return run_scrape(settings or ScrapeSettings())
    except (IngestError, OSError) as e:
        logger.error("Error processing company list: %s", e)
        return None
