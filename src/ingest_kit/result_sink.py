from __future__ import annotations

"""
result_sink.py - JSON artifacts of the scrape pipeline.

Plain overwrite, no temp-file swap: a crash mid-write can leave a truncated file.
"""

import json
from pathlib import Path
from typing import Any, Iterable

from .errors import ParseError
from .models import CompanyProfile, ScrapeFailure


def _write_json(path: str, obj: Any) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
        f.write("\n")


def write_profiles(path: str, profiles: Iterable[CompanyProfile]) -> int:
    data = [p.to_dict() for p in profiles]
    _write_json(path, data)
    return len(data)


def write_failures(path: str, failures: Iterable[ScrapeFailure]) -> int:
    data = [f.to_dict() for f in failures]
    _write_json(path, data)
    return len(data)


def read_profiles(path: str) -> list[CompanyProfile]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ParseError(f"{path}: not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ParseError(f"{path}: expected a JSON array of profiles")
    return [CompanyProfile.from_dict(d) for d in data if isinstance(d, dict)]
