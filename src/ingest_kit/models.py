from __future__ import annotations

"""
models.py - pipeline records.

All records are frozen: built once by a stage, handed downstream, dropped.
JSON keys follow the published output format (camel-case `teamSize`).
"""

from dataclasses import dataclass, field
from typing import Any, Optional


NA = "N/A"


@dataclass(frozen=True)
class CompanyRef:
    name: str
    url: str


@dataclass(frozen=True)
class JobListing:
    title: str
    location: str

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "location": self.location}


@dataclass(frozen=True)
class FounderRef:
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass(frozen=True)
class CompanyProfile:
    """
    Fields missing on the page carry sentinels (NA / 0) instead of failing.
    jobs/founders keep page order and are empty tuples when nothing matched.
    """
    name: str = NA
    founded: str = NA
    description: str = NA
    team_size: int = 0
    jobs: tuple[JobListing, ...] = field(default_factory=tuple)
    founders: tuple[FounderRef, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "founded": self.founded,
            "description": self.description,
            "teamSize": self.team_size,
            "jobs": [j.to_dict() for j in self.jobs],
            "founders": [f.to_dict() for f in self.founders],
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "CompanyProfile":
        jobs = d.get("jobs") or []
        founders = d.get("founders") or []
        return CompanyProfile(
            name=str(d.get("name", NA)),
            founded=str(d.get("founded", NA)),
            description=str(d.get("description", NA)),
            team_size=int(d.get("teamSize", 0) or 0),
            jobs=tuple(JobListing(title=str(j.get("title", "")), location=str(j.get("location", ""))) for j in jobs),
            founders=tuple(FounderRef(name=str(f.get("name", ""))) for f in founders),
        )


@dataclass(frozen=True)
class ScrapeFailure:
    name: str
    url: str
    error: str
    error_type: str = "IngestError"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "error": self.error, "error_type": self.error_type}


@dataclass(frozen=True)
class ScrapeReport:
    profiles: tuple[CompanyProfile, ...]
    failures: tuple[ScrapeFailure, ...]
    output_path: Optional[str] = None
    errors_path: Optional[str] = None

    def summary(self) -> dict[str, Any]:
        return {
            "profiles": len(self.profiles),
            "failures": len(self.failures),
            "out": self.output_path,
            "errors_out": self.errors_path,
        }


# Pipeline B rows. The loader inserts CSV rows as plain dicts; these types
# document the column contract of each table.

@dataclass(frozen=True)
class OrganizationRecord:
    name: str
    industry: str
    address: str


@dataclass(frozen=True)
class CustomerRecord:
    name: str
    email: str
    phone: str
    address: str
    # loosely typed FK to organizations.id, stored as text, not enforced
    organization_id: str


@dataclass(frozen=True)
class LoadStats:
    table: str
    rows: int
    batches: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"table": self.table, "rows": self.rows, "batches": list(self.batches)}
