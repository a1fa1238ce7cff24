"""Data models for job records, queries and run summaries."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass
class JobRecord:
    """Canonical job listing. The first four fields are required by the source contract."""

    identifier: str
    title: str
    company_name: str
    location: str
    logo_url: str | None = None
    posting_date: str | None = None
    employment_type: str | None = None
    apply_url: str | None = None


@dataclass(frozen=True)
class QuerySpec:
    term: str
    location: str = "India"
    google_domain: str = "google.co.in"
    no_cache: bool = False
    engine: str = "google_jobs"


@dataclass(frozen=True)
class QueryProfile:
    name: str
    schedule: str
    timezone: str
    queries: tuple[QuerySpec, ...] = ()


class QueryState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    FETCHED = "fetched"
    FETCH_FAILED = "fetch_failed"


class RecordOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    STORE_FAILED = "store_failed"


@dataclass
class QueryResult:
    query: QuerySpec
    state: QueryState = QueryState.PENDING
    error_kind: str | None = None
    error: str | None = None
    fetched: int = 0
    outcomes: dict[RecordOutcome, int] = field(
        default_factory=lambda: {o: 0 for o in RecordOutcome}
    )

    def record(self, outcome: RecordOutcome) -> None:
        self.outcomes[outcome] += 1


@dataclass
class RunSummary:
    profile: str
    started_at: datetime
    finished_at: datetime | None = None
    queries: list[QueryResult] = field(default_factory=list)
    fail_when_all_failed: bool = True

    def _total(self, outcome: RecordOutcome) -> int:
        return sum(q.outcomes[outcome] for q in self.queries)

    @property
    def inserted(self) -> int:
        return self._total(RecordOutcome.INSERTED)

    @property
    def duplicates(self) -> int:
        return self._total(RecordOutcome.DUPLICATE_SKIPPED)

    @property
    def store_failures(self) -> int:
        return self._total(RecordOutcome.STORE_FAILED)

    @property
    def failed_queries(self) -> int:
        return sum(1 for q in self.queries if q.state is QueryState.FETCH_FAILED)

    @property
    def all_queries_failed(self) -> bool:
        return bool(self.queries) and self.failed_queries == len(self.queries)

    @property
    def succeeded(self) -> bool:
        return not (self.fail_when_all_failed and self.all_queries_failed)

    def as_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "succeeded": self.succeeded,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "store_failures": self.store_failures,
            "failed_queries": self.failed_queries,
            "queries": [
                {
                    "term": q.query.term,
                    "state": q.state.value,
                    "error_kind": q.error_kind,
                    "error": q.error,
                    "fetched": q.fetched,
                    **{o.value: n for o, n in q.outcomes.items()},
                }
                for q in self.queries
            ],
        }
