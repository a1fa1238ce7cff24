"""
Query batch orchestration.

Runs: fetch (per query) → normalize (per result) → insert (per record) → summary.
A failed query is logged and skipped; a failed or duplicate record never stops
the rest of its query. Nothing is retried within a run.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from job_fetcher.errors import DuplicateError, SourceError, StoreError, TransportError
from job_fetcher.log import get_logger
from job_fetcher.models import (
    JobRecord,
    QueryProfile,
    QueryResult,
    QuerySpec,
    QueryState,
    RecordOutcome,
    RunSummary,
)
from job_fetcher.normalize import normalize_job
from job_fetcher.sources.base import JobSource
from job_fetcher.store import JobStore

log = get_logger(__name__)


def _fetch(source: JobSource, query: QuerySpec) -> list:
    try:
        return source.fetch(query)
    except SourceError:
        raise
    except Exception as exc:
        # anything else a source raises counts as a transport failure
        raise TransportError(f"{type(exc).__name__}: {exc}", query=query.term) from exc


def _store_one(store: JobStore, record: JobRecord) -> RecordOutcome:
    try:
        store.insert(record)
    except DuplicateError:
        log.info("Duplicate job_id skipped: %s", record.identifier)
        return RecordOutcome.DUPLICATE_SKIPPED
    except StoreError as exc:
        log.error("Error inserting job %s: %s", record.identifier, exc)
        return RecordOutcome.STORE_FAILED
    except Exception as exc:
        log.error("Unexpected error inserting job %s: %s", record.identifier, exc, exc_info=True)
        return RecordOutcome.STORE_FAILED
    log.debug("Inserted job %s (%s @ %s)", record.identifier, record.title, record.company_name)
    return RecordOutcome.INSERTED


def run_query(query: QuerySpec, *, source: JobSource, store: JobStore) -> QueryResult:
    result = QueryResult(query=query)

    log.info("Fetching jobs for: %s", query.term)
    result.state = QueryState.FETCHING
    try:
        raws = _fetch(source, query)
    except SourceError as exc:
        result.state = QueryState.FETCH_FAILED
        result.error_kind = exc.kind.value
        result.error = str(exc)
        log.error("Error fetching jobs for %r [%s]: %s", query.term, exc.kind.value, exc.message)
        return result

    result.state = QueryState.FETCHED
    result.fetched = len(raws)
    for raw in raws:
        result.record(_store_one(store, normalize_job(raw)))

    log.info(
        "Query %r: fetched=%d inserted=%d duplicates=%d store_failures=%d",
        query.term,
        result.fetched,
        result.outcomes[RecordOutcome.INSERTED],
        result.outcomes[RecordOutcome.DUPLICATE_SKIPPED],
        result.outcomes[RecordOutcome.STORE_FAILED],
    )
    return result


def run_queries(
    queries: Iterable[QuerySpec],
    *,
    source: JobSource,
    store: JobStore,
    profile: str = "adhoc",
    fail_when_all_failed: bool = True,
) -> RunSummary:
    """Run every query in order and return the aggregated summary.

    The run counts as failed only when every query failed and
    ``fail_when_all_failed`` is set; that is reported, never raised.
    """
    summary = RunSummary(
        profile=profile,
        started_at=datetime.now(timezone.utc),
        fail_when_all_failed=fail_when_all_failed,
    )
    queries = list(queries)
    log.info("Starting job fetch and store process [%s]: %d queries", profile, len(queries))

    for query in queries:
        summary.queries.append(run_query(query, source=source, store=store))

    summary.finished_at = datetime.now(timezone.utc)
    log.info(
        "Run complete [%s] inserted=%d duplicates=%d store_failures=%d failed_queries=%d/%d",
        profile,
        summary.inserted,
        summary.duplicates,
        summary.store_failures,
        summary.failed_queries,
        len(summary.queries),
    )
    if not summary.succeeded:
        log.error("Run [%s] failed: all %d queries failed", profile, len(summary.queries))
    return summary


def run_profile(
    profile: QueryProfile,
    *,
    source: JobSource,
    store: JobStore,
    fail_when_all_failed: bool = True,
) -> RunSummary:
    return run_queries(
        profile.queries,
        source=source,
        store=store,
        profile=profile.name,
        fail_when_all_failed=fail_when_all_failed,
    )
