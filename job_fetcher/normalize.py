"""Map raw Google Jobs results onto the canonical JobRecord.

Only ``job_id``, ``title``, ``company_name`` and ``location`` are required by
the source contract, and they are passed through untouched: the store is the
one place that rejects a record missing any of them. Everything else is
optional and degrades to ``None`` when absent, empty or of an unexpected
shape.
"""
from __future__ import annotations

from typing import Any, Iterable

from job_fetcher.models import JobRecord


def dig(obj: Any, *path: str | int) -> Any:
    """Walk ``path`` through nested dicts/lists; ``None`` as soon as a level is missing."""
    cur = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or not -len(cur) <= key < len(cur):
                return None
        elif not isinstance(cur, dict):
            return None
        elif key not in cur:
            return None
        cur = cur[key]
        if cur is None:
            return None
    return cur


def _optional(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def normalize_job(raw: dict[str, Any]) -> JobRecord:
    if not isinstance(raw, dict):
        raw = {}
    return JobRecord(
        identifier=raw.get("job_id"),
        title=raw.get("title"),
        company_name=raw.get("company_name"),
        location=raw.get("location"),
        logo_url=_optional(raw.get("thumbnail")),
        posting_date=_optional(dig(raw, "detected_extensions", "posted_at")),
        employment_type=_optional(dig(raw, "detected_extensions", "schedule_type")),
        apply_url=_optional(dig(raw, "apply_options", 0, "link")),
    )


def normalize_jobs(raws: Iterable[dict[str, Any]]) -> list[JobRecord]:
    return [normalize_job(r) for r in raws]
