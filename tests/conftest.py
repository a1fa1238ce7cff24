from __future__ import annotations

from typing import Any

import pytest

from job_fetcher.models import QueryProfile, QuerySpec
from job_fetcher.store import JobStore


@pytest.fixture
def store(tmp_path):
    s = JobStore(f"sqlite:///{tmp_path / 'jobs.db'}")
    s.create_schema()
    yield s
    s.dispose()


def make_raw(job_id: str | None, **overrides: Any) -> dict[str, Any]:
    """A Google Jobs result as SerpAPI returns it."""
    raw: dict[str, Any] = {
        "job_id": job_id,
        "title": "Software Engineer",
        "company_name": "Google",
        "location": "Bengaluru, Karnataka, India",
        "thumbnail": "https://serpapi.com/logo.png",
        "detected_extensions": {"posted_at": "3 days ago", "schedule_type": "Full-time"},
        "apply_options": [
            {"title": "LinkedIn", "link": "https://www.linkedin.com/jobs/view/1"},
            {"title": "Indeed", "link": "https://in.indeed.com/job/2"},
        ],
    }
    raw.update(overrides)
    if job_id is None:
        raw.pop("job_id")
    return raw


@pytest.fixture
def raw_job():
    return make_raw


def make_profile(name: str, *terms: str, schedule: str = "0 0 * * 0") -> QueryProfile:
    return QueryProfile(
        name=name,
        schedule=schedule,
        timezone="Asia/Kolkata",
        queries=tuple(QuerySpec(term=t) for t in terms),
    )
