"""In-memory job source for tests and offline replays."""
from __future__ import annotations

from typing import Any, Mapping

from job_fetcher.errors import SourceError
from job_fetcher.log import get_logger
from job_fetcher.models import QuerySpec
from job_fetcher.sources.base import JobSource

log = get_logger(__name__)


class StaticSource(JobSource):
    """Answers each search term from canned results.

    A value that is a SourceError instance is raised instead of returned.
    Unknown terms return an empty list. ``calls`` records the terms asked for.
    """

    name = "static"

    def __init__(self, responses: Mapping[str, list[dict[str, Any]] | SourceError]) -> None:
        self.responses = dict(responses)
        self.calls: list[str] = []

    def fetch(self, query: QuerySpec) -> list[dict[str, Any]]:
        self.calls.append(query.term)
        answer = self.responses.get(query.term, [])
        if isinstance(answer, SourceError):
            raise answer
        log.debug("StaticSource query=%r returned %d jobs", query.term, len(answer))
        return list(answer)
