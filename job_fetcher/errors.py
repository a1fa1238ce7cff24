"""Error taxonomy for the ingestion pipeline."""
from __future__ import annotations

from enum import Enum


class JobFetcherError(Exception):
    """Base class for every error raised by job_fetcher."""


class ConfigError(JobFetcherError):
    """Invalid settings or query-profile file."""


class SourceErrorKind(str, Enum):
    API_REPORTED = "api_reported"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"


class SourceError(JobFetcherError):
    """A single query to the external source failed.

    ``kind`` tells callers which way it failed; the subclasses below exist so
    ``except`` clauses can be specific, but handlers should match on ``kind``.
    """

    kind: SourceErrorKind = SourceErrorKind.TRANSPORT

    def __init__(self, message: str, *, query: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.query = query

    def __str__(self) -> str:
        if self.query:
            return f"{self.message} (query={self.query!r})"
        return self.message


class ApiReportedError(SourceError):
    """The source answered but flagged an application-level error."""

    kind = SourceErrorKind.API_REPORTED


class TransportError(SourceError):
    """The request itself failed: network, HTTP status, auth, timeout."""

    kind = SourceErrorKind.TRANSPORT


class MalformedResponse(SourceError):
    """The request succeeded but the payload lacks the result list."""

    kind = SourceErrorKind.MALFORMED_RESPONSE


class StoreError(JobFetcherError):
    """Unexpected persistence failure for one record."""

    def __init__(self, message: str, *, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class DuplicateError(JobFetcherError):
    """A record with the same identifier is already stored."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Duplicate job_id: {identifier}")
        self.identifier = identifier


class FatalStartupError(JobFetcherError):
    """The store could not be reached at process start."""
