"""SerpAPI Google Jobs search.

One call to :meth:`SerpApiSource.fetch` is one HTTP request. Failures are
classified into the SourceError variants and never retried here.
"""
from __future__ import annotations

from typing import Any

import requests

from job_fetcher.errors import ApiReportedError, MalformedResponse, TransportError
from job_fetcher.log import get_logger
from job_fetcher.models import QuerySpec
from job_fetcher.sources.base import JobSource

log = get_logger(__name__)

SEARCH_URL = "https://serpapi.com/search"


def _error_text(resp: requests.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


class SerpApiSource(JobSource):
    name = "serpapi"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def params_for(self, query: QuerySpec) -> dict[str, str]:
        params = {
            "engine": query.engine,
            "q": query.term,
            "google_domain": query.google_domain,
            "location": query.location,
            "api_key": self.api_key,
        }
        if query.no_cache:
            params["no_cache"] = "true"
        return params

    def fetch(self, query: QuerySpec) -> list[dict[str, Any]]:
        try:
            r = self.session.get(SEARCH_URL, params=self.params_for(query), timeout=self.timeout)
        except requests.Timeout as exc:
            raise TransportError(f"Request timed out after {self.timeout:.0f}s: {exc}", query=query.term) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request failed: {exc}", query=query.term) from exc

        if r.status_code >= 400:
            detail = _error_text(r) or r.reason or "no detail"
            raise TransportError(f"HTTP {r.status_code}: {detail}", query=query.term)

        try:
            data = r.json()
        except ValueError as exc:
            raise MalformedResponse("Response body is not JSON", query=query.term) from exc
        if not isinstance(data, dict):
            raise MalformedResponse("Response body is not a JSON object", query=query.term)

        if data.get("error"):
            raise ApiReportedError(f"API error: {data['error']}", query=query.term)

        results = data.get("jobs_results")
        if not isinstance(results, list):
            raise MalformedResponse("Invalid API response: jobs_results missing", query=query.term)

        log.debug("SerpAPI query=%r returned %d jobs", query.term, len(results))
        return results
