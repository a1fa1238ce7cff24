from .base import JobSource
from .serpapi import SerpApiSource
from .static import StaticSource

from job_fetcher.config import Settings
from job_fetcher.log import get_logger

log = get_logger(__name__)

__all__ = ["JobSource", "SerpApiSource", "StaticSource", "get_source"]


def get_source(settings: Settings) -> JobSource:
    source = SerpApiSource(settings.serpapi_key, timeout=settings.fetch_timeout)
    log.info("Registered source: SerpAPI (Google Jobs), timeout=%.0fs", settings.fetch_timeout)
    return source
