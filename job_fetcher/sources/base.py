from abc import ABC, abstractmethod
from typing import Any

from job_fetcher.models import QuerySpec


class JobSource(ABC):
    name: str = "unknown"

    @abstractmethod
    def fetch(self, query: QuerySpec) -> list[dict[str, Any]]:
        """Return the raw result objects for one query, or raise SourceError."""
