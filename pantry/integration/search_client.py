"""Brave Search client for vendor price lookups."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from pantry.config import AppConfig
from pantry.pipeline.errors import ConfigurationError
from pantry.pipeline.types import Candidate

logger = structlog.get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class SearchResult:
    title: str
    description: str

    @property
    def usable(self) -> bool:
        return bool(self.title or self.description)

    def as_snippet(self) -> str:
        if self.title and self.description:
            return f"{self.title}: {self.description}"
        return self.title or self.description


def _clean(text: Any) -> str:
    """Drop highlight markup and entities Brave puts in titles and descriptions."""
    if not isinstance(text, str):
        return ""
    return html.unescape(_TAG_RE.sub("", text)).strip()


class SearchClient:
    """Client for the Brave web search API.

    Owns a single httpx.AsyncClient for its lifetime; construct once and
    share it between runs.
    """

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.search.brave.com/res/v1/web/search",
        result_count: int = 5,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ConfigurationError("BRAVE_API_KEY is required for price lookups")

        self.url = url
        self.result_count = result_count
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Accept": "application/json",
            "X-Subscription-Token": api_key,
        }

    @classmethod
    def from_config(cls, config: AppConfig) -> SearchClient:
        return cls(
            api_key=config.search.api_key or "",
            url=config.search.url,
            result_count=config.search.result_count,
            timeout=config.search.timeout_seconds,
        )

    @staticmethod
    def build_query(candidate: Candidate) -> str:
        return (
            f"{candidate.vendor.name} {candidate.ingredient.name} "
            f"price per {candidate.ingredient.unit}"
        )

    async def search(self, query: str) -> list[SearchResult]:
        """Run one query and return up to result_count results.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
        """
        response = await self.client.get(
            self.url,
            params={"q": query, "count": self.result_count},
            headers=self._headers,
        )
        response.raise_for_status()

        payload = response.json()
        raw_results = (payload.get("web") or {}).get("results") or []

        results = [
            SearchResult(
                title=_clean(item.get("title")),
                description=_clean(item.get("description")),
            )
            for item in raw_results[: self.result_count]
            if isinstance(item, dict)
        ]
        return [r for r in results if r.usable]

    async def snippets_for(self, candidate: Candidate) -> str | None:
        """Snippet block for one pair, or None when the search found nothing usable."""
        query = self.build_query(candidate)
        results = await self.search(query)

        logger.debug("search_results", query=query, count=len(results))

        if not results:
            return None
        return "\n".join(r.as_snippet() for r in results)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
