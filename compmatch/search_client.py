from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .config import (
    ORGANIC_LIMIT,
    SEARCH_COUNTRY,
    SEARCH_LANGUAGE,
    SEARCH_TIMEOUT,
    SERPAPI_URL,
    require_search_credentials,
)
from .errors import ConfigurationFailure, DiscoveryFailure

_AUTH_MARKERS = ("invalid api key", "api key is invalid", "missing api key")
_QUOTA_MARKERS = ("run out of searches", "searches per month", "rate limit")


@dataclass
class SearchHits:
    organic: List[Dict[str, Any]] = field(default_factory=list)
    shopping: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.organic) + len(self.shopping)


class SerpApiClient:
    """
    Google results through SerpAPI.

    Raises ``ConfigurationFailure`` when the key is missing or rejected and
    ``DiscoveryFailure`` for quota, transport and provider errors. "No
    results" is not an error.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        country: str = SEARCH_COUNTRY,
        language: str = SEARCH_LANGUAGE,
    ):
        self.client = client
        self.api_key = require_search_credentials(api_key)
        self.country = country
        self.language = language

    async def search(self, phrase: str, num: int = ORGANIC_LIMIT) -> SearchHits:
        params = {
            "api_key": self.api_key,
            "engine": "google",
            "q": phrase,
            "num": max(1, num),
            "gl": self.country,
            "hl": self.language,
            "device": "desktop",
        }
        try:
            r = await self.client.get(SERPAPI_URL, params=params, timeout=SEARCH_TIMEOUT)
        except httpx.HTTPError as e:
            raise DiscoveryFailure(f"search transport error: {e}", {"phrase": phrase}) from e

        try:
            data = r.json()
        except ValueError:
            data = {}
        error = str(data.get("error") or "") if isinstance(data, dict) else ""
        lowered = error.lower()

        if r.status_code in (401, 403) or any(m in lowered for m in _AUTH_MARKERS):
            raise ConfigurationFailure("Search provider rejected the API key", {"status": r.status_code})
        if r.status_code == 429 or any(m in lowered for m in _QUOTA_MARKERS):
            raise DiscoveryFailure("search quota exhausted", {"status": r.status_code, "phrase": phrase})
        if r.status_code >= 400:
            raise DiscoveryFailure(f"search HTTP {r.status_code}", {"phrase": phrase, "error": error})
        if error:
            # SerpAPI reports "no results" through the error field
            if "hasn't returned any results" in lowered or "no results" in lowered:
                logger.info("Search: no results for {!r}", phrase)
                return SearchHits()
            raise DiscoveryFailure(f"search provider error: {error}", {"phrase": phrase})

        hits = SearchHits(
            organic=list(data.get("organic_results") or []),
            shopping=list(data.get("shopping_results") or []),
        )
        logger.info(
            "Search: {} organic / {} shopping results for {!r}",
            len(hits.organic),
            len(hits.shopping),
            phrase,
        )
        return hits
