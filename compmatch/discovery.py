from __future__ import annotations

from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from loguru import logger

from .cache import TTLCache
from .config import DISCOVERY_CACHE_MAX_ENTRIES, MatchSettings
from .constants import BLOCKED_DOMAINS, BLOCKED_PATH_SEGMENTS
from .normalize import collapse_ws
from .pipeline_types import CandidateUrl
from .search_client import SerpApiClient
from .utils.urls import canon_url, domain_of, host_matches


def is_blocked(
    url: str,
    domains: Iterable[str] = BLOCKED_DOMAINS,
    path_segments: Iterable[str] = BLOCKED_PATH_SEGMENTS,
) -> bool:
    """Video/social/encyclopedia hosts and listing-style paths are not products."""
    host = domain_of(url)
    if not host:
        return True
    if any(host_matches(host, d) for d in domains):
        return True
    path = (urlparse(url).path or "/").lower()
    # trailing slash so "/category" matches "/category/"
    padded = path if path.endswith("/") else path + "/"
    return any(seg in padded for seg in path_segments)


def cache_key(phrase: str, exclude_domain: Optional[str]) -> Tuple[str, str]:
    return collapse_ws(phrase).lower(), domain_of(exclude_domain or "")


class CandidateDiscovery:
    """
    Search-backed candidate finder.

    Owns its TTL cache; the same phrase within the TTL costs no search.
    """

    def __init__(
        self,
        search: SerpApiClient,
        settings: Optional[MatchSettings] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.search = search
        self.settings = settings or MatchSettings()
        self.cache: TTLCache = cache if cache is not None else TTLCache(
            ttl=self.settings.cache_ttl,
            max_entries=DISCOVERY_CACHE_MAX_ENTRIES,
        )

    async def is_cached(self, phrase: str, exclude_domain: Optional[str] = None) -> bool:
        return await self.cache.get(cache_key(phrase, exclude_domain)) is not None

    def _filter(self, hits, exclude_domain: Optional[str]) -> List[CandidateUrl]:
        excluded = domain_of(exclude_domain or "")
        out: List[CandidateUrl] = []
        seen = set()

        def take(url: str, title: str, snippet: str, origin: str) -> None:
            if not url or not url.startswith(("http://", "https://")):
                return
            if is_blocked(url):
                logger.debug("Discovery: blocked {}", url)
                return
            if excluded and host_matches(domain_of(url), excluded):
                return
            key = canon_url(url)
            if key in seen:
                return
            seen.add(key)
            out.append(
                CandidateUrl(
                    url=url,
                    title=title or "",
                    snippet=snippet or "",
                    rank=len(out) + 1,
                    origin=origin,
                )
            )

        for item in hits.organic[: self.settings.organic_limit]:
            take(item.get("link") or "", item.get("title") or "", item.get("snippet") or "", "organic")

        if self.settings.enable_shopping:
            for item in hits.shopping[: self.settings.shopping_limit]:
                url = item.get("link") or item.get("product_link") or ""
                snippet = " ".join(str(item.get(k)) for k in ("price", "source") if item.get(k))
                take(url, item.get("title") or "", snippet, "shopping")
        return out

    async def discover(self, phrase: str, exclude_domain: Optional[str] = None) -> List[CandidateUrl]:
        """
        Candidate URLs for a search phrase, best first.

        Errors from the provider propagate (``DiscoveryFailure`` /
        ``ConfigurationFailure``); zero hits is an empty list.
        """
        if not phrase or not phrase.strip():
            return []
        key = cache_key(phrase, exclude_domain)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.info("Discovery: cache hit for {!r}", phrase)
            return list(cached)

        hits = await self.search.search(phrase, num=self.settings.organic_limit)
        candidates = self._filter(hits, exclude_domain)
        logger.info("Discovery: {} of {} hits kept for {!r}", len(candidates), len(hits), phrase)
        await self.cache.set(key, candidates)
        return list(candidates)
