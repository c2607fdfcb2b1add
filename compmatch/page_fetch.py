from __future__ import annotations

import asyncio
import base64
import re
from typing import Optional

import httpx
from loguru import logger

from .config import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_FETCH_ATTEMPTS,
    HTTP_MAX_BYTES,
    HTTP_MAX_REDIRECTS,
    HTTP_READ_TIMEOUT,
    HTTP_RETRY_DELAY,
    HTTP_USER_AGENT,
    ZYTE_API_KEY,
    ZYTE_EXTRACT_URL,
    ZYTE_TIMEOUT,
)
from .fallback import FallbackChain

_HTML_MARKERS = re.compile(r"<!doctype html|<html|<head|<body|<div|<p[\s>]", re.IGNORECASE)

BROWSER_HEADERS = {
    "User-Agent": HTTP_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def is_valid_html(body: Optional[str]) -> bool:
    """Cheap sniff: real documents carry at least one structural tag."""
    if not body or not body.strip():
        return False
    head = body.lstrip()[:1]
    if head in ("{", "["):
        return False
    return bool(_HTML_MARKERS.search(body))


def make_http_client(**overrides) -> httpx.AsyncClient:
    opts = dict(
        follow_redirects=True,
        timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        max_redirects=HTTP_MAX_REDIRECTS,
        headers=BROWSER_HEADERS,
    )
    opts.update(overrides)
    return httpx.AsyncClient(**opts)


class PageFetcher:
    """
    Fetch raw HTML for a product page.

    Strategies, first usable body wins:
      1. direct GET (retries with linear back-off, byte cap)
      2. Zyte ``httpResponseBody`` (only with an API key)
      3. Zyte ``browserHtml`` (JS rendered)

    ``fetch`` never raises for network trouble; it returns ``None``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        zyte_api_key: Optional[str] = None,
        attempts: int = HTTP_FETCH_ATTEMPTS,
        retry_delay: float = HTTP_RETRY_DELAY,
        max_bytes: int = HTTP_MAX_BYTES,
    ):
        self.client = client
        self.zyte_api_key = ZYTE_API_KEY if zyte_api_key is None else zyte_api_key
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self.max_bytes = max_bytes

        strategies = [("direct", self.fetch_direct)]
        if self.zyte_api_key:
            strategies.append(("zyte-http", self.fetch_zyte_http))
            strategies.append(("zyte-browser", self.fetch_zyte_browser))
        self.chain: FallbackChain[str] = FallbackChain("Page fetch", strategies)

    async def fetch(self, url: str) -> Optional[str]:
        html, via = await self.chain.run(url)
        if html is None:
            logger.warning("Page fetch: every strategy failed for {}", url)
            return None
        logger.debug("Page fetch: {} via {}", url, via)
        return html

    async def fetch_direct(self, url: str) -> Optional[str]:
        for attempt in range(1, self.attempts + 1):
            try:
                r = await self.client.get(url)
            except httpx.TimeoutException:
                logger.warning("Page fetch timeout for {} (attempt {}/{})", url, attempt, self.attempts)
            except httpx.HTTPError as e:
                logger.warning("Page fetch error for {}: {} (attempt {}/{})", url, e, attempt, self.attempts)
            else:
                if r.status_code >= 400:
                    logger.warning("Page fetch: HTTP {} for {}", r.status_code, url)
                    # client errors will not get better on retry
                    if r.status_code < 500 and r.status_code != 429:
                        return None
                elif len(r.content) > self.max_bytes:
                    logger.warning("Page fetch aborted: {} bytes > {} limit", len(r.content), self.max_bytes)
                    return None
                elif is_valid_html(r.text):
                    return r.text
                else:
                    logger.warning("Page fetch: {} did not return HTML", url)
                    return None

            if attempt < self.attempts and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay * attempt)
        return None

    async def _zyte(self, payload: dict) -> Optional[dict]:
        r = await self.client.post(
            ZYTE_EXTRACT_URL,
            json=payload,
            auth=(self.zyte_api_key, ""),
            timeout=ZYTE_TIMEOUT,
        )
        if r.status_code >= 400:
            logger.warning("Zyte: HTTP {} for {}", r.status_code, payload.get("url"))
            return None
        return r.json()

    async def fetch_zyte_http(self, url: str) -> Optional[str]:
        data = await self._zyte({"url": url, "httpResponseBody": True, "followRedirect": True})
        if not data or not data.get("httpResponseBody"):
            return None
        body = base64.b64decode(data["httpResponseBody"]).decode("utf-8", errors="replace")
        return body if is_valid_html(body) else None

    async def fetch_zyte_browser(self, url: str) -> Optional[str]:
        data = await self._zyte({"url": url, "browserHtml": True})
        if not data:
            return None
        body = data.get("browserHtml")
        return body if is_valid_html(body) else None
