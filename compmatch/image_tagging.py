from __future__ import annotations

"""
Client for the Imagga image-understanding API.

Only two endpoints are used: ``/tags`` (what is in the picture) and
``/colors`` (dominant palette). Calls are serialised and spaced out because
the free tiers rate-limit hard; results are memoised per image URL since
the reference image is compared against every candidate.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Set

import httpx
from loguru import logger

from .config import (
    CLASSIFIER_REQUEST_SPACING,
    CLASSIFIER_TAG_LIMIT,
    CLASSIFIER_TAG_THRESHOLD,
    IMAGGA_API_KEY,
    IMAGGA_API_SECRET,
    IMAGGA_BASE_URL,
)
from .errors import ConfigurationFailure, ScoringFailure


@dataclass
class ImageProfile:
    tags: Set[str] = field(default_factory=set)
    colors: Set[str] = field(default_factory=set)


class ImaggaClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        spacing: float = CLASSIFIER_REQUEST_SPACING,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.api_key = IMAGGA_API_KEY if api_key is None else api_key
        self.api_secret = IMAGGA_API_SECRET if api_secret is None else api_secret
        self.spacing = spacing
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None
        self._profiles: Dict[str, "asyncio.Future[ImageProfile]"] = {}

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    async def _get(self, endpoint: str, params: dict) -> dict:
        async with self._lock:
            if self._last_call is not None and self.spacing > 0:
                wait = self.spacing - (self._clock() - self._last_call)
                if wait > 0:
                    await self._sleep(wait)
            try:
                r = await self.client.get(
                    f"{IMAGGA_BASE_URL}/{endpoint}",
                    params=params,
                    auth=(self.api_key, self.api_secret),
                )
            finally:
                self._last_call = self._clock()

        if r.status_code in (401, 403):
            raise ConfigurationFailure("Imagga rejected the credentials", {"status": r.status_code})
        if r.status_code >= 400:
            raise ScoringFailure(f"Imagga /{endpoint} returned HTTP {r.status_code}", {"status": r.status_code})
        return r.json()

    async def tags(self, image_url: str) -> Set[str]:
        data = await self._get(
            "tags",
            {"image_url": image_url, "limit": CLASSIFIER_TAG_LIMIT, "threshold": CLASSIFIER_TAG_THRESHOLD},
        )
        out = set()
        for item in (data.get("result") or {}).get("tags") or []:
            tag = (item.get("tag") or {}).get("en")
            if tag:
                out.add(str(tag).strip().lower())
        return out

    async def colors(self, image_url: str) -> Set[str]:
        data = await self._get("colors", {"image_url": image_url, "extract_overall_colors": 1})
        colors = (data.get("result") or {}).get("colors") or {}
        out = set()
        for item in colors.get("image_colors") or []:
            name = item.get("closest_palette_color")
            if name:
                out.add(str(name).strip().lower())
        return out

    async def _build_profile(self, image_url: str) -> ImageProfile:
        tags = await self.tags(image_url)
        try:
            colors = await self.colors(image_url)
        except ScoringFailure as e:
            # tags alone still make a usable profile
            logger.warning("Imagga colours failed for {}: {}", image_url, e)
            colors = set()
        return ImageProfile(tags=tags, colors=colors)

    async def profile(self, image_url: str) -> ImageProfile:
        """Tags and colours for one image; concurrent callers share one lookup."""
        task = self._profiles.get(image_url)
        if task is None:
            task = asyncio.ensure_future(self._build_profile(image_url))
            self._profiles[image_url] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            # failed lookups are retried by the next caller
            if self._profiles.get(image_url) is task:
                del self._profiles[image_url]
            raise
