from __future__ import annotations

"""
Visual comparators.

Two strategies sit behind one chain:

* ``ClassifierVisualComparator`` - tag and colour overlap from the image
  classifier; trusted only when the score clears a minimum confidence.
* ``HashVisualComparator`` - perceptual difference hash (dHash) of both
  images; always available when the images download.

If neither produces a score the visual result is 0 with method ``none`` and
the engine carries on with text alone.
"""

import asyncio
import io
from typing import Dict, Optional

import httpx
import numpy as np
from loguru import logger
from PIL import Image

from .config import (
    CLASSIFIER_COLOR_WEIGHT,
    CLASSIFIER_MIN_CONFIDENCE,
    CLASSIFIER_TAG_WEIGHT,
    ENABLE_CLASSIFIER_PRIMARY,
    ENABLE_PERCEPTUAL_FALLBACK,
    HASH_SIZE,
    IMAGE_DOWNLOAD_MAX_BYTES,
)
from .errors import ScoringFailure
from .fallback import FallbackChain
from .image_tagging import ImaggaClient
from .pipeline_types import VisualScore


def jaccard(a, b) -> float:
    a, b = set(a), set(b)
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


# ---------------------------
# Perceptual hash
# ---------------------------

def dhash_bits(image: Image.Image, hash_size: int = HASH_SIZE) -> np.ndarray:
    """
    Difference hash: grayscale, shrink to (hash_size + 1) x hash_size and
    compare each pixel with its right neighbour. Returns a flat bool array
    of hash_size**2 bits.
    """
    gray = image.convert("L").resize((hash_size + 1, hash_size), Image.LANCZOS)
    pixels = np.asarray(gray, dtype=np.int16)
    return (pixels[:, 1:] > pixels[:, :-1]).flatten()


def hash_similarity(bits_a: np.ndarray, bits_b: np.ndarray) -> float:
    """1 - hamming / length, clamped to [0, 1]."""
    if bits_a.shape != bits_b.shape or bits_a.size == 0:
        raise ValueError("hashes must have the same non-zero length")
    distance = int(np.count_nonzero(bits_a != bits_b))
    return float(min(1.0, max(0.0, 1.0 - distance / bits_a.size)))


class HashVisualComparator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        hash_size: int = HASH_SIZE,
        max_bytes: int = IMAGE_DOWNLOAD_MAX_BYTES,
    ):
        self.client = client
        self.hash_size = hash_size
        self.max_bytes = max_bytes
        self._hashes: Dict[str, "asyncio.Future[np.ndarray]"] = {}

    async def _download(self, url: str) -> bytes:
        r = await self.client.get(url)
        if r.status_code >= 400:
            raise ScoringFailure(f"image download HTTP {r.status_code}", {"url": url})
        if len(r.content) > self.max_bytes:
            raise ScoringFailure("image too large", {"url": url, "bytes": len(r.content)})
        return r.content

    def _hash_bytes(self, data: bytes) -> np.ndarray:
        with Image.open(io.BytesIO(data)) as img:
            return dhash_bits(img, self.hash_size)

    async def _compute_hash(self, url: str) -> np.ndarray:
        data = await self._download(url)
        return await asyncio.to_thread(self._hash_bytes, data)

    async def image_hash(self, url: str) -> np.ndarray:
        task = self._hashes.get(url)
        if task is None:
            task = asyncio.ensure_future(self._compute_hash(url))
            self._hashes[url] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._hashes.get(url) is task:
                del self._hashes[url]
            raise

    async def compare(self, image_a: str, image_b: str) -> Optional[VisualScore]:
        if not image_a or not image_b:
            return None
        bits_a, bits_b = await asyncio.gather(self.image_hash(image_a), self.image_hash(image_b))
        score = hash_similarity(bits_a, bits_b)
        return VisualScore(
            score=score,
            method="perceptual_hash",
            details={"hash_bits": float(bits_a.size)},
        )


# ---------------------------
# Classifier
# ---------------------------

class ClassifierVisualComparator:
    def __init__(self, client: ImaggaClient, min_confidence: float = CLASSIFIER_MIN_CONFIDENCE):
        self.client = client
        self.min_confidence = min_confidence

    @property
    def available(self) -> bool:
        return self.client.configured

    async def compare(self, image_a: str, image_b: str) -> Optional[VisualScore]:
        if not self.available or not image_a or not image_b:
            return None
        prof_a = await self.client.profile(image_a)
        prof_b = await self.client.profile(image_b)
        tag_sim = jaccard(prof_a.tags, prof_b.tags)
        color_sim = jaccard(prof_a.colors, prof_b.colors)
        score = CLASSIFIER_TAG_WEIGHT * tag_sim + CLASSIFIER_COLOR_WEIGHT * color_sim
        if score < self.min_confidence:
            logger.info(
                "Classifier score {:.3f} below floor {:.2f}, falling back",
                score,
                self.min_confidence,
            )
            return None
        return VisualScore(
            score=min(1.0, max(0.0, score)),
            method="classifier",
            details={"tag_similarity": tag_sim, "color_similarity": color_sim},
        )


class VisualComparator:
    """Classifier first, perceptual hash second, otherwise a zero score."""

    def __init__(
        self,
        classifier: Optional[ClassifierVisualComparator] = None,
        hasher: Optional[HashVisualComparator] = None,
        use_classifier: bool = ENABLE_CLASSIFIER_PRIMARY,
        use_hash: bool = ENABLE_PERCEPTUAL_FALLBACK,
    ):
        strategies = []
        if classifier is not None and use_classifier and classifier.available:
            strategies.append(("classifier", classifier.compare))
        if hasher is not None and use_hash:
            strategies.append(("perceptual_hash", hasher.compare))
        self.chain: FallbackChain[VisualScore] = FallbackChain("Visual compare", strategies)

    async def compare(self, image_a: str, image_b: str) -> VisualScore:
        if not image_a or not image_b:
            return VisualScore(score=0.0, method="none", fallback_used=True)
        result, label = await self.chain.run(image_a, image_b)
        if result is None:
            logger.warning("Visual compare: no comparator produced a score, text only")
            return VisualScore(score=0.0, method="none", fallback_used=True)
        primary = self.chain.strategy_names[0] if len(self.chain) else None
        if label != primary:
            result = result.model_copy(update={"fallback_used": True})
        return result
