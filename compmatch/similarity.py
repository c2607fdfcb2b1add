from __future__ import annotations

from typing import Optional

from loguru import logger

from .config import CLASSIFICATION_BANDS, CLASSIFICATION_FLOOR, MatchSettings
from .pipeline_types import CandidateRecord, ReferenceProduct, SimilarityScore, VisualScore
from .text_similarity import text_breakdown
from .visual import VisualComparator


def _clamp(x: float) -> float:
    return min(1.0, max(0.0, float(x)))


def classify(final_score: float) -> str:
    for floor, label in CLASSIFICATION_BANDS:
        if final_score >= floor:
            return label
    return CLASSIFICATION_FLOOR


def combine_scores(
    visual: float,
    text: float,
    image_weight: float,
    text_weight: float,
    min_image_score: float = 0.0,
    min_text_score: float = 0.0,
) -> float:
    """
    Weighted hybrid of visual and text similarity.

    A component below its floor contributes nothing. The result is clamped
    to [0, 1], so weights that sum past 1 cannot push it out of range.
    """
    v = _clamp(visual)
    t = _clamp(text)
    if v < min_image_score:
        v = 0.0
    if t < min_text_score:
        t = 0.0
    return _clamp(image_weight * v + text_weight * t)


def build_score(visual: VisualScore, text_parts: dict, settings: MatchSettings) -> SimilarityScore:
    text = text_parts["text"]
    final = combine_scores(
        visual.score,
        text,
        settings.image_weight,
        settings.text_weight,
        settings.min_image_score,
        settings.min_text_score,
    )
    return SimilarityScore(
        visual_score=visual.score,
        text_score=text,
        final_score=final,
        classification=classify(final),
        breakdown={
            "visual_method": visual.method,
            "visual_fallback_used": visual.fallback_used,
            "visual_details": dict(visual.details),
            "word_overlap": text_parts["word_overlap"],
            "edit_similarity": text_parts["edit"],
            "image_weight": settings.image_weight,
            "text_weight": settings.text_weight,
        },
    )


class SimilarityEngine:
    """Scores one candidate against the reference."""

    def __init__(self, visual: VisualComparator, settings: Optional[MatchSettings] = None):
        self.visual = visual
        self.settings = settings or MatchSettings()

    async def score(self, reference: ReferenceProduct, candidate: CandidateRecord) -> SimilarityScore:
        visual = await self.visual.compare(reference.image_url, candidate.image_url)
        text_parts = text_breakdown(reference.title, candidate.title_text)
        result = build_score(visual, text_parts, self.settings)
        logger.debug(
            "Scored {}: visual={:.3f} ({}) text={:.3f} final={:.3f}",
            candidate.url,
            result.visual_score,
            visual.method,
            result.text_score,
            result.final_score,
        )
        return result
