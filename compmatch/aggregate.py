from __future__ import annotations

from typing import List, Optional, Sequence

from loguru import logger

from .pipeline_types import MatchResult, ReferenceProduct, ScoredCandidate


def no_match_result(
    reference_url: str,
    threshold: float,
    reason: str,
    reference: Optional[ReferenceProduct] = None,
    attempted: int = 0,
    input_index: int = 0,
) -> MatchResult:
    """The sentinel emitted whenever a reference ends without matches."""
    return MatchResult(
        reference_url=reference_url,
        reference=reference,
        scored_candidates=[],
        has_matches=False,
        total_candidates_checked=attempted,
        threshold_used=threshold,
        input_index=input_index,
        failure_reason=reason,
    )


def _rank_key(sc: ScoredCandidate):
    return (-sc.score.final_score, -sc.score.visual_score, sc.candidate.url)


def aggregate(
    reference: ReferenceProduct,
    attempted: int,
    scored: Sequence[ScoredCandidate],
    threshold: float,
    input_index: int = 0,
) -> MatchResult:
    """
    Keep candidates at or above ``threshold``, best first.

    ``attempted`` is every candidate we tried, including the ones that
    failed extraction; it is what ``total_candidates_checked`` reports.
    """
    kept: List[ScoredCandidate] = [
        sc
        for sc in scored
        if sc.candidate.is_scorable and sc.score.final_score >= threshold
    ]
    kept.sort(key=_rank_key)

    if not kept:
        logger.info(
            "Aggregate: 0 of {} candidates reached {:.2f} for {}",
            attempted,
            threshold,
            reference.source_url,
        )
        return no_match_result(
            reference.source_url,
            threshold,
            "below_threshold" if scored else "no_candidates",
            reference=reference,
            attempted=attempted,
            input_index=input_index,
        )

    logger.info(
        "Aggregate: {} of {} candidates kept for {} (best {:.3f})",
        len(kept),
        attempted,
        reference.source_url,
        kept[0].score.final_score,
    )
    return MatchResult(
        reference_url=reference.source_url,
        reference=reference,
        scored_candidates=kept,
        has_matches=True,
        total_candidates_checked=attempted,
        threshold_used=threshold,
        input_index=input_index,
    )
