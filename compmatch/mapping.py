from __future__ import annotations
"""
Flatten MatchResults into one table for output sinks.

One row per retained candidate; a reference without matches still gets a
single row with ``N/A`` in the competitor columns so every input URL is
visible in the output.
"""

from typing import Any, Dict, Iterable, List

import pandas as pd

NOT_AVAILABLE = "N/A"

RESULT_COLUMNS = [
    "input_index",
    "reference_url",
    "reference_title",
    "reference_image",
    "search_phrase",
    "competitor_rank",
    "competitor_url",
    "competitor_title",
    "competitor_image",
    "extraction_method",
    "similarity_score",
    "image_similarity",
    "text_similarity",
    "similarity_classification",
    "visual_method",
    "similarity_threshold",
    "has_matches",
    "total_candidates_checked",
    "failure_reason",
]


def _reference_columns(result) -> Dict[str, Any]:
    ref = result.reference
    return {
        "input_index": result.input_index,
        "reference_url": result.reference_url,
        "reference_title": ref.title if ref is not None else NOT_AVAILABLE,
        "reference_image": (ref.image_url or NOT_AVAILABLE) if ref is not None else NOT_AVAILABLE,
        "search_phrase": (ref.search_phrase or NOT_AVAILABLE) if ref is not None else NOT_AVAILABLE,
        "similarity_threshold": result.threshold_used,
        "has_matches": result.has_matches,
        "total_candidates_checked": result.total_candidates_checked,
        "failure_reason": result.failure_reason or "",
    }


def result_rows(result) -> List[Dict[str, Any]]:
    base = _reference_columns(result)
    if not result.scored_candidates:
        row = dict(base)
        row.update(
            competitor_rank=0,
            competitor_url=NOT_AVAILABLE,
            competitor_title=NOT_AVAILABLE,
            competitor_image=NOT_AVAILABLE,
            extraction_method=NOT_AVAILABLE,
            similarity_score=0.0,
            image_similarity=0.0,
            text_similarity=0.0,
            similarity_classification=NOT_AVAILABLE,
            visual_method=NOT_AVAILABLE,
        )
        return [row]

    rows = []
    for rank, sc in enumerate(result.scored_candidates, start=1):
        row = dict(base)
        row.update(
            competitor_rank=rank,
            competitor_url=sc.candidate.url,
            competitor_title=sc.candidate.title_text,
            competitor_image=sc.candidate.image_url,
            extraction_method=sc.candidate.extraction_method,
            similarity_score=round(sc.score.final_score, 4),
            image_similarity=round(sc.score.visual_score, 4),
            text_similarity=round(sc.score.text_score, 4),
            similarity_classification=sc.score.classification,
            visual_method=sc.score.breakdown.get("visual_method", NOT_AVAILABLE),
        )
        rows.append(row)
    return rows


def match_results_to_frame(results: Iterable) -> pd.DataFrame:
    """
    Convert MatchResults into a DataFrame with ``RESULT_COLUMNS``.

    Rows follow the input order of the batch, then competitor rank.
    """
    rows: List[Dict[str, Any]] = []
    for result in sorted(results, key=lambda r: r.input_index):
        rows.extend(result_rows(result))
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)
