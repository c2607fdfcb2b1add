from __future__ import annotations

from typing import Dict

from rapidfuzz import fuzz

from .config import TEXT_EDIT_WEIGHT, TEXT_MIN_CHARS, TEXT_OVERLAP_WEIGHT
from .normalize import title_tokens


def word_overlap(tokens_a, tokens_b) -> float:
    """
    max(Jaccard, shared / mean set size).

    The second term is kinder to titles of very different lengths; taking
    the max means a short title fully contained in a long one still scores
    high.
    """
    a, b = set(tokens_a), set(tokens_b)
    if not a or not b:
        return 0.0
    common = len(a & b)
    jaccard = common / len(a | b)
    overlap = common / ((len(a) + len(b)) / 2.0)
    return max(jaccard, overlap)


def edit_similarity(a: str, b: str) -> float:
    """Normalised edit similarity in [0, 1] (rapidfuzz indel ratio)."""
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0


def text_breakdown(title_a: str, title_b: str) -> Dict[str, float]:
    tokens_a = title_tokens(title_a)
    tokens_b = title_tokens(title_b)
    norm_a = " ".join(tokens_a)
    norm_b = " ".join(tokens_b)
    if len(norm_a) < TEXT_MIN_CHARS or len(norm_b) < TEXT_MIN_CHARS:
        return {"word_overlap": 0.0, "edit": 0.0, "text": 0.0}

    overlap = word_overlap(tokens_a, tokens_b)
    edit = edit_similarity(norm_a, norm_b)
    score = TEXT_OVERLAP_WEIGHT * overlap + TEXT_EDIT_WEIGHT * edit
    return {
        "word_overlap": overlap,
        "edit": edit,
        "text": min(1.0, max(0.0, score)),
    }


def text_similarity(title_a: str, title_b: str) -> float:
    """Title similarity in [0, 1]; 0 when either side normalises to < 3 chars."""
    return text_breakdown(title_a, title_b)["text"]
