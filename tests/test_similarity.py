import asyncio
import itertools

import pytest

from compmatch.config import MatchSettings
from compmatch.pipeline_types import CandidateRecord, ReferenceProduct, VisualScore
from compmatch.similarity import SimilarityEngine, classify, combine_scores

GRID = [0.0, 0.1, 0.25, 0.39, 0.4, 0.5, 0.75, 0.99, 1.0]


def test_classification_bands():
    assert classify(0.95) == "very similar"
    assert classify(0.8) == "very similar"
    assert classify(0.6) == "similar"
    assert classify(0.45) == "moderately similar"
    assert classify(0.2) == "slightly similar"
    assert classify(0.19) == "very different"


def test_final_score_stays_in_unit_interval():
    for v, t in itertools.product(GRID + [-0.5, 1.5], repeat=2):
        for wi, wt in [(0.7, 0.3), (1.0, 1.0), (2.0, 0.5)]:
            s = combine_scores(v, t, wi, wt)
            assert 0.0 <= s <= 1.0


def test_final_score_monotone_in_each_component():
    for t in GRID:
        scores = [combine_scores(v, t, 0.7, 0.3) for v in GRID]
        assert scores == sorted(scores)
    for v in GRID:
        scores = [combine_scores(v, t, 0.7, 0.3) for t in GRID]
        assert scores == sorted(scores)


def test_floors_zero_out_weak_components():
    assert combine_scores(0.2, 0.9, 0.7, 0.3, min_image_score=0.3) == pytest.approx(0.27)
    assert combine_scores(0.9, 0.1, 0.7, 0.3, min_text_score=0.2) == pytest.approx(0.63)


class DummyVisual:
    def __init__(self, score, method="perceptual_hash"):
        self.result = VisualScore(score=score, method=method)
        self.calls = []

    async def compare(self, a, b):
        self.calls.append((a, b))
        return self.result


def _ref():
    return ReferenceProduct(
        source_url="https://acme.com/h",
        title="Acme Steel Hammer 16oz",
        image_url="https://acme.com/h.jpg",
    )


def _cand(title):
    return CandidateRecord(
        url="https://rival.com/h",
        image_url="https://rival.com/h.jpg",
        title_text=title,
        extraction_method="og:image",
        extraction_confidence=0.9,
    )


def test_engine_scores_with_configured_weights():
    visual = DummyVisual(1.0)
    engine = SimilarityEngine(visual, MatchSettings(image_weight=0.7, text_weight=0.3))
    score = asyncio.run(engine.score(_ref(), _cand("Acme Steel Hammer 16oz")))
    assert visual.calls == [("https://acme.com/h.jpg", "https://rival.com/h.jpg")]
    assert score.final_score == pytest.approx(1.0)
    assert score.classification == "very similar"
    assert score.breakdown["visual_method"] == "perceptual_hash"


def test_engine_text_only_when_visual_unavailable():
    engine = SimilarityEngine(DummyVisual(0.0, method="none"), MatchSettings(image_weight=0.7, text_weight=0.3))
    score = asyncio.run(engine.score(_ref(), _cand("Acme Steel Hammer 16oz")))
    assert score.visual_score == 0.0
    assert score.final_score == pytest.approx(0.3)
    assert score.breakdown["visual_method"] == "none"
