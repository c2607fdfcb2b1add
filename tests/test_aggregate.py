from compmatch.aggregate import aggregate, no_match_result
from compmatch.pipeline_types import CandidateRecord, ReferenceProduct, ScoredCandidate, SimilarityScore
from compmatch.similarity import classify

REF = ReferenceProduct(source_url="https://acme.com/h", title="Acme Hammer", image_url="https://acme.com/h.jpg")


def _scored(url, final, visual=0.5):
    rec = CandidateRecord(
        url=url,
        image_url=url + ".jpg",
        title_text="t",
        extraction_method="og:image",
        extraction_confidence=0.9,
    )
    score = SimilarityScore(
        visual_score=visual,
        text_score=0.5,
        final_score=final,
        classification=classify(final),
    )
    return ScoredCandidate(candidate=rec, score=score)


def test_candidate_just_below_threshold_is_counted_but_not_kept():
    scored = [_scored("https://a.com", 0.39), _scored("https://b.com", 0.72)]
    result = aggregate(REF, attempted=2, scored=scored, threshold=0.4)
    assert result.has_matches
    assert [sc.candidate.url for sc in result.scored_candidates] == ["https://b.com"]
    assert result.total_candidates_checked == 2
    assert result.threshold_used == 0.4


def test_sorted_descending_with_deterministic_ties():
    scored = [
        _scored("https://c.com", 0.5, visual=0.2),
        _scored("https://a.com", 0.9),
        _scored("https://b.com", 0.5, visual=0.2),
        _scored("https://d.com", 0.5, visual=0.8),
    ]
    result = aggregate(REF, attempted=5, scored=scored, threshold=0.4)
    assert [sc.candidate.url for sc in result.scored_candidates] == [
        "https://a.com",
        "https://d.com",
        "https://b.com",
        "https://c.com",
    ]
    assert result.total_candidates_checked == 5


def test_nothing_above_threshold_is_a_no_match_result():
    result = aggregate(REF, attempted=3, scored=[_scored("https://a.com", 0.1)], threshold=0.4, input_index=7)
    assert not result.has_matches
    assert result.scored_candidates == []
    assert result.total_candidates_checked == 3
    assert result.failure_reason == "below_threshold"
    assert result.input_index == 7


def test_no_match_sentinel_without_reference():
    result = no_match_result("https://broken.com", 0.4, "reference_extraction_failed")
    assert result.reference is None
    assert result.reference_url == "https://broken.com"
    assert not result.has_matches
    assert result.total_candidates_checked == 0
