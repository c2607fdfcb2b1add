from compmatch.aggregate import aggregate, no_match_result
from compmatch.mapping import NOT_AVAILABLE, RESULT_COLUMNS, match_results_to_frame
from compmatch.pipeline_types import CandidateRecord, ReferenceProduct, ScoredCandidate, SimilarityScore


def _scored(url, final):
    rec = CandidateRecord(
        url=url,
        image_url=url + "/i.jpg",
        title_text="Rival Hammer",
        extraction_method="json-ld",
        extraction_confidence=0.85,
    )
    score = SimilarityScore(
        visual_score=0.8,
        text_score=0.6,
        final_score=final,
        classification="similar",
        breakdown={"visual_method": "perceptual_hash"},
    )
    return ScoredCandidate(candidate=rec, score=score)


def test_frame_has_one_row_per_match_and_sentinel_rows():
    ref = ReferenceProduct(
        source_url="https://acme.com/h",
        title="Acme Hammer",
        image_url="https://acme.com/h.jpg",
        search_phrase="acme hammer -site:acme.com",
    )
    matched = aggregate(
        ref,
        attempted=3,
        scored=[_scored("https://b.com/h", 0.61), _scored("https://a.com/h", 0.74)],
        threshold=0.4,
        input_index=1,
    )
    sentinel = no_match_result("https://broken.com/x", 0.4, "reference_extraction_failed", input_index=0)

    df = match_results_to_frame([matched, sentinel])

    assert list(df.columns) == RESULT_COLUMNS
    assert len(df) == 3
    first = df.iloc[0]
    assert first["reference_url"] == "https://broken.com/x"
    assert first["competitor_url"] == NOT_AVAILABLE
    assert first["reference_title"] == NOT_AVAILABLE
    assert bool(first["has_matches"]) is False
    assert first["failure_reason"] == "reference_extraction_failed"

    rows = df[df["input_index"] == 1]
    assert list(rows["competitor_url"]) == ["https://a.com/h", "https://b.com/h"]
    assert list(rows["competitor_rank"]) == [1, 2]
    assert rows.iloc[0]["similarity_score"] == 0.74
    assert rows.iloc[0]["visual_method"] == "perceptual_hash"
    assert (rows["total_candidates_checked"] == 3).all()


def test_empty_results_give_empty_frame_with_columns():
    df = match_results_to_frame([])
    assert df.empty
    assert list(df.columns) == RESULT_COLUMNS
