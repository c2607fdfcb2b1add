"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductAttributes(BaseModel):
    """
    Structured attributes pulled from a product page.

    ``confidence`` holds a 0..1 value per attribute that was found,
    ``methods`` the extraction layer that produced it and ``flags`` any
    diagnostic raised during validation (bad GTIN checksum, UPC/GTIN
    disagreement).
    """

    brand: Optional[str] = None
    model: Optional[str] = None
    price: Optional[float] = None
    gtin: Optional[str] = None
    sku: Optional[str] = None
    upc: Optional[str] = None
    material: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None

    confidence: Dict[str, float] = Field(default_factory=dict)
    methods: Dict[str, str] = Field(default_factory=dict)
    flags: Dict[str, str] = Field(default_factory=dict)

    def confidence_of(self, name: str) -> float:
        return self.confidence.get(name, 0.0)

    def found(self) -> Dict[str, object]:
        """Attributes that carry a value, in declaration order."""
        out: Dict[str, object] = {}
        for name in ("brand", "model", "price", "gtin", "sku", "upc", "material", "color", "size"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


class ReferenceProduct(BaseModel):
    """The product we look for competitors of. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str
    image_url: str
    search_phrase: str = ""
    attributes: ProductAttributes = Field(default_factory=ProductAttributes)


class CandidateUrl(BaseModel):
    """One search hit, before any page is fetched."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    snippet: str = ""
    rank: int = Field(ge=1)
    origin: Literal["organic", "shopping"] = "organic"


class CandidateRecord(BaseModel):
    """What the extractor got out of one candidate page."""

    model_config = ConfigDict(frozen=True)

    url: str
    image_url: str
    title_text: str = ""
    attributes: ProductAttributes = Field(default_factory=ProductAttributes)
    extraction_method: str
    extraction_confidence: float = Field(ge=0.0, le=1.0)

    @property
    def is_scorable(self) -> bool:
        return bool(self.image_url and self.image_url.strip())


class VisualScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=1.0)
    method: Literal["classifier", "perceptual_hash", "none"] = "none"
    fallback_used: bool = False
    details: Dict[str, float] = Field(default_factory=dict)


class SimilarityScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    visual_score: float = Field(ge=0.0, le=1.0)
    text_score: float = Field(ge=0.0, le=1.0)
    final_score: float = Field(ge=0.0, le=1.0)
    classification: str
    breakdown: Dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate record paired with its similarity score."""

    candidate: CandidateRecord
    score: SimilarityScore


class MatchResult(BaseModel):
    """
    Outcome for one reference URL.

    Always produced: when nothing upstream worked this is the no-match
    sentinel (``has_matches`` False, empty ``scored_candidates``) and
    ``failure_reason`` says which stage gave up.
    """

    model_config = ConfigDict(frozen=True)

    reference_url: str
    reference: Optional[ReferenceProduct] = None
    scored_candidates: List[ScoredCandidate] = Field(default_factory=list)
    has_matches: bool = False
    total_candidates_checked: int = Field(default=0, ge=0)
    threshold_used: float = Field(ge=0.0, le=1.0)
    input_index: int = Field(default=0, ge=0)
    failure_reason: Optional[str] = None
