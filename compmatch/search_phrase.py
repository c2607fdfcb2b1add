from __future__ import annotations

import re
from typing import Iterable, List

from loguru import logger

from .config import SEARCH_DIRECTIVE_RESERVE, SEARCH_PHRASE_BUDGET
from .constants import PROMO_PHRASES, PROMO_WORDS, RETAILER_BRANDS
from .normalize import basic_clean, collapse_ws
from .utils.text_clean import truncate_at_word
from .utils.urls import domain_of

_CURRENCY = r"(?:usd|eur|gbp|cad|aud)"
_PRICE_PATTERNS = [
    re.compile(r"[$€£]\s?\d[\d,]*(?:\.\d{1,2})?", re.IGNORECASE),
    re.compile(r"\b\d[\d,]*(?:\.\d{2})?\s?" + _CURRENCY + r"\b", re.IGNORECASE),
    re.compile(r"\b" + _CURRENCY + r"\s?\d[\d,]*(?:\.\d{2})?", re.IGNORECASE),
]
# anything except word chars, whitespace, hyphens and "&"
_PUNCT_RE = re.compile(r"[^\w\s\-&]", re.UNICODE)
_DASH_RE = re.compile(r"[\-\u2010-\u2015_]+")


def _alternation(terms: Iterable[str]) -> re.Pattern[str]:
    ordered = sorted(set(terms), key=lambda t: (-len(t), t))
    body = "|".join(re.escape(t) for t in ordered)
    # \b does not work next to "&" or "'", use explicit word-char lookarounds
    return re.compile(r"(?<!\w)(?:" + body + r")(?!\w)", re.IGNORECASE)


def _retailer_forms(brands: Iterable[str]) -> List[str]:
    """Brand names as written plus the form they take after punctuation stripping."""
    forms = []
    for brand in brands:
        forms.append(brand)
        flat = _DASH_RE.sub(" ", _PUNCT_RE.sub("", brand))
        forms.append(collapse_ws(flat))
    return [f for f in forms if f]


_PROMO_PHRASE_RE = _alternation(PROMO_PHRASES)
_PROMO_WORD_RE = _alternation(PROMO_WORDS)
_RETAILER_RE = _alternation(_retailer_forms(RETAILER_BRANDS))


def strip_promotional(text: str) -> str:
    for pat in _PRICE_PATTERNS:
        text = pat.sub(" ", text)
    text = _PROMO_PHRASE_RE.sub(" ", text)
    text = _PROMO_WORD_RE.sub(" ", text)
    return text


def strip_retailers(text: str) -> str:
    return _RETAILER_RE.sub(" ", text)


def site_exclusion(domain: str | None) -> str:
    host = domain_of(domain or "")
    return f"-site:{host}" if host else ""


def derive_search_phrase(title: str, exclude_domain: str | None = None) -> str:
    """
    Turn a product title into a web-search phrase.

    Promotional boilerplate, prices and retailer names are removed, the
    remainder is lower-cased and cut at a word boundary so that the phrase
    plus the ``-site:`` directive fits the search budget. Pure function of
    (title, exclude_domain).

    Parameters
    ----------
    title:
        Raw product title, may contain markup.
    exclude_domain:
        Domain (or URL) of the reference page; results on it are excluded.

    Returns
    -------
    str
        e.g. ``"acme steel hammer 16oz -site:acme.com"``. Empty if nothing
        descriptive survives.
    """
    text = basic_clean(title)
    text = strip_retailers(text)
    text = strip_promotional(text)
    text = _PUNCT_RE.sub(" ", text)
    text = _DASH_RE.sub(" ", text)
    text = strip_retailers(text)
    # a lone "&" left behind by removals carries no meaning
    text = re.sub(r"(?:^|\s)&(?=\s|$)", " ", text)
    text = collapse_ws(text).lower()

    budget = SEARCH_PHRASE_BUDGET - SEARCH_DIRECTIVE_RESERVE
    text = truncate_at_word(text, budget)

    if not text:
        logger.warning("Search phrase: nothing left after cleaning title {!r}", title)
        return ""

    directive = site_exclusion(exclude_domain)
    return f"{text} {directive}" if directive else text
