from __future__ import annotations

"""
Text normalisation helpers shared by the extractor, the phrase deriver and
the text comparator.

Public helpers:

* basic_clean(text) -> str
    Strip markup, normalise unicode, collapse whitespace.

* normalize_title(text) -> str
    Comparator view of a title: lowercase, punctuation removed, tokens of
    length <= 1 dropped.

* title_tokens(text) -> List[str]
    Token list matching normalize_title.
"""

from typing import List
import re
import unicodedata

from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]", flags=re.UNICODE)
_TAG_HINT_RE = re.compile(r"<[a-zA-Z/!]")


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def basic_clean(text: str | None) -> str:
    """
    Light clean used on raw page text.

    - drops HTML tags when the input looks like markup
    - NFKC unicode normalisation (fancy quotes, full-width chars)
    - collapses whitespace
    """
    if not text:
        return ""
    s = str(text)
    if _TAG_HINT_RE.search(s):
        s = BeautifulSoup(s, "lxml").get_text(" ")
    s = unicodedata.normalize("NFKC", s)
    return collapse_ws(s)


def title_tokens(text: str | None) -> List[str]:
    if not text:
        return []
    s = unicodedata.normalize("NFKC", str(text)).lower()
    # underscores count as punctuation for titles
    s = _PUNCT_RE.sub(" ", s).replace("_", " ")
    return [tok for tok in s.split() if len(tok) > 1]


def normalize_title(text: str | None) -> str:
    return " ".join(title_tokens(text))
