# compmatch/utils/text_clean.py
from __future__ import annotations
import re

def truncate_at_word(text: str, max_len: int) -> str:
    """
    Cut ``text`` to at most ``max_len`` characters without splitting a word.

    A single word longer than the budget is hard-cut.
    """
    text = "" if text is None else str(text)
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= max_len:
        return text
    cut = text[:max_len]
    if text[max_len] != " " and " " in cut:
        cut = cut[: cut.rfind(" ")]
    return cut.strip()
