from __future__ import annotations

"""Locate the schema.org Product node in a page's JSON-LD blocks."""

import json
from typing import Any, Iterator, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

_PRODUCT_TYPES = {"product", "productgroup", "individualproduct", "productmodel"}


def _is_product(node: dict) -> bool:
    t = node.get("@type")
    types = t if isinstance(t, list) else [t]
    for v in types:
        if isinstance(v, str) and v.split("/")[-1].lower() in _PRODUCT_TYPES:
            return True
    return False


def _walk(node: Any) -> Iterator[dict]:
    """Depth-first over every dict inside a JSON-LD payload (handles @graph)."""
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk(item)


def parse_jsonld_blocks(soup: BeautifulSoup) -> List[Any]:
    blocks: List[Any] = []
    for tag in soup.find_all("script", attrs={"type": lambda v: v and "ld+json" in v.lower()}):
        raw = tag.string or tag.get_text() or ""
        raw = raw.strip()
        if not raw:
            continue
        try:
            blocks.append(json.loads(raw))
        except ValueError as e:
            # some shops leave trailing commas or HTML comments in the block
            logger.debug("JSON-LD block skipped: {}", e)
    return blocks


def find_product_node(soup: BeautifulSoup) -> Optional[dict]:
    for block in parse_jsonld_blocks(soup):
        for node in _walk(block):
            if _is_product(node):
                return node
    return None


def image_from_node(node: Optional[dict]) -> str:
    """``image`` may be a string, a list, or an ImageObject."""
    if not node:
        return ""
    img = node.get("image")
    if isinstance(img, list):
        img = img[0] if img else None
    if isinstance(img, dict):
        img = img.get("url") or img.get("contentUrl")
    return img.strip() if isinstance(img, str) else ""


def name_from_node(node: Optional[dict]) -> str:
    if not node:
        return ""
    name = node.get("name")
    return name.strip() if isinstance(name, str) else ""
