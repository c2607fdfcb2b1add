from __future__ import annotations

"""
Layered product-attribute extraction.

Each layer proposes (value, confidence) pairs; the highest confidence per
attribute wins:

    JSON-LD Product node   0.9
    CSS / microdata        0.7
    meta tags              0.6
    free-text patterns     0.4

After extraction, GTINs are checked against the GS1 mod-10 checksum and
UPC / GTIN are reconciled.
"""

import re
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup
from loguru import logger

from .config import (
    ATTR_CONF_CSS,
    ATTR_CONF_JSONLD,
    ATTR_CONF_META,
    ATTR_CONF_PATTERN,
    ATTR_CONF_SUSPECT,
)
from .constants import ATTRIBUTE_NAMES, IDENTIFIER_ATTRIBUTES
from .normalize import collapse_ws
from .pipeline_types import ProductAttributes

_PRICE_NUM_RE = re.compile(r"(\d{1,3}(?:[,\s]\d{3})+|\d+)(?:\.(\d{1,2}))?")
_IDENT_KEEP_RE = re.compile(r"[^A-Za-z0-9\-_]")
_TEXT_PUNCT_RE = re.compile(r"[^\w\s&/.\-]")
_DIGITS_RE = re.compile(r"\D")

TEXT_PATTERNS: Dict[str, list] = {
    "price": [
        re.compile(r"(?:price|now)\s*:?\s*[$€£]?\s*(\d[\d,]*\.\d{2})", re.IGNORECASE),
        re.compile(r"[$€£]\s?(\d[\d,]*\.\d{2})"),
        re.compile(r"(\d[\d,]*\.\d{2})\s?(?:USD|EUR|GBP)\b"),
    ],
    "gtin": [
        re.compile(r"\bGTIN(?:-?1[234]|-?8)?\s*[:#]?\s*(\d{8,14})\b", re.IGNORECASE),
        re.compile(r"\bEAN\s*[:#]?\s*(\d{13})\b", re.IGNORECASE),
    ],
    "upc": [
        re.compile(r"\bUPC\s*[:#]?\s*(\d{12})\b", re.IGNORECASE),
    ],
    "sku": [
        re.compile(r"\b(?:SKU|Item\s*(?:No\.?|#)|Part\s*(?:No\.?|#))\s*[:#]?\s*([A-Z0-9][A-Z0-9\-_]{2,})\b", re.IGNORECASE),
    ],
    "model": [
        re.compile(r"\bModel\s*(?:No\.?|#|Number)?\s*[:#]\s*([A-Z0-9][A-Z0-9\-_]{1,})\b", re.IGNORECASE),
    ],
}

_JSONLD_GTIN_KEYS = ("gtin", "gtin13", "gtin12", "gtin14", "gtin8", "ean")
_ADDITIONAL_PROPERTY_NAMES = {"material", "color", "colour", "size", "sku", "upc", "model", "brand"}


# ---------------------------
# GTIN
# ---------------------------

def validate_gtin(value: Optional[str]) -> bool:
    """
    GS1 mod-10 check for GTIN-8/12/13/14.

    Weights run 3,1,3,... from the digit next to the check digit leftwards.
    """
    if not value:
        return False
    digits = re.sub(r"[\s\-]", "", str(value))
    if not digits.isdigit() or len(digits) not in (8, 12, 13, 14):
        return False
    body, check = digits[:-1], int(digits[-1])
    total = 0
    for i, ch in enumerate(reversed(body)):
        total += int(ch) * (3 if i % 2 == 0 else 1)
    return (10 - total % 10) % 10 == check


# ---------------------------
# Value cleaning
# ---------------------------

def parse_price(raw: Any) -> Optional[float]:
    """'$1,299.00' -> 1299.0; numbers pass through."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if raw >= 0 else None
    m = _PRICE_NUM_RE.search(str(raw))
    if not m:
        return None
    whole = re.sub(r"[,\s]", "", m.group(1))
    cents = m.group(2) or "0"
    try:
        return float(f"{whole}.{cents}")
    except ValueError:
        return None


def clean_value(name: str, raw: Any) -> Any:
    if raw is None:
        return None
    if name == "price":
        return parse_price(raw)
    s = collapse_ws(str(raw))
    if not s:
        return None
    if name in IDENTIFIER_ATTRIBUTES:
        s = _IDENT_KEEP_RE.sub("", s)
        return s or None
    s = collapse_ws(_TEXT_PUNCT_RE.sub(" ", s))
    return s or None


# ---------------------------
# Layers
# ---------------------------

Proposals = Dict[str, Tuple[Any, float, str]]


def _propose(out: Proposals, name: str, raw: Any, conf: float, method: str) -> None:
    value = clean_value(name, raw)
    if value is None:
        return
    prev = out.get(name)
    if prev is None or conf > prev[1]:
        out[name] = (value, conf, method)


def _jsonld_layer(node: Optional[dict], out: Proposals) -> None:
    if not node:
        return
    brand = node.get("brand")
    if isinstance(brand, list):
        brand = brand[0] if brand else None
    if isinstance(brand, dict):
        brand = brand.get("name")
    _propose(out, "brand", brand, ATTR_CONF_JSONLD, "json-ld")

    for name in ("model", "sku", "upc", "material", "color", "size"):
        val = node.get(name)
        if isinstance(val, dict):
            val = val.get("name") or val.get("value")
        if isinstance(val, (str, int, float)):
            _propose(out, name, val, ATTR_CONF_JSONLD, "json-ld")

    for key in _JSONLD_GTIN_KEYS:
        if node.get(key):
            _propose(out, "gtin", node[key], ATTR_CONF_JSONLD, "json-ld")
            break

    offers = node.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    price = None
    if isinstance(offers, dict):
        price = offers.get("price") or offers.get("lowPrice")
    if price is None:
        price = node.get("price")
    _propose(out, "price", price, ATTR_CONF_JSONLD, "json-ld")

    props = node.get("additionalProperty") or []
    if isinstance(props, dict):
        props = [props]
    for prop in props:
        if not isinstance(prop, dict):
            continue
        pname = str(prop.get("name") or "").strip().lower()
        if pname not in _ADDITIONAL_PROPERTY_NAMES:
            continue
        pname = "color" if pname == "colour" else pname
        _propose(out, pname, prop.get("value"), ATTR_CONF_JSONLD, "json-ld")


def _css_selectors(name: str) -> list:
    return [
        f"[itemprop={name}]",
        f"[data-{name}]",
        f".product-{name}",
        f".{name}",
        f"[class*={name}]",
    ]


def _element_value(el, name: str) -> Optional[str]:
    for attr in ("content", "value", f"data-{name}"):
        v = el.get(attr)
        if v and str(v).strip():
            return str(v)
    text = el.get_text(" ", strip=True)
    # a whole container matched by [class*=x] is not a value
    if not text or len(text) > 120:
        return None
    return text


def _css_layer(soup: BeautifulSoup, out: Proposals) -> None:
    for name in ATTRIBUTE_NAMES:
        if name == "gtin":
            sels = ["[itemprop^=gtin]"] + _css_selectors(name)
        elif name == "brand":
            sels = _css_selectors(name) + ["[itemprop=manufacturer]", "[class*=manufacturer]"]
        else:
            sels = _css_selectors(name)
        for sel in sels:
            try:
                els = soup.select(sel)
            except Exception as e:
                logger.debug("Attribute selector {} rejected: {}", sel, e)
                continue
            value = None
            for el in els:
                if el.name in ("meta", "script", "style"):
                    continue
                value = _element_value(el, name)
                if value:
                    break
            if value:
                _propose(out, name, value, ATTR_CONF_CSS, "css")
                break


def _meta_layer(soup: BeautifulSoup, out: Proposals) -> None:
    for name in ATTRIBUTE_NAMES:
        keys = [f"product:{name}", name]
        if name == "price":
            keys = ["product:price:amount", "og:price:amount"] + keys
        if name == "brand":
            keys = ["product:brand", "og:brand", "brand"]
        for key in keys:
            tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
            if tag is not None and (tag.get("content") or "").strip():
                _propose(out, name, tag["content"], ATTR_CONF_META, "meta")
                break


def _pattern_layer(text: str, out: Proposals) -> None:
    if not text:
        return
    for name, patterns in TEXT_PATTERNS.items():
        for pat in patterns:
            m = pat.search(text)
            if m:
                _propose(out, name, m.group(1), ATTR_CONF_PATTERN, "pattern")
                break


# ---------------------------
# Validation / reconciliation
# ---------------------------

def _reconcile(values: Dict[str, Any], conf: Dict[str, float], flags: Dict[str, str]) -> None:
    gtin = values.get("gtin")
    if gtin and not validate_gtin(gtin):
        conf["gtin"] = min(conf["gtin"], ATTR_CONF_SUSPECT)
        flags["gtin"] = "invalid_checksum"

    upc = values.get("upc")
    if gtin and upc:
        g = _DIGITS_RE.sub("", gtin)
        if g[-12:] == upc or g == upc:
            conf["upc"] = max(conf["upc"], conf["gtin"])
        else:
            # two independent low-confidence identifiers, neither is trusted
            conf["gtin"] = min(conf["gtin"], ATTR_CONF_SUSPECT)
            conf["upc"] = min(conf["upc"], ATTR_CONF_SUSPECT)
            flags.setdefault("gtin", "conflicts_with_upc")
            flags["upc"] = "conflicts_with_gtin"


def extract_attributes(
    soup: BeautifulSoup,
    product_node: Optional[dict] = None,
    page_text: Optional[str] = None,
) -> ProductAttributes:
    """
    Run every layer over a parsed page.

    Parameters
    ----------
    soup:
        Parsed document.
    product_node:
        JSON-LD Product node if the caller already located it.
    page_text:
        Visible text for the pattern layer; derived from ``soup`` if omitted.
    """
    proposals: Proposals = {}
    _jsonld_layer(product_node, proposals)
    _css_layer(soup, proposals)
    _meta_layer(soup, proposals)
    if page_text is None:
        body = soup.body or soup
        page_text = collapse_ws(
            " ".join(
                s for s in body.find_all(string=True)
                if s.parent is not None and s.parent.name not in ("script", "style", "noscript")
            )
        )
    _pattern_layer(page_text, proposals)

    values = {k: v[0] for k, v in proposals.items()}
    conf = {k: v[1] for k, v in proposals.items()}
    methods = {k: v[2] for k, v in proposals.items()}
    flags: Dict[str, str] = {}
    _reconcile(values, conf, flags)

    return ProductAttributes(**values, confidence=conf, methods=methods, flags=flags)
