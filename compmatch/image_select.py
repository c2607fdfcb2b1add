from __future__ import annotations

"""
Pick the primary product image of a page.

Static layers, all scored on one scale and de-duplicated by absolute URL:

    1. og:image                    score 1000
    2. JSON-LD Product.image       score  950
    3. every <img>                 score = pixel area (+ context bonus)

When none of them yields a valid image the caller falls back to
``select_rendered_image`` which asks a live page for og:image again, then
the largest on-screen <img>.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from loguru import logger

from .browser_pool import BrowserPool
from .config import (
    JSONLD_IMAGE_SCORE,
    MIN_IMAGE_AREA,
    OG_IMAGE_SCORE,
    PRODUCT_CONTEXT_BONUS,
)
from .constants import (
    IMAGE_REJECT_EXTENSIONS,
    IMAGE_REJECT_TOKENS,
    LAZY_SRC_ATTRS,
    PRODUCT_CONTEXT_SELECTORS,
    SRCSET_ATTRS,
)
from .jsonld import image_from_node
from .utils.urls import resolve

_STYLE_DIM_RE = {
    "width": re.compile(r"(?<![\w-])width\s*:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE),
    "height": re.compile(r"(?<![\w-])height\s*:\s*(\d+(?:\.\d+)?)px", re.IGNORECASE),
}
_NUM_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)")
_SRCSET_DESC_RE = re.compile(r"^(\d+(?:\.\d+)?)([wx])$", re.IGNORECASE)
_SRCSET_URL_RE = re.compile(r"[\s,]*(\S+)")


@dataclass
class ImageCandidate:
    url: str
    score: float
    source: str  # og:image / json-ld / img-scan


def is_valid_image_url(url: Optional[str]) -> bool:
    """
    Reject inline data URIs, SVGs and filenames that look like site chrome
    (logo, icon, banner, placeholder).
    """
    if not url or not url.strip():
        return False
    u = url.strip()
    if u.lower().startswith("data:"):
        return False
    path = urlparse(u).path.lower()
    if any(path.endswith(ext) for ext in IMAGE_REJECT_EXTENSIONS):
        return False
    filename = path.rsplit("/", 1)[-1]
    return not any(tok in filename for tok in IMAGE_REJECT_TOKENS)


def _to_number(value) -> float:
    if value is None:
        return 0.0
    m = _NUM_RE.match(str(value))
    return float(m.group(1)) if m else 0.0


def image_area(img: Tag) -> float:
    """Larger of the width/height attribute area and the inline-style area."""
    attr_area = _to_number(img.get("width")) * _to_number(img.get("height"))
    style = img.get("style") or ""
    sw = _STYLE_DIM_RE["width"].search(style)
    sh = _STYLE_DIM_RE["height"].search(style)
    style_area = 0.0
    if sw and sh:
        style_area = float(sw.group(1)) * float(sh.group(1))
    return max(attr_area, style_area)


def srcset_entries(srcset: str) -> List[Tuple[str, str]]:
    """
    Split a srcset into ``(url, descriptor)`` pairs.

    URLs may contain commas (CDN transform paths), so an entry ends at the
    comma after its descriptor, or at a comma that ends the URL itself.
    """
    out: List[Tuple[str, str]] = []
    text = srcset or ""
    pos, n = 0, len(text)
    while pos < n:
        m = _SRCSET_URL_RE.match(text, pos)
        if not m:
            break
        url, pos = m.group(1), m.end()
        desc = ""
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            end = text.find(",", pos)
            if end == -1:
                end = n
            desc = text[pos:end].strip()
            pos = end + 1
        if url:
            out.append((url, desc))
    return out


def largest_srcset_entry(srcset: str) -> str:
    """URL of the entry with the biggest ``w``/``x`` descriptor."""
    best_url, best_val = "", -1.0
    for url, desc in srcset_entries(srcset):
        val = 1.0
        if desc:
            m = _SRCSET_DESC_RE.match(desc.split()[0])
            if m:
                val = float(m.group(1))
        if val > best_val:
            best_url, best_val = url, val
    return best_url


def effective_src(img: Tag) -> str:
    """src, then lazy-load attributes, then the largest srcset entry."""
    src = (img.get("src") or "").strip()
    if src and not src.lower().startswith("data:"):
        return src
    for attr in LAZY_SRC_ATTRS:
        v = (img.get(attr) or "").strip()
        if v:
            return v
    for attr in SRCSET_ATTRS:
        v = largest_srcset_entry(img.get(attr) or "")
        if v:
            return v
    return src


def in_product_context(img: Tag, context_nodes: List[Tag]) -> bool:
    if not context_nodes:
        return False
    for parent in img.parents:
        if any(parent is node for node in context_nodes):
            return True
    return False


def _meta_content(soup: BeautifulSoup, key: str) -> str:
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def collect_static_candidates(
    soup: BeautifulSoup,
    page_url: str,
    product_node: Optional[dict] = None,
    min_area: float = MIN_IMAGE_AREA,
) -> List[ImageCandidate]:
    """
    All static image candidates, best first.

    Ties are broken by layer order, then URL, so repeated runs agree.
    """
    found: Dict[str, ImageCandidate] = {}
    order = {"og:image": 0, "json-ld": 1, "img-scan": 2}

    def offer(raw: str, score: float, source: str) -> None:
        if not is_valid_image_url(raw):
            return
        absolute = resolve(page_url, raw)
        if not is_valid_image_url(absolute):
            return
        prev = found.get(absolute)
        if prev is None or score > prev.score:
            found[absolute] = ImageCandidate(absolute, score, source)

    offer(_meta_content(soup, "og:image"), OG_IMAGE_SCORE, "og:image")
    offer(image_from_node(product_node), JSONLD_IMAGE_SCORE, "json-ld")

    context_nodes: List[Tag] = []
    for sel in PRODUCT_CONTEXT_SELECTORS:
        context_nodes.extend(soup.select(sel))

    for img in soup.find_all("img"):
        area = image_area(img)
        if area < min_area:
            continue
        score = area
        if in_product_context(img, context_nodes):
            score += PRODUCT_CONTEXT_BONUS
        offer(effective_src(img), score, "img-scan")

    return sorted(found.values(), key=lambda c: (-c.score, order[c.source], c.url))


def select_static_image(
    soup: BeautifulSoup,
    page_url: str,
    product_node: Optional[dict] = None,
) -> Optional[ImageCandidate]:
    candidates = collect_static_candidates(soup, page_url, product_node)
    return candidates[0] if candidates else None


# evaluated in the page; returns [src, area] pairs for visible images
_RENDERED_IMAGES_JS = """
() => Array.from(document.images).map(img => {
    const r = img.getBoundingClientRect();
    return [img.currentSrc || img.src || '', r.width * r.height];
})
"""

_RENDERED_OG_JS = """
() => {
    const m = document.querySelector('meta[property="og:image"], meta[name="og:image"]');
    return m ? m.getAttribute('content') : null;
}
"""


async def select_rendered_image(pool: BrowserPool, url: str) -> Optional[ImageCandidate]:
    """
    Load the page in a headless browser and look again.

    Dynamic og:image wins; otherwise the largest rendered <img> that is not
    a logo or icon.
    """
    async with pool.page() as page:
        await page.goto(url, wait_until="networkidle")
        og = await page.evaluate(_RENDERED_OG_JS)
        if og and is_valid_image_url(og):
            return ImageCandidate(resolve(url, og), OG_IMAGE_SCORE, "rendered-og:image")

        pairs = await page.evaluate(_RENDERED_IMAGES_JS) or []

    best: Optional[ImageCandidate] = None
    for src, area in pairs:
        if not is_valid_image_url(src) or not area:
            continue
        absolute = resolve(url, src)
        if best is None or area > best.score or (area == best.score and absolute < best.url):
            best = ImageCandidate(absolute, float(area), "rendered-img")
    if best is None:
        logger.warning("Rendered fallback: no usable image on {}", url)
    return best
