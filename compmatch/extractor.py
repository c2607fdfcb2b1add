from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup
from loguru import logger

from .attributes import extract_attributes
from .browser_pool import BrowserPool
from .config import EXTRACTION_CONFIDENCE
from .errors import ExtractionFailure
from .image_select import ImageCandidate, select_rendered_image, select_static_image
from .jsonld import find_product_node, name_from_node
from .normalize import basic_clean
from .page_fetch import PageFetcher
from .pipeline_types import CandidateRecord, ProductAttributes, ReferenceProduct
from .search_phrase import derive_search_phrase
from .utils.urls import domain_of, title_from_url


@dataclass
class PageExtract:
    url: str
    title: str
    image: Optional[ImageCandidate]
    attributes: ProductAttributes


def extract_title(soup: BeautifulSoup, url: str, product_node: Optional[dict] = None) -> str:
    """<title>, then JSON-LD name, then og:title, then the URL path."""
    if soup.title is not None:
        t = basic_clean(soup.title.get_text(" "))
        if t:
            return t
    t = basic_clean(name_from_node(product_node))
    if t:
        return t
    og = soup.find("meta", attrs={"property": "og:title"}) or soup.find("meta", attrs={"name": "og:title"})
    if og is not None:
        t = basic_clean(og.get("content") or "")
        if t:
            return t
    return title_from_url(url)


class CandidateExtractor:
    """
    Turns an arbitrary product page into a comparable record.

    ``extract`` and ``extract_reference`` never raise for scraping trouble:
    fetch errors, unparsable pages and pages without an image all come back
    as ``None`` (with a warning logged).
    """

    def __init__(self, fetcher: PageFetcher, browser_pool: Optional[BrowserPool] = None):
        self.fetcher = fetcher
        self.browser_pool = browser_pool

    async def _render_fallback(self, url: str) -> Optional[ImageCandidate]:
        if self.browser_pool is None:
            return None
        try:
            return await select_rendered_image(self.browser_pool, url)
        except ExtractionFailure as e:
            logger.warning("Rendered fallback unavailable for {}: {}", url, e)
        except Exception as e:
            logger.warning("Rendered fallback failed for {}: {}", url, e)
        return None

    async def extract_page(self, url: str) -> Optional[PageExtract]:
        html = await self.fetcher.fetch(url)
        if html is None:
            return None
        try:
            soup = BeautifulSoup(html, "lxml")
            product_node = find_product_node(soup)
            title = extract_title(soup, url, product_node)
            image = select_static_image(soup, url, product_node)
            attributes = extract_attributes(soup, product_node)
        except Exception as e:
            logger.warning("Extraction: could not parse {}: {}", url, e)
            return None

        if image is None:
            logger.info("Extraction: no static image on {}, trying rendered page", url)
            image = await self._render_fallback(url)

        return PageExtract(url=url, title=title, image=image, attributes=attributes)

    async def extract(self, url: str) -> Optional[CandidateRecord]:
        page = await self.extract_page(url)
        if page is None:
            return None
        if page.image is None or not page.image.url:
            logger.warning("Extraction: no image found on {}", url)
            return None
        return CandidateRecord(
            url=url,
            image_url=page.image.url,
            title_text=page.title,
            attributes=page.attributes,
            extraction_method=page.image.source,
            extraction_confidence=EXTRACTION_CONFIDENCE.get(page.image.source, 0.5),
        )

    async def extract_reference(self, url: str) -> Optional[ReferenceProduct]:
        """
        Same machinery, applied to the reference page.

        A reference without a title cannot be searched for and is dropped;
        one without an image is kept and will be compared on text only.
        """
        page = await self.extract_page(url)
        if page is None:
            return None
        if not page.title:
            logger.warning("Reference {}: no title", url)
            return None
        image_url = page.image.url if page.image is not None else ""
        if not image_url:
            logger.warning("Reference {}: no image, visual scoring disabled", url)
        phrase = derive_search_phrase(page.title, exclude_domain=domain_of(url))
        return ReferenceProduct(
            source_url=url,
            title=page.title,
            image_url=image_url,
            search_phrase=phrase,
            attributes=page.attributes,
        )
