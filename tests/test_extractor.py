import asyncio
from contextlib import asynccontextmanager

from bs4 import BeautifulSoup

from compmatch.errors import BrowserPoolExhausted
from compmatch.extractor import CandidateExtractor, extract_title


class DummyFetcher:
    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        return self.pages.get(url)


class DummyPage:
    def __init__(self, images):
        self.images = images

    async def goto(self, url, wait_until=None):
        return None

    async def evaluate(self, script):
        if "og:image" in script:
            return None
        return self.images


class DummyPool:
    def __init__(self, images=(), exhausted=False):
        self.images = list(images)
        self.exhausted = exhausted
        self.used = 0

    @asynccontextmanager
    async def page(self):
        if self.exhausted:
            raise BrowserPoolExhausted("no page")
        self.used += 1
        yield DummyPage(self.images)


PRODUCT_PAGE = """
<html><head>
<title>Acme Steel Hammer 16oz | Acme Tools</title>
<meta property="og:image" content="https://cdn.acme.com/hammer.jpg">
<script type="application/ld+json">{"@type": "Product", "name": "Steel Hammer", "brand": "Acme", "sku": "H-16"}</script>
</head><body><h1>Steel Hammer</h1></body></html>
"""

TINY_IMAGES_PAGE = """
<html><head><title>Rival Hammer</title></head>
<body><img src="/a.jpg" width="20" height="20"><img src="/b.jpg"></body></html>
"""


def test_extract_title_precedence():
    soup = BeautifulSoup(
        '<html><head><meta property="og:title" content="OG Name"></head><body></body></html>', "lxml"
    )
    assert extract_title(soup, "https://s.com/x", {"name": "LD Name"}) == "LD Name"
    assert extract_title(soup, "https://s.com/x", None) == "OG Name"
    empty = BeautifulSoup("<html><body></body></html>", "lxml")
    assert extract_title(empty, "https://s.com/tools/claw-hammer", None) == "tools claw hammer"


def test_extract_candidate_record():
    url = "https://rival.com/p/hammer"
    extractor = CandidateExtractor(DummyFetcher({url: PRODUCT_PAGE}))
    rec = asyncio.run(extractor.extract(url))
    assert rec.image_url == "https://cdn.acme.com/hammer.jpg"
    assert rec.extraction_method == "og:image"
    assert rec.extraction_confidence == 0.9
    assert rec.title_text.startswith("Acme Steel Hammer 16oz")
    assert rec.attributes.brand == "Acme"
    assert rec.attributes.sku == "H-16"


def test_fetch_failure_returns_none():
    extractor = CandidateExtractor(DummyFetcher({}))
    assert asyncio.run(extractor.extract("https://gone.com/x")) is None


def test_small_images_force_rendered_fallback():
    url = "https://rival.com/p/2"
    pool = DummyPool(images=[["https://rival.com/hero.jpg", 300000]])
    extractor = CandidateExtractor(DummyFetcher({url: TINY_IMAGES_PAGE}), browser_pool=pool)
    rec = asyncio.run(extractor.extract(url))
    assert pool.used == 1
    assert rec.image_url == "https://rival.com/hero.jpg"
    assert rec.extraction_method == "rendered-img"
    assert rec.extraction_confidence == 0.5


def test_no_image_anywhere_is_none():
    url = "https://rival.com/p/3"
    extractor = CandidateExtractor(DummyFetcher({url: TINY_IMAGES_PAGE}), browser_pool=DummyPool())
    assert asyncio.run(extractor.extract(url)) is None
    # without a pool there is no rendered attempt at all
    extractor = CandidateExtractor(DummyFetcher({url: TINY_IMAGES_PAGE}))
    assert asyncio.run(extractor.extract(url)) is None


def test_exhausted_pool_is_soft_failure():
    url = "https://rival.com/p/4"
    extractor = CandidateExtractor(DummyFetcher({url: TINY_IMAGES_PAGE}), browser_pool=DummyPool(exhausted=True))
    assert asyncio.run(extractor.extract(url)) is None


def test_extract_reference_derives_phrase():
    url = "https://www.acme.com/tools/hammer"
    page = PRODUCT_PAGE.replace("Acme Steel Hammer 16oz | Acme Tools", "Acme Steel Hammer 16oz - Buy Now Free Shipping")
    ref = asyncio.run(CandidateExtractor(DummyFetcher({url: page})).extract_reference(url))
    assert ref.source_url == url
    assert ref.image_url == "https://cdn.acme.com/hammer.jpg"
    assert ref.search_phrase == "acme steel hammer 16oz -site:acme.com"


def test_extract_reference_without_image_keeps_title():
    url = "https://acme.com/p/9"
    ref = asyncio.run(CandidateExtractor(DummyFetcher({url: TINY_IMAGES_PAGE})).extract_reference(url))
    assert ref.title == "Rival Hammer"
    assert ref.image_url == ""
