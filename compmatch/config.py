from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .errors import ConfigurationFailure


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------
# Credentials (never logged)
# ---------------------------

SERP_API_KEY = os.getenv("SERP_API_KEY", "")
IMAGGA_API_KEY = os.getenv("IMAGGA_API_KEY", "")
IMAGGA_API_SECRET = os.getenv("IMAGGA_API_SECRET", "")
ZYTE_API_KEY = os.getenv("ZYTE_API_KEY", "")


# ---------------------------
# Page fetch / HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = 5.0
HTTP_READ_TIMEOUT = _env_float("HTTP_READ_TIMEOUT", 15.0)
HTTP_MAX_REDIRECTS = 5
HTTP_MAX_BYTES = 5_000_000  # product pages are heavy
HTTP_FETCH_ATTEMPTS = _env_int("HTTP_FETCH_ATTEMPTS", 3)
HTTP_RETRY_DELAY = 2.0      # seconds, multiplied by attempt number

HTTP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

ZYTE_EXTRACT_URL = "https://api.zyte.com/v1/extract"
ZYTE_TIMEOUT = 60.0


# ---------------------------
# Headless rendering
# ---------------------------

BROWSER_MAX_PAGES = _env_int("BROWSER_MAX_PAGES", 10)
BROWSER_NAV_TIMEOUT_MS = 20_000
BROWSER_VIEWPORT = {"width": 1920, "height": 1080}
BROWSER_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


# ---------------------------
# Image selection
# ---------------------------

OG_IMAGE_SCORE = 1000
JSONLD_IMAGE_SCORE = 950
MIN_IMAGE_AREA = 2000            # px^2
PRODUCT_CONTEXT_BONUS = 200

# extraction_method -> extraction_confidence
EXTRACTION_CONFIDENCE = {
    "og:image": 0.9,
    "json-ld": 0.85,
    "img-scan": 0.6,
    "rendered-og:image": 0.7,
    "rendered-img": 0.5,
}


# ---------------------------
# Attribute extraction confidences
# ---------------------------

ATTR_CONF_JSONLD = 0.9
ATTR_CONF_CSS = 0.7
ATTR_CONF_META = 0.6
ATTR_CONF_PATTERN = 0.4
ATTR_CONF_SUSPECT = 0.3          # cap for invalid GTINs / UPC-GTIN conflicts


# ---------------------------
# Similarity
# ---------------------------

IMAGE_WEIGHT = _env_float("IMAGE_WEIGHT", 0.7)
TEXT_WEIGHT = _env_float("TEXT_WEIGHT", 0.3)
MIN_IMAGE_SCORE = _env_float("MIN_IMAGE_SCORE", 0.0)
MIN_TEXT_SCORE = _env_float("MIN_TEXT_SCORE", 0.0)
SIMILARITY_THRESHOLD = _env_float("SIMILARITY_THRESHOLD", 0.4)

# text comparator internals
TEXT_OVERLAP_WEIGHT = 0.6
TEXT_EDIT_WEIGHT = 0.4
TEXT_MIN_CHARS = 3

# classification bands, highest first
CLASSIFICATION_BANDS = [
    (0.8, "very similar"),
    (0.6, "similar"),
    (0.4, "moderately similar"),
    (0.2, "slightly similar"),
]
CLASSIFICATION_FLOOR = "very different"

HASH_SIZE = 16                   # 16x16 dHash -> 256 bits
IMAGE_DOWNLOAD_MAX_BYTES = 10_000_000

ENABLE_CLASSIFIER_PRIMARY = _env_flag("ENABLE_IMAGGA_PRIMARY", True)
ENABLE_PERCEPTUAL_FALLBACK = _env_flag("ENABLE_PERCEPTUAL_FALLBACK", True)
CLASSIFIER_MIN_CONFIDENCE = _env_float("IMAGGA_MIN_CONFIDENCE", 0.3)
CLASSIFIER_TAG_WEIGHT = 0.7
CLASSIFIER_COLOR_WEIGHT = 0.3
CLASSIFIER_TAG_LIMIT = 20
CLASSIFIER_TAG_THRESHOLD = 15.0  # imagga confidence is 0..100
CLASSIFIER_REQUEST_SPACING = 2.0  # seconds between classifier calls
IMAGGA_BASE_URL = "https://api.imagga.com/v2"


# ---------------------------
# Search phrase / discovery
# ---------------------------

SEARCH_PHRASE_BUDGET = 80
SEARCH_DIRECTIVE_RESERVE = 20

SERPAPI_URL = "https://serpapi.com/search.json"
SEARCH_COUNTRY = os.getenv("SEARCH_COUNTRY", "us")
SEARCH_LANGUAGE = os.getenv("SEARCH_LANGUAGE", "en")
SEARCH_TIMEOUT = 30.0
ORGANIC_LIMIT = _env_int("ORGANIC_LIMIT", 6)
SHOPPING_LIMIT = _env_int("SHOPPING_LIMIT", 4)
ENABLE_SHOPPING = _env_flag("ENABLE_SHOPPING", True)

DISCOVERY_CACHE_TTL = _env_float("DISCOVERY_CACHE_TTL", 3600.0)
DISCOVERY_CACHE_MAX_ENTRIES = 512


# ---------------------------
# Batch orchestration
# ---------------------------

MAX_CONCURRENT_REFERENCES = _env_int("MAX_CONCURRENT", 5)
MIN_ADMISSION_INTERVAL = _env_float("MIN_ADMISSION_INTERVAL", 1.0)
MAX_CANDIDATES = _env_int("MAX_COMPETITORS", 5)
CANDIDATE_STAGGER = 0.25         # seconds between candidate extraction starts
BATCH_DEADLINE = _env_float("BATCH_DEADLINE", 1800.0)


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class MatchSettings(BaseModel):
    """
    Tunables for one pipeline run.

    Defaults mirror the module constants above, so an empty
    ``MatchSettings()`` is the environment-configured behaviour.
    """

    image_weight: float = Field(default=IMAGE_WEIGHT, ge=0.0)
    text_weight: float = Field(default=TEXT_WEIGHT, ge=0.0)
    min_image_score: float = Field(default=MIN_IMAGE_SCORE, ge=0.0, le=1.0)
    min_text_score: float = Field(default=MIN_TEXT_SCORE, ge=0.0, le=1.0)
    threshold: float = Field(default=SIMILARITY_THRESHOLD, ge=0.0, le=1.0)

    max_candidates: int = Field(default=MAX_CANDIDATES, ge=0)
    max_concurrent: int = Field(default=MAX_CONCURRENT_REFERENCES, ge=1)
    min_admission_interval: float = Field(default=MIN_ADMISSION_INTERVAL, ge=0.0)
    candidate_stagger: float = Field(default=CANDIDATE_STAGGER, ge=0.0)
    batch_deadline: float = Field(default=BATCH_DEADLINE, gt=0.0)

    organic_limit: int = Field(default=ORGANIC_LIMIT, ge=0)
    shopping_limit: int = Field(default=SHOPPING_LIMIT, ge=0)
    enable_shopping: bool = ENABLE_SHOPPING
    cache_ttl: float = Field(default=DISCOVERY_CACHE_TTL, ge=0.0)

    search_quota: int | None = Field(default=None, ge=0)


def require_search_credentials(api_key: str | None = None) -> str:
    """Return the search key or fail loudly; discovery cannot run without it."""
    key = SERP_API_KEY if api_key is None else api_key
    if not key:
        raise ConfigurationFailure(
            "Search provider API key is not configured",
            {"env": "SERP_API_KEY"},
        )
    return key


def classifier_configured(key: str | None = None, secret: str | None = None) -> bool:
    key = IMAGGA_API_KEY if key is None else key
    secret = IMAGGA_API_SECRET if secret is None else secret
    return bool(key and secret)
