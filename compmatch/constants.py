from __future__ import annotations

"""Shared vocabularies used by the phrase deriver, discovery and extractor.

Kept in one place so the deriver and the attribute/image heuristics see the
same lists.
"""

# Multi-word e-commerce boilerplate, removed before single promo words.
PROMO_PHRASES = [
    "free shipping",
    "free delivery",
    "ships free",
    "delivery included",
    "limited time",
    "while supplies last",
    "act now",
    "sale ends",
    "add to cart",
    "buy now",
    "shopping cart",
    "save for later",
    "authorized dealer",
]

PROMO_WORDS = [
    "buy",
    "order",
    "shop",
    "get",
    "find",
    "compare",
    "best",
    "top",
    "cheap",
    "cheapest",
    "lowest",
    "discount",
    "sale",
    "deal",
    "deals",
    "offer",
    "price",
    "cost",
    "hurry",
    "expires",
    "clearance",
    "closeout",
    "discontinued",
    "checkout",
    "wishlist",
    "favorites",
    "official",
    "authentic",
    "genuine",
    "original",
    "licensed",
    "certified",
]

# Curated retailer / reseller names. Longer names first so "adorama camera"
# is removed before "adorama".
RETAILER_BRANDS_MAJOR = [
    "walmart", "target", "amazon", "best buy", "home depot", "lowes",
    "lowe's", "costco", "sam's club", "kroger", "safeway", "albertsons",
]

RETAILER_BRANDS_PHARMACY = [
    "walgreens", "cvs", "rite aid", "dollar general", "dollar tree",
    "betty mills",
]

RETAILER_BRANDS_MARKETPLACE = [
    "ebay", "etsy", "wayfair", "overstock", "newegg", "bhphotovideo",
    "b&h photo", "adorama camera", "adorama electronics", "adorama",
]

RETAILER_BRANDS_SPECIALTY = [
    "dick's sporting goods", "academy sports", "bass pro shops", "petco",
    "petsmart", "michaels", "joann fabrics", "hobby lobby",
    "bed bath & beyond", "macy's", "nordstrom", "kohl's",
]

RETAILER_BRANDS_INDUSTRIAL = [
    "grainger", "fastenal", "mcmaster-carr", "staples", "office depot",
    "office max", "quill", "autozone", "oreilly", "o'reilly",
    "advance auto parts", "napa auto parts", "pep boys", "carquest",
]

RETAILER_BRANDS_HARDWARE = [
    "ace hardware", "true value", "do it best", "coastal farm",
]

RETAILER_BRANDS_GROCERY = [
    "publix", "wegmans", "shoprite", "food lion", "giant eagle", "meijer",
    "hy-vee", "heb", "winco foods", "aldi", "lidl",
]

RETAILER_BRANDS = sorted(
    set(
        RETAILER_BRANDS_MAJOR
        + RETAILER_BRANDS_PHARMACY
        + RETAILER_BRANDS_MARKETPLACE
        + RETAILER_BRANDS_SPECIALTY
        + RETAILER_BRANDS_INDUSTRIAL
        + RETAILER_BRANDS_HARDWARE
        + RETAILER_BRANDS_GROCERY
    ),
    key=lambda b: (-len(b), b),
)


# ---------------------------
# Discovery blocklist
# ---------------------------

BLOCKED_DOMAINS = [
    "youtube.com",
    "youtu.be",
    "facebook.com",
    "instagram.com",
    "pinterest.com",
    "tiktok.com",
    "reddit.com",
    "wikipedia.org",
    "twitter.com",
    "x.com",
    "quora.com",
]

BLOCKED_PATH_SEGMENTS = [
    "/collections/",
    "/category/",
    "/categories/",
    "/c/",
    "/search/",
    "/blog/",
    "/tag/",
]


# ---------------------------
# Image heuristics
# ---------------------------

IMAGE_REJECT_TOKENS = ["logo", "icon", "banner", "placeholder", "sprite"]
IMAGE_REJECT_EXTENSIONS = [".svg"]

LAZY_SRC_ATTRS = ["data-src", "data-lazy", "data-lazy-src", "data-original"]
SRCSET_ATTRS = ["srcset", "data-srcset"]

PRODUCT_CONTEXT_SELECTORS = [
    "main",
    "#content",
    "div[class*=product]",
    "section[class*=product]",
    ".product-main",
    ".product-image",
]


# ---------------------------
# Attribute extraction
# ---------------------------

ATTRIBUTE_NAMES = [
    "brand",
    "model",
    "price",
    "gtin",
    "sku",
    "upc",
    "material",
    "color",
    "size",
]

IDENTIFIER_ATTRIBUTES = {"gtin", "sku", "upc"}
