from bs4 import BeautifulSoup

from compmatch.attributes import clean_value, extract_attributes, parse_price, validate_gtin
from compmatch.jsonld import find_product_node


def _extract(html):
    soup = BeautifulSoup(html, "lxml")
    return extract_attributes(soup, find_product_node(soup))


def test_validate_gtin_known_codes():
    assert validate_gtin("4006381333931")   # EAN-13
    assert validate_gtin("036000291452")    # UPC-A
    assert validate_gtin("96385074")        # EAN-8
    assert validate_gtin("00012345600012")  # GTIN-14
    assert not validate_gtin("4006381333932")
    assert not validate_gtin("12345")
    assert not validate_gtin("abc")
    assert not validate_gtin(None)


def test_parse_price_variants():
    assert parse_price("$1,299.00") == 1299.0
    assert parse_price("EUR 19.5") == 19.5
    assert parse_price(42) == 42.0
    assert parse_price("call us") is None


def test_clean_value_per_type():
    assert clean_value("sku", " AB-12_x/9 ") == "AB-12_x9"
    assert clean_value("color", "Red!!  / Blue") == "Red / Blue"
    assert clean_value("brand", "   ") is None


def test_jsonld_layer_has_highest_confidence():
    html = """
    <html><head>
    <script type="application/ld+json">
    {"@type": "Product", "name": "Widget", "brand": {"@type": "Brand", "name": "Acme"},
     "sku": "W-100", "gtin13": "4006381333931",
     "offers": [{"@type": "Offer", "price": "1,049.99", "priceCurrency": "USD"}],
     "additionalProperty": [{"name": "Material", "value": "Steel"}]}
    </script>
    <meta property="product:brand" content="Other">
    </head><body><span class="brand">Nope</span></body></html>
    """
    attrs = _extract(html)
    assert attrs.brand == "Acme"
    assert attrs.confidence["brand"] == 0.9
    assert attrs.methods["brand"] == "json-ld"
    assert attrs.sku == "W-100"
    assert attrs.gtin == "4006381333931"
    assert attrs.price == 1049.99
    assert attrs.material == "Steel"
    assert "gtin" not in attrs.flags


def test_css_and_meta_layers():
    html = """
    <html><head><meta property="og:price:amount" content="19.99"></head>
    <body>
      <div itemprop="brand">Acme Tools</div>
      <span class="product-color">Forest Green</span>
    </body></html>
    """
    attrs = _extract(html)
    assert attrs.brand == "Acme Tools"
    assert attrs.confidence["brand"] == 0.7
    assert attrs.color == "Forest Green"
    assert attrs.price == 19.99
    assert attrs.confidence["price"] == 0.6
    assert attrs.methods["price"] == "meta"


def test_pattern_layer_is_last_resort():
    html = "<html><body><p>Great hammer. UPC: 036000291452. Item # HM-16OZ. Now $24.50</p></body></html>"
    attrs = _extract(html)
    assert attrs.upc == "036000291452"
    assert attrs.sku == "HM-16OZ"
    assert attrs.price == 24.5
    assert attrs.confidence["upc"] == 0.4
    assert attrs.methods["sku"] == "pattern"


def test_invalid_gtin_is_kept_with_low_confidence():
    html = '<html><head><script type="application/ld+json">{"@type": "Product", "gtin": "4006381333932"}</script></head></html>'
    attrs = _extract(html)
    assert attrs.gtin == "4006381333932"
    assert attrs.confidence["gtin"] <= 0.3
    assert attrs.flags["gtin"] == "invalid_checksum"


def test_upc_matching_gtin_tail_inherits_confidence():
    html = """
    <html><head><script type="application/ld+json">
    {"@type": "Product", "gtin13": "0036000291452"}
    </script></head><body><p>UPC 036000291452</p></body></html>
    """
    attrs = _extract(html)
    assert attrs.upc == "036000291452"
    assert attrs.confidence["upc"] == attrs.confidence["gtin"] == 0.9


def test_conflicting_upc_and_gtin_both_kept_low():
    html = """
    <html><head><script type="application/ld+json">
    {"@type": "Product", "gtin13": "4006381333931", "upc": "036000291452"}
    </script></head></html>
    """
    attrs = _extract(html)
    assert attrs.gtin == "4006381333931"
    assert attrs.upc == "036000291452"
    assert attrs.confidence["gtin"] <= 0.3
    assert attrs.confidence["upc"] <= 0.3
    assert attrs.flags["upc"] == "conflicts_with_gtin"


def test_brand_falls_back_to_manufacturer_markup():
    attrs = _extract('<html><body><span itemprop="manufacturer">Stanley</span></body></html>')
    assert attrs.brand == "Stanley"
    assert attrs.methods["brand"] == "css"

    attrs = _extract('<html><body><p class="item-manufacturer-name">DeWalt</p></body></html>')
    assert attrs.brand == "DeWalt"
