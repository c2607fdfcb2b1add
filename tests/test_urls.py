from compmatch.utils.urls import canon_url, dedupe_urls, domain_of, host_matches, resolve, title_from_url


def test_domain_of_strips_scheme_www_and_port():
    assert domain_of("https://www.Acme.com:8443/p/1") == "acme.com"
    assert domain_of("www.shop.co.uk") == "shop.co.uk"
    assert domain_of("") == ""


def test_host_matches_subdomains_only():
    assert host_matches("m.youtube.com", "youtube.com")
    assert host_matches("youtube.com", "youtube.com")
    assert not host_matches("notyoutube.com", "youtube.com")


def test_resolve_relative_and_protocol_relative():
    base = "https://shop.com/a/b/page.html"
    assert resolve(base, "/img/x.jpg") == "https://shop.com/img/x.jpg"
    assert resolve(base, "y.jpg") == "https://shop.com/a/b/y.jpg"
    assert resolve(base, "//cdn.shop.com/z.jpg") == "https://cdn.shop.com/z.jpg"
    assert resolve(base, "") == ""


def test_canon_url_and_dedupe_preserve_first_seen():
    urls = [
        "https://www.shop.com/item/1/",
        "https://shop.com/item/1#reviews",
        "https://shop.com/item/2",
    ]
    assert canon_url(urls[0]) == canon_url(urls[1])
    assert dedupe_urls(urls) == [urls[0], urls[2]]


def test_title_from_url_uses_last_segments():
    assert title_from_url("https://shop.com/kitchen/acme-blender_500w.html") == "kitchen acme blender 500w"
    # numeric ids and short markers are skipped
    assert title_from_url("https://shop.com/acme-steel-hammer/dp/12345") == "acme steel hammer"
    assert title_from_url("https://shop.com/") == ""
