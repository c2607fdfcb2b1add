import asyncio

import httpx
import pytest

from compmatch import config
from compmatch.errors import ConfigurationFailure, DiscoveryFailure
from compmatch.search_client import SerpApiClient


def _search(handler, phrase="acme hammer -site:acme.com", **kwargs):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await SerpApiClient(http, api_key="key").search(phrase, **kwargs)

    return asyncio.run(run())


def test_search_parses_organic_and_shopping():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "organic_results": [{"link": "https://rival.com/h", "title": "Hammer", "position": 1}],
                "shopping_results": [{"product_link": "https://store.com/h", "title": "Hammer", "price": "$9"}],
            },
        )

    hits = _search(handler, num=6)
    assert len(hits) == 2
    assert hits.organic[0]["link"] == "https://rival.com/h"
    params = seen[0].url.params
    assert params["engine"] == "google"
    assert params["num"] == "6"
    assert params["device"] == "desktop"
    assert params["q"] == "acme hammer -site:acme.com"


def test_missing_key_is_configuration_failure(monkeypatch):
    monkeypatch.setattr(config, "SERP_API_KEY", "")

    async def run():
        async with httpx.AsyncClient() as http:
            SerpApiClient(http)

    with pytest.raises(ConfigurationFailure):
        asyncio.run(run())


def test_rejected_key_is_configuration_failure():
    with pytest.raises(ConfigurationFailure):
        _search(lambda r: httpx.Response(401, json={"error": "Invalid API key."}))
    with pytest.raises(ConfigurationFailure):
        _search(lambda r: httpx.Response(200, json={"error": "Invalid API key. Your API key should be here"}))


def test_quota_and_transport_are_discovery_failures():
    with pytest.raises(DiscoveryFailure):
        _search(lambda r: httpx.Response(429, json={"error": "Your account has run out of searches."}))
    with pytest.raises(DiscoveryFailure):
        _search(lambda r: httpx.Response(500))

    def boom(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(DiscoveryFailure):
        _search(boom)


def test_no_results_is_empty_not_error():
    hits = _search(lambda r: httpx.Response(200, json={"error": "Google hasn't returned any results for this query."}))
    assert len(hits) == 0
