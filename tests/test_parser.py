"""Tests for the product parser pipeline."""

import json

import httpx
import pytest

from pocket_pause.ingest.base import ExtractionStrategy, ParseResult, ProductInfo
from pocket_pause.ingest.cache import ParseCache
from pocket_pause.ingest.fetchers.remote import RemoteExtractClient
from pocket_pause.ingest.fetchers.static import StaticPageFetcher
from pocket_pause.ingest.parser import (
    ProductParser,
    clear_parse_cache,
    get_parse_metrics,
    parse_product_url,
    parse_product_url_smart,
    set_default_parser,
)
from pocket_pause.ingest.rules_store import ParsingRulesStore

FILLER = "<p>" + "Soft washed linen, relaxed fit. " * 20 + "</p>"

STANDARD_PAGE = f"""
<html><head>
<script type="application/ld+json">{{"@type": "Product", "name": "Linen Shirt"}}</script>
</head><body>
<h1>Wrong Title From H1</h1>
<div class="buy">
  <span class="price">$45.00</span>
  <button>Add to Bag</button>
</div>
<img src="/img/shirt-large.jpg" width="900" height="1200">
{FILLER}
</body></html>
"""


class Backend:
    """Fake remote backend answering per mode."""

    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append(payload)
        body = self.responses.get(payload["mode"], {"success": False, "error": "unavailable"})
        return httpx.Response(200, json=body)

    def count(self, mode: str) -> int:
        return sum(1 for call in self.calls if call["mode"] == mode)


def _page_fetcher(pages: dict[str, str]) -> StaticPageFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        html = pages.get(str(request.url))
        if html is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=html, headers={"content-type": "text/html"})

    return StaticPageFetcher(timeout=1, transport=httpx.MockTransport(handler))


def _parser(backend: Backend, pages: dict[str, str] | None = None, **kwargs) -> ProductParser:
    return ProductParser(
        remote_client=RemoteExtractClient(
            "http://backend.test/proxy/fetch", timeout=1, transport=httpx.MockTransport(backend)
        ),
        rules_store=ParsingRulesStore(),
        cache=ParseCache(),
        page_fetcher=_page_fetcher(pages or {}),
        **kwargs,
    )


ECHO_EXTRACT = {
    "success": True,
    "extracted": {
        "itemName": "Echo Dot (5th Gen)",
        "price": "49.99",
        "currency": "USD",
        "brand": "Amazon",
        "imageUrl": "https://m.media-amazon.com/images/I/echo.jpg",
    },
}


@pytest.mark.asyncio
async def test_preferred_site_uses_remote_extract_and_caches():
    backend = Backend({"extract": ECHO_EXTRACT})
    parser = _parser(backend)

    first = await parser.parse_smart("https://www.amazon.com/dp/B09B8V1LZ3?utm_source=mail")
    second = await parser.parse_smart("https://www.amazon.com/dp/B09B8V1LZ3?fbclid=zzz")

    assert first.success
    assert first.method == "remote-extract"
    assert first.data.item_name == "Echo Dot (5th Gen)"
    assert first.data.price == "49.99"
    assert first.data.store_name == "Amazon"
    assert first.confidence >= 0.6
    assert first.parse_time_ms is not None
    assert second == first
    assert second is not first
    assert backend.count("extract") == 1

    stats = parser.get_metrics()
    assert stats["total_parses"] == 2
    assert stats["cache_hits"] == 1
    assert stats["cache_hit_rate"] == 0.5


@pytest.mark.asyncio
async def test_later_strategies_never_overwrite_earlier_fields():
    url = "https://shop.example.com/products/linen-shirt"
    backend = Backend()
    parser = _parser(backend, {url: STANDARD_PAGE})

    result = await parser.parse_smart(url)

    assert result.success
    assert result.method == "structured-data"
    assert result.data.item_name == "Linen Shirt"
    assert result.data.price == "45.00"
    assert result.data.price_currency == "USD"
    assert result.data.image_url == "https://shop.example.com/img/shirt-large.jpg"
    assert result.data.store_name == "Example"
    assert result.confidence >= 0.6
    assert backend.calls == []


@pytest.mark.asyncio
async def test_problematic_site_requests_render_wait():
    backend = Backend({"extract": {"success": True, "extracted": {"itemName": "Pegasus 41", "price": "140"}}})
    parser = _parser(backend)

    result = await parser.parse_smart("https://www.nike.com/t/pegasus-41-road-running-shoes")

    assert result.data.item_name == "Pegasus 41"
    assert backend.calls[0]["options"]["waitFor"] == 3000


@pytest.mark.asyncio
async def test_screenshot_fallback_when_nothing_extracted():
    backend = Backend({
        "screenshot": {
            "success": True,
            "screenshot": "https://shots.test/page.png",
            "markdown": "# Mystery Gadget\n\nSome text",
        }
    })
    parser = _parser(backend)

    result = await parser.parse_smart("https://shop.example.com/12345")

    assert result.success
    assert result.method == "screenshot-fallback"
    assert result.screenshot_url == "https://shots.test/page.png"
    assert result.data.item_name == "Mystery Gadget"
    assert result.confidence == pytest.approx(0.4)


@pytest.mark.asyncio
async def test_fallback_without_screenshot_uses_url_name():
    parser = _parser(Backend())

    result = await parser.parse_smart("https://shop.example.com/products/walnut-desk-organizer")

    assert result.method == "screenshot-fallback"
    assert result.data.item_name == "Walnut Desk Organizer"
    assert result.confidence == pytest.approx(0.6)
    assert result.screenshot_url is None


@pytest.mark.parametrize("bad", ["not a url", "", "ftp://example.com/file"])
@pytest.mark.asyncio
async def test_invalid_urls_never_raise(bad):
    backend = Backend()
    parser = _parser(backend)

    result = await parser.parse_smart(bad)

    assert result.success is False
    assert result.method == "invalid-url"
    assert result.data.store_name == "Unknown Store"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_failures_are_cached_too():
    parser = _parser(Backend())

    await parser.parse_smart("not a url")
    await parser.parse_smart("not a url")

    assert parser.get_metrics()["cache_hits"] == 1


class ExplodingStrategy(ExtractionStrategy):
    name = "structured-data"

    async def try_extract(self, url, context):
        raise RuntimeError("selector engine crashed")


class FixedStrategy(ExtractionStrategy):
    name = "heuristic"

    async def try_extract(self, url, context):
        return ParseResult(
            success=True,
            data=ProductInfo(item_name="Fixed Item", price="10.00", image_url="https://x.test/i.jpg"),
            method=self.name,
            confidence=0.9,
        )


@pytest.mark.asyncio
async def test_strategy_errors_are_isolated():
    parser = _parser(
        Backend(),
        strategies={"structured-data": ExplodingStrategy(), "heuristic": FixedStrategy()},
    )

    result = await parser.parse_smart("https://shop.example.com/products/fixed-item")

    assert result.success
    assert result.method == "heuristic"
    assert result.data.item_name == "Fixed Item"


@pytest.mark.asyncio
async def test_unexpected_error_becomes_low_confidence_result(monkeypatch):
    parser = _parser(Backend())

    async def broken(url, site_type):
        raise ValueError("boom")

    monkeypatch.setattr(parser, "_run_pipeline", broken)
    result = await parser.parse_smart("https://shop.example.com/gear/rain-jacket")

    assert result.success is False
    assert result.method == "error"
    assert result.error == "boom"
    assert result.data.item_name == "Rain Jacket"
    assert result.data.store_name == "Example"


@pytest.mark.asyncio
async def test_clear_cache_forces_reparse():
    backend = Backend({"extract": ECHO_EXTRACT})
    parser = _parser(backend)
    url = "https://www.amazon.com/dp/B09B8V1LZ3"

    await parser.parse_smart(url)
    parser.clear_cache()
    await parser.parse_smart(url)

    assert backend.count("extract") == 2


@pytest.mark.asyncio
async def test_caller_changes_do_not_leak_into_cache():
    backend = Backend({"extract": ECHO_EXTRACT})
    parser = _parser(backend)

    info = await parser.parse("https://www.amazon.com/dp/B09B8V1LZ3")
    info.price = "0.01"
    info.item_name = "Edited"

    again = await parser.parse_smart("https://www.amazon.com/dp/B09B8V1LZ3?utm_source=x")
    again.data.brand = "Edited Brand"
    third = await parser.parse_smart("https://www.amazon.com/dp/B09B8V1LZ3")

    assert backend.count("extract") == 1
    assert again.data.price == "49.99"
    assert again.data.item_name == "Echo Dot (5th Gen)"
    assert third.data.brand == "Amazon"


@pytest.mark.asyncio
async def test_module_level_entry_points():
    backend = Backend({"extract": ECHO_EXTRACT})
    set_default_parser(_parser(backend))
    try:
        result = await parse_product_url_smart("https://www.amazon.com/dp/B09B8V1LZ3")
        info = await parse_product_url("https://www.amazon.com/dp/B09B8V1LZ3")

        assert result.data.item_name == info.item_name == "Echo Dot (5th Gen)"
        assert get_parse_metrics()["cache_hits"] == 1

        clear_parse_cache()
        assert get_parse_metrics()["total_parses"] == 2
    finally:
        set_default_parser(None)
