"""Tests for the screenshot fallback and shared result helpers."""

import httpx
import pytest

from pocket_pause.ingest.base import ParseResult, ProductInfo, calculate_confidence, result_from_info
from pocket_pause.ingest.fetchers.remote import RemoteExtractClient
from pocket_pause.ingest.screenshot_fallback import (
    capture_screenshot_fallback,
    create_fallback_result,
    should_use_screenshot_fallback,
)


def test_merge_missing_never_overwrites():
    info = ProductInfo(item_name="First", price="10.00")
    filled = info.merge_missing(ProductInfo(item_name="Second", price="99.00", brand="Acme"))

    assert info.item_name == "First"
    assert info.price == "10.00"
    assert info.brand == "Acme"
    assert filled == ["brand"]


def test_calculate_confidence_weights():
    assert calculate_confidence(ProductInfo()) == 0.0
    assert calculate_confidence(ProductInfo(item_name="Mug")) == 0.0
    assert calculate_confidence(ProductInfo(item_name="Mugs", price="3")) == pytest.approx(0.7)
    full = ProductInfo(item_name="Mugs", price="3", image_url="x", brand="y")
    assert calculate_confidence(full) == pytest.approx(1.0)


def test_result_from_info_empty_is_none():
    assert result_from_info(ProductInfo(), "heuristic") is None
    brand_only = result_from_info(ProductInfo(brand="Acme"), "heuristic")
    assert brand_only is not None
    assert brand_only.success is False


def test_should_use_fallback():
    useful = ParseResult(success=True, data=ProductInfo(item_name="Lamp", price="20"), confidence=0.7)
    weak = ParseResult(success=True, data=ProductInfo(item_name="Lamp"), confidence=0.2)
    empty = ParseResult(success=False, data=ProductInfo(brand="Acme"), confidence=0.1)

    assert should_use_screenshot_fallback([])
    assert should_use_screenshot_fallback([weak], min_confidence=0.3)
    assert should_use_screenshot_fallback([empty], min_confidence=0.3)
    assert not should_use_screenshot_fallback([useful, weak], min_confidence=0.3)


def test_fallback_result_keeps_partial_data():
    partial = ProductInfo(price="12.00", price_currency="USD")
    result = create_fallback_result("https://shop.example.com/98765", partial, "https://shots.test/x.png")

    assert result.success
    assert result.method == "screenshot-fallback"
    assert result.data.price == "12.00"
    assert result.data.item_name == "98765"
    assert result.data.store_name == "Example"
    assert result.confidence == pytest.approx(0.4)
    assert partial.item_name is None


def test_fallback_result_without_anything():
    result = create_fallback_result("https://shop.example.com/")
    assert result.data.item_name == "Product"
    assert result.confidence == pytest.approx(0.2)


@pytest.mark.asyncio
async def test_capture_reads_title_from_html():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={
        "success": True,
        "screenshot": "https://shots.test/y.png",
        "html": "<html><head><title>Velvet Armchair</title></head></html>",
    }))
    client = RemoteExtractClient("http://backend.test", timeout=1, transport=transport)

    shot = await capture_screenshot_fallback("https://shop.example.com/1", client)

    assert shot.success
    assert shot.title == "Velvet Armchair"
    assert shot.screenshot_url == "https://shots.test/y.png"


@pytest.mark.asyncio
async def test_capture_never_raises():
    transport = httpx.MockTransport(lambda r: httpx.Response(503))
    client = RemoteExtractClient("http://backend.test", timeout=1, transport=transport)

    shot = await capture_screenshot_fallback("https://shop.example.com/1", client)

    assert not shot.success
    assert shot.error
