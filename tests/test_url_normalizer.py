"""Tests for URL normalization and URL-derived metadata."""

import pytest

from pocket_pause.ingest.url_normalizer import (
    UNKNOWN_STORE,
    extract_product_name_from_url,
    extract_store_name,
    get_hostname,
    is_valid_url,
    last_path_segment_title,
    normalize_url,
)


def test_normalize_strips_tracking_params_and_fragment():
    url = "https://shop.example.com/p/widget?utm_source=mail&color=red&fbclid=abc#reviews"
    assert normalize_url(url) == "https://shop.example.com/p/widget?color=red"


def test_normalize_keeps_query_untouched_without_tracking():
    url = "https://shop.example.com/item?id=1&size=M"
    assert normalize_url(url) == url


def test_normalize_drops_query_when_only_tracking():
    url = "https://shop.example.com/item?utm_campaign=x&gclid=y"
    assert normalize_url(url) == "https://shop.example.com/item"


@pytest.mark.parametrize(
    "url",
    [
        "https://www.amazon.com/dp/B000000001?ref=abc&th=1#x",
        "http://example.com/a/b?utm_medium=x",
        "https://example.com",
        "not a url",
        "",
    ],
)
def test_normalize_is_idempotent(url):
    once = normalize_url(url)
    assert normalize_url(once) == once


def test_normalize_returns_malformed_input_unchanged():
    assert normalize_url("not a url") == "not a url"
    assert normalize_url("ftp://example.com/file") == "ftp://example.com/file"


def test_is_valid_url():
    assert is_valid_url("https://example.com/x")
    assert is_valid_url("http://example.com")
    assert not is_valid_url("example.com/x")
    assert not is_valid_url("mailto:someone@example.com")
    assert not is_valid_url("")
    assert not is_valid_url(None)


def test_get_hostname_strips_www_and_lowercases():
    assert get_hostname("https://WWW.Example.COM/path") == "example.com"
    assert get_hostname("garbage") is None


def test_extract_store_name_known_and_fallback():
    assert extract_store_name("https://www.amazon.com/dp/B000000001") == "Amazon"
    assert extract_store_name("https://smile.amazon.com/x") == "Amazon"
    assert extract_store_name("https://www.bestbuy.com/site/x") == "Best Buy"
    assert extract_store_name("https://www.etsy.com/listing/1") == "Etsy"
    assert extract_store_name("nonsense") == UNKNOWN_STORE


def test_extract_product_name_from_product_slug():
    url = "https://www.example.com/products/blue-cotton-shirt"
    assert extract_product_name_from_url(url) == "Blue Cotton Shirt"


def test_extract_product_name_shopbop_pattern():
    url = "https://www.shopbop.com/silk-midi-dress/vp/v=1/1234567.htm"
    assert extract_product_name_from_url(url) == "Silk Midi Dress"


def test_extract_product_name_rejects_numeric_ids_and_generic_words():
    assert extract_product_name_from_url("https://shop.example.com/product/12345") is None
    assert extract_product_name_from_url("https://shop.example.com/search") is None
    assert extract_product_name_from_url("not a url") is None


def test_last_path_segment_title():
    assert last_path_segment_title("https://shop.example.com/a/cool-widget_2.html") == "Cool Widget 2"
    assert last_path_segment_title("https://shop.example.com/") is None
