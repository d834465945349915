"""Tests for content type detection and currency detection."""

import pytest
from selectolax.parser import HTMLParser

from pocket_pause.ingest.base import PageContent, ParseContext
from pocket_pause.ingest.content_extractor import (
    country_code_from_url,
    detect_content_type,
    detect_currency,
    extract_content,
    extract_description,
    extract_title,
)
from pocket_pause.ingest.site_classifier import SiteType
from pocket_pause.ingest.strategies.heuristic import HeuristicStrategy


@pytest.mark.parametrize(
    "text,expected",
    [
        ("C$ 20.00", "CAD"),
        ("A$ 15", "AUD"),
        ("$20", "USD"),
        ("€ 9,99", "EUR"),
        ("£12", "GBP"),
        ("199 kr", "SEK"),
        ("CHF 40", "CHF"),
    ],
)
def test_detect_currency_from_text(text, expected):
    assert detect_currency(text) == expected


def test_detect_currency_falls_back_to_country_then_usd():
    assert detect_currency("", "uk") == "GBP"
    assert detect_currency("", "zz") == "USD"
    assert detect_currency("") == "USD"


def test_country_code_from_url():
    assert country_code_from_url("https://www.amazon.co.uk/dp/x") == "uk"
    assert country_code_from_url("https://www.example.com/x") is None


def test_extract_title_strips_only_the_site_suffix():
    html = "<html><head><title>Lamp - Brass Edition | Home Store</title></head></html>"
    assert extract_title(HTMLParser(html)) == "Lamp - Brass Edition"
    assert extract_title(HTMLParser("<h1>  Lamp   Shade  </h1>")) == "Lamp Shade"


def test_content_type_from_json_ld():
    html = '<script type="application/ld+json">{"@type": "Product", "name": "X"}</script>'
    assert detect_content_type(HTMLParser(html), "https://example.com/x") == "product"


def test_content_type_from_og_type_and_url():
    html = '<html><head><meta property="og:type" content="article"></head></html>'
    assert detect_content_type(HTMLParser(html), "https://example.com/x") == "article"
    assert detect_content_type(HTMLParser("<p>x</p>"), "https://example.com/blog/entry") == "article"


def test_extract_description_skips_short_values():
    html = """
    <html><head>
    <meta name="description" content="Too short">
    <meta property="og:description" content="A hand-thrown stoneware mug with a matte glaze.">
    </head></html>
    """
    assert extract_description(HTMLParser(html)) == "A hand-thrown stoneware mug with a matte glaze."


def test_extract_content_for_article():
    body = "Long form writing about slow shopping. " * 5
    html = f"""
    <html><head><title>Why We Pause | Journal</title></head>
    <body><nav>menu</nav><article><h1>Why We Pause</h1><p>{body}</p>
    <script>track()</script></article></body></html>
    """
    info = extract_content(HTMLParser(html), "https://example.com/blog/why-we-pause")

    assert info.type == "article"
    assert info.title == "Why We Pause"
    assert info.content is not None
    assert "track()" not in info.content
    assert info.confidence == 0.8


ARTICLE_PAGE = """
<html><head>
<title>Ten Lamps We Love | Journal</title>
<meta property="og:type" content="article">
</head><body><article>
<p>Our favourite reading lamp is <span class="price">$89.00</span> this week.</p>
<img src="/img/lamps.jpg" width="800" height="600">
</article></body></html>
"""

PLAIN_PRODUCT_PAGE = """
<html><head><title>Brass Reading Lamp | Lamp Co</title></head>
<body><div class="buy"><span class="price">$89.00</span><button>Add to cart</button></div>
<img src="/img/brass-lamp.jpg" width="800" height="800"></body></html>
"""


async def _heuristic(html: str, url: str):
    async def loader():
        return PageContent(html=html)

    context = ParseContext(url, SiteType.STANDARD, loader)
    return await HeuristicStrategy().try_extract(url, context)


@pytest.mark.asyncio
async def test_heuristics_fall_back_to_page_title():
    result = await _heuristic(PLAIN_PRODUCT_PAGE, "https://lamp.example.com/item/42")

    assert result.data.item_name == "Brass Reading Lamp"
    assert result.data.price == "89.00"
    assert result.confidence > 0.3


@pytest.mark.asyncio
async def test_heuristics_cap_confidence_on_articles():
    result = await _heuristic(ARTICLE_PAGE, "https://lamp.example.com/journal/ten-lamps")

    assert result.data.item_name == "Ten Lamps We Love"
    assert result.data.price == "89.00"
    assert result.confidence == pytest.approx(0.3)
