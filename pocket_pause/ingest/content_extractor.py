"""Readability-style content extraction: page type, title, description, currency."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

from selectolax.parser import HTMLParser

from pocket_pause.ingest.dom import attr, meta_content, node_text, select_all, select_first, strip_site_suffix
from pocket_pause.ingest.url_normalizer import get_hostname

logger = logging.getLogger(__name__)

ContentType = Literal["product", "article", "unknown"]

PRODUCT_SIGNALS = [
    "add to cart", "buy now", "add to bag", "purchase",
    "price", "$", "usd", "eur", "gbp", "product",
    "sku", "item", "availability", "in stock",
]

ARTICLE_SIGNALS = [
    "article", "blog", "news", "post", "story",
    "author", "published", "read more", "share",
]

TITLE_SELECTORS = [
    'h1[data-testid*="title"]',
    'h1[class*="title"]',
    'h1[class*="name"]',
    'h1[class*="product"]',
    '[data-testid*="product-name"]',
    '[data-testid*="title"]',
    "h1",
    ".product-title",
    ".item-title",
    ".article-title",
    "title",
]

DESCRIPTION_SELECTORS = [
    'meta[name="description"]',
    'meta[property="og:description"]',
    'meta[name="twitter:description"]',
    '[data-testid*="description"]',
    ".product-description",
    ".item-description",
    ".article-summary",
    ".excerpt",
]

MAIN_CONTENT_SELECTORS = [
    "article",
    '[role="main"]',
    ".content",
    ".article-content",
    ".post-content",
    ".entry-content",
    "main",
]

UNWANTED_CONTENT_SELECTORS = [
    "script", "style", "nav", "header", "footer",
    ".ad", ".advertisement", ".social-share", ".comments", ".sidebar",
]

# Checked in order; prefixed dollars before the bare "$"
CURRENCY_PATTERNS = [
    (re.compile(r"CAD|C\$", re.IGNORECASE), "CAD"),
    (re.compile(r"AUD|A\$", re.IGNORECASE), "AUD"),
    (re.compile(r"\$"), "USD"),
    (re.compile(r"€|EUR", re.IGNORECASE), "EUR"),
    (re.compile(r"£|GBP", re.IGNORECASE), "GBP"),
    (re.compile(r"¥|JPY", re.IGNORECASE), "JPY"),
    (re.compile(r"₹|INR", re.IGNORECASE), "INR"),
    (re.compile(r"CHF", re.IGNORECASE), "CHF"),
    (re.compile(r"SEK|\bkr\b", re.IGNORECASE), "SEK"),
    (re.compile(r"NOK", re.IGNORECASE), "NOK"),
    (re.compile(r"DKK", re.IGNORECASE), "DKK"),
]

COUNTRY_CURRENCIES = {
    "uk": "GBP", "gb": "GBP", "de": "EUR", "fr": "EUR",
    "it": "EUR", "es": "EUR", "jp": "JPY", "in": "INR",
    "ca": "CAD", "au": "AUD", "ch": "CHF", "se": "SEK",
    "no": "NOK", "dk": "DKK",
}

MAX_MAIN_CONTENT_LENGTH = 1000


@dataclass
class ContentInfo:
    type: ContentType = "unknown"
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    confidence: float = 0.0


def detect_content_type(tree: HTMLParser, url: str) -> ContentType:
    for script in select_all(tree, 'script[type="application/ld+json"]'):
        try:
            data = json.loads(script.text())
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, list):
            data = data[0] if data else {}
        item_type = data.get("@type") if isinstance(data, dict) else None
        if item_type == "Product":
            return "product"
        if item_type in ("Article", "BlogPosting", "NewsArticle"):
            return "article"

    og_type = meta_content(tree, "og:type")
    if og_type in ("product", "product.item"):
        return "product"
    if og_type == "article":
        return "article"

    url_path = url.lower()
    if re.search(r"/product/|/item/|/p/|/shop/", url_path):
        return "product"
    if re.search(r"/blog/|/article/|/news/|/post/", url_path):
        return "article"

    body_text = node_text(tree.body).lower()
    product_score = sum(1 for signal in PRODUCT_SIGNALS if signal in body_text)
    article_score = sum(1 for signal in ARTICLE_SIGNALS if signal in body_text)

    if product_score > article_score and product_score > 2:
        return "product"
    if article_score > product_score and article_score > 2:
        return "article"
    return "unknown"


def extract_title(tree: HTMLParser) -> Optional[str]:
    for selector in TITLE_SELECTORS:
        text = node_text(select_first(tree, selector))
        if 5 < len(text) < 200:
            return strip_site_suffix(text)

    meta_title = meta_content(tree, "og:title") or meta_content(tree, "twitter:title")
    return strip_site_suffix(meta_title) if meta_title else None


def extract_description(tree: HTMLParser) -> Optional[str]:
    for selector in DESCRIPTION_SELECTORS:
        node = select_first(tree, selector)
        if node is None:
            continue
        text = attr(node, "content") or node_text(node)
        if text and len(text) > 20:
            return text.strip()
    return None


def extract_main_content(tree: HTMLParser) -> Optional[str]:
    for selector in MAIN_CONTENT_SELECTORS:
        node = select_first(tree, selector)
        if node is None:
            continue

        clone = HTMLParser(node.html or "")
        for unwanted in UNWANTED_CONTENT_SELECTORS:
            for element in select_all(clone, unwanted):
                element.decompose()

        text = node_text(clone.body or clone.root)
        if len(text) > 100:
            return text[:MAX_MAIN_CONTENT_LENGTH]
    return None


def extract_content(tree: HTMLParser, url: str) -> ContentInfo:
    info = ContentInfo(type=detect_content_type(tree, url))
    info.title = extract_title(tree)
    info.description = extract_description(tree)

    if info.type == "article":
        info.content = extract_main_content(tree)
        info.confidence = 0.8
    elif info.type == "product":
        info.confidence = 0.9
    else:
        info.confidence = 0.3
    return info


def country_code_from_url(url: str) -> Optional[str]:
    """Country hint from the host's top-level domain (amazon.co.uk -> uk)."""
    host = get_hostname(url)
    if not host or "." not in host:
        return None
    tld = host.rsplit(".", 1)[-1]
    return tld if tld in COUNTRY_CURRENCIES else None


def detect_currency(text: str, country_code: Optional[str] = None) -> str:
    """Currency code from symbols/codes in text, then the country hint, else USD."""
    for pattern, currency in CURRENCY_PATTERNS:
        if text and pattern.search(text):
            return currency
    if country_code:
        return COUNTRY_CURRENCIES.get(country_code.lower(), "USD")
    return "USD"
