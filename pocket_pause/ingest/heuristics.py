"""Selector-list and proximity heuristics for pages without structured data."""

import logging
import re
from typing import Iterable, Optional, Sequence

from selectolax.parser import HTMLParser

from pocket_pause.ingest.base import ProductInfo
from pocket_pause.ingest.content_extractor import country_code_from_url, detect_currency, extract_description
from pocket_pause.ingest.dom import absolutize, attr, node_text, parse_dimension, select_all, select_first
from pocket_pause.ingest.price_parser import infer_currency_from_symbol, is_plausible_price, match_price

logger = logging.getLogger(__name__)

# Ordered most specific to least specific. The order matters.
TITLE_SELECTORS = [
    'h1[class*="product"]',
    'h1[class*="title"]',
    ".product-title",
    ".product-name",
    "h1",
]

PRICE_SELECTORS = [
    ".price",
    '[class*="price"]:not([class*="original"])',
    '[data-testid*="price"]',
    '[id*="price"]',
]

IMAGE_SELECTORS = [
    'img[itemprop="image"]',
    '.product-image img[src]:not([src*="placeholder"]):not([src*="loading"])',
    ".hero-image img[src]",
    'img[data-testid*="product"]:not([src*="placeholder"])',
    ".main-image img[src]",
    'img[alt*="product" i][src]',
]

BUY_BUTTON_SELECTORS = [
    '[class*="add-to-cart"]',
    '[class*="buy-now"]',
    '[class*="add-to-bag"]',
    '[data-testid*="add-to-cart"]',
    '[data-testid*="buy"]',
    'button[type="submit"]',
]

BUY_BUTTON_TEXTS = ("add to cart", "buy now", "add to bag", "purchase", "add to basket")

PROXIMITY_PRICE_SELECTOR = '[class*="price"], [data-testid*="price"], [class*="cost"]'
PROXIMITY_MAX_LEVELS = 3

SELECTOR_IMAGE_FILTERS = ("placeholder", "loading")
AREA_IMAGE_FILTERS = ("icon", "logo", "loading", "placeholder")
MIN_IMAGE_DIMENSION = 100

MIN_TITLE_LENGTH = 3


def extract_title_by_selectors(
    tree: HTMLParser, selectors: Sequence[str] = TITLE_SELECTORS
) -> Optional[str]:
    """First selector match whose text is longer than three characters."""
    for selector in selectors:
        text = node_text(select_first(tree, selector))
        if len(text) > MIN_TITLE_LENGTH:
            return text
    return None


def _find_buy_buttons(tree: HTMLParser) -> list:
    buttons = [
        button
        for button in select_all(tree, "button")
        if any(phrase in node_text(button).lower() for phrase in BUY_BUTTON_TEXTS)
    ]
    for selector in BUY_BUTTON_SELECTORS:
        buttons.extend(select_all(tree, selector))
    return buttons


def find_price_near_buy_button(
    tree: HTMLParser, max_levels: int = PROXIMITY_MAX_LEVELS
) -> Optional[tuple[str, Optional[str]]]:
    """
    Price nearest to the purchase action.

    Walks up from each buy button and returns the first currency-prefixed
    amount found in a price-like element within ``max_levels`` ancestors.
    """
    for button in _find_buy_buttons(tree):
        current = button.parent
        level = 0
        while current is not None and level < max_levels:
            for element in select_all(current, PROXIMITY_PRICE_SELECTOR):
                found = match_price(node_text(element), require_symbol=True)
                if found:
                    return found
            current = current.parent
            level += 1
    return None


def extract_price_by_selectors(
    tree: HTMLParser,
    selectors: Sequence[str] = PRICE_SELECTORS,
    price_regex: Optional[str] = None,
) -> Optional[tuple[str, Optional[str]]]:
    """
    First selector match whose text contains a plausible amount.

    ``price_regex`` overrides the default pattern; its first group (or the
    whole match) is taken as the amount.
    """
    pattern = None
    if price_regex:
        try:
            pattern = re.compile(price_regex)
        except re.error as e:
            logger.debug(f"Invalid price regex {price_regex!r}: {e}")

    for selector in selectors:
        node = select_first(tree, selector)
        if node is None:
            continue
        text = attr(node, "content") or node_text(node)
        if not text:
            continue

        if pattern is not None:
            match = pattern.search(text)
            if not match:
                continue
            price = (match.group(1) if match.groups() else match.group(0)).replace(",", "").rstrip(".")
            found = (price, infer_currency_from_symbol(text))
        else:
            found = match_price(text)

        if found and is_plausible_price(found[0]):
            return found
    return None


def _passes_filters(src: str, filters: Iterable[str]) -> bool:
    lowered = src.lower()
    return not any(f in lowered for f in filters)


def _image_src(node) -> Optional[str]:
    return attr(node, "src") or attr(node, "data-src")


def extract_image_by_selectors(
    tree: HTMLParser,
    url: str,
    selectors: Sequence[str] = IMAGE_SELECTORS,
    filters: Iterable[str] = SELECTOR_IMAGE_FILTERS,
) -> Optional[str]:
    filters = tuple(filters)
    for selector in selectors:
        node = select_first(tree, selector)
        src = _image_src(node)
        if src and _passes_filters(src, filters):
            resolved = absolutize(src, url)
            if resolved:
                return resolved
    return None


def get_biggest_image_by_area(tree: HTMLParser, url: str) -> Optional[str]:
    """
    Largest declared image on the page.

    Only images with both width and height over 100px are considered, and
    icons, logos and loading placeholders are skipped.
    """
    best_src = None
    max_area = 0
    for img in select_all(tree, "img[src]"):
        src = attr(img, "src")
        if not src or not _passes_filters(src, AREA_IMAGE_FILTERS):
            continue
        width = parse_dimension(img.attributes.get("width"))
        height = parse_dimension(img.attributes.get("height"))
        if width <= MIN_IMAGE_DIMENSION or height <= MIN_IMAGE_DIMENSION:
            continue
        area = width * height
        if area > max_area:
            max_area = area
            best_src = src
    return absolutize(best_src, url)


def extract_heuristics(tree: HTMLParser, url: str) -> ProductInfo:
    """Generic selector/proximity extraction over a whole page."""
    info = ProductInfo()
    info.item_name = extract_title_by_selectors(tree)

    found = find_price_near_buy_button(tree) or extract_price_by_selectors(tree)
    if found:
        info.price, currency = found
        info.price_currency = currency or detect_currency("", country_code_from_url(url))

    info.image_url = extract_image_by_selectors(tree, url) or get_biggest_image_by_area(tree, url)
    info.description = extract_description(tree)
    return info
