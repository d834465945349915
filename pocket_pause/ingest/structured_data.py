"""Extract product data from JSON-LD, Open Graph and microdata."""

import json
import logging
from typing import Any, Dict, List, Optional

from selectolax.parser import HTMLParser

from pocket_pause.ingest.base import ProductInfo
from pocket_pause.ingest.dom import (
    absolutize,
    attr,
    meta_content,
    node_text,
    select_all,
    select_first,
    strip_site_suffix,
)
from pocket_pause.ingest.price_parser import clean_price

logger = logging.getLogger(__name__)

SCHEMA_PREFIXES = ("https://schema.org/", "http://schema.org/")


def extract_json_ld(html: str | HTMLParser) -> List[Any]:
    """
    Extract JSON-LD structured data from script tags.

    Malformed blocks are skipped.
    """
    results = []
    tree = HTMLParser(html) if isinstance(html, str) else html
    for script in select_all(tree, 'script[type="application/ld+json"]'):
        try:
            results.append(json.loads(script.text()))
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
    return results


def _is_product(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    item_type = item.get("@type")
    if isinstance(item_type, list):
        return "Product" in item_type
    return item_type == "Product"


def find_product_node(data: Any) -> Optional[Dict[str, Any]]:
    """Find the first Product object in a JSON-LD payload."""
    if isinstance(data, list):
        for item in data:
            found = find_product_node(item)
            if found:
                return found
        return None

    if not isinstance(data, dict):
        return None
    if _is_product(data):
        return data

    graph = data.get("@graph")
    if isinstance(graph, list):
        return find_product_node(graph)
    return None


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _brand_name(brand: Any) -> Optional[str]:
    brand = _first(brand)
    if isinstance(brand, dict):
        brand = brand.get("name")
    if isinstance(brand, str) and brand.strip():
        return brand.strip()
    return None


def json_ld_image_url(image: Any) -> Optional[str]:
    image = _first(image)
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    if isinstance(image, str) and image.strip():
        return image.strip()
    return None


def _strip_schema_prefix(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    for prefix in SCHEMA_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def product_from_json_ld(product: Dict[str, Any], url: str) -> ProductInfo:
    """Map a schema.org Product object onto ProductInfo."""
    info = ProductInfo()

    name = product.get("name")
    if isinstance(name, str) and name.strip():
        info.item_name = name.strip()

    info.brand = _brand_name(product.get("brand"))
    info.image_url = absolutize(json_ld_image_url(product.get("image")), url)

    sku = product.get("sku")
    if sku is not None and str(sku).strip():
        info.sku = str(sku).strip()

    description = product.get("description")
    if isinstance(description, str) and description.strip():
        info.description = description.strip()

    offers = product.get("offers")
    if isinstance(offers, dict) and isinstance(offers.get("offers"), list):
        # AggregateOffer wrapping individual offers
        offers = offers["offers"] or offers
    offer = _first(offers)
    if isinstance(offer, dict):
        price = offer.get("price", offer.get("lowPrice"))
        info.price = clean_price(price)
        if info.price:
            info.price_currency = offer.get("priceCurrency") or "USD"
        info.availability = _strip_schema_prefix(offer.get("availability"))

    return info


def extract_from_json_ld(tree: HTMLParser, url: str) -> ProductInfo:
    for data in extract_json_ld(tree):
        product = find_product_node(data)
        if product:
            return product_from_json_ld(product, url)
    return ProductInfo()


def extract_open_graph(tree: HTMLParser, url: str) -> ProductInfo:
    """Open Graph and product:* meta tags."""
    info = ProductInfo()

    title = meta_content(tree, "og:title")
    if title:
        info.item_name = strip_site_suffix(title) or None

    info.image_url = absolutize(meta_content(tree, "og:image"), url)
    info.price = clean_price(
        meta_content(tree, "product:price:amount") or meta_content(tree, "og:price:amount")
    )
    if info.price:
        info.price_currency = (
            meta_content(tree, "product:price:currency") or meta_content(tree, "og:price:currency")
        )
    info.description = meta_content(tree, "og:description")
    info.brand = meta_content(tree, "product:brand")
    return info


def extract_microdata(tree: HTMLParser, url: str) -> ProductInfo:
    """schema.org microdata attributes (itemprop=...)."""
    info = ProductInfo()

    info.item_name = node_text(select_first(tree, '[itemprop="name"]')) or None

    brand = select_first(tree, '[itemprop="brand"]')
    if brand is not None:
        nested = select_first(brand, '[itemprop="name"]')
        info.brand = node_text(nested or brand) or attr(brand, "content")

    price = select_first(tree, '[itemprop="price"]')
    if price is not None:
        info.price = clean_price(attr(price, "content") or node_text(price))

    currency = select_first(tree, '[itemprop="priceCurrency"]')
    if currency is not None and info.price:
        info.price_currency = attr(currency, "content") or node_text(currency) or None

    image = select_first(tree, '[itemprop="image"]')
    if image is not None:
        info.image_url = absolutize(
            attr(image, "src") or attr(image, "content") or attr(image, "href"), url
        )

    availability = select_first(tree, '[itemprop="availability"]')
    if availability is not None:
        info.availability = _strip_schema_prefix(
            attr(availability, "href") or attr(availability, "content")
        )
    return info


def extract_canonical(tree: HTMLParser, url: str) -> Optional[str]:
    href = attr(select_first(tree, 'link[rel="canonical"]'), "href")
    return absolutize(href, url)


def extract_structured_data(tree: HTMLParser, url: str) -> ProductInfo:
    """
    Run every structured pass in priority order.

    JSON-LD wins. Open Graph and microdata only fill fields that are still
    empty.
    """
    info = extract_from_json_ld(tree, url)
    info.merge_missing(extract_open_graph(tree, url))
    info.merge_missing(extract_microdata(tree, url))
    if not info.canonical_url:
        info.canonical_url = extract_canonical(tree, url)
    return info
