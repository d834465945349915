"""Core parsing types and the extraction strategy interface."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Awaitable, Callable, Optional

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)

# Confidence weights. Tunable, not calibrated.
NAME_WEIGHT = 0.4
PRICE_WEIGHT = 0.3
IMAGE_WEIGHT = 0.2
BRAND_WEIGHT = 0.1


@dataclass
class ProductInfo:
    """Product fields extracted from a page. None means "not determined"."""

    item_name: Optional[str] = None
    store_name: Optional[str] = None
    price: Optional[str] = None
    price_currency: Optional[str] = None
    image_url: Optional[str] = None
    brand: Optional[str] = None
    availability: Optional[str] = None
    description: Optional[str] = None
    canonical_url: Optional[str] = None
    sku: Optional[str] = None

    def merge_missing(self, other: "ProductInfo") -> list[str]:
        """Fill fields that are still empty from ``other``.

        Non-empty fields are never overwritten. Returns the names of the
        fields that were filled.
        """
        filled = []
        for f in fields(self):
            if getattr(self, f.name):
                continue
            value = getattr(other, f.name)
            if value:
                setattr(self, f.name, value)
                filled.append(f.name)
        return filled

    def has_useful_data(self) -> bool:
        return bool(self.item_name or self.price or self.image_url)

    def copy(self) -> "ProductInfo":
        return ProductInfo(**asdict(self))

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ParseResult:
    """Outcome of a parse attempt (one strategy or the whole pipeline)."""

    success: bool
    data: ProductInfo = field(default_factory=ProductInfo)
    method: str = ""
    confidence: float = 0.0
    error: Optional[str] = None
    url: Optional[str] = None
    screenshot_url: Optional[str] = None
    parse_time_ms: Optional[float] = None

    def copy(self) -> "ParseResult":
        return replace(self, data=self.data.copy())


def calculate_confidence(info: ProductInfo) -> float:
    """Weighted sum of populated fields, capped at 1.0."""
    score = 0.0
    if info.item_name and len(info.item_name) > 3:
        score += NAME_WEIGHT
    if info.price:
        score += PRICE_WEIGHT
    if info.image_url:
        score += IMAGE_WEIGHT
    if info.brand:
        score += BRAND_WEIGHT
    return min(round(score, 4), 1.0)


def result_from_info(info: ProductInfo, method: str, confidence: float | None = None) -> ParseResult | None:
    """Wrap extracted fields in a ParseResult, or None when nothing was found."""
    if not any(getattr(info, f.name) for f in fields(info)):
        return None
    return ParseResult(
        success=info.has_useful_data(),
        data=info,
        method=method,
        confidence=calculate_confidence(info) if confidence is None else confidence,
    )


@dataclass
class PageContent:
    """Rendered page content shared by strategies within one parse."""

    html: Optional[str] = None
    markdown: Optional[str] = None
    source: str = ""


PageLoader = Callable[[], Awaitable[Optional[PageContent]]]


class ParseContext:
    """Per-parse state handed to every strategy.

    The page is loaded at most once, on first request, and the parsed
    HTML tree is reused by every strategy that needs it.
    """

    def __init__(self, url: str, site_type: str, page_loader: PageLoader | None = None):
        self.url = url
        self.site_type = site_type
        self._page_loader = page_loader
        self._page: PageContent | None = None
        self._loaded = False
        self._tree: HTMLParser | None = None
        self._lock = asyncio.Lock()

    @property
    def page_loaded(self) -> bool:
        return self._loaded

    async def get_page(self) -> PageContent | None:
        async with self._lock:
            if not self._loaded:
                self._loaded = True
                if self._page_loader is not None:
                    self._page = await self._page_loader()
        return self._page

    def offer_page(self, page: PageContent) -> bool:
        """Seed the page from content another call already returned.

        Ignored once a page has been loaded.
        """
        if self._loaded or not (page.html or page.markdown):
            return False
        self._loaded = True
        self._page = page
        return True

    async def get_tree(self) -> HTMLParser | None:
        """Parsed HTML of the page, or None if no HTML is available."""
        if self._tree is not None:
            return self._tree
        page = await self.get_page()
        if page is None or not page.html:
            return None
        self._tree = HTMLParser(page.html)
        return self._tree


class ExtractionStrategy(ABC):
    """A single step of the extraction pipeline."""

    name: str = "base"

    @abstractmethod
    async def try_extract(self, url: str, context: ParseContext) -> ParseResult | None:
        """
        Attempt extraction.

        Returns:
            ParseResult with whatever fields were found, or None when the
            strategy does not apply or found nothing.
        """
