"""Schema-constrained extraction through the remote backend."""

from __future__ import annotations

import logging
from typing import Any

from pocket_pause import metrics
from pocket_pause.config import settings
from pocket_pause.ingest.base import ExtractionStrategy, PageContent, ParseContext, ParseResult, ProductInfo
from pocket_pause.ingest.dom import absolutize
from pocket_pause.ingest.fetchers.remote import RemoteBackendError, RemoteExtractClient
from pocket_pause.ingest.price_parser import clean_price
from pocket_pause.ingest.site_classifier import SiteType

logger = logging.getLogger(__name__)

# Extraction confidence: a base for a successful call plus field bonuses
EXTRACT_BASE_CONFIDENCE = 0.3
EXTRACT_NAME_BONUS = 0.3
EXTRACT_PRICE_BONUS = 0.2
EXTRACT_IMAGE_BONUS = 0.1
EXTRACT_BRAND_BONUS = 0.1


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def product_from_extracted(extracted: dict[str, Any], url: str) -> ProductInfo:
    """Map the backend's extraction object onto ProductInfo."""
    price = clean_price(extracted.get("price"))
    return ProductInfo(
        item_name=_text(extracted.get("itemName")),
        price=price,
        price_currency=_text(extracted.get("currency")) if price else None,
        brand=_text(extracted.get("brand")),
        image_url=absolutize(_text(extracted.get("imageUrl")), url),
        availability=_text(extracted.get("availability")),
    )


def extraction_confidence(info: ProductInfo) -> float:
    score = EXTRACT_BASE_CONFIDENCE
    if info.item_name and len(info.item_name) > 3:
        score += EXTRACT_NAME_BONUS
    if info.price:
        score += EXTRACT_PRICE_BONUS
    if info.image_url:
        score += EXTRACT_IMAGE_BONUS
    if info.brand:
        score += EXTRACT_BRAND_BONUS
    return min(round(score, 4), 1.0)


class RemoteExtractStrategy(ExtractionStrategy):
    """Asks the remote backend for a pre-extracted product object."""

    name = "remote-extract"

    def __init__(self, client: RemoteExtractClient):
        self.client = client

    async def try_extract(self, url: str, context: ParseContext) -> ParseResult | None:
        options = None
        if context.site_type == SiteType.PROBLEMATIC:
            options = {"waitFor": settings.problematic_wait_for_ms}

        try:
            response = await self.client.extract(url, options=options)
        except RemoteBackendError as e:
            metrics.record_strategy_attempt(self.name, "error")
            logger.info(f"Remote extract unavailable for {url}, falling through: {e}")
            return None

        # The backend may answer with a plain crawl when extraction fails
        if response.html or response.markdown:
            context.offer_page(
                PageContent(html=response.html, markdown=response.markdown, source=self.name)
            )

        if not response.extracted:
            metrics.record_strategy_attempt(self.name, "miss")
            return None

        info = product_from_extracted(response.extracted, url)
        if not info.image_url and response.og_image:
            info.image_url = absolutize(response.og_image, url)

        if not info.has_useful_data():
            metrics.record_strategy_attempt(self.name, "miss")
            return None

        metrics.record_strategy_attempt(self.name, "hit")
        return ParseResult(
            success=True,
            data=info,
            method=self.name,
            confidence=extraction_confidence(info),
        )
