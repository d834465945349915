"""Last-resort screenshot capture when nothing could be extracted."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from selectolax.parser import HTMLParser

from pocket_pause.config import settings
from pocket_pause.ingest.base import ParseResult, ProductInfo
from pocket_pause.ingest.dom import node_text, select_first
from pocket_pause.ingest.fetchers.remote import RemoteBackendError, RemoteExtractClient
from pocket_pause.ingest.url_normalizer import (
    extract_product_name_from_url,
    extract_store_name,
    last_path_segment_title,
)

logger = logging.getLogger(__name__)

METHOD = "screenshot-fallback"
DEFAULT_TITLE = "Product"


@dataclass
class ScreenshotResult:
    success: bool
    screenshot_url: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None


def _title_from_content(html: Optional[str], markdown: Optional[str]) -> Optional[str]:
    if html:
        tree = HTMLParser(html)
        for selector in ("title", "h1"):
            text = node_text(select_first(tree, selector))
            if text:
                return text
    if markdown:
        for line in markdown.splitlines():
            line = line.strip().lstrip("#").strip()
            if line:
                return line
    return None


async def capture_screenshot_fallback(url: str, client: RemoteExtractClient) -> ScreenshotResult:
    """
    Capture a screenshot and a best-effort title.

    Never raises; failures come back as ``success=False``.
    """
    try:
        response = await client.screenshot(url)
    except RemoteBackendError as e:
        logger.warning(f"Screenshot fallback failed for {url}: {e}")
        return ScreenshotResult(success=False, error=str(e))

    if not response.screenshot:
        return ScreenshotResult(success=False, error=response.error or "No screenshot returned")

    title = _title_from_content(response.html, response.markdown) or last_path_segment_title(url)
    logger.info(f"Captured screenshot fallback for {url}")
    return ScreenshotResult(success=True, screenshot_url=response.screenshot, title=title)


def should_use_screenshot_fallback(
    results: Sequence[ParseResult],
    min_confidence: float | None = None,
) -> bool:
    """
    True when every result failed or is low-confidence, or when no result
    carries a name, price or image.
    """
    threshold = settings.screenshot_trigger_confidence if min_confidence is None else min_confidence
    all_failed = all(not r.success or r.confidence < threshold for r in results)
    no_useful_data = all(not r.data.has_useful_data() for r in results)
    return all_failed or no_useful_data


def create_fallback_result(
    url: str,
    partial: ProductInfo | None = None,
    screenshot_url: str | None = None,
) -> ParseResult:
    """Fallback result that keeps whatever partial data was found."""
    data = partial.copy() if partial else ProductInfo()
    url_name = extract_product_name_from_url(url)

    if not data.item_name:
        data.item_name = url_name or last_path_segment_title(url) or DEFAULT_TITLE
    if not data.store_name:
        data.store_name = extract_store_name(url)
    if not data.canonical_url:
        data.canonical_url = url

    if url_name:
        confidence = 0.6
    elif screenshot_url:
        confidence = 0.4
    else:
        confidence = 0.2

    return ParseResult(
        success=True,
        data=data,
        method=METHOD,
        confidence=confidence,
        url=url,
        screenshot_url=screenshot_url,
    )
