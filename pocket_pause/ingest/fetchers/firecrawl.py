"""Firecrawl-backed implementation of the remote fetch/extract contract.

Served by the /proxy/fetch route so the parser never holds the API key.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from selectolax.parser import HTMLParser

from pocket_pause.config import settings
from pocket_pause.ingest.dom import meta_content
from pocket_pause.ingest.structured_data import json_ld_image_url, extract_json_ld, find_product_node

logger = logging.getLogger(__name__)

DEFAULT_EXTRACT_PROMPT = (
    "Extract detailed product information including name, current price, image URL, "
    "brand, and availability from this e-commerce page."
)
DEFAULT_WAIT_FOR_MS = 3000


class FirecrawlError(RuntimeError):
    """Firecrawl call failed."""


def extract_og_image_from_html(html: str) -> Optional[str]:
    """og:image, then twitter:image, then the JSON-LD product image."""
    if not html:
        return None
    tree = HTMLParser(html)
    image = meta_content(tree, "og:image") or meta_content(tree, "twitter:image")
    if image:
        return image
    for data in extract_json_ld(tree):
        product = find_product_node(data)
        if product:
            image = json_ld_image_url(product.get("image"))
            if image:
                return image
    return None


def format_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


class FirecrawlClient:
    """Thin async client for the Firecrawl v1 scrape/extract API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        poll_attempts: int | None = None,
        poll_interval: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.firecrawl_api_key
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self.poll_attempts = (
            poll_attempts if poll_attempts is not None else settings.firecrawl_extract_poll_attempts
        )
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.firecrawl_extract_poll_interval_seconds
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=settings.firecrawl_timeout_seconds,
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def scrape(
        self, url: str, include_screenshot: bool = False, wait_for: int = DEFAULT_WAIT_FOR_MS
    ) -> dict[str, Any]:
        """
        Scrape a page to html/markdown (and optionally a screenshot).

        Raises:
            FirecrawlError: when the API call fails
        """
        formats = ["html", "markdown"]
        if include_screenshot:
            formats.append("screenshot@fullPage")

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/scrape",
                json={"url": url, "formats": formats, "onlyMainContent": False, "waitFor": wait_for},
            )
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Firecrawl scrape request failed for {url}: {e}")
            raise FirecrawlError(f"scrape request failed: {e}") from e

        if response.is_error or not body.get("success"):
            error = body.get("error") or f"HTTP {response.status_code}"
            logger.warning(f"Firecrawl scrape failed for {url}: {error}")
            raise FirecrawlError(error)

        data = body.get("data") or body
        html = data.get("html")
        metadata = data.get("metadata") or {}
        og_image = metadata.get("ogImage") or metadata.get("image")
        if not og_image and html:
            og_image = extract_og_image_from_html(html)

        return {
            "success": True,
            "html": html,
            "markdown": data.get("markdown"),
            "screenshot": data.get("screenshot"),
            "ogImage": og_image,
            "metadata": metadata,
        }

    async def extract(self, url: str, schema: dict, prompt: str | None = None) -> Optional[dict[str, Any]]:
        """
        Schema-constrained extraction, polling async jobs until done.

        Returns None when the job fails or never completes.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/extract",
                json={"urls": [url], "schema": schema, "prompt": prompt or DEFAULT_EXTRACT_PROMPT},
            )
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Firecrawl extract request failed for {url}: {e}")
            return None

        if response.is_error or not body.get("success"):
            logger.warning(f"Firecrawl extract rejected for {url}: {body.get('error')}")
            return None

        data = body.get("data")
        if data:
            return data[0] if isinstance(data, list) else data

        job_id = body.get("id")
        if not job_id:
            return None

        for attempt in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            try:
                status_response = await client.get(f"{self.base_url}/extract/{job_id}")
                status = status_response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Firecrawl extract poll {attempt + 1} failed: {e}")
                continue

            state = status.get("status")
            logger.debug(f"Extract job {job_id} attempt {attempt + 1}: {state}")
            if state == "completed" and status.get("data"):
                data = status["data"]
                return data[0] if isinstance(data, list) else data
            if state == "failed":
                break

        logger.info(f"Extract job {job_id} did not complete for {url}")
        return None

    async def handle(
        self,
        url: str,
        mode: str = "crawl",
        schema: dict | None = None,
        prompt: str | None = None,
        options: dict | None = None,
    ) -> dict[str, Any]:
        """
        Serve one backend-contract request.

        Extract mode falls back to a plain scrape when extraction fails.

        Raises:
            FirecrawlError: when the fallback scrape fails too
        """
        url = format_url(url)
        options = options or {}
        wait_for = int(options.get("waitFor", DEFAULT_WAIT_FOR_MS))

        if mode == "screenshot":
            return await self.scrape(url, include_screenshot=True, wait_for=wait_for)

        if mode == "extract" and schema:
            extracted = await self.extract(url, schema, prompt)
            if extracted:
                return {"success": True, "extracted": extracted}
            logger.info(f"Falling back to scrape after extract failure for {url}")

        return await self.scrape(url, wait_for=wait_for)
