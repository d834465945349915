"""Direct HTML fetcher for server-rendered product pages."""

import logging
import random

import httpx

from pocket_pause.config import settings

logger = logging.getLogger(__name__)

# User agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

# Below this the page is almost certainly a bot wall or an empty shell
MIN_HTML_LENGTH = 500


class PageFetchError(RuntimeError):
    """Direct page fetch failed."""


class StaticPageFetcher:
    """Plain GET of a product page, no JS rendering."""

    def __init__(self, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout if timeout is not None else settings.direct_fetch_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict:
        return {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_html(self, url: str) -> str:
        """
        Fetch raw HTML for a URL.

        Raises:
            PageFetchError: on HTTP errors, transport errors, non-HTML
                responses or suspiciously short bodies
        """
        client = await self._get_client()
        try:
            response = await client.get(url, headers=self._get_headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.debug(f"Direct fetch HTTP {e.response.status_code} for {url}")
            raise PageFetchError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.debug(f"Direct fetch failed for {url}: {e}")
            raise PageFetchError(str(e)) from e

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type:
            raise PageFetchError(f"Unexpected content type {content_type}")

        html = response.text
        if len(html) < MIN_HTML_LENGTH:
            raise PageFetchError(f"Response too short ({len(html)} chars)")
        return html
