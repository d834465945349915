"""Client for the remote fetch/extract backend.

The backend renders pages (JS included) and can return a schema-constrained
extraction. Any service honouring the request/response contract below is
substitutable:

    POST {url, mode: crawl|extract|screenshot, schema?, prompt?, options?}
    ->   {success, html?, markdown?, extracted?, screenshot?, error?}
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from pocket_pause import metrics
from pocket_pause.config import settings

logger = logging.getLogger(__name__)

MODE_CRAWL = "crawl"
MODE_EXTRACT = "extract"
MODE_SCREENSHOT = "screenshot"

PRODUCT_EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "itemName": {"type": "string", "description": "The main product name or title"},
        "price": {"type": "string", "description": "Current price as a number without currency symbol"},
        "currency": {"type": "string", "description": "Currency code like USD, EUR, GBP"},
        "brand": {"type": "string", "description": "Brand or manufacturer name"},
        "imageUrl": {"type": "string", "description": "Main product image URL"},
        "availability": {"type": "string", "description": "Stock status like InStock, OutOfStock"},
    },
    "required": ["itemName"],
}

PRODUCT_EXTRACTION_PROMPT = (
    "Extract product information including name, price, brand, and main image "
    "from this product page"
)


class RemoteBackendError(RuntimeError):
    """Remote backend call failed, timed out, or reported failure."""


@dataclass
class RemoteResponse:
    success: bool
    html: Optional[str] = None
    markdown: Optional[str] = None
    extracted: Optional[dict[str, Any]] = None
    screenshot: Optional[str] = None
    og_image: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "RemoteResponse":
        extracted = data.get("extracted")
        if isinstance(extracted, list):
            extracted = extracted[0] if extracted else None
        return cls(
            success=bool(data.get("success")),
            html=data.get("html") or None,
            markdown=data.get("markdown") or None,
            extracted=extracted if isinstance(extracted, dict) else None,
            screenshot=data.get("screenshot") or None,
            og_image=data.get("ogImage") or data.get("og_image") or None,
            error=data.get("error"),
        )


class RemoteExtractClient:
    """
    Calls the remote fetch/extract backend.

    Every call is bounded by ``timeout`` seconds of wall time; the request
    is cancelled when the budget runs out. No retries.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint or settings.remote_backend_url
        self.timeout = timeout if timeout is not None else settings.remote_backend_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(self, payload: dict[str, Any]) -> RemoteResponse:
        """
        Send one request to the backend.

        Raises:
            RemoteBackendError: on non-2xx, transport error, timeout or
                a ``success: false`` body
        """
        mode = payload.get("mode", MODE_CRAWL)
        client = await self._get_client()

        try:
            response = await asyncio.wait_for(
                client.post(self.endpoint, json=payload), timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except asyncio.TimeoutError:
            metrics.record_remote_request(mode, "timeout")
            logger.warning(f"Remote {mode} timed out after {self.timeout}s for {payload.get('url')}")
            raise RemoteBackendError(f"{mode} timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            metrics.record_remote_request(mode, "http_error")
            logger.warning(f"Remote {mode} returned HTTP {e.response.status_code} for {payload.get('url')}")
            raise RemoteBackendError(f"{mode} failed with HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            metrics.record_remote_request(mode, "error")
            logger.warning(f"Remote {mode} request failed for {payload.get('url')}: {e}")
            raise RemoteBackendError(f"{mode} request failed: {e}") from e

        if not isinstance(data, dict):
            metrics.record_remote_request(mode, "error")
            raise RemoteBackendError(f"{mode} returned a non-object body")

        result = RemoteResponse.from_json(data)
        if not result.success:
            metrics.record_remote_request(mode, "failed")
            raise RemoteBackendError(result.error or f"{mode} reported failure")

        metrics.record_remote_request(mode, "success")
        return result

    async def crawl(self, url: str, options: dict[str, Any] | None = None) -> RemoteResponse:
        """Rendered html/markdown for a page."""
        payload: dict[str, Any] = {"url": url, "mode": MODE_CRAWL}
        if options:
            payload["options"] = options
        return await self.request(payload)

    async def extract(
        self,
        url: str,
        schema: dict[str, Any] | None = None,
        prompt: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> RemoteResponse:
        """Schema-constrained product extraction."""
        payload: dict[str, Any] = {
            "url": url,
            "mode": MODE_EXTRACT,
            "schema": schema or PRODUCT_EXTRACTION_SCHEMA,
            "prompt": prompt or PRODUCT_EXTRACTION_PROMPT,
        }
        if options:
            payload["options"] = options
        return await self.request(payload)

    async def screenshot(self, url: str, options: dict[str, Any] | None = None) -> RemoteResponse:
        """Full-page screenshot plus whatever html/markdown came along."""
        payload: dict[str, Any] = {
            "url": url,
            "mode": MODE_SCREENSHOT,
            "options": {
                "formats": ["screenshot"],
                "fullPageScreenshot": True,
                "waitFor": 2000,
                **(options or {}),
            },
        }
        return await self.request(payload)
