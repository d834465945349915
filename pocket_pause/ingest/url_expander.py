"""Expand shortened product links before parsing."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

import httpx

from pocket_pause.config import settings
from pocket_pause.ingest.fetchers.static import USER_AGENTS
from pocket_pause.ingest.url_normalizer import get_hostname

logger = logging.getLogger(__name__)

SHORTENER_DOMAINS = [
    "a.co",         # Amazon
    "amzn.to",      # Amazon
    "bit.ly",
    "tinyurl.com",
    "short.link",
    "ow.ly",
    "t.co",
    "goo.gl",
    "youtu.be",
]

AMAZON_REDIRECT_PATTERNS = [
    re.compile(r"amazon\.com/gp/aw/d/"),
    re.compile(r"amazon\.com/dp/redirect"),
    re.compile(r"smile\.amazon\.com"),
]

AMAZON_PRODUCT_PATHS = ("/dp/", "/gp/product/", "/gp/aw/d/")


@dataclass
class ExpandResult:
    success: bool
    final_url: str
    redirect_chain: list[str] = field(default_factory=list)
    error: Optional[str] = None


def is_shortener_domain(url: str) -> bool:
    host = get_hostname(url)
    if not host:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in SHORTENER_DOMAINS)


def needs_expansion(url: str) -> bool:
    return is_shortener_domain(url) or any(p.search(url) for p in AMAZON_REDIRECT_PATTERNS)


def is_amazon_product_url(url: str) -> bool:
    host = get_hostname(url)
    if not host or "amazon." not in host:
        return False
    path = httpx.URL(url).path.lower()
    return any(marker in path for marker in AMAZON_PRODUCT_PATHS)


class UrlExpander:
    """Follows redirects of known link shorteners with HEAD requests."""

    def __init__(self, max_redirects: int | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.max_redirects = max_redirects if max_redirects is not None else settings.url_expander_max_redirects
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=5.0,
                follow_redirects=False,
                transport=self._transport,
                headers={"User-Agent": USER_AGENTS[0]},
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def expand(self, url: str) -> ExpandResult:
        """
        Resolve a short link to its destination.

        URLs that are not short links are returned as-is. Never raises.
        """
        chain = [url]
        if not needs_expansion(url):
            return ExpandResult(success=True, final_url=url, redirect_chain=chain)

        client = await self._get_client()
        current = url
        redirects = 0
        try:
            while redirects < self.max_redirects:
                response = await client.head(current)
                if response.is_redirect:
                    location = response.headers.get("location")
                    if not location:
                        logger.warning(f"Redirect without Location header from {current}")
                        break
                    current = urljoin(current, location)
                    chain.append(current)
                    redirects += 1
                    continue
                if response.status_code == 200:
                    break
                return ExpandResult(
                    success=False,
                    final_url=url,
                    redirect_chain=chain,
                    error=f"HTTP {response.status_code}",
                )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to expand {url}: {e}")
            return ExpandResult(success=False, final_url=url, redirect_chain=chain, error=str(e))

        if redirects >= self.max_redirects:
            logger.warning(f"Maximum redirects ({self.max_redirects}) exceeded for {url}")
            return ExpandResult(
                success=False, final_url=current, redirect_chain=chain,
                error="Maximum redirects exceeded",
            )

        logger.info(f"Expanded {url} -> {current}")
        return ExpandResult(success=True, final_url=current, redirect_chain=chain)
