"""Product URL parser: layered extraction pipeline with caching.

Pipeline per URL:

    cache check -> expand short link -> classify site
    -> strategies in tier order (early exit once good enough)
    -> screenshot fallback when nothing usable was found
    -> post-processing -> cache store

The parser never raises to its caller; unexpected errors become a
low-confidence result derived from the URL alone.
"""

import logging
import time
from typing import Optional

from pocket_pause import metrics
from pocket_pause.config import settings
from pocket_pause.ingest.base import (
    ExtractionStrategy,
    PageContent,
    ParseContext,
    ParseResult,
    ProductInfo,
    calculate_confidence,
)
from pocket_pause.ingest.cache import ParseCache
from pocket_pause.ingest.fetchers.remote import RemoteBackendError, RemoteExtractClient
from pocket_pause.ingest.fetchers.static import PageFetchError, StaticPageFetcher
from pocket_pause.ingest.parse_metrics import ParseMetrics
from pocket_pause.ingest.rules_store import ParsingRulesStore
from pocket_pause.ingest.screenshot_fallback import (
    capture_screenshot_fallback,
    create_fallback_result,
    should_use_screenshot_fallback,
)
from pocket_pause.ingest.site_classifier import SiteType, classify_site
from pocket_pause.ingest.strategies import (
    DomainRulesStrategy,
    HeuristicStrategy,
    RemoteExtractStrategy,
    StructuredDataStrategy,
    build_plan,
)
from pocket_pause.ingest.url_expander import UrlExpander
from pocket_pause.ingest.url_normalizer import (
    UNKNOWN_STORE,
    extract_product_name_from_url,
    extract_store_name,
    is_valid_url,
    last_path_segment_title,
    normalize_url,
)
from pocket_pause.logging_config import get_logger

logger = logging.getLogger(__name__)


class ProductParser:
    """
    Orchestrates extraction strategies for product URLs.

    Collaborators are injected so that tests and tenants can hold
    isolated caches, rule tables and HTTP clients.
    """

    def __init__(
        self,
        remote_client: RemoteExtractClient | None = None,
        rules_store: ParsingRulesStore | None = None,
        cache: ParseCache | None = None,
        page_fetcher: StaticPageFetcher | None = None,
        url_expander: UrlExpander | None = None,
        good_enough_confidence: float | None = None,
        strategies: dict[str, ExtractionStrategy] | None = None,
    ):
        self.remote_client = remote_client or RemoteExtractClient()
        self.rules_store = rules_store if rules_store is not None else ParsingRulesStore()
        self.cache = cache or ParseCache(
            ttl_seconds=settings.parse_cache_ttl_minutes * 60,
            max_size=settings.parse_cache_max_size,
        )
        self.page_fetcher = page_fetcher
        self.url_expander = url_expander
        self.good_enough_confidence = (
            good_enough_confidence if good_enough_confidence is not None
            else settings.good_enough_confidence
        )
        self.metrics = ParseMetrics()

        if strategies is None:
            strategies = {
                s.name: s
                for s in (
                    RemoteExtractStrategy(self.remote_client),
                    StructuredDataStrategy(),
                    DomainRulesStrategy(self.rules_store, settings.rule_min_confidence),
                    HeuristicStrategy(),
                )
            }
        self.strategies = strategies

    async def close(self):
        """Close HTTP clients."""
        await self.remote_client.close()
        if self.page_fetcher:
            await self.page_fetcher.close()
        if self.url_expander:
            await self.url_expander.close()

    def clear_cache(self):
        self.cache.clear()
        logger.info("Parse cache cleared")

    def get_metrics(self) -> dict:
        return self.metrics.snapshot()

    async def parse(self, url: str) -> ProductInfo:
        """Legacy entry point returning only the product fields."""
        result = await self.parse_smart(url)
        return result.data

    async def parse_smart(self, url: str) -> ParseResult:
        """
        Parse a product URL into a ParseResult.

        Never raises. Results, failures included, are cached by normalized
        URL. Every call returns its own copy.
        """
        start = time.perf_counter()
        key = normalize_url(url) if isinstance(url, str) else str(url)

        cached = self.cache.get(key)
        if cached is not None:
            self.metrics.record_cache_hit()
            metrics.record_cache_hit()
            logger.debug(f"Parse cache hit for {key}")
            return cached.copy()

        site_type = SiteType.STANDARD
        keys = [key]
        try:
            if not isinstance(url, str) or not is_valid_url(url):
                result = self._invalid_url_result(url)
            else:
                target = await self._expand(key)
                if target != key:
                    cached = self.cache.get(target)
                    if cached is not None:
                        self.cache.set(key, cached)
                        self.metrics.record_cache_hit()
                        metrics.record_cache_hit()
                        return cached.copy()
                    keys.append(target)

                site_type = classify_site(target)
                result = await self._run_pipeline(target, site_type)
        except Exception as e:
            log = get_logger(__name__, url=url, site_type=site_type.value)
            log.exception(f"Unexpected error parsing {url}")
            result = self._error_result(url, e)

        elapsed = time.perf_counter() - start
        result.parse_time_ms = round(elapsed * 1000, 2)
        # Callers get their own copy; the cached snapshot stays untouched
        snapshot = result.copy()
        for k in keys:
            self.cache.set(k, snapshot)

        self.metrics.record_parse(result.method, result.parse_time_ms)
        metrics.record_parse(result.method, site_type.value, elapsed)
        logger.info(
            f"Parsed {key} via {result.method} "
            f"(site={site_type.value}, confidence={result.confidence:.2f}, {result.parse_time_ms}ms)"
        )
        return result

    async def _expand(self, url: str) -> str:
        if self.url_expander is None:
            return url
        expanded = await self.url_expander.expand(url)
        if expanded.success and expanded.final_url != url:
            return normalize_url(expanded.final_url)
        return url

    async def _load_page(self, url: str, site_type: SiteType) -> Optional[PageContent]:
        """Fetch the page once for DOM strategies.

        Standard sites try a direct GET first; everything else goes
        straight to the remote crawler.
        """
        if site_type == SiteType.STANDARD and self.page_fetcher is not None:
            try:
                html = await self.page_fetcher.fetch_html(url)
                return PageContent(html=html, source="direct")
            except PageFetchError as e:
                logger.debug(f"Direct fetch failed for {url}, using remote crawl: {e}")

        options = None
        if site_type == SiteType.PROBLEMATIC:
            options = {"waitFor": settings.problematic_wait_for_ms}
        try:
            response = await self.remote_client.crawl(url, options=options)
        except RemoteBackendError as e:
            logger.info(f"Remote crawl unavailable for {url}: {e}")
            return None

        if not (response.html or response.markdown):
            return None
        return PageContent(html=response.html, markdown=response.markdown, source="remote-crawl")

    def _confidence(self, merged: ProductInfo, results: list[ParseResult]) -> float:
        best = max((r.confidence for r in results if r.success), default=0.0)
        return max(calculate_confidence(merged), best)

    async def _run_pipeline(self, url: str, site_type: SiteType) -> ParseResult:
        context = ParseContext(url, site_type, lambda: self._load_page(url, site_type))
        merged = ProductInfo()
        results: list[ParseResult] = []
        contributors: list[str] = []

        for strategy in build_plan(site_type, self.strategies):
            try:
                result = await strategy.try_extract(url, context)
            except Exception as e:
                metrics.record_strategy_attempt(strategy.name, "error")
                get_logger(__name__, url=url, strategy=strategy.name).warning(
                    f"Strategy {strategy.name} failed for {url}: {e}"
                )
                continue

            if result is None:
                continue
            results.append(result)
            if merged.merge_missing(result.data):
                contributors.append(strategy.name)

            confidence = self._confidence(merged, results)
            if merged.item_name and confidence >= self.good_enough_confidence:
                logger.debug(f"{strategy.name} reached confidence {confidence:.2f} for {url}")
                break

        if should_use_screenshot_fallback(results):
            final = await self._screenshot_fallback(url, merged)
        else:
            final = ParseResult(
                success=True,
                data=merged,
                method=contributors[0] if contributors else "none",
                confidence=self._confidence(merged, results),
                url=url,
            )

        return self._post_process(final, url)

    async def _screenshot_fallback(self, url: str, partial: ProductInfo) -> ParseResult:
        metrics.record_screenshot_fallback()
        shot = await capture_screenshot_fallback(url, self.remote_client)
        if not shot.success:
            return create_fallback_result(url, partial)

        partial = partial.copy()
        if not partial.item_name and not extract_product_name_from_url(url) and shot.title:
            partial.item_name = shot.title
        return create_fallback_result(url, partial, shot.screenshot_url)

    def _post_process(self, result: ParseResult, url: str) -> ParseResult:
        data = result.data
        if not data.store_name:
            data.store_name = extract_store_name(url)
        if not data.item_name:
            data.item_name = extract_product_name_from_url(url)
        if not data.canonical_url:
            data.canonical_url = url
        if data.price and not data.price_currency:
            data.price_currency = "USD"
        result.url = result.url or url
        return result

    def _invalid_url_result(self, url) -> ParseResult:
        logger.info(f"Rejected invalid URL: {url!r}")
        return ParseResult(
            success=False,
            data=ProductInfo(store_name=UNKNOWN_STORE),
            method="invalid-url",
            confidence=0.0,
            error="Invalid URL",
            url=url if isinstance(url, str) else None,
        )

    def _error_result(self, url, error: Exception) -> ParseResult:
        url_text = url if isinstance(url, str) else ""
        name = last_path_segment_title(url_text)
        return ParseResult(
            success=False,
            data=ProductInfo(store_name=extract_store_name(url_text), item_name=name),
            method="error",
            confidence=0.1 if name else 0.0,
            error=str(error),
            url=url_text or None,
        )


def build_parser() -> ProductParser:
    """Parser wired from application settings."""
    return ProductParser(
        remote_client=RemoteExtractClient(),
        rules_store=ParsingRulesStore(settings.rules_storage_path or None),
        page_fetcher=StaticPageFetcher() if settings.direct_fetch_enabled else None,
        url_expander=UrlExpander() if settings.expand_short_urls else None,
    )


_default_parser: ProductParser | None = None


def get_default_parser() -> ProductParser:
    """Process-wide parser for callers that do not inject their own."""
    global _default_parser
    if _default_parser is None:
        _default_parser = build_parser()
    return _default_parser


def set_default_parser(parser: ProductParser | None) -> None:
    global _default_parser
    _default_parser = parser


async def parse_product_url_smart(url: str) -> ParseResult:
    return await get_default_parser().parse_smart(url)


async def parse_product_url(url: str) -> ProductInfo:
    return await get_default_parser().parse(url)


def clear_parse_cache() -> None:
    get_default_parser().clear_cache()


def get_parse_metrics() -> dict:
    return get_default_parser().get_metrics()
