"""Per-domain selector rules from the rules store."""

from __future__ import annotations

import logging

from pocket_pause import metrics
from pocket_pause.ingest.base import ExtractionStrategy, ParseContext, ParseResult, ProductInfo, result_from_info
from pocket_pause.ingest.dom import node_text, try_selectors
from pocket_pause.ingest.heuristics import (
    SELECTOR_IMAGE_FILTERS,
    extract_image_by_selectors,
    extract_price_by_selectors,
    extract_title_by_selectors,
)
from pocket_pause.ingest.rules_store import DomainRule, ParsingRulesStore

logger = logging.getLogger(__name__)


def extract_with_rule(tree, url: str, rule: DomainRule) -> ProductInfo:
    info = ProductInfo()
    info.item_name = extract_title_by_selectors(tree, rule.selectors.title)

    found = extract_price_by_selectors(tree, rule.selectors.price, rule.price_regex)
    if found:
        info.price, info.price_currency = found

    info.image_url = extract_image_by_selectors(
        tree, url, rule.selectors.image, rule.image_filters or SELECTOR_IMAGE_FILTERS
    )

    if rule.selectors.brand:
        _, node = try_selectors(tree, rule.selectors.brand)
        info.brand = node_text(node) or None
    return info


class DomainRulesStrategy(ExtractionStrategy):
    """Applies the stored rule for the URL's domain.

    Rules whose confidence has decayed below ``min_confidence`` are skipped.
    """

    name = "domain-rules"

    def __init__(self, store: ParsingRulesStore, min_confidence: float = 0.3):
        self.store = store
        self.min_confidence = min_confidence

    async def try_extract(self, url: str, context: ParseContext) -> ParseResult | None:
        rule = self.store.get_rules_for_domain(url)
        if rule is None:
            return None
        if rule.confidence < self.min_confidence:
            logger.debug(f"Skipping low-confidence rule for {rule.domain} ({rule.confidence})")
            metrics.record_strategy_attempt(self.name, "skipped")
            return None

        tree = await context.get_tree()
        if tree is None:
            metrics.record_strategy_attempt(self.name, "no_page")
            return None

        result = result_from_info(extract_with_rule(tree, url, rule), self.name)
        metrics.record_strategy_attempt(self.name, "hit" if result else "miss")
        return result
