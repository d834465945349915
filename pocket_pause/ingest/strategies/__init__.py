"""Extraction strategy registry."""

from __future__ import annotations

from pocket_pause.ingest.base import ExtractionStrategy
from pocket_pause.ingest.site_classifier import SiteType
from pocket_pause.ingest.strategies.domain_rules import DomainRulesStrategy
from pocket_pause.ingest.strategies.heuristic import HeuristicStrategy
from pocket_pause.ingest.strategies.remote_extract import RemoteExtractStrategy
from pocket_pause.ingest.strategies.structured import StructuredDataStrategy


# Strategy names in the order they run for each site tier
_STRATEGY_ORDER = {
    SiteType.FIRECRAWL_PREFERRED: ["remote-extract", "structured-data", "domain-rules", "heuristic"],
    SiteType.PROBLEMATIC: ["remote-extract", "structured-data", "domain-rules", "heuristic"],
    SiteType.STANDARD: ["structured-data", "domain-rules", "heuristic", "remote-extract"],
}


def get_strategy_order(site_type: SiteType) -> list[str]:
    """Return strategy names for a site tier."""
    return list(_STRATEGY_ORDER.get(site_type, _STRATEGY_ORDER[SiteType.STANDARD]))


def build_plan(site_type: SiteType, strategies: dict[str, ExtractionStrategy]) -> list[ExtractionStrategy]:
    """Strategies for a site tier, skipping any that are not registered."""
    return [strategies[name] for name in get_strategy_order(site_type) if name in strategies]


__all__ = [
    "DomainRulesStrategy",
    "HeuristicStrategy",
    "RemoteExtractStrategy",
    "StructuredDataStrategy",
    "build_plan",
    "get_strategy_order",
]
