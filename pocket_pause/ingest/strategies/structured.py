"""JSON-LD / Open Graph / microdata strategy."""

from __future__ import annotations

import logging

from pocket_pause import metrics
from pocket_pause.ingest.base import ExtractionStrategy, ParseContext, ParseResult, result_from_info
from pocket_pause.ingest.structured_data import extract_structured_data

logger = logging.getLogger(__name__)


class StructuredDataStrategy(ExtractionStrategy):
    name = "structured-data"

    async def try_extract(self, url: str, context: ParseContext) -> ParseResult | None:
        tree = await context.get_tree()
        if tree is None:
            metrics.record_strategy_attempt(self.name, "no_page")
            return None

        result = result_from_info(extract_structured_data(tree, url), self.name)
        metrics.record_strategy_attempt(self.name, "hit" if result else "miss")
        return result
