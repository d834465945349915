"""Generic selector, proximity and image-area heuristics."""

from __future__ import annotations

import logging

from pocket_pause import metrics
from pocket_pause.ingest.base import ExtractionStrategy, ParseContext, ParseResult, result_from_info
from pocket_pause.ingest.content_extractor import extract_content
from pocket_pause.ingest.heuristics import extract_heuristics

logger = logging.getLogger(__name__)

# Articles mention products without being one
ARTICLE_MAX_CONFIDENCE = 0.3


class HeuristicStrategy(ExtractionStrategy):
    name = "heuristic"

    async def try_extract(self, url: str, context: ParseContext) -> ParseResult | None:
        tree = await context.get_tree()
        if tree is None:
            metrics.record_strategy_attempt(self.name, "no_page")
            return None

        info = extract_heuristics(tree, url)
        content = extract_content(tree, url)
        if not info.item_name:
            info.item_name = content.title
        if not info.description:
            info.description = content.description

        result = result_from_info(info, self.name)
        if result is not None and content.type == "article":
            logger.debug(f"{url} looks like an article, capping heuristic confidence")
            result.confidence = min(result.confidence, ARTICLE_MAX_CONFIDENCE)

        metrics.record_strategy_attempt(self.name, "hit" if result else "miss")
        return result
