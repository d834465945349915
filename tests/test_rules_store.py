"""Tests for the domain rules store and feedback loop."""

import json

import pytest
from selectolax.parser import HTMLParser

from pocket_pause.ingest.base import ParseContext, PageContent
from pocket_pause.ingest.rules_store import DomainRule, FeedbackData, ParsingRulesStore, RuleSelectors
from pocket_pause.ingest.site_classifier import SiteType
from pocket_pause.ingest.strategies.domain_rules import DomainRulesStrategy, extract_with_rule


def _correction(url: str) -> FeedbackData:
    return FeedbackData(url=url, user_correction={"item_name": "Right Name"})


def test_default_rules_match_exact_and_subdomain():
    store = ParsingRulesStore()

    assert store.get_rules_for_domain("https://www.amazon.com/dp/B000000001").domain == "amazon.com"
    assert store.get_rules_for_domain("https://smile.amazon.com/dp/B000000001").domain == "amazon.com"
    assert store.get_rules_for_domain("https://www.etsy.com/listing/1") is None
    assert store.get_rules_for_domain("not a url") is None


def test_feedback_lowers_confidence_with_floor():
    store = ParsingRulesStore()
    url = "https://www.walmart.com/ip/123"

    rule = store.add_feedback(_correction(url))
    assert rule.confidence == pytest.approx(0.7)

    for _ in range(10):
        rule = store.add_feedback(_correction(url))
    assert rule.confidence == pytest.approx(0.1)


def test_feedback_without_corrections_leaves_rule_alone():
    store = ParsingRulesStore()
    rule = store.add_feedback(FeedbackData(url="https://www.target.com/p/x", user_correction={"price": ""}))
    assert rule.confidence == pytest.approx(0.9)


def test_feedback_for_unknown_domain_creates_generic_rule():
    store = ParsingRulesStore()
    rule = store.add_feedback(_correction("https://www.etsy.com/listing/1"))

    assert rule.domain == "etsy.com"
    assert rule.confidence == pytest.approx(0.5)
    assert store.get_rules_for_domain("https://etsy.com/listing/2") is rule


def test_rules_and_feedback_persist(tmp_path):
    store = ParsingRulesStore(tmp_path)
    store.add_feedback(_correction("https://www.amazon.com/dp/B000000001"))

    saved = json.loads((tmp_path / "rules.json").read_text())
    assert any(r["domain"] == "amazon.com" and r["confidence"] == pytest.approx(0.8) for r in saved)

    reloaded = ParsingRulesStore(tmp_path)
    assert reloaded.get_rules_for_domain("https://amazon.com/x").confidence == pytest.approx(0.8)
    assert len(reloaded.get_feedback()) == 1


def test_corrupt_rules_file_is_ignored(tmp_path):
    (tmp_path / "rules.json").write_text("{broken")
    store = ParsingRulesStore(tmp_path)
    assert store.get_rules_for_domain("https://www.amazon.com/x") is not None


def test_extract_with_amazon_rule():
    store = ParsingRulesStore()
    url = "https://www.amazon.com/dp/B000000001"
    html = """
    <span id="productTitle"> Noise Cancelling Headphones </span>
    <div class="a-price"><span class="a-offscreen">$199.99</span></div>
    <img id="landingImage" src="https://m.media-amazon.com/images/I/headphones.jpg">
    <a id="bylineInfo">Visit the Sonic Store</a>
    """
    info = extract_with_rule(HTMLParser(html), url, store.get_rules_for_domain(url))

    assert info.item_name == "Noise Cancelling Headphones"
    assert info.price == "199.99"
    assert info.image_url == "https://m.media-amazon.com/images/I/headphones.jpg"
    assert info.brand == "Visit the Sonic Store"


@pytest.mark.asyncio
async def test_strategy_skips_decayed_rules():
    store = ParsingRulesStore()
    url = "https://www.amazon.com/dp/B000000001"
    store.get_rules_for_domain(url).confidence = 0.2

    async def loader():
        return PageContent(html='<span id="productTitle">Headphones</span>')

    strategy = DomainRulesStrategy(store, min_confidence=0.3)
    context = ParseContext(url, SiteType.FIRECRAWL_PREFERRED, loader)

    assert await strategy.try_extract(url, context) is None
    assert not context.page_loaded


def test_update_rule_replaces_and_persists(tmp_path):
    store = ParsingRulesStore(tmp_path, load_defaults=False)
    rule = DomainRule(
        domain="etsy.com",
        selectors=RuleSelectors(title=["h1[data-buy-box-listing-title]"], price=["p.wt-text-title-03"]),
        confidence=0.75,
        price_regex=r"\$(\d+\.\d{2})",
    )
    store.update_rule("etsy.com", rule)

    reloaded = ParsingRulesStore(tmp_path, load_defaults=False)
    stored = reloaded.get_rules_for_domain("https://www.etsy.com/listing/1")
    assert stored.selectors.price == ["p.wt-text-title-03"]
    assert stored.price_regex == r"\$(\d+\.\d{2})"
    assert [r.domain for r in reloaded.get_all_rules()] == ["etsy.com"]
