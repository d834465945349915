"""Per-domain selector rules and the user feedback log."""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pocket_pause.ingest.url_normalizer import get_hostname

logger = logging.getLogger(__name__)

CONFIDENCE_STEP = 0.1
CONFIDENCE_FLOOR = 0.1
NEW_RULE_CONFIDENCE = 0.5


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RuleSelectors:
    title: list[str] = field(default_factory=list)
    price: list[str] = field(default_factory=list)
    image: list[str] = field(default_factory=list)
    brand: list[str] = field(default_factory=list)


@dataclass
class DomainRule:
    """Selector rule for one domain, with an advisory confidence."""

    domain: str
    selectors: RuleSelectors
    confidence: float
    price_regex: Optional[str] = None
    image_filters: list[str] = field(default_factory=list)
    last_updated: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomainRule":
        selectors = data.get("selectors") or {}
        return cls(
            domain=data["domain"],
            selectors=RuleSelectors(
                title=list(selectors.get("title") or []),
                price=list(selectors.get("price") or []),
                image=list(selectors.get("image") or []),
                brand=list(selectors.get("brand") or []),
            ),
            confidence=float(data.get("confidence", NEW_RULE_CONFIDENCE)),
            price_regex=data.get("price_regex"),
            image_filters=list(data.get("image_filters") or []),
            last_updated=data.get("last_updated") or _now_iso(),
        )


@dataclass
class FeedbackData:
    """A user correction of a parse result."""

    url: str
    user_correction: dict[str, Any]
    original_parsed: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_now_iso)

    def has_corrections(self) -> bool:
        return any(v not in (None, "") for v in self.user_correction.values())


def default_rules() -> list[DomainRule]:
    """Built-in rules for well-known retailers."""
    return [
        DomainRule(
            domain="amazon.com",
            selectors=RuleSelectors(
                title=["#productTitle", "span#productTitle", "h1.a-size-large"],
                price=[
                    ".a-price .a-offscreen",
                    ".a-price-whole",
                    "#price_inside_buybox .a-price .a-offscreen",
                ],
                image=["#landingImage", "#imgBlkFront", ".a-dynamic-image"],
                brand=["#bylineInfo"],
            ),
            price_regex=r"\$?(\d+(?:,\d{3})*(?:\.\d+)?)",
            confidence=0.9,
        ),
        DomainRule(
            domain="shopbop.com",
            selectors=RuleSelectors(
                title=['h1[data-testid="product-name"]', "h1.product-name", ".pdp-name h1"],
                price=['[data-testid="current-price"]', ".current-price", ".price-current"],
                image=['img[data-testid="product-image"]', ".pdp-image img", ".product-images img"],
            ),
            price_regex=r"\$(\d+(?:,\d{3})*(?:\.\d{2})?)",
            image_filters=["placeholder", "loading"],
            confidence=0.7,
        ),
        DomainRule(
            domain="target.com",
            selectors=RuleSelectors(
                title=[
                    'h1[data-test="product-title"]',
                    'h1[data-automation-id="product-title"]',
                    ".pdp-product-name h1",
                ],
                price=['[data-test="product-price"]', '.sr-only:contains("current price")'],
                image=['img[data-test="hero-image"]'],
            ),
            price_regex=r"\$(\d+(?:\.\d+)?)",
            confidence=0.9,
        ),
        DomainRule(
            domain="walmart.com",
            selectors=RuleSelectors(
                title=['h1[data-automation-id="product-title"]', 'h1[itemprop="name"]'],
                price=['[data-automation-id="product-price"]', '[itemprop="price"]'],
                image=['img[data-testid="hero-image"]'],
            ),
            price_regex=r"\$(\d+(?:\.\d+)?)",
            confidence=0.8,
        ),
    ]


def generic_rule(domain: str) -> DomainRule:
    """Rule synthesized for a domain that has none yet."""
    return DomainRule(
        domain=domain,
        selectors=RuleSelectors(
            title=["h1", ".product-title", ".product-name"],
            price=[".price", ".current-price", '[data-testid*="price"]'],
            image=[".product-image img", ".main-image img", 'img[data-testid*="product"]'],
        ),
        confidence=NEW_RULE_CONFIDENCE,
    )


class ParsingRulesStore:
    """
    Domain rule table fed by user corrections.

    Rules and feedback are persisted as JSON files when a storage path is
    given; otherwise the store lives in memory only. Confidence only ever
    goes down: each correction costs a rule 0.1, floored at 0.1.
    """

    def __init__(self, storage_path: str | Path | None = None, load_defaults: bool = True):
        self.storage_dir = Path(storage_path) if storage_path else None
        self.rules: dict[str, DomainRule] = {}
        self.feedback: list[FeedbackData] = []

        if load_defaults:
            for rule in default_rules():
                self.rules[rule.domain] = rule

        if self.storage_dir is not None:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            self._load_rules()
            self._load_feedback()

    @property
    def _rules_path(self) -> Path:
        return self.storage_dir / "rules.json"

    @property
    def _feedback_path(self) -> Path:
        return self.storage_dir / "feedback.json"

    def _load_rules(self) -> None:
        if not self._rules_path.exists():
            return
        try:
            with open(self._rules_path, "r") as f:
                for data in json.load(f):
                    rule = DomainRule.from_dict(data)
                    self.rules[rule.domain] = rule
            logger.info(f"Loaded {len(self.rules)} parsing rules from {self._rules_path}")
        except Exception as e:
            logger.warning(f"Failed to load parsing rules: {e}")

    def _load_feedback(self) -> None:
        if not self._feedback_path.exists():
            return
        try:
            with open(self._feedback_path, "r") as f:
                self.feedback = [FeedbackData(**item) for item in json.load(f)]
        except Exception as e:
            logger.warning(f"Failed to load parsing feedback: {e}")

    def _save_rules(self) -> None:
        if self.storage_dir is None:
            return
        try:
            with open(self._rules_path, "w") as f:
                json.dump([rule.to_dict() for rule in self.rules.values()], f, indent=2)
        except Exception as e:
            logger.error(f"Failed to save parsing rules: {e}")

    def _save_feedback(self) -> None:
        if self.storage_dir is None:
            return
        try:
            with open(self._feedback_path, "w") as f:
                json.dump([asdict(item) for item in self.feedback], f, indent=2)
        except Exception as e:
            logger.error(f"Failed to save parsing feedback: {e}")

    def get_rules_for_domain(self, url: str) -> Optional[DomainRule]:
        """Exact hostname match first, then substring match, else None."""
        host = get_hostname(url)
        if not host:
            return None

        if host in self.rules:
            return self.rules[host]

        for domain, rule in self.rules.items():
            if domain in host:
                return rule
        return None

    def add_feedback(self, feedback: FeedbackData) -> Optional[DomainRule]:
        """
        Record a correction and adjust the domain's rule.

        Returns:
            The rule that was adjusted or created, if any
        """
        self.feedback.append(feedback)
        self._save_feedback()
        return self._improve_domain_rules(feedback)

    def _improve_domain_rules(self, feedback: FeedbackData) -> Optional[DomainRule]:
        host = get_hostname(feedback.url)
        if not host:
            logger.warning(f"Feedback for invalid URL ignored: {feedback.url}")
            return None

        rule = self.get_rules_for_domain(feedback.url)
        if rule is not None:
            if not feedback.has_corrections():
                return rule
            rule.confidence = round(max(CONFIDENCE_FLOOR, rule.confidence - CONFIDENCE_STEP), 4)
            rule.last_updated = _now_iso()
            logger.info(f"Lowered rule confidence for {rule.domain} to {rule.confidence}")
        else:
            rule = generic_rule(host)
            self.rules[host] = rule
            logger.info(f"Created generic parsing rule for {host}")

        self._save_rules()
        return rule

    def update_rule(self, domain: str, rule: DomainRule) -> DomainRule:
        rule.last_updated = _now_iso()
        self.rules[domain] = rule
        self._save_rules()
        return rule

    def get_all_rules(self) -> list[DomainRule]:
        return list(self.rules.values())

    def get_feedback(self) -> list[FeedbackData]:
        return list(self.feedback)
