"""Classify product sites into extraction tiers without network access."""

import logging
from enum import Enum

from pocket_pause.ingest.url_normalizer import get_hostname, normalize_url

logger = logging.getLogger(__name__)


class SiteType(str, Enum):
    """Extraction tier of a site."""

    FIRECRAWL_PREFERRED = "firecrawl-preferred"
    PROBLEMATIC = "problematic"
    STANDARD = "standard"


# Sites that return clean structured data through the remote extractor
FIRECRAWL_PREFERRED_SITES = [
    "amazon", "target", "walmart", "bestbuy",
    "homedepot", "lowes", "wayfair", "overstock",
]

# Sites that need JS rendering or block simple fetches
PROBLEMATIC_SITES = [
    "shopbop", "asics", "nike", "adidas", "zara", "hm",
    "lululemon", "anthropologie", "freepeople", "nordstrom",
    "saksfifthavenue", "barneys", "ssense", "mrporter", "netaporter",
]


def classify_site(url: str) -> SiteType:
    """
    Classify a URL by substring match of its host against curated lists.

    Preferred sites are checked first. Unknown or malformed URLs are
    standard.
    """
    host = get_hostname(normalize_url(url))
    if not host:
        return SiteType.STANDARD

    if any(site in host for site in FIRECRAWL_PREFERRED_SITES):
        return SiteType.FIRECRAWL_PREFERRED
    if any(site in host for site in PROBLEMATIC_SITES):
        return SiteType.PROBLEMATIC
    return SiteType.STANDARD


def is_problematic_site(url: str) -> bool:
    return classify_site(url) is SiteType.PROBLEMATIC
