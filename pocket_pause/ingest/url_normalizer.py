"""URL normalization and URL-derived product metadata."""

import logging
import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

TRACKING_PARAMS = frozenset({
    "fbclid", "gclid", "ref", "referrer", "source", "campaign",
    "_ga", "_gl", "mc_cid", "mc_eid", "affid", "clickid",
})

UNKNOWN_STORE = "Unknown Store"

STORE_NAMES = {
    "amazon.com": "Amazon",
    "target.com": "Target",
    "walmart.com": "Walmart",
    "bestbuy.com": "Best Buy",
    "homedepot.com": "Home Depot",
    "lowes.com": "Lowe's",
    "shopbop.com": "Shopbop",
    "nordstrom.com": "Nordstrom",
    "saksfifthavenue.com": "Saks Fifth Avenue",
    "anthropologie.com": "Anthropologie",
    "freepeople.com": "Free People",
    "lululemon.com": "Lululemon",
    "nike.com": "Nike",
    "adidas.com": "Adidas",
    "zara.com": "Zara",
    "hm.com": "H&M",
}

# Path patterns that usually carry a product slug, most specific first
PRODUCT_PATH_PATTERNS = [
    re.compile(r"/products?/([^/?]+)"),
    re.compile(r"/p/([^/?]+)"),
    re.compile(r"/item/([^/?]+)"),
    re.compile(r"/dp/([^/?]+)"),
    re.compile(r"/([^/?]{10,})(?:\.html?)?$"),
]

SHOPBOP_PATTERN = re.compile(r"/([^/]+)/vp/")

NAME_BLACKLIST = frozenset({
    "product", "item", "shop", "category", "brand", "collection",
    "products", "items", "page", "index", "home", "search",
    "cart", "checkout", "account", "login", "register",
})


def _is_tracking_param(key: str) -> bool:
    key = key.lower()
    return key.startswith("utm_") or key in TRACKING_PARAMS


def _split(url: str):
    """urlsplit that rejects anything without an http(s) scheme and host."""
    parts = urlsplit(url.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")
    return parts


def is_valid_url(url: str) -> bool:
    """Check that a string is an absolute http(s) URL."""
    if not url or not isinstance(url, str):
        return False
    try:
        _split(url)
        return True
    except ValueError:
        return False


def normalize_url(url: str) -> str:
    """
    Strip tracking parameters and the fragment.

    Malformed input is returned unchanged. Idempotent.
    """
    try:
        parts = _split(url)
    except (ValueError, TypeError, AttributeError):
        return url

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        kept = [(k, v) for k, v in pairs if not _is_tracking_param(k)]
        if len(kept) != len(pairs):
            query = urlencode(kept)

    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


def get_hostname(url: str) -> Optional[str]:
    """Lower-cased hostname without a leading ``www.``, or None."""
    try:
        host = _split(url).hostname or ""
    except (ValueError, TypeError, AttributeError):
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def extract_store_name(url: str) -> str:
    """
    Human-readable store name for a URL.

    Known retailers map to their display names; anything else falls back
    to the capitalized second-level domain.
    """
    host = get_hostname(url)
    if not host:
        return UNKNOWN_STORE

    for domain, name in STORE_NAMES.items():
        if host == domain or host.endswith("." + domain):
            return name

    parts = host.split(".")
    domain = parts[-2] if len(parts) >= 2 else host
    return domain[:1].upper() + domain[1:]


def _title_case(text: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in text.split())


def clean_url_product_name(segment: str) -> str:
    """Turn a URL slug into a readable, title-cased name."""
    text = re.sub(r"%20|[-_+]", " ", segment)
    text = re.sub(r"\.(html?|php|asp)$", "", text, flags=re.IGNORECASE)
    return _title_case(text).strip()


def is_valid_product_name(name: str) -> bool:
    """Reject slugs that are generic words or bare product IDs."""
    if not name or len(name) < 4:
        return False
    if name.lower() in NAME_BLACKLIST:
        return False
    if re.fullmatch(r"\d+", re.sub(r"\s", "", name)):
        return False
    return bool(re.search(r"[a-zA-Z]", name))


def extract_product_name_from_url(url: str) -> Optional[str]:
    """
    Guess a product name from the URL path.

    Returns None when no plausible slug is present.
    """
    try:
        path = _split(url).path
    except (ValueError, TypeError, AttributeError):
        return None

    if "shopbop.com" in url.lower():
        match = SHOPBOP_PATTERN.search(path)
        if match:
            name = _title_case(match.group(1).replace("-", " "))
            if len(name) > 2:
                return name

    for pattern in PRODUCT_PATH_PATTERNS:
        match = pattern.search(path)
        if match:
            name = clean_url_product_name(match.group(1))
            if is_valid_product_name(name):
                return name

    segments = [s for s in path.split("/") if s]
    if segments and len(segments[-1]) > 5:
        name = clean_url_product_name(segments[-1])
        if is_valid_product_name(name):
            return name

    logger.debug(f"No product name found in URL path: {path}")
    return None


def last_path_segment_title(url: str) -> Optional[str]:
    """Last non-empty path segment, separators replaced, title-cased."""
    try:
        path = _split(url).path
    except (ValueError, TypeError, AttributeError):
        return None

    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    text = re.sub(r"\.(html?|php|aspx?)$", "", segments[-1], flags=re.IGNORECASE)
    text = re.sub(r"%20|[-_+]", " ", text)
    title = _title_case(text)
    return title or None
