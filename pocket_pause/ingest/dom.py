"""Small selectolax helpers shared by the DOM extractors."""

import logging
import re
from typing import Iterable, Optional, Tuple
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def select_all(root: HTMLParser | Node, selector: str) -> list[Node]:
    """All matches for a selector. Unsupported selectors yield no matches."""
    try:
        return list(root.css(selector))
    except Exception as e:
        logger.debug(f"Selector {selector} failed: {e}")
        return []


def select_first(root: HTMLParser | Node, selector: str) -> Optional[Node]:
    """First match for a selector, or None."""
    try:
        return root.css_first(selector)
    except Exception as e:
        logger.debug(f"Selector {selector} failed: {e}")
        return None


def try_selectors(
    root: HTMLParser | Node, selectors: Iterable[str]
) -> Tuple[Optional[str], Optional[Node]]:
    """
    Try selectors in order and return the first that matches.

    Returns:
        (selector, node) or (None, None)
    """
    for selector in selectors:
        node = select_first(root, selector)
        if node is not None:
            logger.debug(f"Selector '{selector}' matched")
            return selector, node
    return None, None


def node_text(node: Optional[Node]) -> str:
    """Text content of a node with whitespace collapsed."""
    if node is None:
        return ""
    return _WHITESPACE.sub(" ", node.text(deep=True) or "").strip()


def attr(node: Optional[Node], name: str) -> Optional[str]:
    if node is None:
        return None
    value = node.attributes.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def meta_content(tree: HTMLParser, key: str) -> Optional[str]:
    """Content of a <meta property=...> or <meta name=...> tag."""
    for selector in (f'meta[property="{key}"]', f'meta[name="{key}"]'):
        value = attr(select_first(tree, selector), "content")
        if value:
            return value
    return None


def absolutize(src: Optional[str], base_url: str) -> Optional[str]:
    """Resolve a possibly relative URL against the page URL."""
    if not src:
        return None
    src = src.strip()
    if src.startswith("data:"):
        return None
    try:
        return urljoin(base_url, src)
    except ValueError:
        return src


def parse_dimension(value: Optional[str]) -> int:
    """Pixel value of a width/height attribute ("300", "300px"), else 0."""
    if not value:
        return 0
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else 0


# " | Site", "|Site", " - Site", " – Site", " — Site"
_TITLE_SEPARATOR = re.compile(r"\s*\|\s*|\s+[-–—]\s+")


def strip_site_suffix(title: str) -> str:
    """Drop a trailing " | Site Name" style segment from a page title.

    Only the last segment goes, so "Lamp - Brass | Shop" keeps "Lamp - Brass".
    """
    title = _WHITESPACE.sub(" ", title).strip()
    matches = list(_TITLE_SEPARATOR.finditer(title))
    if not matches:
        return title
    head = title[: matches[-1].start()].strip()
    return head or title
