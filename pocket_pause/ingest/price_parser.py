"""Price text parsing helpers."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Optional currency symbol followed by an amount with thousands separators
PRICE_PATTERN = re.compile(r"[$€£¥₹]?(\d+(?:,\d{3})*(?:\.\d{2})?)")

# Same amount, but the currency symbol is mandatory
SYMBOL_PRICE_PATTERN = re.compile(r"([$€£¥₹])\s?(\d+(?:,\d{3})*(?:\.\d{2})?)")

CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
}

# ",50" but not ",500"
DECIMAL_COMMA = re.compile(r",\d{2}(?!\d)")

# Heuristic matches outside this range are almost always noise
MAX_PLAUSIBLE_PRICE = Decimal("50000")


def infer_currency_from_symbol(text: str) -> Optional[str]:
    """Currency code for the first known symbol in the text."""
    if not text:
        return None
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    return None


def normalize_separators(text: str) -> str:
    """
    Rewrite an amount to use "." as the decimal point.

    A comma followed by exactly two digits after the last dot is a decimal
    comma ("12,50", "1.299,00"); any other comma is a thousands separator.
    """
    last_comma = text.rfind(",")
    if last_comma > text.rfind(".") and DECIMAL_COMMA.match(text, last_comma):
        return text.replace(".", "").replace(",", ".")
    return text.replace(",", "")


def clean_price(value) -> Optional[str]:
    """
    Normalize a price value to a decimal string.

    Accepts numbers or text such as "$1,299.00" or "€ 12,50". The result
    contains only digits and at most one decimal point, or None if no
    amount was found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        text = format(Decimal(repr(value)), "f")
    elif isinstance(value, (int, Decimal)):
        text = format(Decimal(value), "f")
    else:
        text = normalize_separators(str(value))

    match = re.search(r"\d+(?:\.\d+)?", text)
    if not match:
        return None
    try:
        Decimal(match.group(0))
    except InvalidOperation:
        return None
    return match.group(0)


def match_price(text: str, require_symbol: bool = False) -> Optional[tuple[str, Optional[str]]]:
    """
    Find the first price in a text fragment.

    Returns:
        (price, currency) where price has thousands separators stripped,
        or None if the text has no price.
    """
    if not text:
        return None

    if require_symbol:
        match = SYMBOL_PRICE_PATTERN.search(text)
        if not match:
            return None
        return match.group(2).replace(",", ""), CURRENCY_SYMBOLS.get(match.group(1))

    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).replace(",", ""), infer_currency_from_symbol(match.group(0))


def is_plausible_price(price: str) -> bool:
    try:
        amount = Decimal(price)
    except (InvalidOperation, TypeError):
        return False
    return Decimal("0") < amount < MAX_PLAUSIBLE_PRICE
