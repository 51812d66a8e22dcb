"""
Tolerant amount parser.

Handles the conventions seen in operator extracts:
- $1,234.56 / MXN 1234.56 / 1234.56     -> 1234.56
- 1.234,56 / 1234,56                     -> 1234.56 (decimal comma)
- 1,500 / 1,234,567                      -> thousands separators
- (500.00) / -500.00                     -> negative

Everything that is not a digit, sign, '.' or ',' is stripped first.
Values are always Decimal; binary floats never touch the input.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel


class AmountParseResult(BaseModel):
    amount: Optional[Decimal] = None
    raw_text: str
    is_negative: bool = False
    decimal_separator: Optional[str] = None  # '.', ',' or None for integers
    confidence: float = 0.0


_DISALLOWED = re.compile(r"[^0-9+\-.,]")
_THOUSANDS_GROUP = re.compile(r"^\d{1,3}(,\d{3})+$")


def _normalize_separators(s: str) -> tuple[str, Optional[str]]:
    """Return (canonical numeric string, detected decimal separator)."""
    has_dot = "." in s
    has_comma = "," in s

    if has_dot and has_comma:
        # Right-most separator is the decimal point
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", "."), ","
        return s.replace(",", ""), "."

    if has_comma:
        if _THOUSANDS_GROUP.match(s):
            return s.replace(",", ""), None
        return s.replace(",", "."), ","

    return s, "." if has_dot else None


def parse_amount(raw: Optional[str]) -> AmountParseResult:
    """
    Parse a monetary amount. Never raises; amount is None when unparseable.
    """
    raw = raw or ""
    s = raw.strip()

    is_negative = False
    if s.startswith("(") and s.endswith(")"):
        s = s[1:-1].strip()
        is_negative = True

    s = _DISALLOWED.sub("", s)

    if s.count("-") + s.count("+") > 1:
        return AmountParseResult(amount=None, raw_text=raw)

    # Leading or trailing minus
    if s.startswith("-") or s.endswith("-"):
        is_negative = True
        s = s.strip("-")
    elif s.startswith("+"):
        s = s[1:]

    if not s or any(ch in s for ch in "+-"):
        return AmountParseResult(amount=None, raw_text=raw)

    s, separator = _normalize_separators(s)

    try:
        amount = Decimal(s)
    except (InvalidOperation, ValueError):
        return AmountParseResult(amount=None, raw_text=raw)

    if not amount.is_finite():
        return AmountParseResult(amount=None, raw_text=raw)

    if is_negative:
        amount = -amount

    confidence = 0.95 if separator != "," else 0.85
    if abs(amount) > Decimal("10000000"):
        confidence = 0.5  # Suspiciously large

    return AmountParseResult(
        amount=amount,
        raw_text=raw,
        is_negative=is_negative,
        decimal_separator=separator,
        confidence=confidence,
    )


def parse_decimal_strict(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse a machine-written decimal (XML attribute). No separator guessing.
    Returns None for empty input; raises InvalidOperation for garbage.
    """
    if raw is None or not raw.strip():
        return None
    value = Decimal(raw.strip())
    if not value.is_finite():
        raise InvalidOperation(f"Non-finite decimal: {raw!r}")
    return value
