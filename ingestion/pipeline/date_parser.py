"""
Tolerant date parser for operator-supplied extracts.

Strategy:
1. Generic calendar parse of the trimmed string (ISO, named months, etc.)
2. Split on '/' or '-' and read three numeric parts as day/month/year,
   two-digit years expanded by adding 2000
3. Give up: the caller records a RowError
"""

import re
from datetime import date
from typing import Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel


class DateParseResult(BaseModel):
    parsed_date: Optional[date] = None
    raw_text: str
    format_detected: str
    confidence: float


_BARE_DIGITS = re.compile(r"^\d+$")
_PART_SPLIT = re.compile(r"[/\-]")


def _generic_parse(text: str, dayfirst: bool) -> Optional[date]:
    # Bare numbers like '5' or '2024' are not dates; 20240901 is
    if _BARE_DIGITS.match(text) and len(text) != 8:
        return None
    try:
        return dateutil_parser.parse(text, dayfirst=dayfirst).date()
    except (ValueError, OverflowError):
        return None


def _day_month_year(text: str) -> Optional[date]:
    parts = [p.strip() for p in _PART_SPLIT.split(text)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    day, month, year = (int(p) for p in parts)
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_tolerant(raw: Optional[str], dayfirst: bool = False) -> DateParseResult:
    """
    Parse a date cell permissively. Never raises; parsed_date is None on failure.
    """
    raw = raw or ""
    text = raw.strip()

    if not text:
        return DateParseResult(raw_text=raw, format_detected="EMPTY", confidence=0.0)

    parsed = _generic_parse(text, dayfirst)
    if parsed is not None:
        return DateParseResult(
            parsed_date=parsed,
            raw_text=raw,
            format_detected="GENERIC",
            confidence=0.95,
        )

    parsed = _day_month_year(text)
    if parsed is not None:
        return DateParseResult(
            parsed_date=parsed,
            raw_text=raw,
            format_detected="D/M/Y",
            confidence=0.80,
        )

    return DateParseResult(raw_text=raw, format_detected="UNKNOWN", confidence=0.0)
