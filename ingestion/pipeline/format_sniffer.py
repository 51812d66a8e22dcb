"""
Delimiter and header sniffing for tabular uploads.

Only the first line is inspected. The delimiter with the most occurrences
wins; ties go to the earlier candidate (comma > semicolon > tab > pipe).
"""

import csv
import io
from decimal import Decimal, InvalidOperation
from typing import Iterator, Union

import structlog

from ingestion.pipeline.errors import FormatError
from ingestion.schemas.records import SniffResult

logger = structlog.get_logger(__name__)

# Priority order matters for tie-breaking
CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]

# Spreadsheet exports from Windows often arrive as cp1252
ENCODINGS = ["utf-8-sig", "cp1252"]


def decode_content(content: Union[str, bytes]) -> str:
    """Text as-is; bytes decoded with the first encoding that fits."""
    if isinstance(content, str):
        return content
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FormatError(f"Undecodable document: not {' or '.join(ENCODINGS)}")


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def _is_number(token: str) -> bool:
    cleaned = token.strip().strip('"').replace(",", "")
    if not cleaned:
        return False
    try:
        Decimal(cleaned)
        return True
    except (InvalidOperation, ValueError):
        return False


def detect_delimiter(line: str) -> str:
    """Most frequent candidate; first candidate in priority order on ties."""
    best = CANDIDATE_DELIMITERS[0]
    best_count = -1
    for candidate in CANDIDATE_DELIMITERS:
        count = line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _reader(text: str, delimiter: str) -> Iterator[list[str]]:
    # newline="" so CR-only and CRLF line endings reach the csv module intact
    try:
        yield from csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    except csv.Error as e:
        raise FormatError(f"Malformed tabular content: {e}") from e


def split_line(line: str, delimiter: str) -> list[str]:
    """Split one line honouring double quotes."""
    for row in _reader(line, delimiter):
        return [cell.strip() for cell in row]
    return []


def sniff_format(text: str) -> SniffResult:
    """
    Detect delimiter and header presence from the first non-blank line.

    Raises FormatError on empty input; nothing is inferred in that case.
    """
    if text is None or not text.strip():
        raise FormatError("Empty tabular input: nothing to sniff")

    first = _first_line(text.lstrip("\ufeff"))
    if not first:
        raise FormatError("Empty tabular input: nothing to sniff")
    delimiter = detect_delimiter(first)
    columns = split_line(first, delimiter)

    # Header when no token parses as a number
    has_header = all(not _is_number(tok) for tok in columns)

    logger.debug(
        "format_sniffed",
        delimiter=repr(delimiter),
        has_header=has_header,
        columns=len(columns),
    )
    return SniffResult(delimiter=delimiter, has_header=has_header, raw_columns=columns)


def read_rows(text: str, delimiter: str) -> list[list[str]]:
    """
    All non-blank rows of the document, cells stripped.
    Raises FormatError when the csv module cannot read the content.
    """
    rows = []
    for row in _reader(text.lstrip("\ufeff"), delimiter):
        cells = [cell.strip() for cell in row]
        if any(cells):
            rows.append(cells)
    return rows
