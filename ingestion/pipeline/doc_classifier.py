"""
Document kind detection.

Precedence:
1. Kind declared on submission
2. Filename (extension, then sales/expenses/inventory keywords)
3. Content (leading '<' -> CFDI XML, '{' -> JSON export, else tabular;
   the tabular kind whose alias table matches most headers wins, sales on ties)
"""

import re
from typing import Optional

import structlog
from pydantic import BaseModel

from ingestion.models.enums import DocumentKind
from ingestion.pipeline.column_mapper import map_columns
from ingestion.pipeline.errors import FormatError
from ingestion.pipeline.format_sniffer import sniff_format

logger = structlog.get_logger(__name__)


class ClassificationResult(BaseModel):
    kind: DocumentKind
    confidence: float = 0.0
    signals: list[str] = []


FILENAME_EXTENSIONS = [
    (re.compile(r"\.xml$", re.IGNORECASE), DocumentKind.XML_CFDI),
    (re.compile(r"\.json$", re.IGNORECASE), DocumentKind.JSON_CFDI),
]

FILENAME_KEYWORDS = [
    (re.compile(r"sales|ventas", re.IGNORECASE), DocumentKind.CSV_SALES),
    (re.compile(r"expenses|gastos", re.IGNORECASE), DocumentKind.CSV_EXPENSES),
    (re.compile(r"inventory|inventario", re.IGNORECASE), DocumentKind.CSV_INVENTORY),
]

# Tried in this order; strict '>' keeps sales on ties
_TABULAR_KINDS = [DocumentKind.CSV_SALES, DocumentKind.CSV_EXPENSES, DocumentKind.CSV_INVENTORY]


def check_document_size(content: str, max_mb: int) -> None:
    """Raise FormatError when the encoded document exceeds `max_mb`."""
    size = len(content.encode("utf-8"))
    if size > max_mb * 1024 * 1024:
        raise FormatError(f"Document size {size} bytes exceeds {max_mb}MB limit")


def kind_from_filename(filename: str) -> Optional[DocumentKind]:
    for pattern, kind in FILENAME_EXTENSIONS:
        if pattern.search(filename):
            return kind
    for pattern, kind in FILENAME_KEYWORDS:
        if pattern.search(filename):
            return kind
    return None


def kind_from_content(content: str) -> ClassificationResult:
    stripped = content.lstrip("\ufeff \t\r\n")
    if stripped.startswith("<"):
        return ClassificationResult(kind=DocumentKind.XML_CFDI, confidence=0.9, signals=["CONTENT:xml"])
    if stripped.startswith("{"):
        return ClassificationResult(kind=DocumentKind.JSON_CFDI, confidence=0.9, signals=["CONTENT:json"])

    sniff = sniff_format(content)
    if not sniff.has_header:
        return ClassificationResult(
            kind=DocumentKind.CSV_SALES,
            confidence=0.3,
            signals=["CONTENT:headerless"],
        )

    best_kind = DocumentKind.CSV_SALES
    best_count = -1
    signals = []
    for kind in _TABULAR_KINDS:
        count = map_columns(sniff.raw_columns, kind).matched_count
        signals.append(f"HEADERS:{kind.value}={count}")
        if count > best_count:
            best_kind, best_count = kind, count

    confidence = min(0.5 + 0.1 * best_count, 0.9)
    return ClassificationResult(kind=best_kind, confidence=confidence, signals=signals)


def classify_document(
    content: str,
    filename: str = "",
    declared_kind: Optional[DocumentKind] = None,
) -> ClassificationResult:
    """
    Decide the DocumentKind of a submission.
    Raises FormatError when content detection has nothing to sniff.
    """
    if declared_kind is not None:
        result = ClassificationResult(kind=declared_kind, confidence=1.0, signals=["DECLARED"])
    else:
        by_name = kind_from_filename(filename or "")
        if by_name is not None:
            result = ClassificationResult(kind=by_name, confidence=0.8, signals=[f"FILENAME:{filename}"])
        else:
            result = kind_from_content(content)

    logger.debug(
        "document_classified",
        kind=result.kind.value,
        confidence=result.confidence,
        signals=result.signals,
    )
    return result
