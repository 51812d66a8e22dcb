"""
Tolerant record parser: mapped rows -> canonical tabular records.

Never raises for the batch. Each row either yields exactly one record or
exactly one RowError; later rows are always attempted.
"""

from decimal import Decimal
from typing import Callable, Optional

import structlog

from ingestion.config import settings
from ingestion.models.enums import DocumentKind
from ingestion.pipeline.amount_parser import parse_amount
from ingestion.pipeline.column_mapper import FieldSpec, fields_for
from ingestion.pipeline.date_parser import parse_date_tolerant
from ingestion.pipeline.header_normalizer import fold_text, normalize_header
from ingestion.schemas.records import (
    ColumnMapping,
    ExpenseRecord,
    InventoryRecord,
    ParsedSalesRecord,
    RowError,
    TabularRecord,
)

logger = structlog.get_logger(__name__)

EXPENSE_CATEGORIES = (
    "renta", "servicios", "marketing", "mantenimiento", "seguros",
    "nomina", "impuestos", "combustible", "telefono", "internet",
    "limpieza", "seguridad", "oficina", "viajes", "capacitacion",
    "legal", "contabilidad", "otros",
)

EXPENSE_CATEGORY_SYNONYMS = {
    "rent": "renta",
    "utilities": "servicios",
    "advertising": "marketing",
    "maintenance": "mantenimiento",
    "insurance": "seguros",
    "payroll": "nomina",
    "taxes": "impuestos",
    "gas": "combustible",
    "phone": "telefono",
    "cleaning": "limpieza",
    "security": "seguridad",
    "office": "oficina",
    "travel": "viajes",
    "training": "capacitacion",
    "accounting": "contabilidad",
}

MAX_NOTE_LENGTH = 500


class _RowRejected(Exception):
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


# ─── Cell Resolution ─────────────────────────────────────────

class _CellResolver:
    """Maps each canonical field to a column index, once per batch."""

    def __init__(self, headers: list[str], mapping: ColumnMapping, specs: tuple[FieldSpec, ...]):
        normalized = [normalize_header(h) for h in headers]
        self.indexes: dict[str, int] = {}
        for spec in specs:
            idx = self._locate(headers, normalized, mapping.header_for(spec.name))
            if idx is None:
                # Backward compatibility with conventional layouts
                for default in spec.default_headers:
                    idx = self._locate(headers, normalized, default)
                    if idx is not None:
                        break
            if idx is not None:
                self.indexes[spec.name] = idx

    @staticmethod
    def _locate(headers: list[str], normalized: list[str], header: Optional[str]) -> Optional[int]:
        if not header:
            return None
        if header in headers:
            return headers.index(header)
        target = normalize_header(header)
        if target in normalized:
            return normalized.index(target)
        return None

    def cell(self, row: list[str], field: str) -> Optional[str]:
        idx = self.indexes.get(field)
        if idx is None or idx >= len(row):
            return None
        value = row[idx].strip()
        return value or None


# ─── Field Parsers ───────────────────────────────────────────

def _required_date(cells: _CellResolver, row: list[str], dayfirst: bool):
    raw = cells.cell(row, "date")
    if raw is None:
        raise _RowRejected("date", "Missing date")
    result = parse_date_tolerant(raw, dayfirst=dayfirst)
    if result.parsed_date is None:
        raise _RowRejected("date", f"Invalid date: {raw!r}")
    return result.parsed_date


def _required_amount(cells: _CellResolver, row: list[str], field: str) -> Decimal:
    raw = cells.cell(row, field)
    if raw is None:
        raise _RowRejected(field, f"Missing {field}")
    result = parse_amount(raw)
    if result.amount is None:
        raise _RowRejected(field, f"Invalid amount: {raw!r}")
    return result.amount


def _optional_amount(cells: _CellResolver, row: list[str], field: str) -> Optional[Decimal]:
    raw = cells.cell(row, field)
    if raw is None:
        return None
    result = parse_amount(raw)
    if result.amount is None:
        raise _RowRejected(field, f"Invalid amount: {raw!r}")
    return result.amount


def _optional_count(cells: _CellResolver, row: list[str]) -> Optional[int]:
    raw = cells.cell(row, "transaction_count")
    if raw is None:
        return None
    result = parse_amount(raw)
    if result.amount is None or result.amount != result.amount.to_integral_value():
        logger.debug("transaction_count_ignored", raw=raw)
        return None
    return int(result.amount)


def normalize_expense_category(raw: Optional[str]) -> str:
    """Map a free-text expense category onto the fixed expense list."""
    value = fold_text(raw or "")
    if value in EXPENSE_CATEGORIES:
        return value
    return EXPENSE_CATEGORY_SYNONYMS.get(value, "otros")


# ─── Row Builders ────────────────────────────────────────────

def _build_sales(cells, row, row_number, default_location, dayfirst) -> ParsedSalesRecord:
    record_date = _required_date(cells, row, dayfirst)
    amount = _required_amount(cells, row, "amount")
    if amount < 0:
        raise _RowRejected("amount", f"Amount cannot be negative: {amount}")
    return ParsedSalesRecord(
        date=record_date,
        amount=amount,
        location=cells.cell(row, "location") or default_location,
        transaction_count=_optional_count(cells, row),
        source_row=row_number,
    )


def _build_expense(cells, row, row_number, default_location, dayfirst) -> ExpenseRecord:
    record_date = _required_date(cells, row, dayfirst)
    amount = _required_amount(cells, row, "amount")
    if amount <= 0:
        raise _RowRejected("amount", f"Amount must be greater than 0: {amount}")
    note = cells.cell(row, "note")
    if note and len(note) > MAX_NOTE_LENGTH:
        note = note[:MAX_NOTE_LENGTH] + "..."
    return ExpenseRecord(
        date=record_date,
        amount=amount,
        location=cells.cell(row, "location") or default_location,
        category=normalize_expense_category(cells.cell(row, "category")),
        note=note,
        source_row=row_number,
    )


def _build_inventory(cells, row, row_number, default_location, dayfirst) -> InventoryRecord:
    record_date = _required_date(cells, row, dayfirst)
    opening = _required_amount(cells, row, "opening_value")
    closing = _required_amount(cells, row, "closing_value")
    waste = _optional_amount(cells, row, "waste_value") or Decimal("0")
    for field, value in (("opening_value", opening), ("closing_value", closing), ("waste_value", waste)):
        if value < 0:
            raise _RowRejected(field, f"Inventory values cannot be negative: {value}")
    if waste > opening:
        raise _RowRejected("waste_value", "Waste value cannot exceed opening inventory")
    return InventoryRecord(
        date=record_date,
        location=cells.cell(row, "location") or default_location,
        opening_value=opening,
        closing_value=closing,
        waste_value=waste,
        source_row=row_number,
    )


_BUILDERS: dict[DocumentKind, Callable] = {
    DocumentKind.CSV_SALES: _build_sales,
    DocumentKind.CSV_EXPENSES: _build_expense,
    DocumentKind.CSV_INVENTORY: _build_inventory,
}

# Kinds where one (date, location) pair may appear only once per file
_UNIQUE_PER_DAY = {DocumentKind.CSV_SALES, DocumentKind.CSV_INVENTORY}


# ─── Main Entry Point ────────────────────────────────────────

def parse_rows(
    headers: list[str],
    rows: list[list[str]],
    mapping: ColumnMapping,
    kind: DocumentKind = DocumentKind.CSV_SALES,
    first_row_number: int = 2,
    default_location: Optional[str] = None,
    dayfirst: Optional[bool] = None,
) -> tuple[list[TabularRecord], list[RowError]]:
    """
    Parse mapped rows into canonical records.

    Rows are aligned to `headers`. `first_row_number` is the source line of
    rows[0] (2 when a header line precedes the data). Returns (records, errors).
    """
    default_location = default_location or settings.DEFAULT_LOCATION
    dayfirst = settings.DATE_DAYFIRST if dayfirst is None else dayfirst

    cells = _CellResolver(headers, mapping, fields_for(kind))
    build = _BUILDERS[kind]

    records: list[TabularRecord] = []
    errors: list[RowError] = []
    seen: set[tuple] = set()

    for offset, row in enumerate(rows):
        row_number = first_row_number + offset
        try:
            record = build(cells, row, row_number, default_location, dayfirst)
        except _RowRejected as e:
            errors.append(RowError(row_number=row_number, field=e.field, message=e.message))
            continue

        if kind in _UNIQUE_PER_DAY and "location" in cells.indexes:
            key = (record.date, record.location)
            if key in seen:
                errors.append(RowError(
                    row_number=row_number,
                    field="date",
                    message=f"Duplicate entry: {record.location} on {record.date.isoformat()}",
                ))
                continue
            seen.add(key)

        records.append(record)

    logger.info(
        "rows_parsed",
        kind=kind.value,
        rows=len(rows),
        records=len(records),
        errors=len(errors),
    )
    return records, errors


def parse_sales_rows(
    headers: list[str],
    rows: list[list[str]],
    mapping: ColumnMapping,
    **kwargs,
) -> tuple[list[ParsedSalesRecord], list[RowError]]:
    return parse_rows(headers, rows, mapping, DocumentKind.CSV_SALES, **kwargs)
