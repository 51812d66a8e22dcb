"""
Canonical tabular records.
Produced by the tolerant record parser; downstream code never sees raw rows.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ingestion.models.enums import MappingConfidence


class RowError(BaseModel):
    """
    One unusable row (or, with row_number None, one document-level problem).
    Collected per batch; never aborts parsing of subsequent rows.
    """
    model_config = ConfigDict(frozen=True)

    row_number: Optional[int] = None
    field: Optional[str] = None
    message: str


class ColumnMapping(BaseModel):
    """
    Canonical field -> original header string, for one header set.
    Unmatched fields are absent from `mapping`.
    """
    model_config = ConfigDict(frozen=True)

    mapping: dict[str, str] = Field(default_factory=dict)
    confidence: MappingConfidence = MappingConfidence.LOW
    matched_count: int = 0
    unmapped_headers: list[str] = Field(default_factory=list)
    is_override: bool = False

    def header_for(self, field: str) -> Optional[str]:
        return self.mapping.get(field)


class SniffResult(BaseModel):
    delimiter: str
    has_header: bool
    raw_columns: list[str]


class ParsedSalesRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date_type
    amount: Decimal
    location: str
    transaction_count: Optional[int] = None
    source_row: int


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date_type
    amount: Decimal
    location: str
    category: str = "otros"
    note: Optional[str] = None
    source_row: int


class InventoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date_type
    location: str
    opening_value: Decimal
    closing_value: Decimal
    waste_value: Decimal = Decimal("0")
    source_row: int


TabularRecord = ParsedSalesRecord | ExpenseRecord | InventoryRecord
