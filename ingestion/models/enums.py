"""
Python enums shared by the pipeline, schemas and storage tables.
Values are persisted as plain strings; do not rename them.
"""

from enum import Enum


class DocumentKind(str, Enum):
    CSV_SALES = "csv_sales"
    CSV_EXPENSES = "csv_expenses"
    CSV_INVENTORY = "csv_inventory"
    XML_CFDI = "xml_cfdi"
    JSON_CFDI = "json_cfdi"

    @property
    def is_tabular(self) -> bool:
        return self in (DocumentKind.CSV_SALES, DocumentKind.CSV_EXPENSES, DocumentKind.CSV_INVENTORY)


class MappingConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class IngestionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    REJECTED = "rejected"


class PipelineStage(str, Enum):
    """Per-document states. The last six are terminal."""
    RECEIVED = "received"
    PARSED = "parsed"
    VALIDATED = "validated"
    DEDUP_CHECKED = "dedup_checked"
    RESOLVED = "resolved"
    PERSISTED = "persisted"
    REJECTED_DUPLICATE = "rejected_duplicate"
    REJECTED_STRUCTURE = "rejected_structure"
    REJECTED_FORMAT = "rejected_format"
    NEEDS_MAPPING = "needs_mapping"
    FAILED_STORAGE = "failed_storage"


class MatchStrategy(str, Enum):
    LEARNED = "LEARNED"
    EXACT_CODE = "EXACT_CODE"
    CODE_SUBSTRING = "CODE_SUBSTRING"
    EXACT_NAME = "EXACT_NAME"
    DESCRIPTION_CONTAINS_NAME = "DESCRIPTION_CONTAINS_NAME"
    NAME_CONTAINS_DESCRIPTION = "NAME_CONTAINS_DESCRIPTION"
    TOKEN_OVERLAP = "TOKEN_OVERLAP"
