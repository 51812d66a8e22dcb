"""
Submission and result shapes for the ingestion orchestrator.
"""

from typing import Optional, Union

from pydantic import BaseModel

from ingestion.models.enums import (
    DocumentKind,
    IngestionStatus,
    MappingConfidence,
    PipelineStage,
)
from ingestion.schemas.catalog import ResolutionAmbiguous, ResolutionResult
from ingestion.schemas.records import RowError


class SubmittedDocument(BaseModel):
    """One document as handed over by the transport layer."""
    document_id: str
    filename: str = ""
    # bytes are decoded by the pipeline (utf-8, then cp1252)
    content: Union[str, bytes]
    kind: Optional[DocumentKind] = None
    # Canonical field -> header name (or str(index) for headerless files)
    column_override: Optional[dict[str, str]] = None


class IngestionResult(BaseModel):
    """Terminal outcome for one document. One per submitted document."""
    document_id: str
    tenant_id: str
    kind: Optional[DocumentKind] = None
    status: IngestionStatus
    stage: PipelineStage
    records_processed: int = 0
    resolved_line_items: list[ResolutionResult] = []
    unmatched_line_items: list[ResolutionAmbiguous] = []
    errors: list[RowError] = []
    warnings: list[str] = []
    mapping_confidence: Optional[MappingConfidence] = None
    external_uid: Optional[str] = None
    duration_ms: int = 0

    @property
    def is_persisted(self) -> bool:
        return self.stage == PipelineStage.PERSISTED
