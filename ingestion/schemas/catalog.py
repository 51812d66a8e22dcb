"""
Catalog and entity-resolution schemas.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ingestion.models.enums import MatchStrategy


class CatalogEntry(BaseModel):
    """Tenant-scoped ingredient/material. Read-only to the core."""
    model_config = ConfigDict(frozen=True)

    id: str
    code: Optional[str] = None
    name: str
    unit: Optional[str] = None


class LearnedMapping(BaseModel):
    """Write-once association from a tenant's source code to a catalog entry."""
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    source_code: str
    source_description: str = ""
    catalog_entry_id: str
    confidence_score: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MatchSuggestion(BaseModel):
    catalog_entry_id: str
    score: float
    strategy: MatchStrategy


class ResolutionResult(BaseModel):
    """A line item resolved to a catalog entry."""
    line_index: int
    catalog_entry_id: str
    score: float
    strategy: MatchStrategy
    from_cache: bool = False


class ResolutionAmbiguous(BaseModel):
    """
    Informational, not an error: the line item was left unresolved and is
    surfaced for manual mapping together with the best candidates found.
    """
    line_index: int
    source_code: Optional[str] = None
    description: str
    best_score: float = 0.0
    suggestions: list[MatchSuggestion] = []
