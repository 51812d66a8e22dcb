"""
Collaborator contracts consumed by the ingestion core.

Every implementation is tenant-scoped: no call may observe or mutate
another tenant's data. Implementations raise (or return False) on failure;
the orchestrator turns either into a terminal result for the current
document only.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ingestion.models.enums import DocumentKind
from ingestion.schemas.catalog import CatalogEntry, LearnedMapping, ResolutionResult
from ingestion.schemas.invoice import CanonicalInvoice
from ingestion.schemas.records import TabularRecord


class CatalogReader(ABC):
    """Read-only view of a tenant's ingredient/material catalog."""

    @abstractmethod
    def list_entries(self, tenant_id: str) -> list[CatalogEntry]:
        ...


class MappingStore(ABC):
    """
    Learned-mapping cache keyed by (tenant_id, source_code).

    Must give read-your-writes consistency within one tenant's sequential
    batch. Entries are never overwritten automatically; `correct` is the
    only mutation path.
    """

    @abstractmethod
    def get(self, tenant_id: str, source_code: str) -> Optional[LearnedMapping]:
        ...

    @abstractmethod
    def put_if_absent(self, mapping: LearnedMapping) -> bool:
        """Store `mapping` unless the key exists. True when written."""
        ...

    @abstractmethod
    def correct(
        self,
        tenant_id: str,
        source_code: str,
        catalog_entry_id: str,
        source_description: str = "",
    ) -> LearnedMapping:
        """Human correction: replace or create the mapping with confidence 1.0."""
        ...


class DuplicateIndex(ABC):
    """Persisted fiscal identifiers, per tenant."""

    @abstractmethod
    def exists(self, tenant_id: str, external_uid: str) -> bool:
        ...

    @abstractmethod
    def record(self, tenant_id: str, external_uid: str) -> None:
        ...


class RecordSink(ABC):
    """Durable storage for canonical records. Returns success per call."""

    @abstractmethod
    def write_records(
        self,
        tenant_id: str,
        document_id: str,
        kind: DocumentKind,
        records: list[TabularRecord],
    ) -> bool:
        ...

    @abstractmethod
    def write_invoice(
        self,
        tenant_id: str,
        document_id: str,
        invoice: CanonicalInvoice,
        resolutions: list[ResolutionResult],
    ) -> bool:
        ...
