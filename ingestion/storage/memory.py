"""
In-process implementations of the collaborator contracts.

Used by tests and by callers embedding the core without a database. All
state is keyed by tenant and guarded by a lock, so tenant batches may run
on separate threads.
"""

import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from ingestion.models.enums import DocumentKind
from ingestion.schemas.catalog import CatalogEntry, LearnedMapping, ResolutionResult
from ingestion.schemas.invoice import CanonicalInvoice
from ingestion.schemas.records import TabularRecord
from ingestion.storage.contracts import CatalogReader, DuplicateIndex, MappingStore, RecordSink

logger = structlog.get_logger(__name__)


class InMemoryCatalog(CatalogReader):
    def __init__(self, entries: Optional[dict[str, Iterable[CatalogEntry]]] = None):
        self._lock = threading.Lock()
        self._entries: dict[str, list[CatalogEntry]] = {
            tenant: list(items) for tenant, items in (entries or {}).items()
        }

    def add(self, tenant_id: str, entry: CatalogEntry) -> None:
        with self._lock:
            self._entries.setdefault(tenant_id, []).append(entry)

    def list_entries(self, tenant_id: str) -> list[CatalogEntry]:
        with self._lock:
            return list(self._entries.get(tenant_id, []))


class InMemoryMappingStore(MappingStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._mappings: dict[tuple[str, str], LearnedMapping] = {}

    def get(self, tenant_id: str, source_code: str) -> Optional[LearnedMapping]:
        with self._lock:
            return self._mappings.get((tenant_id, source_code))

    def put_if_absent(self, mapping: LearnedMapping) -> bool:
        key = (mapping.tenant_id, mapping.source_code)
        with self._lock:
            if key in self._mappings:
                return False
            self._mappings[key] = mapping
            return True

    def correct(
        self,
        tenant_id: str,
        source_code: str,
        catalog_entry_id: str,
        source_description: str = "",
    ) -> LearnedMapping:
        mapping = LearnedMapping(
            tenant_id=tenant_id,
            source_code=source_code,
            source_description=source_description,
            catalog_entry_id=catalog_entry_id,
            confidence_score=1.0,
        )
        with self._lock:
            previous = self._mappings.get((tenant_id, source_code))
            self._mappings[(tenant_id, source_code)] = mapping
        logger.info(
            "learned_mapping_corrected",
            tenant_id=tenant_id,
            source_code=source_code,
            previous=previous.catalog_entry_id if previous else None,
            catalog_entry_id=catalog_entry_id,
        )
        return mapping

    def for_tenant(self, tenant_id: str) -> list[LearnedMapping]:
        with self._lock:
            return [m for (t, _), m in self._mappings.items() if t == tenant_id]


class InMemoryDuplicateIndex(DuplicateIndex):
    def __init__(self):
        self._lock = threading.Lock()
        self._seen: dict[str, dict[str, datetime]] = defaultdict(dict)

    def exists(self, tenant_id: str, external_uid: str) -> bool:
        with self._lock:
            return external_uid in self._seen.get(tenant_id, {})

    def record(self, tenant_id: str, external_uid: str) -> None:
        with self._lock:
            self._seen[tenant_id].setdefault(external_uid, datetime.now(timezone.utc))


class InMemoryRecordSink(RecordSink):
    def __init__(self):
        self._lock = threading.Lock()
        self.records: dict[str, list[tuple[str, DocumentKind, TabularRecord]]] = defaultdict(list)
        self.invoices: dict[str, list[tuple[str, CanonicalInvoice, list[ResolutionResult]]]] = defaultdict(list)

    def write_records(
        self,
        tenant_id: str,
        document_id: str,
        kind: DocumentKind,
        records: list[TabularRecord],
    ) -> bool:
        with self._lock:
            self.records[tenant_id].extend((document_id, kind, r) for r in records)
        return True

    def write_invoice(
        self,
        tenant_id: str,
        document_id: str,
        invoice: CanonicalInvoice,
        resolutions: list[ResolutionResult],
    ) -> bool:
        with self._lock:
            self.invoices[tenant_id].append((document_id, invoice, list(resolutions)))
        return True
