"""
SQLAlchemy implementations of the collaborator contracts.

One short session per call. The unique constraints on learned_mappings and
ingested_documents back the first-write-wins and duplicate rules when two
processes share a database.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ingestion.models.database import session_scope
from ingestion.models.enums import DocumentKind
from ingestion.models.tables import (
    CatalogEntryRow,
    ExpenseRecordRow,
    IngestedDocument,
    InventoryRecordRow,
    LearnedMappingRow,
    PurchaseInvoice,
    PurchaseInvoiceItem,
    SalesRecordRow,
)
from ingestion.schemas.catalog import CatalogEntry, LearnedMapping, ResolutionResult
from ingestion.schemas.invoice import CanonicalInvoice
from ingestion.schemas.records import ExpenseRecord, InventoryRecord, ParsedSalesRecord, TabularRecord
from ingestion.storage.contracts import CatalogReader, DuplicateIndex, MappingStore, RecordSink

logger = structlog.get_logger(__name__)


def _to_mapping(row: LearnedMappingRow) -> LearnedMapping:
    return LearnedMapping(
        tenant_id=row.tenant_id,
        source_code=row.source_code,
        source_description=row.source_description,
        catalog_entry_id=row.catalog_entry_id,
        confidence_score=float(row.confidence_score),
        created_at=row.created_at,
    )


# ─── Catalog ─────────────────────────────────────────────────

class SqlCatalogReader(CatalogReader):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_entries(self, tenant_id: str) -> list[CatalogEntry]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(CatalogEntryRow)
                .where(CatalogEntryRow.tenant_id == tenant_id)
                .order_by(CatalogEntryRow.id)
            ).all()
            return [
                CatalogEntry(id=r.id, code=r.code, name=r.name, unit=r.unit)
                for r in rows
            ]

    def add(self, tenant_id: str, entry: CatalogEntry) -> None:
        with session_scope(self.session_factory) as session:
            session.add(CatalogEntryRow(
                id=entry.id,
                tenant_id=tenant_id,
                code=entry.code,
                name=entry.name,
                unit=entry.unit,
            ))


# ─── Learned Mappings ────────────────────────────────────────

class SqlMappingStore(MappingStore):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _find(self, session, tenant_id: str, source_code: str) -> Optional[LearnedMappingRow]:
        return session.scalars(
            select(LearnedMappingRow).where(
                LearnedMappingRow.tenant_id == tenant_id,
                LearnedMappingRow.source_code == source_code,
            )
        ).first()

    def get(self, tenant_id: str, source_code: str) -> Optional[LearnedMapping]:
        with session_scope(self.session_factory) as session:
            row = self._find(session, tenant_id, source_code)
            return _to_mapping(row) if row else None

    def put_if_absent(self, mapping: LearnedMapping) -> bool:
        try:
            with session_scope(self.session_factory) as session:
                if self._find(session, mapping.tenant_id, mapping.source_code) is not None:
                    return False
                session.add(LearnedMappingRow(
                    tenant_id=mapping.tenant_id,
                    source_code=mapping.source_code,
                    source_description=mapping.source_description,
                    catalog_entry_id=mapping.catalog_entry_id,
                    confidence_score=Decimal(str(mapping.confidence_score)),
                    created_at=mapping.created_at,
                ))
        except IntegrityError:
            # Another writer won the race for this key
            logger.info(
                "learned_mapping_exists",
                tenant_id=mapping.tenant_id,
                source_code=mapping.source_code,
            )
            return False
        return True

    def correct(
        self,
        tenant_id: str,
        source_code: str,
        catalog_entry_id: str,
        source_description: str = "",
    ) -> LearnedMapping:
        with session_scope(self.session_factory) as session:
            row = self._find(session, tenant_id, source_code)
            if row is None:
                row = LearnedMappingRow(tenant_id=tenant_id, source_code=source_code)
                session.add(row)
            row.catalog_entry_id = catalog_entry_id
            row.source_description = source_description
            row.confidence_score = Decimal("1.0")
            row.created_at = datetime.now(timezone.utc)
            session.flush()
            corrected = _to_mapping(row)

        logger.info(
            "learned_mapping_corrected",
            tenant_id=tenant_id,
            source_code=source_code,
            catalog_entry_id=catalog_entry_id,
        )
        return corrected


# ─── Duplicate Index ─────────────────────────────────────────

class SqlDuplicateIndex(DuplicateIndex):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def exists(self, tenant_id: str, external_uid: str) -> bool:
        with session_scope(self.session_factory) as session:
            found = session.scalars(
                select(IngestedDocument.id).where(
                    IngestedDocument.tenant_id == tenant_id,
                    IngestedDocument.external_uid == external_uid,
                )
            ).first()
            return found is not None

    def record(self, tenant_id: str, external_uid: str) -> None:
        try:
            with session_scope(self.session_factory) as session:
                session.add(IngestedDocument(tenant_id=tenant_id, external_uid=external_uid))
        except IntegrityError:
            logger.info("duplicate_index_exists", tenant_id=tenant_id, external_uid=external_uid)


# ─── Record Sink ─────────────────────────────────────────────

def _record_row(tenant_id: str, document_id: str, record: TabularRecord):
    common = {
        "tenant_id": tenant_id,
        "document_id": document_id,
        "date": record.date,
        "location": record.location,
        "source_row": record.source_row,
    }
    if isinstance(record, ParsedSalesRecord):
        return SalesRecordRow(amount=record.amount, transaction_count=record.transaction_count, **common)
    if isinstance(record, ExpenseRecord):
        return ExpenseRecordRow(amount=record.amount, category=record.category, note=record.note, **common)
    if isinstance(record, InventoryRecord):
        return InventoryRecordRow(
            opening_value=record.opening_value,
            closing_value=record.closing_value,
            waste_value=record.waste_value,
            **common,
        )
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


class SqlRecordSink(RecordSink):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def write_records(
        self,
        tenant_id: str,
        document_id: str,
        kind: DocumentKind,
        records: list[TabularRecord],
    ) -> bool:
        try:
            with session_scope(self.session_factory) as session:
                session.add_all([_record_row(tenant_id, document_id, r) for r in records])
        except SQLAlchemyError as e:
            logger.error(
                "record_write_failed",
                tenant_id=tenant_id,
                document_id=document_id,
                kind=kind.value,
                error=str(e),
            )
            return False
        return True

    def write_invoice(
        self,
        tenant_id: str,
        document_id: str,
        invoice: CanonicalInvoice,
        resolutions: list[ResolutionResult],
    ) -> bool:
        by_line = {r.line_index: r for r in resolutions}
        try:
            with session_scope(self.session_factory) as session:
                header = PurchaseInvoice(
                    tenant_id=tenant_id,
                    document_id=document_id,
                    external_uid=invoice.external_uid,
                    issue_date=invoice.issue_date,
                    folio=invoice.folio,
                    supplier_tax_id=invoice.supplier_tax_id,
                    supplier_name=invoice.supplier_name,
                    currency=invoice.currency,
                    subtotal=invoice.subtotal,
                    tax=invoice.tax,
                    total=invoice.total,
                    payment_method=invoice.payment_method,
                    payment_conditions=invoice.payment_conditions,
                )
                for item in invoice.line_items:
                    match = by_line.get(item.line_index)
                    header.items.append(PurchaseInvoiceItem(
                        line_index=item.line_index,
                        sku_or_code=item.sku_or_code,
                        description=item.description,
                        quantity=item.quantity,
                        unit=item.unit,
                        unit_price=item.unit_price,
                        line_total=item.line_total,
                        category=item.category,
                        catalog_entry_id=match.catalog_entry_id if match else None,
                        match_score=Decimal(str(match.score)) if match else None,
                        match_strategy=match.strategy.value if match else None,
                    ))
                session.add(header)
        except SQLAlchemyError as e:
            logger.error(
                "invoice_write_failed",
                tenant_id=tenant_id,
                document_id=document_id,
                external_uid=invoice.external_uid,
                error=str(e),
            )
            return False
        return True
