"""
SQLAlchemy ORM models backing the SQL collaborators.
Generic column types only, so the same schema runs on SQLite and PostgreSQL.
Every table is tenant-scoped through tenant_id.
"""

import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ingestion.models.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ────────────────────────────────────────────────────────────
# DUPLICATE INDEX
# ────────────────────────────────────────────────────────────
class IngestedDocument(Base):
    __tablename__ = "ingested_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_uid: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_uid", name="uq_ingested_documents_tenant_uid"),
    )


# ────────────────────────────────────────────────────────────
# CATALOG + LEARNED MAPPINGS
# ────────────────────────────────────────────────────────────
class CatalogEntryRow(Base):
    __tablename__ = "catalog_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        Index("idx_catalog_entries_tenant", "tenant_id"),
    )


class LearnedMappingRow(Base):
    __tablename__ = "learned_mappings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_code: Mapped[str] = mapped_column(String(128), nullable=False)
    source_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    catalog_entry_id: Mapped[str] = mapped_column(String(64), nullable=False)
    confidence_score: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "source_code", name="uq_learned_mappings_tenant_code"),
    )


# ────────────────────────────────────────────────────────────
# TABULAR RECORDS
# ────────────────────────────────────────────────────────────
class SalesRecordRow(Base):
    __tablename__ = "sales_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    transaction_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source_row: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_sales_records_tenant_date", "tenant_id", "date"),
    )


class ExpenseRecordRow(Base):
    __tablename__ = "expense_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_row: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_expense_records_tenant_date", "tenant_id", "date"),
    )


class InventoryRecordRow(Base):
    __tablename__ = "inventory_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    opening_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    closing_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    waste_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    source_row: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_inventory_records_tenant_date", "tenant_id", "date"),
    )


# ────────────────────────────────────────────────────────────
# PURCHASE INVOICES
# ────────────────────────────────────────────────────────────
class PurchaseInvoice(Base):
    __tablename__ = "purchase_invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_uid: Mapped[str] = mapped_column(String(64), nullable=False)
    issue_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    folio: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    supplier_tax_id: Mapped[str] = mapped_column(String(20), nullable=False)
    supplier_name: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MXN")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    payment_conditions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    items = relationship(
        "PurchaseInvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="PurchaseInvoiceItem.line_index",
    )

    __table_args__ = (
        Index("idx_purchase_invoices_tenant_uid", "tenant_id", "external_uid"),
    )


class PurchaseInvoiceItem(Base):
    __tablename__ = "purchase_invoice_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    invoice_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("purchase_invoices.id", ondelete="CASCADE"), nullable=False
    )
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    sku_or_code: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    catalog_entry_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    match_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 4), nullable=True)
    match_strategy: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    invoice = relationship("PurchaseInvoice", back_populates="items")
