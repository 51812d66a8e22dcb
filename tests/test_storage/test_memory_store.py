"""
Tests for the in-process collaborator implementations.
"""

from datetime import date
from decimal import Decimal

from ingestion.models.enums import DocumentKind
from ingestion.schemas.catalog import CatalogEntry, LearnedMapping
from ingestion.schemas.records import ParsedSalesRecord
from ingestion.storage.memory import (
    InMemoryCatalog,
    InMemoryDuplicateIndex,
    InMemoryMappingStore,
    InMemoryRecordSink,
)


def _mapping(tenant="t1", code="QM-500", entry="cat-queso", score=0.85):
    return LearnedMapping(tenant_id=tenant, source_code=code, catalog_entry_id=entry, confidence_score=score)


class TestInMemoryCatalog:

    def test_tenant_scoped(self):
        catalog = InMemoryCatalog({"t1": [CatalogEntry(id="a", name="Queso")]})
        assert [e.id for e in catalog.list_entries("t1")] == ["a"]
        assert catalog.list_entries("t2") == []

    def test_add(self):
        catalog = InMemoryCatalog()
        catalog.add("t1", CatalogEntry(id="a", name="Queso"))
        assert len(catalog.list_entries("t1")) == 1

    def test_listing_is_a_copy(self):
        catalog = InMemoryCatalog({"t1": [CatalogEntry(id="a", name="Queso")]})
        catalog.list_entries("t1").clear()
        assert len(catalog.list_entries("t1")) == 1


class TestInMemoryMappingStore:

    def test_first_write_wins(self):
        store = InMemoryMappingStore()
        assert store.put_if_absent(_mapping(entry="cat-queso"))
        assert not store.put_if_absent(_mapping(entry="cat-otro"))
        assert store.get("t1", "QM-500").catalog_entry_id == "cat-queso"

    def test_keys_are_tenant_scoped(self):
        store = InMemoryMappingStore()
        store.put_if_absent(_mapping(tenant="t1"))
        assert store.put_if_absent(_mapping(tenant="t2", entry="cat-otro"))
        assert store.get("t2", "QM-500").catalog_entry_id == "cat-otro"

    def test_correct_replaces_with_full_confidence(self):
        store = InMemoryMappingStore()
        store.put_if_absent(_mapping())
        corrected = store.correct("t1", "QM-500", "cat-manchego", "Queso manchego 500g")
        assert corrected.confidence_score == 1.0
        assert store.get("t1", "QM-500").catalog_entry_id == "cat-manchego"

    def test_correct_creates_missing(self):
        store = InMemoryMappingStore()
        store.correct("t1", "NEW-1", "cat-x")
        assert store.get("t1", "NEW-1").catalog_entry_id == "cat-x"

    def test_created_at_is_timezone_aware(self):
        assert _mapping().created_at.tzinfo is not None

    def test_for_tenant(self):
        store = InMemoryMappingStore()
        store.put_if_absent(_mapping(code="A"))
        store.put_if_absent(_mapping(code="B"))
        store.put_if_absent(_mapping(tenant="t2", code="C"))
        assert sorted(m.source_code for m in store.for_tenant("t1")) == ["A", "B"]


class TestInMemoryDuplicateIndex:

    def test_record_then_exists(self):
        index = InMemoryDuplicateIndex()
        assert not index.exists("t1", "ABC-1")
        index.record("t1", "ABC-1")
        assert index.exists("t1", "ABC-1")

    def test_tenant_scoped(self):
        index = InMemoryDuplicateIndex()
        index.record("t1", "ABC-1")
        assert not index.exists("t2", "ABC-1")

    def test_record_is_idempotent(self):
        index = InMemoryDuplicateIndex()
        index.record("t1", "ABC-1")
        index.record("t1", "ABC-1")
        assert index.exists("t1", "ABC-1")


class TestInMemoryRecordSink:

    def test_records_kept_per_tenant(self):
        sink = InMemoryRecordSink()
        record = ParsedSalesRecord(date=date(2024, 9, 1), amount=Decimal("10"), location="Centro", source_row=2)
        assert sink.write_records("t1", "d1", DocumentKind.CSV_SALES, [record])
        assert sink.records["t1"] == [("d1", DocumentKind.CSV_SALES, record)]
        assert sink.records["t2"] == []
