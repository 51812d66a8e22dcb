"""
Tests for document kind detection.
"""

import pytest

from ingestion.models.enums import DocumentKind
from ingestion.pipeline.doc_classifier import (
    check_document_size,
    classify_document,
    kind_from_filename,
)
from ingestion.pipeline.errors import FormatError


class TestKindFromFilename:

    @pytest.mark.parametrize("filename,expected", [
        ("ventas_septiembre.csv", DocumentKind.CSV_SALES),
        ("Sales-2024.csv", DocumentKind.CSV_SALES),
        ("gastos_q3.csv", DocumentKind.CSV_EXPENSES),
        ("expenses.txt", DocumentKind.CSV_EXPENSES),
        ("inventario_cierre.csv", DocumentKind.CSV_INVENTORY),
        ("factura_A1001.xml", DocumentKind.XML_CFDI),
        ("export.JSON", DocumentKind.JSON_CFDI),
    ])
    def test_known_names(self, filename, expected):
        assert kind_from_filename(filename) == expected

    def test_extension_beats_keyword(self):
        assert kind_from_filename("ventas_proveedor.xml") == DocumentKind.XML_CFDI

    def test_unknown_name(self):
        assert kind_from_filename("upload.csv") is None


class TestClassifyDocument:

    def test_declared_kind_wins(self):
        result = classify_document("<x/>", "ventas.csv", DocumentKind.CSV_EXPENSES)
        assert result.kind == DocumentKind.CSV_EXPENSES
        assert result.confidence == 1.0

    def test_filename_before_content(self):
        result = classify_document("fecha,monto\n", "factura.xml")
        assert result.kind == DocumentKind.XML_CFDI

    def test_xml_content(self, cfdi_xml):
        assert classify_document(cfdi_xml).kind == DocumentKind.XML_CFDI

    def test_json_content(self, invoice_export_json):
        assert classify_document(invoice_export_json).kind == DocumentKind.JSON_CFDI

    def test_sales_headers(self, sales_csv):
        assert classify_document(sales_csv, "upload.csv").kind == DocumentKind.CSV_SALES

    def test_inventory_headers(self):
        content = "fecha,tienda,inventario_inicial,inventario_final,merma\n"
        assert classify_document(content).kind == DocumentKind.CSV_INVENTORY

    def test_headerless_defaults_to_sales(self):
        assert classify_document("2024-09-01,Centro,100\n").kind == DocumentKind.CSV_SALES

    def test_empty_content_raises(self):
        with pytest.raises(FormatError):
            classify_document("")


class TestCheckDocumentSize:

    def test_within_limit(self):
        check_document_size("a" * 1024, max_mb=1)

    def test_over_limit(self):
        with pytest.raises(FormatError):
            check_document_size("a" * (1024 * 1024 + 1), max_mb=1)
