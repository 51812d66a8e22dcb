"""
Tests for the CFDI XML invoice parser.
"""

from datetime import date
from decimal import Decimal

import pytest

from ingestion.pipeline.errors import StructureError
from ingestion.pipeline.invoice_parser import parse_cfdi_xml


PLAIN_CFDI = """<Comprobante Fecha="2024-08-15" SubTotal="120.50" Total="139.78" Serie="B">
  <Emisor rfc="ABA020202CD2" nombre="Abarrotes Norte"/>
  <Conceptos>
    <Concepto ClaveProdServ="50161800" Cantidad="1" Unidad="Caja"
        Descripcion="Aceite de oliva" ValorUnitario="120.50" Importe="120.50"/>
  </Conceptos>
</Comprobante>"""


class TestParseCfdiXml:

    def test_namespaced_document(self, cfdi_xml):
        invoice = parse_cfdi_xml(cfdi_xml)
        assert invoice.external_uid == "ABC-1"
        assert invoice.supplier_tax_id == "LAC010101AB1"
        assert invoice.supplier_name == "Lacteos del Centro SA de CV"
        assert invoice.issue_date == date(2024, 9, 1)
        assert invoice.folio == "1001"
        assert invoice.currency == "MXN"
        assert invoice.payment_method == "PUE"
        assert invoice.payment_conditions == "Contado"

    def test_totals_are_exact_decimals(self, cfdi_xml):
        invoice = parse_cfdi_xml(cfdi_xml)
        assert invoice.subtotal == Decimal("300.00")
        assert invoice.tax == Decimal("48.00")
        assert invoice.total == Decimal("348.00")
        assert isinstance(invoice.total, Decimal)

    def test_line_items_in_order(self, cfdi_xml):
        items = parse_cfdi_xml(cfdi_xml).line_items
        assert [li.line_index for li in items] == [0, 1]
        first = items[0]
        assert first.sku_or_code == "QM-500"
        assert first.description == "QUESO MANCHEGO"
        assert first.quantity == Decimal("2")
        assert first.unit == "KGM"
        assert first.unit_price == Decimal("100.00")
        assert first.line_total == Decimal("200.00")

    def test_line_items_categorized(self, cfdi_xml):
        items = parse_cfdi_xml(cfdi_xml).line_items
        assert items[0].category == "lacteos"
        assert items[1].category == "proteinas"

    def test_plain_document_without_namespace(self):
        invoice = parse_cfdi_xml(PLAIN_CFDI)
        assert invoice.supplier_tax_id == "ABA020202CD2"
        assert invoice.supplier_name == "Abarrotes Norte"
        assert invoice.folio == "B"
        assert invoice.line_items[0].category == "aceites"

    def test_plain_document_fallbacks(self):
        invoice = parse_cfdi_xml(PLAIN_CFDI)
        item = invoice.line_items[0]
        assert item.sku_or_code == "50161800"
        assert item.unit == "Caja"
        assert invoice.tax == Decimal("0")
        assert invoice.currency == "MXN"

    def test_missing_stamp_yields_sentinel(self, cfdi_factory):
        invoice = parse_cfdi_xml(cfdi_factory(uuid=None))
        assert invoice.external_uid == "N/A"
        assert not invoice.has_fiscal_id

    def test_missing_issuer_raises(self):
        xml = "<Comprobante Total='10'><Conceptos><Concepto Descripcion='x'/></Conceptos></Comprobante>"
        with pytest.raises(StructureError) as exc:
            parse_cfdi_xml(xml)
        assert exc.value.error_code == "ERR_STRUCTURE"
        assert any("Emisor" in p for p in exc.value.problems)

    def test_missing_line_items_raises(self):
        xml = "<Comprobante Total='10'><Emisor Rfc='X' Nombre='Y'/></Comprobante>"
        with pytest.raises(StructureError) as exc:
            parse_cfdi_xml(xml)
        assert any("Conceptos" in p for p in exc.value.problems)

    def test_both_missing_reports_both(self):
        with pytest.raises(StructureError) as exc:
            parse_cfdi_xml("<Comprobante Total='10'/>")
        assert len(exc.value.problems) == 2

    def test_empty_line_items_raises(self):
        xml = "<Comprobante Total='10'><Emisor Rfc='X' Nombre='Y'/><Conceptos/></Comprobante>"
        with pytest.raises(StructureError):
            parse_cfdi_xml(xml)

    def test_no_comprobante_raises(self):
        with pytest.raises(StructureError):
            parse_cfdi_xml("<Factura/>")

    def test_malformed_xml_raises(self):
        with pytest.raises(StructureError):
            parse_cfdi_xml("<Comprobante><Emisor></Comprobante>")

    def test_non_numeric_attribute_raises(self):
        xml = PLAIN_CFDI.replace('Total="139.78"', 'Total="ciento treinta"')
        with pytest.raises(StructureError):
            parse_cfdi_xml(xml)

    def test_wrapped_comprobante_found(self):
        invoice = parse_cfdi_xml(f"<Envelope>{PLAIN_CFDI}</Envelope>")
        assert invoice.supplier_name == "Abarrotes Norte"
