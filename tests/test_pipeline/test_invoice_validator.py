"""
Tests for invoice reconciliation warnings.
"""

from decimal import Decimal

import pytest

from ingestion.config import Settings
from ingestion.pipeline.errors import StructureError
from ingestion.pipeline.invoice_validator import FISCAL_ID_MISSING_WARNING, validate_invoice
from ingestion.schemas.invoice import CanonicalInvoice, CanonicalLineItem


def _invoice(**overrides):
    fields = {
        "external_uid": "UUID-1",
        "supplier_tax_id": "LAC010101AB1",
        "supplier_name": "Lacteos del Centro",
        "subtotal": Decimal("200.00"),
        "tax": Decimal("32.00"),
        "total": Decimal("232.00"),
        "line_items": [
            CanonicalLineItem(
                line_index=0,
                sku_or_code="QM-500",
                description="Queso",
                quantity=Decimal("2"),
                unit_price=Decimal("100.00"),
                line_total=Decimal("200.00"),
            ),
        ],
    }
    fields.update(overrides)
    return CanonicalInvoice(**fields)


class TestValidateInvoice:

    def test_consistent_invoice_has_no_warnings(self):
        assert validate_invoice(_invoice()) == []

    def test_rounding_within_tolerance(self):
        assert validate_invoice(_invoice(total=Decimal("232.01"))) == []

    def test_line_total_mismatch_reported_not_corrected(self):
        item = CanonicalLineItem(
            line_index=0,
            description="Queso",
            quantity=Decimal("2"),
            unit_price=Decimal("100.00"),
            line_total=Decimal("180.00"),
        )
        invoice = _invoice(line_items=[item], subtotal=Decimal("180.00"), total=Decimal("212.00"))
        warnings = validate_invoice(invoice)
        assert len(warnings) == 1
        assert "line 0" in warnings[0]
        assert invoice.line_items[0].line_total == Decimal("180.00")

    def test_subtotal_mismatch(self):
        warnings = validate_invoice(_invoice(subtotal=Decimal("250.00"), total=Decimal("282.00")))
        assert any("subtotal" in w for w in warnings)

    def test_total_mismatch(self):
        warnings = validate_invoice(_invoice(total=Decimal("300.00")))
        assert any("!= total" in w for w in warnings)

    def test_total_without_tax_breakdown_not_flagged(self):
        warnings = validate_invoice(_invoice(tax=Decimal("0"), total=Decimal("200.00")))
        assert warnings == []

    def test_non_positive_total_rejected(self):
        with pytest.raises(StructureError):
            validate_invoice(_invoice(total=Decimal("0")))

    def test_missing_fiscal_id_warns_by_default(self):
        warnings = validate_invoice(_invoice(external_uid="N/A"))
        assert warnings == [FISCAL_ID_MISSING_WARNING]

    def test_missing_fiscal_id_rejected_when_configured(self):
        strict = Settings(REJECT_MISSING_FISCAL_ID=True)
        with pytest.raises(StructureError):
            validate_invoice(_invoice(external_uid="N/A"), strict)
