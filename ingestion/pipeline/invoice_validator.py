"""
Invoice reconciliation checks (parsed -> validated).

Arithmetic mismatches are reported as warnings and never corrected: the
document keeps the values its issuer stamped. Only a non-positive total,
or a missing fiscal identifier when REJECT_MISSING_FISCAL_ID is set, stops
the document.
"""

from decimal import Decimal
from typing import Optional

import structlog

from ingestion.config import Settings, settings as default_settings
from ingestion.pipeline.errors import StructureError
from ingestion.schemas.invoice import CanonicalInvoice

logger = structlog.get_logger(__name__)

FISCAL_ID_MISSING_WARNING = "fiscal identifier missing; duplicate detection skipped"


def validate_invoice(invoice: CanonicalInvoice, settings: Optional[Settings] = None) -> list[str]:
    """
    Return the list of warnings for `invoice`.
    Raises StructureError for problems that make the document unusable.
    """
    settings = settings or default_settings
    tolerance = Decimal(str(settings.LINE_TOTAL_TOLERANCE))

    if invoice.total <= 0:
        raise StructureError(f"Invoice total must be positive, got {invoice.total}")

    if not invoice.has_fiscal_id and settings.REJECT_MISSING_FISCAL_ID:
        raise StructureError("Invoice carries no fiscal identifier")

    warnings: list[str] = []

    for item in invoice.line_items:
        expected = item.quantity * item.unit_price
        if abs(expected - item.line_total) > tolerance:
            warnings.append(
                f"line {item.line_index}: line_total {item.line_total} != "
                f"quantity * unit_price {expected}"
            )

    items_sum = sum((item.line_total for item in invoice.line_items), Decimal("0"))
    if abs(items_sum - invoice.subtotal) > tolerance:
        warnings.append(f"sum of line totals {items_sum} != subtotal {invoice.subtotal}")

    # Some issuers stamp Total without any tax breakdown
    if invoice.tax > 0 or invoice.subtotal != invoice.total:
        expected_total = invoice.subtotal + invoice.tax
        if abs(expected_total - invoice.total) > tolerance:
            warnings.append(
                f"subtotal + tax {expected_total} != total {invoice.total}"
            )

    if not invoice.has_fiscal_id:
        warnings.append(FISCAL_ID_MISSING_WARNING)

    if warnings:
        logger.warning(
            "invoice_validation_warnings",
            external_uid=invoice.external_uid,
            count=len(warnings),
        )
    return warnings
