"""
Flat JSON invoice export parser.

Used where the XML document is unavailable and the invoice fields arrive
pre-extracted. Produces the same CanonicalInvoice shape as parse_cfdi_xml.
JSON numbers are decoded straight to Decimal.
"""

import json
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from ingestion.config import settings
from ingestion.pipeline.categorizer import categorize
from ingestion.pipeline.date_parser import parse_date_tolerant
from ingestion.pipeline.errors import StructureError
from ingestion.schemas.invoice import MISSING_FISCAL_ID, CanonicalInvoice, CanonicalLineItem

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


# ─── Export Shape ────────────────────────────────────────────

class _ExportModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ExportTax(_ExportModel):
    rate: Optional[Decimal] = None


class ExportProduct(_ExportModel):
    product_key: Optional[str] = None
    description: str = ""
    unit_key: Optional[str] = None
    price: Decimal = Decimal("0")
    taxes: list[ExportTax] = []


class ExportItem(_ExportModel):
    quantity: Decimal = Decimal("0")
    product: ExportProduct


class ExportIssuer(_ExportModel):
    tax_id: Optional[str] = None
    legal_name: Optional[str] = None


class ExportStamp(_ExportModel):
    date: Optional[str] = None


class InvoiceExport(_ExportModel):
    uuid: Optional[str] = None
    folio: Optional[str] = None
    currency: Optional[str] = None
    total: Optional[Decimal] = None
    issuer_info: Optional[ExportIssuer] = None
    stamp: Optional[ExportStamp] = None
    items: list[ExportItem] = []


def _structure_problems(export: InvoiceExport) -> list[str]:
    problems = []
    issuer = export.issuer_info or ExportIssuer()
    if not (issuer.tax_id or "").strip():
        problems.append("Missing issuer tax ID")
    if not (issuer.legal_name or "").strip():
        problems.append("Missing issuer name")
    if export.total is None or export.total <= 0:
        problems.append("Invalid total amount")
    if not export.items:
        problems.append("No items found in invoice")
    return problems


def _tax_rate(export: InvoiceExport) -> Decimal:
    first = export.items[0].product.taxes
    if first and first[0].rate is not None:
        return first[0].rate
    return Decimal(str(settings.DEFAULT_TAX_RATE))


def _line_item(index: int, item: ExportItem) -> CanonicalLineItem:
    product = item.product
    return CanonicalLineItem(
        line_index=index,
        sku_or_code=(product.product_key or "").strip() or None,
        description=product.description,
        quantity=item.quantity,
        unit=product.unit_key or "PZA",
        unit_price=product.price,
        line_total=item.quantity * product.price,
        category=categorize(product.description),
    )


# ─── Main Entry Point ────────────────────────────────────────

def parse_invoice_json(content: str) -> CanonicalInvoice:
    """
    Parse a JSON invoice export. Raises StructureError listing every
    structural problem found.
    """
    try:
        payload = json.loads(content, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise StructureError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise StructureError("Invoice export must be a JSON object")

    try:
        export = InvoiceExport.model_validate(payload)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise StructureError("Invalid invoice export: " + "; ".join(problems), problems) from e

    problems = _structure_problems(export)
    if problems:
        raise StructureError("Invalid invoice export: " + "; ".join(problems), problems)

    try:
        line_items = [_line_item(i, item) for i, item in enumerate(export.items)]
        subtotal = sum((li.line_total for li in line_items), Decimal("0"))
        tax = (subtotal * _tax_rate(export)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # quantize raises when the result needs more digits than the context precision
        raise StructureError("Amounts out of range") from e

    stamp_date = export.stamp.date if export.stamp else None

    invoice = CanonicalInvoice(
        external_uid=(export.uuid or "").strip() or MISSING_FISCAL_ID,
        issue_date=parse_date_tolerant(stamp_date).parsed_date if stamp_date else None,
        folio=export.folio,
        supplier_tax_id=export.issuer_info.tax_id.strip(),
        supplier_name=export.issuer_info.legal_name.strip(),
        currency=export.currency or settings.DEFAULT_CURRENCY,
        subtotal=subtotal,
        tax=tax,
        total=export.total,
        line_items=line_items,
    )

    logger.info(
        "invoice_json_parsed",
        external_uid=invoice.external_uid,
        supplier=invoice.supplier_name,
        items=len(line_items),
    )
    return invoice
