"""
CFDI tax-invoice XML parser.

Accepts the comprobante with or without the cfdi namespace. Emisor and
Conceptos are mandatory (StructureError); the fiscal stamp UUID is optional
and falls back to "N/A". Numeric attributes go straight from the attribute
string to Decimal.
"""

import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterator, Optional

import structlog

from ingestion.config import settings
from ingestion.pipeline.amount_parser import parse_decimal_strict
from ingestion.pipeline.categorizer import categorize
from ingestion.pipeline.date_parser import parse_date_tolerant
from ingestion.pipeline.errors import StructureError
from ingestion.schemas.invoice import MISSING_FISCAL_ID, CanonicalInvoice, CanonicalLineItem

logger = structlog.get_logger(__name__)


# ─── Element Helpers ─────────────────────────────────────────

def _local(tag: str) -> str:
    """'{http://www.sat.gob.mx/cfd/4}Emisor' -> 'Emisor'."""
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _children(node: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in node:
        if _local(child.tag) == name:
            yield child


def _child(node: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_children(node, name), None)


def _descendant(node: ET.Element, name: str) -> Optional[ET.Element]:
    for el in node.iter():
        if _local(el.tag) == name:
            return el
    return None


def _attr(node: Optional[ET.Element], *names: str) -> Optional[str]:
    """First non-empty attribute among `names`, case-insensitive."""
    if node is None:
        return None
    lowered = {k.lower(): v for k, v in node.attrib.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value is not None and value.strip():
            return value.strip()
    return None


def _decimal(node: ET.Element, *names: str, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    raw = _attr(node, *names)
    try:
        value = parse_decimal_strict(raw)
    except InvalidOperation:
        raise StructureError(f"Non-numeric {names[0]} attribute: {raw!r}") from None
    return default if value is None else value


def _issue_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    return parse_date_tolerant(raw).parsed_date


# ─── Document Parts ──────────────────────────────────────────

def locate_comprobante(root: ET.Element) -> Optional[ET.Element]:
    if _local(root.tag) == "Comprobante":
        return root
    return _descendant(root, "Comprobante")


def extract_fiscal_uid(comprobante: ET.Element) -> str:
    """UUID from Complemento/TimbreFiscalDigital, or "N/A" when absent."""
    complemento = _child(comprobante, "Complemento")
    if complemento is None:
        return MISSING_FISCAL_ID
    timbre = _descendant(complemento, "TimbreFiscalDigital")
    return _attr(timbre, "UUID") or MISSING_FISCAL_ID


def _tax_total(comprobante: ET.Element) -> Decimal:
    impuestos = _child(comprobante, "Impuestos")
    if impuestos is not None:
        value = _decimal(impuestos, "TotalImpuestosTrasladados", default=None)
        if value is not None:
            return value
    return _decimal(comprobante, "TotalImpuestos")


def _parse_concepto(node: ET.Element, line_index: int) -> CanonicalLineItem:
    description = _attr(node, "Descripcion") or ""
    return CanonicalLineItem(
        line_index=line_index,
        sku_or_code=_attr(node, "NoIdentificacion", "ClaveProdServ"),
        description=description,
        quantity=_decimal(node, "Cantidad"),
        unit=_attr(node, "ClaveUnidad", "Unidad") or "PZA",
        unit_price=_decimal(node, "ValorUnitario"),
        line_total=_decimal(node, "Importe"),
        category=categorize(description),
    )


# ─── Main Entry Point ────────────────────────────────────────

def parse_cfdi_xml(content: str) -> CanonicalInvoice:
    """
    Parse a CFDI document into a CanonicalInvoice.

    Raises StructureError when the XML is malformed or the comprobante,
    issuer or line-items collection is missing or empty.
    """
    try:
        root = ET.fromstring(content.strip().lstrip("\ufeff"))
    except ET.ParseError as e:
        raise StructureError(f"Invalid XML: {e}") from e

    comprobante = locate_comprobante(root)
    if comprobante is None:
        raise StructureError("No Comprobante node found")

    emisor = _child(comprobante, "Emisor")
    conceptos_node = _child(comprobante, "Conceptos")

    problems = []
    if emisor is None:
        problems.append("No Emisor (issuer) node found")
    if conceptos_node is None:
        problems.append("No Conceptos (line items) node found")
    if problems:
        raise StructureError("Invalid CFDI structure: " + "; ".join(problems), problems)

    conceptos = list(_children(conceptos_node, "Concepto"))
    if not conceptos:
        raise StructureError("Conceptos node holds no Concepto line items")

    line_items = [_parse_concepto(node, i) for i, node in enumerate(conceptos)]

    invoice = CanonicalInvoice(
        external_uid=extract_fiscal_uid(comprobante),
        issue_date=_issue_date(_attr(comprobante, "Fecha")),
        folio=_attr(comprobante, "Folio", "Serie"),
        supplier_tax_id=_attr(emisor, "Rfc") or "",
        supplier_name=_attr(emisor, "Nombre") or "",
        currency=_attr(comprobante, "Moneda") or settings.DEFAULT_CURRENCY,
        subtotal=_decimal(comprobante, "SubTotal"),
        tax=_tax_total(comprobante),
        total=_decimal(comprobante, "Total"),
        payment_method=_attr(comprobante, "MetodoPago"),
        payment_conditions=_attr(comprobante, "CondicionesDePago"),
        line_items=line_items,
    )

    if not invoice.has_fiscal_id:
        logger.warning("fiscal_uid_missing", supplier=invoice.supplier_tax_id)

    logger.info(
        "cfdi_parsed",
        external_uid=invoice.external_uid,
        supplier=invoice.supplier_name,
        items=len(line_items),
    )
    return invoice
