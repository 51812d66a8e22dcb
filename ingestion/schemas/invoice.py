"""
Canonical invoice schemas.
Both the XML CFDI parser and the JSON export parser MUST produce these.
All money and quantity values are Decimal, never float.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


MISSING_FISCAL_ID = "N/A"


class CanonicalLineItem(BaseModel):
    """
    One invoice concept.

    Invariants:
    - category is assigned by the categorizer before the invoice leaves the parser
    - line_total should equal quantity * unit_price within LINE_TOTAL_TOLERANCE;
      violations are reported by the validator, never corrected here
    - sku_or_code is None when the source carries no code
    """
    line_index: int
    sku_or_code: Optional[str] = None
    description: str
    quantity: Decimal
    unit: str = "PZA"
    unit_price: Decimal
    line_total: Decimal
    category: str = "uncategorized"


class CanonicalInvoice(BaseModel):
    external_uid: str = MISSING_FISCAL_ID
    issue_date: Optional[date] = None
    folio: Optional[str] = None
    supplier_tax_id: str
    supplier_name: str
    currency: str = "MXN"
    subtotal: Decimal
    tax: Decimal = Decimal("0")
    total: Decimal
    payment_method: Optional[str] = None
    payment_conditions: Optional[str] = None
    line_items: list[CanonicalLineItem]

    @property
    def has_fiscal_id(self) -> bool:
        return bool(self.external_uid) and self.external_uid != MISSING_FISCAL_ID
