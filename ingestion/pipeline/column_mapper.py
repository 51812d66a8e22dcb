"""
Column auto-mapping: canonical field assignment for tabular uploads.

Each canonical field owns an alias list (Spanish and English). Fields are
matched independently, in declaration order:
  (a) normalized header equals an alias, or
  (b) normalized header contains an alias / an alias contains the header.
The first header in input order satisfying (a) or (b) wins, and a header
assigned to one field is never reassigned to another.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ingestion.models.enums import DocumentKind, MappingConfidence
from ingestion.pipeline.header_normalizer import normalize_header
from ingestion.schemas.records import ColumnMapping

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    aliases: tuple[str, ...]
    required: bool = False
    # Conventional header names tried when the mapping has no entry
    default_headers: tuple[str, ...] = ()


_DATE_ALIASES = (
    "fecha", "date", "dia", "day", "fecha_venta", "fecha venta",
    "fecha de venta", "timestamp", "periodo",
)

_LOCATION_ALIASES = (
    "tienda", "store", "sucursal", "branch", "plaza", "local", "punto_venta",
    "punto de venta", "pdv", "location", "ubicacion", "site",
)


# ─── Field tables per tabular kind ───────────────────────────

SALES_FIELDS = (
    FieldSpec("date", _DATE_ALIASES, required=True, default_headers=("fecha", "date")),
    FieldSpec("location", _LOCATION_ALIASES, default_headers=("tienda", "store_code", "store")),
    FieldSpec(
        "amount",
        (
            "monto", "total", "amount", "venta", "ventas", "sales", "monto_total",
            "monto total", "total_venta", "total venta", "importe", "ingreso", "revenue",
        ),
        required=True,
        default_headers=("monto_total", "monto", "amount", "gross_sales"),
    ),
    FieldSpec(
        "transaction_count",
        (
            "transacciones", "transactions", "tickets", "ordenes", "orders",
            "num_transacciones", "cantidad", "qty",
        ),
        default_headers=("transacciones", "transactions"),
    ),
)

EXPENSE_FIELDS = (
    FieldSpec("date", _DATE_ALIASES, required=True, default_headers=("fecha", "date")),
    FieldSpec("location", _LOCATION_ALIASES, default_headers=("tienda", "store_code", "store")),
    FieldSpec(
        "amount",
        ("monto", "amount", "importe", "total", "gasto", "costo", "cost"),
        required=True,
        default_headers=("monto", "amount"),
    ),
    FieldSpec(
        "category",
        ("categoria", "category", "rubro", "tipo", "type", "concepto"),
        default_headers=("categoria", "category"),
    ),
    FieldSpec(
        "note",
        ("nota", "notas", "note", "notes", "comentario", "descripcion", "description", "memo"),
        default_headers=("nota", "note"),
    ),
)

INVENTORY_FIELDS = (
    FieldSpec("date", _DATE_ALIASES, required=True, default_headers=("fecha", "date")),
    FieldSpec("location", _LOCATION_ALIASES, default_headers=("tienda", "store_code", "store")),
    FieldSpec(
        "opening_value",
        ("opening_value", "inventario_inicial", "opening", "apertura", "inicial", "initial"),
        required=True,
        default_headers=("opening_value", "inventario_inicial"),
    ),
    FieldSpec(
        "closing_value",
        ("closing_value", "inventario_final", "closing", "cierre", "final"),
        required=True,
        default_headers=("closing_value", "inventario_final"),
    ),
    FieldSpec(
        "waste_value",
        ("waste_value", "merma", "mermas", "waste", "desperdicio"),
        default_headers=("waste_value", "merma"),
    ),
)

FIELD_TABLES: dict[DocumentKind, tuple[FieldSpec, ...]] = {
    DocumentKind.CSV_SALES: SALES_FIELDS,
    DocumentKind.CSV_EXPENSES: EXPENSE_FIELDS,
    DocumentKind.CSV_INVENTORY: INVENTORY_FIELDS,
}

# Column order assumed for files without a header row
POSITIONAL_LAYOUTS: dict[DocumentKind, tuple[str, ...]] = {
    DocumentKind.CSV_SALES: ("date", "location", "amount", "transaction_count"),
    DocumentKind.CSV_EXPENSES: ("date", "location", "category", "amount", "note"),
    DocumentKind.CSV_INVENTORY: ("date", "location", "opening_value", "closing_value", "waste_value"),
}


def fields_for(kind: DocumentKind) -> tuple[FieldSpec, ...]:
    try:
        return FIELD_TABLES[kind]
    except KeyError:
        raise ValueError(f"{kind} is not a tabular document kind") from None


# ─── Matching ────────────────────────────────────────────────

def _normalized_aliases(spec: FieldSpec) -> list[str]:
    return [normalize_header(a) for a in spec.aliases]


def _header_matches(normalized: str, aliases: list[str]) -> bool:
    if normalized in aliases:
        return True
    return any(alias in normalized or normalized in alias for alias in aliases)


def _confidence(matched: int, has_required: bool) -> MappingConfidence:
    if matched >= 3 and has_required:
        return MappingConfidence.HIGH
    if matched >= 2 and has_required:
        return MappingConfidence.MEDIUM
    return MappingConfidence.LOW


def map_columns(
    headers: list[str],
    kind: DocumentKind = DocumentKind.CSV_SALES,
    override: Optional[dict[str, str]] = None,
) -> ColumnMapping:
    """
    Map raw headers to canonical fields for a tabular kind.

    A caller override bypasses detection entirely and is always HIGH.
    """
    specs = fields_for(kind)

    if override is not None:
        known = {s.name for s in specs}
        mapping = {f: h for f, h in override.items() if f in known and h}
        ignored = sorted(set(override) - known)
        if ignored:
            logger.warning("override_fields_ignored", kind=kind.value, fields=ignored)
        return ColumnMapping(
            mapping=mapping,
            confidence=MappingConfidence.HIGH,
            matched_count=len(mapping),
            unmapped_headers=[h for h in headers if h not in mapping.values()],
            is_override=True,
        )

    candidates = [(h, normalize_header(h)) for h in headers if h and normalize_header(h)]
    mapping: dict[str, str] = {}
    assigned: set[int] = set()

    for spec in specs:
        aliases = _normalized_aliases(spec)
        for idx, (original, normalized) in enumerate(candidates):
            if idx in assigned:
                continue
            if _header_matches(normalized, aliases):
                mapping[spec.name] = original
                assigned.add(idx)
                break

    has_required = all(s.name in mapping for s in specs if s.required)
    confidence = _confidence(len(mapping), has_required)

    logger.debug(
        "columns_mapped",
        kind=kind.value,
        mapping=mapping,
        confidence=confidence.value,
    )

    return ColumnMapping(
        mapping=mapping,
        confidence=confidence,
        matched_count=len(mapping),
        unmapped_headers=[h for h in headers if h not in mapping.values()],
    )


def positional_mapping(column_count: int, kind: DocumentKind) -> tuple[list[str], ColumnMapping]:
    """
    Synthesize headers ('0', '1', ...) and a layout-based mapping for
    files without a header row.
    """
    headers = [str(i) for i in range(column_count)]
    layout = POSITIONAL_LAYOUTS[kind]
    mapping = {name: str(i) for i, name in enumerate(layout) if i < column_count}
    has_required = all(s.name in mapping for s in fields_for(kind) if s.required)
    return headers, ColumnMapping(
        mapping=mapping,
        confidence=MappingConfidence.MEDIUM if has_required else MappingConfidence.LOW,
        matched_count=len(mapping),
        unmapped_headers=[h for h in headers if h not in mapping.values()],
    )
