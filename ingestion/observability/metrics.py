"""
Prometheus metrics for the ingestion core.
"""

from prometheus_client import Counter, Histogram


# ── Documents ────────────────────────────────────────────────
documents_ingested_total = Counter(
    "documents_ingested_total",
    "Total documents that reached a terminal ingestion state",
    ["kind", "status"],
)

documents_rejected_total = Counter(
    "documents_rejected_total",
    "Total documents rejected, by terminal stage",
    ["stage"],
)

document_processing_duration_seconds = Histogram(
    "document_processing_duration_seconds",
    "Time to ingest a document end-to-end",
    ["kind"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30],
)

# ── Tabular Rows ─────────────────────────────────────────────
rows_parsed_total = Counter(
    "rows_parsed_total",
    "Total tabular rows turned into records",
    ["kind"],
)

rows_rejected_total = Counter(
    "rows_rejected_total",
    "Total tabular rows rejected with a row error",
    ["kind"],
)

# ── Entity Resolution ────────────────────────────────────────
line_items_resolved_total = Counter(
    "line_items_resolved_total",
    "Invoice line items resolved against the catalog",
    ["strategy"],
)

line_items_unresolved_total = Counter(
    "line_items_unresolved_total",
    "Invoice line items left for manual mapping",
)

learned_mappings_created_total = Counter(
    "learned_mappings_created_total",
    "Learned mappings written to the mapping store",
)
