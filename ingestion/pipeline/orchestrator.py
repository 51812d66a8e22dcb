"""
Ingestion orchestrator: one document at a time through the per-kind pipeline.

Stages: RECEIVED → PARSED → VALIDATED → DEDUP_CHECKED → RESOLVED → PERSISTED

Terminal failures: REJECTED_FORMAT, REJECTED_STRUCTURE, REJECTED_DUPLICATE,
NEEDS_MAPPING, FAILED_STORAGE. Tabular kinds pass straight through
VALIDATED / DEDUP_CHECKED / RESOLVED. For invoices the duplicate index is
consulted before any line item is resolved, and the fiscal identifier is
recorded only after the invoice is persisted.
"""

import time
import traceback
from dataclasses import dataclass, field
from typing import Optional

import structlog

from ingestion.config import Settings, settings as default_settings
from ingestion.models.enums import (
    DocumentKind,
    IngestionStatus,
    MappingConfidence,
    PipelineStage,
)
from ingestion.observability import metrics
from ingestion.pipeline.column_mapper import map_columns, positional_mapping
from ingestion.pipeline.doc_classifier import check_document_size, classify_document
from ingestion.pipeline.entity_resolver import EntityResolver
from ingestion.pipeline.errors import (
    CollaboratorError,
    DuplicateError,
    FormatError,
    StructureError,
    collaborator_call,
)
from ingestion.pipeline.format_sniffer import decode_content, read_rows, sniff_format
from ingestion.pipeline.invoice_parser import parse_cfdi_xml
from ingestion.pipeline.invoice_validator import validate_invoice
from ingestion.pipeline.json_invoice import parse_invoice_json
from ingestion.pipeline.record_parser import parse_rows
from ingestion.schemas.catalog import ResolutionAmbiguous, ResolutionResult
from ingestion.schemas.records import RowError
from ingestion.schemas.results import IngestionResult, SubmittedDocument
from ingestion.storage.contracts import CatalogReader, DuplicateIndex, MappingStore, RecordSink

logger = structlog.get_logger(__name__)


@dataclass
class _DocumentRun:
    """Mutable working state for one document; frozen into an IngestionResult."""
    document_id: str
    tenant_id: str
    kind: Optional[DocumentKind] = None
    stage: PipelineStage = PipelineStage.RECEIVED
    records_processed: int = 0
    resolved: list[ResolutionResult] = field(default_factory=list)
    unresolved: list[ResolutionAmbiguous] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    mapping_confidence: Optional[MappingConfidence] = None
    external_uid: Optional[str] = None

    def advance(self, stage: PipelineStage) -> None:
        logger.debug("stage_entered", stage=stage.value)
        self.stage = stage

    def fail(self, stage: PipelineStage, messages: list[str], field_name: Optional[str] = None) -> None:
        self.stage = stage
        self.errors.extend(RowError(field=field_name, message=m) for m in messages)

    @property
    def status(self) -> IngestionStatus:
        if self.stage != PipelineStage.PERSISTED:
            return IngestionStatus.REJECTED
        if self.errors or self.unresolved or self.warnings:
            return IngestionStatus.PARTIAL
        return IngestionStatus.SUCCESS


class IngestionPipeline:
    """
    Processes the documents of one tenant batch strictly in order, so that
    learned mappings and duplicate-index writes from document N are visible
    to document N+1. One IngestionResult per submitted document, always.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        mappings: MappingStore,
        duplicates: DuplicateIndex,
        sink: RecordSink,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.duplicates = duplicates
        self.sink = sink
        self.resolver = EntityResolver(catalog, mappings, settings=self.settings)

    def process_batch(self, tenant_id: str, documents: list[SubmittedDocument]) -> list[IngestionResult]:
        logger.info("batch_started", tenant_id=tenant_id, documents=len(documents))
        results = [self.process_document(tenant_id, doc) for doc in documents]
        logger.info(
            "batch_completed",
            tenant_id=tenant_id,
            persisted=sum(1 for r in results if r.is_persisted),
            rejected=sum(1 for r in results if r.status == IngestionStatus.REJECTED),
        )
        return results

    def process_document(self, tenant_id: str, doc: SubmittedDocument) -> IngestionResult:
        started_at = time.time()
        run = _DocumentRun(document_id=doc.document_id, tenant_id=tenant_id)

        with structlog.contextvars.bound_contextvars(tenant_id=tenant_id, document_id=doc.document_id):
            logger.info("document_received", filename=doc.filename)
            try:
                content = decode_content(doc.content)
                check_document_size(content, self.settings.MAX_DOCUMENT_SIZE_MB)
                run.kind = classify_document(content, doc.filename, doc.kind).kind

                if run.kind.is_tabular:
                    self._ingest_tabular(run, doc, content)
                else:
                    self._ingest_invoice(run, content)

            except FormatError as e:
                run.fail(PipelineStage.REJECTED_FORMAT, [e.message])
                logger.warning("document_rejected_format", error=e.message)
            except StructureError as e:
                run.fail(PipelineStage.REJECTED_STRUCTURE, e.problems)
                logger.warning("document_rejected_structure", problems=e.problems)
            except DuplicateError as e:
                run.fail(PipelineStage.REJECTED_DUPLICATE, [e.message], field_name="external_uid")
                logger.info("document_rejected_duplicate", external_uid=e.external_uid)
            except CollaboratorError as e:
                run.fail(PipelineStage.FAILED_STORAGE, [e.message])
                logger.error("document_failed_storage", collaborator=e.collaborator, error=e.message)
            except Exception as e:
                # Anything else ends this document only; the batch carries on
                error_msg = f"{type(e).__name__}: {e}"
                run.fail(PipelineStage.REJECTED_STRUCTURE, [f"Unexpected error: {error_msg}"])
                logger.error("document_failed", error=error_msg, traceback=traceback.format_exc())

            duration = time.time() - started_at
            result = IngestionResult(
                document_id=run.document_id,
                tenant_id=run.tenant_id,
                kind=run.kind,
                status=run.status,
                stage=run.stage,
                records_processed=run.records_processed,
                resolved_line_items=run.resolved,
                unmatched_line_items=run.unresolved,
                errors=run.errors,
                warnings=run.warnings,
                mapping_confidence=run.mapping_confidence,
                external_uid=run.external_uid,
                duration_ms=int(duration * 1000),
            )
            self._observe(result, duration)

            logger.info(
                "document_completed",
                kind=result.kind.value if result.kind else None,
                status=result.status.value,
                stage=result.stage.value,
                records=result.records_processed,
                errors=len(result.errors),
                unmatched=len(result.unmatched_line_items),
                duration_ms=result.duration_ms,
            )
            return result

    # ─── Tabular ──────────────────────────────────────────────

    def _ingest_tabular(self, run: _DocumentRun, doc: SubmittedDocument, content: str) -> None:
        sniff = sniff_format(content)
        rows = read_rows(content, sniff.delimiter)
        if not rows:
            raise FormatError("Tabular document holds no non-empty rows")

        if sniff.has_header:
            headers, data = rows[0], rows[1:]
            first_row_number = 2
            mapping = map_columns(headers, run.kind, doc.column_override)
        else:
            column_count = max(len(r) for r in rows)
            data = rows
            first_row_number = 1
            headers, mapping = positional_mapping(column_count, run.kind)
            if doc.column_override is not None:
                mapping = map_columns(headers, run.kind, doc.column_override)
        run.mapping_confidence = mapping.confidence

        required = MappingConfidence(self.settings.MIN_AUTO_CONFIDENCE.lower())
        if not mapping.is_override and mapping.confidence.rank < required.rank:
            run.fail(
                PipelineStage.NEEDS_MAPPING,
                [
                    f"Column mapping confidence {mapping.confidence.value} is below "
                    f"{required.value}; detected {mapping.mapping}. Resubmit with a column override."
                ],
            )
            logger.warning("mapping_confirmation_required", mapping=mapping.mapping)
            return

        if not data:
            raise FormatError("Tabular document has no data rows")

        records, row_errors = parse_rows(
            headers,
            data,
            mapping,
            run.kind,
            first_row_number=first_row_number,
            default_location=self.settings.DEFAULT_LOCATION,
            dayfirst=self.settings.DATE_DAYFIRST,
        )
        run.errors.extend(row_errors)
        run.advance(PipelineStage.PARSED)

        if self.settings.PROMETHEUS_ENABLED:
            metrics.rows_parsed_total.labels(kind=run.kind.value).inc(len(records))
            metrics.rows_rejected_total.labels(kind=run.kind.value).inc(len(row_errors))

        if not records:
            # Every row failed: nothing is written
            run.stage = PipelineStage.REJECTED_STRUCTURE
            logger.warning("no_valid_rows", rows=len(data))
            return

        # No document-level identifier: validation, dedup and resolution pass through
        run.advance(PipelineStage.VALIDATED)
        run.advance(PipelineStage.DEDUP_CHECKED)
        run.advance(PipelineStage.RESOLVED)

        with collaborator_call("record_sink"):
            written = self.sink.write_records(run.tenant_id, run.document_id, run.kind, records)
        if not written:
            raise CollaboratorError("record_sink", "write_records reported failure")

        run.records_processed = len(records)
        run.advance(PipelineStage.PERSISTED)

    # ─── Invoices ─────────────────────────────────────────────

    def _ingest_invoice(self, run: _DocumentRun, content: str) -> None:
        if run.kind == DocumentKind.XML_CFDI:
            invoice = parse_cfdi_xml(content)
        else:
            invoice = parse_invoice_json(content)
        run.external_uid = invoice.external_uid
        run.advance(PipelineStage.PARSED)

        run.warnings.extend(validate_invoice(invoice, self.settings))
        run.advance(PipelineStage.VALIDATED)

        # Duplicate check happens before any resolution work
        if invoice.has_fiscal_id:
            with collaborator_call("duplicate_index"):
                seen = self.duplicates.exists(run.tenant_id, invoice.external_uid)
            if seen:
                raise DuplicateError(run.tenant_id, invoice.external_uid)
        run.advance(PipelineStage.DEDUP_CHECKED)

        run.resolved, run.unresolved = self.resolver.resolve_line_items(run.tenant_id, invoice.line_items)
        run.advance(PipelineStage.RESOLVED)

        with collaborator_call("record_sink"):
            written = self.sink.write_invoice(run.tenant_id, run.document_id, invoice, run.resolved)
        if not written:
            raise CollaboratorError("record_sink", "write_invoice reported failure")

        run.records_processed = len(invoice.line_items)
        run.advance(PipelineStage.PERSISTED)

        if invoice.has_fiscal_id:
            try:
                with collaborator_call("duplicate_index"):
                    self.duplicates.record(run.tenant_id, invoice.external_uid)
            except CollaboratorError as e:
                # Already persisted; only future duplicate detection is affected
                run.warnings.append(f"duplicate index not updated: {e.message}")

    # ─── Metrics ──────────────────────────────────────────────

    def _observe(self, result: IngestionResult, duration: float) -> None:
        if not self.settings.PROMETHEUS_ENABLED:
            return
        kind = result.kind.value if result.kind else "unknown"
        metrics.documents_ingested_total.labels(kind=kind, status=result.status.value).inc()
        metrics.document_processing_duration_seconds.labels(kind=kind).observe(duration)
        if result.status == IngestionStatus.REJECTED:
            metrics.documents_rejected_total.labels(stage=result.stage.value).inc()
