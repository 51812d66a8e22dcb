"""
Tenant batch runner.

Each tenant's batch runs on its own worker thread; documents within one
tenant stay strictly sequential. Tenants share no mutable state beyond the
tenant-scoped collaborators.

Run with: python -m ingestion.worker.runner TENANT_ID FILE [FILE ...]
"""

import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

import structlog

from ingestion.config import Settings, settings as default_settings
from ingestion.models.database import build_engine, build_session_factory, create_schema
from ingestion.observability.logging import setup_logging
from ingestion.pipeline.orchestrator import IngestionPipeline
from ingestion.schemas.results import IngestionResult, SubmittedDocument
from ingestion.storage.sql_store import (
    SqlCatalogReader,
    SqlDuplicateIndex,
    SqlMappingStore,
    SqlRecordSink,
)

logger = structlog.get_logger(__name__)


def build_sql_pipeline(settings: Optional[Settings] = None) -> IngestionPipeline:
    """Wire an IngestionPipeline to the database at DATABASE_URL."""
    settings = settings or default_settings
    engine = build_engine(settings.DATABASE_URL, settings.DB_ECHO)
    create_schema(engine)
    factory = build_session_factory(engine)
    return IngestionPipeline(
        catalog=SqlCatalogReader(factory),
        mappings=SqlMappingStore(factory),
        duplicates=SqlDuplicateIndex(factory),
        sink=SqlRecordSink(factory),
        settings=settings,
    )


def run_tenant_batches(
    pipeline: IngestionPipeline,
    batches: dict[str, list[SubmittedDocument]],
    max_workers: Optional[int] = None,
) -> dict[str, list[IngestionResult]]:
    """
    Process {tenant_id: documents} with tenants in parallel.
    Returns {tenant_id: results} with results in submission order.
    """
    max_workers = max_workers or pipeline.settings.MAX_PARALLEL_TENANTS
    logger.info("tenant_batches_started", tenants=len(batches), max_workers=max_workers)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tenant") as pool:
        futures = {
            tenant_id: pool.submit(pipeline.process_batch, tenant_id, documents)
            for tenant_id, documents in batches.items()
        }
        results = {tenant_id: future.result() for tenant_id, future in futures.items()}

    logger.info(
        "tenant_batches_completed",
        tenants=len(results),
        documents=sum(len(r) for r in results.values()),
    )
    return results


def load_documents(paths: list[str]) -> list[SubmittedDocument]:
    """
    One SubmittedDocument per file; the file name doubles as document id.
    Content stays as bytes and is decoded by the pipeline, so an undecodable
    file is rejected on its own.
    """
    documents = []
    for raw in paths:
        path = Path(raw)
        documents.append(SubmittedDocument(
            document_id=path.name,
            filename=path.name,
            content=path.read_bytes(),
        ))
    return documents


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    """Ingest local files for one tenant against DATABASE_URL."""
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2:
        print("usage: python -m ingestion.worker.runner TENANT_ID FILE [FILE ...]", file=sys.stderr)
        return 2

    settings = settings or default_settings
    setup_logging(settings, stream=sys.stderr)
    tenant_id, paths = argv[0], argv[1:]
    pipeline = build_sql_pipeline(settings)
    results = run_tenant_batches(pipeline, {tenant_id: load_documents(paths)}, max_workers=1)

    for result in results[tenant_id]:
        print(result.model_dump_json())
    return 0 if all(r.is_persisted for r in results[tenant_id]) else 1


if __name__ == "__main__":
    sys.exit(main())
