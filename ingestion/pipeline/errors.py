"""
Document-level exceptions.

Row-level problems are not exceptions: they are collected as RowError
records (schemas/records.py) and never abort a batch. Each exception here
ends the current document only.
"""

import traceback
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

logger = structlog.get_logger(__name__)


class IngestionError(Exception):
    """Base class for errors that terminate a single document."""

    error_code = "ERR_INGESTION"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        super().__init__(message)


class FormatError(IngestionError):
    """Document cannot be read: empty, oversized, undecodable or malformed CSV."""

    error_code = "ERR_FORMAT"


class StructureError(IngestionError):
    """Invoice document is missing a mandatory node or holds unusable values."""

    error_code = "ERR_STRUCTURE"

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        self.problems = problems or [message]
        super().__init__(message)


class DuplicateError(IngestionError):
    """Fiscal identifier already ingested for this tenant."""

    error_code = "ERR_DUPLICATE"

    def __init__(self, tenant_id: str, external_uid: str):
        self.tenant_id = tenant_id
        self.external_uid = external_uid
        super().__init__(f"Invoice {external_uid} already ingested for tenant {tenant_id}")


class CollaboratorError(IngestionError):
    """A storage collaborator failed or reported failure."""

    error_code = "ERR_COLLABORATOR"

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        super().__init__(f"[{collaborator}] {message}")


@contextmanager
def collaborator_call(name: str) -> Iterator[None]:
    """Turn an unexpected collaborator exception into a CollaboratorError."""
    try:
        yield
    except IngestionError:
        raise
    except Exception as e:
        logger.error(
            "collaborator_failed",
            collaborator=name,
            error=f"{type(e).__name__}: {e}",
            traceback=traceback.format_exc(),
        )
        raise CollaboratorError(name, f"{type(e).__name__}: {e}") from e
