"""Ingestion services: orchestrate adapters and the normalizer."""

from splitbill_ingestion.services.import_service import (
    ImportResult,
    SessionImportService,
    SessionSource,
)

__all__ = ["ImportResult", "SessionImportService", "SessionSource"]
