"""
splitbill_ingestion -- the parsing boundary between stored sessions and the engines.

Remote-store rows and local-storage exports are normalized here into
validated ``Session`` values. Amounts are parsed and rejected, never
coerced: a stored ``"abc"`` or ``NaN`` raises ``InvalidAmountError``
instead of becoming zero.

Architecture:
    adapters/  File I/O only (JSON, JSON Lines, local-storage dumps).
    domain/    Pure parsers and the normalizer.
    services/  Import orchestration with per-record error collection.
"""

from splitbill_ingestion.adapters.json_adapter import JsonSessionSource
from splitbill_ingestion.domain.normalizer import SessionNormalizer
from splitbill_ingestion.services.import_service import (
    ImportResult,
    SessionImportService,
    SessionSource,
)

__all__ = [
    "ImportResult",
    "JsonSessionSource",
    "SessionImportService",
    "SessionNormalizer",
    "SessionSource",
]
