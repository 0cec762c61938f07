"""
Import service: read -> normalize -> collect errors.

Orchestrates the JSON source adapter and the session normalizer. A record
that fails the parsing boundary is reported as a coded ``ValidationError``
and the rest of the file still imports.
Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from splitbill_ingestion.adapters.json_adapter import JsonSessionSource
from splitbill_ingestion.domain.normalizer import SessionNormalizer, unpack_local_storage_dump
from splitbill_kernel.domain.dtos import ValidationError
from splitbill_kernel.domain.session import Session
from splitbill_kernel.exceptions import SessionDataError
from splitbill_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.import_service")


class SessionSource(str, Enum):
    """Which stored shape the records are in."""

    STORE = "store"
    LOCAL_STORAGE = "local_storage"


@dataclass(frozen=True)
class ImportResult:
    """Sessions that normalized cleanly plus one error per rejected record."""

    batch_id: str
    sessions: tuple[Session, ...] = ()
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return not self.errors


class SessionImportService:
    """Import stored sessions from files or already-loaded records."""

    def __init__(
        self,
        normalizer: SessionNormalizer | None = None,
        source: JsonSessionSource | None = None,
    ) -> None:
        self._normalizer = normalizer or SessionNormalizer()
        self._source = source or JsonSessionSource()

    def import_records(
        self,
        records: Iterable[dict[str, Any]],
        source: SessionSource = SessionSource.STORE,
    ) -> ImportResult:
        """Normalize each record; failures become errors, not exceptions."""
        source = SessionSource(source)
        batch_id = str(uuid4())
        sessions: list[Session] = []
        errors: list[ValidationError] = []

        with LogContext.bind_batch(batch_id):
            logger.info("session_import_started", extra={"source": source.value})
            for index, record in enumerate(records):
                try:
                    if source is SessionSource.STORE:
                        sessions.append(self._normalizer.from_store_rows(record))
                    else:
                        sessions.append(self._normalizer.from_local_storage(record))
                except SessionDataError as exc:
                    logger.warning("session_record_rejected", extra={
                        "record_index": index,
                        "error_code": exc.code,
                        "error": str(exc),
                    })
                    errors.append(ValidationError(
                        code=exc.code,
                        message=str(exc),
                        field=getattr(exc, "field", None),
                        details={"record_index": index, "session_id": record.get("id")},
                    ))

            logger.info("session_import_completed", extra={
                "source": source.value,
                "imported_count": len(sessions),
                "rejected_count": len(errors),
            })
        return ImportResult(batch_id=batch_id, sessions=tuple(sessions), errors=tuple(errors))

    def import_file(
        self,
        source_path: Path,
        source: SessionSource = SessionSource.STORE,
        options: dict[str, Any] | None = None,
    ) -> ImportResult:
        """
        Import every session in a JSON file.

        ``options`` are passed to ``JsonSessionSource.read``. A local-storage
        dump (``format: "local_storage"``) is split into one record per session.
        """
        options = dict(options or {})
        source = SessionSource(source)
        records = list(self._source.read(Path(source_path), options))

        if options.get("format") == "local_storage":
            return self._import_dumps(records)
        return self.import_records(records, source)

    def _import_dumps(self, dumps: list[dict[str, Any]]) -> ImportResult:
        batch_id = str(uuid4())
        sessions: list[Session] = []
        errors: list[ValidationError] = []
        with LogContext.bind_batch(batch_id):
            for dump in dumps:
                records, participants, items = unpack_local_storage_dump(dump)
                for index, record in enumerate(records):
                    try:
                        sessions.append(
                            self._normalizer.from_local_storage(record, participants, items)
                        )
                    except SessionDataError as exc:
                        logger.warning("session_record_rejected", extra={
                            "record_index": index,
                            "error_code": exc.code,
                            "error": str(exc),
                        })
                        errors.append(ValidationError(
                            code=exc.code,
                            message=str(exc),
                            field=getattr(exc, "field", None),
                            details={"record_index": index, "session_id": record.get("id")},
                        ))
            logger.info("session_import_completed", extra={
                "source": SessionSource.LOCAL_STORAGE.value,
                "imported_count": len(sessions),
                "rejected_count": len(errors),
            })
        return ImportResult(batch_id=batch_id, sessions=tuple(sessions), errors=tuple(errors))
