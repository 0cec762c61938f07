"""
Session normalizer -- stored records to domain ``Session`` values.

Two stored shapes reach the calculation core:

* remote store rows: snake_case columns, DECIMAL columns as numeric
  strings, ISO timestamps, item sharers as ``bill_item_participants``
  link rows (or a plain ``shared_by`` list);
* local-storage exports: camelCase objects, amounts as JSON numbers,
  either nested under the session or kept in separate
  ``billsplit_participants`` / ``billsplit_items`` lists.

Both normalize to the same ``Session`` so the engines never know where a
session came from.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from splitbill_ingestion.domain.validators import (
    optional_text,
    parse_flag,
    parse_id_list,
    parse_money,
    parse_optional_money,
    parse_timestamp,
    require_text,
)
from splitbill_kernel.domain.session import BillItem, Participant, Session
from splitbill_kernel.domain.values import DEFAULT_CURRENCY
from splitbill_kernel.logging_config import get_logger

logger = get_logger("ingestion.normalizer")

SESSIONS_KEY = "billsplit_sessions"
PARTICIPANTS_KEY = "billsplit_participants"
ITEMS_KEY = "billsplit_items"


class SessionNormalizer:
    """Build validated ``Session`` values from stored records."""

    def __init__(self, currency: str = DEFAULT_CURRENCY) -> None:
        self.currency = currency

    # -- remote store (snake_case) -------------------------------------------

    def participant_from_row(self, row: dict[str, Any], session_id: str | None = None) -> Participant:
        return Participant(
            participant_id=require_text(row, "id", "participant"),
            name=require_text(row, "name", "participant"),
            session_id=optional_text(row, "session_id") or session_id or "",
            user_id=optional_text(row, "user_id"),
            total_owed=parse_optional_money(row.get("total_owed"), "participant.total_owed", self.currency),
            total_paid=parse_optional_money(row.get("total_paid"), "participant.total_paid", self.currency),
            net_amount=parse_optional_money(row.get("net_amount"), "participant.net_amount", self.currency),
        )

    def item_from_row(self, row: dict[str, Any], session_id: str | None = None) -> BillItem:
        links = row.get("bill_item_participants")
        shared_by = parse_id_list(
            links if links is not None else row.get("shared_by"),
            "bill_item.shared_by",
        )
        return BillItem(
            item_id=require_text(row, "id", "bill_item"),
            session_id=optional_text(row, "session_id") or session_id or "",
            name=require_text(row, "name", "bill_item"),
            total_amount=parse_money(
                row.get("total_amount"), "bill_item.total_amount", self.currency, require_positive=True
            ),
            paid_by=require_text(row, "paid_by", "bill_item"),
            shared_by=shared_by,
            has_sst=parse_flag(row.get("has_sst"), "bill_item.has_sst"),
            created_at=parse_timestamp(row.get("created_at"), "bill_item.created_at"),
        )

    def from_store_rows(
        self,
        session_row: dict[str, Any],
        participant_rows: Iterable[dict[str, Any]] | None = None,
        item_rows: Iterable[dict[str, Any]] | None = None,
    ) -> Session:
        """
        Session from store rows.

        Participants and items default to the ``participants`` and
        ``bill_items`` lists nested in ``session_row``.
        """
        session_id = require_text(session_row, "id", "session")
        if participant_rows is None:
            participant_rows = session_row.get("participants") or ()
        if item_rows is None:
            item_rows = session_row.get("bill_items") or ()

        session = Session(
            session_id=session_id,
            name=require_text(session_row, "name", "session"),
            participants=tuple(self.participant_from_row(r, session_id) for r in participant_rows),
            items=tuple(self.item_from_row(r, session_id) for r in item_rows),
            organizer_id=optional_text(session_row, "organizer_id"),
            created_at=parse_timestamp(session_row.get("created_at"), "session.created_at"),
            updated_at=parse_timestamp(session_row.get("updated_at"), "session.updated_at"),
            is_active=parse_flag(session_row.get("is_active"), "session.is_active", default=True),
        )
        self._log_normalized(session, "store")
        return session

    # -- local storage (camelCase) -------------------------------------------

    def participant_from_local(self, record: dict[str, Any], session_id: str | None = None) -> Participant:
        return Participant(
            participant_id=require_text(record, "id", "participant"),
            name=require_text(record, "name", "participant"),
            session_id=optional_text(record, "sessionId") or session_id or "",
            user_id=optional_text(record, "userId"),
            total_owed=parse_optional_money(record.get("totalOwed"), "participant.totalOwed", self.currency),
            total_paid=parse_optional_money(record.get("totalPaid"), "participant.totalPaid", self.currency),
            net_amount=parse_optional_money(record.get("netAmount"), "participant.netAmount", self.currency),
        )

    def item_from_local(self, record: dict[str, Any], session_id: str | None = None) -> BillItem:
        amount = record.get("totalAmount", record.get("amount"))
        return BillItem(
            item_id=require_text(record, "id", "bill_item"),
            session_id=optional_text(record, "sessionId") or session_id or "",
            name=require_text(record, "name", "bill_item"),
            total_amount=parse_money(amount, "bill_item.totalAmount", self.currency, require_positive=True),
            paid_by=require_text(record, "paidBy", "bill_item"),
            shared_by=parse_id_list(record.get("sharedBy"), "bill_item.sharedBy"),
            has_sst=parse_flag(record.get("hasSst"), "bill_item.hasSst"),
            created_at=parse_timestamp(record.get("createdAt"), "bill_item.createdAt"),
        )

    def from_local_storage(
        self,
        session_record: dict[str, Any],
        participants: Iterable[dict[str, Any]] | None = None,
        items: Iterable[dict[str, Any]] | None = None,
    ) -> Session:
        """
        Session from a local-storage record.

        Separate ``participants`` / ``items`` lists are filtered by
        ``sessionId``; otherwise the lists nested in the record are used.
        """
        session_id = require_text(session_record, "id", "session")
        if participants is None:
            participant_records = session_record.get("participants") or ()
        else:
            participant_records = [p for p in participants if p.get("sessionId") == session_id]
        if items is None:
            item_records = session_record.get("items") or ()
        else:
            item_records = [i for i in items if i.get("sessionId") == session_id]

        session = Session(
            session_id=session_id,
            name=require_text(session_record, "name", "session"),
            participants=tuple(self.participant_from_local(p, session_id) for p in participant_records),
            items=tuple(self.item_from_local(i, session_id) for i in item_records),
            organizer_id=optional_text(session_record, "organizerId"),
            created_at=parse_timestamp(session_record.get("createdAt"), "session.createdAt"),
            updated_at=parse_timestamp(session_record.get("updatedAt"), "session.updatedAt"),
            is_active=parse_flag(session_record.get("isActive"), "session.isActive", default=True),
        )
        self._log_normalized(session, "local_storage")
        return session

    def from_local_storage_dump(self, dump: dict[str, Any]) -> list[Session]:
        """
        Every session in a local-storage dump.

        Values may be the raw JSON strings local storage keeps.
        """
        sessions, participants, items = unpack_local_storage_dump(dump)
        return [self.from_local_storage(record, participants, items) for record in sessions]

    def _log_normalized(self, session: Session, source: str) -> None:
        logger.debug("session_normalized", extra={
            "source": source,
            "session_id": session.session_id,
            "participant_count": len(session.participants),
            "item_count": len(session.items),
        })
        dangling = session.dangling_references()
        if dangling:
            logger.warning("session_dangling_references", extra={
                "session_id": session.session_id,
                "dangling": {item_id: list(ids) for item_id, ids in dangling.items()},
            })


def unpack_local_storage_dump(
    dump: dict[str, Any],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
    """(sessions, participants, items) record lists of a local-storage dump."""
    return (
        _decode(dump.get(SESSIONS_KEY)),
        _decode(dump.get(PARTICIPANTS_KEY)),
        _decode(dump.get(ITEMS_KEY)),
    )


def _decode(value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value, parse_float=Decimal)
    return list(value)
