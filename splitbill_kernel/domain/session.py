"""
Session -- participants and shared bill items of one bill-splitting session.

Responsibility:
    Frozen value objects the persistence layers normalize into before any
    calculation runs. Whether a session came from the remote store or a
    local-storage export, the engines only ever see these shapes.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Participant and item names are non-empty after stripping.
    - ``BillItem.shared_by`` is an ordered tuple with duplicates collapsed.
    - Derived item values (SST, per-person amount) are computed, never stored,
      so an update through ``BillItem.updated`` can never leave them stale.

Failure modes:
    - ValueError on empty ids or names.

Non-goals:
    - ``BillItem`` does not reject non-positive or non-finite amounts; the
      ingestion boundary does, so degenerate data that slips past it still
      reaches the invariant checks instead of being silently repaired.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from splitbill_kernel.domain.tax_config import DEFAULT_SST_RATE
from splitbill_kernel.domain.values import DEFAULT_CURRENCY, Money


def _require_text(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} must be a non-empty string")
    return value.strip()


def _dedupe(ids: Any) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for participant_id in ids or ():
        seen.setdefault(str(participant_id), None)
    return tuple(seen)


@dataclass(frozen=True)
class Participant:
    """
    A person taking part in one session.

    ``total_owed``, ``total_paid`` and ``net_amount`` are cached outputs of
    the split engine. They are only ever written through
    ``with_totals`` with a fresh calculation result.
    """

    participant_id: str
    name: str
    session_id: str
    user_id: str | None = None
    total_owed: Money = field(default_factory=Money.zero)
    total_paid: Money = field(default_factory=Money.zero)
    net_amount: Money = field(default_factory=Money.zero)

    def __post_init__(self) -> None:
        object.__setattr__(self, "participant_id", _require_text(self.participant_id, "participant_id"))
        object.__setattr__(self, "name", _require_text(self.name, "Participant name"))

    def with_totals(self, total_owed: Money, total_paid: Money, net_amount: Money) -> Participant:
        return replace(
            self, total_owed=total_owed, total_paid=total_paid, net_amount=net_amount
        )


@dataclass(frozen=True)
class BillItem:
    """
    One shared expense line.

    Contract:
        Exactly one payer, a set of co-sharers, and an SST flag.
    Guarantees:
        - ``shared_by`` keeps first-seen order with duplicates removed.
        - The payer need not be one of the sharers.
    """

    item_id: str
    session_id: str
    name: str
    total_amount: Money
    paid_by: str
    shared_by: tuple[str, ...] = ()
    has_sst: bool = False
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "item_id", _require_text(self.item_id, "item_id"))
        object.__setattr__(self, "name", _require_text(self.name, "Item name"))
        if not isinstance(self.total_amount, Money):
            object.__setattr__(self, "total_amount", Money.of(self.total_amount, DEFAULT_CURRENCY))
        object.__setattr__(self, "shared_by", _dedupe(self.shared_by))
        object.__setattr__(self, "has_sst", bool(self.has_sst))

    @property
    def share_count(self) -> int:
        return len(self.shared_by)

    def is_shared_by(self, participant_id: str) -> bool:
        return participant_id in self.shared_by

    def sst_amount(self, rate: Decimal = DEFAULT_SST_RATE) -> Money:
        """SST on the item's own amount, zero when the item carries no SST."""
        if not self.has_sst:
            return Money.zero(self.total_amount.currency)
        return (self.total_amount * rate).round(ROUND_HALF_UP)

    @property
    def per_person_amount(self) -> Money:
        """Base share per sharer; zero for an item nobody shares."""
        if not self.shared_by:
            return Money.zero(self.total_amount.currency)
        return (self.total_amount / len(self.shared_by)).round()

    def updated(self, **changes: Any) -> BillItem:
        """Explicit update; construction invariants run again on the copy."""
        return replace(self, **changes)


@dataclass(frozen=True)
class Session:
    """A bill-splitting session snapshot: its participants and items."""

    session_id: str
    name: str
    participants: tuple[Participant, ...] = ()
    items: tuple[BillItem, ...] = ()
    organizer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "session_id", _require_text(self.session_id, "session_id"))
        object.__setattr__(self, "participants", tuple(self.participants))
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def participant_ids(self) -> tuple[str, ...]:
        return tuple(p.participant_id for p in self.participants)

    def participant(self, participant_id: str) -> Participant | None:
        for p in self.participants:
            if p.participant_id == participant_id:
                return p
        return None

    def dangling_references(self) -> dict[str, tuple[str, ...]]:
        """Item id -> participant ids it references that are not in the session."""
        known = set(self.participant_ids)
        dangling: dict[str, tuple[str, ...]] = {}
        for item in self.items:
            missing = [pid for pid in (item.paid_by, *item.shared_by) if pid not in known]
            if missing:
                dangling[item.item_id] = tuple(dict.fromkeys(missing))
        return dangling
