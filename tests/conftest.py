"""
Shared fixtures for the bill-splitting test suite.

The sample session mirrors the reference scenario used across the engine
tests:

    Alice ("1"), Bob ("2"), Charlie ("3") in session "session1".
    Pizza   RM 30.00, paid by Alice, shared by all three, no SST.
    Drinks  RM 15.00, paid by Bob, shared by Bob and Charlie, with SST.
"""

import json
import logging
from io import StringIO

import pytest

from splitbill_kernel.domain.session import BillItem, Participant, Session
from splitbill_kernel.domain.values import Money
from splitbill_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

SESSION_ID = "session1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture splitbill logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            SplitEngine().calculate(session)
            logs = captured_logs()
            assert any(r["message"] == "split_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("splitbill")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Sample session
# =============================================================================


@pytest.fixture
def sample_participants() -> tuple[Participant, ...]:
    return (
        Participant(participant_id="1", name="Alice", session_id=SESSION_ID),
        Participant(participant_id="2", name="Bob", session_id=SESSION_ID),
        Participant(participant_id="3", name="Charlie", session_id=SESSION_ID),
    )


@pytest.fixture
def sample_items() -> tuple[BillItem, ...]:
    return (
        BillItem(
            item_id="1",
            session_id=SESSION_ID,
            name="Pizza",
            total_amount=Money.of("30.00"),
            paid_by="1",
            shared_by=("1", "2", "3"),
            has_sst=False,
        ),
        BillItem(
            item_id="2",
            session_id=SESSION_ID,
            name="Drinks",
            total_amount=Money.of("15.00"),
            paid_by="2",
            shared_by=("2", "3"),
            has_sst=True,
        ),
    )


@pytest.fixture
def sample_session(sample_participants, sample_items) -> Session:
    return Session(
        session_id=SESSION_ID,
        name="Dinner at Jalan Alor",
        participants=sample_participants,
        items=sample_items,
        organizer_id="1",
    )


def make_item(item_id, amount, paid_by, shared_by, has_sst=False, name=None) -> BillItem:
    """Build a bill item in the sample session."""
    return BillItem(
        item_id=item_id,
        session_id=SESSION_ID,
        name=name or f"Item {item_id}",
        total_amount=Money.of(amount) if not isinstance(amount, Money) else amount,
        paid_by=paid_by,
        shared_by=tuple(shared_by),
        has_sst=has_sst,
    )


@pytest.fixture
def item_factory():
    """``make_item`` as a fixture so test modules need not import conftest."""
    return make_item
