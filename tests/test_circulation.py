#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_circulation
    ~~~~~~~~~~~~~~~~~~~~~~

    Issue / return / renew through the CirculationAPI, including the
    all-or-nothing behaviour when a step fails.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import datetime
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from circulation.core.api import CirculationAPI, SAMPLE_ITEMS
from circulation.core.audit import AuditTrail
from circulation.core.ledger import InventoryLedger
from circulation.core.models import Loan, LoanState, EventType, Item
from circulation.core.utils import today
from circulation.core.exceptions import (
    DatabaseError,
    InsufficientStockError,
    IntegrityViolationError,
    InvalidInputError,
    InvalidStateError,
    ItemInactiveError,
    ItemNotFoundError,
    LoanNotFoundError,
)


def audit_types(loan_id=None):
    events = AuditTrail.for_loan(loan_id) if loan_id else reversed(AuditTrail.list_recent(1000))
    return [e.event_type for e in events]


def loan_count(db_session):
    return db_session.query(Loan).count()


def test_issue_renew_return_scenario(db_session, make_item):
    make_item("X1", 4)

    loan_id = CirculationAPI.issue("X1", "op", "Alice", 2, 7)
    loan = CirculationAPI.get_loan(loan_id)
    assert InventoryLedger.available("X1") == 2
    assert loan.state == LoanState.OPEN
    assert loan.due_at == today() + datetime.timedelta(days=7)
    assert audit_types(loan_id) == [EventType.ISSUE]

    due_at = CirculationAPI.renew(loan_id, 7)
    assert due_at == today() + datetime.timedelta(days=14)
    assert CirculationAPI.get_loan(loan_id).due_at == due_at
    assert InventoryLedger.available("X1") == 2
    assert audit_types(loan_id) == [EventType.ISSUE, EventType.RENEW]

    CirculationAPI.return_loan(loan_id)
    loan = CirculationAPI.get_loan(loan_id)
    assert InventoryLedger.available("X1") == 4
    assert loan.state == LoanState.RETURNED
    assert loan.returned_at is not None
    assert audit_types(loan_id) == [EventType.ISSUE, EventType.RENEW, EventType.RETURN]


def test_issue_audit_event_contents(db_session, make_item):
    make_item("X1", 4)
    loan_id = CirculationAPI.issue("X1", "op7", "Alice", 2, 5)
    [issue] = AuditTrail.for_loan(loan_id)
    assert issue.operator_id == "op7"
    assert issue.item_code == "X1"
    assert issue.quantity == 2
    assert issue.recipient == "Alice"
    assert issue.detail == f"due={(today() + datetime.timedelta(days=5)).isoformat()}"


def test_issue_uses_default_duration(db_session, make_item):
    make_item("X1", 1)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1)
    expected = today() + datetime.timedelta(days=CirculationAPI.DEFAULT_LOAN_DAYS)
    assert CirculationAPI.get_loan(loan_id).due_at == expected


def test_issue_without_stock_leaves_nothing_behind(db_session, make_item):
    make_item("X2", 0)
    with pytest.raises(InsufficientStockError):
        CirculationAPI.issue("X2", "op", "Bob", 1, 5)
    assert InventoryLedger.available("X2") == 0
    assert loan_count(db_session) == 0
    assert AuditTrail.list_recent() == []


def test_issue_more_than_available(db_session, make_item):
    make_item("X1", 2)
    with pytest.raises(InsufficientStockError):
        CirculationAPI.issue("X1", "op", "Bob", 3, 5)
    assert InventoryLedger.available("X1") == 2


def test_issue_inactive_item(db_session, make_item):
    make_item("X1", 2, active=False)
    with pytest.raises(ItemInactiveError):
        CirculationAPI.issue("X1", "op", "Bob", 1, 5)
    assert loan_count(db_session) == 0


def test_issue_unknown_item(db_session):
    with pytest.raises(ItemNotFoundError):
        CirculationAPI.issue("NOPE", "op", "Bob", 1, 5)


@pytest.mark.parametrize("args", [
    ("X1", "op", "Bob", 0, 5),
    ("X1", "op", "Bob", 1, 0),
    ("X1", "", "Bob", 1, 5),
    ("X1", "op", "  ", 1, 5),
    ("", "op", "Bob", 1, 5),
])
def test_issue_invalid_input(db_session, make_item, args):
    make_item("X1", 2)
    with pytest.raises(InvalidInputError):
        CirculationAPI.issue(*args)
    assert InventoryLedger.available("X1") == 2
    assert loan_count(db_session) == 0


def test_decrement_guard_rolls_back_loan(db_session, make_item):
    """If stock disappears between the advisory check and the decrement,
    the tentative loan is discarded with the rest of the transaction."""
    make_item("X1", 1)
    with patch.object(InventoryLedger, "has_sufficient_stock", return_value=True):
        CirculationAPI.issue("X1", "op", "Alice", 1, 5)
        with pytest.raises(InsufficientStockError):
            CirculationAPI.issue("X1", "op", "Bob", 1, 5)
    assert InventoryLedger.available("X1") == 0
    assert loan_count(db_session) == 1
    assert audit_types() == [EventType.ISSUE]


def test_audit_failure_rolls_back_issue(db_session, make_item):
    make_item("X1", 3)
    failure = OperationalError("INSERT INTO audit_events", {}, Exception("disk I/O error"))
    with patch.object(AuditTrail, "append", side_effect=failure):
        with pytest.raises(DatabaseError):
            CirculationAPI.issue("X1", "op", "Alice", 2, 5)
    assert InventoryLedger.available("X1") == 3
    assert loan_count(db_session) == 0


def test_audit_failure_rolls_back_return(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 2, 5)
    with patch.object(AuditTrail, "append", side_effect=RuntimeError("audit store down")):
        with pytest.raises(RuntimeError):
            CirculationAPI.return_loan(loan_id)
    assert InventoryLedger.available("X1") == 1
    assert CirculationAPI.get_loan(loan_id).state == LoanState.OPEN
    assert audit_types(loan_id) == [EventType.ISSUE]


def test_return_twice_fails(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1, 5)
    CirculationAPI.return_loan(loan_id)

    with pytest.raises(InvalidStateError):
        CirculationAPI.return_loan(loan_id)
    assert InventoryLedger.available("X1") == 3
    assert audit_types(loan_id) == [EventType.ISSUE, EventType.RETURN]


def test_return_unknown_loan(db_session):
    with pytest.raises(InvalidStateError):
        CirculationAPI.return_loan(999)


def test_return_audits_original_issuing_context(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "issuer", "Alice", 2, 5)
    CirculationAPI.return_loan(loan_id)
    returned = AuditTrail.for_loan(loan_id)[-1]
    assert returned.event_type == EventType.RETURN
    assert (returned.operator_id, returned.item_code, returned.quantity, returned.recipient) == \
        ("issuer", "X1", 2, "Alice")


def test_renew_returned_loan_fails(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1, 5)
    CirculationAPI.return_loan(loan_id)
    due_at = CirculationAPI.get_loan(loan_id).due_at

    with pytest.raises(InvalidStateError):
        CirculationAPI.renew(loan_id, 7)
    assert CirculationAPI.get_loan(loan_id).due_at == due_at
    assert audit_types(loan_id) == [EventType.ISSUE, EventType.RETURN]


def test_renew_requires_positive_days(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1, 5)
    with pytest.raises(InvalidInputError):
        CirculationAPI.renew(loan_id, 0)
    assert audit_types(loan_id) == [EventType.ISSUE]


def test_out_of_range_durations_are_invalid_input(db_session, make_item):
    make_item("X1", 3)
    with pytest.raises(InvalidInputError):
        CirculationAPI.issue("X1", "op", "Alice", 1, 10 ** 7)
    assert InventoryLedger.available("X1") == 3

    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1, 5)
    due_at = CirculationAPI.get_loan(loan_id).due_at
    with pytest.raises(InvalidInputError):
        CirculationAPI.renew(loan_id, 10 ** 7)
    assert CirculationAPI.get_loan(loan_id).due_at == due_at
    assert audit_types(loan_id) == [EventType.ISSUE]


def test_renew_audit_detail(db_session, make_item):
    make_item("X1", 3)
    loan_id = CirculationAPI.issue("X1", "op", "Alice", 1, 5)
    CirculationAPI.renew(loan_id)
    renewed = AuditTrail.for_loan(loan_id)[-1]
    assert renewed.event_type == EventType.RENEW
    assert renewed.detail == f"+{CirculationAPI.DEFAULT_RENEW_DAYS}d"
    assert renewed.quantity is None


def test_issue_return_round_trip_restores_stock(db_session, make_item):
    make_item("X1", 7)
    loan_ids = [CirculationAPI.issue("X1", "op", f"Reader {q}", q, 5) for q in (1, 2, 3)]
    assert InventoryLedger.available("X1") == 1
    assert audit_types().count(EventType.ISSUE) == 3

    for loan_id in loan_ids:
        CirculationAPI.return_loan(loan_id)
    assert InventoryLedger.available("X1") == 7


def test_deactivation_scenario(db_session, make_item):
    make_item("X3", 2)
    loan_id = CirculationAPI.issue("X3", "op", "Carol", 1, 5)
    assert not CirculationAPI.can_deactivate("X3")

    with pytest.raises(IntegrityViolationError):
        CirculationAPI.set_item_active("X3", False, "admin")
    assert InventoryLedger.is_active("X3")
    assert EventType.DEACTIVATE_ITEM not in audit_types()

    CirculationAPI.return_loan(loan_id)
    assert CirculationAPI.can_deactivate("X3")
    CirculationAPI.set_item_active("X3", False, "admin")
    assert not InventoryLedger.is_active("X3")

    CirculationAPI.set_item_active("X3", True, "admin")
    assert InventoryLedger.is_active("X3")
    assert audit_types()[-2:] == [EventType.DEACTIVATE_ITEM, EventType.ACTIVATE_ITEM]


def test_repeated_status_change_is_audited_once(db_session, make_item):
    make_item("X1", 2)
    assert CirculationAPI.set_item_active("X1", False, "admin") is True
    assert CirculationAPI.set_item_active("X1", False, "admin") is False
    assert CirculationAPI.set_item_active("X1", True, "admin") is True
    assert CirculationAPI.set_item_active("X1", True, "admin") is False
    assert audit_types() == [EventType.DEACTIVATE_ITEM, EventType.ACTIVATE_ITEM]


def test_set_item_active_unknown_item(db_session):
    with pytest.raises(ItemNotFoundError):
        CirculationAPI.set_item_active("NOPE", False, "admin")
    assert AuditTrail.list_recent() == []


def test_get_loan_unknown(db_session):
    with pytest.raises(LoanNotFoundError):
        CirculationAPI.get_loan(12345)


def test_open_loans_ordered_by_due_date_and_filtered(db_session, make_item):
    make_item("B1", 5, title="El Quijote", author="Miguel de Cervantes")
    make_item("B2", 5, title="Clean Code", author="Robert C. Martin")
    late = CirculationAPI.issue("B1", "op", "Alice", 1, 30)
    soon = CirculationAPI.issue("B2", "op", "Bob", 1, 3)
    returned = CirculationAPI.issue("B2", "op", "Carol", 1, 1)
    CirculationAPI.return_loan(returned)

    assert [l.id for l in CirculationAPI.open_loans()] == [soon, late]
    assert [l.id for l in CirculationAPI.open_loans("")] == [soon, late]
    assert [l.id for l in CirculationAPI.open_loans("quijote")] == [late]
    assert [l.id for l in CirculationAPI.open_loans("MARTIN")] == [soon]
    assert [l.id for l in CirculationAPI.open_loans("alice")] == [late]
    assert CirculationAPI.open_loans("carol") == []
    assert CirculationAPI.open_loans("100%") == []


def test_history_includes_returned_loans_newest_first(db_session, make_item):
    make_item("B1", 5, title="El Quijote", author="Miguel de Cervantes")
    first = CirculationAPI.issue("B1", "op", "Alice", 1, 5)
    second = CirculationAPI.issue("B1", "op", "Bob", 1, 5)
    CirculationAPI.return_loan(first)

    assert [l.id for l in CirculationAPI.history()] == [second, first]
    assert [l.id for l in CirculationAPI.history(filter_text="bob")] == [second]
    assert [l.id for l in CirculationAPI.history(today(), today())] == [second, first]

    yesterday = today() - datetime.timedelta(days=1)
    tomorrow = today() + datetime.timedelta(days=1)
    assert CirculationAPI.history(to_date=yesterday) == []
    assert CirculationAPI.history(from_date=tomorrow) == []


def test_preload_only_fills_an_empty_catalog(db_session):
    assert CirculationAPI.preload() == len(SAMPLE_ITEMS)
    assert InventoryLedger.available("L001") == 4
    assert InventoryLedger.available("L002") == 2
    assert CirculationAPI.preload() == 0
    assert db_session.query(Item).count() == len(SAMPLE_ITEMS)
