import datetime
import logging
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm.exc import StaleDataError
from circulation.core.db import session as db, transaction
from circulation.core.models import Item, Loan, LoanState, AuditEvent, EventType, LOAN_NOT_OPEN
from circulation.core.ledger import InventoryLedger
from circulation.core.audit import AuditTrail
from circulation.core.utils import require_text, like_pattern, day_start, LIKE_ESCAPE
from circulation.core.exceptions import (
    ItemInactiveError,
    InsufficientStockError,
    InvalidStateError,
)
from circulation.configs import DEFAULT_LOAN_DAYS, DEFAULT_RENEW_DAYS

logger = logging.getLogger(__name__)

# Seeded into an empty catalog by `CirculationAPI.preload`
SAMPLE_ITEMS = [
    {"code": "L001", "title": "El Quijote", "author": "Miguel de Cervantes",
     "category": "Novela", "publisher": "Acme", "year": 2005, "available_quantity": 4},
    {"code": "L002", "title": "Clean Code", "author": "Robert C. Martin",
     "category": "Programación", "publisher": "Prentice Hall", "year": 2008, "available_quantity": 2},
]


class CirculationAPI:
    """Issue, return and renew loans as all-or-nothing transactions.

    Each operation writes the loan, the stock adjustment and the audit
    event inside a single `transaction()`; if any step fails none of the
    three is visible afterwards and the error reaches the caller unchanged.
    """

    DEFAULT_LOAN_DAYS = DEFAULT_LOAN_DAYS
    DEFAULT_RENEW_DAYS = DEFAULT_RENEW_DAYS

    @classmethod
    def issue(cls, item_code: str, operator_id: str, recipient: str,
              quantity: int, days: Optional[int] = None) -> int:
        """
        Lend `quantity` units of an item.

        Returns:
            The id of the new loan.

        Raises:
            InvalidInputError: Blank identifiers, non-positive quantity or days.
            ItemNotFoundError: Unknown item.
            ItemInactiveError: The item is deactivated.
            InsufficientStockError: Not enough units available.
        """
        days = cls.DEFAULT_LOAN_DAYS if days is None else days
        loan = Loan.create(item_code, operator_id, recipient, quantity, days)
        with transaction():
            if not InventoryLedger.is_active(loan.item_code):
                raise ItemInactiveError(f"Item {loan.item_code!r} is deactivated")
            # Early, friendlier failure; the decrement below is the real guard
            if not InventoryLedger.has_sufficient_stock(loan.item_code, loan.quantity):
                raise InsufficientStockError(
                    f"Insufficient stock for {loan.item_code!r}: requested {loan.quantity}")
            db.add(loan)
            db.flush()
            InventoryLedger.decrement(loan.item_code, loan.quantity)
            AuditTrail.append(
                loan.operator_id, EventType.ISSUE,
                item_code=loan.item_code,
                loan_id=loan.id,
                quantity=loan.quantity,
                recipient=loan.recipient,
                detail=f"due={loan.due_at.isoformat()}",
            )
            loan_id = loan.id
            summary = f"{loan.item_code} x{loan.quantity} to {loan.recipient!r}, due {loan.due_at}"
        logger.info(f"Issued loan {loan_id}: {summary}")
        return loan_id

    @classmethod
    def return_loan(cls, loan_id: int):
        """Close an OPEN loan and put its units back on the shelf.

        The audit event carries the item, operator, quantity and recipient
        recorded on the loan itself.
        """
        with transaction():
            loan = Loan.get_open(loan_id)
            loan.finalize()
            cls._flush_loan()
            InventoryLedger.increment(loan.item_code, loan.quantity)
            AuditTrail.append(
                loan.operator_id, EventType.RETURN,
                item_code=loan.item_code,
                loan_id=loan.id,
                quantity=loan.quantity,
                recipient=loan.recipient,
            )
            summary = f"{loan.item_code} x{loan.quantity}"
        logger.info(f"Returned loan {loan_id}: {summary}")

    @classmethod
    def renew(cls, loan_id: int, extra_days: Optional[int] = None) -> datetime.date:
        """Push the due date of an OPEN loan back by `extra_days`.

        Returns:
            The new due date.
        """
        extra_days = cls.DEFAULT_RENEW_DAYS if extra_days is None else extra_days
        with transaction():
            loan = Loan.get_open(loan_id)
            loan.renew(extra_days)
            cls._flush_loan()
            AuditTrail.append(
                loan.operator_id, EventType.RENEW,
                item_code=loan.item_code,
                loan_id=loan.id,
                recipient=loan.recipient,
                detail=f"+{extra_days}d",
            )
            due_at = loan.due_at
        logger.info(f"Renewed loan {loan_id} by {extra_days}d, due {due_at}")
        return due_at

    @classmethod
    def set_item_active(cls, item_code: str, active: bool, operator_id: str):
        """Activate or deactivate an item, refusing deactivation while any
        loan on it is OPEN. Setting the flag it already has is a no-op and
        is not audited.

        Returns:
            True if the flag changed.
        """
        operator_id = require_text(operator_id, "Operator")
        state = 'activated' if active else 'deactivated'
        with transaction():
            if not InventoryLedger.set_active(item_code, active):
                logger.info(f"Item {item_code} already {state}")
                return False
            AuditTrail.append(
                operator_id,
                EventType.ACTIVATE_ITEM if active else EventType.DEACTIVATE_ITEM,
                item_code=item_code,
            )
        logger.info(f"Item {item_code} {state} by {operator_id}")
        return True

    @classmethod
    def can_deactivate(cls, item_code: str) -> bool:
        InventoryLedger.is_active(item_code)  # unknown item -> ItemNotFoundError
        return not InventoryLedger.has_open_loans(item_code)

    @staticmethod
    def _flush_loan():
        # Another caller closed or renewed this loan after we loaded it
        try:
            db.flush()
        except StaleDataError as e:
            raise InvalidStateError(LOAN_NOT_OPEN) from e

    # Read-only query surface

    @classmethod
    def get_loan(cls, loan_id: int) -> Loan:
        return Loan.get(loan_id)

    @classmethod
    def get_item(cls, item_code: str) -> Item:
        return Item.get(item_code)

    @classmethod
    def get_items(cls, offset=None, limit=None) -> List[Item]:
        return Item.get_many(offset=offset, limit=limit)

    @classmethod
    def _filter_loans(cls, query, filter_text: Optional[str]):
        if filter_text and filter_text.strip():
            pattern = like_pattern(filter_text.strip())
            query = query.filter(or_(
                Item.title.ilike(pattern, escape=LIKE_ESCAPE),
                Item.author.ilike(pattern, escape=LIKE_ESCAPE),
                Loan.recipient.ilike(pattern, escape=LIKE_ESCAPE),
            ))
        return query

    @classmethod
    def open_loans(cls, filter_text: Optional[str] = None) -> List[Loan]:
        """OPEN loans, soonest due first."""
        query = db.query(Loan).join(Item, Item.code == Loan.item_code).filter(
            Loan.state == LoanState.OPEN)
        query = cls._filter_loans(query, filter_text)
        return query.order_by(Loan.due_at.asc(), Loan.id.asc()).all()

    @classmethod
    def history(cls, from_date: Optional[datetime.date] = None,
                to_date: Optional[datetime.date] = None,
                filter_text: Optional[str] = None) -> List[Loan]:
        """Loans issued between `from_date` and `to_date` (both inclusive,
        either may be omitted), most recently issued first."""
        query = db.query(Loan).join(Item, Item.code == Loan.item_code)
        if from_date:
            query = query.filter(Loan.issued_at >= day_start(from_date))
        if to_date:
            query = query.filter(Loan.issued_at < day_start(to_date + datetime.timedelta(days=1)))
        query = cls._filter_loans(query, filter_text)
        return query.order_by(Loan.issued_at.desc(), Loan.id.desc()).all()

    @classmethod
    def recent_audit(cls, limit: Optional[int] = None) -> List[AuditEvent]:
        return AuditTrail.list_recent(limit)

    @classmethod
    def preload(cls, items=None) -> int:
        """Seeds the catalog when it is empty. Returns the number of items added."""
        items = SAMPLE_ITEMS if items is None else items
        with transaction():
            if db.query(Item.code).first():
                logger.info("Catalog already populated; skipping preload")
                return 0
            db.add_all(Item(**fields) for fields in items)
        logger.info(f"Preloaded {len(items)} items")
        return len(items)
