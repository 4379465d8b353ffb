#!/usr/bin/env python

"""
    Inventory ledger for Circulation.

    The only legal mutation paths for an item's available quantity and
    active flag. Every mutation is a single conditional UPDATE so that the
    guard and the write cannot be separated by a concurrent writer.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from sqlalchemy import select, update, exists
from circulation.core.db import session as db
from circulation.core.models import Item, Loan, LoanState
from circulation.core.utils import require_positive
from circulation.core.exceptions import (
    ItemNotFoundError,
    ItemInactiveError,
    InsufficientStockError,
    IntegrityViolationError,
)

logger = logging.getLogger(__name__)


class InventoryLedger:

    @classmethod
    def available(cls, item_code: str) -> int:
        quantity = db.execute(
            select(Item.available_quantity).where(Item.code == item_code)
        ).scalar_one_or_none()
        if quantity is None:
            raise ItemNotFoundError(f"Item {item_code!r} does not exist")
        return quantity

    @classmethod
    def is_active(cls, item_code: str) -> bool:
        active = db.execute(
            select(Item.active).where(Item.code == item_code)
        ).scalar_one_or_none()
        if active is None:
            raise ItemNotFoundError(f"Item {item_code!r} does not exist")
        return bool(active)

    @classmethod
    def has_sufficient_stock(cls, item_code: str, quantity: int) -> bool:
        available = db.execute(
            select(Item.available_quantity).where(Item.code == item_code)
        ).scalar_one_or_none()
        return available is not None and available >= quantity

    @classmethod
    def decrement(cls, item_code: str, quantity: int):
        """Takes `quantity` units off the shelf, or fails without touching
        the row.

        Raises:
            ItemNotFoundError: Unknown item.
            ItemInactiveError: The item was deactivated.
            InsufficientStockError: Fewer than `quantity` units available.
        """
        require_positive(quantity, "quantity")
        result = db.execute(
            update(Item)
            .where(
                Item.code == item_code,
                Item.active.is_(True),
                Item.available_quantity >= quantity,
            )
            .values(available_quantity=Item.available_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if not cls.is_active(item_code):
                raise ItemInactiveError(f"Item {item_code!r} is deactivated")
            raise InsufficientStockError(
                f"Insufficient stock for {item_code!r}: requested {quantity}, "
                f"available {cls.available(item_code)}")
        logger.debug(f"Decremented {item_code} by {quantity}")

    @classmethod
    def increment(cls, item_code: str, quantity: int):
        require_positive(quantity, "quantity")
        result = db.execute(
            update(Item)
            .where(Item.code == item_code)
            .values(available_quantity=Item.available_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ItemNotFoundError(f"Item {item_code!r} does not exist")
        logger.debug(f"Incremented {item_code} by {quantity}")

    @classmethod
    def has_open_loans(cls, item_code: str) -> bool:
        return bool(db.execute(
            select(exists().where(
                Loan.item_code == item_code,
                Loan.state == LoanState.OPEN
            ))
        ).scalar())

    @classmethod
    def lock(cls, item_code: str) -> bool:
        """Takes the item's row lock for the rest of the transaction and
        returns its active flag. Issues hold the same lock from their
        decrement until commit, so a later check sees their loans."""
        active = db.execute(
            select(Item.active).where(Item.code == item_code).with_for_update()
        ).scalar_one_or_none()
        if active is None:
            raise ItemNotFoundError(f"Item {item_code!r} does not exist")
        return bool(active)

    @classmethod
    def set_active(cls, item_code: str, active: bool) -> bool:
        """Sets the active flag. Deactivation only succeeds while no OPEN
        loan references the item.

        Returns:
            False if the item already had that flag, True otherwise.

        Raises:
            ItemNotFoundError: Unknown item.
            IntegrityViolationError: Deactivation requested with open loans.
        """
        active = bool(active)
        if cls.lock(item_code) == active:
            return False
        stmt = update(Item).where(Item.code == item_code)
        if not active:
            stmt = stmt.where(~exists().where(
                Loan.item_code == item_code,
                Loan.state == LoanState.OPEN
            ))
        result = db.execute(
            stmt.values(active=active)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise IntegrityViolationError(
                f"Item {item_code!r} has open loans and cannot be deactivated")
        return True
