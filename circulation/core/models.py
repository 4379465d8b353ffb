#!/usr/bin/env python

"""
    Models for Circulation,
    including the Item, Loan and AuditEvent tables and the
    loan lifecycle (open -> returned, renewable while open).

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
from sqlalchemy import (
    Column, String, Boolean, Integer, Date, DateTime, ForeignKey,
    CheckConstraint, event, Enum as SQLAlchemyEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from circulation.core.db import session as db, Base
from circulation.core.utils import require_text, require_positive, utcnow, today, days_after
from circulation.core.exceptions import (
    InvalidStateError,
    IntegrityViolationError,
    ItemNotFoundError,
    LoanNotFoundError,
)

LOAN_NOT_OPEN = "Loan not open or does not exist"


class LoanState(enum.Enum):
    OPEN = 'OPEN'
    RETURNED = 'RETURNED'


class EventType(enum.Enum):
    ISSUE = 'ISSUE'
    RETURN = 'RETURN'
    RENEW = 'RENEW'
    ACTIVATE_ITEM = 'ACTIVATE_ITEM'
    DEACTIVATE_ITEM = 'DEACTIVATE_ITEM'


class Role(enum.Enum):
    ADMIN = 'ADMIN'
    OPERATOR = 'OPERATOR'


class Item(Base):
    __tablename__ = 'items'
    __table_args__ = (
        CheckConstraint('available_quantity >= 0', name='ck_items_available_quantity'),
    )

    code = Column(String(20), primary_key=True)
    title = Column(String(200), nullable=False)
    author = Column(String(120), nullable=False)
    category = Column(String(80), nullable=False, default='')
    publisher = Column(String(120))
    year = Column(Integer)
    available_quantity = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    @property
    def is_loanable(self):
        """True if the item is active and has at least one unit on the shelf."""
        return bool(self.active) and self.available_quantity > 0

    @classmethod
    def exists(cls, code):
        return db.query(Item).filter(Item.code == code).first()

    @classmethod
    def get(cls, code):
        if item := cls.exists(code):
            return item
        raise ItemNotFoundError(f"Item {code!r} does not exist")

    def __repr__(self):
        return f"<Item {self.code} {self.title!r} available={self.available_quantity}>"


class Loan(Base):
    __tablename__ = 'loans'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_loans_quantity'),
        CheckConstraint(
            "(state = 'OPEN' AND returned_at IS NULL) OR "
            "(state = 'RETURNED' AND returned_at IS NOT NULL)",
            name='ck_loans_state_returned_at'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_code = Column(String(20), ForeignKey('items.code', ondelete='RESTRICT'), nullable=False, index=True)
    operator_id = Column(String(80), nullable=False)
    recipient = Column(String(120), nullable=False)
    quantity = Column(Integer, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    due_at = Column(Date, nullable=False, index=True)
    returned_at = Column(DateTime(timezone=True), nullable=True)
    state = Column(SQLAlchemyEnum(LoanState, name='loan_state'), nullable=False,
                   default=LoanState.OPEN, index=True)
    # Bumped on every UPDATE; a writer holding a stale copy affects zero rows
    version = Column(Integer, nullable=False)

    item = relationship('Item', back_populates='loans')

    __mapper_args__ = {'version_id_col': version}

    @hybrid_property
    def is_open(self):
        return self.state == LoanState.OPEN

    @classmethod
    def create(cls, item_code: str, operator_id: str, recipient: str,
               quantity: int, days: int) -> "Loan":
        """
        Build a new OPEN loan.

        Args:
            item_code: Code of the item being lent.
            operator_id: Staff member issuing the loan.
            recipient: Who takes the item home.
            quantity: Units lent, fixed for the life of the loan.
            days: Loan duration; the due date is today + days.

        Raises:
            InvalidInputError: Blank identifiers or non-positive quantity/days.
        """
        item_code = require_text(item_code, "Item code")
        operator_id = require_text(operator_id, "Operator")
        recipient = require_text(recipient, "Recipient")
        require_positive(quantity, "quantity")
        require_positive(days, "loan duration")
        return cls(
            item_code=item_code,
            operator_id=operator_id,
            recipient=recipient,
            quantity=quantity,
            issued_at=utcnow(),
            due_at=days_after(today(), days, "loan duration"),
            state=LoanState.OPEN,
        )

    @classmethod
    def exists(cls, loan_id):
        return db.query(Loan).filter(Loan.id == loan_id).first()

    @classmethod
    def get(cls, loan_id):
        if loan := cls.exists(loan_id):
            return loan
        raise LoanNotFoundError(f"Loan {loan_id} does not exist")

    @classmethod
    def get_open(cls, loan_id):
        """Loads an OPEN loan straight from the database, discarding any
        copy this session already holds."""
        loan = db.query(Loan).populate_existing().filter(
            Loan.id == loan_id,
            Loan.state == LoanState.OPEN
        ).first()
        if not loan:
            raise InvalidStateError(LOAN_NOT_OPEN)
        return loan

    def renew(self, extra_days: int):
        if not self.is_open:
            raise InvalidStateError(LOAN_NOT_OPEN)
        require_positive(extra_days, "renewal days")
        self.due_at = days_after(self.due_at, extra_days, "renewal days")
        return self

    def finalize(self):
        if not self.is_open:
            raise InvalidStateError(LOAN_NOT_OPEN)
        self.state = LoanState.RETURNED
        self.returned_at = utcnow()
        return self

    def __repr__(self):
        return f"<Loan {self.id} {self.item_code} x{self.quantity} {self.state.name}>"


class AuditEvent(Base):
    """Append-only record of a committed domain transition."""
    __tablename__ = 'audit_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    operator_id = Column(String(80), nullable=False)
    event_type = Column(SQLAlchemyEnum(EventType, name='audit_event_type'), nullable=False, index=True)
    item_code = Column(String(20), ForeignKey('items.code'))
    loan_id = Column(Integer, ForeignKey('loans.id'))
    quantity = Column(Integer)
    recipient = Column(String(120))
    detail = Column(String(255))

    def __repr__(self):
        return f"<AuditEvent {self.id} {self.event_type.name} loan={self.loan_id}>"


@event.listens_for(AuditEvent, 'before_update')
def _refuse_audit_update(mapper, connection, target):
    raise IntegrityViolationError(f"Audit event {target.id} is append-only and cannot be modified")


@event.listens_for(AuditEvent, 'before_delete')
def _refuse_audit_delete(mapper, connection, target):
    raise IntegrityViolationError(f"Audit event {target.id} is append-only and cannot be deleted")


Item.loans = relationship('Loan', back_populates='item')
