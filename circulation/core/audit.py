import logging
from typing import List, Optional
from circulation.configs import AUDIT_DEFAULT_LIMIT
from circulation.core.db import session as db
from circulation.core.models import AuditEvent, EventType

logger = logging.getLogger(__name__)


class AuditTrail:
    """Ordered, append-only log of committed domain transitions.

    `append` only stages the event in the caller's transaction; it becomes
    visible when (and only when) that transaction commits.
    """

    @classmethod
    def append(cls, operator_id: str, event_type: EventType, item_code: Optional[str] = None,
               loan_id: Optional[int] = None, quantity: Optional[int] = None,
               recipient: Optional[str] = None, detail: Optional[str] = None) -> AuditEvent:
        audit_event = AuditEvent(
            operator_id=operator_id,
            event_type=event_type,
            item_code=item_code,
            loan_id=loan_id,
            quantity=quantity,
            recipient=recipient,
            detail=detail,
        )
        db.add(audit_event)
        db.flush()
        logger.debug(f"Staged audit event {audit_event.id} {event_type.name}")
        return audit_event

    @classmethod
    def list_recent(cls, limit: Optional[int] = None) -> List[AuditEvent]:
        if not limit or limit <= 0:
            limit = AUDIT_DEFAULT_LIMIT
        return db.query(AuditEvent).order_by(AuditEvent.id.desc()).limit(limit).all()

    @classmethod
    def for_loan(cls, loan_id: int) -> List[AuditEvent]:
        return db.query(AuditEvent).filter(
            AuditEvent.loan_id == loan_id
        ).order_by(AuditEvent.id).all()
