from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from circulation.core.models import EventType

class AuditEvent(BaseModel):
    id: int
    timestamp: datetime
    operator_id: str
    event_type: EventType
    item_code: Optional[str] = None
    loan_id: Optional[int] = None
    quantity: Optional[int] = None
    recipient: Optional[str] = None
    detail: Optional[str] = None

    class Config:
        from_attributes = True
