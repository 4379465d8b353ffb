from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from circulation.core.models import LoanState

class Loan(BaseModel):
    id: int
    item_code: str
    operator_id: str
    recipient: str
    quantity: int
    issued_at: datetime
    due_at: date
    returned_at: Optional[datetime] = None
    state: LoanState

    class Config:
        from_attributes = True
