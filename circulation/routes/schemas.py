from pydantic import BaseModel, Field
from datetime import date
from circulation.configs import DEFAULT_LOAN_DAYS, MAX_LOAN_DAYS, DEFAULT_RENEW_DAYS

class IssueRequest(BaseModel):
    item_code: str
    recipient: str
    quantity: int = Field(1, gt=0)
    days: int = Field(DEFAULT_LOAN_DAYS, gt=0, le=MAX_LOAN_DAYS)

class RenewRequest(BaseModel):
    days: int = Field(DEFAULT_RENEW_DAYS, gt=0, le=MAX_LOAN_DAYS)

class LoanIssued(BaseModel):
    loan_id: int

class LoanRenewed(BaseModel):
    loan_id: int
    due_at: date
