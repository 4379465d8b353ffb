#!/usr/bin/env python

"""
    API routes for Circulation,
    exposing loan issue / return / renew, item activation,
    the open-loan and history listings and the recent audit view.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import date
from functools import wraps
from typing import Optional, List
from fastapi import (
    APIRouter,
    Request,
    HTTPException,
    Depends,
    status,
    Cookie
)
from circulation.core import auth, database
from circulation.core.api import CirculationAPI
from circulation.core.exceptions import (
    CirculationError,
    NotFoundError,
    InvalidInputError,
    ItemInactiveError,
    InsufficientStockError,
    InvalidStateError,
    IntegrityViolationError,
    UnauthorizedError,
    DatabaseError,
)
from circulation.routes.schemas import IssueRequest, RenewRequest, LoanIssued, LoanRenewed
from circulation.schemas.item import Item
from circulation.schemas.loan import Loan
from circulation.schemas.audit import AuditEvent
from circulation.schemas.operator import Operator

router = APIRouter()

HTTP_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    ItemInactiveError: status.HTTP_409_CONFLICT,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    IntegrityViolationError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    DatabaseError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def http_error(e: CirculationError, headers=None) -> HTTPException:
    code = next((HTTP_STATUS[cls] for cls in type(e).__mro__ if cls in HTTP_STATUS),
                status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail={"error": e.kind, "message": str(e)}, headers=headers)

def current_operator(request: Request, session: Optional[str] = Cookie(None)) -> Operator:
    """Resolves the operator from the `session` cookie or a Bearer token."""
    if not session:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session = auth_header.split(" ")[1]
    if operator := auth.verify_session_cookie(session):
        return operator
    raise http_error(
        UnauthorizedError("A valid operator session is required"),
        headers={"WWW-Authenticate": "Bearer"},
    )

def admin_operator(operator: Operator = Depends(current_operator)) -> Operator:
    if not operator.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": "Only administrators can change item status"},
        )
    return operator

def releases_session(func):
    """
    Decorator for sync routes: FastAPI runs them on a worker thread, and
    the scoped session they used is discarded on that same thread before
    it serves another request.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        finally:
            database.session.remove()
    return wrapper

@router.get("/items", response_model=List[Item])
@releases_session
def get_items(offset: Optional[int] = None, limit: Optional[int] = None,
              operator: Operator = Depends(current_operator)):
    return CirculationAPI.get_items(offset=offset, limit=limit)

@router.get("/items/{item_code}", response_model=Item)
@releases_session
def get_item(item_code: str, operator: Operator = Depends(current_operator)):
    try:
        return CirculationAPI.get_item(item_code)
    except CirculationError as e:
        raise http_error(e)

@router.get("/items/{item_code}/deactivatable")
@releases_session
def item_deactivatable(item_code: str, operator: Operator = Depends(current_operator)):
    try:
        return {"item_code": item_code, "deactivatable": CirculationAPI.can_deactivate(item_code)}
    except CirculationError as e:
        raise http_error(e)

@router.post("/items/{item_code}/activate", response_model=Item)
@releases_session
def activate_item(item_code: str, operator: Operator = Depends(admin_operator)):
    try:
        CirculationAPI.set_item_active(item_code, True, operator.operator_id)
        return CirculationAPI.get_item(item_code)
    except CirculationError as e:
        raise http_error(e)

@router.post("/items/{item_code}/deactivate", response_model=Item)
@releases_session
def deactivate_item(item_code: str, operator: Operator = Depends(admin_operator)):
    try:
        CirculationAPI.set_item_active(item_code, False, operator.operator_id)
        return CirculationAPI.get_item(item_code)
    except CirculationError as e:
        raise http_error(e)

@router.post("/loans", response_model=LoanIssued, status_code=status.HTTP_201_CREATED)
@releases_session
def issue_loan(body: IssueRequest, operator: Operator = Depends(current_operator)):
    try:
        loan_id = CirculationAPI.issue(
            body.item_code, operator.operator_id, body.recipient,
            body.quantity, body.days)
        return {"loan_id": loan_id}
    except CirculationError as e:
        raise http_error(e)

@router.get("/loans/open", response_model=List[Loan])
@releases_session
def open_loans(q: Optional[str] = None, operator: Operator = Depends(current_operator)):
    return CirculationAPI.open_loans(q)

@router.get("/loans/history", response_model=List[Loan])
@releases_session
def loan_history(start: Optional[date] = None, end: Optional[date] = None,
                 q: Optional[str] = None, operator: Operator = Depends(current_operator)):
    return CirculationAPI.history(start, end, q)

@router.get("/loans/{loan_id}", response_model=Loan)
@releases_session
def get_loan(loan_id: int, operator: Operator = Depends(current_operator)):
    try:
        return CirculationAPI.get_loan(loan_id)
    except CirculationError as e:
        raise http_error(e)

@router.post("/loans/{loan_id}/return", response_model=Loan)
@releases_session
def return_loan(loan_id: int, operator: Operator = Depends(current_operator)):
    try:
        CirculationAPI.return_loan(loan_id)
        return CirculationAPI.get_loan(loan_id)
    except CirculationError as e:
        raise http_error(e)

@router.post("/loans/{loan_id}/renew", response_model=LoanRenewed)
@releases_session
def renew_loan(loan_id: int, body: Optional[RenewRequest] = None,
               operator: Operator = Depends(current_operator)):
    body = body or RenewRequest()
    try:
        due_at = CirculationAPI.renew(loan_id, body.days)
        return {"loan_id": loan_id, "due_at": due_at}
    except CirculationError as e:
        raise http_error(e)

@router.get("/audit", response_model=List[AuditEvent])
@releases_session
def recent_audit(limit: Optional[int] = None, operator: Operator = Depends(current_operator)):
    return CirculationAPI.recent_audit(limit)
