"""/v1/transactions - transaction mutations with balance bookkeeping"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from household_ledger.api.dependencies import get_request_id, get_services
from household_ledger.api.errors import to_http_exception
from household_ledger.api.v1.schemas import TransactionCreateRequest, TransactionResponse, TransactionUpdateRequest
from household_ledger.config import settings
from household_ledger.domain.exceptions import DomainException
from household_ledger.domain.models import TransactionChanges, TransactionDraft, TransactionType
from household_ledger.domain.visibility import FILTER_ALL, TransactionFilter
from household_ledger.services.container import LedgerServices
from household_ledger.utils.date_utils import to_wall_clock

router = APIRouter()


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    body: TransactionCreateRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    """Record income or expense; paid account transactions move the account balance"""
    draft = TransactionDraft(
        type=body.type,
        title=body.title,
        amount_cents=body.amount_cents,
        date=body.date,
        category=body.category,
        target=body.target,
        payment_method=body.payment_method,
        is_paid=body.is_paid,
        notes=body.notes,
        shared_with=[rule.to_domain() for rule in body.shared_with],
        is_household_expense=body.is_household_expense,
        shared_with_users=body.shared_with_users,
    )
    try:
        transaction = await services.transactions.create_transaction(draft, body.user_id, body.household_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return TransactionResponse.from_domain(transaction)


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    request: Request,
    household_id: str = Query(..., min_length=1),
    viewer_id: str = Query(..., min_length=1),
    filter_by: str = FILTER_ALL,
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    services: LedgerServices = Depends(get_services),
):
    """Household transactions visible to viewer_id, newest first"""
    filters = TransactionFilter(
        start_date=to_wall_clock(start_date, settings.household_timezone),
        end_date=to_wall_clock(end_date, settings.household_timezone),
        category=category,
        type=type,
        filter_by=filter_by,
    )
    try:
        transactions = await services.transactions.list_transactions(household_id, viewer_id, filters)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return [TransactionResponse.from_domain(t) for t in transactions]


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        transaction = await services.transactions.get_transaction(transaction_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return TransactionResponse.from_domain(transaction)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: str,
    body: TransactionUpdateRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    """Sparse update; balances follow changes of amount, type, paid flag and payment method"""
    changes = TransactionChanges(
        type=body.type,
        title=body.title,
        amount_cents=body.amount_cents,
        date=body.date,
        category=body.category,
        notes=body.notes,
        target=body.target,
        payment_method=body.payment_method,
        is_paid=body.is_paid,
        shared_with=[rule.to_domain() for rule in body.shared_with] if body.shared_with is not None else None,
        is_household_expense=body.is_household_expense,
        shared_with_users=body.shared_with_users,
    )
    try:
        transaction = await services.transactions.update_transaction(transaction_id, changes)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return TransactionResponse.from_domain(transaction)


@router.delete("/transactions/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    """Delete and reverse any balance effect"""
    try:
        await services.transactions.delete_transaction(transaction_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return Response(status_code=204)
