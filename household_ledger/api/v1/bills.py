"""/v1/bills - bill listing, payment and closing"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from household_ledger.api.dependencies import get_request_id, get_services
from household_ledger.api.errors import to_http_exception
from household_ledger.api.v1.schemas import BillListResponse, BillPaymentRequest, BillResponse
from household_ledger.config import settings
from household_ledger.domain.billing import remaining_amount
from household_ledger.domain.exceptions import DomainException
from household_ledger.services.container import LedgerServices
from household_ledger.utils.money import format_cents

router = APIRouter()


@router.get("/bills", response_model=BillListResponse)
async def list_bills(
    request: Request,
    user_id: str = Query(..., min_length=1),
    card_id: Optional[str] = None,
    services: LedgerServices = Depends(get_services),
):
    """Bills for a user, optionally for one card, latest due date first"""
    try:
        if card_id:
            bills = await services.bills.list_bills(card_id, user_id)
        else:
            bills = await services.bills.list_user_bills(user_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return BillListResponse(user_id=user_id, bills=[BillResponse.from_domain(b, services.bills.clock()) for b in bills])


@router.get("/bills/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        bill = await services.bills.get_bill(bill_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return BillResponse.from_domain(bill, services.bills.clock())


@router.post("/bills/{bill_id}/payments", response_model=BillResponse)
async def pay_bill(
    bill_id: str,
    body: BillPaymentRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    """
    Pay a bill from a bank account.

    Flow:
    1. Reject amounts above the remaining balance (when overpayment is disabled)
    2. Debit the account and record the payment in one database transaction
    3. Mark the bill paid once the paid amount reaches the total
    """
    request_id = get_request_id(request)
    try:
        if settings.reject_bill_overpayment:
            bill = await services.bills.get_bill(bill_id)
            remaining = remaining_amount(bill)
            if body.amount_cents > remaining:
                raise HTTPException(
                    status_code=422,
                    detail=f"Payment of {format_cents(body.amount_cents)} exceeds the remaining {format_cents(remaining)}",
                )
        paid_bill = await services.bills.pay_bill(bill_id, body.account_id, body.amount_cents)
    except DomainException as e:
        raise to_http_exception(e, request_id)
    return BillResponse.from_domain(paid_bill, services.bills.clock())


@router.post("/bills/{bill_id}/close", response_model=BillResponse)
async def close_bill(
    bill_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        bill = await services.bills.close_bill(bill_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return BillResponse.from_domain(bill, services.bills.clock())
