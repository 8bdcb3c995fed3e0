"""/v1/cards - credit cards and their current bill"""

from fastapi import APIRouter, Depends, Query, Request

from household_ledger.api.dependencies import get_request_id, get_services
from household_ledger.api.errors import to_http_exception
from household_ledger.api.v1.schemas import (
    BillResponse,
    CardBillSummaryResponse,
    CreditCardCreateRequest,
    CreditCardResponse,
)
from household_ledger.domain.exceptions import DomainException
from household_ledger.services.container import LedgerServices

router = APIRouter()


@router.post("/cards", response_model=CreditCardResponse, status_code=201)
async def create_card(
    body: CreditCardCreateRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        card = await services.cards.create_card(
            user_id=body.user_id,
            household_id=body.household_id,
            name=body.name,
            last_four_digits=body.last_four_digits,
            limit_cents=body.limit_cents,
            closing_day=body.closing_day,
            due_day=body.due_day,
            color=body.color,
            icon=body.icon,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return CreditCardResponse.model_validate(card)


@router.get("/cards/{card_id}", response_model=CreditCardResponse)
async def get_card(
    card_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        card = await services.cards.get_card(card_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return CreditCardResponse.model_validate(card)


@router.get("/cards/{card_id}/current-bill", response_model=CardBillSummaryResponse)
async def get_current_bill(
    card_id: str,
    request: Request,
    user_id: str = Query(..., min_length=1),
    services: LedgerServices = Depends(get_services),
):
    """
    Resolve the card's bill for the current period, creating it on first access,
    and refresh its total against live usage.
    """
    try:
        card = await services.cards.get_card(card_id)
        summary = await services.bills.get_card_summary(card, user_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return CardBillSummaryResponse(
        bill=BillResponse.from_domain(summary.bill, services.bills.clock()) if summary.bill else None,
        usage_cents=summary.usage_cents,
        outstanding_cents=summary.outstanding_cents,
        available_limit_cents=summary.available_limit_cents,
    )
