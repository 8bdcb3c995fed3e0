"""/v1/accounts - bank account maintenance"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from household_ledger.api.dependencies import get_request_id, get_services
from household_ledger.api.errors import to_http_exception
from household_ledger.api.v1.schemas import AccountCreateRequest, AccountResponse, AccountUpdateRequest
from household_ledger.domain.exceptions import DomainException
from household_ledger.services.container import LedgerServices

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=201)
async def create_account(
    body: AccountCreateRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        account = await services.accounts.create_account(
            user_id=body.user_id,
            household_id=body.household_id,
            name=body.name,
            account_type=body.type,
            initial_balance_cents=body.initial_balance_cents,
            color=body.color,
            icon=body.icon,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return AccountResponse.model_validate(account)


@router.get("/accounts", response_model=List[AccountResponse])
async def list_accounts(
    request: Request,
    household_id: str = Query(..., min_length=1),
    owner_id: Optional[str] = None,
    services: LedgerServices = Depends(get_services),
):
    try:
        accounts = await services.accounts.list_accounts(household_id, owner_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return [AccountResponse.model_validate(a) for a in accounts]


@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        account = await services.accounts.get_account(account_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return AccountResponse.model_validate(account)


@router.patch("/accounts/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: str,
    body: AccountUpdateRequest,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    """Edit an account; a new initial balance shifts the running balance by the difference"""
    try:
        account = await services.accounts.update_account(
            account_id,
            name=body.name,
            account_type=body.type,
            initial_balance_cents=body.initial_balance_cents,
            color=body.color,
            icon=body.icon,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return AccountResponse.model_validate(account)


@router.post("/accounts/{account_id}/deactivate", status_code=204)
async def deactivate_account(
    account_id: str,
    request: Request,
    services: LedgerServices = Depends(get_services),
):
    try:
        await services.accounts.deactivate_account(account_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return Response(status_code=204)
