"""Pydantic schemas for API request/response validation

Amounts arrive as major-unit strings from forms and are converted to
integer cents here; responses always carry cents.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from household_ledger.config import settings
from household_ledger.domain.billing import effective_status, remaining_amount
from household_ledger.domain.models import (
    AccountType,
    BillStatus,
    CreditCardBill,
    NO_PAYMENT,
    PaymentMethod,
    SplitRule,
    Transaction,
    TransactionTarget,
    TransactionType,
    payment_method_from_ids,
)
from household_ledger.domain.splits import calculate_split
from household_ledger.utils.date_utils import to_wall_clock
from household_ledger.utils.money import parse_amount_to_cents


def _to_cents(value: Any) -> Any:
    if value is None:
        return value
    return parse_amount_to_cents(value)


def _to_household_time(value: Optional[datetime]) -> Optional[datetime]:
    return to_wall_clock(value, settings.household_timezone)


class SplitRuleSchema(BaseModel):
    user_id: str = Field(..., min_length=1)
    percentage: float = Field(..., gt=0, le=100)

    model_config = ConfigDict(from_attributes=True)

    def to_domain(self) -> SplitRule:
        return SplitRule(user_id=self.user_id, percentage=self.percentage)


class TransactionCreateRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    user_id: str = Field(..., min_length=1, description="Creator and payer")
    household_id: str = Field(..., min_length=1)
    type: TransactionType
    title: str = Field(..., min_length=1)
    amount_cents: int = Field(..., ge=0, validation_alias="amount", description="Amount in major units, e.g. '12.50'")
    date: datetime
    category: str = Field(..., min_length=1)
    target: TransactionTarget = TransactionTarget.PERSONAL
    notes: Optional[str] = None
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None
    is_paid: Optional[bool] = None
    shared_with: List[SplitRuleSchema] = Field(default_factory=list)
    is_household_expense: Optional[bool] = None
    shared_with_users: List[str] = Field(default_factory=list)

    @field_validator("amount_cents", mode="before")
    @classmethod
    def parse_amount(cls, value: Any) -> Any:
        return _to_cents(value)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_household_time(value)

    @model_validator(mode="after")
    def check_payment_method(self) -> "TransactionCreateRequest":
        if self.account_id and self.credit_card_id:
            raise ValueError("Choose either account_id or credit_card_id, not both")
        return self

    @property
    def payment_method(self) -> PaymentMethod:
        return payment_method_from_ids(self.account_id, self.credit_card_id)


class TransactionUpdateRequest(BaseModel):
    """Request body for PATCH /v1/transactions/{id}; omitted fields are untouched

    Send account_id or credit_card_id as null to detach the payment method.
    """

    type: Optional[TransactionType] = None
    title: Optional[str] = None
    amount_cents: Optional[int] = Field(None, ge=0, validation_alias="amount")
    date: Optional[datetime] = None
    category: Optional[str] = None
    target: Optional[TransactionTarget] = None
    notes: Optional[str] = None
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None
    is_paid: Optional[bool] = None
    shared_with: Optional[List[SplitRuleSchema]] = None
    is_household_expense: Optional[bool] = None
    shared_with_users: Optional[List[str]] = None

    @field_validator("amount_cents", mode="before")
    @classmethod
    def parse_amount(cls, value: Any) -> Any:
        return _to_cents(value)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_household_time(value)

    @model_validator(mode="after")
    def check_payment_method(self) -> "TransactionUpdateRequest":
        if self.account_id and self.credit_card_id:
            raise ValueError("Choose either account_id or credit_card_id, not both")
        return self

    @property
    def payment_method(self) -> Optional[PaymentMethod]:
        """None when the request does not touch the payment method"""
        touched = {"account_id", "credit_card_id"} & self.model_fields_set
        if not touched:
            return None
        if not self.account_id and not self.credit_card_id:
            return NO_PAYMENT
        return payment_method_from_ids(self.account_id, self.credit_card_id)


class TransactionResponse(BaseModel):
    id: str
    household_id: str
    type: TransactionType
    title: str
    amount_cents: int
    date: datetime
    category: str
    created_by: str
    payer_id: str
    target: TransactionTarget
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None
    is_paid: bool
    notes: Optional[str] = None
    shared_with: List[SplitRuleSchema] = Field(default_factory=list)
    is_household_expense: bool = False
    shared_with_users: List[str] = Field(default_factory=list)
    split_cents: Dict[str, int] = Field(
        default_factory=dict, description="Per-member share; positive owes the payer, negative is owed"
    )

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionResponse":
        return cls.model_validate(transaction).model_copy(update={"split_cents": calculate_split(transaction)})


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    user_id: str = Field(..., min_length=1)
    household_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: AccountType = AccountType.CHECKING
    initial_balance_cents: int = Field(0, validation_alias="initial_balance")
    color: str = ""
    icon: str = ""

    @field_validator("initial_balance_cents", mode="before")
    @classmethod
    def parse_balance(cls, value: Any) -> Any:
        return _to_cents(value)


class AccountUpdateRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[AccountType] = None
    initial_balance_cents: Optional[int] = Field(None, validation_alias="initial_balance")
    color: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("initial_balance_cents", mode="before")
    @classmethod
    def parse_balance(cls, value: Any) -> Any:
        return _to_cents(value)


class AccountResponse(BaseModel):
    id: str
    household_id: str
    owner_id: str
    name: str
    type: AccountType
    balance_cents: int
    initial_balance_cents: int
    is_active: bool
    color: str
    icon: str

    model_config = ConfigDict(from_attributes=True)


class CreditCardCreateRequest(BaseModel):
    """Request body for POST /v1/cards"""

    user_id: str = Field(..., min_length=1)
    household_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    last_four_digits: str = Field(..., pattern=r"^\d{4}$")
    limit_cents: int = Field(..., ge=0, validation_alias="limit")
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)
    color: str = ""
    icon: str = ""

    @field_validator("limit_cents", mode="before")
    @classmethod
    def parse_limit(cls, value: Any) -> Any:
        return _to_cents(value)


class CreditCardResponse(BaseModel):
    id: str
    household_id: str
    owner_id: str
    name: str
    last_four_digits: str
    limit_cents: int
    closing_day: int
    due_day: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    id: str
    credit_card_id: str
    user_id: str
    start_date: datetime
    closing_date: datetime
    due_date: datetime
    total_amount_cents: int
    paid_amount_cents: int
    remaining_cents: int
    status: BillStatus
    transaction_ids: List[str]
    payment_account_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, bill: CreditCardBill, now: Optional[datetime] = None) -> "BillResponse":
        """Remaining amount and display status (overdue is derived, not stored)"""
        return cls(
            id=bill.id,
            credit_card_id=bill.credit_card_id,
            user_id=bill.user_id,
            start_date=bill.start_date,
            closing_date=bill.closing_date,
            due_date=bill.due_date,
            total_amount_cents=bill.total_amount_cents,
            paid_amount_cents=bill.paid_amount_cents,
            remaining_cents=remaining_amount(bill),
            status=effective_status(bill, now),
            transaction_ids=bill.transaction_ids,
            payment_account_id=bill.payment_account_id,
            paid_at=bill.paid_at,
        )


class CardBillSummaryResponse(BaseModel):
    """Response for GET /v1/cards/{card_id}/current-bill"""

    bill: Optional[BillResponse] = None
    usage_cents: int
    outstanding_cents: int
    available_limit_cents: int


class BillPaymentRequest(BaseModel):
    """Request body for POST /v1/bills/{bill_id}/payments"""

    account_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, validation_alias="amount", description="Payment in major units")

    @field_validator("amount_cents", mode="before")
    @classmethod
    def parse_amount(cls, value: Any) -> Any:
        return _to_cents(value)


class BillListResponse(BaseModel):
    user_id: str
    bills: List[BillResponse]
