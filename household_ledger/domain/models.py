"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from household_ledger.domain.exceptions import InvalidPaymentMethodError


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionTarget(str, Enum):
    PERSONAL = "personal"
    HOUSEHOLD = "household"
    SHARED = "shared"


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    CASH = "cash"


class BillStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class AccountPayment:
    """Transaction settled through a bank account"""

    account_id: str


@dataclass(frozen=True)
class CreditCardPayment:
    """Transaction charged to a credit card"""

    credit_card_id: str


@dataclass(frozen=True)
class NoPayment:
    """Cash or otherwise untracked payment"""


PaymentMethod = Union[AccountPayment, CreditCardPayment, NoPayment]

NO_PAYMENT = NoPayment()


def payment_method_from_ids(account_id: Optional[str], credit_card_id: Optional[str]) -> PaymentMethod:
    """Build the payment method variant from the two optional storage fields"""
    if account_id and credit_card_id:
        raise InvalidPaymentMethodError("A transaction cannot use a bank account and a credit card at the same time")
    if account_id:
        return AccountPayment(account_id)
    if credit_card_id:
        return CreditCardPayment(credit_card_id)
    return NO_PAYMENT


@dataclass
class SplitRule:
    """Share of a shared transaction assigned to one member"""

    user_id: str
    percentage: float  # 0-100


@dataclass
class Account:
    """Bank account with a running balance in cents"""

    id: str
    household_id: str
    owner_id: str
    name: str
    type: AccountType
    balance_cents: int
    initial_balance_cents: int
    is_active: bool = True
    color: str = ""
    icon: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class CreditCard:
    """Credit card and its monthly billing configuration"""

    id: str
    household_id: str
    owner_id: str
    name: str
    last_four_digits: str
    limit_cents: int
    closing_day: int  # 1-31
    due_day: int  # 1-31
    is_active: bool = True
    color: str = ""
    icon: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Transaction:
    """Income or expense; amount is never negative, the sign comes from type"""

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
    payment_method: PaymentMethod = NO_PAYMENT
    is_paid: bool = True
    notes: Optional[str] = None
    shared_with: List[SplitRule] = field(default_factory=list)
    is_household_expense: bool = False
    shared_with_users: List[str] = field(default_factory=list)
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def account_id(self) -> Optional[str]:
        if isinstance(self.payment_method, AccountPayment):
            return self.payment_method.account_id
        return None

    @property
    def credit_card_id(self) -> Optional[str]:
        if isinstance(self.payment_method, CreditCardPayment):
            return self.payment_method.credit_card_id
        return None


@dataclass
class TransactionDraft:
    """Form data for a new transaction, amounts already converted to cents"""

    type: TransactionType
    title: str
    amount_cents: int
    date: datetime
    category: str
    target: TransactionTarget = TransactionTarget.PERSONAL
    payment_method: PaymentMethod = NO_PAYMENT
    is_paid: Optional[bool] = None  # None: inferred from the date
    notes: Optional[str] = None
    shared_with: List[SplitRule] = field(default_factory=list)
    is_household_expense: Optional[bool] = None
    shared_with_users: List[str] = field(default_factory=list)


@dataclass
class TransactionChanges:
    """Sparse update; None means "leave untouched"

    Use NO_PAYMENT for payment_method to detach the transaction from any
    account or card, and an empty list for shared_with_users to clear it.
    """

    type: Optional[TransactionType] = None
    title: Optional[str] = None
    amount_cents: Optional[int] = None
    date: Optional[datetime] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    target: Optional[TransactionTarget] = None
    payment_method: Optional[PaymentMethod] = None
    is_paid: Optional[bool] = None
    shared_with: Optional[List[SplitRule]] = None
    is_household_expense: Optional[bool] = None
    shared_with_users: Optional[List[str]] = None


@dataclass
class CreditCardBill:
    """Bill for one (card, user, closing date)"""

    id: str
    credit_card_id: str
    household_id: str
    user_id: str
    start_date: datetime
    closing_date: datetime
    due_date: datetime
    total_amount_cents: int
    paid_amount_cents: int = 0
    status: BillStatus = BillStatus.OPEN
    transaction_ids: List[str] = field(default_factory=list)
    payment_account_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BillingPeriod:
    """One card billing cycle"""

    start_date: datetime
    end_date: datetime
    due_date: datetime


@dataclass
class CardUsage:
    """Transactions charged to a card in a period and their sum"""

    total: int
    transactions: List[Transaction]

    @property
    def transaction_ids(self) -> List[str]:
        return [t.id for t in self.transactions]


@dataclass
class CardBillSummary:
    """Current bill plus live usage figures for a card"""

    bill: Optional[CreditCardBill]
    usage_cents: int
    outstanding_cents: int
    available_limit_cents: int
