"""Credit card billing cycle calculation"""

from datetime import datetime, timedelta
from typing import Optional

from household_ledger.domain.exceptions import InvalidCardConfigurationError
from household_ledger.domain.models import BillingPeriod, BillStatus, CreditCard, CreditCardBill
from household_ledger.utils.date_utils import END_OF_DAY, clamp_day, shift_month


def validate_cycle_days(closing_day: int, due_day: int) -> None:
    for name, value in (("closing_day", closing_day), ("due_day", due_day)):
        if not 1 <= value <= 31:
            raise InvalidCardConfigurationError(f"{name} must be between 1 and 31, got {value}")


def calculate_billing_period(
    closing_day: int,
    due_day: int,
    reference_date: Optional[datetime] = None,
) -> BillingPeriod:
    """
    Compute the billing cycle that contains reference_date.

    Rules:
    - end_date is the closing day of the reference month at 23:59:59.999999, or of
      the following month when the reference day is already past closing
    - start_date is the day after the previous month's closing day, 00:00:00
    - due_date falls in the closing month when due_day > closing_day,
      otherwise in the month after; end of day
    - Day settings past a month's length clamp to its last day (closing day
      31 closes on April 30). If clamping puts the due day on or before the
      closing day, the due date moves to the next month.

    Example:
        closing_day=10, due_day=20, reference 2024-01-15
        → start 2024-01-11 00:00, end 2024-02-10 23:59:59.999999, due 2024-02-20 end of day
    """
    validate_cycle_days(closing_day, due_day)
    now = reference_date or datetime.now()

    closing_year, closing_month = now.year, now.month
    if now.day > clamp_day(closing_year, closing_month, closing_day):
        closing_year, closing_month = shift_month(closing_year, closing_month, 1)

    end_day = clamp_day(closing_year, closing_month, closing_day)
    end_date = datetime.combine(datetime(closing_year, closing_month, end_day).date(), END_OF_DAY)

    prev_year, prev_month = shift_month(closing_year, closing_month, -1)
    previous_close = datetime(prev_year, prev_month, clamp_day(prev_year, prev_month, closing_day))
    start_date = previous_close + timedelta(days=1)

    due_year, due_month = closing_year, closing_month
    if due_day <= closing_day or clamp_day(due_year, due_month, due_day) <= end_day:
        due_year, due_month = shift_month(due_year, due_month, 1)
    due_date = datetime.combine(
        datetime(due_year, due_month, clamp_day(due_year, due_month, due_day)).date(),
        END_OF_DAY,
    )

    return BillingPeriod(start_date=start_date, end_date=end_date, due_date=due_date)


def remaining_amount(bill: CreditCardBill) -> int:
    """Amount still owed on a bill, never negative"""
    return max(bill.total_amount_cents - bill.paid_amount_cents, 0)


def effective_status(bill: CreditCardBill, now: Optional[datetime] = None) -> BillStatus:
    """Status for display: open/closed bills past due with a balance are overdue"""
    now = now or datetime.now()
    if (
        bill.status in (BillStatus.OPEN, BillStatus.CLOSED)
        and now > bill.due_date
        and bill.paid_amount_cents < bill.total_amount_cents
    ):
        return BillStatus.OVERDUE
    return bill.status


def available_limit(card: CreditCard, outstanding_cents: int) -> int:
    return card.limit_cents - outstanding_cents
