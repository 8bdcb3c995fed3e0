"""Credit card bills: materialization, total refresh and payment"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.billing import available_limit, calculate_billing_period
from household_ledger.domain.exceptions import (
    BillNotFoundError,
    ConcurrentModificationError,
    InvalidAmountError,
    InvalidBillStateError,
    StoreError,
)
from household_ledger.domain.models import (
    BillingPeriod,
    BillStatus,
    CardBillSummary,
    CardUsage,
    CreditCard,
    CreditCardBill,
)
from household_ledger.infrastructure.changefeed import ACCOUNTS, BILLS, ChangeFeed, Listener, Unsubscribe
from household_ledger.infrastructure.database.repositories import BillRepository
from household_ledger.infrastructure.database.session import unit_of_work
from household_ledger.infrastructure.observability.logging import log_bill_payment
from household_ledger.infrastructure.observability.metrics import (
    bill_cache_hits_counter,
    bills_materialized_counter,
    record_bill_payment,
)
from household_ledger.services.ledger import AccountLedger
from household_ledger.services.usage import UsageAggregator

logger = logging.getLogger(__name__)

# (credit_card_id, user_id, closing_date)
BillKey = Tuple[str, str, datetime]

REFRESHABLE_STATUSES = (BillStatus.OPEN, BillStatus.OVERDUE)
CLOSABLE_STATUSES = (BillStatus.OPEN, BillStatus.OVERDUE)


class BillCreationCache:
    """
    In-flight current-bill resolutions keyed by (card, user, closing date).

    Concurrent requests for the same key share one task, so only one of them
    can create the bill. Entries are dropped as soon as the task finishes,
    whether it succeeded or failed. This only protects a single process; the
    unique index on bills covers writers in other processes.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[BillKey, asyncio.Task] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._in_flight)

    def __contains__(self, key: BillKey) -> bool:
        return key in self._in_flight

    async def run(self, key: BillKey, factory: Callable[[], Awaitable[CreditCardBill]]) -> CreditCardBill:
        task = self._in_flight.get(key)
        if task is not None:
            self.hits += 1
            bill_cache_hits_counter.inc()
        else:
            self.misses += 1
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._release(key, done))

        # A cancelled caller must not cancel the shared creation
        return await asyncio.shield(task)

    def clear(self) -> None:
        self._in_flight.clear()
        self.hits = 0
        self.misses = 0

    def _release(self, key: BillKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]


class BillService:
    """Resolves, refreshes, pays and closes credit card bills"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        usage: UsageAggregator,
        ledger: AccountLedger,
        cache: Optional[BillCreationCache] = None,
        feed: Optional[ChangeFeed] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.usage = usage
        self.ledger = ledger
        self.cache = cache if cache is not None else BillCreationCache()
        self.feed = feed if feed is not None else ChangeFeed()
        self.clock = clock

    async def get_current_bill(
        self,
        card: CreditCard,
        user_id: str,
        reference_date: Optional[datetime] = None,
    ) -> Optional[CreditCardBill]:
        """
        Return the bill for the card's current period, creating it on first access.

        Inactive cards have no current bill and return None.

        Raises:
            StoreError: if the bill could not be read or created
        """
        if not card.is_active:
            return None

        period = calculate_billing_period(card.closing_day, card.due_day, reference_date or self.clock())
        key = (card.id, user_id, period.end_date)
        return await self.cache.run(key, lambda: self._get_or_create_bill(card, user_id, period))

    async def _get_or_create_bill(self, card: CreditCard, user_id: str, period: BillingPeriod) -> CreditCardBill:
        try:
            async with self.session_factory() as db:
                bills = BillRepository(db)
                existing = await bills.find_by_period(card.id, user_id, period.end_date)
                if existing is not None:
                    bills_materialized_counter.labels(outcome="existing").inc()
                    return existing

                usage = await self.usage.get_card_usage(card.id, user_id, period.start_date, period.end_date)
                try:
                    bill = await bills.create(
                        credit_card_id=card.id,
                        household_id=card.household_id,
                        user_id=user_id,
                        start_date=period.start_date,
                        closing_date=period.end_date,
                        due_date=period.due_date,
                        total_amount_cents=usage.total,
                        paid_amount_cents=0,
                        status=BillStatus.OPEN.value,
                        transaction_ids=usage.transaction_ids,
                    )
                    await db.commit()
                except IntegrityError:
                    # Another process inserted the same (card, user, closing date)
                    await db.rollback()
                    winner = await bills.find_by_period(card.id, user_id, period.end_date)
                    if winner is None:
                        raise
                    logger.info("Bill created concurrently elsewhere", extra={"bill_id": winner.id})
                    bills_materialized_counter.labels(outcome="existing").inc()
                    return winner

        except (SQLAlchemyError, StoreError) as e:
            logger.exception(
                "Bill generation failed",
                extra={"credit_card_id": card.id, "user_id": user_id},
            )
            raise StoreError("Failed to generate credit card bill") from e

        bills_materialized_counter.labels(outcome="created").inc()
        logger.info(
            "Bill created",
            extra={"bill_id": bill.id, "credit_card_id": card.id, "user_id": user_id, "total_cents": bill.total_amount_cents},
        )
        self.feed.notify(BILLS)
        return bill

    async def refresh_bill_total(self, bill: CreditCardBill) -> CreditCardBill:
        """
        Bring an open bill's total in line with the live card usage.

        Transactions added or edited after materialization are picked up here.
        Closed and paid bills are returned untouched, and paid amount and
        status are never changed.
        """
        if bill.status not in REFRESHABLE_STATUSES:
            return bill
        usage = await self.usage.get_card_usage(bill.credit_card_id, bill.user_id, bill.start_date, bill.closing_date)
        return await self._apply_usage(bill, usage)

    async def _apply_usage(self, bill: CreditCardBill, usage: CardUsage) -> CreditCardBill:
        if bill.status not in REFRESHABLE_STATUSES or usage.total == bill.total_amount_cents:
            return bill

        async with unit_of_work(self.session_factory, "Failed to update bill total") as db:
            bills = BillRepository(db)
            updated = await bills.update_versioned(
                bill.id,
                bill.version,
                {"total_amount_cents": usage.total, "transaction_ids": usage.transaction_ids},
            )
            current = await bills.get(bill.id)

        if current is None:
            raise BillNotFoundError(bill.id)
        if not updated:
            # Lost to a concurrent writer; the next read refreshes again
            logger.info("Bill changed during refresh", extra={"bill_id": bill.id})
            return current

        logger.info(
            "Bill total refreshed",
            extra={"bill_id": bill.id, "previous_cents": bill.total_amount_cents, "total_cents": usage.total},
        )
        self.feed.notify(BILLS)
        return current

    async def get_card_summary(
        self,
        card: CreditCard,
        user_id: str,
        reference_date: Optional[datetime] = None,
    ) -> CardBillSummary:
        """Current bill (refreshed), live usage, outstanding amount and available limit"""
        bill = await self.get_current_bill(card, user_id, reference_date)
        if bill is None:
            return CardBillSummary(
                bill=None,
                usage_cents=0,
                outstanding_cents=0,
                available_limit_cents=available_limit(card, 0),
            )

        usage = await self.usage.get_card_usage(card.id, user_id, bill.start_date, bill.closing_date)
        bill = await self._apply_usage(bill, usage)
        outstanding = usage.total - bill.paid_amount_cents
        return CardBillSummary(
            bill=bill,
            usage_cents=usage.total,
            outstanding_cents=outstanding,
            available_limit_cents=available_limit(card, outstanding),
        )

    async def pay_bill(self, bill_id: str, account_id: str, amount_cents: int) -> CreditCardBill:
        """
        Pay a bill from a bank account.

        The account debit and the bill update commit together or not at all.
        The bill update is a compare-and-swap on its version, so two payments
        racing on one bill cannot both apply. Overpayment is recorded as-is.

        Raises:
            InvalidAmountError: amount is not positive
            BillNotFoundError / AccountNotFoundError: missing records
            ConcurrentModificationError: the bill changed during the payment
            StoreError: the store failed; nothing was applied
        """
        if amount_cents <= 0:
            raise InvalidAmountError("Payment amount must be greater than zero")

        start_time = time.time()
        async with unit_of_work(self.session_factory, "Failed to pay bill") as db:
            bills = BillRepository(db)
            bill = await bills.get(bill_id)
            if bill is None:
                raise BillNotFoundError(bill_id)

            await self.ledger.apply(db, account_id, -amount_cents)

            new_paid_amount = bill.paid_amount_cents + amount_cents
            paid_in_full = new_paid_amount >= bill.total_amount_cents
            values = {"paid_amount_cents": new_paid_amount}
            if paid_in_full:
                values.update(
                    status=BillStatus.PAID.value,
                    paid_at=self.clock(),
                    payment_account_id=account_id,
                )

            if not await bills.update_versioned(bill.id, bill.version, values):
                raise ConcurrentModificationError(f"Bill {bill_id} changed while the payment was applied")
            paid_bill = await bills.get(bill.id)

        duration_ms = (time.time() - start_time) * 1000
        record_bill_payment(paid_in_full, amount_cents)
        log_bill_payment(bill_id, account_id, amount_cents, paid_in_full, duration_ms)
        self.feed.notify(BILLS, ACCOUNTS)
        return paid_bill

    async def close_bill(self, bill_id: str) -> CreditCardBill:
        """Mark an open bill as closed"""
        async with unit_of_work(self.session_factory, "Failed to close bill") as db:
            bills = BillRepository(db)
            bill = await bills.get(bill_id)
            if bill is None:
                raise BillNotFoundError(bill_id)
            if bill.status not in CLOSABLE_STATUSES:
                raise InvalidBillStateError(f"Cannot close a bill with status '{bill.status.value}'")
            if not await bills.update_versioned(bill.id, bill.version, {"status": BillStatus.CLOSED.value}):
                raise ConcurrentModificationError(f"Bill {bill_id} changed while closing")
            closed = await bills.get(bill.id)

        self.feed.notify(BILLS)
        return closed

    async def get_bill(self, bill_id: str) -> CreditCardBill:
        async with unit_of_work(self.session_factory, "Failed to load bill") as db:
            bill = await BillRepository(db).get(bill_id)
        if bill is None:
            raise BillNotFoundError(bill_id)
        return bill

    async def list_bills(self, credit_card_id: str, user_id: str) -> List[CreditCardBill]:
        """Bills for one card and user, latest due date first"""
        async with unit_of_work(self.session_factory, "Failed to load bills") as db:
            return await BillRepository(db).list_for_card(credit_card_id, user_id)

    async def list_user_bills(self, user_id: str) -> List[CreditCardBill]:
        async with unit_of_work(self.session_factory, "Failed to load bills") as db:
            return await BillRepository(db).list_for_user(user_id)

    async def subscribe_to_bills(self, credit_card_id: str, user_id: str, on_change: Listener) -> Unsubscribe:
        return await self.feed.subscribe(BILLS, lambda: self.list_bills(credit_card_id, user_id), on_change)

    async def subscribe_to_user_bills(self, user_id: str, on_change: Listener) -> Unsubscribe:
        return await self.feed.subscribe(BILLS, lambda: self.list_user_bills(user_id), on_change)
