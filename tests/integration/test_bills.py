"""Integration tests for bill materialization, refresh and payment"""

import asyncio
import pytest
from datetime import datetime
from conftest import HOUSEHOLD_ID, OTHER_USER_ID, TEST_NOW, USER_ID
from household_ledger.domain.exceptions import (
    AccountNotFoundError,
    BillNotFoundError,
    ConcurrentModificationError,
    InvalidAmountError,
    InvalidBillStateError,
    StoreError,
)
from household_ledger.domain.models import (
    Account,
    BillStatus,
    CreditCard,
    CreditCardPayment,
    TransactionDraft,
    TransactionType,
)
from household_ledger.infrastructure.database.repositories import BillRepository
from household_ledger.services.container import LedgerServices


async def _charge(services: LedgerServices, card: CreditCard, amount_cents: int, date: datetime, user_id: str = USER_ID):
    draft = TransactionDraft(
        type=TransactionType.EXPENSE,
        title="Card purchase",
        amount_cents=amount_cents,
        date=date,
        category="shopping",
        payment_method=CreditCardPayment(card.id),
    )
    return await services.transactions.create_transaction(draft, user_id, HOUSEHOLD_ID)


async def test_current_bill_materialized_for_period(services: LedgerServices, card: CreditCard):
    """Test first access creates an open bill for the current cycle"""
    bill = await services.bills.get_current_bill(card, USER_ID)

    assert bill.credit_card_id == card.id
    assert bill.user_id == USER_ID
    assert bill.start_date == datetime(2024, 1, 11)
    assert bill.closing_date == datetime(2024, 2, 10, 23, 59, 59, 999999)
    assert bill.due_date == datetime(2024, 2, 20, 23, 59, 59, 999999)
    assert bill.total_amount_cents == 0
    assert bill.paid_amount_cents == 0
    assert bill.status == BillStatus.OPEN


async def test_bill_total_sums_usage_in_period(services: LedgerServices, card: CreditCard):
    """Test only the user's card charges inside the period count"""
    inside = await _charge(services, card, 3000, datetime(2024, 1, 12, 10, 0))
    edge = await _charge(services, card, 1500, datetime(2024, 2, 10, 23, 59, 59, 999999))
    await _charge(services, card, 999, datetime(2024, 1, 10, 23, 0))  # previous cycle
    await _charge(services, card, 999, datetime(2024, 2, 11, 0, 0))  # next cycle
    await _charge(services, card, 999, datetime(2024, 1, 20), user_id=OTHER_USER_ID)

    bill = await services.bills.get_current_bill(card, USER_ID)

    assert bill.total_amount_cents == 4500
    assert bill.transaction_ids == [inside.id, edge.id]


async def test_card_usage_excludes_out_of_range(services: LedgerServices, card: CreditCard):
    """Test adding an out-of-range charge leaves the usage total unchanged"""
    start, end = datetime(2024, 1, 11), datetime(2024, 2, 10, 23, 59, 59, 999999)
    await _charge(services, card, 2000, datetime(2024, 1, 15))
    before = await services.usage.get_card_usage(card.id, USER_ID, start, end)

    await _charge(services, card, 5000, datetime(2024, 3, 1))
    after = await services.usage.get_card_usage(card.id, USER_ID, start, end)

    assert before.total == after.total == 2000


async def test_charge_in_last_second_of_closing_day_is_billed(services: LedgerServices, card: CreditCard):
    """Test a charge between 23:59:59 and midnight lands in the cycle closing that day"""
    await _charge(services, card, 500, datetime(2024, 1, 10, 23, 59, 59, 500000))

    closing_cycle = await services.bills.get_current_bill(card, USER_ID, datetime(2024, 1, 5))
    next_cycle = await services.bills.get_current_bill(card, USER_ID)

    assert closing_cycle.total_amount_cents == 500
    assert next_cycle.total_amount_cents == 0


async def test_concurrent_requests_create_one_bill(services: LedgerServices, card: CreditCard):
    """Test concurrent first accesses share one creation and one bill"""
    first, second = await asyncio.gather(
        services.bills.get_current_bill(card, USER_ID),
        services.bills.get_current_bill(card, USER_ID),
    )

    assert first.id == second.id
    assert services.bills.cache.misses == 1
    assert services.bills.cache.hits == 1
    assert len(services.bills.cache) == 0
    assert len(await services.bills.list_bills(card.id, USER_ID)) == 1


async def test_repeated_requests_return_same_bill(services: LedgerServices, card: CreditCard):
    """Test later accesses find the stored bill instead of creating another"""
    first = await services.bills.get_current_bill(card, USER_ID)
    second = await services.bills.get_current_bill(card, USER_ID, reference_date=datetime(2024, 2, 1))

    assert first.id == second.id
    assert len(await services.bills.list_bills(card.id, USER_ID)) == 1


async def test_bills_are_per_user(services: LedgerServices, card: CreditCard):
    """Test each member gets their own bill for a shared card"""
    mine = await services.bills.get_current_bill(card, USER_ID)
    theirs = await services.bills.get_current_bill(card, OTHER_USER_ID)
    assert mine.id != theirs.id


async def test_failed_creation_clears_cache(services: LedgerServices, card: CreditCard, monkeypatch):
    """Test a failed creation is not cached and the next call retries"""

    async def broken_usage(*args, **kwargs):
        raise StoreError("Failed to calculate card usage")

    monkeypatch.setattr(services.usage, "get_card_usage", broken_usage)
    with pytest.raises(StoreError, match="Failed to generate credit card bill"):
        await services.bills.get_current_bill(card, USER_ID)
    assert len(services.bills.cache) == 0

    monkeypatch.undo()
    bill = await services.bills.get_current_bill(card, USER_ID)
    assert bill.status == BillStatus.OPEN


async def test_lost_insert_race_returns_existing_bill(services: LedgerServices, card: CreditCard, monkeypatch):
    """Test a duplicate insert re-reads the bill created by the other writer"""
    existing = await services.bills.get_current_bill(card, USER_ID)

    original_find = BillRepository.find_by_period
    calls = []

    async def miss_first_lookup(self, *args):
        calls.append(args)
        if len(calls) == 1:
            return None
        return await original_find(self, *args)

    monkeypatch.setattr(BillRepository, "find_by_period", miss_first_lookup)
    bill = await services.bills.get_current_bill(card, USER_ID)

    assert bill.id == existing.id
    assert len(calls) == 2
    assert len(await services.bills.list_bills(card.id, USER_ID)) == 1


async def test_inactive_card_has_no_current_bill(services: LedgerServices, card: CreditCard):
    """Test deactivated cards do not materialize bills"""
    await services.cards.deactivate_card(card.id)
    inactive = await services.cards.get_card(card.id)

    assert await services.bills.get_current_bill(inactive, USER_ID) is None
    assert await services.bills.list_bills(card.id, USER_ID) == []


async def test_refresh_picks_up_new_charges(services: LedgerServices, card: CreditCard):
    """Test refresh brings an open bill's total in line with usage"""
    bill = await services.bills.get_current_bill(card, USER_ID)
    charge = await _charge(services, card, 2500, datetime(2024, 1, 20))

    refreshed = await services.bills.refresh_bill_total(bill)

    assert refreshed.id == bill.id
    assert refreshed.total_amount_cents == 2500
    assert refreshed.transaction_ids == [charge.id]
    assert refreshed.paid_amount_cents == 0
    assert refreshed.status == BillStatus.OPEN


async def test_refresh_without_changes_is_noop(services: LedgerServices, card: CreditCard):
    """Test refresh leaves an up-to-date bill untouched"""
    await _charge(services, card, 2500, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)

    refreshed = await services.bills.refresh_bill_total(bill)

    assert refreshed.version == bill.version
    assert refreshed.total_amount_cents == 2500


async def test_refresh_skips_closed_bills(services: LedgerServices, card: CreditCard):
    """Test closed bills keep their total"""
    bill = await services.bills.get_current_bill(card, USER_ID)
    closed = await services.bills.close_bill(bill.id)
    await _charge(services, card, 2500, datetime(2024, 1, 20))

    refreshed = await services.bills.refresh_bill_total(closed)

    assert refreshed.status == BillStatus.CLOSED
    assert refreshed.total_amount_cents == 0


async def test_pay_bill_in_full(services: LedgerServices, card: CreditCard):
    """Test paying the total marks the bill paid and debits the account"""
    payer = await services.accounts.create_account(USER_ID, HOUSEHOLD_ID, "Savings", initial_balance_cents=50000)
    await _charge(services, card, 20000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)
    assert bill.total_amount_cents == 20000

    paid = await services.bills.pay_bill(bill.id, payer.id, 20000)

    assert paid.paid_amount_cents == 20000
    assert paid.status == BillStatus.PAID
    assert paid.paid_at == TEST_NOW
    assert paid.payment_account_id == payer.id
    assert (await services.accounts.get_account(payer.id)).balance_cents == 30000


async def test_partial_payment_keeps_status(services: LedgerServices, card: CreditCard, account: Account):
    """Test a payment below the total leaves the bill open"""
    await _charge(services, card, 20000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)

    partial = await services.bills.pay_bill(bill.id, account.id, 5000)

    assert partial.paid_amount_cents == 5000
    assert partial.status == BillStatus.OPEN
    assert partial.paid_at is None
    assert (await services.accounts.get_account(account.id)).balance_cents == 5000

    paid = await services.bills.pay_bill(bill.id, account.id, 15000)
    assert paid.status == BillStatus.PAID
    assert (await services.accounts.get_account(account.id)).balance_cents == -10000


async def test_overpayment_is_recorded(services: LedgerServices, card: CreditCard, account: Account):
    """Test the processor records more than the total without clamping"""
    await _charge(services, card, 1000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)

    paid = await services.bills.pay_bill(bill.id, account.id, 1500)

    assert paid.paid_amount_cents == 1500
    assert paid.status == BillStatus.PAID


@pytest.mark.parametrize("amount_cents", [0, -100])
async def test_pay_bill_rejects_non_positive_amount(
    services: LedgerServices, card: CreditCard, account: Account, amount_cents: int
):
    """Test non-positive payments fail before touching the store"""
    bill = await services.bills.get_current_bill(card, USER_ID)

    with pytest.raises(InvalidAmountError):
        await services.bills.pay_bill(bill.id, account.id, amount_cents)
    assert (await services.accounts.get_account(account.id)).balance_cents == 10000


async def test_pay_missing_bill(services: LedgerServices, account: Account):
    """Test paying an unknown bill raises not found"""
    with pytest.raises(BillNotFoundError):
        await services.bills.pay_bill("missing", account.id, 1000)


async def test_pay_from_missing_account_leaves_bill_unchanged(services: LedgerServices, card: CreditCard):
    """Test an unknown account aborts the whole payment"""
    await _charge(services, card, 1000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)

    with pytest.raises(AccountNotFoundError):
        await services.bills.pay_bill(bill.id, "missing", 1000)

    unchanged = await services.bills.get_bill(bill.id)
    assert unchanged.paid_amount_cents == 0
    assert unchanged.status == BillStatus.OPEN


async def test_concurrent_payment_rolls_back_debit(
    services: LedgerServices, card: CreditCard, account: Account, monkeypatch
):
    """Test a lost compare-and-swap on the bill undoes the account debit"""
    await _charge(services, card, 1000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)

    async def lose_race(self, bill_id, expected_version, values):
        return False

    monkeypatch.setattr(BillRepository, "update_versioned", lose_race)
    with pytest.raises(ConcurrentModificationError):
        await services.bills.pay_bill(bill.id, account.id, 1000)
    monkeypatch.undo()

    assert (await services.accounts.get_account(account.id)).balance_cents == 10000
    assert (await services.bills.get_bill(bill.id)).paid_amount_cents == 0


async def test_close_bill_rejects_paid(services: LedgerServices, card: CreditCard, account: Account):
    """Test paid bills cannot be closed"""
    await _charge(services, card, 1000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)
    await services.bills.pay_bill(bill.id, account.id, 1000)

    with pytest.raises(InvalidBillStateError):
        await services.bills.close_bill(bill.id)


async def test_card_summary(services: LedgerServices, card: CreditCard, account: Account):
    """Test summary reflects live usage, payments and remaining limit"""
    await _charge(services, card, 3000, datetime(2024, 1, 20))
    bill = await services.bills.get_current_bill(card, USER_ID)
    await services.bills.pay_bill(bill.id, account.id, 1000)
    await _charge(services, card, 500, datetime(2024, 1, 25))

    summary = await services.bills.get_card_summary(card, USER_ID)

    assert summary.bill.id == bill.id
    assert summary.bill.total_amount_cents == 3500
    assert summary.bill.paid_amount_cents == 1000
    assert summary.usage_cents == 3500
    assert summary.outstanding_cents == 2500
    assert summary.available_limit_cents == 497500


async def test_list_user_bills_latest_first(services: LedgerServices, card: CreditCard):
    """Test a user's bills across cycles are listed by due date descending"""
    january = await services.bills.get_current_bill(card, USER_ID, reference_date=datetime(2024, 1, 5))
    february = await services.bills.get_current_bill(card, USER_ID)

    bills = await services.bills.list_user_bills(USER_ID)

    assert [b.id for b in bills] == [february.id, january.id]
