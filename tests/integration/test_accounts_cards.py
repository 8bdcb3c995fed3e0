"""Integration tests for account and credit card maintenance"""

import pytest
from datetime import datetime
from conftest import HOUSEHOLD_ID, OTHER_USER_ID, USER_ID
from household_ledger.domain.exceptions import (
    AccountNotFoundError,
    CreditCardNotFoundError,
    InvalidCardConfigurationError,
)
from household_ledger.domain.models import Account, AccountPayment, AccountType, CreditCard, TransactionDraft, TransactionType
from household_ledger.services.container import LedgerServices


async def test_create_account_starts_at_initial_balance(services: LedgerServices, account: Account):
    """Test new accounts hold their initial balance"""
    assert account.balance_cents == 10000
    assert account.initial_balance_cents == 10000
    assert account.type == AccountType.CHECKING
    assert account.is_active is True


async def test_adjust_balance_is_incremental(services: LedgerServices, account: Account):
    """Test successive increments accumulate and zero deltas are no-ops"""
    for _ in range(4):
        await services.ledger.adjust_balance(account.id, -250)
    await services.ledger.adjust_balance(account.id, 0)

    assert (await services.accounts.get_account(account.id)).balance_cents == 9000


async def test_adjust_balance_may_go_negative(services: LedgerServices, account: Account):
    """Test balances are not sign-checked"""
    await services.ledger.adjust_balance(account.id, -25000)
    assert (await services.accounts.get_account(account.id)).balance_cents == -15000


async def test_adjust_missing_account(services: LedgerServices):
    """Test incrementing an unknown account raises not found"""
    with pytest.raises(AccountNotFoundError):
        await services.ledger.adjust_balance("missing", 100)


async def test_initial_balance_edit_shifts_balance(services: LedgerServices, account: Account):
    """Test changing the initial balance keeps applied transactions counted"""
    draft = TransactionDraft(
        type=TransactionType.EXPENSE,
        title="Rent",
        amount_cents=3000,
        date=datetime(2024, 1, 5),
        category="housing",
        payment_method=AccountPayment(account.id),
    )
    await services.transactions.create_transaction(draft, USER_ID, HOUSEHOLD_ID)

    updated = await services.accounts.update_account(
        account.id, name="Main checking", initial_balance_cents=15000
    )

    assert updated.name == "Main checking"
    assert updated.initial_balance_cents == 15000
    assert updated.balance_cents == 12000


async def test_deactivated_accounts_hidden_from_listing(services: LedgerServices, account: Account):
    """Test soft-deleted accounts disappear from listings but remain readable"""
    other = await services.accounts.create_account(OTHER_USER_ID, HOUSEHOLD_ID, "Bob's wallet", AccountType.CASH)

    await services.accounts.deactivate_account(account.id)

    listed = await services.accounts.list_accounts(HOUSEHOLD_ID)
    assert [a.id for a in listed] == [other.id]
    assert (await services.accounts.get_account(account.id)).is_active is False


async def test_delete_account(services: LedgerServices, account: Account):
    """Test deleted accounts are gone"""
    await services.accounts.delete_account(account.id)

    with pytest.raises(AccountNotFoundError):
        await services.accounts.get_account(account.id)
    with pytest.raises(AccountNotFoundError):
        await services.accounts.delete_account(account.id)


@pytest.mark.parametrize(
    "overrides",
    [
        {"last_four_digits": "12a4"},
        {"last_four_digits": "12345"},
        {"limit_cents": -1},
        {"closing_day": 0},
        {"due_day": 32},
    ],
)
async def test_create_card_validation(services: LedgerServices, overrides):
    """Test malformed card settings are rejected"""
    fields = dict(
        user_id=USER_ID,
        household_id=HOUSEHOLD_ID,
        name="Visa",
        last_four_digits="1234",
        limit_cents=100000,
        closing_day=10,
        due_day=20,
    )
    fields.update(overrides)

    with pytest.raises(InvalidCardConfigurationError):
        await services.cards.create_card(**fields)


async def test_update_card(services: LedgerServices, card: CreditCard):
    """Test card settings can be edited and are revalidated"""
    updated = await services.cards.update_card(card.id, closing_day=5, limit_cents=800000)

    assert updated.closing_day == 5
    assert updated.limit_cents == 800000

    with pytest.raises(InvalidCardConfigurationError):
        await services.cards.update_card(card.id, due_day=40)
    with pytest.raises(InvalidCardConfigurationError):
        await services.cards.update_card(card.id, owner_id=OTHER_USER_ID)


async def test_closing_day_edit_keeps_existing_bill_period(services: LedgerServices, card: CreditCard):
    """Test bills keep the period they were materialized with"""
    bill = await services.bills.get_current_bill(card, USER_ID)
    await services.cards.update_card(card.id, closing_day=5)

    stored = await services.bills.get_bill(bill.id)
    assert stored.start_date == bill.start_date
    assert stored.closing_date == bill.closing_date


async def test_card_listing_and_lookup(services: LedgerServices, card: CreditCard):
    """Test cards list per household and unknown ids raise not found"""
    assert [c.id for c in await services.cards.list_cards(HOUSEHOLD_ID)] == [card.id]
    assert await services.cards.list_cards("other_household") == []

    await services.cards.delete_card(card.id)
    with pytest.raises(CreditCardNotFoundError):
        await services.cards.get_card(card.id)
