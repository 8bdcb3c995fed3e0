"""Transaction create/update/delete with account balance bookkeeping"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.exceptions import (
    ConcurrentModificationError,
    InvalidAmountError,
    TransactionNotFoundError,
)
from household_ledger.domain.ledger import balance_adjustments, balance_effect, effect_of
from household_ledger.domain.models import (
    AccountPayment,
    CreditCardPayment,
    PaymentMethod,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionTarget,
)
from household_ledger.domain.splits import create_equal_split, validate_split_rules
from household_ledger.domain.visibility import TransactionFilter, apply_filters
from household_ledger.infrastructure.changefeed import ACCOUNTS, TRANSACTIONS, ChangeFeed, Listener, Unsubscribe
from household_ledger.infrastructure.database.repositories import TransactionRepository, serialize_split_rules
from household_ledger.infrastructure.database.session import unit_of_work
from household_ledger.infrastructure.observability.metrics import transaction_mutation_counter
from household_ledger.services.ledger import AccountLedger

logger = logging.getLogger(__name__)


def _payment_columns(payment_method: PaymentMethod) -> Dict[str, Optional[str]]:
    """Storage fields for a payment method; at most one is ever set"""
    return {
        "account_id": payment_method.account_id if isinstance(payment_method, AccountPayment) else None,
        "credit_card_id": payment_method.credit_card_id if isinstance(payment_method, CreditCardPayment) else None,
    }


def _validate_amount(amount_cents: int) -> None:
    if amount_cents < 0:
        raise InvalidAmountError("Transaction amount cannot be negative")


class TransactionService:
    """
    Transaction mutations and the account balance effects they carry.

    Each mutation and all of its balance increments commit in one database
    transaction. Updates and deletes compare-and-swap on the record version,
    so two edits racing on the same transaction cannot both adjust balances.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: AccountLedger,
        feed: Optional[ChangeFeed] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.feed = feed if feed is not None else ChangeFeed()
        self.clock = clock

    async def create_transaction(self, draft: TransactionDraft, user_id: str, household_id: str) -> Transaction:
        """
        Persist a transaction created by user_id.

        is_paid defaults to False for future-dated transactions and True
        otherwise. A paid transaction on a bank account moves its balance:
        income adds, expense subtracts.
        A shared transaction without split rules is split evenly between
        user_id and shared_with_users.
        """
        _validate_amount(draft.amount_cents)
        shared_with = draft.shared_with
        if draft.target == TransactionTarget.SHARED:
            if not shared_with:
                members = list(dict.fromkeys([user_id, *draft.shared_with_users]))
                shared_with = create_equal_split(members)
            validate_split_rules(shared_with)

        is_paid = draft.is_paid if draft.is_paid is not None else draft.date <= self.clock()
        effect = balance_effect(draft.type, draft.amount_cents, is_paid, draft.payment_method)

        async with unit_of_work(self.session_factory, "Failed to create transaction") as db:
            transaction = await TransactionRepository(db).create(
                household_id=household_id,
                type=draft.type.value,
                title=draft.title,
                amount_cents=draft.amount_cents,
                date=draft.date,
                category=draft.category,
                notes=draft.notes,
                payer_id=user_id,
                created_by=user_id,
                target=draft.target.value,
                shared_with=serialize_split_rules(shared_with) if draft.target == TransactionTarget.SHARED else None,
                is_household_expense=bool(draft.is_household_expense),
                shared_with_users=list(draft.shared_with_users) or None,
                is_paid=is_paid,
                **_payment_columns(draft.payment_method),
            )
            if effect is not None:
                await self.ledger.apply(db, *effect)

        transaction_mutation_counter.labels(operation="create").inc()
        logger.info(
            "Transaction created",
            extra={"transaction_id": transaction.id, "user_id": user_id, "is_paid": is_paid},
        )
        self._notify(balance_moved=effect is not None)
        return transaction

    async def update_transaction(self, transaction_id: str, changes: TransactionChanges) -> Transaction:
        """
        Apply a sparse update; fields left as None are untouched.

        Balances move from the original effect to the new one: same account
        gets the difference, a change of account reverses the old account in
        full and charges the new one, and moving onto a card or off any
        account only reverses. Card-side amounts never touch an account.
        """
        if changes.amount_cents is not None:
            _validate_amount(changes.amount_cents)

        async with unit_of_work(self.session_factory, "Failed to update transaction") as db:
            repo = TransactionRepository(db)
            original = await repo.get(transaction_id)
            if original is None:
                raise TransactionNotFoundError(transaction_id)

            values = self._changed_values(original, changes)

            new_effect = balance_effect(
                changes.type if changes.type is not None else original.type,
                changes.amount_cents if changes.amount_cents is not None else original.amount_cents,
                changes.is_paid if changes.is_paid is not None else original.is_paid,
                changes.payment_method if changes.payment_method is not None else original.payment_method,
            )
            adjustments = balance_adjustments(effect_of(original), new_effect)
            for account_id, delta in adjustments:
                await self.ledger.apply(db, account_id, delta)

            if not await repo.update_versioned(transaction_id, original.version, values):
                raise ConcurrentModificationError(f"Transaction {transaction_id} changed during update")
            updated = await repo.get(transaction_id)

        transaction_mutation_counter.labels(operation="update").inc()
        logger.info(
            "Transaction updated",
            extra={"transaction_id": transaction_id, "balance_adjustments": len(adjustments)},
        )
        self._notify(balance_moved=bool(adjustments))
        return updated

    def _changed_values(self, original: Transaction, changes: TransactionChanges) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name in ("title", "amount_cents", "date", "category", "notes", "is_paid", "is_household_expense"):
            value = getattr(changes, name)
            if value is not None:
                values[name] = value
        if changes.type is not None:
            values["type"] = changes.type.value

        target = changes.target if changes.target is not None else original.target
        if changes.target is not None:
            values["target"] = changes.target.value
        if target == TransactionTarget.SHARED:
            rules = changes.shared_with if changes.shared_with is not None else original.shared_with
            validate_split_rules(rules)
            if changes.shared_with is not None:
                values["shared_with"] = serialize_split_rules(changes.shared_with)
        elif changes.target is not None:
            # Leaving the shared target drops the split rules
            values["shared_with"] = None

        if changes.shared_with_users is not None:
            values["shared_with_users"] = list(changes.shared_with_users) or None
        if changes.payment_method is not None:
            values.update(_payment_columns(changes.payment_method))
        return values

    async def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction and reverse any balance effect it had"""
        async with unit_of_work(self.session_factory, "Failed to delete transaction") as db:
            repo = TransactionRepository(db)
            original = await repo.get(transaction_id)
            if original is None:
                raise TransactionNotFoundError(transaction_id)

            effect = effect_of(original)
            if effect is not None:
                account_id, amount = effect
                await self.ledger.apply(db, account_id, -amount)

            if not await repo.delete_versioned(transaction_id, original.version):
                raise ConcurrentModificationError(f"Transaction {transaction_id} changed during delete")

        transaction_mutation_counter.labels(operation="delete").inc()
        logger.info("Transaction deleted", extra={"transaction_id": transaction_id})
        self._notify(balance_moved=effect is not None)

    async def get_transaction(self, transaction_id: str) -> Transaction:
        async with unit_of_work(self.session_factory, "Failed to load transaction") as db:
            transaction = await TransactionRepository(db).get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    async def list_transactions(
        self,
        household_id: str,
        viewer_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> List[Transaction]:
        """Household transactions visible to viewer_id, newest first"""
        filters = filters or TransactionFilter()
        async with unit_of_work(self.session_factory, "Failed to load transactions") as db:
            transactions = await TransactionRepository(db).list_for_household(
                household_id, transaction_type=filters.type, category=filters.category
            )
        return apply_filters(transactions, viewer_id, filters)

    async def subscribe_to_transactions(
        self,
        household_id: str,
        viewer_id: str,
        on_change: Listener,
        filters: Optional[TransactionFilter] = None,
    ) -> Unsubscribe:
        return await self.feed.subscribe(
            TRANSACTIONS,
            lambda: self.list_transactions(household_id, viewer_id, filters),
            on_change,
        )

    def _notify(self, balance_moved: bool) -> None:
        if balance_moved:
            self.feed.notify(TRANSACTIONS, ACCOUNTS)
        else:
            self.feed.notify(TRANSACTIONS)
