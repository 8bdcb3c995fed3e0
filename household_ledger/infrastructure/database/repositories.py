"""Data access layer for ledger entities

Repositories take an AsyncSession owned by the caller; they flush but never
commit, so a service can group several of them into one unit of work.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.domain.models import (
    Account,
    AccountType,
    BillStatus,
    CreditCard,
    CreditCardBill,
    SplitRule,
    Transaction,
    TransactionTarget,
    TransactionType,
    payment_method_from_ids,
)
from household_ledger.infrastructure.database.models import AccountRow, CreditCardBillRow, CreditCardRow, TransactionRow

logger = logging.getLogger(__name__)


def _to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        household_id=row.household_id,
        owner_id=row.owner_id,
        name=row.name,
        type=AccountType(row.type),
        balance_cents=row.balance_cents,
        initial_balance_cents=row.initial_balance_cents,
        is_active=row.is_active,
        color=row.color,
        icon=row.icon,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_card(row: CreditCardRow) -> CreditCard:
    return CreditCard(
        id=row.id,
        household_id=row.household_id,
        owner_id=row.owner_id,
        name=row.name,
        last_four_digits=row.last_four_digits,
        limit_cents=row.limit_cents,
        closing_day=row.closing_day,
        due_day=row.due_day,
        is_active=row.is_active,
        color=row.color,
        icon=row.icon,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        household_id=row.household_id,
        type=TransactionType(row.type),
        title=row.title,
        amount_cents=row.amount_cents,
        date=row.date,
        category=row.category,
        created_by=row.created_by,
        payer_id=row.payer_id,
        target=TransactionTarget(row.target),
        payment_method=payment_method_from_ids(row.account_id, row.credit_card_id),
        is_paid=row.is_paid,
        notes=row.notes,
        shared_with=[SplitRule(user_id=r["user_id"], percentage=r["percentage"]) for r in row.shared_with or []],
        is_household_expense=row.is_household_expense,
        shared_with_users=list(row.shared_with_users or []),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_bill(row: CreditCardBillRow) -> CreditCardBill:
    return CreditCardBill(
        id=row.id,
        credit_card_id=row.credit_card_id,
        household_id=row.household_id,
        user_id=row.user_id,
        start_date=row.start_date,
        closing_date=row.closing_date,
        due_date=row.due_date,
        total_amount_cents=row.total_amount_cents,
        paid_amount_cents=row.paid_amount_cents,
        status=BillStatus(row.status),
        transaction_ids=list(row.transaction_ids or []),
        payment_account_id=row.payment_account_id,
        paid_at=row.paid_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def serialize_split_rules(rules: List[SplitRule]) -> Optional[List[Dict[str, Any]]]:
    if not rules:
        return None
    return [{"user_id": r.user_id, "percentage": r.percentage} for r in rules]


class AccountRepository:
    """Repository for bank accounts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> Account:
        row = AccountRow(**fields)
        self.db.add(row)
        await self.db.flush()
        return _to_account(row)

    async def get(self, account_id: str) -> Optional[Account]:
        row = await self.db.get(AccountRow, account_id, populate_existing=True)
        return _to_account(row) if row else None

    async def list_for_household(
        self,
        household_id: str,
        owner_id: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Account]:
        stmt = select(AccountRow).where(AccountRow.household_id == household_id)
        if owner_id is not None:
            stmt = stmt.where(AccountRow.owner_id == owner_id)
        if active_only:
            stmt = stmt.where(AccountRow.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(AccountRow.created_at.desc()))
        return [_to_account(row) for row in result.scalars()]

    async def update_fields(self, account_id: str, values: Dict[str, Any]) -> bool:
        result = await self.db.execute(
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def increment_balance(self, account_id: str, delta_cents: int) -> bool:
        """Atomic `balance = balance + delta` at the storage layer"""
        result = await self.db.execute(
            update(AccountRow)
            .where(AccountRow.id == account_id)
            .values(balance_cents=AccountRow.balance_cents + delta_cents)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete(self, account_id: str) -> bool:
        result = await self.db.execute(delete(AccountRow).where(AccountRow.id == account_id))
        return result.rowcount > 0


class CreditCardRepository:
    """Repository for credit cards"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> CreditCard:
        row = CreditCardRow(**fields)
        self.db.add(row)
        await self.db.flush()
        return _to_card(row)

    async def get(self, card_id: str) -> Optional[CreditCard]:
        row = await self.db.get(CreditCardRow, card_id, populate_existing=True)
        return _to_card(row) if row else None

    async def list_for_household(
        self,
        household_id: str,
        owner_id: Optional[str] = None,
        active_only: bool = True,
    ) -> List[CreditCard]:
        stmt = select(CreditCardRow).where(CreditCardRow.household_id == household_id)
        if owner_id is not None:
            stmt = stmt.where(CreditCardRow.owner_id == owner_id)
        if active_only:
            stmt = stmt.where(CreditCardRow.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(CreditCardRow.created_at.desc()))
        return [_to_card(row) for row in result.scalars()]

    async def update_fields(self, card_id: str, values: Dict[str, Any]) -> bool:
        result = await self.db.execute(
            update(CreditCardRow)
            .where(CreditCardRow.id == card_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete(self, card_id: str) -> bool:
        result = await self.db.execute(delete(CreditCardRow).where(CreditCardRow.id == card_id))
        return result.rowcount > 0


class TransactionRepository:
    """Repository for income/expense transactions"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> Transaction:
        row = TransactionRow(**fields)
        self.db.add(row)
        await self.db.flush()
        return _to_transaction(row)

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        row = await self.db.get(TransactionRow, transaction_id, populate_existing=True)
        return _to_transaction(row) if row else None

    async def find_card_usage(
        self,
        credit_card_id: str,
        user_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> List[Transaction]:
        """Transactions created by user_id on the card, date in [start, end]"""
        result = await self.db.execute(
            select(TransactionRow)
            .where(
                TransactionRow.created_by == user_id,
                TransactionRow.credit_card_id == credit_card_id,
                TransactionRow.date >= start_date,
                TransactionRow.date <= end_date,
            )
            .order_by(TransactionRow.date, TransactionRow.id)
        )
        return [_to_transaction(row) for row in result.scalars()]

    async def list_for_household(
        self,
        household_id: str,
        transaction_type: Optional[TransactionType] = None,
        category: Optional[str] = None,
    ) -> List[Transaction]:
        stmt = select(TransactionRow).where(TransactionRow.household_id == household_id)
        if transaction_type is not None:
            stmt = stmt.where(TransactionRow.type == transaction_type.value)
        if category is not None:
            stmt = stmt.where(TransactionRow.category == category)
        result = await self.db.execute(stmt.order_by(TransactionRow.date.desc()))
        return [_to_transaction(row) for row in result.scalars()]

    async def update_versioned(self, transaction_id: str, expected_version: int, values: Dict[str, Any]) -> bool:
        """Compare-and-swap on version; False when another writer got there first"""
        result = await self.db.execute(
            update(TransactionRow)
            .where(TransactionRow.id == transaction_id, TransactionRow.version == expected_version)
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete_versioned(self, transaction_id: str, expected_version: int) -> bool:
        result = await self.db.execute(
            delete(TransactionRow).where(
                TransactionRow.id == transaction_id,
                TransactionRow.version == expected_version,
            )
        )
        return result.rowcount > 0


class BillRepository:
    """Repository for credit card bills"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> CreditCardBill:
        row = CreditCardBillRow(**fields)
        self.db.add(row)
        await self.db.flush()
        return _to_bill(row)

    async def get(self, bill_id: str) -> Optional[CreditCardBill]:
        row = await self.db.get(CreditCardBillRow, bill_id, populate_existing=True)
        return _to_bill(row) if row else None

    async def find_by_period(
        self,
        credit_card_id: str,
        user_id: str,
        closing_date: datetime,
    ) -> Optional[CreditCardBill]:
        """Bill for (card, user, closing date), oldest first if duplicates exist"""
        result = await self.db.execute(
            select(CreditCardBillRow)
            .where(
                CreditCardBillRow.credit_card_id == credit_card_id,
                CreditCardBillRow.user_id == user_id,
                CreditCardBillRow.closing_date == closing_date,
            )
            .order_by(CreditCardBillRow.created_at)
        )
        rows = list(result.scalars())
        if len(rows) > 1:
            logger.warning(
                "Multiple bills found for the same period",
                extra={"credit_card_id": credit_card_id, "user_id": user_id, "count": len(rows)},
            )
        return _to_bill(rows[0]) if rows else None

    async def list_for_card(self, credit_card_id: str, user_id: str) -> List[CreditCardBill]:
        result = await self.db.execute(
            select(CreditCardBillRow)
            .where(CreditCardBillRow.credit_card_id == credit_card_id, CreditCardBillRow.user_id == user_id)
            .order_by(CreditCardBillRow.due_date.desc())
        )
        return [_to_bill(row) for row in result.scalars()]

    async def list_for_user(self, user_id: str) -> List[CreditCardBill]:
        result = await self.db.execute(
            select(CreditCardBillRow)
            .where(CreditCardBillRow.user_id == user_id)
            .order_by(CreditCardBillRow.due_date.desc())
        )
        return [_to_bill(row) for row in result.scalars()]

    async def update_versioned(self, bill_id: str, expected_version: int, values: Dict[str, Any]) -> bool:
        """Compare-and-swap on version; False when another writer got there first"""
        result = await self.db.execute(
            update(CreditCardBillRow)
            .where(CreditCardBillRow.id == bill_id, CreditCardBillRow.version == expected_version)
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
