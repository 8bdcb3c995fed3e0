"""Account balance ledger"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.exceptions import AccountNotFoundError
from household_ledger.infrastructure.changefeed import ACCOUNTS, ChangeFeed
from household_ledger.infrastructure.database.repositories import AccountRepository
from household_ledger.infrastructure.database.session import unit_of_work
from household_ledger.infrastructure.observability.metrics import balance_adjustment_counter

logger = logging.getLogger(__name__)


class AccountLedger:
    """
    Applies signed deltas to account balances.

    Every balance change goes through a storage-level increment, never a
    read followed by a write, so concurrent edits on one account cannot lose
    updates. Resulting balances may be negative.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed

    async def adjust_balance(self, account_id: str, delta_cents: int) -> None:
        """Increment the balance in its own database transaction"""
        async with unit_of_work(self.session_factory, "Failed to adjust account balance") as db:
            await self.apply(db, account_id, delta_cents)
        if self.feed is not None and delta_cents:
            self.feed.notify(ACCOUNTS)

    async def apply(self, db: AsyncSession, account_id: str, delta_cents: int) -> None:
        """Increment the balance inside the caller's unit of work"""
        if delta_cents == 0:
            return
        if not await AccountRepository(db).increment_balance(account_id, delta_cents):
            raise AccountNotFoundError(account_id)
        balance_adjustment_counter.inc()
        logger.info(
            "Account balance adjusted",
            extra={"account_id": account_id, "delta_cents": delta_cents},
        )
