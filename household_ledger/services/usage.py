"""Credit card usage aggregation"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.models import CardUsage
from household_ledger.infrastructure.database.repositories import TransactionRepository
from household_ledger.infrastructure.database.session import unit_of_work

logger = logging.getLogger(__name__)


class UsageAggregator:
    """Sums the transactions a user charged to a card within a period"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_card_usage(
        self,
        credit_card_id: str,
        user_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> CardUsage:
        """
        Transactions created by user_id on the card with a date in
        [start_date, end_date], and the sum of their amounts.

        Amounts are summed as-is: only expenses are expected on a card, and
        the type is not filtered here.

        Raises:
            StoreError: if the query fails
        """
        async with unit_of_work(self.session_factory, "Failed to calculate card usage") as db:
            transactions = await TransactionRepository(db).find_card_usage(
                credit_card_id, user_id, start_date, end_date
            )

        total = sum(t.amount_cents for t in transactions)
        logger.debug(
            "Card usage calculated",
            extra={
                "credit_card_id": credit_card_id,
                "user_id": user_id,
                "transaction_count": len(transactions),
                "total_cents": total,
            },
        )
        return CardUsage(total=total, transactions=transactions)
