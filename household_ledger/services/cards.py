"""Credit card maintenance"""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.billing import validate_cycle_days
from household_ledger.domain.exceptions import CreditCardNotFoundError, InvalidCardConfigurationError
from household_ledger.domain.models import CreditCard
from household_ledger.infrastructure.changefeed import CREDIT_CARDS, ChangeFeed, Listener, Unsubscribe
from household_ledger.infrastructure.database.repositories import CreditCardRepository
from household_ledger.infrastructure.database.session import unit_of_work

logger = logging.getLogger(__name__)

LAST_FOUR_PATTERN = re.compile(r"^\d{4}$")


def validate_card(last_four_digits: str, limit_cents: int, closing_day: int, due_day: int) -> None:
    if not LAST_FOUR_PATTERN.match(last_four_digits):
        raise InvalidCardConfigurationError("last_four_digits must be exactly four digits")
    if limit_cents < 0:
        raise InvalidCardConfigurationError("Credit limit cannot be negative")
    validate_cycle_days(closing_day, due_day)


class CreditCardService:
    """
    Create, edit, deactivate and list credit cards.

    Changing closing or due day affects future periods only; bills already
    materialized keep the period they were created with.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed if feed is not None else ChangeFeed()

    async def create_card(
        self,
        user_id: str,
        household_id: str,
        name: str,
        last_four_digits: str,
        limit_cents: int,
        closing_day: int,
        due_day: int,
        color: str = "",
        icon: str = "",
    ) -> CreditCard:
        validate_card(last_four_digits, limit_cents, closing_day, due_day)
        async with unit_of_work(self.session_factory, "Failed to create credit card") as db:
            card = await CreditCardRepository(db).create(
                household_id=household_id,
                owner_id=user_id,
                name=name,
                last_four_digits=last_four_digits,
                limit_cents=limit_cents,
                closing_day=closing_day,
                due_day=due_day,
                color=color,
                icon=icon,
                is_active=True,
            )
        logger.info("Credit card created", extra={"credit_card_id": card.id, "user_id": user_id})
        self.feed.notify(CREDIT_CARDS)
        return card

    async def update_card(self, card_id: str, **changes: Any) -> CreditCard:
        """Edit name, last_four_digits, limit_cents, closing_day, due_day, color or icon"""
        allowed = {"name", "last_four_digits", "limit_cents", "closing_day", "due_day", "color", "icon"}
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidCardConfigurationError(f"Unknown credit card fields: {sorted(unknown)}")
        values: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None}

        async with unit_of_work(self.session_factory, "Failed to update credit card") as db:
            repo = CreditCardRepository(db)
            card = await repo.get(card_id)
            if card is None:
                raise CreditCardNotFoundError(card_id)
            validate_card(
                values.get("last_four_digits", card.last_four_digits),
                values.get("limit_cents", card.limit_cents),
                values.get("closing_day", card.closing_day),
                values.get("due_day", card.due_day),
            )
            if values:
                await repo.update_fields(card_id, values)
            updated = await repo.get(card_id)

        self.feed.notify(CREDIT_CARDS)
        return updated

    async def deactivate_card(self, card_id: str) -> None:
        async with unit_of_work(self.session_factory, "Failed to deactivate credit card") as db:
            if not await CreditCardRepository(db).update_fields(card_id, {"is_active": False}):
                raise CreditCardNotFoundError(card_id)
        self.feed.notify(CREDIT_CARDS)

    async def delete_card(self, card_id: str) -> None:
        async with unit_of_work(self.session_factory, "Failed to delete credit card") as db:
            if not await CreditCardRepository(db).delete(card_id):
                raise CreditCardNotFoundError(card_id)
        self.feed.notify(CREDIT_CARDS)

    async def get_card(self, card_id: str) -> CreditCard:
        async with unit_of_work(self.session_factory, "Failed to load credit card") as db:
            card = await CreditCardRepository(db).get(card_id)
        if card is None:
            raise CreditCardNotFoundError(card_id)
        return card

    async def list_cards(self, household_id: str, owner_id: Optional[str] = None) -> List[CreditCard]:
        async with unit_of_work(self.session_factory, "Failed to load credit cards") as db:
            return await CreditCardRepository(db).list_for_household(household_id, owner_id=owner_id)

    async def subscribe_to_cards(self, household_id: str, owner_id: str, on_change: Listener) -> Unsubscribe:
        return await self.feed.subscribe(CREDIT_CARDS, lambda: self.list_cards(household_id, owner_id), on_change)
