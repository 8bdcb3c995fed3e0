"""Bank account maintenance"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.domain.exceptions import AccountNotFoundError
from household_ledger.domain.models import Account, AccountType
from household_ledger.infrastructure.changefeed import ACCOUNTS, ChangeFeed, Listener, Unsubscribe
from household_ledger.infrastructure.database.repositories import AccountRepository
from household_ledger.infrastructure.database.session import unit_of_work

logger = logging.getLogger(__name__)


class AccountService:
    """Create, edit, deactivate and list bank accounts"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed if feed is not None else ChangeFeed()

    async def create_account(
        self,
        user_id: str,
        household_id: str,
        name: str,
        account_type: AccountType = AccountType.CHECKING,
        initial_balance_cents: int = 0,
        color: str = "",
        icon: str = "",
    ) -> Account:
        async with unit_of_work(self.session_factory, "Failed to create account") as db:
            account = await AccountRepository(db).create(
                household_id=household_id,
                owner_id=user_id,
                name=name,
                type=account_type.value,
                balance_cents=initial_balance_cents,
                initial_balance_cents=initial_balance_cents,
                color=color,
                icon=icon,
                is_active=True,
            )
        logger.info("Account created", extra={"account_id": account.id, "user_id": user_id})
        self.feed.notify(ACCOUNTS)
        return account

    async def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        account_type: Optional[AccountType] = None,
        initial_balance_cents: Optional[int] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Account:
        """
        Edit an account. A new initial balance shifts the running balance by
        the same difference, so transactions already applied stay counted.
        """
        values: Dict[str, Any] = {}
        if name is not None:
            values["name"] = name
        if account_type is not None:
            values["type"] = account_type.value
        if color is not None:
            values["color"] = color
        if icon is not None:
            values["icon"] = icon

        async with unit_of_work(self.session_factory, "Failed to update account") as db:
            repo = AccountRepository(db)
            account = await repo.get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)

            if initial_balance_cents is not None:
                values["initial_balance_cents"] = initial_balance_cents
                difference = initial_balance_cents - account.initial_balance_cents
                if difference:
                    await repo.increment_balance(account_id, difference)
            if values:
                await repo.update_fields(account_id, values)
            updated = await repo.get(account_id)

        self.feed.notify(ACCOUNTS)
        return updated

    async def deactivate_account(self, account_id: str) -> None:
        """Soft delete: the account disappears from listings, history stays"""
        async with unit_of_work(self.session_factory, "Failed to deactivate account") as db:
            if not await AccountRepository(db).update_fields(account_id, {"is_active": False}):
                raise AccountNotFoundError(account_id)
        self.feed.notify(ACCOUNTS)

    async def delete_account(self, account_id: str) -> None:
        async with unit_of_work(self.session_factory, "Failed to delete account") as db:
            if not await AccountRepository(db).delete(account_id):
                raise AccountNotFoundError(account_id)
        self.feed.notify(ACCOUNTS)

    async def get_account(self, account_id: str) -> Account:
        async with unit_of_work(self.session_factory, "Failed to load account") as db:
            account = await AccountRepository(db).get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def list_accounts(self, household_id: str, owner_id: Optional[str] = None) -> List[Account]:
        """Active accounts, newest first"""
        async with unit_of_work(self.session_factory, "Failed to load accounts") as db:
            return await AccountRepository(db).list_for_household(household_id, owner_id=owner_id)

    async def subscribe_to_accounts(self, household_id: str, owner_id: str, on_change: Listener) -> Unsubscribe:
        return await self.feed.subscribe(ACCOUNTS, lambda: self.list_accounts(household_id, owner_id), on_change)
