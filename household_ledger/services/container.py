"""Wiring of ledger services around one session factory and change feed"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.infrastructure.changefeed import ChangeFeed
from household_ledger.services.accounts import AccountService
from household_ledger.services.bills import BillCreationCache, BillService
from household_ledger.services.cards import CreditCardService
from household_ledger.services.ledger import AccountLedger
from household_ledger.services.transactions import TransactionService
from household_ledger.services.usage import UsageAggregator


@dataclass
class LedgerServices:
    feed: ChangeFeed
    ledger: AccountLedger
    usage: UsageAggregator
    bills: BillService
    transactions: TransactionService
    accounts: AccountService
    cards: CreditCardService


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    feed: Optional[ChangeFeed] = None,
    bill_cache: Optional[BillCreationCache] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> LedgerServices:
    feed = feed if feed is not None else ChangeFeed()
    ledger = AccountLedger(session_factory, feed)
    usage = UsageAggregator(session_factory)
    return LedgerServices(
        feed=feed,
        ledger=ledger,
        usage=usage,
        bills=BillService(session_factory, usage, ledger, cache=bill_cache, feed=feed, clock=clock),
        transactions=TransactionService(session_factory, ledger, feed=feed, clock=clock),
        accounts=AccountService(session_factory, feed=feed),
        cards=CreditCardService(session_factory, feed=feed),
    )
