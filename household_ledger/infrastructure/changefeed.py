"""In-process change feed delivering collection snapshots to subscribers"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Set

logger = logging.getLogger(__name__)

ACCOUNTS = "accounts"
CREDIT_CARDS = "credit_cards"
TRANSACTIONS = "transactions"
BILLS = "credit_card_bills"

Loader = Callable[[], Awaitable[List[Any]]]
Listener = Callable[[List[Any]], None]
Unsubscribe = Callable[[], None]


@dataclass(eq=False)
class _Subscription:
    collection: str
    loader: Loader
    on_change: Listener
    active: bool = True


class ChangeFeed:
    """
    Snapshot subscriptions over the ledger collections.

    A subscriber registers a loader (the query it is interested in) and a
    listener. It receives the loader's result once on subscribe and again
    after every committed change to the collection. Deliveries run as
    background tasks, so writers never wait on listeners. A loader failure
    is logged and delivered as an empty snapshot.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[_Subscription]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    async def subscribe(self, collection: str, loader: Loader, on_change: Listener) -> Unsubscribe:
        subscription = _Subscription(collection, loader, on_change)
        self._subscriptions[collection].append(subscription)
        await self._deliver(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            subs = self._subscriptions.get(collection, [])
            if subscription in subs:
                subs.remove(subscription)

        return unsubscribe

    def notify(self, *collections: str) -> None:
        """Schedule a fresh snapshot for every subscriber of the collections"""
        for collection in collections:
            for subscription in list(self._subscriptions.get(collection, [])):
                task = asyncio.create_task(self._deliver(subscription))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait until scheduled deliveries, including ones they trigger, finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscriptions.get(collection, []))

    async def _deliver(self, subscription: _Subscription) -> None:
        if not subscription.active:
            return
        try:
            records = await subscription.loader()
        except Exception:
            logger.exception("Snapshot query failed", extra={"collection": subscription.collection})
            records = []

        # Unsubscribed while the query was running
        if not subscription.active:
            return
        try:
            subscription.on_change(records)
        except Exception:
            logger.exception("Snapshot listener failed", extra={"collection": subscription.collection})
