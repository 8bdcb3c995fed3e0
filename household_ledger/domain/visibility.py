"""Household privacy rules and filters for transaction listings"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from household_ledger.domain.models import Transaction, TransactionTarget, TransactionType

FILTER_MINE = "mine"
FILTER_HOUSEHOLD = "household"
FILTER_ALL = "all"


@dataclass
class TransactionFilter:
    """Listing options; filter_by is "mine", "household", "all" or a member's user id"""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[str] = None
    type: Optional[TransactionType] = None
    payer_id: Optional[str] = None
    filter_by: str = FILTER_ALL
    show_member_transactions: Dict[str, bool] = field(default_factory=dict)


def is_visible_to(
    transaction: Transaction,
    viewer_id: str,
    show_member_transactions: Optional[Mapping[str, bool]] = None,
) -> bool:
    """
    A member sees their own transactions, household expenses, transactions
    explicitly shared with them, and other members' transactions when both
    sides opted in to sharing.
    """
    if transaction.created_by == viewer_id:
        return True
    if transaction.is_household_expense or transaction.target == TransactionTarget.HOUSEHOLD:
        return True
    if viewer_id in transaction.shared_with_users:
        return True

    sharing = show_member_transactions or {}
    return bool(sharing.get(transaction.created_by) and sharing.get(viewer_id))


def apply_filters(
    transactions: List[Transaction],
    viewer_id: str,
    filters: Optional[TransactionFilter] = None,
) -> List[Transaction]:
    """Visible transactions matching filters, newest first"""
    filters = filters or TransactionFilter()
    result = [t for t in transactions if is_visible_to(t, viewer_id, filters.show_member_transactions)]

    if filters.filter_by == FILTER_MINE:
        result = [t for t in result if t.created_by == viewer_id]
    elif filters.filter_by == FILTER_HOUSEHOLD:
        result = [t for t in result if t.is_household_expense]
    elif filters.filter_by != FILTER_ALL:
        result = [t for t in result if t.created_by == filters.filter_by]

    if filters.type is not None:
        result = [t for t in result if t.type == filters.type]
    if filters.category is not None:
        result = [t for t in result if t.category == filters.category]
    if filters.payer_id is not None:
        result = [t for t in result if t.payer_id == filters.payer_id]
    if filters.start_date is not None:
        result = [t for t in result if t.date >= filters.start_date]
    if filters.end_date is not None:
        result = [t for t in result if t.date <= filters.end_date]

    return sorted(result, key=lambda t: t.date, reverse=True)
