"""Split rules for shared transactions"""

from typing import Dict, List

from household_ledger.domain.exceptions import InvalidSplitError
from household_ledger.domain.models import SplitRule, Transaction, TransactionTarget, TransactionType

PERCENTAGE_TOLERANCE = 0.01


def validate_split_rules(rules: List[SplitRule]) -> None:
    """Raise InvalidSplitError unless rules are non-empty, positive and sum to 100"""
    if not rules:
        raise InvalidSplitError("At least one member must be selected")

    if any(rule.percentage <= 0 for rule in rules):
        raise InvalidSplitError("All percentages must be greater than zero")

    total = sum(rule.percentage for rule in rules)
    if abs(total - 100) > PERCENTAGE_TOLERANCE:
        raise InvalidSplitError(f"Percentages must sum to 100%, got {total}")

    user_ids = [rule.user_id for rule in rules]
    if len(set(user_ids)) != len(user_ids):
        raise InvalidSplitError("Each member may appear only once")


def create_equal_split(user_ids: List[str]) -> List[SplitRule]:
    """Split evenly to two decimals; the last member takes the rounding remainder"""
    if not user_ids:
        return []
    percentage = round(100 / len(user_ids), 2)
    rules = [SplitRule(user_id=user_id, percentage=percentage) for user_id in user_ids]
    rules[-1].percentage = round(100 - percentage * (len(user_ids) - 1), 2)
    return rules


def calculate_split(transaction: Transaction) -> Dict[str, int]:
    """
    Per-member share of a shared transaction in cents.

    Positive means the member owes that amount, negative means they are owed.
    For an expense the payer is owed by everyone else; for income the payer
    received the money and owes the others their shares. The payer's entry
    absorbs the rounding remainder so that shares sum to the amount.
    """
    if transaction.target != TransactionTarget.SHARED or not transaction.shared_with:
        return {}

    shares: Dict[str, int] = {}
    for rule in transaction.shared_with:
        shares[rule.user_id] = int(transaction.amount_cents * rule.percentage // 100)

    remainder = transaction.amount_cents - sum(shares.values())
    if transaction.payer_id in shares:
        shares[transaction.payer_id] += remainder

    owes_sign = 1 if transaction.type == TransactionType.EXPENSE else -1
    return {
        user_id: (-owes_sign if user_id == transaction.payer_id else owes_sign) * amount
        for user_id, amount in shares.items()
    }
