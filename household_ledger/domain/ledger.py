"""Balance effects of transactions on bank accounts"""

from typing import Dict, List, Optional, Tuple

from household_ledger.domain.models import AccountPayment, PaymentMethod, Transaction, TransactionType

# (account_id, signed delta in cents)
BalanceEffect = Tuple[str, int]


def signed_amount(transaction_type: TransactionType, amount_cents: int) -> int:
    """Income adds to an account, expense subtracts"""
    return amount_cents if transaction_type == TransactionType.INCOME else -amount_cents


def balance_effect(
    transaction_type: TransactionType,
    amount_cents: int,
    is_paid: bool,
    payment_method: PaymentMethod,
) -> Optional[BalanceEffect]:
    """
    Effect a transaction has on an account balance.

    Only paid transactions settled through a bank account move a balance.
    Card charges land on the card bill instead, and unpaid or cash
    transactions have no effect.
    """
    if not is_paid or not isinstance(payment_method, AccountPayment):
        return None
    return payment_method.account_id, signed_amount(transaction_type, amount_cents)


def effect_of(transaction: Transaction) -> Optional[BalanceEffect]:
    return balance_effect(
        transaction.type,
        transaction.amount_cents,
        transaction.is_paid,
        transaction.payment_method,
    )


def balance_adjustments(
    old_effect: Optional[BalanceEffect],
    new_effect: Optional[BalanceEffect],
) -> List[BalanceEffect]:
    """
    Deltas that move accounts from old_effect to new_effect.

    Same account: only the difference is applied. Different accounts: the old
    effect is reversed in full and the new one applied in full. Zero deltas
    are dropped.
    """
    deltas: Dict[str, int] = {}
    if old_effect is not None:
        account_id, amount = old_effect
        deltas[account_id] = deltas.get(account_id, 0) - amount
    if new_effect is not None:
        account_id, amount = new_effect
        deltas[account_id] = deltas.get(account_id, 0) + amount
    return [(account_id, delta) for account_id, delta in deltas.items() if delta != 0]
