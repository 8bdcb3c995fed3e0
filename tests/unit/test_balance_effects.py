"""Unit tests for transaction balance effects"""

import pytest
from household_ledger.domain.exceptions import InvalidPaymentMethodError
from household_ledger.domain.ledger import balance_adjustments, balance_effect, signed_amount
from household_ledger.domain.models import (
    NO_PAYMENT,
    AccountPayment,
    CreditCardPayment,
    TransactionType,
    payment_method_from_ids,
)


def test_signed_amount():
    """Test income adds and expense subtracts"""
    assert signed_amount(TransactionType.INCOME, 3000) == 3000
    assert signed_amount(TransactionType.EXPENSE, 3000) == -3000


def test_paid_account_transactions_have_effect():
    """Test paid transactions on an account move its balance"""
    assert balance_effect(TransactionType.EXPENSE, 3000, True, AccountPayment("acc_1")) == ("acc_1", -3000)
    assert balance_effect(TransactionType.INCOME, 3000, True, AccountPayment("acc_1")) == ("acc_1", 3000)


def test_no_effect_without_paid_account():
    """Test unpaid, card and cash transactions leave accounts alone"""
    assert balance_effect(TransactionType.EXPENSE, 3000, False, AccountPayment("acc_1")) is None
    assert balance_effect(TransactionType.EXPENSE, 3000, True, CreditCardPayment("card_1")) is None
    assert balance_effect(TransactionType.EXPENSE, 3000, True, NO_PAYMENT) is None


def test_adjustment_same_account_applies_difference():
    """Test editing the amount on one account applies only the difference"""
    assert balance_adjustments(("acc_1", -3000), ("acc_1", -5000)) == [("acc_1", -2000)]


def test_adjustment_unchanged_effect_is_empty():
    """Test an edit that keeps the effect produces no adjustment"""
    assert balance_adjustments(("acc_1", -3000), ("acc_1", -3000)) == []
    assert balance_adjustments(None, None) == []


def test_adjustment_between_accounts():
    """Test moving to another account reverses the old one in full"""
    assert balance_adjustments(("acc_1", -3000), ("acc_2", -3000)) == [("acc_1", 3000), ("acc_2", -3000)]


def test_adjustment_leaving_account_reverses():
    """Test moving onto a card or marking unpaid reverses the account effect"""
    assert balance_adjustments(("acc_1", -3000), None) == [("acc_1", 3000)]


def test_adjustment_type_flip():
    """Test expense to income swings the balance by twice the amount"""
    assert balance_adjustments(("acc_1", -3000), ("acc_1", 3000)) == [("acc_1", 6000)]


def test_payment_method_from_ids():
    """Test storage fields map to one payment method variant"""
    assert payment_method_from_ids("acc_1", None) == AccountPayment("acc_1")
    assert payment_method_from_ids(None, "card_1") == CreditCardPayment("card_1")
    assert payment_method_from_ids(None, None) is NO_PAYMENT

    with pytest.raises(InvalidPaymentMethodError):
        payment_method_from_ids("acc_1", "card_1")
