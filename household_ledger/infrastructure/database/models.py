"""SQLAlchemy ORM models for the ledger collections"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AccountRow(Base):
    """Bank account with running balance"""

    __tablename__ = "accounts"

    id = Column(Text, primary_key=True, default=new_id)
    household_id = Column(Text, nullable=False, index=True)
    owner_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default="checking")
    balance_cents = Column(BigInteger, nullable=False, default=0)
    initial_balance_cents = Column(BigInteger, nullable=False, default=0)
    color = Column(Text, nullable=False, default="")
    icon = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class CreditCardRow(Base):
    """Credit card billing configuration"""

    __tablename__ = "credit_cards"

    id = Column(Text, primary_key=True, default=new_id)
    household_id = Column(Text, nullable=False, index=True)
    owner_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    last_four_digits = Column(Text, nullable=False)
    limit_cents = Column(BigInteger, nullable=False)
    closing_day = Column(Integer, nullable=False)
    due_day = Column(Integer, nullable=False)
    color = Column(Text, nullable=False, default="")
    icon = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class TransactionRow(Base):
    """Income/expense record; at most one of account_id and credit_card_id is set"""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_card_usage", "credit_card_id", "created_by", "date"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    household_id = Column(Text, nullable=False, index=True)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    date = Column(DateTime, nullable=False)
    category = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    payer_id = Column(Text, nullable=False)
    created_by = Column(Text, nullable=False, index=True)
    target = Column(Text, nullable=False)
    shared_with = Column(JSON, nullable=True)
    is_household_expense = Column(Boolean, nullable=False, default=False)
    shared_with_users = Column(JSON, nullable=True)
    account_id = Column(Text, nullable=True, index=True)
    credit_card_id = Column(Text, nullable=True)
    is_paid = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class CreditCardBillRow(Base):
    """Materialized bill; unique per card, user and closing date"""

    __tablename__ = "credit_card_bills"
    __table_args__ = (
        UniqueConstraint("credit_card_id", "user_id", "closing_date", name="uq_bill_card_user_closing"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    credit_card_id = Column(Text, nullable=False, index=True)
    household_id = Column(Text, nullable=False)
    user_id = Column(Text, nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    closing_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False, default=0)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="open")
    transaction_ids = Column(JSON, nullable=False, default=list)
    payment_account_id = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
