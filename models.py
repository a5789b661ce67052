from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class AccountType(str, Enum):
    wallet = "wallet"
    bank = "bank"
    credit = "credit"


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class RecurrenceType(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class ScheduledStatus(str, Enum):
    pending = "pending"
    processed = "processed"
    cancelled = "cancelled"


class BudgetPeriod(str, Enum):
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(SAEnum(AccountType), nullable=False)
    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credit_limit_cents: Mapped[Optional[int]] = mapped_column(Integer)
    payment_due_date: Mapped[Optional[date]] = mapped_column(Date)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    __table_args__ = (
        Index("ix_accounts_user", "user_id"),
        CheckConstraint(
            "(type = 'credit' AND credit_limit_cents IS NOT NULL "
            "AND payment_due_date IS NOT NULL) OR "
            "(type != 'credit' AND credit_limit_cents IS NULL "
            "AND payment_due_date IS NULL)",
            name="ck_accounts_credit_fields",
        ),
        CheckConstraint(
            "credit_limit_cents IS NULL OR credit_limit_cents >= 0",
            name="ck_accounts_credit_limit_positive",
        ),
    )

    @property
    def is_credit(self) -> bool:
        return self.type == AccountType.credit


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # No foreign key: deleting an account leaves its transactions in place.
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    origin_scheduled_id: Mapped[Optional[int]] = mapped_column(Integer)

    account: Mapped[Optional["Account"]] = relationship(
        "Account",
        primaryjoin="foreign(Transaction.account_id) == Account.id",
        viewonly=True,
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_account", "user_id", "account_id"),
        Index("ix_transactions_user_category_date", "user_id", "category", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 10)",
            name="ck_transactions_rating_range",
        ),
    )


class ScheduledTransaction(Base, TimestampMixin):
    __tablename__ = "scheduled_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_type: Mapped[Optional[RecurrenceType]] = mapped_column(
        SAEnum(RecurrenceType)
    )
    recurrence_end: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[ScheduledStatus] = mapped_column(
        SAEnum(ScheduledStatus), default=ScheduledStatus.pending, nullable=False
    )

    account: Mapped[Optional["Account"]] = relationship(
        "Account",
        primaryjoin="foreign(ScheduledTransaction.account_id) == Account.id",
        viewonly=True,
    )

    __table_args__ = (
        Index("ix_scheduled_user_status_date", "user_id", "status", "scheduled_date"),
        CheckConstraint("amount_cents >= 0", name="ck_scheduled_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[BudgetPeriod] = mapped_column(
        SAEnum(BudgetPeriod), default=BudgetPeriod.monthly, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
        CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
    )
