import datetime as dt
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import (
    AccountType,
    BudgetPeriod,
    RecurrenceType,
    ScheduledStatus,
    TransactionType,
)


def _normalize_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().upper()


class _AccountBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    balance_cents: int = 0
    currency: str = Field(default="USD", pattern=r"^[A-Za-z]{3}$")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency(value)


class WalletAccountIn(_AccountBase):
    type: Literal["wallet"]


class BankAccountIn(_AccountBase):
    type: Literal["bank"]


class CreditAccountIn(_AccountBase):
    type: Literal["credit"]
    credit_limit_cents: int = Field(..., ge=0)
    payment_due_date: date


AccountVariant = Union[WalletAccountIn, BankAccountIn, CreditAccountIn]
AccountIn = Annotated[AccountVariant, Field(discriminator="type")]


class AccountUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    balance_cents: Optional[int] = None
    credit_limit_cents: Optional[int] = Field(default=None, ge=0)
    payment_due_date: Optional[dt.date] = None
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency(value)


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: AccountType
    balance_cents: int
    credit_limit_cents: Optional[int]
    payment_due_date: Optional[date]
    currency: str
    created_at: datetime


class AccountRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: AccountType


class TransactionIn(BaseModel):
    account_id: int
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=200)
    date: Optional[dt.date] = None
    # Range is checked by TransactionService so it fails as ValidationError.
    rating: Optional[int] = None


class TransactionUpdate(BaseModel):
    account_id: Optional[int] = None
    type: Optional[TransactionType] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    date: Optional[dt.date] = None
    rating: Optional[int] = None


class RatingIn(BaseModel):
    rating: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    account: Optional[AccountRef] = None
    date: dt.date
    type: TransactionType
    amount_cents: int
    category: str
    description: str
    rating: Optional[int]
    origin_scheduled_id: Optional[int]


class ScheduledTransactionIn(BaseModel):
    account_id: int
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=200)
    scheduled_date: date
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_end: Optional[dt.date] = None


class ScheduledTransactionUpdate(BaseModel):
    account_id: Optional[int] = None
    type: Optional[TransactionType] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    scheduled_date: Optional[dt.date] = None
    is_recurring: Optional[bool] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_end: Optional[dt.date] = None
    status: Optional[ScheduledStatus] = None


class ScheduledTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: int
    account: Optional[AccountRef] = None
    type: TransactionType
    amount_cents: int
    category: str
    description: str
    scheduled_date: date
    is_recurring: bool
    recurrence_type: Optional[RecurrenceType]
    recurrence_end: Optional[date]
    status: ScheduledStatus


class ProcessedOut(BaseModel):
    transaction: TransactionOut
    next_scheduled: Optional[ScheduledTransactionOut] = None


class BudgetIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    amount_cents: int = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.monthly


class BudgetUpdate(BaseModel):
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    period: Optional[BudgetPeriod] = None


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    amount_cents: int
    period: BudgetPeriod


class CSVRow(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    account_id: Optional[int] = None
