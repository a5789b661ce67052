from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from models import Account, AccountType, Transaction, TransactionType


@dataclass
class TransactionTotals:
    total_income_cents: int = 0
    total_expenses_cents: int = 0
    category_breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def net_balance_cents(self) -> int:
        return self.total_income_cents - self.total_expenses_cents


@dataclass
class AccountTotals:
    total_cash_balance_cents: int = 0
    total_credit_used_cents: int = 0
    total_credit_limit_cents: int = 0

    @property
    def credit_usage(self) -> float:
        if self.total_credit_limit_cents <= 0:
            return 0.0
        return self.total_credit_used_cents / self.total_credit_limit_cents * 100

    @property
    def net_worth_cents(self) -> int:
        return self.total_cash_balance_cents - self.total_credit_used_cents


def summarize_transactions(transactions: Iterable[Transaction]) -> TransactionTotals:
    totals = TransactionTotals()
    breakdown: dict[str, int] = defaultdict(int)
    for txn in transactions:
        if txn.type == TransactionType.income:
            totals.total_income_cents += txn.amount_cents
        else:
            totals.total_expenses_cents += txn.amount_cents
            breakdown[txn.category] += txn.amount_cents
    totals.category_breakdown = dict(breakdown)
    return totals


def summarize_accounts(accounts: Iterable[Account]) -> AccountTotals:
    totals = AccountTotals()
    for account in accounts:
        if account.type == AccountType.credit:
            totals.total_credit_used_cents += account.balance_cents
            totals.total_credit_limit_cents += account.credit_limit_cents or 0
        else:
            totals.total_cash_balance_cents += account.balance_cents
    return totals


def credit_utilization(account: Account) -> float:
    """Percent of the credit limit in use; 0 for non-credit accounts."""
    if account.type != AccountType.credit or not account.credit_limit_cents:
        return 0.0
    return account.balance_cents / account.credit_limit_cents * 100
