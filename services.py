from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from csv_utils import export_budgets, export_transactions, parse_csv
from errors import NotFoundError, ValidationError
from models import (
    Account,
    AccountType,
    Budget,
    ScheduledStatus,
    ScheduledTransaction,
    Transaction,
    TransactionType,
)
from periods import ALL_TIME, Period, budget_window
from reconciliation import BalanceReconciler
from recurrence import local_today, next_occurrence
from schemas import (
    AccountIn,
    AccountUpdate,
    BudgetIn,
    BudgetUpdate,
    CreditAccountIn,
    ScheduledTransactionIn,
    ScheduledTransactionUpdate,
    TransactionIn,
    TransactionUpdate,
)
from summary import credit_utilization, summarize_accounts, summarize_transactions

logger = logging.getLogger(__name__)


def _check_rating(rating: Optional[int]) -> None:
    if rating is None or not 0 <= rating <= 10:
        raise ValidationError("Rating must be between 0 and 10")


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    account_id: Optional[int] = None
    period: Period = ALL_TIME


class AccountService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Account]:
        stmt = (
            select(Account).where(Account.user_id == self.user_id).order_by(Account.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, account_id: int) -> Account:
        account = self.session.scalar(
            select(Account).where(
                Account.id == account_id, Account.user_id == self.user_id
            )
        )
        if not account:
            raise NotFoundError("Account not found")
        return account

    def create(self, data: AccountIn) -> Account:
        account = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            type=AccountType(data.type),
            balance_cents=data.balance_cents,
            currency=data.currency,
        )
        if isinstance(data, CreditAccountIn):
            account.credit_limit_cents = data.credit_limit_cents
            account.payment_due_date = data.payment_due_date
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        logger.info(f"account_created: account_id={account.id} type={account.type.value}")
        return account

    def update(self, account_id: int, data: AccountUpdate) -> Account:
        account = self.get(account_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not account.is_credit and (
            "credit_limit_cents" in changes or "payment_due_date" in changes
        ):
            raise ValidationError(
                "Credit limit and payment due date only apply to credit accounts"
            )
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "balance_cents" in changes and changes["balance_cents"] != account.balance_cents:
            # Direct edits bypass reconciliation.
            logger.info(
                f"balance_overridden: account_id={account.id} "
                f"old_cents={account.balance_cents} new_cents={changes['balance_cents']}"
            )
        for name, value in changes.items():
            setattr(account, name, value)
        self.session.commit()
        self.session.refresh(account)
        return account

    def delete(self, account_id: int) -> None:
        account = self.get(account_id)
        orphaned = self.session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == self.user_id,
                Transaction.account_id == account.id,
            )
        ).scalar_one()
        self.session.delete(account)
        self.session.commit()
        logger.info(
            f"account_deleted: account_id={account_id} orphaned_transactions={orphaned}"
        )


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.reconciler = BalanceReconciler(session, user_id)

    def list(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.account))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        if filters.account_id:
            stmt = stmt.where(Transaction.account_id == filters.account_id)
        if filters.period.start:
            stmt = stmt.where(Transaction.date >= filters.period.start)
        if filters.period.end:
            stmt = stmt.where(Transaction.date <= filters.period.end)
        return self.session.scalars(stmt).all()

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.account))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        if data.rating is not None:
            _check_rating(data.rating)
        account = self.reconciler.load_account(data.account_id)
        txn = Transaction(
            user_id=self.user_id,
            account_id=account.id,
            date=data.date or local_today(),
            type=data.type,
            amount_cents=data.amount_cents,
            category=data.category.strip(),
            description=data.description,
            rating=data.rating,
        )
        self.session.add(txn)
        self.reconciler.apply(account, data.type, data.amount_cents)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: transaction_id={txn.id} account_id={account.id}"
        )
        return txn

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "rating" in changes:
            _check_rating(changes["rating"])
        if "category" in changes:
            changes["category"] = changes["category"].strip()

        # Reversal always uses what is stored, never the incoming values.
        old = (txn.type, txn.amount_cents)
        new = (
            changes.get("type", txn.type),
            changes.get("amount_cents", txn.amount_cents),
        )
        new_account_id = changes.get("account_id", txn.account_id)
        if new_account_id != txn.account_id:
            new_account = self.reconciler.load_account(new_account_id)
            old_account = self.reconciler.find_account(txn.account_id)
            self.reconciler.move(old_account, new_account, old, new)
        elif new != old:
            account = self.reconciler.find_account(txn.account_id)
            if account is not None:
                self.reconciler.reapply(account, old, new)
            else:
                logger.info(
                    f"reconcile_skipped: transaction_id={txn.id} "
                    f"missing_account_id={txn.account_id}"
                )

        for name, value in changes.items():
            setattr(txn, name, value)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def set_rating(self, transaction_id: int, rating: Optional[int]) -> Transaction:
        _check_rating(rating)
        txn = self.get(transaction_id)
        txn.rating = rating
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        account = self.reconciler.find_account(txn.account_id)
        if account is not None:
            self.reconciler.reverse(account, txn.type, txn.amount_cents)
        else:
            logger.info(
                f"reconcile_skipped: transaction_id={txn.id} "
                f"missing_account_id={txn.account_id}"
            )
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: transaction_id={transaction_id}")


class ScheduledTransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.reconciler = BalanceReconciler(session, user_id)

    def list(self, status: Optional[ScheduledStatus] = None) -> list[ScheduledTransaction]:
        stmt = (
            select(ScheduledTransaction)
            .options(joinedload(ScheduledTransaction.account))
            .where(ScheduledTransaction.user_id == self.user_id)
            .order_by(
                ScheduledTransaction.scheduled_date.asc(), ScheduledTransaction.id.asc()
            )
        )
        if status:
            stmt = stmt.where(ScheduledTransaction.status == status)
        return self.session.scalars(stmt).all()

    def get(
        self, scheduled_id: int, *, status: Optional[ScheduledStatus] = None
    ) -> ScheduledTransaction:
        stmt = select(ScheduledTransaction).where(
            ScheduledTransaction.user_id == self.user_id,
            ScheduledTransaction.id == scheduled_id,
        )
        if status:
            stmt = stmt.where(ScheduledTransaction.status == status)
        scheduled = self.session.scalar(stmt)
        if not scheduled:
            if status == ScheduledStatus.pending:
                raise NotFoundError("Pending scheduled transaction not found")
            raise NotFoundError("Scheduled transaction not found")
        return scheduled

    @staticmethod
    def _check_recurrence(
        is_recurring: bool,
        recurrence_type,
        recurrence_end: Optional[date],
        scheduled_date: date,
    ) -> None:
        if not is_recurring:
            return
        if recurrence_type is None:
            raise ValidationError("Recurring transactions need a recurrence type")
        if recurrence_end and recurrence_end < scheduled_date:
            raise ValidationError("Recurrence end must not be before the scheduled date")

    def create(self, data: ScheduledTransactionIn) -> ScheduledTransaction:
        self.reconciler.load_account(data.account_id)
        self._check_recurrence(
            data.is_recurring,
            data.recurrence_type,
            data.recurrence_end,
            data.scheduled_date,
        )
        scheduled = ScheduledTransaction(
            user_id=self.user_id,
            account_id=data.account_id,
            type=data.type,
            amount_cents=data.amount_cents,
            category=data.category.strip(),
            description=data.description,
            scheduled_date=data.scheduled_date,
            is_recurring=data.is_recurring,
            recurrence_type=data.recurrence_type if data.is_recurring else None,
            recurrence_end=data.recurrence_end if data.is_recurring else None,
            status=ScheduledStatus.pending,
        )
        self.session.add(scheduled)
        self.session.commit()
        self.session.refresh(scheduled)
        return scheduled

    def update(
        self, scheduled_id: int, data: ScheduledTransactionUpdate
    ) -> ScheduledTransaction:
        scheduled = self.get(scheduled_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes.get("account_id", scheduled.account_id) != scheduled.account_id:
            self.reconciler.load_account(changes["account_id"])
        is_recurring = changes.get("is_recurring", scheduled.is_recurring)
        self._check_recurrence(
            is_recurring,
            changes.get("recurrence_type", scheduled.recurrence_type),
            changes.get("recurrence_end", scheduled.recurrence_end),
            changes.get("scheduled_date", scheduled.scheduled_date),
        )
        if "category" in changes:
            changes["category"] = changes["category"].strip()

        # Any status may be written here; only process() is restricted.
        for name, value in changes.items():
            setattr(scheduled, name, value)
        if not is_recurring:
            scheduled.recurrence_type = None
            scheduled.recurrence_end = None
        self.session.commit()
        self.session.refresh(scheduled)
        return scheduled

    def process(
        self, scheduled_id: int, *, today: Optional[date] = None
    ) -> tuple[Transaction, Optional[ScheduledTransaction]]:
        scheduled = self.get(scheduled_id, status=ScheduledStatus.pending)
        account = self.reconciler.load_account(scheduled.account_id)

        # Claim the record with a conditional update so it is processed once
        # even when two requests race for it.
        claimed = self.session.execute(
            update(ScheduledTransaction)
            .where(
                ScheduledTransaction.id == scheduled.id,
                ScheduledTransaction.user_id == self.user_id,
                ScheduledTransaction.status == ScheduledStatus.pending,
            )
            .values(status=ScheduledStatus.processed)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.session.rollback()
            raise NotFoundError("Pending scheduled transaction not found")
        self.session.expire(scheduled, ["status"])

        txn = Transaction(
            user_id=self.user_id,
            account_id=scheduled.account_id,
            date=today or local_today(),
            type=scheduled.type,
            amount_cents=scheduled.amount_cents,
            category=scheduled.category,
            description=scheduled.description,
            origin_scheduled_id=scheduled.id,
        )
        self.session.add(txn)
        self.reconciler.apply(account, scheduled.type, scheduled.amount_cents)

        follow_up = None
        next_date = next_occurrence(scheduled)
        if next_date is not None:
            follow_up = ScheduledTransaction(
                user_id=self.user_id,
                account_id=scheduled.account_id,
                type=scheduled.type,
                amount_cents=scheduled.amount_cents,
                category=scheduled.category,
                description=scheduled.description,
                scheduled_date=next_date,
                is_recurring=True,
                recurrence_type=scheduled.recurrence_type,
                recurrence_end=scheduled.recurrence_end,
                status=ScheduledStatus.pending,
            )
            self.session.add(follow_up)

        self.session.commit()
        self.session.refresh(txn)
        if follow_up is not None:
            self.session.refresh(follow_up)
        logger.info(
            f"scheduled_processed: scheduled_id={scheduled.id} transaction_id={txn.id} "
            f"next_scheduled_id={follow_up.id if follow_up else None}"
        )
        return txn, follow_up

    def delete(self, scheduled_id: int) -> None:
        scheduled = self.get(scheduled_id)
        self.session.delete(scheduled)
        self.session.commit()


@dataclass
class BudgetProgress:
    budget: Budget
    window: Period
    spent_cents: int

    @property
    def remaining_cents(self) -> int:
        return self.budget.amount_cents - self.spent_cents

    @property
    def ratio(self) -> float:
        if self.budget.amount_cents <= 0:
            return 0.0
        return self.spent_cents / self.budget.amount_cents


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.category)
        )
        return self.session.scalars(stmt).all()

    def get(self, budget_id: int) -> Budget:
        budget = self.session.scalar(
            select(Budget).where(Budget.id == budget_id, Budget.user_id == self.user_id)
        )
        if not budget:
            raise NotFoundError("Budget not found")
        return budget

    def _ensure_unique(self, category: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Budget.id).where(
            Budget.user_id == self.user_id, Budget.category == category
        )
        if exclude_id is not None:
            stmt = stmt.where(Budget.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise ValidationError(f"A budget for {category} already exists")

    def create(self, data: BudgetIn) -> Budget:
        category = data.category.strip()
        self._ensure_unique(category)
        budget = Budget(
            user_id=self.user_id,
            category=category,
            amount_cents=data.amount_cents,
            period=data.period,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def update(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "category" in changes:
            changes["category"] = changes["category"].strip()
            if changes["category"] != budget.category:
                self._ensure_unique(changes["category"], exclude_id=budget.id)
        for name, value in changes.items():
            setattr(budget, name, value)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()

    def progress(self, today: Optional[date] = None) -> list[BudgetProgress]:
        today = today or local_today()
        results: list[BudgetProgress] = []
        for budget in self.list_all():
            window = budget_window(budget.period, today)
            spent = self.session.execute(
                select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
                    Transaction.user_id == self.user_id,
                    Transaction.type == TransactionType.expense,
                    Transaction.category == budget.category,
                    Transaction.date.between(window.start, window.end),
                )
            ).scalar_one()
            results.append(
                BudgetProgress(budget=budget, window=window, spent_cents=int(spent))
            )
        return results


class SummaryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def summary(self, filters: Optional[TransactionFilters] = None) -> dict[str, object]:
        transactions = TransactionService(self.session, self.user_id).list(filters)
        accounts = AccountService(self.session, self.user_id).list_all()
        txn_totals = summarize_transactions(transactions)
        account_totals = summarize_accounts(accounts)
        return {
            "total_income_cents": txn_totals.total_income_cents,
            "total_expenses_cents": txn_totals.total_expenses_cents,
            "net_balance_cents": txn_totals.net_balance_cents,
            "category_breakdown": txn_totals.category_breakdown,
            "total_cash_balance_cents": account_totals.total_cash_balance_cents,
            "total_credit_used_cents": account_totals.total_credit_used_cents,
            "total_credit_limit_cents": account_totals.total_credit_limit_cents,
            "credit_usage": account_totals.credit_usage,
            "net_worth_cents": account_totals.net_worth_cents,
            "accounts": [
                {
                    "id": account.id,
                    "name": account.name,
                    "type": account.type.value,
                    "balance_cents": account.balance_cents,
                    "credit_limit_cents": account.credit_limit_cents,
                    "credit_utilization": credit_utilization(account),
                }
                for account in accounts
            ],
        }


class CSVService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def export_transactions(self, filters: Optional[TransactionFilters] = None) -> str:
        transactions = TransactionService(self.session, self.user_id).list(filters)
        return export_transactions(transactions)

    def export_budgets(self) -> str:
        return export_budgets(BudgetService(self.session, self.user_id).list_all())

    def import_transactions(self, content: str) -> dict[str, object]:
        try:
            rows, errors = parse_csv(content)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        reconciler = BalanceReconciler(self.session, self.user_id)

        default_account: Optional[Account] = None
        if any(row.account_id is None for row in rows):
            default_account = self.session.scalar(
                select(Account)
                .where(Account.user_id == self.user_id)
                .order_by(Account.id)
                .limit(1)
            )
            if default_account is None:
                raise ValidationError("No default account found")

        imported = 0
        skipped = 0
        for row in rows:
            if row.account_id is None:
                account = default_account
            else:
                account = reconciler.find_account(row.account_id)
            if account is None:
                skipped += 1
                continue
            self.session.add(
                Transaction(
                    user_id=self.user_id,
                    account_id=account.id,
                    date=row.date,
                    type=row.type,
                    amount_cents=row.amount_cents,
                    category=row.category,
                    description=row.description,
                )
            )
            reconciler.apply(account, row.type, row.amount_cents)
            imported += 1

        self.session.commit()
        logger.info(
            f"csv_import: imported={imported} skipped={skipped} errors={len(errors)}"
        )
        return {"imported": imported, "skipped": skipped, "errors": errors}
