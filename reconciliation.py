"""Balance reconciliation.

An account's ``balance_cents`` is a cached value that must equal the sum of
``signed_delta`` over the transactions currently pointing at it. Every write
that adds, removes or changes a transaction's account, amount or type goes
through :class:`BalanceReconciler`, which adjusts the stored balance in the
same database transaction as the transaction write itself.

Sign convention:

* ``wallet`` and ``bank`` hold money: income adds, expense subtracts.
* ``credit`` holds the amount owed: an expense (purchase) adds to it and an
  income (payment) reduces it.

The sum invariant therefore holds per account kind: a credit balance is the
sum of deltas with the credit signs above, not of income minus expenses.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from errors import NotFoundError
from models import Account, AccountType, TransactionType

logger = logging.getLogger(__name__)


def signed_delta(
    account_type: AccountType, txn_type: TransactionType, amount_cents: int
) -> int:
    sign = 1 if txn_type == TransactionType.income else -1
    if account_type == AccountType.credit:
        sign = -sign
    return sign * amount_cents


class BalanceReconciler:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def find_account(self, account_id: int) -> Optional[Account]:
        stmt = select(Account).where(
            Account.id == account_id, Account.user_id == self.user_id
        )
        return self.session.scalar(stmt)

    def load_account(self, account_id: int) -> Account:
        account = self.find_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def adjust(self, account: Account, delta_cents: int, *, reason: str) -> None:
        """Add ``delta_cents`` to the stored balance.

        The increment is computed by the database, so two requests touching
        the same account cannot overwrite each other's change.
        """
        if delta_cents == 0:
            return
        self.session.execute(
            update(Account)
            .where(Account.id == account.id, Account.user_id == self.user_id)
            .values(balance_cents=Account.balance_cents + delta_cents)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(
            f"balance_adjusted: account_id={account.id} delta_cents={delta_cents} "
            f"reason={reason}"
        )

    def apply(
        self, account: Account, txn_type: TransactionType, amount_cents: int
    ) -> None:
        self.adjust(
            account, signed_delta(account.type, txn_type, amount_cents), reason="apply"
        )

    def reverse(
        self, account: Account, txn_type: TransactionType, amount_cents: int
    ) -> None:
        self.adjust(
            account,
            -signed_delta(account.type, txn_type, amount_cents),
            reason="reverse",
        )

    def reapply(
        self,
        account: Account,
        old: tuple[TransactionType, int],
        new: tuple[TransactionType, int],
    ) -> None:
        """Swap the effect of ``old`` (type, amount) for ``new`` on one account."""
        delta = signed_delta(account.type, *new) - signed_delta(account.type, *old)
        self.adjust(account, delta, reason="reapply")

    def move(
        self,
        old_account: Optional[Account],
        new_account: Account,
        old: tuple[TransactionType, int],
        new: tuple[TransactionType, int],
    ) -> None:
        """Take ``old`` off ``old_account`` and put ``new`` on ``new_account``.

        ``old_account`` is None when the transaction's account was deleted;
        there is nothing left to reverse then.
        """
        if old_account is not None:
            self.reverse(old_account, *old)
        self.apply(new_account, *new)
