from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, ValidationError
from models import Account, AccountType, TransactionType
from reconciliation import signed_delta
from schemas import (
    BankAccountIn,
    CreditAccountIn,
    TransactionIn,
    TransactionUpdate,
    WalletAccountIn,
)
from services import AccountService, TransactionService

USER_ID = 1


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _wallet(session: Session, balance_cents: int = 0, name: str = "Wallet") -> Account:
    return AccountService(session, USER_ID).create(
        WalletAccountIn(type="wallet", name=name, balance_cents=balance_cents)
    )


def _txn(account: Account, amount_cents: int, txn_type: TransactionType, **extra):
    return TransactionIn(
        account_id=account.id,
        type=txn_type,
        amount_cents=amount_cents,
        category=extra.pop("category", "General"),
        date=extra.pop("date", date(2025, 3, 1)),
        **extra,
    )


def _balance(session: Session, account_id: int) -> int:
    return session.get(Account, account_id).balance_cents


def test_signed_delta_per_account_type() -> None:
    assert signed_delta(AccountType.wallet, TransactionType.income, 100) == 100
    assert signed_delta(AccountType.bank, TransactionType.expense, 100) == -100
    assert signed_delta(AccountType.credit, TransactionType.expense, 100) == 100
    assert signed_delta(AccountType.credit, TransactionType.income, 100) == -100


def test_wallet_income_expense_and_delete() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)

        service.create(_txn(wallet, 100, TransactionType.income))
        assert _balance(session, wallet.id) == 100

        expense = service.create(_txn(wallet, 40, TransactionType.expense))
        assert _balance(session, wallet.id) == 60

        service.delete(expense.id)
        assert _balance(session, wallet.id) == 100


def test_credit_purchase_and_payment() -> None:
    with make_session() as session:
        card = AccountService(session, USER_ID).create(
            CreditAccountIn(
                type="credit",
                name="Card",
                balance_cents=200,
                credit_limit_cents=500,
                payment_due_date=date(2025, 4, 15),
            )
        )
        service = TransactionService(session, USER_ID)

        service.create(
            _txn(card, 50, TransactionType.expense, description="purchase")
        )
        assert _balance(session, card.id) == 250

        service.create(_txn(card, 50, TransactionType.income, description="payment"))
        assert _balance(session, card.id) == 200


def test_move_to_other_account_with_new_amount() -> None:
    with make_session() as session:
        first = _wallet(session, 1_000, name="First")
        second = AccountService(session, USER_ID).create(
            BankAccountIn(type="bank", name="Second", balance_cents=1_000)
        )
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(first, 30, TransactionType.expense))
        assert _balance(session, first.id) == 970

        moved = service.update(
            txn.id, TransactionUpdate(account_id=second.id, amount_cents=45)
        )

        assert moved.account_id == second.id
        assert moved.amount_cents == 45
        assert _balance(session, first.id) == 1_000
        assert _balance(session, second.id) == 955


def test_round_trip_create_delete_restores_balance() -> None:
    with make_session() as session:
        wallet = _wallet(session, 500)
        service = TransactionService(session, USER_ID)
        for amount, txn_type in [
            (0, TransactionType.income),
            (1, TransactionType.expense),
            (12_345, TransactionType.income),
            (999, TransactionType.expense),
        ]:
            txn = service.create(_txn(wallet, amount, txn_type))
            service.delete(txn.id)
            assert _balance(session, wallet.id) == 500


def test_amount_update_changes_balance_by_difference() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        income = service.create(_txn(wallet, 100, TransactionType.income))
        expense = service.create(_txn(wallet, 40, TransactionType.expense))
        assert _balance(session, wallet.id) == 60

        service.update(income.id, TransactionUpdate(amount_cents=130))
        assert _balance(session, wallet.id) == 90

        service.update(expense.id, TransactionUpdate(amount_cents=10))
        assert _balance(session, wallet.id) == 120


def test_type_flip_applies_both_directions() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 25, TransactionType.expense))
        assert _balance(session, wallet.id) == -25

        service.update(txn.id, TransactionUpdate(type=TransactionType.income))
        assert _balance(session, wallet.id) == 25


def test_metadata_update_leaves_balance_alone() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 70, TransactionType.income))

        updated = service.update(
            txn.id,
            TransactionUpdate(
                category="Salary", description="March", date=date(2025, 3, 28)
            ),
        )

        assert updated.category == "Salary"
        assert updated.date == date(2025, 3, 28)
        assert _balance(session, wallet.id) == 70


def test_balance_matches_sum_of_deltas() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        created = [
            service.create(_txn(wallet, amount, txn_type))
            for amount, txn_type in [
                (500, TransactionType.income),
                (120, TransactionType.expense),
                (80, TransactionType.expense),
                (45, TransactionType.income),
            ]
        ]
        service.update(created[1].id, TransactionUpdate(amount_cents=200))
        service.delete(created[3].id)

        remaining = service.list()
        expected = sum(
            signed_delta(AccountType.wallet, txn.type, txn.amount_cents)
            for txn in remaining
        )
        assert _balance(session, wallet.id) == expected == 220


@pytest.mark.parametrize("rating", [-1, 11])
def test_rating_out_of_range_is_rejected(rating: int) -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 100, TransactionType.income))

        with pytest.raises(ValidationError):
            service.set_rating(txn.id, rating)
        with pytest.raises(ValidationError):
            service.create(_txn(wallet, 5, TransactionType.income, rating=rating))

        assert _balance(session, wallet.id) == 100
        assert len(service.list()) == 1


@pytest.mark.parametrize("rating", [0, 10])
def test_rating_bounds_are_accepted(rating: int) -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 100, TransactionType.income))

        rated = service.set_rating(txn.id, rating)

        assert rated.rating == rating
        assert _balance(session, wallet.id) == 100


def test_unknown_account_is_not_found_and_writes_nothing() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 100, TransactionType.income))

        with pytest.raises(NotFoundError):
            service.create(
                TransactionIn(
                    account_id=9_999,
                    type=TransactionType.income,
                    amount_cents=10,
                    category="General",
                )
            )
        with pytest.raises(NotFoundError):
            service.update(txn.id, TransactionUpdate(account_id=9_999))

        assert _balance(session, wallet.id) == 100
        assert service.get(txn.id).account_id == wallet.id


def test_other_users_accounts_are_invisible() -> None:
    with make_session() as session:
        foreign = AccountService(session, 2).create(
            WalletAccountIn(type="wallet", name="Theirs")
        )
        service = TransactionService(session, USER_ID)

        with pytest.raises(NotFoundError):
            service.create(_txn(foreign, 10, TransactionType.income))
        assert _balance(session, foreign.id) == 0


def test_orphaned_transaction_delete_and_update_skip_reversal() -> None:
    with make_session() as session:
        doomed = _wallet(session, name="Old")
        target = _wallet(session, name="New")
        service = TransactionService(session, USER_ID)
        first = service.create(_txn(doomed, 60, TransactionType.expense))
        second = service.create(_txn(doomed, 15, TransactionType.expense))

        AccountService(session, USER_ID).delete(doomed.id)
        assert service.get(first.id).account is None

        service.update(first.id, TransactionUpdate(amount_cents=80))
        service.update(second.id, TransactionUpdate(account_id=target.id))
        assert _balance(session, target.id) == -15

        service.delete(first.id)
        assert [txn.id for txn in service.list()] == [second.id]


def test_list_is_newest_first() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        middle = service.create(
            _txn(wallet, 10, TransactionType.income, date=date(2025, 3, 10))
        )
        oldest = service.create(
            _txn(wallet, 10, TransactionType.income, date=date(2025, 1, 5))
        )
        newest = service.create(
            _txn(wallet, 10, TransactionType.income, date=date(2025, 6, 1))
        )

        assert [txn.id for txn in service.list()] == [newest.id, middle.id, oldest.id]


def test_update_with_bad_rating_changes_nothing() -> None:
    with make_session() as session:
        wallet = _wallet(session)
        service = TransactionService(session, USER_ID)
        txn = service.create(_txn(wallet, 100, TransactionType.income))

        with pytest.raises(ValidationError):
            service.update(txn.id, TransactionUpdate(amount_cents=500, rating=11))

        assert _balance(session, wallet.id) == 100
        stored = service.get(txn.id)
        assert stored.amount_cents == 100
        assert stored.rating is None
