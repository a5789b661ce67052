from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from csv_utils import parse_amount, parse_csv, sanitize_csv_value
from database import Base
from errors import ValidationError
from models import Account, TransactionType
from schemas import BudgetIn, TransactionIn, WalletAccountIn
from services import AccountService, BudgetService, CSVService, TransactionService

USER_ID = 1


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_parse_amount_formats() -> None:
    assert parse_amount("12.34") == 1234
    assert parse_amount("1.234,50") == 123450
    assert parse_amount("$ 7") == 700
    with pytest.raises(ValueError):
        parse_amount("-3.00")
    with pytest.raises(ValueError):
        parse_amount("abc")


def test_sanitize_blocks_formulas() -> None:
    assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"
    assert sanitize_csv_value("Groceries") == "Groceries"
    assert sanitize_csv_value("sh run.sh") == "\tsh run.sh"
    assert sanitize_csv_value("./payload") == "\t./payload"


def test_parse_csv_collects_row_errors() -> None:
    content = (
        "Date,Amount,Type,Category,Description\n"
        "2025-03-01,10.00,expense,Food,Lunch\n"
        "\n"
        "2025-03-02T08:30:00Z,5.5,income,Refund,\n"
        "yesterday,1.00,expense,Food,bad date\n"
        "2025-03-03,2.00,transfer,Food,bad type\n"
    )
    rows, errors = parse_csv(content)

    assert [row.amount_cents for row in rows] == [1000, 550]
    assert rows[1].date == date(2025, 3, 2)
    assert rows[1].type == TransactionType.income
    assert len(errors) == 2
    assert errors[0].startswith("Row ")


def test_parse_csv_requires_columns() -> None:
    with pytest.raises(ValueError, match="missing required columns: type"):
        parse_csv("date,amount,category,description\n2025-01-01,1,Food,x\n")


def test_import_applies_balances_and_skips_unknown_accounts() -> None:
    with make_session() as session:
        accounts = AccountService(session, USER_ID)
        first = accounts.create(WalletAccountIn(type="wallet", name="First"))
        second = accounts.create(
            WalletAccountIn(type="wallet", name="Second", balance_cents=1_000)
        )
        content = (
            "date,amount,type,category,description,account_id\n"
            "2025-03-01,20.00,income,Salary,March,\n"
            f"2025-03-02,3.50,expense,Food,Lunch,{second.id}\n"
            "2025-03-03,1.00,expense,Food,Ghost,999\n"
            "2025-03-04,oops,expense,Food,Broken,\n"
        )

        result = CSVService(session, USER_ID).import_transactions(content)

        assert result["imported"] == 2
        assert result["skipped"] == 1
        assert len(result["errors"]) == 1
        assert session.get(Account, first.id).balance_cents == 2_000
        assert session.get(Account, second.id).balance_cents == 650
        assert len(TransactionService(session, USER_ID).list()) == 2


def test_import_without_default_account_fails() -> None:
    with make_session() as session:
        with pytest.raises(ValidationError, match="No default account found"):
            CSVService(session, USER_ID).import_transactions(
                "date,amount,type,category,description\n2025-03-01,1,income,X,\n"
            )


def test_import_with_missing_columns_is_validation_error() -> None:
    with make_session() as session:
        with pytest.raises(ValidationError):
            CSVService(session, USER_ID).import_transactions("date,amount\n")


def test_export_transactions_and_budgets() -> None:
    with make_session() as session:
        wallet = AccountService(session, USER_ID).create(
            WalletAccountIn(type="wallet", name="Cash")
        )
        TransactionService(session, USER_ID).create(
            TransactionIn(
                account_id=wallet.id,
                type=TransactionType.expense,
                amount_cents=1_999,
                category="=cmd",
                description="Snacks",
                date=date(2025, 3, 1),
            )
        )
        BudgetService(session, USER_ID).create(
            BudgetIn(category="Food", amount_cents=25_000)
        )
        service = CSVService(session, USER_ID)

        lines = service.export_transactions().splitlines()
        assert lines[0] == "date,amount,type,category,description,account_id"
        assert lines[1] == f"2025-03-01,19.99,expense,\t=cmd,Snacks,{wallet.id}"

        budget_lines = service.export_budgets().splitlines()
        assert budget_lines == ["category,amount,period", "Food,250.00,monthly"]
