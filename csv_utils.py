import csv
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Sequence

from models import Budget, Transaction, TransactionType
from schemas import CSVRow

TRANSACTION_COLUMNS = ["date", "amount", "type", "category", "description", "account_id"]
BUDGET_COLUMNS = ["category", "amount", "period"]


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_date(value: str):
    value = value.strip()
    # Exports from other tools often carry a time part.
    value = value.split("T", 1)[0]
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return datetime.strptime(value, "%d.%m.%Y").date()


def parse_amount(value: str) -> int:
    clean = value.strip().replace("€", "").replace("$", "").replace(" ", "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0:
        raise ValueError("Amount must be positive")
    return cents


def format_cents(cents: int) -> str:
    return f"{Decimal(cents) / 100:.2f}"


def parse_csv(content: str) -> tuple[list[CSVRow], list[str]]:
    reader = csv.DictReader(StringIO(content))
    if reader.fieldnames:
        reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    missing = [
        name
        for name in ("date", "amount", "type", "category", "description")
        if name not in (reader.fieldnames or [])
    ]
    if missing:
        raise ValueError(f"CSV file is missing required columns: {', '.join(missing)}")

    rows: list[CSVRow] = []
    errors: list[str] = []
    for idx, raw in enumerate(reader, start=1):
        if not any((value or "").strip() for value in raw.values()):
            continue
        try:
            account_raw = (raw.get("account_id") or "").strip()
            rows.append(
                CSVRow(
                    date=parse_date(raw.get("date") or ""),
                    type=TransactionType((raw.get("type") or "").strip().lower()),
                    amount_cents=parse_amount(raw.get("amount") or "0"),
                    category=(raw.get("category") or "").strip(),
                    description=(raw.get("description") or "").strip(),
                    account_id=int(account_raw) if account_raw else None,
                )
            )
        except Exception as exc:
            errors.append(f"Row {idx}: {exc}")
    return rows, errors


def export_transactions(transactions: Sequence[Transaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(TRANSACTION_COLUMNS)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                format_cents(txn.amount_cents),
                txn.type.value,
                sanitize_csv_value(txn.category),
                sanitize_csv_value(txn.description or ""),
                txn.account_id,
            ]
        )
    return output.getvalue()


def export_budgets(budgets: Sequence[Budget]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(BUDGET_COLUMNS)
    for budget in budgets:
        writer.writerow(
            [
                sanitize_csv_value(budget.category),
                format_cents(budget.amount_cents),
                budget.period.value,
            ]
        )
    return output.getvalue()
