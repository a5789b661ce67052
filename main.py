import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import Body, Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import verify_token
from config import get_settings
from database import get_db
from errors import NotFoundError
from models import ScheduledStatus, TransactionType
from periods import Period, resolve_period
from schemas import (
    AccountOut,
    AccountUpdate,
    AccountVariant,
    BudgetIn,
    BudgetOut,
    BudgetUpdate,
    ProcessedOut,
    RatingIn,
    ScheduledTransactionIn,
    ScheduledTransactionOut,
    ScheduledTransactionUpdate,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
)
from services import (
    AccountService,
    BudgetService,
    CSVService,
    ScheduledTransactionService,
    SummaryService,
    TransactionFilters,
    TransactionService,
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")


@app.exception_handler(SQLAlchemyError)
def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"database_error: path={request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Database error"})


def current_user_id(authorization: Optional[str] = Header(default=None)) -> int:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            user_id = verify_token(token.strip())
            if user_id is not None:
                return user_id
    raise HTTPException(status_code=401, detail="Please authenticate")


def _http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    category_param = request.query_params.get("category")
    account_param = request.query_params.get("account_id")
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid type") from exc
    account_id = None
    if account_param:
        try:
            account_id = int(account_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid account_id") from exc
    return TransactionFilters(
        type=txn_type,
        category=category_param or None,
        account_id=account_id,
        period=period_from_request(request),
    )


def _csv_response(csv_text: str, prefix: str) -> Response:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{prefix}_{timestamp}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Accounts


@app.get("/api/accounts", response_model=list[AccountOut])
def list_accounts(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return AccountService(db, user_id).list_all()


@app.get("/api/accounts/{account_id}", response_model=AccountOut)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return AccountService(db, user_id).get(account_id)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/accounts", response_model=AccountOut, status_code=201)
def create_account(
    payload: Annotated[AccountVariant, Body(discriminator="type")],
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return AccountService(db, user_id).create(payload)


@app.put("/api/accounts/{account_id}", response_model=AccountOut)
def update_account(
    account_id: int,
    payload: AccountUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return AccountService(db, user_id).update(account_id, payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/accounts/{account_id}")
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        AccountService(db, user_id).delete(account_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Account deleted"}


# Transactions


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    filters = filters_from_request(request)
    return TransactionService(db, user_id).list(filters)


@app.get("/api/transactions/summary")
def transactions_summary(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    filters = filters_from_request(request)
    return SummaryService(db, user_id).summary(filters)


@app.get("/api/transactions/export")
def export_transactions_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    filters = filters_from_request(request)
    csv_text = CSVService(db, user_id).export_transactions(filters)
    return _csv_response(csv_text, "transactions")


@app.post("/api/transactions/import")
async def import_transactions_endpoint(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")
    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded") from exc
    try:
        result = CSVService(db, user_id).import_transactions(content)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Import successful", **result}


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).get(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).create(payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).update(transaction_id, payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.patch("/api/transactions/{transaction_id}/rating", response_model=TransactionOut)
def rate_transaction(
    transaction_id: int,
    payload: RatingIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).set_rating(transaction_id, payload.rating)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Transaction deleted"}


# Scheduled transactions


@app.get("/api/scheduled-transactions", response_model=list[ScheduledTransactionOut])
def list_scheduled(
    status: Optional[ScheduledStatus] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return ScheduledTransactionService(db, user_id).list(status)


@app.get(
    "/api/scheduled-transactions/{scheduled_id}", response_model=ScheduledTransactionOut
)
def get_scheduled(
    scheduled_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return ScheduledTransactionService(db, user_id).get(scheduled_id)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post(
    "/api/scheduled-transactions",
    response_model=ScheduledTransactionOut,
    status_code=201,
)
def create_scheduled(
    payload: ScheduledTransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return ScheduledTransactionService(db, user_id).create(payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put(
    "/api/scheduled-transactions/{scheduled_id}", response_model=ScheduledTransactionOut
)
def update_scheduled(
    scheduled_id: int,
    payload: ScheduledTransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return ScheduledTransactionService(db, user_id).update(scheduled_id, payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post(
    "/api/scheduled-transactions/{scheduled_id}/process", response_model=ProcessedOut
)
def process_scheduled(
    scheduled_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        txn, follow_up = ScheduledTransactionService(db, user_id).process(scheduled_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return ProcessedOut(
        transaction=TransactionOut.model_validate(txn),
        next_scheduled=(
            ScheduledTransactionOut.model_validate(follow_up) if follow_up else None
        ),
    )


@app.delete("/api/scheduled-transactions/{scheduled_id}")
def delete_scheduled(
    scheduled_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        ScheduledTransactionService(db, user_id).delete(scheduled_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Scheduled transaction deleted"}


# Budgets


@app.get("/api/budgets", response_model=list[BudgetOut])
def list_budgets(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return BudgetService(db, user_id).list_all()


@app.get("/api/budgets/progress")
def budgets_progress(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return [
        {
            "budget": BudgetOut.model_validate(item.budget),
            "start": item.window.start,
            "end": item.window.end,
            "spent_cents": item.spent_cents,
            "remaining_cents": item.remaining_cents,
            "ratio": item.ratio,
        }
        for item in BudgetService(db, user_id).progress()
    ]


@app.get("/api/budgets/export")
def export_budgets_endpoint(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return _csv_response(CSVService(db, user_id).export_budgets(), "budgets")


@app.get("/api/budgets/{budget_id}", response_model=BudgetOut)
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return BudgetService(db, user_id).get(budget_id)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.post("/api/budgets", response_model=BudgetOut, status_code=201)
def create_budget(
    payload: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return BudgetService(db, user_id).create(payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.put("/api/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return BudgetService(db, user_id).update(budget_id, payload)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        BudgetService(db, user_id).delete(budget_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Budget deleted"}


def main() -> None:
    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
