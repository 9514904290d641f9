import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import get_current_user_id
from config import get_settings
from database import Base, engine, get_db
from queries import DateFilterMode, ExpenseFilters, QueryValidationError, build_filters
from schemas import (
    CategoryTotalOut,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdate,
    MessageOut,
    MonthCategoryTotalOut,
    MonthTotalOut,
    TopCategoryOut,
    TotalOut,
)
from services import ExpenseNotFound, ExpenseStore, ReportService, StoreError

settings = get_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

DATE_FILTER_MODE = DateFilterMode(settings.date_filter_mode)

app = FastAPI(title="Expense Tracker API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info(
        f"startup: date_filter_mode={DATE_FILTER_MODE.value} "
        f"store_timeout_secs={settings.store_timeout_secs}"
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    message = "Invalid request"
    if problems:
        message = f"{message}: {'; '.join(problems)}"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"request_failed: path={request.url.path} error={exc}")
    return JSONResponse(status_code=500, content={"message": "Server Error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"request_failed: path={request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Server Error"})


def filters_from_request(
    request: Request,
    user_id: str,
    *,
    with_category: bool = False,
    with_limit: bool = False,
) -> ExpenseFilters:
    params = request.query_params
    try:
        return build_filters(
            user_id,
            start_date=params.get("startDate"),
            end_date=params.get("endDate"),
            category=params.get("category") if with_category else None,
            limit=params.get("limit") if with_limit else None,
            date_mode=DATE_FILTER_MODE,
            default_limit=settings.top_categories_limit if with_limit else None,
        )
    except QueryValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/", response_class=PlainTextResponse)
def root():
    return "API is running..."


@app.post("/expenses", response_model=ExpenseOut, status_code=201)
def add_expense(
    data: ExpenseIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    expense = ExpenseStore(db).add(user_id, data)
    return ExpenseOut.from_expense(expense)


@app.get("/expenses", response_model=list[ExpenseOut])
def list_expenses(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request, user_id, with_category=True)
    return ReportService(db).list_expenses(filters)


@app.get("/expenses/summary", response_model=list[CategoryTotalOut])
def expense_summary(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request, user_id)
    return ReportService(db).category_summary(filters)


@app.get("/expenses/monthly", response_model=list[MonthTotalOut])
def monthly_trend(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ReportService(db).monthly_trend(ExpenseFilters(user_id=user_id))


@app.get("/expenses/monthly-breakdown", response_model=list[MonthCategoryTotalOut])
def monthly_breakdown(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request, user_id, with_category=True)
    return ReportService(db).monthly_breakdown(filters)


@app.get("/expenses/top-categories", response_model=list[TopCategoryOut])
def top_categories(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request, user_id, with_limit=True)
    return ReportService(db).top_categories(filters)


@app.get("/expenses/total", response_model=TotalOut)
def total_spending(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request, user_id)
    return ReportService(db).total(filters)


@app.put("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    patch: ExpenseUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseStore(db).update_by_id(expense_id, user_id, patch)
    except ExpenseNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ExpenseOut.from_expense(expense)


@app.delete("/expenses/{expense_id}", response_model=MessageOut)
def delete_expense(
    expense_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        ExpenseStore(db).delete_by_id(expense_id, user_id)
    except ExpenseNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return MessageOut(message="Expense removed")


def main(port: Optional[int] = None):
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=port or settings.port, reload=False)


if __name__ == "__main__":
    main()
