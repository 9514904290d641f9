from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Iterator

from pydantic import BaseModel
from sqlalchemy import delete, extract, func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from models import Expense
from money import from_cents, to_cents
from queries import ExpenseFilters
from schemas import (
    CategoryTotalOut,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdate,
    MonthCategoryKey,
    MonthCategoryTotalOut,
    MonthKey,
    MonthTotalOut,
    TopCategoryOut,
    TotalOut,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_CATEGORIES = 5


class ExpenseNotFound(ValueError):
    def __init__(self, expense_id: int) -> None:
        super().__init__("Expense not found")
        self.expense_id = expense_id


class StoreError(RuntimeError):
    pass


_CATEGORY = Expense.category.label("category")
_YEAR = extract("year", Expense.date).label("year")
_MONTH = extract("month", Expense.date).label("month")
_TOTAL = func.sum(Expense.amount_cents).label("total_cents")
_COUNT = func.count(Expense.id).label("expense_count")


def _apply_filters(stmt: Select, filters: ExpenseFilters) -> Select:
    stmt = stmt.where(Expense.user_id == filters.user_id)
    if filters.has_date_range:
        stmt = stmt.where(Expense.date.between(filters.start, filters.end))
    if filters.category is not None:
        stmt = stmt.where(Expense.category == filters.category)
    return stmt


def _column_values(patch: ExpenseUpdate) -> dict[str, object]:
    values = patch.present_fields()
    if "amount" in values:
        values["amount_cents"] = to_cents(values.pop("amount"))
    return values


@dataclass(frozen=True)
class AggregateView:
    """One grouped view: filter, group by ``keys``, sum amounts, sort, limit.

    ``keys`` may be empty, in which case the whole filtered set collapses into
    a single row. ``limited`` views honour ``ExpenseFilters.limit``.
    """

    name: str
    keys: tuple[ColumnElement, ...]
    shape: Callable[[Row], BaseModel]
    order_by: tuple[ColumnElement, ...] = ()
    with_count: bool = False
    limited: bool = False


def _category_total(row: Row) -> CategoryTotalOut:
    return CategoryTotalOut(
        category=row.category,
        total_amount=from_cents(row.total_cents),
        count=int(row.expense_count),
    )


def _top_category(row: Row) -> TopCategoryOut:
    return TopCategoryOut(
        category=row.category, total_amount=from_cents(row.total_cents)
    )


def _month_total(row: Row) -> MonthTotalOut:
    return MonthTotalOut(
        key=MonthKey(year=int(row.year), month=int(row.month)),
        total_amount=from_cents(row.total_cents),
    )


def _month_category_total(row: Row) -> MonthCategoryTotalOut:
    return MonthCategoryTotalOut(
        key=MonthCategoryKey(
            year=int(row.year), month=int(row.month), category=row.category
        ),
        total_amount=from_cents(row.total_cents),
    )


def _grand_total(row: Row) -> TotalOut:
    return TotalOut(total=from_cents(row.total_cents))


# equal totals fall back to category name, ascending
CATEGORY_SUMMARY = AggregateView(
    name="category-summary",
    keys=(_CATEGORY,),
    shape=_category_total,
    order_by=(_TOTAL.desc(), _CATEGORY.asc()),
    with_count=True,
)
MONTHLY_TREND = AggregateView(
    name="monthly-trend",
    keys=(_YEAR, _MONTH),
    shape=_month_total,
    order_by=(_YEAR.asc(), _MONTH.asc()),
)
MONTHLY_BREAKDOWN = AggregateView(
    name="monthly-breakdown",
    keys=(_YEAR, _MONTH, _CATEGORY),
    shape=_month_category_total,
    order_by=(_YEAR.asc(), _MONTH.asc(), _CATEGORY.asc()),
)
TOP_CATEGORIES = AggregateView(
    name="top-categories",
    keys=(_CATEGORY,),
    shape=_top_category,
    order_by=(_TOTAL.desc(), _CATEGORY.asc()),
    limited=True,
)
TOTAL = AggregateView(name="total", keys=(), shape=_grand_total)


class ExpenseStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                f"store_error: operation={operation} error={exc.__class__.__name__}"
            )
            raise StoreError(f"Record store failure during {operation}") from exc

    def add(self, user_id: str, data: ExpenseIn) -> Expense:
        expense = Expense(
            user_id=user_id,
            description=data.description,
            amount_cents=to_cents(data.amount),
            category=data.category,
            date=data.date,
        )
        with self._guard("add"):
            self.session.add(expense)
            self.session.commit()
            self.session.refresh(expense)
        logger.info(f"expense_added: id={expense.id} user={user_id}")
        return expense

    def find_by_id(self, expense_id: int) -> Expense:
        with self._guard("find_by_id"):
            expense = self.session.get(Expense, expense_id, populate_existing=True)
        if expense is None:
            raise ExpenseNotFound(expense_id)
        return expense

    def list_by_owner(self, filters: ExpenseFilters) -> list[Expense]:
        stmt = _apply_filters(select(Expense), filters).order_by(
            Expense.date.desc(), Expense.id.desc()
        )
        with self._guard("list_by_owner"):
            return list(self.session.scalars(stmt).all())

    def update_by_id(
        self, expense_id: int, user_id: str, patch: ExpenseUpdate
    ) -> Expense:
        values = _column_values(patch)
        owned = (Expense.id == expense_id, Expense.user_id == user_id)
        with self._guard("update_by_id"):
            if values:
                result = self.session.execute(
                    update(Expense).where(*owned).values(**values)
                )
                matched = result.rowcount
            else:
                matched = self.session.scalar(
                    select(func.count(Expense.id)).where(*owned)
                )
            self.session.commit()
        if not matched:
            raise ExpenseNotFound(expense_id)
        logger.info(
            f"expense_updated: id={expense_id} user={user_id} fields={sorted(values)}"
        )
        return self.find_by_id(expense_id)

    def delete_by_id(self, expense_id: int, user_id: str) -> None:
        with self._guard("delete_by_id"):
            result = self.session.execute(
                delete(Expense).where(
                    Expense.id == expense_id, Expense.user_id == user_id
                )
            )
            self.session.commit()
        if not result.rowcount:
            raise ExpenseNotFound(expense_id)
        logger.info(f"expense_deleted: id={expense_id} user={user_id}")

    def aggregate(self, view: AggregateView, filters: ExpenseFilters) -> list[Row]:
        columns: list[ColumnElement] = [*view.keys, _TOTAL]
        if view.with_count:
            columns.append(_COUNT)
        stmt = _apply_filters(select(*columns), filters)
        if view.keys:
            stmt = stmt.group_by(*view.keys)
        if view.order_by:
            stmt = stmt.order_by(*view.order_by)
        if view.limited and filters.limit is not None:
            stmt = stmt.limit(filters.limit)
        with self._guard(view.name):
            return list(self.session.execute(stmt).all())


class ReportService:
    def __init__(self, session: Session) -> None:
        self.store = ExpenseStore(session)

    def run(self, view: AggregateView, filters: ExpenseFilters) -> list[BaseModel]:
        rows = self.store.aggregate(view, filters)
        logger.debug(f"report_run: view={view.name} rows={len(rows)}")
        return [view.shape(row) for row in rows]

    def list_expenses(self, filters: ExpenseFilters) -> list[ExpenseOut]:
        return [ExpenseOut.from_expense(e) for e in self.store.list_by_owner(filters)]

    def category_summary(self, filters: ExpenseFilters) -> list[CategoryTotalOut]:
        return self.run(CATEGORY_SUMMARY, filters)

    def monthly_trend(self, filters: ExpenseFilters) -> list[MonthTotalOut]:
        return self.run(MONTHLY_TREND, filters)

    def monthly_breakdown(
        self, filters: ExpenseFilters
    ) -> list[MonthCategoryTotalOut]:
        return self.run(MONTHLY_BREAKDOWN, filters)

    def top_categories(self, filters: ExpenseFilters) -> list[TopCategoryOut]:
        if filters.limit is None:
            filters = replace(filters, limit=DEFAULT_TOP_CATEGORIES)
        return self.run(TOP_CATEGORIES, filters)

    def total(self, filters: ExpenseFilters) -> TotalOut:
        rows = self.store.aggregate(TOTAL, filters)
        # an empty set aggregates to no row (or a NULL sum), never to 0
        if not rows or rows[0].total_cents is None:
            return TotalOut(total=Decimal("0"))
        return TOTAL.shape(rows[0])
