import datetime as dt
from decimal import Decimal
from typing import Annotated, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from models import Expense
from money import MAX_AMOUNT, from_cents, json_number


def _naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def _utc_isoformat(value: dt.datetime) -> str:
    stamp = _naive_utc(value).isoformat(timespec="milliseconds")
    return f"{stamp}Z"


Money = Annotated[
    Decimal,
    PlainSerializer(json_number, return_type=Union[int, float], when_used="json"),
]
# stored values are naive UTC
UtcDatetime = Annotated[
    dt.datetime,
    PlainSerializer(_utc_isoformat, return_type=str, when_used="json"),
]


class AliasedOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ExpenseIn(BaseModel):
    description: str
    amount: Decimal = Field(..., ge=-MAX_AMOUNT, le=MAX_AMOUNT)
    category: str = Field(..., max_length=100)
    date: dt.datetime

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: dt.datetime) -> dt.datetime:
        return _naive_utc(value)


class ExpenseUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=-MAX_AMOUNT, le=MAX_AMOUNT)
    category: Optional[str] = Field(default=None, max_length=100)
    date: Optional[dt.datetime] = None

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return _naive_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _reject_explicit_nulls(self) -> "ExpenseUpdate":
        for name in sorted(self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def present_fields(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)


class ExpenseOut(AliasedOut):
    id: int = Field(alias="_id")
    user: str
    description: str
    amount: Money
    category: str
    date: UtcDatetime
    created_at: UtcDatetime = Field(alias="createdAt")
    updated_at: UtcDatetime = Field(alias="updatedAt")

    @classmethod
    def from_expense(cls, expense: Expense) -> "ExpenseOut":
        return cls(
            id=expense.id,
            user=expense.user_id,
            description=expense.description,
            amount=from_cents(expense.amount_cents),
            category=expense.category,
            date=expense.date,
            created_at=expense.created_at,
            updated_at=expense.updated_at,
        )


class CategoryTotalOut(AliasedOut):
    category: str = Field(alias="_id")
    total_amount: Money = Field(alias="totalAmount")
    count: int


class TopCategoryOut(AliasedOut):
    category: str = Field(alias="_id")
    total_amount: Money = Field(alias="totalAmount")


class MonthKey(BaseModel):
    year: int
    month: int


class MonthTotalOut(AliasedOut):
    key: MonthKey = Field(alias="_id")
    total_amount: Money = Field(alias="totalAmount")


class MonthCategoryKey(BaseModel):
    year: int
    month: int
    category: str


class MonthCategoryTotalOut(AliasedOut):
    key: MonthCategoryKey = Field(alias="_id")
    total_amount: Money = Field(alias="totalAmount")


class TotalOut(BaseModel):
    total: Money


class MessageOut(BaseModel):
    message: str
