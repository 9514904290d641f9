import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


class DateFilterMode(str, Enum):
    permissive = "permissive"
    strict = "strict"


class QueryValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ExpenseFilters:
    user_id: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    category: Optional[str] = None
    limit: Optional[int] = None

    @property
    def has_date_range(self) -> bool:
        return self.start is not None and self.end is not None


def parse_date_param(value: str, *, end_of_day: bool = False) -> datetime:
    """Parse a date or an ISO-8601 datetime into naive UTC.

    Anything ``date.fromisoformat`` accepts is a bare date and covers the whole
    calendar day: it resolves to midnight for a lower bound and to the last
    microsecond of the day for an upper bound.
    """
    raw = value.strip()
    try:
        day = date.fromisoformat(raw)
    except ValueError:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return datetime.combine(day, time.max if end_of_day else time.min)


def _resolve_date_range(
    start_date: Optional[str],
    end_date: Optional[str],
    mode: DateFilterMode,
) -> tuple[Optional[datetime], Optional[datetime]]:
    start_raw = (start_date or "").strip()
    end_raw = (end_date or "").strip()
    if not start_raw and not end_raw:
        return None, None

    if not start_raw or not end_raw:
        if mode == DateFilterMode.strict:
            raise QueryValidationError("startDate and endDate must be given together")
        logger.warning(
            f"date_filter_ignored: reason=partial_range start={start_raw!r} end={end_raw!r}"
        )
        return None, None

    try:
        start = parse_date_param(start_raw)
        end = parse_date_param(end_raw, end_of_day=True)
    except ValueError as exc:
        if mode == DateFilterMode.strict:
            raise QueryValidationError("Invalid startDate or endDate") from exc
        logger.warning(
            f"date_filter_ignored: reason=unparseable start={start_raw!r} end={end_raw!r}"
        )
        return None, None

    if mode == DateFilterMode.strict and start > end:
        raise QueryValidationError("startDate must not be after endDate")
    return start, end


def parse_limit(value: Optional[str], default: int) -> int:
    if value is None or not str(value).strip():
        return default
    try:
        limit = int(str(value).strip())
    except ValueError as exc:
        raise QueryValidationError("limit must be a positive integer") from exc
    if limit < 1:
        raise QueryValidationError("limit must be a positive integer")
    return min(limit, MAX_LIMIT)


def build_filters(
    user_id: str,
    *,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[str] = None,
    date_mode: DateFilterMode = DateFilterMode.permissive,
    default_limit: Optional[int] = None,
) -> ExpenseFilters:
    start, end = _resolve_date_range(start_date, end_date, date_mode)
    category_value = category if category and category.strip() else None
    limit_value = None
    if limit is not None or default_limit is not None:
        limit_value = parse_limit(limit, default_limit or 5)
    return ExpenseFilters(
        user_id=user_id,
        start=start,
        end=end,
        category=category_value,
        limit=limit_value,
    )
