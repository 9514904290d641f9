import sys
from datetime import datetime

import pytest

from queries import (
    MAX_LIMIT,
    DateFilterMode,
    QueryValidationError,
    build_filters,
    parse_date_param,
    parse_limit,
)


def test_no_dates_means_no_range() -> None:
    filters = build_filters("u1")
    assert filters.user_id == "u1"
    assert filters.start is None and filters.end is None
    assert not filters.has_date_range


def test_date_only_bounds_cover_whole_days() -> None:
    filters = build_filters("u1", start_date="2024-01-01", end_date="2024-01-31")
    assert filters.start == datetime(2024, 1, 1, 0, 0, 0)
    assert filters.end == datetime(2024, 1, 31, 23, 59, 59, 999999)
    assert filters.has_date_range


def test_aware_datetime_is_converted_to_utc() -> None:
    assert parse_date_param("2024-02-01T00:30:00+02:00") == datetime(
        2024, 1, 31, 22, 30
    )
    assert parse_date_param("2024-02-01T10:00:00Z") == datetime(2024, 2, 1, 10, 0)


def test_permissive_mode_ignores_single_bound() -> None:
    filters = build_filters("u1", start_date="2024-01-01")
    assert not filters.has_date_range


def test_permissive_mode_ignores_unparseable_bound() -> None:
    filters = build_filters("u1", start_date="yesterday", end_date="2024-01-31")
    assert filters.start is None and filters.end is None


def test_strict_mode_rejects_single_bound() -> None:
    with pytest.raises(QueryValidationError):
        build_filters("u1", end_date="2024-01-31", date_mode=DateFilterMode.strict)


def test_strict_mode_rejects_unparseable_and_inverted_ranges() -> None:
    with pytest.raises(QueryValidationError):
        build_filters(
            "u1",
            start_date="01/02/2024",
            end_date="2024-03-01",
            date_mode=DateFilterMode.strict,
        )
    with pytest.raises(QueryValidationError):
        build_filters(
            "u1",
            start_date="2024-03-01",
            end_date="2024-02-01",
            date_mode=DateFilterMode.strict,
        )


def test_strict_mode_accepts_complete_range() -> None:
    filters = build_filters(
        "u1",
        start_date="2024-01-01",
        end_date="2024-01-01",
        date_mode=DateFilterMode.strict,
    )
    assert filters.has_date_range


def test_blank_category_is_ignored() -> None:
    assert build_filters("u1", category="   ").category is None
    assert build_filters("u1", category="food").category == "food"


def test_limit_defaults_and_validation() -> None:
    assert parse_limit(None, 5) == 5
    assert parse_limit("", 5) == 5
    assert parse_limit("2", 5) == 2
    for bad in ("abc", "0", "-3", "2.5"):
        with pytest.raises(QueryValidationError):
            parse_limit(bad, 5)


def test_limit_only_set_when_requested() -> None:
    assert build_filters("u1").limit is None
    assert build_filters("u1", default_limit=5).limit == 5
    assert build_filters("u1", limit="3", default_limit=5).limit == 3


def test_large_limit_is_clamped() -> None:
    assert parse_limit("100", 5) == MAX_LIMIT
    assert parse_limit("99999999999999999999", 5) == MAX_LIMIT


@pytest.mark.skipif(
    sys.version_info < (3, 11), reason="compact ISO dates need Python 3.11"
)
def test_compact_date_end_bound_covers_whole_day() -> None:
    filters = build_filters("u1", start_date="20240101", end_date="20240131")
    assert filters.start == datetime(2024, 1, 1)
    assert filters.end == datetime(2024, 1, 31, 23, 59, 59, 999999)


def test_datetime_bound_is_not_stretched_to_end_of_day() -> None:
    assert parse_date_param("2024-01-31T12:00:00", end_of_day=True) == datetime(
        2024, 1, 31, 12, 0
    )
