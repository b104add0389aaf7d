# tests/test_generator.py

from datetime import date, datetime

import pytest

from caretasks.domain.recurrence.generator import generate, next_occurrence, occurs_on
from caretasks.domain.recurrence.pattern import RecurrencePattern, RecurrenceType
from caretasks.errors import ValidationError

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


def test_daily_covers_every_day_of_the_window():
    days = generate(RecurrencePattern(RecurrenceType.DAILY), JAN_1, JAN_1, JAN_31)

    assert len(days) == 31
    assert days[0] == JAN_1
    assert days[-1] == JAN_31


def test_weekly_from_monday():
    days = generate(RecurrencePattern(RecurrenceType.WEEKLY), JAN_1, JAN_1, JAN_31)

    assert days == [
        date(2024, 1, 1),
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
        date(2024, 1, 29),
    ]


def test_biweekly_keeps_phase_across_window_start():
    pattern = RecurrencePattern(RecurrenceType.BIWEEKLY)

    assert generate(pattern, JAN_1, JAN_1, date(2024, 2, 15)) == [
        date(2024, 1, 1),
        date(2024, 1, 15),
        date(2024, 1, 29),
        date(2024, 2, 12),
    ]
    assert generate(pattern, JAN_1, date(2024, 1, 2), date(2024, 1, 28)) == [date(2024, 1, 15)]


def test_monthly_clamps_to_month_end_and_recovers():
    pattern = RecurrencePattern(RecurrenceType.MONTHLY)

    assert generate(pattern, JAN_31, JAN_1, date(2024, 5, 31)) == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_monthly_window_far_after_anchor():
    pattern = RecurrencePattern(RecurrenceType.MONTHLY)

    assert generate(pattern, JAN_31, date(2024, 3, 1), date(2024, 3, 31)) == [date(2024, 3, 31)]
    assert generate(pattern, date(2023, 6, 15), date(2025, 2, 1), date(2025, 2, 28)) == [
        date(2025, 2, 15)
    ]


def test_window_bounds_are_inclusive():
    pattern = RecurrencePattern(RecurrenceType.WEEKLY)

    assert generate(pattern, JAN_1, date(2024, 1, 8), date(2024, 1, 15)) == [
        date(2024, 1, 8),
        date(2024, 1, 15),
    ]


def test_end_date_stops_the_series():
    pattern = RecurrencePattern(RecurrenceType.DAILY, end_date=date(2024, 1, 5))

    assert generate(pattern, JAN_1, JAN_1, JAN_31) == [date(2024, 1, d) for d in range(1, 6)]


def test_window_before_anchor_is_empty():
    pattern = RecurrencePattern(RecurrenceType.WEEKLY)

    assert generate(pattern, date(2024, 3, 1), JAN_1, JAN_31) == []


def test_inverted_window_is_rejected():
    with pytest.raises(ValidationError):
        generate(RecurrencePattern(RecurrenceType.DAILY), JAN_1, JAN_31, JAN_1)


def test_datetimes_are_reduced_to_days():
    pattern = RecurrencePattern(RecurrenceType.WEEKLY)

    days = generate(pattern, datetime(2024, 1, 1, 9, 30), datetime(2024, 1, 8, 23, 0), JAN_31)

    assert days[0] == date(2024, 1, 8)


def test_generation_is_deterministic():
    pattern = RecurrencePattern(RecurrenceType.MONTHLY, end_date=date(2026, 1, 1))

    first = generate(pattern, JAN_31, JAN_1, date(2025, 12, 31))
    second = generate(pattern, JAN_31, JAN_1, date(2025, 12, 31))

    assert first == second
    assert first == sorted(first)


def test_occurs_on():
    pattern = RecurrencePattern(RecurrenceType.BIWEEKLY)

    assert occurs_on(pattern, JAN_1, date(2024, 1, 15))
    assert not occurs_on(pattern, JAN_1, date(2024, 1, 8))
    assert not occurs_on(pattern, JAN_1, date(2023, 12, 18))


def test_next_occurrence():
    assert next_occurrence(RecurrencePattern(RecurrenceType.WEEKLY), JAN_1, date(2024, 1, 10)) == date(
        2024, 1, 15
    )
    assert next_occurrence(RecurrencePattern(RecurrenceType.WEEKLY), JAN_1, date(2023, 1, 1)) == JAN_1

    ended = RecurrencePattern(RecurrenceType.WEEKLY, end_date=date(2024, 1, 12))
    assert next_occurrence(ended, JAN_1, date(2024, 1, 10)) is None


def test_monthly_day_of_month_restores_a_clamped_anchor():
    pattern = RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=31)

    assert generate(pattern, date(2024, 2, 29), date(2024, 2, 1), date(2024, 5, 31)) == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]
    assert next_occurrence(pattern, date(2024, 2, 29), date(2024, 3, 1)) == date(2024, 3, 31)


def test_monthly_day_of_month_ignored_mid_month():
    pattern = RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=31)

    assert generate(pattern, date(2024, 3, 15), date(2024, 3, 1), date(2024, 4, 30)) == [
        date(2024, 3, 15),
        date(2024, 4, 15),
    ]


def test_non_date_window_is_rejected():
    with pytest.raises(ValidationError):
        generate(RecurrencePattern(RecurrenceType.DAILY), JAN_1, "2024-01-01", JAN_31)
