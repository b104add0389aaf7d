"""
Occurrence generator.

Pure functions that project a recurrence pattern onto calendar dates.
Occurrence ``k`` of a series is always computed from the anchor
(``anchor + k * step``), never from the previous occurrence, so monthly
series keep their day-of-month and only clamp in shorter months
(Jan 31 -> Feb 29 -> Mar 31). A monthly anchor that was itself clamped
recovers its day through ``RecurrencePattern.day_of_month``.
"""

from calendar import monthrange
from datetime import date, datetime
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from ...errors import ValidationError
from ...shared.validators import as_day
from .pattern import RecurrencePattern, RecurrenceType

DateLike = Union[date, datetime]

_STEP_DAYS = {
    RecurrenceType.DAILY: 1,
    RecurrenceType.WEEKLY: 7,
    RecurrenceType.BIWEEKLY: 14,
}


def _to_day(value: DateLike, name: str) -> date:
    try:
        return as_day(value)
    except TypeError as e:
        raise ValidationError(f"Invalid {name}: {e}")


def _month_day(pattern: RecurrencePattern, anchor: date) -> int:
    """Day of month a monthly series aims for"""
    # A stored day only applies to an anchor that sits on its month end
    if pattern.day_of_month is None or anchor.day != monthrange(anchor.year, anchor.month)[1]:
        return anchor.day
    return max(pattern.day_of_month, anchor.day)


def _nth(pattern: RecurrencePattern, anchor: date, index: int) -> date:
    if pattern.type is RecurrenceType.MONTHLY:
        # relativedelta clamps the absolute day to the length of the target month
        return anchor + relativedelta(months=index, day=_month_day(pattern, anchor))
    return anchor + pattern.type.step * index


def _first_index(pattern: RecurrencePattern, anchor: date, start: date) -> int:
    """Index of the first occurrence on or after ``start``"""
    if start <= anchor:
        return 0

    if pattern.type is RecurrenceType.MONTHLY:
        index = max(0, (start.year - anchor.year) * 12 + start.month - anchor.month - 1)
    else:
        index = (start - anchor).days // _STEP_DAYS[pattern.type]

    while _nth(pattern, anchor, index) < start:
        index += 1
    return index


def generate(
    pattern: RecurrencePattern,
    anchor: DateLike,
    window_start: DateLike,
    window_end: DateLike,
) -> list[date]:
    """
    Return every occurrence date of ``pattern`` inside the inclusive window.

    Dates are >= anchor, >= window_start, <= window_end and <= pattern.end_date.
    An anchor after the window yields an empty list; an inverted window is an error.
    """
    anchor_day = _to_day(anchor, "anchor date")
    start = _to_day(window_start, "window start")
    end = _to_day(window_end, "window end")

    if start > end:
        raise ValidationError(
            f"Window start {start.isoformat()} is after window end {end.isoformat()}"
        )

    last = end if pattern.end_date is None else min(end, pattern.end_date)
    if anchor_day > last:
        return []

    index = _first_index(pattern, anchor_day, max(start, anchor_day))
    occurrences = []
    day = _nth(pattern, anchor_day, index)
    while day <= last:
        occurrences.append(day)
        index += 1
        day = _nth(pattern, anchor_day, index)
    return occurrences


def occurs_on(pattern: RecurrencePattern, anchor: DateLike, day: DateLike) -> bool:
    """Check whether ``day`` is an occurrence of the series anchored at ``anchor``"""
    day = _to_day(day, "date")
    return generate(pattern, anchor, day, day) == [day]


def next_occurrence(
    pattern: RecurrencePattern, anchor: DateLike, on_or_after: DateLike
) -> Optional[date]:
    """First occurrence on or after ``on_or_after``, or None once the series has ended"""
    anchor_day = _to_day(anchor, "anchor date")
    start = max(_to_day(on_or_after, "date"), anchor_day)

    if pattern.end_date is not None and start > pattern.end_date:
        return None

    day = _nth(pattern, anchor_day, _first_index(pattern, anchor_day, start))
    if pattern.end_date is not None and day > pattern.end_date:
        return None
    return day
