"""Recurrence pattern - how a template repeats"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta

from ...errors import ValidationError
from ...shared.validators import as_day


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @property
    def step(self) -> relativedelta:
        """Interval between two consecutive occurrences"""
        return _STEPS[self]


_STEPS = {
    RecurrenceType.DAILY: relativedelta(days=1),
    RecurrenceType.WEEKLY: relativedelta(weeks=1),
    RecurrenceType.BIWEEKLY: relativedelta(weeks=2),
    RecurrenceType.MONTHLY: relativedelta(months=1),
}


@dataclass(frozen=True)
class RecurrencePattern:
    type: RecurrenceType
    end_date: Optional[date] = None
    # Monthly only: intended day of month when the anchor itself was clamped to a month end
    day_of_month: Optional[int] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "type", RecurrenceType(self.type))
        except ValueError:
            raise ValidationError(f"Unknown recurrence type: {self.type!r}")
        if self.end_date is not None:
            try:
                object.__setattr__(self, "end_date", as_day(self.end_date))
            except TypeError as e:
                raise ValidationError(f"Invalid recurrence end date: {e}")
        if self.day_of_month is not None:
            if self.type is not RecurrenceType.MONTHLY:
                object.__setattr__(self, "day_of_month", None)
            elif not 1 <= int(self.day_of_month) <= 31:
                raise ValidationError(f"Invalid day of month: {self.day_of_month!r}")
            else:
                object.__setattr__(self, "day_of_month", int(self.day_of_month))

    @classmethod
    def from_rule(cls, rule: Optional[str]) -> Optional["RecurrencePattern"]:
        """
        Parse the legacy rule string stored in ``recurrence_rule``.

        Format is ``"<type>"`` or ``"<type>;<ISO end date>"``.
        Returns None for an empty rule.
        """
        if not rule:
            return None

        kind, _, end = rule.strip().partition(";")
        end_date = None
        if end:
            try:
                end_date = datetime.fromisoformat(end.replace("Z", "+00:00")).date()
            except ValueError:
                raise ValidationError(f"Invalid end date in recurrence rule: {rule!r}")
        return cls(type=kind.strip().lower(), end_date=end_date)

    def to_rule(self) -> str:
        """Serialize to the legacy rule string"""
        if self.end_date:
            return f"{self.type.value};{self.end_date.isoformat()}"
        return self.type.value
