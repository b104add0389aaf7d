"""Care task domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...models import TaskPriority, TaskStatus
from ...shared.validators import validate_title
from ..recurrence.pattern import RecurrenceType


class RecurrencePatternIn(BaseModel):
    """Schema for the recurrence of a new series"""

    type: RecurrenceType
    end_date: Optional[date] = None


class CareTaskCreate(BaseModel):
    """Schema for creating a one-off task or a recurring series"""

    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    assigned_to_id: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    recurrence: Optional[RecurrencePatternIn] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return validate_title(v)

    @model_validator(mode="after")
    def validate_recurrence(self):
        if self.recurrence is None:
            return self
        if self.due_date is None:
            raise ValueError("A recurring task needs a due date to anchor the series")
        if self.recurrence.end_date and self.recurrence.end_date < self.due_date.date():
            raise ValueError("Recurrence end date cannot be before the first due date")
        return self


class CareTaskUpdate(BaseModel):
    """Schema for updating one physical task; only fields that are set are applied"""

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    assigned_to_id: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return validate_title(v)

    @model_validator(mode="after")
    def validate_required_fields(self):
        for name in ("title", "priority", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict:
        """Fields explicitly set by the caller, including explicit clears"""
        return self.model_dump(exclude_unset=True)


class SeriesEdit(BaseModel):
    """Schema for editing a recurring series from a reference date onwards"""

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    assigned_to_id: Optional[str] = None
    priority: Optional[TaskPriority] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_end_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return validate_title(v)

    @model_validator(mode="after")
    def validate_required_fields(self):
        # These may be omitted but never cleared
        for name in ("title", "due_date", "priority", "recurrence_type"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared on a series")
        return self

    def changes(self) -> dict:
        """Fields explicitly set by the caller, including explicit clears"""
        return self.model_dump(exclude_unset=True)

    class Config:
        extra = "forbid"
