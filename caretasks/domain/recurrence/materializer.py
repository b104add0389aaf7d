"""Materializer - turns a virtual occurrence into a persisted task row"""

import logging
from datetime import date, datetime, time
from typing import Optional

from ...errors import AlreadyMaterialized, NotRecurring, ValidationError
from ...models import TaskStatus
from ...shared.validators import as_day
from .generator import occurs_on
from .ports import TaskStore

logger = logging.getLogger(__name__)

MATERIALIZED_ACTION = "materialized from recurrence"


def occurrence_times(template, day: date) -> tuple[datetime, Optional[datetime]]:
    """
    Due and reminder datetimes of the occurrence on ``day``.

    The occurrence keeps the anchor's time of day, and the reminder keeps the
    template's lead time before the due date.
    """
    anchor = template.due_date
    due_date = datetime.combine(day, anchor.time() if anchor else time.min)

    reminder_date = None
    if template.reminder_date is not None and anchor is not None:
        reminder_date = due_date - (anchor - template.reminder_date)
    return due_date, reminder_date


def build_fields(template, day: date, actor_id: str) -> dict:
    """Fields of the physical row backing ``template`` on ``day``"""
    due_date, reminder_date = occurrence_times(template, day)
    return {
        "family_id": template.family_id,
        "title": template.title,
        "description": template.description,
        "due_date": due_date,
        "reminder_date": reminder_date,
        "assigned_to_id": template.assigned_to_id,
        "priority": template.priority,
        "status": TaskStatus.PENDING.value,
        "created_by_id": actor_id,
        "recurrence_type": None,
        "recurrence_end_date": None,
        "recurrence_day_of_month": None,
        "recurrence_rule": None,
        "is_recurrence_template": False,
        "parent_task_id": template.id,
        "occurrence_day": day,
    }


class Materializer:
    """Persists single occurrences of a recurrence template"""

    def __init__(self, store: TaskStore):
        self.store = store

    def materialize(self, template, day: date, actor_id: str):
        """
        Create the physical row for ``template`` on ``day``.

        Raises AlreadyMaterialized (carrying the existing row) when the slot is
        already backed, whether found by the pre-check or by the store's unique
        constraint during a concurrent write.
        """
        day = as_day(day)
        if not template.is_recurrence_template:
            raise NotRecurring(f"Task {template.id} is not a recurrence template")

        pattern = template.recurrence_pattern
        if pattern is None or template.due_date is None:
            raise NotRecurring(f"Task {template.id} has no recurrence pattern")
        if not occurs_on(pattern, template.due_date, day):
            raise ValidationError(
                f"{day.isoformat()} is not an occurrence of series {template.id}"
            )

        with self.store.transaction():
            existing = self.store.find_existing_materialized(template.id, [day]).get(day)
            if existing is not None:
                raise AlreadyMaterialized(
                    f"Occurrence {day.isoformat()} of series {template.id} already exists",
                    task=existing,
                )

            task = self.store.create_task(build_fields(template, day, actor_id))
            self.store.append_log(task.id, actor_id, MATERIALIZED_ACTION)

        logger.info(f"✅ Materialized occurrence {day.isoformat()} of series {template.id} as {task.id}")
        return task
