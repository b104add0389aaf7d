"""Care task repository - Database operations for care tasks (TaskStore implementation)"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import AlreadyMaterialized, NotFound, NotRecurring
from ...models import CareTask, CareTaskLog
from ...shared.validators import as_day, start_of_day

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = ("due_date", "reminder_date", "recurrence_end_date")


class CareTaskRepository:
    """
    Repository for care task database operations.

    Methods only flush; ``transaction()`` owns commit and rollback so several
    calls can form one unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @contextmanager
    def transaction(self):
        """Unit of work. Nested calls join the outermost one, which commits or rolls back."""
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self.db.rollback()
                logger.warning("↩️ Care task transaction rolled back")
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.db.commit()

    @staticmethod
    def _normalize(fields: dict) -> dict:
        """Store enum values as plain strings and timestamps as datetimes"""
        normalized = {}
        for key, value in fields.items():
            if isinstance(value, Enum):
                value = value.value
            if key in _DATETIME_FIELDS:
                value = start_of_day(value)
            normalized[key] = value
        return normalized

    def get_task(self, task_id: str) -> Optional[CareTask]:
        """Get a task by ID"""
        return self.db.get(CareTask, task_id)

    def find_physical_in_range(
        self,
        family_id: str,
        start: datetime,
        end: datetime,
        *,
        status: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
    ) -> list[CareTask]:
        """
        Non-template tasks relevant to a window.

        A task is relevant when it is due inside the window, or when its reminder
        has started by the window end and it is not yet overdue (or has no due date).
        """
        query = self.db.query(CareTask).filter(
            CareTask.family_id == family_id,
            CareTask.is_recurrence_template.is_(False),
        )

        due_in_window = and_(CareTask.due_date >= start, CareTask.due_date <= end)
        reminder_active = and_(
            CareTask.reminder_date.isnot(None),
            CareTask.reminder_date <= end,
            or_(CareTask.due_date >= start, CareTask.due_date.is_(None)),
        )
        query = query.filter(or_(due_in_window, reminder_active))

        if status:
            query = query.filter(CareTask.status == getattr(status, "value", status))
        if assigned_to_id:
            query = query.filter(CareTask.assigned_to_id == assigned_to_id)

        return query.order_by(CareTask.due_date, CareTask.id).all()

    def find_templates_with_pattern(self, family_id: str) -> list[CareTask]:
        """Get all recurrence templates of a family"""
        return (
            self.db.query(CareTask)
            .filter(
                CareTask.family_id == family_id,
                CareTask.is_recurrence_template.is_(True),
                or_(CareTask.recurrence_type.isnot(None), CareTask.recurrence_rule.isnot(None)),
            )
            .order_by(CareTask.created_at, CareTask.id)
            .all()
        )

    def find_existing_materialized(
        self, template_id: str, days: Iterable[date]
    ) -> dict[date, CareTask]:
        """Physical rows of a series occupying any of the given days, keyed by day"""
        wanted = {as_day(day) for day in days}
        if not wanted:
            return {}

        # Range query instead of IN: history lists can exceed SQLite's parameter limit
        rows = (
            self.db.query(CareTask)
            .filter(
                CareTask.parent_task_id == template_id,
                CareTask.occurrence_day >= min(wanted),
                CareTask.occurrence_day <= max(wanted),
            )
            .all()
        )
        return {row.occurrence_day: row for row in rows if row.occurrence_day in wanted}

    def create_task(self, fields: dict) -> CareTask:
        """Create a new task; a taken series slot surfaces as AlreadyMaterialized"""
        task = CareTask(**self._normalize(fields))
        try:
            with self.db.begin_nested():
                self.db.add(task)
        except IntegrityError:
            existing = None
            if task.parent_task_id and task.occurrence_day:
                existing = (
                    self.db.query(CareTask)
                    .filter(
                        CareTask.parent_task_id == task.parent_task_id,
                        CareTask.occurrence_day == task.occurrence_day,
                    )
                    .first()
                )
            if existing is None:
                raise
            raise AlreadyMaterialized(
                f"Occurrence {task.occurrence_day.isoformat()} of series "
                f"{task.parent_task_id} already exists",
                task=existing,
            )

        logger.debug(f"Task created id={task.id} parent={task.parent_task_id} due={task.due_date}")
        return task

    def update_task(self, task_id: str, fields: dict) -> CareTask:
        """Update a task with provided fields"""
        task = self.get_task(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")

        for key, value in self._normalize(fields).items():
            if hasattr(task, key):
                setattr(task, key, value)

        self.db.flush()
        return task

    def update_template(self, template_id: str, fields: dict) -> CareTask:
        template = self.get_task(template_id)
        if template is None:
            raise NotFound(f"Task {template_id} not found")
        if not template.is_recurrence_template:
            raise NotRecurring(f"Task {template_id} is not a recurrence template")
        return self.update_task(template_id, fields)

    def delete_many(self, template_id: str, statuses: Iterable[str], on_or_after: date) -> int:
        """Delete instances of a series in the given statuses from a day onwards"""
        statuses = [getattr(status, "value", status) for status in statuses]
        return (
            self.db.query(CareTask)
            .filter(
                CareTask.parent_task_id == template_id,
                CareTask.status.in_(statuses),
                CareTask.occurrence_day >= as_day(on_or_after),
            )
            .delete(synchronize_session="fetch")
        )

    def append_log(
        self, task_id: str, user_id: str, action: str, notes: Optional[str] = None
    ) -> CareTaskLog:
        entry = CareTaskLog(task_id=task_id, user_id=user_id, action=action, notes=notes)
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_logs(self, task_id: str) -> list[CareTaskLog]:
        """Get the history of a task, oldest first"""
        return (
            self.db.query(CareTaskLog)
            .filter(CareTaskLog.task_id == task_id)
            .order_by(CareTaskLog.id)
            .all()
        )
