"""Care task service - Business logic for tasks, occurrences and recurring series"""

import logging
from datetime import date, datetime, time
from typing import Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ...config import MAX_OCCURRENCE_WINDOW_DAYS
from ...errors import AlreadyMaterialized, NotFound, NotRecurring, ValidationError
from ...models import ALLOWED_TRANSITIONS, CareTask, CareTaskLog, TaskStatus
from ...shared.validators import as_day
from ..recurrence import identity
from ..recurrence.generator import occurs_on
from ..recurrence.materializer import Materializer
from ..recurrence.merger import Occurrence, PhysicalOccurrence, expand_template, merge, slot_day
from ..recurrence.pattern import RecurrencePattern
from ..recurrence.ports import TaskStore
from ..recurrence.series import SeriesEditor, SeriesEditResult
from .schemas import CareTaskCreate, CareTaskUpdate, SeriesEdit

logger = logging.getLogger(__name__)


class CareTaskService:
    """Service layer for care task business logic"""

    def __init__(self, store: TaskStore, now: Callable[[], datetime] = datetime.now):
        self.store = store
        self.now = now
        self.materializer = Materializer(store)
        self.series_editor = SeriesEditor(store)

    # ---- lookups ----

    def _get_row(self, task_id: str) -> CareTask:
        """Get a physical occurrence; templates are series definitions, not occurrences"""
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        if task.is_recurrence_template:
            raise ValidationError(
                f"Task {task_id} is a recurring series; edit the series or one of its occurrences"
            )
        return task

    def _get_template(self, template_id: str) -> CareTask:
        template = self.store.get_task(template_id)
        if template is None:
            raise NotFound(f"Recurring series {template_id} not found")
        if not template.is_recurrence_template:
            raise NotRecurring(f"Task {template_id} is not a recurring series")
        return template

    def get_occurrence(self, occurrence_id: str) -> Occurrence:
        """Resolve a physical id, or rebuild the virtual occurrence a synthetic id names"""
        if not identity.is_virtual(occurrence_id):
            return PhysicalOccurrence(self._get_row(occurrence_id))

        template_id, day = identity.decode(occurrence_id)
        template = self._get_template(template_id)

        existing = self.store.find_existing_materialized(template.id, [day]).get(day)
        if existing is not None:
            return PhysicalOccurrence(existing)

        if not occurs_on(template.recurrence_pattern, template.due_date, day):
            raise NotFound(f"{day.isoformat()} is not an occurrence of series {template_id}")
        return expand_template(template, day, day)[0]

    def get_history(self, task_id: str) -> list[CareTaskLog]:
        return self.store.get_logs(task_id)

    # ---- listing ----

    def list_occurrences(
        self,
        family_id: str,
        start: Union[date, datetime],
        end: Union[date, datetime],
        include_virtual: bool = True,
        *,
        status: Optional[TaskStatus] = None,
        assigned_to_id: Optional[str] = None,
    ) -> list[Occurrence]:
        """
        Ordered occurrences of a family's tasks between two days (inclusive).

        Physical rows come from the store; with ``include_virtual`` every
        recurring series is expanded over the window and merged in.
        """
        try:
            start_day, end_day = as_day(start), as_day(end)
        except TypeError as e:
            raise ValidationError(f"Invalid date range: {e}")
        if start_day > end_day:
            raise ValidationError(
                f"Start date {start_day.isoformat()} is after end date {end_day.isoformat()}"
            )
        if (end_day - start_day).days + 1 > MAX_OCCURRENCE_WINDOW_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {MAX_OCCURRENCE_WINDOW_DAYS} days"
            )

        physical = self.store.find_physical_in_range(
            family_id,
            datetime.combine(start_day, time.min),
            datetime.combine(end_day, time.max),
            status=status,
            assigned_to_id=assigned_to_id,
        )

        virtual_by_template = {}
        # Virtual occurrences are always pending
        if include_virtual and (status is None or TaskStatus(status) == TaskStatus.PENDING):
            listed_slots = {
                (task.parent_task_id, slot_day(task)) for task in physical if task.parent_task_id
            }
            for template in self.store.find_templates_with_pattern(family_id):
                if assigned_to_id and template.assigned_to_id != assigned_to_id:
                    continue
                occurrences = expand_template(template, start_day, end_day)
                if not occurrences:
                    continue

                # Instances rescheduled out of the window (or filtered out) still own their slot
                unlisted = [
                    o.occurrence_day
                    for o in occurrences
                    if (template.id, o.occurrence_day) not in listed_slots
                ]
                taken = self.store.find_existing_materialized(template.id, unlisted)
                virtual_by_template[template.id] = [
                    o for o in occurrences if o.occurrence_day not in taken
                ]

        occurrences = merge(physical, virtual_by_template)
        logger.debug(
            f"Listed {len(occurrences)} occurrences for family {family_id} "
            f"({start_day.isoformat()}..{end_day.isoformat()})"
        )
        return occurrences

    # ---- writes ----

    def create_task(self, family_id: str, data: CareTaskCreate, actor_id: str) -> CareTask:
        """Create a one-off task, or the template of a recurring series"""
        fields = {
            "family_id": family_id,
            "title": data.title,
            "description": data.description,
            "due_date": data.due_date,
            "reminder_date": data.reminder_date,
            "assigned_to_id": data.assigned_to_id,
            "priority": data.priority,
            "status": TaskStatus.PENDING,
            "created_by_id": actor_id,
            "is_recurrence_template": False,
        }

        if data.recurrence is not None:
            pattern = RecurrencePattern(type=data.recurrence.type, end_date=data.recurrence.end_date)
            fields.update(
                {
                    "recurrence_type": pattern.type,
                    "recurrence_end_date": pattern.end_date,
                    "recurrence_rule": pattern.to_rule(),
                    "is_recurrence_template": True,
                }
            )

        with self.store.transaction():
            task = self.store.create_task(fields)
            self.store.append_log(task.id, actor_id, "created")

        kind = "recurring series" if data.recurrence else "task"
        logger.info(f"✅ Created {kind} {task.id} for family {family_id}")
        return task

    def materialize_occurrence(self, occurrence_id: str, actor_id: str) -> CareTask:
        """
        Return the physical row behind an occurrence, creating it for a virtual id.

        Idempotent: a slot that is already backed returns the existing row.
        """
        if not identity.is_virtual(occurrence_id):
            return self._get_row(occurrence_id)

        template_id, day = identity.decode(occurrence_id)
        template = self._get_template(template_id)
        try:
            return self.materializer.materialize(template, day, actor_id)
        except AlreadyMaterialized as e:
            logger.info(f"ℹ️ Occurrence {occurrence_id} already materialized as {e.task.id}")
            return e.task

    def _check_transition(self, task: CareTask, new_status: TaskStatus) -> None:
        current = TaskStatus(task.status)
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError(
                f"Cannot change task {task.id} from {current.value} to {new_status.value}"
            )

    def _set_status(
        self,
        occurrence_id: str,
        new_status: TaskStatus,
        action: str,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> CareTask:
        with self.store.transaction():
            task = self.materialize_occurrence(occurrence_id, actor_id)
            if TaskStatus(task.status) == new_status:
                return task

            self._check_transition(task, new_status)
            task = self.store.update_task(task.id, {"status": new_status})
            self.store.append_log(task.id, actor_id, action, notes)

        logger.info(f"✅ Task {task.id} {action} by {actor_id}")
        return task

    def complete_occurrence(
        self, occurrence_id: str, actor_id: str, notes: Optional[str] = None
    ) -> CareTask:
        """Mark an occurrence complete, materializing it first when it is virtual"""
        return self._set_status(occurrence_id, TaskStatus.COMPLETED, "completed", actor_id, notes)

    def start_occurrence(self, occurrence_id: str, actor_id: str) -> CareTask:
        return self._set_status(occurrence_id, TaskStatus.IN_PROGRESS, "started", actor_id)

    def cancel_occurrence(
        self, occurrence_id: str, actor_id: str, notes: Optional[str] = None
    ) -> CareTask:
        """Cancel an occurrence; on a virtual id this skips that one date of the series"""
        return self._set_status(occurrence_id, TaskStatus.CANCELLED, "cancelled", actor_id, notes)

    def update_task(self, task_id: str, data: CareTaskUpdate, actor_id: str) -> CareTask:
        """Update one physical task"""
        if identity.is_virtual(task_id):
            raise ValidationError(
                "Cannot update virtual tasks directly. Complete or materialize the occurrence first."
            )

        changes = data.changes()
        with self.store.transaction():
            task = self._get_row(task_id)
            if not changes:
                return task

            if "status" in changes and TaskStatus(changes["status"]) != TaskStatus(task.status):
                self._check_transition(task, TaskStatus(changes["status"]))

            task = self.store.update_task(task_id, changes)
            self.store.append_log(task_id, actor_id, f"updated: {', '.join(sorted(changes))}")

        return task

    def edit_series(
        self,
        task_id: str,
        edits: Union[SeriesEdit, dict],
        reference_date: Optional[Union[date, datetime]],
        actor_id: str,
    ) -> SeriesEditResult:
        """
        Edit a recurring series, addressed by its template or any materialized instance.

        ``reference_date`` defaults to the instance's own date when an instance is
        given, and to now for the template.
        """
        if identity.is_virtual(task_id):
            raise ValidationError(
                "Cannot edit a series through a virtual occurrence. Materialize it first."
            )

        if not isinstance(edits, SeriesEdit):
            try:
                edits = SeriesEdit.model_validate(edits)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid series edit: {e}")
        changes = edits.changes()

        with self.store.transaction():
            task = self.store.get_task(task_id)
            if task is None:
                raise NotFound(f"Task {task_id} not found")

            template_id = task.parent_task_id or task.id
            if reference_date is None:
                reference_date = (task.parent_task_id and slot_day(task)) or self.now()

            return self.series_editor.edit(template_id, changes, reference_date, actor_id)
