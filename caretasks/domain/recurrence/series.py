"""
Series editor.

A series edit splits a recurring task at a reference date R:

- occurrences before R are history. Any that exist only virtually are
  materialized under the template's pre-edit values so they keep showing
  what was actually scheduled.
- occurrences from R on follow the new rule. Pending or cancelled rows on or
  after R are deleted so they regenerate virtually; completed and in-progress
  rows are never touched.

The edit is computed as a plan first and then applied in one store
transaction, so it either happens completely or not at all.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ...errors import AlreadyMaterialized, NotFound, NotRecurring, ValidationError
from ...models import CareTask, TaskPriority, TaskStatus
from ...shared.validators import as_day, start_of_day
from .generator import generate, next_occurrence
from .materializer import Materializer
from .pattern import RecurrencePattern
from .ports import TaskStore

logger = logging.getLogger(__name__)

SERIES_FIELDS = frozenset(
    {
        "title",
        "description",
        "due_date",
        "reminder_date",
        "assigned_to_id",
        "priority",
        "recurrence_type",
        "recurrence_end_date",
    }
)

# Statuses of future instances that are regenerated rather than kept
REGENERATED_STATUSES = (TaskStatus.PENDING.value, TaskStatus.CANCELLED.value)


@dataclass
class SeriesEditPlan:
    template_id: str
    reference_day: date
    to_materialize: list[date]
    changes: dict
    changed_fields: list[str] = field(default_factory=list)


@dataclass
class SeriesEditResult:
    updated_template: CareTask
    materialized_count: int
    deleted_count: int


class SeriesEditor:
    def __init__(self, store: TaskStore):
        self.store = store
        self.materializer = Materializer(store)

    def load_template(self, template_id: str) -> CareTask:
        template = self.store.get_task(template_id)
        if template is None:
            raise NotFound(f"Task {template_id} not found")
        if not template.is_recurrence_template or template.recurrence_pattern is None:
            raise NotRecurring(f"Task {template_id} is not a recurring series")
        return template

    def plan(self, template: CareTask, edits: dict, reference_date) -> SeriesEditPlan:
        """Compute the full edit without writing anything"""
        unknown = set(edits) - SERIES_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited on a series: {', '.join(sorted(unknown))}"
            )

        try:
            reference_day = as_day(reference_date)
        except TypeError as e:
            raise ValidationError(f"Invalid reference date: {e}")
        anchor = template.due_date

        history = []
        if reference_day > anchor.date():
            history = generate(
                template.recurrence_pattern,
                anchor,
                anchor,
                reference_day - timedelta(days=1),
            )

        existing = self.store.find_existing_materialized(template.id, history) if history else {}
        to_materialize = [day for day in history if day not in existing]

        return SeriesEditPlan(
            template_id=template.id,
            reference_day=reference_day,
            to_materialize=to_materialize,
            changes=self._template_changes(template, edits, reference_day),
            changed_fields=sorted(edits),
        )

    def _template_changes(self, template: CareTask, edits: dict, reference_day: date) -> dict:
        changes = dict(edits)

        if "priority" in changes:
            changes["priority"] = TaskPriority(changes["priority"]).value
        if "reminder_date" in changes:
            changes["reminder_date"] = start_of_day(changes["reminder_date"])

        anchor = start_of_day(changes.get("due_date", template.due_date))
        if anchor is None:
            raise ValidationError("A recurring series needs a due date")

        current = template.recurrence_pattern
        pattern = RecurrencePattern(
            type=changes.get("recurrence_type", current.type),
            end_date=changes.get("recurrence_end_date", current.end_date),
            day_of_month=anchor.day if "due_date" in edits else current.day_of_month or anchor.day,
        )

        # A new rule or anchor only describes the future: start it on or after R.
        # Otherwise history before R is materialized and already occupies its slots.
        rescheduled = pattern.type is not current.type or anchor != template.due_date
        if rescheduled and anchor.date() < reference_day:
            first = next_occurrence(pattern, anchor, reference_day) or reference_day
            anchor = datetime.combine(first, anchor.time())

        if anchor != template.due_date:
            changes["due_date"] = anchor
            if "reminder_date" not in edits and template.reminder_date is not None:
                changes["reminder_date"] = anchor - (template.due_date - template.reminder_date)

        changes["recurrence_type"] = pattern.type.value
        changes["recurrence_end_date"] = start_of_day(pattern.end_date)
        changes["recurrence_day_of_month"] = pattern.day_of_month
        changes["recurrence_rule"] = pattern.to_rule()
        return changes

    def apply(self, plan: SeriesEditPlan, actor_id: str) -> SeriesEditResult:
        with self.store.transaction():
            # Materialize history first, while the template still has its pre-edit values
            template = self.store.get_task(plan.template_id)
            materialized_count = 0
            for day in plan.to_materialize:
                try:
                    self.materializer.materialize(template, day, actor_id)
                    materialized_count += 1
                except AlreadyMaterialized:
                    logger.info(f"ℹ️ Occurrence {day.isoformat()} of {plan.template_id} appeared concurrently")

            updated = self.store.update_template(plan.template_id, plan.changes)
            deleted_count = self.store.delete_many(
                plan.template_id, REGENERATED_STATUSES, plan.reference_day
            )

            fields = ", ".join(plan.changed_fields) or "no fields"
            self.store.append_log(
                plan.template_id,
                actor_id,
                f"updated series: {fields}. Materialized {materialized_count} past occurrences "
                f"and removed {deleted_count} future instances.",
            )

        logger.info(
            f"✅ Series {plan.template_id} edited from {plan.reference_day.isoformat()}: "
            f"materialized={materialized_count} deleted={deleted_count}"
        )
        return SeriesEditResult(
            updated_template=updated,
            materialized_count=materialized_count,
            deleted_count=deleted_count,
        )

    def edit(self, template_id: str, edits: dict, reference_date, actor_id: str) -> SeriesEditResult:
        """Load, plan and apply a series edit as one unit of work"""
        with self.store.transaction():
            template = self.load_template(template_id)
            plan = self.plan(template, edits, reference_date)
            return self.apply(plan, actor_id)
