"""
Merging persisted tasks with virtual occurrences.

An occurrence is either a PhysicalOccurrence (a persisted CareTask row) or a
VirtualOccurrence computed from a template. Both expose the attributes the
listing and ordering need, so callers never inspect ids to tell them apart.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Union

from ...models import CareTask, TaskPriority, TaskStatus
from . import identity
from .generator import generate
from .materializer import occurrence_times

STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.CANCELLED: 3,
}

PRIORITY_RANK = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


@dataclass(frozen=True)
class VirtualOccurrence:
    """A template projected onto one date; never persisted"""

    id: str
    parent_task_id: str
    family_id: str
    title: str
    description: Optional[str]
    due_date: datetime
    reminder_date: Optional[datetime]
    assigned_to_id: Optional[str]
    priority: str
    status: str = TaskStatus.PENDING.value

    is_virtual = True

    @property
    def occurrence_day(self) -> date:
        return self.due_date.date()


@dataclass(frozen=True)
class PhysicalOccurrence:
    task: CareTask

    is_virtual = False

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def parent_task_id(self) -> Optional[str]:
        return self.task.parent_task_id

    @property
    def status(self) -> str:
        return self.task.status

    @property
    def priority(self) -> str:
        return self.task.priority

    @property
    def due_date(self) -> Optional[datetime]:
        return self.task.due_date

    @property
    def occurrence_day(self) -> Optional[date]:
        return slot_day(self.task)


Occurrence = Union[PhysicalOccurrence, VirtualOccurrence]


def slot_day(task: CareTask) -> Optional[date]:
    """Series slot a physical row occupies (falls back to its due day)"""
    if task.occurrence_day is not None:
        return task.occurrence_day
    if task.due_date is not None:
        return task.due_date.date()
    return None


def expand_template(
    template: CareTask, window_start: date, window_end: date
) -> list[VirtualOccurrence]:
    """Virtual occurrences of one template inside the inclusive window"""
    pattern = template.recurrence_pattern
    if pattern is None or template.due_date is None:
        return []

    occurrences = []
    for day in generate(pattern, template.due_date, window_start, window_end):
        due_date, reminder_date = occurrence_times(template, day)
        occurrences.append(
            VirtualOccurrence(
                id=identity.encode(template.id, day),
                parent_task_id=template.id,
                family_id=template.family_id,
                title=template.title,
                description=template.description,
                due_date=due_date,
                reminder_date=reminder_date,
                assigned_to_id=template.assigned_to_id,
                priority=template.priority,
            )
        )
    return occurrences


def sort_key(occurrence: Occurrence) -> tuple:
    """status rank, then priority rank, then due date ascending with undated last"""
    due_date = occurrence.due_date
    return (
        STATUS_RANK.get(TaskStatus(occurrence.status), len(STATUS_RANK)),
        PRIORITY_RANK.get(TaskPriority(occurrence.priority), PRIORITY_RANK[TaskPriority.MEDIUM]),
        due_date is None,
        due_date or datetime.min,
    )


def merge(
    physical_rows: Iterable[CareTask],
    virtual_by_template: Mapping[str, Iterable[VirtualOccurrence]],
) -> list[Occurrence]:
    """
    Combine persisted rows with virtual occurrences for one window.

    Templates are dropped, virtual occurrences whose series slot already has a
    physical row are dropped, and the rest is sorted with a stable sort so equal
    keys keep input order (physical rows first, then templates in mapping order).
    """
    combined: list[Occurrence] = []
    occupied: set[tuple[str, date]] = set()

    for task in physical_rows:
        if task.is_recurrence_template:
            continue
        if task.parent_task_id is not None:
            occupied.add((task.parent_task_id, slot_day(task)))
        combined.append(PhysicalOccurrence(task))

    for template_id, occurrences in virtual_by_template.items():
        for occurrence in occurrences:
            if (template_id, occurrence.occurrence_day) in occupied:
                continue
            combined.append(occurrence)

    return sorted(combined, key=sort_key)
