import uuid
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base
from .domain.recurrence.pattern import RecurrencePattern


def generate_public_id():
    """Generate a unique id for a care task"""
    return str(uuid.uuid4())


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Forward-only status workflow: pending → in_progress → completed/cancelled
ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}


class CareTask(Base):
    """A care task: one-off task, recurrence template, or materialized occurrence"""

    __tablename__ = "care_tasks"
    __table_args__ = (
        # At most one physical row per series slot
        UniqueConstraint("parent_task_id", "occurrence_day", name="uq_care_task_occurrence"),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    family_id = Column(String(36), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Scheduling
    due_date = Column(DateTime, nullable=True, index=True)
    reminder_date = Column(DateTime, nullable=True)

    assigned_to_id = Column(String(36), nullable=True, index=True)
    created_by_id = Column(String(36), nullable=False)

    priority = Column(String(20), default=TaskPriority.MEDIUM.value, nullable=False)
    # Status workflow: pending → in_progress → completed / cancelled
    status = Column(String(20), default=TaskStatus.PENDING.value, nullable=False, index=True)

    # Recurrence (templates only). recurrence_type + recurrence_end_date are authoritative;
    # recurrence_rule is the legacy "<type>;<end date>" string kept in sync for old readers.
    recurrence_type = Column(String(20), nullable=True)
    recurrence_end_date = Column(DateTime, nullable=True)
    recurrence_day_of_month = Column(Integer, nullable=True)  # Monthly series anchored on a clamped month end
    recurrence_rule = Column(String(100), nullable=True)
    is_recurrence_template = Column(Boolean, default=False, nullable=False, index=True)

    # Materialized occurrences only
    parent_task_id = Column(String(36), ForeignKey("care_tasks.id"), nullable=True, index=True)
    occurrence_day = Column(Date, nullable=True)  # Series slot this row occupies

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def recurrence_pattern(self):
        """The series pattern, or None for tasks that do not repeat"""
        if self.recurrence_type:
            return RecurrencePattern(
                type=self.recurrence_type,
                end_date=self.recurrence_end_date,
                day_of_month=self.recurrence_day_of_month,
            )
        return RecurrencePattern.from_rule(self.recurrence_rule)

    def __repr__(self):
        return f"<CareTask {self.id} {self.title!r} status={self.status}>"


class CareTaskLog(Base):
    """Append-only history of state-changing actions on a physical task"""

    __tablename__ = "care_task_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign key: history outlives pending instances removed by a series edit
    task_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    action = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
