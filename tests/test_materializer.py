# tests/test_materializer.py

from datetime import date, datetime

import pytest

from caretasks.domain.recurrence.materializer import (
    MATERIALIZED_ACTION,
    Materializer,
    build_fields,
)
from caretasks.errors import AlreadyMaterialized, NotRecurring, ValidationError
from caretasks.models import CareTask
from tests.conftest import ACTOR_ID, FAMILY_ID


def test_materialize_copies_template_into_slot(store, make_series):
    template = make_series(
        reminder_date=datetime(2024, 1, 1, 7, 0),
        description="Two tablets with food",
        priority="high",
    )

    task = Materializer(store).materialize(template, date(2024, 1, 15), ACTOR_ID)

    assert task.parent_task_id == template.id
    assert task.occurrence_day == date(2024, 1, 15)
    assert task.due_date == datetime(2024, 1, 15, 9, 0)
    assert task.reminder_date == datetime(2024, 1, 15, 7, 0)
    assert task.title == template.title
    assert task.description == "Two tablets with food"
    assert task.priority == "high"
    assert task.status == "pending"
    assert task.family_id == FAMILY_ID
    assert task.is_recurrence_template is False
    assert task.recurrence_type is None
    assert task.recurrence_rule is None
    assert [log.action for log in store.get_logs(task.id)] == [MATERIALIZED_ACTION]


def test_second_materialize_reports_existing_row(store, make_series):
    template = make_series()
    materializer = Materializer(store)
    first = materializer.materialize(template, date(2024, 1, 8), ACTOR_ID)

    with pytest.raises(AlreadyMaterialized) as exc_info:
        materializer.materialize(template, date(2024, 1, 8), ACTOR_ID)

    assert exc_info.value.task.id == first.id


def test_unique_slot_is_enforced_by_the_store(db, store, make_series):
    template = make_series()
    with store.transaction():
        first = store.create_task(build_fields(template, date(2024, 1, 8), ACTOR_ID))

    # Bypass the pre-check, as a concurrent writer would
    with pytest.raises(AlreadyMaterialized) as exc_info:
        with store.transaction():
            store.create_task(build_fields(template, date(2024, 1, 8), ACTOR_ID))

    assert exc_info.value.task.id == first.id
    assert db.query(CareTask).filter(CareTask.parent_task_id == template.id).count() == 1


def test_day_outside_the_pattern_is_rejected(store, make_series):
    template = make_series()

    with pytest.raises(ValidationError):
        Materializer(store).materialize(template, date(2024, 1, 9), ACTOR_ID)


def test_day_after_end_date_is_rejected(store, make_series):
    template = make_series(end_date=date(2024, 1, 10))

    with pytest.raises(ValidationError):
        Materializer(store).materialize(template, date(2024, 1, 15), ACTOR_ID)


def test_plain_task_cannot_be_materialized(store, service):
    from caretasks.domain.tasks.schemas import CareTaskCreate

    task = service.create_task(
        FAMILY_ID, CareTaskCreate(title="Buy groceries", due_date=datetime(2024, 1, 8)), ACTOR_ID
    )

    with pytest.raises(NotRecurring):
        Materializer(store).materialize(task, date(2024, 1, 8), ACTOR_ID)
