# tests/conftest.py

import uuid
from datetime import datetime

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from caretasks.bootstrap import init_db
from caretasks.database import create_db_engine
from caretasks.domain.tasks.repository import CareTaskRepository
from caretasks.domain.tasks.schemas import CareTaskCreate, RecurrencePatternIn
from caretasks.domain.tasks.service import CareTaskService

FAMILY_ID = str(uuid.uuid4())
ACTOR_ID = str(uuid.uuid4())

# "now" as seen by the service under test
NOW = datetime(2024, 1, 10, 12, 0)


@pytest.fixture()
def engine():
    """Fresh in-memory database per test"""
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = Session(bind=engine, autoflush=False)
    yield session
    session.close()


@pytest.fixture()
def store(db) -> CareTaskRepository:
    return CareTaskRepository(db)


@pytest.fixture()
def service(store) -> CareTaskService:
    return CareTaskService(store, now=lambda: NOW)


@pytest.fixture()
def make_series(service):
    """Create a recurring series; weekly from Monday 2024-01-01 09:00 by default"""

    def _make(
        recurrence_type="weekly",
        due_date=datetime(2024, 1, 1, 9, 0),
        end_date=None,
        title="Give evening medication",
        **overrides,
    ):
        data = CareTaskCreate(
            title=title,
            due_date=due_date,
            recurrence=RecurrencePatternIn(type=recurrence_type, end_date=end_date),
            **overrides,
        )
        return service.create_task(FAMILY_ID, data, ACTOR_ID)

    return _make
