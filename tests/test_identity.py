# tests/test_identity.py

import uuid
from datetime import date, datetime

import pytest

from caretasks.domain.recurrence import identity
from caretasks.errors import InvalidIdentity

TEMPLATE_ID = str(uuid.uuid4())


def test_encode_uses_compact_date():
    assert identity.encode(TEMPLATE_ID, date(2024, 3, 5)) == f"{TEMPLATE_ID}_virtual_20240305"


def test_decode_returns_template_and_day():
    synthetic_id = identity.encode(TEMPLATE_ID, datetime(2024, 12, 31, 18, 0))

    assert identity.decode(synthetic_id) == (TEMPLATE_ID, date(2024, 12, 31))


def test_persisted_ids_are_not_virtual():
    assert not identity.is_virtual(TEMPLATE_ID)
    assert identity.is_virtual(f"{TEMPLATE_ID}_virtual_20240101")


@pytest.mark.parametrize(
    "synthetic_id",
    [
        "",
        "not-a-task",
        "not-a-uuid_virtual_20240101",
        f"{TEMPLATE_ID}_virtual_",
        f"{TEMPLATE_ID}_virtual_2024011",
        f"{TEMPLATE_ID}_virtual_20240230",
        f"{TEMPLATE_ID}_virtual_2024-1-1",
    ],
)
def test_malformed_ids_are_rejected(synthetic_id):
    with pytest.raises(InvalidIdentity):
        identity.decode(synthetic_id)
    assert not identity.is_virtual(synthetic_id)


def test_encode_requires_uuid_template():
    with pytest.raises(InvalidIdentity):
        identity.encode("task_1", date(2024, 1, 1))
