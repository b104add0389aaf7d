"""
Synthetic ids for virtual occurrences.

A virtual occurrence is addressed as ``<template id>_virtual_<YYYYMMDD>``.
Template ids are UUID strings, which never contain an underscore, so a
synthetic id can never be mistaken for a persisted one.
"""

from datetime import date, datetime

from ...errors import InvalidIdentity
from ...shared.validators import as_day, validate_uuid

VIRTUAL_MARKER = "_virtual_"
_DATE_FORMAT = "%Y%m%d"


def encode(template_id: str, day: date) -> str:
    if not validate_uuid(template_id):
        raise InvalidIdentity(f"Template id is not a UUID: {template_id!r}")
    return f"{template_id}{VIRTUAL_MARKER}{as_day(day).strftime(_DATE_FORMAT)}"


def decode(synthetic_id: str) -> tuple[str, date]:
    """Split a synthetic id into (template_id, occurrence date)"""
    if not isinstance(synthetic_id, str) or VIRTUAL_MARKER not in synthetic_id:
        raise InvalidIdentity(f"Not a virtual occurrence id: {synthetic_id!r}")

    template_id, _, raw_day = synthetic_id.partition(VIRTUAL_MARKER)
    if not validate_uuid(template_id):
        raise InvalidIdentity(f"Malformed template id in {synthetic_id!r}")

    # strptime accepts unpadded fields, so require the exact width
    if len(raw_day) != 8 or not raw_day.isdigit():
        raise InvalidIdentity(f"Malformed occurrence date in {synthetic_id!r}")
    try:
        day = datetime.strptime(raw_day, _DATE_FORMAT).date()
    except ValueError:
        raise InvalidIdentity(f"Malformed occurrence date in {synthetic_id!r}")

    return template_id, day


def is_virtual(task_id: str) -> bool:
    try:
        decode(task_id)
    except InvalidIdentity:
        return False
    return True
