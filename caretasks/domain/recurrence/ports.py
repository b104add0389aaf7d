"""
Persistence port consumed by the recurrence engine.

The engine never touches the database directly: the Materializer and the
SeriesEditor receive a TaskStore and rely on its ``transaction()`` for
all-or-nothing behaviour.
"""

from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Iterable, Optional, Protocol


class TaskStore(Protocol):
    def transaction(self) -> AbstractContextManager:
        """Unit of work. Nested calls join the outer one; any exception rolls everything back."""
        ...

    def get_task(self, task_id: str) -> Optional[Any]: ...

    def find_physical_in_range(
        self,
        family_id: str,
        start: datetime,
        end: datetime,
        *,
        status: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
    ) -> list[Any]: ...

    def find_templates_with_pattern(self, family_id: str) -> list[Any]: ...

    def find_existing_materialized(self, template_id: str, days: Iterable[date]) -> dict[date, Any]:
        """Map each given day that already has a physical row to that row"""
        ...

    def create_task(self, fields: dict) -> Any:
        """Persist a new row; a taken series slot raises AlreadyMaterialized"""
        ...

    def update_task(self, task_id: str, fields: dict) -> Any: ...

    def update_template(self, template_id: str, fields: dict) -> Any: ...

    def delete_many(self, template_id: str, statuses: Iterable[str], on_or_after: date) -> int: ...

    def append_log(
        self, task_id: str, user_id: str, action: str, notes: Optional[str] = None
    ) -> Any: ...

    def get_logs(self, task_id: str) -> list[Any]: ...
