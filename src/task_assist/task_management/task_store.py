"""Task store: CRUD and queries over the persisted task collection."""

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import fields
from datetime import datetime, timedelta
from typing import Any

from .config import DEFAULT_CLEANUP_DAYS, TASK_ID_PREFIX
from .exceptions import TaskNotFoundError
from .interfaces import StatePersistence
from .models import (
    PotentialTask,
    Task,
    TaskCategory,
    TaskPriority,
    TaskState,
    TaskStatistics,
    TaskStatus,
    TaskTemplate,
    TimeTracking,
    to_local_naive,
)

logger = logging.getLogger(__name__)

# Fields callers may set; id and created_at are assigned by the store
MUTABLE_FIELDS = frozenset(
    f.name for f in fields(Task) if f.name not in ("id", "created_at", "updated_at")
)

# Fields that may not be cleared to None
REQUIRED_FIELDS = frozenset(
    ("title", "category", "status", "priority", "time_tracking", "subtasks", "context")
)


def _coerce_field(name: str, value: Any) -> Any:
    """Convert plain values (as sent by tools and the CLI) to model types."""
    if value is None:
        return None
    if name == "category":
        return TaskCategory(value)
    if name == "status":
        return TaskStatus(value)
    if name == "priority":
        return TaskPriority(value)
    if name in ("due_date", "completed_at") and isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return to_local_naive(value)
    if name == "template_applied" and isinstance(value, dict):
        return TaskTemplate.from_dict(value)
    if name == "time_tracking" and isinstance(value, dict):
        return TimeTracking.from_dict(value)
    if name == "subtasks":
        return list(value)
    return value


class TaskStore:
    """
    Owns the task collection inside the persisted state.

    Every mutation is followed by a whole-state save through the persistence
    collaborator. Save failures propagate to the caller unchanged.
    """

    def __init__(
        self,
        persistence: StatePersistence,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the store.

        Args:
            persistence: Whole-state persistence collaborator
            clock: Source of the current time
        """
        self._persistence = persistence
        self._clock = clock

    @property
    def state(self) -> TaskState:
        return self._persistence.get_state()

    def now(self) -> datetime:
        return self._clock()

    async def save(self) -> None:
        await self._persistence.save_data()

    def _allocate_id(self) -> str:
        # No await between read and increment
        state = self.state
        task_id = f"{TASK_ID_PREFIX}{state.next_id}"
        state.next_id += 1
        return task_id

    def _require(self, task_id: str) -> Task:
        task = self.state.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    async def create_task(self, data: dict[str, Any]) -> Task:
        """
        Create and persist a new task.

        Args:
            data: Task fields; at least a title

        Returns:
            The stored task with its assigned id and timestamps

        Raises:
            ValueError: If data holds unknown fields or no title
            DatabaseError: If the state cannot be saved
        """
        values = self._new_task_values(data)

        now = self.now()
        task = Task(id=self._allocate_id(), created_at=now, updated_at=now, **values)
        self.state.tasks[task.id] = task
        await self.save()

        logger.info(f"Created task {task.id}: {task.title}")
        return task

    async def create_tasks(self, items: list[dict[str, Any]]) -> list[Task]:
        """
        Create several tasks with a single save.

        Either all tasks are stored or none: every item is validated before
        ids are allocated, and a failed save removes the new tasks again.

        Raises:
            ValueError: If any item holds unknown fields or no title
            DatabaseError: If the state cannot be saved
        """
        all_values = [self._new_task_values(data) for data in items]
        if not all_values:
            return []

        state = self.state
        first_id = state.next_id
        now = self.now()
        created = [
            Task(id=self._allocate_id(), created_at=now, updated_at=now, **values)
            for values in all_values
        ]
        for task in created:
            state.tasks[task.id] = task

        try:
            await self.save()
        except Exception:
            for task in created:
                state.tasks.pop(task.id, None)
            state.next_id = first_id
            raise

        logger.info(f"Created {len(created)} tasks")
        return created

    @staticmethod
    def _new_task_values(data: dict[str, Any]) -> dict[str, Any]:
        unknown = set(data) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)}")
        if not data.get("title"):
            raise ValueError("Task title is required")

        values = {name: _coerce_field(name, value) for name, value in data.items()}
        # Explicit None falls back to the dataclass defaults
        return {name: value for name, value in values.items() if value is not None}

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        """
        Merge field updates into a task.

        Args:
            task_id: Task id
            updates: Field names and new values

        Returns:
            The updated task

        Raises:
            TaskNotFoundError: If task not found
            ValueError: If updates name an unknown field, clear a required one
                or hold a value that cannot be converted
            DatabaseError: If the state cannot be saved
        """
        task = self._require(task_id)
        unknown = set(updates) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)}")

        cleared = sorted(name for name in REQUIRED_FIELDS & set(updates) if updates[name] is None)
        if cleared:
            raise ValueError(f"Task fields cannot be None: {cleared}")

        # Coerce everything before touching the task so a bad value changes nothing
        values = {name: _coerce_field(name, value) for name, value in updates.items()}
        for name, value in values.items():
            setattr(task, name, value)
        task.updated_at = self.now()
        await self.save()

        logger.info(f"Updated task {task_id} fields: {list(updates.keys())}")
        return task

    async def delete_task(self, task_id: str) -> bool:
        """
        Delete a task.

        Returns:
            True if the task existed and was removed
        """
        if self.state.tasks.pop(task_id, None) is None:
            return False

        await self.save()
        logger.info(f"Deleted task {task_id}")
        return True

    async def complete_task(self, task_id: str) -> Task:
        """Mark a task completed without time tracking."""
        now = self.now()
        return await self.update_task(
            task_id, {"status": TaskStatus.COMPLETED, "completed_at": now}
        )

    async def create_tasks_from_extraction(
        self,
        candidates: list[PotentialTask],
        message_id: str | None = None,
        folio_id: str | None = None,
    ) -> list[Task]:
        """
        Create one task per extracted candidate.

        Tasks are added to the state first and saved once.
        """
        now = self.now()
        created = []
        for candidate in candidates:
            task = Task(
                id=self._allocate_id(),
                title=candidate.text,
                created_at=now,
                updated_at=now,
                category=candidate.category or TaskCategory.GENERAL,
                folio_id=folio_id,
                message_id=message_id,
                context=candidate.context,
            )
            self.state.tasks[task.id] = task
            created.append(task)

        if created:
            await self.save()
            logger.info(f"Created {len(created)} tasks from extraction")
        return created

    async def apply_template_to_task(
        self,
        task_id: str,
        template: TaskTemplate,
        estimated_minutes: int | None = None,
    ) -> Task:
        """
        Attach a template: its subtasks, its category and an estimate.

        Raises:
            TaskNotFoundError: If task not found
        """
        task = self._require(task_id)
        task.template_applied = template
        task.subtasks = list(template.subtasks)
        task.category = template.category
        if estimated_minutes is not None:
            task.time_tracking.estimated_minutes = estimated_minutes
        task.updated_at = self.now()
        await self.save()

        logger.info(f"Applied template {template.type} to task {task_id}")
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self.state.tasks.get(task_id)

    def get_all_tasks(self) -> list[Task]:
        """All tasks in creation order."""
        return list(self.state.tasks.values())

    def get_tasks_by(
        self,
        status: TaskStatus | str | None = None,
        category: TaskCategory | str | None = None,
        folio_id: str | None = None,
        priority: TaskPriority | str | None = None,
        due_date: datetime | None = None,
    ) -> list[Task]:
        """
        Filter tasks; every given criterion must match.

        due_date matches tasks due on the same calendar day.
        """
        tasks = self.get_all_tasks()
        if status is not None:
            tasks = [t for t in tasks if t.status == TaskStatus(status)]
        if category is not None:
            tasks = [t for t in tasks if t.category == TaskCategory(category)]
        if folio_id is not None:
            tasks = [t for t in tasks if t.folio_id == folio_id]
        if priority is not None:
            tasks = [t for t in tasks if t.priority == TaskPriority(priority)]
        if due_date is not None:
            day = due_date.date()
            tasks = [t for t in tasks if t.due_date is not None and t.due_date.date() == day]
        return tasks

    def get_overdue_tasks(self) -> list[Task]:
        now = self.now()
        return [task for task in self.get_all_tasks() if task.is_overdue(now)]

    def get_today_tasks(self) -> list[Task]:
        return self.get_tasks_by(due_date=self.now())

    def get_task_statistics(self) -> TaskStatistics:
        """Aggregate counts, computed fresh from the current state."""
        tasks = self.get_all_tasks()
        now = self.now()
        by_status = Counter(task.status for task in tasks)

        return TaskStatistics(
            total=len(tasks),
            pending=by_status[TaskStatus.PENDING],
            in_progress=by_status[TaskStatus.IN_PROGRESS],
            completed=by_status[TaskStatus.COMPLETED],
            overdue=sum(1 for task in tasks if task.is_overdue(now)),
            by_category=dict(Counter(task.category.value for task in tasks)),
            by_priority=dict(Counter(task.priority.value for task in tasks)),
        )

    async def cleanup_old_tasks(self, days_old: int = DEFAULT_CLEANUP_DAYS) -> int:
        """
        Delete completed tasks finished more than days_old days ago.

        Returns:
            Number of tasks deleted
        """
        cutoff = self.now() - timedelta(days=days_old)
        stale = [
            task.id
            for task in self.get_all_tasks()
            if task.status == TaskStatus.COMPLETED
            and task.completed_at is not None
            and task.completed_at < cutoff
        ]
        for task_id in stale:
            del self.state.tasks[task_id]

        if stale:
            await self.save()
            logger.info(f"Cleaned up {len(stale)} completed tasks older than {days_old} days")
        return len(stale)
