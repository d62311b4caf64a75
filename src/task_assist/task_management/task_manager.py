"""Task manager: the extraction, confirmation and task lifecycle workflow."""

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .config import (
    DEFAULT_CLEANUP_DAYS,
    EXPORT_VERSION,
    MISSED_TASK_MAX_CONFIDENCE,
    MISSED_TASK_MIN_CONFIDENCE,
)
from .exceptions import NoPendingConfirmationError
from .extractor import TaskExtractor
from .interfaces import StatePersistence
from .models import (
    ContextAnalysis,
    PendingConfirmation,
    PotentialTask,
    Task,
    TaskPriority,
    TaskStatistics,
    TaskTemplate,
    to_local_naive,
)
from .scheduler import TaskScheduler, parse_date, parse_time_estimate, priority_from_due_date
from .task_store import TaskStore
from .templates import TemplateMatcher

logger = logging.getLogger(__name__)

TasksUpdatedCallback = Callable[[list[Task]], Any]


class TaskManager:
    """
    Orchestrates task extraction, confirmation and lifecycle operations.

    Holds at most one pending confirmation. A new extraction replaces it;
    confirm or cancel clears it. After every task-list mutation the
    registered callbacks receive the full task list.
    """

    def __init__(
        self,
        persistence: StatePersistence,
        clock: Callable[[], datetime] = datetime.now,
        extractor: TaskExtractor | None = None,
    ) -> None:
        """
        Initialize the manager and its components.

        Args:
            persistence: Whole-state persistence collaborator
            clock: Source of the current time, shared by every component
            extractor: Task extractor (defaults to the standard rule table)
        """
        self._persistence = persistence
        self._clock = clock
        self.store = TaskStore(persistence, clock=clock)
        self.scheduler = TaskScheduler(self.store)
        self.extractor = extractor or TaskExtractor()
        self.matcher = TemplateMatcher(self.store, clock=clock)
        self._pending: PendingConfirmation | None = None
        self._callbacks: list[TasksUpdatedCallback] = []

    async def initialize(self) -> None:
        """Load the persisted state."""
        logger.info("Initializing Task Manager")
        await self._persistence.initialize()
        logger.info(f"Task Manager initialized with {len(self.store.get_all_tasks())} tasks")

    async def shutdown(self) -> None:
        """
        Close the persistence collaborator.

        Handles errors gracefully to ensure cleanup completes.
        """
        logger.info("Shutting down Task Manager")
        try:
            await self._persistence.close()
        except Exception as e:
            logger.error(f"Error closing task storage: {e}")

        self._pending = None

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    def add_tasks_updated_callback(self, callback: TasksUpdatedCallback) -> None:
        """Register a callback (sync or async) for task-list updates."""
        self._callbacks.append(callback)

    def remove_tasks_updated_callback(self, callback: TasksUpdatedCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def _notify_tasks_updated(self) -> None:
        tasks = self.store.get_all_tasks()
        for callback in list(self._callbacks):
            try:
                result = callback(tasks)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Tasks-updated callback failed: {e}")

    def process_message(
        self,
        text: str,
        message_id: str | None = None,
        folio_id: str | None = None,
    ) -> PendingConfirmation | None:
        """
        Extract candidate tasks and hold them for confirmation.

        Args:
            text: Message content
            message_id: Source message reference
            folio_id: Source folio reference

        Returns:
            The new pending confirmation, or None when nothing was found
            (any earlier pending confirmation is then left untouched)
        """
        candidates = self.extractor.extract_potential_tasks(text)
        if not candidates:
            logger.debug("No tasks found in message")
            return None

        for candidate in candidates:
            self._enrich(candidate)

        if self._pending is not None:
            logger.info("Replacing unresolved pending confirmation")
        self._pending = PendingConfirmation(
            tasks=candidates,
            message_id=message_id,
            folio_id=folio_id,
            timestamp=self._clock(),
        )
        logger.info(f"Holding {len(candidates)} candidate tasks for confirmation")
        return self._pending

    def _enrich(self, candidate: PotentialTask) -> None:
        candidate.category = self.extractor.categorize_task(candidate.text, candidate.context)
        candidate.templates = self.matcher.detect_task_templates(
            candidate.text, candidate.context
        )
        candidate.related_tasks = self.matcher.find_related_tasks(
            candidate.text, candidate.category
        )

    def apply_template(self, task_index: int, template: int | str) -> PotentialTask:
        """
        Select a template override for a pending candidate.

        Args:
            task_index: Index of the candidate in the pending confirmation
            template: Index into the candidate's suggestions, or a template type

        Returns:
            The updated candidate

        Raises:
            NoPendingConfirmationError: If nothing is pending
            IndexError: If task_index or a template index is out of range
            ValueError: If a template type is unknown
        """
        if self._pending is None:
            raise NoPendingConfirmationError("No pending tasks to apply a template to")

        candidate = self._pending.tasks[task_index]
        if isinstance(template, int):
            selected = candidate.templates[template]
        else:
            found = self.matcher.get_template(template)
            if found is None:
                raise ValueError(f"Unknown template type: {template}")
            selected = found

        candidate.selected_template = selected
        logger.debug(f"Selected template {selected.type} for '{candidate.text}'")
        return candidate

    def _estimate_minutes(self, template: TaskTemplate) -> int | None:
        minutes = parse_time_estimate(template.estimated_time)
        if minutes is None:
            return None
        return self.scheduler.get_improved_time_estimate(
            template.category, template.type, minutes
        ).adjusted

    async def confirm_pending_tasks(
        self,
        due_dates: dict[int, datetime | str] | None = None,
        selected: list[int] | None = None,
    ) -> list[Task]:
        """
        Create tasks from the pending confirmation.

        Args:
            due_dates: Reviewer-supplied due dates by candidate index; other
                candidates use their extracted date
            selected: Candidate indexes to keep (all when None)

        Returns:
            The created tasks

        Raises:
            NoPendingConfirmationError: If nothing is pending (including a
                confirmation already claimed by a concurrent call)
            IndexError: If selected or due_dates name a missing candidate
            DatabaseError: If the state cannot be saved

        On any error no tasks are created and the confirmation stays pending.
        """
        pending = self._pending
        if pending is None:
            raise NoPendingConfirmationError("No pending tasks to confirm")

        due_dates = due_dates or {}
        indexes = list(range(len(pending.tasks))) if selected is None else list(selected)
        invalid = [i for i in [*indexes, *due_dates] if not 0 <= i < len(pending.tasks)]
        if invalid:
            raise IndexError(f"No pending candidate at index {invalid[0]}")

        items = [self._task_data(pending, index, due_dates.get(index)) for index in indexes]

        # Claim the slot before the first await
        self._pending = None
        try:
            created = await self.store.create_tasks(items)
        except Exception:
            # Nothing was stored; leave the confirmation for a retry unless replaced
            if self._pending is None:
                self._pending = pending
            raise

        logger.info(f"Confirmed {len(created)} tasks")
        await self._notify_tasks_updated()
        return created

    def _task_data(
        self,
        pending: PendingConfirmation,
        index: int,
        due_value: datetime | str | None,
    ) -> dict[str, Any]:
        now = self._clock()
        candidate = pending.tasks[index]
        if isinstance(due_value, datetime):
            due_date = to_local_naive(due_value)
        elif due_value:
            due_date = parse_date(due_value, now)
        elif candidate.extracted_date:
            due_date = parse_date(candidate.extracted_date.raw, now)
        else:
            due_date = None

        data: dict[str, Any] = {
            "title": candidate.text,
            "category": candidate.category,
            "priority": (
                priority_from_due_date(due_date, now) if due_date else TaskPriority.MEDIUM
            ),
            "due_date": due_date,
            "folio_id": pending.folio_id,
            "message_id": pending.message_id,
            "context": candidate.context,
        }

        template = candidate.selected_template
        if template is not None:
            data["template_applied"] = template
            data["subtasks"] = list(template.subtasks)
            data["category"] = template.category
            estimated = self._estimate_minutes(template)
            if estimated is not None:
                data["time_tracking"] = {"estimated_minutes": estimated}
        return data

    def cancel_pending_tasks(self) -> bool:
        """
        Discard the pending confirmation.

        Returns:
            True if something was pending
        """
        had_pending = self._pending is not None
        self._pending = None
        if had_pending:
            logger.info("Cancelled pending task confirmation")
        return had_pending

    async def start_task(self, task_id: str) -> Task:
        task = await self.scheduler.start_task_timer(task_id)
        await self._notify_tasks_updated()
        return task

    async def complete_task(self, task_id: str) -> Task:
        task = await self.scheduler.complete_task_with_tracking(task_id)
        await self._notify_tasks_updated()
        return task

    async def delete_task(self, task_id: str) -> bool:
        deleted = await self.store.delete_task(task_id)
        if deleted:
            await self._notify_tasks_updated()
        return deleted

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        task = await self.store.update_task(task_id, updates)
        await self._notify_tasks_updated()
        return task

    async def cleanup_old_tasks(self, days_old: int = DEFAULT_CLEANUP_DAYS) -> int:
        removed = await self.store.cleanup_old_tasks(days_old)
        if removed:
            await self._notify_tasks_updated()
        return removed

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get_task(task_id)

    def get_all_tasks(self) -> list[Task]:
        return self.store.get_all_tasks()

    def get_tasks_by(self, **criteria: Any) -> list[Task]:
        return self.store.get_tasks_by(**criteria)

    def get_overdue_tasks(self) -> list[Task]:
        return self.store.get_overdue_tasks()

    def get_today_tasks(self) -> list[Task]:
        return self.store.get_today_tasks()

    def get_task_statistics(self) -> TaskStatistics:
        return self.store.get_task_statistics()

    def export_tasks(self) -> dict[str, Any]:
        """JSON-serializable snapshot of all tasks and their statistics."""
        return {
            "tasks": [task.to_dict() for task in self.store.get_all_tasks()],
            "statistics": self.store.get_task_statistics().to_dict(),
            "exported_at": self._clock().isoformat(),
            "version": EXPORT_VERSION,
        }

    def check_for_missed_tasks(self, messages: list[dict[str, str]]) -> list[PotentialTask]:
        """
        Moderate-confidence candidates from the latest user message.

        These are too uncertain to propose outright but worth suggesting.

        Args:
            messages: Conversation as {"role", "content"} dicts, oldest first
        """
        last_user = next(
            (m for m in reversed(messages) if m.get("role") == "user"),
            None,
        )
        if last_user is None:
            return []

        missed = [
            candidate
            for candidate in self.extractor.extract_potential_tasks(last_user.get("content", ""))
            if MISSED_TASK_MIN_CONFIDENCE < candidate.confidence < MISSED_TASK_MAX_CONFIDENCE
        ]
        for candidate in missed:
            self._enrich(candidate)
        return missed

    def analyze_conversation_context(
        self,
        messages: list[dict[str, str]],
        folio_id: str | None = None,
    ) -> ContextAnalysis:
        """
        Relate a conversation to existing tasks.

        Args:
            messages: Conversation as {"role", "content"} dicts, oldest first
            folio_id: Folio the conversation belongs to

        Returns:
            Related tasks, missed-task suggestions and any deadline cue
        """
        if not messages:
            return ContextAnalysis()

        recent = " ".join(m.get("content", "") for m in messages[-3:])
        adjustment = self.extractor.detect_deadline_adjustment(messages[-1].get("content", ""))

        return ContextAnalysis(
            related_tasks=self.matcher.find_tasks_related_to_context(recent, folio_id),
            missed_tasks=self.check_for_missed_tasks(messages),
            deadline_adjustment=adjustment.value if adjustment else None,
        )
