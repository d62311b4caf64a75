"""Time and date parsing, task timers and the estimate learning model."""

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

from .config import (
    CATEGORY_CONFIDENCE_DIVISOR,
    CATEGORY_MAX_CONFIDENCE,
    CATEGORY_MIN_SAMPLES,
    TEMPLATE_CONFIDENCE_DIVISOR,
    TEMPLATE_MAX_CONFIDENCE,
    TEMPLATE_MIN_SAMPLES,
)
from .exceptions import InvalidTaskStateError, TaskNotFoundError
from .models import (
    ImprovedEstimate,
    LearningData,
    LearningRecord,
    LearningStats,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    to_local_naive,
)
from .task_store import TaskStore

logger = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:\.\d+)?)"
_HOUR_UNIT = r"(?:hours?|hrs?|h)\b"
_MINUTE_UNIT = r"(?:minutes?|mins?|m)\b"

RANGE_PATTERN = re.compile(
    rf"{_NUMBER}\s*(?:-|–|to)\s*{_NUMBER}\s*(hours?|hrs?|h|minutes?|mins?|m)\b",
    re.IGNORECASE,
)
HOURS_PATTERN = re.compile(rf"{_NUMBER}\s*{_HOUR_UNIT}", re.IGNORECASE)
MINUTES_PATTERN = re.compile(rf"{_NUMBER}\s*{_MINUTE_UNIT}", re.IGNORECASE)

WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}
_WEEKDAY_PATTERN = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def parse_time_estimate(text: str | None) -> int | None:
    """
    Parse a human time estimate into minutes.

    A range ("1-3 hours", "10-20 minutes") yields its mean. Otherwise hour
    and minute quantities are summed ("1 hour 30 minutes" -> 90).

    Returns:
        Minutes, or None when nothing parses or the total is not positive
    """
    if not text:
        return None

    range_match = RANGE_PATTERN.search(text)
    if range_match:
        low, high, unit = range_match.groups()
        mean = (float(low) + float(high)) / 2
        minutes = mean * 60 if unit.lower().startswith("h") else mean
    else:
        minutes = sum(float(m) * 60 for m in HOURS_PATTERN.findall(text))
        minutes += sum(float(m) for m in MINUTES_PATTERN.findall(text))

    total = _round_half_up(minutes)
    return total if total > 0 else None


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_date(text: str | None, now: datetime | None = None) -> datetime | None:
    """
    Parse a due-date expression into a datetime.

    Relative words and weekday names resolve to midnight. A weekday that is
    today resolves to the same weekday next week. Anything else goes through
    the dateutil parser.

    Args:
        text: Date expression ("tomorrow", "Friday", "2025-03-12", ...)
        now: Reference time (defaults to the current time)

    Returns:
        The parsed datetime, or None when the text cannot be parsed
    """
    if not text or not text.strip():
        return None

    now = now or datetime.now()
    today = _midnight(now)
    lowered = text.lower()

    if re.search(r"\b(today|tonight)\b", lowered):
        return today
    if re.search(r"\btomorrow\b", lowered):
        return today + timedelta(days=1)
    if "next week" in lowered:
        return today + timedelta(days=7)
    if "end of week" in lowered or "this week" in lowered:
        return today + relativedelta(weekday=FR(+1))

    weekday_match = _WEEKDAY_PATTERN.search(lowered)
    if weekday_match:
        weekday = WEEKDAYS[weekday_match.group(1).lower()]
        # Start from tomorrow so the same weekday rolls a full week ahead
        return today + relativedelta(days=+1, weekday=weekday(+1))

    try:
        # Stored dates are naive local time
        return to_local_naive(date_parser.parse(text, default=today))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Could not parse date '{text}': {e}")
        return None


def format_duration(minutes: int | None) -> str:
    """Format minutes as "45m", "2h" or "1h 30m"; empty for no duration."""
    if not minutes or minutes <= 0:
        return ""

    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def _days_until(due_date: datetime, now: datetime) -> int:
    return (due_date.date() - now.date()).days


def categorize_task_by_date(due_date: datetime | None, now: datetime | None = None) -> str:
    """
    Timeline bucket for a due date.

    Returns:
        One of "overdue", "today", "tomorrow", "this-week", "future", "someday"
    """
    if due_date is None:
        return "someday"

    days = _days_until(due_date, now or datetime.now())
    if days < 0:
        return "overdue"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days <= 7:
        return "this-week"
    return "future"


def priority_from_due_date(
    due_date: datetime | None, now: datetime | None = None
) -> TaskPriority:
    """Priority implied by how soon a task is due."""
    if due_date is None:
        return TaskPriority.LOW

    days = _days_until(due_date, now or datetime.now())
    if days <= 0:
        return TaskPriority.URGENT
    if days == 1:
        return TaskPriority.HIGH
    if days <= 7:
        return TaskPriority.MEDIUM
    return TaskPriority.LOW


class TaskScheduler:
    """
    Task timer lifecycle and the adaptive time-estimate model.

    Learning data lives in the persisted state and is only ever mutated here,
    when a tracked task with an estimate is completed.
    """

    def __init__(self, store: TaskStore) -> None:
        """
        Initialize the scheduler.

        Args:
            store: Task store whose state (and clock) the scheduler shares
        """
        self._store = store

    @property
    def learning(self) -> LearningData:
        return self._store.state.task_learning

    def _require_open_task(self, task_id: str) -> Task:
        task = self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        if task.status == TaskStatus.COMPLETED:
            raise InvalidTaskStateError(f"Task {task_id} is already completed")
        return task

    async def start_task_timer(self, task_id: str) -> Task:
        """
        Start tracking time on a task.

        Raises:
            TaskNotFoundError: If task not found
            InvalidTaskStateError: If the task is already completed
        """
        task = self._require_open_task(task_id)
        if task.status == TaskStatus.IN_PROGRESS and task.time_tracking.started_at:
            logger.debug(f"Task {task_id} timer already running")
            return task

        now = self._store.now()
        task.time_tracking.started_at = now
        task.status = TaskStatus.IN_PROGRESS
        task.updated_at = now
        await self._store.save()

        logger.info(f"Started timer for task {task_id}")
        return task

    async def complete_task_with_tracking(self, task_id: str) -> Task:
        """
        Complete a task, recording actual time and estimate accuracy.

        Raises:
            TaskNotFoundError: If task not found
            InvalidTaskStateError: If the task is already completed
        """
        task = self._require_open_task(task_id)
        now = self._store.now()
        tracking = task.time_tracking

        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        task.updated_at = now

        if tracking.started_at is not None:
            tracking.completed_at = now
            elapsed = (now - tracking.started_at).total_seconds()
            tracking.actual_minutes = _round_half_up(elapsed / 60)

            if tracking.estimated_minutes:
                estimated = tracking.estimated_minutes
                error = abs(tracking.actual_minutes - estimated) / estimated
                tracking.accuracy = round(max(0.0, 1 - error), 2)
                self._record_learning(task, now)

        await self._store.save()
        logger.info(
            f"Completed task {task_id} "
            f"(estimated={tracking.estimated_minutes}, actual={tracking.actual_minutes})"
        )
        return task

    def _record_learning(self, task: Task, now: datetime) -> None:
        tracking = task.time_tracking
        estimated = tracking.estimated_minutes
        actual = tracking.actual_minutes
        if not estimated or actual is None or tracking.accuracy is None:
            return

        record = LearningRecord(
            estimated=estimated,
            actual=actual,
            accuracy=tracking.accuracy,
            ratio=round(actual / estimated, 2),
            task_title=task.title,
            completed_at=now,
        )
        template_key = task.template_applied.type if task.template_applied else "general"

        learning = self.learning
        learning.by_category.setdefault(task.category.value, LearningStats()).add(record)
        learning.by_template.setdefault(template_key, LearningStats()).add(record)

        samples = sum(stats.sample_size for stats in learning.by_category.values())
        weighted = sum(
            stats.average_accuracy * stats.sample_size
            for stats in learning.by_category.values()
        )
        learning.overall.total_tasks += 1
        learning.overall.average_accuracy = round(weighted / samples, 2) if samples else 0.0
        learning.overall.last_updated = now

        logger.debug(
            f"Recorded learning for {task.category.value}/{template_key}: "
            f"ratio={record.ratio}, accuracy={record.accuracy}"
        )

    def get_improved_time_estimate(
        self,
        category: TaskCategory | str | None,
        template_type: str | None,
        original_estimate: int,
    ) -> ImprovedEstimate:
        """
        Correct an estimate with the learned actual/estimated ratio.

        The template window is preferred once it has enough samples, then the
        category window; with neither the estimate is returned unchanged.
        """
        category_key = TaskCategory(category).value if category else None
        template_stats = self.learning.by_template.get(template_type) if template_type else None
        category_stats = self.learning.by_category.get(category_key) if category_key else None

        if template_stats and template_stats.sample_size >= TEMPLATE_MIN_SAMPLES:
            stats = template_stats
            confidence = min(
                template_stats.sample_size / TEMPLATE_CONFIDENCE_DIVISOR, TEMPLATE_MAX_CONFIDENCE
            )
            source = "template"
        elif category_stats and category_stats.sample_size >= CATEGORY_MIN_SAMPLES:
            stats = category_stats
            confidence = min(
                category_stats.sample_size / CATEGORY_CONFIDENCE_DIVISOR, CATEGORY_MAX_CONFIDENCE
            )
            source = "category"
        else:
            return ImprovedEstimate(
                original=original_estimate,
                adjusted=original_estimate,
                confidence=0.0,
                source="none",
            )

        final_ratio = 1 + (stats.average_ratio - 1) * confidence
        return ImprovedEstimate(
            original=original_estimate,
            adjusted=_round_half_up(original_estimate * final_ratio),
            confidence=round(confidence, 2),
            source=source,
        )

    def get_learning_summary(self) -> dict[str, Any]:
        """Overall and per-key learning statistics."""

        def summarize(stats: dict[str, LearningStats]) -> dict[str, Any]:
            return {
                key: {
                    "average_accuracy": value.average_accuracy,
                    "average_ratio": value.average_ratio,
                    "sample_size": value.sample_size,
                }
                for key, value in stats.items()
            }

        overall = self.learning.overall
        return {
            "overall": {
                "total_tasks": overall.total_tasks,
                "average_accuracy": overall.average_accuracy,
                "last_updated": overall.last_updated.isoformat() if overall.last_updated else None,
            },
            "by_category": summarize(self.learning.by_category),
            "by_template": summarize(self.learning.by_template),
        }
