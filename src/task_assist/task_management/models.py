"""Data models for task extraction, storage and scheduling."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .config import LEARNING_WINDOW_SIZE


class TaskCategory(str, Enum):
    """Task category enumeration."""

    WORK = "work"
    PERSONAL = "personal"
    CREATIVE = "creative"
    ADMINISTRATIVE = "administrative"
    GENERAL = "general"


class TaskStatus(str, Enum):
    """Task status enumeration."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Task priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def to_local_naive(value: datetime) -> datetime:
    """Convert an offset-aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    return to_local_naive(datetime.fromisoformat(value)) if value else None


@dataclass(frozen=True)
class TaskTemplate:
    """Fixed checklist and time estimate for a detected task intent."""

    type: str
    name: str
    icon: str
    description: str
    subtasks: tuple[str, ...]
    estimated_time: str
    category: TaskCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "subtasks": list(self.subtasks),
            "estimated_time": self.estimated_time,
            "category": self.category.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskTemplate":
        return cls(
            type=data["type"],
            name=data.get("name", data["type"]),
            icon=data.get("icon", ""),
            description=data.get("description", ""),
            subtasks=tuple(data.get("subtasks", ())),
            estimated_time=data.get("estimated_time", ""),
            category=TaskCategory(data.get("category", TaskCategory.GENERAL.value)),
        )


@dataclass
class TimeTracking:
    """
    Estimated versus actual time for a task.

    accuracy is only set when both estimated_minutes and actual_minutes are,
    and actual_minutes only once completed_at (itself only after started_at).
    """

    estimated_minutes: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    actual_minutes: int | None = None
    accuracy: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated_minutes": self.estimated_minutes,
            "started_at": _to_iso(self.started_at),
            "completed_at": _to_iso(self.completed_at),
            "actual_minutes": self.actual_minutes,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TimeTracking":
        data = data or {}
        return cls(
            estimated_minutes=data.get("estimated_minutes"),
            started_at=_from_iso(data.get("started_at")),
            completed_at=_from_iso(data.get("completed_at")),
            actual_minutes=data.get("actual_minutes"),
            accuracy=data.get("accuracy"),
        )


@dataclass
class Task:
    """Represents a persisted task item."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    category: TaskCategory = TaskCategory.GENERAL
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    completed_at: datetime | None = None
    folio_id: str | None = None
    message_id: str | None = None
    template_applied: TaskTemplate | None = None
    time_tracking: TimeTracking = field(default_factory=TimeTracking)
    subtasks: list[str] = field(default_factory=list)
    context: str = ""

    def is_overdue(self, now: datetime) -> bool:
        """Whether the task is unfinished and past its due date."""
        if self.status == TaskStatus.COMPLETED or self.due_date is None:
            return False
        return self.due_date < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "status": self.status.value,
            "priority": self.priority.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "due_date": _to_iso(self.due_date),
            "completed_at": _to_iso(self.completed_at),
            "folio_id": self.folio_id,
            "message_id": self.message_id,
            "template_applied": (
                self.template_applied.to_dict() if self.template_applied else None
            ),
            "time_tracking": self.time_tracking.to_dict(),
            "subtasks": list(self.subtasks),
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        template = data.get("template_applied")
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            category=TaskCategory(data.get("category", TaskCategory.GENERAL.value)),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            priority=TaskPriority(data.get("priority", TaskPriority.MEDIUM.value)),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            due_date=_from_iso(data.get("due_date")),
            completed_at=_from_iso(data.get("completed_at")),
            folio_id=data.get("folio_id"),
            message_id=data.get("message_id"),
            template_applied=TaskTemplate.from_dict(template) if template else None,
            time_tracking=TimeTracking.from_dict(data.get("time_tracking")),
            subtasks=list(data.get("subtasks", [])),
            context=data.get("context", ""),
        )


@dataclass
class ExtractedDate:
    """A date expression found near a candidate task."""

    raw: str
    confidence: float


@dataclass
class RelatedTask:
    """An existing task that resembles a candidate."""

    task: Task
    similarity: float
    reason: str
    reasons: list[str] = field(default_factory=list)


@dataclass
class PotentialTask:
    """Extracted, not-yet-confirmed task proposal. Never persisted."""

    text: str
    original_match: str
    confidence: float
    context: str
    extracted_date: ExtractedDate | None = None
    rule_kind: str = ""
    category: TaskCategory | None = None
    templates: list[TaskTemplate] = field(default_factory=list)
    related_tasks: list[RelatedTask] = field(default_factory=list)
    selected_template: TaskTemplate | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "original_match": self.original_match,
            "confidence": self.confidence,
            "context": self.context,
            "extracted_date": (
                {"raw": self.extracted_date.raw, "confidence": self.extracted_date.confidence}
                if self.extracted_date
                else None
            ),
            "rule_kind": self.rule_kind,
            "category": self.category.value if self.category else None,
            "templates": [template.to_dict() for template in self.templates],
            "related_tasks": [
                {"id": rt.task.id, "title": rt.task.title, "reason": rt.reason,
                 "similarity": rt.similarity}
                for rt in self.related_tasks
            ],
            "selected_template": (
                self.selected_template.type if self.selected_template else None
            ),
        }


@dataclass
class PendingConfirmation:
    """Candidates awaiting the user's confirmation."""

    tasks: list[PotentialTask]
    message_id: str | None
    folio_id: str | None
    timestamp: datetime


@dataclass
class LearningRecord:
    """One observed estimate/actual outcome."""

    estimated: int
    actual: int
    accuracy: float
    ratio: float
    task_title: str
    completed_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated": self.estimated,
            "actual": self.actual,
            "accuracy": self.accuracy,
            "ratio": self.ratio,
            "task_title": self.task_title,
            "completed_at": _to_iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearningRecord":
        return cls(
            estimated=data["estimated"],
            actual=data["actual"],
            accuracy=data.get("accuracy") or 0.0,
            ratio=data.get("ratio", 1.0),
            task_title=data.get("task_title", ""),
            completed_at=_from_iso(data.get("completed_at")),
        )


@dataclass
class LearningStats:
    """Bounded window of recent outcomes with derived averages."""

    estimates: deque[LearningRecord] = field(
        default_factory=lambda: deque(maxlen=LEARNING_WINDOW_SIZE)
    )
    average_accuracy: float = 0.0
    average_ratio: float = 1.0

    @property
    def sample_size(self) -> int:
        return len(self.estimates)

    def add(self, record: LearningRecord) -> None:
        """Push a record (evicting the oldest when full) and recompute averages."""
        self.estimates.append(record)
        count = len(self.estimates)
        self.average_accuracy = round(sum(e.accuracy for e in self.estimates) / count, 2)
        self.average_ratio = round(sum(e.ratio for e in self.estimates) / count, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimates": [record.to_dict() for record in self.estimates],
            "average_accuracy": self.average_accuracy,
            "average_ratio": self.average_ratio,
            "sample_size": self.sample_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearningStats":
        records = [LearningRecord.from_dict(item) for item in data.get("estimates", [])]
        return cls(
            estimates=deque(records, maxlen=LEARNING_WINDOW_SIZE),
            average_accuracy=data.get("average_accuracy", 0.0),
            average_ratio=data.get("average_ratio", 1.0),
        )


@dataclass
class LearningOverview:
    """Learning totals across all categories."""

    total_tasks: int = 0
    average_accuracy: float = 0.0
    last_updated: datetime | None = None


@dataclass
class LearningData:
    """Time-estimate learning state, keyed by category and template type."""

    by_category: dict[str, LearningStats] = field(default_factory=dict)
    by_template: dict[str, LearningStats] = field(default_factory=dict)
    overall: LearningOverview = field(default_factory=LearningOverview)

    def to_dict(self) -> dict[str, Any]:
        return {
            "by_category": {k: v.to_dict() for k, v in self.by_category.items()},
            "by_template": {k: v.to_dict() for k, v in self.by_template.items()},
            "overall": {
                "total_tasks": self.overall.total_tasks,
                "average_accuracy": self.overall.average_accuracy,
                "last_updated": _to_iso(self.overall.last_updated),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LearningData":
        if not data:
            return cls()
        overall = data.get("overall", {})
        return cls(
            by_category={
                k: LearningStats.from_dict(v) for k, v in data.get("by_category", {}).items()
            },
            by_template={
                k: LearningStats.from_dict(v) for k, v in data.get("by_template", {}).items()
            },
            overall=LearningOverview(
                total_tasks=overall.get("total_tasks", 0),
                average_accuracy=overall.get("average_accuracy", 0.0),
                last_updated=_from_iso(overall.get("last_updated")),
            ),
        )


@dataclass
class TaskState:
    """Whole persisted state: tasks, id counter and learning data."""

    tasks: dict[str, Task] = field(default_factory=dict)
    next_id: int = 1
    task_learning: LearningData = field(default_factory=LearningData)


@dataclass
class ImprovedEstimate:
    """Time estimate corrected by the learning model."""

    original: int
    adjusted: int
    confidence: float
    source: str


@dataclass
class TaskStatistics:
    """Aggregate task counts."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "overdue": self.overdue,
            "by_category": dict(self.by_category),
            "by_priority": dict(self.by_priority),
        }


@dataclass
class ContextAnalysis:
    """What a conversation implies about existing and missed tasks."""

    related_tasks: list[RelatedTask] = field(default_factory=list)
    missed_tasks: list[PotentialTask] = field(default_factory=list)
    deadline_adjustment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "related_tasks": [
                {
                    "id": rt.task.id,
                    "title": rt.task.title,
                    "score": rt.similarity,
                    "reasons": list(rt.reasons),
                }
                for rt in self.related_tasks
            ],
            "missed_tasks": [task.to_dict() for task in self.missed_tasks],
            "deadline_adjustment": self.deadline_adjustment,
        }
