"""Task management module for task extraction, scheduling and tracking."""

from .database import TaskDatabase
from .extractor import TaskExtractor
from .models import (
    PotentialTask,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    TaskTemplate,
)
from .scheduler import TaskScheduler, parse_date, parse_time_estimate
from .task_manager import TaskManager
from .task_store import TaskStore
from .templates import TemplateMatcher

__all__ = [
    "Task",
    "TaskCategory",
    "TaskStatus",
    "TaskPriority",
    "TaskTemplate",
    "PotentialTask",
    "TaskExtractor",
    "TemplateMatcher",
    "TaskStore",
    "TaskScheduler",
    "TaskManager",
    "TaskDatabase",
    "parse_date",
    "parse_time_estimate",
]
