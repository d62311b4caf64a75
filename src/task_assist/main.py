"""Command-line interface for task extraction and management."""

import argparse
import asyncio
import json
import logging
import sys

from .logging_utils import configure_logging
from .task_management.config import DEFAULT_CLEANUP_DAYS, DEFAULT_DATABASE_PATH
from .task_management.database import TaskDatabase
from .task_management.extractor import TaskExtractor
from .task_management.models import Task
from .task_management.scheduler import categorize_task_by_date, format_duration
from .task_management.task_manager import TaskManager


class TaskCLI:
    """Command-line interface over a task manager."""

    def __init__(self, manager: TaskManager) -> None:
        """
        Initialize the CLI.

        Args:
            manager: Initialized TaskManager instance
        """
        self._manager = manager

    def _format_task(self, task: Task) -> str:
        info = TaskExtractor.get_category_info(task.category)
        line = f"{info['icon']} [{task.id}] {task.title} ({task.status.value}, {task.priority.value})"
        if task.due_date:
            line += f" due {task.due_date.date().isoformat()} [{categorize_task_by_date(task.due_date)}]"
        estimate = format_duration(task.time_tracking.estimated_minutes)
        if estimate:
            line += f" ~{estimate}"
        return line

    async def extract(self, text: str, confirm: bool = False, folio_id: str | None = None) -> int:
        """
        Extract tasks from text and optionally save them.

        Returns:
            Number of tasks created
        """
        pending = self._manager.process_message(text, folio_id=folio_id)
        if pending is None:
            print("No tasks found.")
            return 0

        print(f"🔍 Found {len(pending.tasks)} potential task(s):")
        for index, candidate in enumerate(pending.tasks):
            confidence_percent = round(candidate.confidence * 100)
            category = candidate.category.value if candidate.category else "general"
            print(f"  [{index}] {candidate.text} ({confidence_percent}%, {category})")
            if candidate.extracted_date:
                print(f"      date: {candidate.extracted_date.raw}")
            if candidate.templates:
                names = ", ".join(f"{t.icon} {t.name}" for t in candidate.templates)
                print(f"      templates: {names}")

        if not confirm:
            self._manager.cancel_pending_tasks()
            print("Run again with --confirm to save these tasks.")
            return 0

        tasks = await self._manager.confirm_pending_tasks()
        print(f"✅ Created {len(tasks)} task(s).")
        for task in tasks:
            print(f"  {self._format_task(task)}")
        return len(tasks)

    def list_tasks(self, status: str | None = None, category: str | None = None) -> None:
        tasks = self._manager.get_tasks_by(status=status, category=category)
        if not tasks:
            print("No tasks.")
            return
        for task in tasks:
            print(self._format_task(task))

    def show_statistics(self) -> None:
        stats = self._manager.get_task_statistics()
        print(
            f"Total: {stats.total}  Pending: {stats.pending}  "
            f"In progress: {stats.in_progress}  Completed: {stats.completed}  "
            f"Overdue: {stats.overdue}"
        )
        for category, count in sorted(stats.by_category.items()):
            print(f"  {category}: {count}")
        summary = self._manager.scheduler.get_learning_summary()["overall"]
        if summary["total_tasks"]:
            accuracy_percent = round(summary["average_accuracy"] * 100)
            print(f"Estimate accuracy: {accuracy_percent}% over {summary['total_tasks']} task(s)")

    def export(self) -> None:
        print(json.dumps(self._manager.export_tasks(), indent=2, ensure_ascii=False))

    async def cleanup(self, days_old: int) -> int:
        removed = await self._manager.cleanup_old_tasks(days_old)
        print(f"🧹 Removed {removed} completed task(s) older than {days_old} days.")
        return removed


async def run_command(args: argparse.Namespace) -> int:
    """
    Run one CLI command against the task database.

    Returns:
        Process exit code
    """
    manager = TaskManager(TaskDatabase(args.db))
    await manager.initialize()
    cli = TaskCLI(manager)

    try:
        if args.command == "extract":
            await cli.extract(" ".join(args.text), confirm=args.confirm, folio_id=args.folio)
        elif args.command == "list":
            cli.list_tasks(status=args.status, category=args.category)
        elif args.command == "stats":
            cli.show_statistics()
        elif args.command == "export":
            cli.export()
        elif args.command == "cleanup":
            await cli.cleanup(args.days)
        return 0
    finally:
        await manager.shutdown()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Task Assist CLI - Turn messages into a tracked task list",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  task-assist extract "I need to call Bob about the budget by Friday."
  task-assist extract --confirm "Remember to email Sarah the report tomorrow"
  task-assist list --status pending
  task-assist stats
  task-assist export > tasks.json
  task-assist cleanup --days 14
  task-assist --verbose list                 # Enable verbose logging
        """,
    )

    parser.add_argument(
        "--db",
        type=str,
        default=DEFAULT_DATABASE_PATH,
        metavar="PATH",
        help=f"SQLite database path (default: {DEFAULT_DATABASE_PATH})",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes all debug info)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Extract tasks from text")
    extract_parser.add_argument("text", nargs="+", help="Message text")
    extract_parser.add_argument(
        "--confirm", action="store_true", help="Save the extracted tasks"
    )
    extract_parser.add_argument("--folio", default=None, help="Folio id to attach")

    list_parser = subparsers.add_parser("list", help="List tasks")
    list_parser.add_argument(
        "--status", choices=["pending", "in-progress", "completed"], default=None
    )
    list_parser.add_argument(
        "--category",
        choices=["work", "personal", "creative", "administrative", "general"],
        default=None,
    )

    subparsers.add_parser("stats", help="Show task statistics")
    subparsers.add_parser("export", help="Export tasks as JSON")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old completed tasks")
    cleanup_parser.add_argument("--days", type=int, default=DEFAULT_CLEANUP_DAYS)

    return parser


def cli_entry_with_args(argv: list[str] | None = None) -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()

    try:
        args = parser.parse_args(argv)
        configure_logging(verbose=args.verbose, trace=args.trace)
        sys.exit(asyncio.run(run_command(args)))

    except KeyboardInterrupt:
        pass  # Graceful shutdown
    except SystemExit:
        # Re-raise SystemExit (from argparse help, etc.)
        raise
    except Exception as e:
        logging.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_with_args()
