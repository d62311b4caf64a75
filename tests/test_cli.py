"""Tests for CLI interface functionality."""

import json
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from task_assist.main import TaskCLI, cli_entry_with_args, create_argument_parser
from task_assist.task_management.config import DEFAULT_CLEANUP_DAYS, DEFAULT_DATABASE_PATH
from task_assist.task_management.models import (
    PendingConfirmation,
    PotentialTask,
    Task,
    TaskCategory,
    TaskStatistics,
)

NOW = datetime(2025, 3, 12, 10, 0)


@pytest.fixture
def mock_manager() -> MagicMock:
    """Create a mock task manager."""
    manager = MagicMock()
    manager.confirm_pending_tasks = AsyncMock()
    manager.cleanup_old_tasks = AsyncMock(return_value=2)
    return manager


@pytest.mark.unit
class TestArgumentParser:
    """Test cases for argument parsing."""

    def test_defaults(self) -> None:
        """Test global defaults."""
        args = create_argument_parser().parse_args(["stats"])

        assert args.db == DEFAULT_DATABASE_PATH
        assert args.verbose is False
        assert args.trace is False
        assert args.command == "stats"

    def test_extract_arguments(self) -> None:
        """Test extract joins words and accepts flags."""
        args = create_argument_parser().parse_args(
            ["-v", "--db", "x.db", "extract", "--confirm", "--folio", "f1", "call", "Bob"]
        )

        assert args.verbose is True
        assert args.db == "x.db"
        assert args.text == ["call", "Bob"]
        assert args.confirm is True
        assert args.folio == "f1"

    def test_list_and_cleanup_arguments(self) -> None:
        """Test list filters and cleanup days."""
        parser = create_argument_parser()

        list_args = parser.parse_args(["list", "--status", "in-progress", "--category", "work"])
        cleanup_args = parser.parse_args(["cleanup"])

        assert list_args.status == "in-progress"
        assert list_args.category == "work"
        assert cleanup_args.days == DEFAULT_CLEANUP_DAYS

    def test_invalid_arguments(self) -> None:
        """Test invalid choices and a missing command exit with an error."""
        parser = create_argument_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["list", "--status", "done"])
        with pytest.raises(SystemExit):
            parser.parse_args([])


@pytest.mark.unit
class TestTaskCLI:
    """Test cases for the TaskCLI class."""

    @pytest.mark.asyncio
    async def test_extract_nothing_found(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test extraction without candidates."""
        mock_manager.process_message.return_value = None

        created = await TaskCLI(mock_manager).extract("hello there")

        assert created == 0
        assert "No tasks found." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_extract_without_confirm_cancels(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test preview mode discards the pending candidates."""
        candidate = PotentialTask(
            text="Call Bob", original_match="call Bob", confidence=0.8, context="call Bob"
        )
        mock_manager.process_message.return_value = PendingConfirmation(
            tasks=[candidate], message_id=None, folio_id=None, timestamp=NOW
        )

        created = await TaskCLI(mock_manager).extract("call Bob")

        out = capsys.readouterr().out
        assert created == 0
        assert "[0] Call Bob (80%, general)" in out
        assert "--confirm" in out
        mock_manager.cancel_pending_tasks.assert_called_once()
        mock_manager.confirm_pending_tasks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_extract_with_confirm(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test confirmed extraction prints the created tasks."""
        candidate = PotentialTask(
            text="Call Bob", original_match="call Bob", confidence=0.8, context="call Bob"
        )
        mock_manager.process_message.return_value = PendingConfirmation(
            tasks=[candidate], message_id=None, folio_id="f1", timestamp=NOW
        )
        mock_manager.confirm_pending_tasks.return_value = [
            Task(id="task_1", title="Call Bob", created_at=NOW, updated_at=NOW,
                 category=TaskCategory.WORK)
        ]

        created = await TaskCLI(mock_manager).extract("call Bob", confirm=True, folio_id="f1")

        assert created == 1
        assert "[task_1] Call Bob (pending, medium)" in capsys.readouterr().out
        mock_manager.process_message.assert_called_once_with("call Bob", folio_id="f1")

    @pytest.mark.asyncio
    async def test_cleanup(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test cleanup reports the removed count."""
        removed = await TaskCLI(mock_manager).cleanup(14)

        assert removed == 2
        assert "Removed 2 completed task(s) older than 14 days" in capsys.readouterr().out

    def test_statistics(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test statistics output."""
        mock_manager.get_task_statistics.return_value = TaskStatistics(
            total=3, pending=2, completed=1, by_category={"work": 3}
        )
        mock_manager.scheduler.get_learning_summary.return_value = {
            "overall": {"total_tasks": 1, "average_accuracy": 0.75}
        }

        TaskCLI(mock_manager).show_statistics()

        out = capsys.readouterr().out
        assert "Total: 3" in out
        assert "work: 3" in out
        assert "Estimate accuracy: 75% over 1 task(s)" in out

    def test_list_empty(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test listing with no tasks."""
        mock_manager.get_tasks_by.return_value = []

        TaskCLI(mock_manager).list_tasks(status="pending")

        assert "No tasks." in capsys.readouterr().out
        mock_manager.get_tasks_by.assert_called_once_with(status="pending", category=None)


@pytest.mark.integration
class TestCLIEntry:
    """Test full commands against a database file."""

    def run(self, argv: list[str]) -> int:
        with pytest.raises(SystemExit) as exc_info:
            cli_entry_with_args(argv)
        return exc_info.value.code

    def test_extract_list_export(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test tasks created by extract survive into later commands."""
        db = str(tmp_path / "tasks.db")

        assert self.run(
            ["--db", db, "extract", "--confirm", "I need to call Bob about the budget by Friday."]
        ) == 0
        assert "Created 1 task(s)" in capsys.readouterr().out

        assert self.run(["--db", db, "list", "--category", "work"]) == 0
        assert "[task_1] Call Bob about the budget" in capsys.readouterr().out

        assert self.run(["--db", db, "stats"]) == 0
        assert "Total: 1" in capsys.readouterr().out

        assert self.run(["--db", db, "export"]) == 0
        exported = json.loads(capsys.readouterr().out)
        assert exported["version"] == "2.0"
        assert exported["tasks"][0]["id"] == "task_1"

        assert self.run(["--db", db, "cleanup", "--days", "1"]) == 0
        assert "Removed 0" in capsys.readouterr().out

    def test_preview_does_not_save(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test extract without --confirm leaves the database empty."""
        db = str(tmp_path / "tasks.db")

        assert self.run(["--db", db, "extract", "Remember to email Sarah the report"]) == 0
        assert self.run(["--db", db, "list"]) == 0
        assert "No tasks." in capsys.readouterr().out
