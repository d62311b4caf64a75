"""Tests for the SQLite whole-state persistence layer."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from task_assist.task_management.config import SCHEMA_VERSION
from task_assist.task_management.database import TaskDatabase
from task_assist.task_management.exceptions import DatabaseError
from task_assist.task_management.models import (
    LearningRecord,
    LearningStats,
    Task,
    TaskCategory,
    TaskStatus,
    TimeTracking,
)
from task_assist.task_management.templates import TemplateMatcher

NOW = datetime(2025, 3, 12, 10, 0)


def make_task(task_id: str, title: str) -> Task:
    """Create a task for persistence tests."""
    return Task(
        id=task_id,
        title=title,
        created_at=NOW,
        updated_at=NOW,
        category=TaskCategory.WORK,
        due_date=NOW + timedelta(days=1),
        template_applied=TemplateMatcher().get_template("meeting"),
        time_tracking=TimeTracking(estimated_minutes=30, started_at=NOW),
        subtasks=["Agenda", "Invite"],
        context="from a message",
    )


@pytest.mark.unit
class TestDatabaseSchemaCreation:
    """Test cases for database schema creation and initialization."""

    @pytest.mark.asyncio
    async def test_schema_creation_creates_tables(self) -> None:
        """Test that schema creation creates tasks and state_meta tables."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        async with db._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row[0] for row in await cursor.fetchall()]

        assert "tasks" in tables
        assert "state_meta" in tables
        assert "schema_version" in tables

        await db.close()

    @pytest.mark.asyncio
    async def test_schema_creation_creates_indexes(self) -> None:
        """Test that schema creation creates required indexes."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        async with db._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%'"
            )
            index_names = [idx[0] for idx in await cursor.fetchall()]

        assert "idx_tasks_status" in index_names
        assert "idx_tasks_due_date" in index_names

        await db.close()

    @pytest.mark.asyncio
    async def test_schema_version(self) -> None:
        """Test that the schema version is recorded."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        assert await db.get_schema_version() == SCHEMA_VERSION

        await db.close()

    @pytest.mark.asyncio
    async def test_newer_schema_version_rejected(self) -> None:
        """Test that a database from a newer release is refused."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        async with db._get_connection() as conn:
            await conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION + 1,)
            )
            await conn.commit()

        with pytest.raises(DatabaseError):
            await db.initialize()

        await db.close()

    @pytest.mark.asyncio
    async def test_uninitialized_access_raises(self) -> None:
        """Test state access before initialize raises DatabaseError."""
        db = TaskDatabase(":memory:")

        with pytest.raises(DatabaseError):
            db.get_state()
        with pytest.raises(DatabaseError):
            await db.get_schema_version()


@pytest.mark.unit
class TestStatePersistence:
    """Test whole-state save and load."""

    @pytest.mark.asyncio
    async def test_empty_state(self) -> None:
        """Test a new database starts with an empty state."""
        db = TaskDatabase(":memory:")
        await db.initialize()

        state = db.get_state()
        assert state.tasks == {}
        assert state.next_id == 1
        assert state.task_learning.by_category == {}
        assert db.get_state() is state

        await db.close()

    @pytest.mark.asyncio
    async def test_save_and_reload_file(self, tmp_path: Path) -> None:
        """Test the full state survives a close and reopen."""
        db_path = str(tmp_path / "nested" / "tasks.db")
        db = TaskDatabase(db_path)
        await db.initialize()

        state = db.get_state()
        first = make_task("task_1", "Plan kickoff")
        second = make_task("task_2", "Send notes")
        second.status = TaskStatus.COMPLETED
        state.tasks = {first.id: first, second.id: second}
        state.next_id = 3
        stats = LearningStats()
        stats.add(
            LearningRecord(
                estimated=30,
                actual=45,
                accuracy=0.5,
                ratio=1.5,
                task_title="Plan kickoff",
                completed_at=NOW,
            )
        )
        state.task_learning.by_category["work"] = stats
        state.task_learning.overall.total_tasks = 1

        await db.save_data()
        await db.close()

        reopened = TaskDatabase(db_path)
        await reopened.initialize()
        loaded = reopened.get_state()

        assert list(loaded.tasks) == ["task_1", "task_2"]
        assert loaded.tasks["task_1"] == first
        assert loaded.tasks["task_2"].status == TaskStatus.COMPLETED
        assert loaded.next_id == 3
        assert loaded.task_learning.by_category["work"].average_ratio == 1.5
        assert loaded.task_learning.by_category["work"].estimates.maxlen == 20
        assert loaded.task_learning.overall.total_tasks == 1

        await reopened.close()

    @pytest.mark.asyncio
    async def test_save_replaces_removed_tasks(self) -> None:
        """Test deleted tasks do not survive a save."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        state = db.get_state()
        state.tasks["task_1"] = make_task("task_1", "Plan kickoff")
        await db.save_data()

        del state.tasks["task_1"]
        await db.save_data()

        async with db._get_connection() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM tasks")
            row = await cursor.fetchone()
        assert row[0] == 0

        await db.close()

    @pytest.mark.asyncio
    async def test_save_after_close_raises(self) -> None:
        """Test saving without a connection raises DatabaseError."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        await db.close()

        with pytest.raises(DatabaseError):
            await db.save_data()

    @pytest.mark.asyncio
    async def test_unserializable_task_raises_database_error(self) -> None:
        """Test a task that cannot be serialized fails as DatabaseError and keeps old rows."""
        db = TaskDatabase(":memory:")
        await db.initialize()
        state = db.get_state()
        state.tasks["task_1"] = make_task("task_1", "Plan kickoff")
        await db.save_data()

        broken = make_task("task_2", "Send notes")
        broken.category = None  # type: ignore[assignment]
        state.tasks["task_2"] = broken

        with pytest.raises(DatabaseError):
            await db.save_data()

        async with db._get_connection() as conn:
            cursor = await conn.execute("SELECT id FROM tasks")
            rows = await cursor.fetchall()
        assert [row[0] for row in rows] == ["task_1"]

        await db.close()
