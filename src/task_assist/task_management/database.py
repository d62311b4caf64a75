"""SQLite-backed whole-state persistence for tasks and learning data."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from task_assist.task_management.config import DEFAULT_WAL_MODE, SCHEMA_VERSION
from task_assist.task_management.exceptions import DatabaseError
from task_assist.task_management.interfaces import StatePersistence
from task_assist.task_management.models import LearningData, Task, TaskState

logger = logging.getLogger(__name__)

NEXT_ID_KEY = "next_id"
TASK_LEARNING_KEY = "task_learning"


class TaskDatabase(StatePersistence):
    """
    SQLite database holding the complete task state.

    The state is loaded once on initialize() and kept in memory; every
    save_data() rewrites all rows inside a single transaction so a failed
    save never leaves a partially written state behind.
    """

    def __init__(self, db_path: str, wal_mode: bool = DEFAULT_WAL_MODE) -> None:
        """
        Initialize database connection settings.

        Args:
            db_path: Path to SQLite database file (use ":memory:" for in-memory)
            wal_mode: Enable WAL mode for concurrent access
        """
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._connection: aiosqlite.Connection | None = None
        self._state: TaskState | None = None

    async def initialize(self) -> None:
        """Initialize database schema and connection, then load the state."""
        if self._connection is None:
            if self.db_path != ":memory:":
                Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            try:
                self._connection = await aiosqlite.connect(self.db_path)
            except Exception as e:
                raise DatabaseError(f"Failed to open database {self.db_path}: {e}") from e
            self._connection.row_factory = aiosqlite.Row

            # WAL is not supported for :memory:
            if self.wal_mode and self.db_path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")

        await self._create_schema()
        self._state = await self._load_state()
        logger.info(
            f"Task database ready at {self.db_path} with {len(self._state.tasks)} tasks"
        )

    async def _create_schema(self) -> None:
        """Create database schema with tables and indexes."""
        async with self._get_connection() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            current_version = result[0] if result and result[0] is not None else 0

            if current_version > SCHEMA_VERSION:
                raise DatabaseError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}"
                )

            if current_version < SCHEMA_VERSION:
                await self._apply_migrations(conn, current_version)

            await conn.commit()

    async def _apply_migrations(
        self, conn: aiosqlite.Connection, from_version: int
    ) -> None:
        """
        Apply database migrations.

        Args:
            conn: Database connection
            from_version: Current schema version
        """
        if from_version < 1:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    category TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    due_date TIMESTAMP,
                    updated_at TIMESTAMP NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)"
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date)"
            )

            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS state_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            await conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info(f"Applied task database schema version {SCHEMA_VERSION}")

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Get database connection context manager.

        Yields:
            Database connection

        Raises:
            DatabaseError: If connection is not initialized
        """
        if self._connection is None:
            raise DatabaseError("Database not initialized")
        yield self._connection

    async def _load_state(self) -> TaskState:
        """Read every task and the state metadata into a TaskState."""
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT payload FROM tasks ORDER BY position ASC")
            rows = await cursor.fetchall()
            try:
                tasks = [Task.from_dict(json.loads(row["payload"])) for row in rows]
            except (KeyError, ValueError) as e:
                raise DatabaseError(f"Corrupt task row: {e}") from e

            cursor = await conn.execute("SELECT key, value FROM state_meta")
            meta = {row["key"]: row["value"] for row in await cursor.fetchall()}

        next_id = int(meta.get(NEXT_ID_KEY, len(tasks) + 1))
        learning = LearningData.from_dict(
            json.loads(meta[TASK_LEARNING_KEY]) if TASK_LEARNING_KEY in meta else None
        )
        return TaskState(
            tasks={task.id: task for task in tasks},
            next_id=next_id,
            task_learning=learning,
        )

    def get_state(self) -> TaskState:
        """
        Return the live in-memory state.

        Raises:
            DatabaseError: If the database has not been initialized
        """
        if self._state is None:
            raise DatabaseError("Database not initialized")
        return self._state

    async def save_data(self) -> None:
        """
        Persist the whole state in one transaction.

        Raises:
            DatabaseError: If the write fails (the transaction is rolled back)
        """
        state = self.get_state()

        async with self._get_connection() as conn:
            try:
                rows = [
                    (
                        task.id,
                        position,
                        task.status.value,
                        task.category.value,
                        task.priority.value,
                        task.due_date.isoformat() if task.due_date else None,
                        task.updated_at.isoformat(),
                        json.dumps(task.to_dict()),
                    )
                    for position, task in enumerate(state.tasks.values())
                ]
                await conn.execute("DELETE FROM tasks")
                await conn.executemany(
                    """
                    INSERT INTO tasks (
                        id, position, status, category, priority, due_date,
                        updated_at, payload
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                await conn.executemany(
                    "INSERT OR REPLACE INTO state_meta (key, value) VALUES (?, ?)",
                    [
                        (NEXT_ID_KEY, str(state.next_id)),
                        (TASK_LEARNING_KEY, json.dumps(state.task_learning.to_dict())),
                    ],
                )
                await conn.commit()
            except Exception as e:
                await conn.rollback()
                raise DatabaseError(f"Failed to save task state: {e}") from e

        logger.debug(f"Saved task state ({len(rows)} tasks, next_id={state.next_id})")

    async def get_schema_version(self) -> int:
        """
        Get current schema version.

        Returns:
            Schema version number
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            return result[0] if result and result[0] is not None else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
