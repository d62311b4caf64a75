"""MCP Server exposing task extraction and management using FastMCP."""

import asyncio
import logging
from typing import Any

from fastmcp import FastMCP

from .config import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_MCP_HOST,
    DEFAULT_MCP_PORT,
    DEFAULT_MCP_SERVER_NAME,
)
from .database import TaskDatabase
from .exceptions import (
    InvalidTaskStateError,
    NoPendingConfirmationError,
    TaskNotFoundError,
)
from .models import TaskCategory, TaskPriority, TaskStatus
from .task_manager import TaskManager

logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(DEFAULT_MCP_SERVER_NAME)

# Global task manager (initialized in main())
_task_manager: TaskManager | None = None

TOOL_NAMES = [
    "process_message",
    "confirm_pending_tasks",
    "cancel_pending_tasks",
    "list_tasks",
    "start_task",
    "complete_task",
    "delete_task",
    "get_task_statistics",
    "export_tasks",
]


def get_task_manager() -> TaskManager:
    """Get the global task manager instance."""
    if _task_manager is None:
        raise RuntimeError("Task manager not initialized")
    return _task_manager


def set_task_manager(task_manager: TaskManager | None) -> None:
    """Set the global task manager instance (for testing)."""
    global _task_manager
    _task_manager = task_manager


async def _process_message_impl(
    text: str, message_id: str | None = None, folio_id: str | None = None
) -> dict[str, Any]:
    """Implementation of process_message tool."""
    try:
        task_manager = get_task_manager()
        pending = task_manager.process_message(text, message_id=message_id, folio_id=folio_id)

        if pending is None:
            return {"success": True, "candidates": []}

        return {
            "success": True,
            "candidates": [candidate.to_dict() for candidate in pending.tasks],
        }

    except Exception as e:
        logger.error(f"Error processing message: {e}")
        return {"success": False, "error": str(e)}


async def _confirm_pending_tasks_impl(
    selected: list[int] | None = None,
    due_dates: dict[str, str] | None = None,
    templates: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Confirm the pending candidates.

    Args:
        selected: Candidate indexes to keep (all when omitted)
        due_dates: Due date expressions keyed by candidate index
        templates: Template types keyed by candidate index

    Returns:
        Dictionary with the created task ids and success status
    """
    try:
        task_manager = get_task_manager()

        # JSON object keys arrive as strings
        try:
            for index, template_type in (templates or {}).items():
                task_manager.apply_template(int(index), template_type)
            parsed_due_dates = {int(k): v for k, v in (due_dates or {}).items()}
        except (IndexError, ValueError) as e:
            return {"success": False, "error": f"Invalid review selection: {e}"}

        tasks = await task_manager.confirm_pending_tasks(
            due_dates=parsed_due_dates, selected=selected
        )
        return {"success": True, "task_ids": [task.id for task in tasks]}

    except NoPendingConfirmationError as e:
        logger.warning(f"Confirm without pending tasks: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.error(f"Error confirming tasks: {e}")
        return {"success": False, "error": str(e)}


async def _cancel_pending_tasks_impl() -> dict[str, Any]:
    """Implementation of cancel_pending_tasks tool."""
    try:
        cancelled = get_task_manager().cancel_pending_tasks()
        return {"success": True, "cancelled": cancelled}
    except Exception as e:
        logger.error(f"Error cancelling pending tasks: {e}")
        return {"success": False, "error": str(e)}


async def _list_tasks_impl(
    status: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    folio_id: str | None = None,
) -> dict[str, Any]:
    """Implementation of list_tasks tool."""
    try:
        task_manager = get_task_manager()

        # Parse filters
        try:
            status_filter = TaskStatus(status) if status else None
        except ValueError:
            return {"success": False, "error": f"Invalid status: {status}"}
        try:
            category_filter = TaskCategory(category) if category else None
        except ValueError:
            return {"success": False, "error": f"Invalid category: {category}"}
        try:
            priority_filter = TaskPriority(priority) if priority else None
        except ValueError:
            return {"success": False, "error": f"Invalid priority: {priority}"}

        tasks = task_manager.get_tasks_by(
            status=status_filter,
            category=category_filter,
            priority=priority_filter,
            folio_id=folio_id,
        )
        return {"tasks": [task.to_dict() for task in tasks]}

    except Exception as e:
        logger.error(f"Error listing tasks: {e}")
        return {"success": False, "error": str(e)}


async def _start_task_impl(task_id: str) -> dict[str, Any]:
    """Implementation of start_task tool."""
    try:
        task = await get_task_manager().start_task(task_id)
        return {"success": True, "task": task.to_dict()}

    except (TaskNotFoundError, InvalidTaskStateError) as e:
        logger.warning(f"Cannot start task: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.error(f"Error starting task: {e}")
        return {"success": False, "error": str(e)}


async def _complete_task_impl(task_id: str) -> dict[str, Any]:
    """Implementation of complete_task tool."""
    try:
        task = await get_task_manager().complete_task(task_id)
        return {"success": True, "task": task.to_dict()}

    except (TaskNotFoundError, InvalidTaskStateError) as e:
        logger.warning(f"Cannot complete task: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.error(f"Error completing task: {e}")
        return {"success": False, "error": str(e)}


async def _delete_task_impl(task_id: str) -> dict[str, Any]:
    """Implementation of delete_task tool."""
    try:
        deleted = await get_task_manager().delete_task(task_id)
        if not deleted:
            return {"success": False, "error": f"Task {task_id} not found"}
        return {"success": True}

    except Exception as e:
        logger.error(f"Error deleting task: {e}")
        return {"success": False, "error": str(e)}


async def _get_task_statistics_impl() -> dict[str, Any]:
    """Implementation of get_task_statistics tool."""
    try:
        return get_task_manager().get_task_statistics().to_dict()

    except Exception as e:
        logger.error(f"Error getting task statistics: {e}")
        return {"success": False, "error": str(e)}


async def _export_tasks_impl() -> dict[str, Any]:
    """Implementation of export_tasks tool."""
    try:
        return get_task_manager().export_tasks()

    except Exception as e:
        logger.error(f"Error exporting tasks: {e}")
        return {"success": False, "error": str(e)}


# FastMCP decorated wrappers (for actual MCP server)
@mcp.tool()
async def process_message(
    text: str, message_id: str | None = None, folio_id: str | None = None
) -> dict[str, Any]:
    """
    Extract candidate tasks from a message and hold them for confirmation.

    Args:
        text: Message text
        message_id: Source message id (optional)
        folio_id: Conversation/workspace id (optional)

    Returns:
        Dictionary with candidate tasks, their categories and template suggestions
    """
    return await _process_message_impl(text=text, message_id=message_id, folio_id=folio_id)


@mcp.tool()
async def confirm_pending_tasks(
    selected: list[int] | None = None,
    due_dates: dict[str, str] | None = None,
    templates: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Create tasks from the pending candidates.

    Args:
        selected: Candidate indexes to keep (all when omitted)
        due_dates: Due dates keyed by candidate index ("tomorrow", "2025-03-12")
        templates: Template types keyed by candidate index ("meeting", ...)

    Returns:
        Dictionary with created task ids and success status
    """
    return await _confirm_pending_tasks_impl(
        selected=selected, due_dates=due_dates, templates=templates
    )


@mcp.tool()
async def cancel_pending_tasks() -> dict[str, Any]:
    """
    Discard the pending candidates without creating tasks.

    Returns:
        Dictionary with success status
    """
    return await _cancel_pending_tasks_impl()


@mcp.tool()
async def list_tasks(
    status: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    folio_id: str | None = None,
) -> dict[str, Any]:
    """
    List all tasks with optional filters.

    Args:
        status: Filter by status (pending, in-progress, completed)
        category: Filter by category (work, personal, creative, administrative, general)
        priority: Filter by priority (low, medium, high, urgent)
        folio_id: Filter by folio id

    Returns:
        Dictionary with tasks list
    """
    return await _list_tasks_impl(
        status=status, category=category, priority=priority, folio_id=folio_id
    )


@mcp.tool()
async def start_task(task_id: str) -> dict[str, Any]:
    """
    Start the timer on a task.

    Args:
        task_id: Task id (e.g. "task_3")

    Returns:
        Dictionary with the updated task and success status
    """
    return await _start_task_impl(task_id=task_id)


@mcp.tool()
async def complete_task(task_id: str) -> dict[str, Any]:
    """
    Complete a task, recording actual time against its estimate.

    Args:
        task_id: Task id

    Returns:
        Dictionary with the updated task and success status
    """
    return await _complete_task_impl(task_id=task_id)


@mcp.tool()
async def delete_task(task_id: str) -> dict[str, Any]:
    """
    Delete a task.

    Args:
        task_id: Task id

    Returns:
        Dictionary with success status
    """
    return await _delete_task_impl(task_id=task_id)


@mcp.tool()
async def get_task_statistics() -> dict[str, Any]:
    """
    Get task statistics (counts by status, category and priority).

    Returns:
        Dictionary with task counts
    """
    return await _get_task_statistics_impl()


@mcp.tool()
async def export_tasks() -> dict[str, Any]:
    """
    Export all tasks with statistics.

    Returns:
        Dictionary with tasks, statistics, exported_at and version
    """
    return await _export_tasks_impl()


# Compatibility wrapper for tests
class MCPServer:
    """
    Compatibility wrapper for testing.

    The actual MCP server uses FastMCP with function decorators.
    This class routes plain parameter dictionaries to the same tool
    implementations.
    """

    def __init__(
        self,
        task_manager: TaskManager,
        server_name: str = DEFAULT_MCP_SERVER_NAME,
        host: str = DEFAULT_MCP_HOST,
        port: int = DEFAULT_MCP_PORT,
    ) -> None:
        """Initialize MCP Server wrapper."""
        self._task_manager = task_manager
        self._server_name = server_name
        self._host = host
        self._port = port
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the server."""
        set_task_manager(self._task_manager)
        self._initialized = True

    async def shutdown(self) -> None:
        """Shutdown the server."""
        set_task_manager(None)
        self._initialized = False

    def get_available_tools(self) -> list[str]:
        """Get list of available tools."""
        return list(TOOL_NAMES)

    async def handle_process_message(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle process_message request."""
        if "text" not in params:
            return {"success": False, "error": "Missing required field: text"}
        return await _process_message_impl(
            text=params["text"],
            message_id=params.get("message_id"),
            folio_id=params.get("folio_id"),
        )

    async def handle_confirm_pending_tasks(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle confirm_pending_tasks request."""
        return await _confirm_pending_tasks_impl(
            selected=params.get("selected"),
            due_dates=params.get("due_dates"),
            templates=params.get("templates"),
        )

    async def handle_cancel_pending_tasks(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle cancel_pending_tasks request."""
        return await _cancel_pending_tasks_impl()

    async def handle_list_tasks(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle list_tasks request."""
        return await _list_tasks_impl(
            status=params.get("status"),
            category=params.get("category"),
            priority=params.get("priority"),
            folio_id=params.get("folio_id"),
        )

    async def handle_start_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle start_task request."""
        if "task_id" not in params:
            return {"success": False, "error": "Missing required field: task_id"}
        return await _start_task_impl(task_id=params["task_id"])

    async def handle_complete_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle complete_task request."""
        if "task_id" not in params:
            return {"success": False, "error": "Missing required field: task_id"}
        return await _complete_task_impl(task_id=params["task_id"])

    async def handle_delete_task(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle delete_task request."""
        if "task_id" not in params:
            return {"success": False, "error": "Missing required field: task_id"}
        return await _delete_task_impl(task_id=params["task_id"])

    async def handle_get_task_statistics(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle get_task_statistics request."""
        return await _get_task_statistics_impl()

    async def handle_export_tasks(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle export_tasks request."""
        return await _export_tasks_impl()


async def main(transport: str = "stdio", db_path: str = DEFAULT_DATABASE_PATH) -> None:
    """
    Main entry point for MCP server.

    Args:
        transport: Transport type - "stdio" for stdio, "sse" for HTTP/SSE
        db_path: SQLite database path
    """
    task_manager = TaskManager(TaskDatabase(db_path))
    await task_manager.initialize()
    set_task_manager(task_manager)

    logger.info(f"MCP Server initialized with {len(TOOL_NAMES)} tools (transport={transport})")
    if transport == "sse":
        logger.info(f"Server will listen on http://{DEFAULT_MCP_HOST}:{DEFAULT_MCP_PORT}")

    try:
        if transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            await mcp.run_async(transport="sse", host=DEFAULT_MCP_HOST, port=DEFAULT_MCP_PORT)
    finally:
        await task_manager.shutdown()
        set_task_manager(None)


def cli_entry() -> None:
    """CLI entry point for the MCP server."""
    import sys

    # Check for transport argument
    transport_type = "stdio"
    if len(sys.argv) > 1 and sys.argv[1] in ("stdio", "sse", "http"):
        transport_type = "sse" if sys.argv[1] == "http" else sys.argv[1]

    asyncio.run(main(transport_type))


if __name__ == "__main__":
    cli_entry()
