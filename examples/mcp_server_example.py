"""Example demonstrating MCP Server usage."""

import asyncio
import logging

from task_assist.task_management.database import TaskDatabase
from task_assist.task_management.mcp_server import MCPServer
from task_assist.task_management.task_manager import TaskManager

logging.basicConfig(level=logging.INFO)


async def main() -> None:
    """Demonstrate MCP Server functionality."""
    # Initialize task manager over an in-memory database
    task_manager = TaskManager(TaskDatabase(":memory:"))
    await task_manager.initialize()

    # Initialize MCP server
    mcp_server = MCPServer(task_manager=task_manager)
    await mcp_server.initialize()

    print("Available MCP tools:", mcp_server.get_available_tools())
    print()

    # Example 1: Extract candidates from a message
    print("=== Processing a message ===")
    result = await mcp_server.handle_process_message(
        {"text": "I need to call Bob about the budget by Friday.", "folio_id": "demo"}
    )
    for index, candidate in enumerate(result["candidates"]):
        templates = [t["type"] for t in candidate["templates"]]
        print(f"[{index}] {candidate['text']} ({candidate['category']}) templates={templates}")
    print()

    # Example 2: Confirm with a template choice
    print("=== Confirming tasks ===")
    result = await mcp_server.handle_confirm_pending_tasks({"templates": {"0": "communication"}})
    print(f"Confirm result: {result}")
    task_id = result["task_ids"][0]
    print()

    # Example 3: Work on the task
    print("=== Starting and completing the task ===")
    result = await mcp_server.handle_start_task({"task_id": task_id})
    print(f"Started: {result['task']['status']}")
    result = await mcp_server.handle_complete_task({"task_id": task_id})
    print(f"Completed: {result['task']['time_tracking']}")
    print()

    # Example 4: Get statistics
    print("=== Getting task statistics ===")
    stats = await mcp_server.handle_get_task_statistics({})
    print(f"Statistics: {stats}")
    print()

    # Example 5: List completed tasks
    print("=== Listing completed tasks ===")
    result = await mcp_server.handle_list_tasks({"status": "completed"})
    print(f"Completed tasks: {[t['title'] for t in result['tasks']]}")
    print()

    # Cleanup
    await mcp_server.shutdown()
    await task_manager.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
