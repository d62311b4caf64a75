"""Abstract interfaces for task management system."""

from abc import ABC, abstractmethod

from task_assist.task_management.models import TaskState


class StatePersistence(ABC):
    """Abstract interface for whole-state task persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backing storage and load the persisted state.

        Raises:
            DatabaseError: If storage cannot be opened or read
        """
        pass

    @abstractmethod
    def get_state(self) -> TaskState:
        """
        Return the live state object.

        The store and scheduler mutate this object in place and then call
        save_data(); implementations must hand out the same instance on every
        call.

        Returns:
            The current TaskState (tasks, id counter, learning data)
        """
        pass

    @abstractmethod
    async def save_data(self) -> None:
        """
        Durably persist the entire state object.

        Writes must be atomic for the whole state; partial writes are never
        requested by callers.

        Raises:
            DatabaseError: If the write fails. Callers do not retry.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release storage resources."""
        pass
