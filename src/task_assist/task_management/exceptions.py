"""Custom exceptions for task management functionality."""


class TaskManagementError(Exception):
    """Base exception for task management errors."""

    pass


class DatabaseError(TaskManagementError):
    """Exception raised for database related errors."""

    pass


class SchemaError(DatabaseError):
    """Exception raised for database schema errors."""

    pass


class TaskNotFoundError(TaskManagementError):
    """Exception raised when a task is not found."""

    pass


class InvalidTaskStateError(TaskManagementError):
    """Exception raised when a task cannot make the requested transition."""

    pass


class ConfirmationError(TaskManagementError):
    """Exception raised for task confirmation workflow errors."""

    pass


class NoPendingConfirmationError(ConfirmationError):
    """Exception raised when there is no pending confirmation to resolve."""

    pass
