"""
TSK - Error Hierarchy
=====================
Every failure raised by the storage layer or the ordering engine derives
from TskError, so callers can report an operation as failed without
caring where it broke.

Categories:
- StorageError: the database refused or failed a read/write (I/O class)
- InternalError: corrupted data or a logic bug, never a transient failure
- TaskNotFoundError: an identifier did not resolve to a task
- InvalidTaskError: a task value was rejected before any write
- ConfigError: configuration could not be read or validated

Parse failures are not exceptions; see tsk.commands.ParseFailure.
"""

from typing import Optional, Dict, Any


class TskError(Exception):
    """Base exception for all tsk errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class StorageError(TskError):
    """The storage collaborator failed; the attempted operation was rolled back"""


class InternalError(TskError):
    """Data corruption or a bug (e.g. an unknown status code read back from storage)"""


class ChainCorruptionError(InternalError):
    """Traversing the ordering chain revisited a task"""

    def __init__(self, task_id: int, visited: list):
        super().__init__(
            f"Ordering chain revisits task {task_id}, this is a bug.",
            details={"task_id": task_id, "visited": list(visited)},
        )
        self.task_id = task_id


class TaskNotFoundError(TskError):
    """An identifier did not resolve to an existing task"""

    def __init__(self, identifier: Any, reason: Optional[str] = None):
        message = f"Task not found: {identifier}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, details={"identifier": str(identifier)})
        self.identifier = identifier


class InvalidTaskError(TskError):
    """A task was given a value it cannot hold, such as an empty title"""


class ConfigError(TskError):
    """Configuration file or environment value is unreadable or invalid"""

    def __init__(self, setting_name: str, message: str):
        super().__init__(
            f"Configuration error for '{setting_name}': {message}",
            details={"setting_name": setting_name},
        )
        self.setting_name = setting_name
