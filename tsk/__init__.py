"""
TSK - Prioritized Terminal Task List
====================================

A single-user task list kept in priority order. Tasks form a linked chain
anchored at a hidden root task; a small command language pushes, completes,
drops and reorders them.

Usage:
    from tsk import Database, TaskManager, parse

    manager = TaskManager(Database.from_path("tsk.db"))
    manager.push("buy milk")
    manager.push("call mom")
    manager.swap_top_two()

    for task in manager.get_top_n(20):
        print(task.label, task.title, task.status.value)

    command = parse("c 0")    # Complete(task=StackPosition(position=0))
"""

from .schema import (
    Task,
    TaskContent,
    TaskStatus,
    ROOT_TASK_ID,
)
from .commands import (
    Command,
    ParseFailure,
    ParseErrorKind,
    AbsoluteId,
    StackPosition,
    parse,
)
from .errors import (
    TskError,
    StorageError,
    InternalError,
    ChainCorruptionError,
    TaskNotFoundError,
    InvalidTaskError,
    ConfigError,
)
from .storage import Database
from .manager import TaskManager
from .config import Config, load_config

__version__ = "0.1.0"
__all__ = [
    "TaskManager",
    "Database",
    "Config",
    "load_config",
    "Task",
    "TaskContent",
    "TaskStatus",
    "ROOT_TASK_ID",
    "Command",
    "ParseFailure",
    "ParseErrorKind",
    "AbsoluteId",
    "StackPosition",
    "parse",
    "TskError",
    "StorageError",
    "InternalError",
    "ChainCorruptionError",
    "TaskNotFoundError",
    "InvalidTaskError",
    "ConfigError",
]
