"""
TSK - Task Schema Definition
============================
Value types handed out by the ordering engine. Storage rows never leave
tsk.storage; callers only ever see these pydantic models.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, AnyUrl, ValidationError, TypeAdapter

from .errors import InternalError


ROOT_TASK_ID = 0


class TaskStatus(str, Enum):
    """Task lifecycle states"""
    TODO = "todo"                 # Default for new tasks
    IN_PROGRESS = "in_progress"   # Currently being worked on
    COMPLETE = "complete"         # Finished
    CANCELLED = "cancelled"       # Abandoned, kept for history
    HIDDEN = "hidden"             # Kept but not worth showing

    @property
    def code(self) -> int:
        """Integer persisted in the task_status table"""
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "TaskStatus":
        for status, value in _STATUS_CODES.items():
            if value == code:
                return status
        raise InternalError(
            f"Invalid task status integer {code}, this is a bug.",
            details={"code": code},
        )


_STATUS_CODES = {
    TaskStatus.TODO: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETE: 2,
    TaskStatus.CANCELLED: 3,
    TaskStatus.HIDDEN: 4,
}

_url_adapter = TypeAdapter(AnyUrl)


def parse_link(link: Optional[str]) -> Optional[str]:
    """Normalize a link, dropping anything that does not parse as a URL"""
    if not link:
        return None
    try:
        return str(_url_adapter.validate_python(link.strip()))
    except ValidationError:
        return None


class TaskContent(BaseModel):
    """Attached body text and/or link; the newest record wins"""
    body: Optional[str] = None
    link: Optional[str] = None
    updated: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return self.body is None and self.link is None


class Task(BaseModel):
    """A task as seen from the ordering chain"""
    id: int = Field(gt=ROOT_TASK_ID)
    title: str = Field(min_length=1)
    status: TaskStatus = TaskStatus.TODO
    created: datetime
    content: Optional[TaskContent] = None

    @property
    def label(self) -> str:
        return f"tsk-{self.id}"
