"""
TSK - Command Parser
====================
Turns one line of user input into a typed command, or a ParseFailure.

Usage:
    from tsk.commands import parse, Push, ParseFailure

    command = parse("push buy milk")      # Push(title="buy milk")
    command = parse("c 2")                # Complete(task=StackPosition(position=2))
    command = parse("zzz")                # ParseFailure(kind=UNKNOWN_COMMAND, ...)

Grammar:
    <keyword> [<whitespace> <argument>]

The keyword is matched case-insensitively against GRAMMAR in order. Each
entry offers a full word and, for most commands, a one-character
shorthand. The first entry claiming a keyword wins, so `p` is always Push
even though Reprioritize lists it as an alternative.
"""

import logging
import re
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Literal, NamedTuple, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("tsk")

STACK_POSITION_MAX = 255
# largest id SQLite can store in an INTEGER column
TASK_ID_MAX = 2 ** 63 - 1

_LINE_RE = re.compile(r"(\S+)(?:\s+(.*))?\Z", re.DOTALL)
_STACK_RE = re.compile(r"\d+")
_ABSOLUTE_RE = re.compile(r"tsk-(\d*)")
_NAME_RE = re.compile(r"[^\W_]+")


# ============================================================
# TASK IDENTIFIERS
# ============================================================

class AbsoluteId(BaseModel):
    """A permanent task id, written tsk-<digits>"""
    kind: Literal["task"] = "task"
    task_id: int = Field(ge=0, le=TASK_ID_MAX)

    def __str__(self) -> str:
        return f"tsk-{self.task_id}"


class StackPosition(BaseModel):
    """Offset from the top of the displayed ordering (0 is the top task)"""
    kind: Literal["stack"] = "stack"
    position: int = Field(ge=0, le=STACK_POSITION_MAX)

    def __str__(self) -> str:
        return str(self.position)


TaskIdentifier = Union[AbsoluteId, StackPosition]


# ============================================================
# COMMANDS
# ============================================================

class Command(BaseModel):
    """Base for every parsed command"""
    keyword: ClassVar[str]
    shorthand: ClassVar[Optional[str]] = None


class Push(Command):
    keyword: ClassVar[str] = "push"
    shorthand: ClassVar[Optional[str]] = "p"
    title: str = Field(min_length=1)


class Make(Command):
    keyword: ClassVar[str] = "make"
    shorthand: ClassVar[Optional[str]] = "m"
    name: str = Field(min_length=1)


class Edit(Command):
    keyword: ClassVar[str] = "edit"
    shorthand: ClassVar[Optional[str]] = "e"
    task: Optional[TaskIdentifier] = None


class Drop(Command):
    keyword: ClassVar[str] = "drop"
    shorthand: ClassVar[Optional[str]] = "d"
    task: Optional[TaskIdentifier] = None


class Complete(Command):
    keyword: ClassVar[str] = "complete"
    shorthand: ClassVar[Optional[str]] = "c"
    task: Optional[TaskIdentifier] = None


class Start(Command):
    keyword: ClassVar[str] = "start"
    shorthand: ClassVar[Optional[str]] = "s"


class Todo(Command):
    keyword: ClassVar[str] = "todo"
    shorthand: ClassVar[Optional[str]] = "t"


class Swap(Command):
    keyword: ClassVar[str] = "swap"


class Rot(Command):
    keyword: ClassVar[str] = "rot"


class NRot(Command):
    keyword: ClassVar[str] = "-rot"
    shorthand: ClassVar[Optional[str]] = "-"


class Reprioritize(Command):
    keyword: ClassVar[str] = "rep"
    shorthand: ClassVar[Optional[str]] = "p"
    task: AbsoluteId


class Quit(Command):
    keyword: ClassVar[str] = "quit"


# ============================================================
# PARSE FAILURES
# ============================================================

class ParseErrorKind(str, Enum):
    UNKNOWN_COMMAND = "unknown_command"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"


class ParseFailure(BaseModel):
    """Why a line could not be turned into a command"""
    kind: ParseErrorKind
    input: str
    messages: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if self.kind == ParseErrorKind.UNKNOWN_COMMAND:
            return f"Unknown command: {self.input!r}"
        if self.kind == ParseErrorKind.INVALID_ARGUMENT:
            return "Invalid argument: " + "; ".join(self.messages)
        return "Could not parse command" + (f": {'; '.join(self.messages)}" if self.messages else "")

    def __str__(self) -> str:
        return self.message


class ArgumentError(ValueError):
    """Raised by argument grammars; becomes an INVALID_ARGUMENT failure"""


# ============================================================
# ARGUMENT GRAMMARS
# ============================================================

def no_argument(rest: str) -> Dict[str, Any]:
    if rest.strip():
        raise ArgumentError(f"unexpected trailing input {rest.strip()!r}")
    return {}


def title_argument(rest: str) -> Dict[str, Any]:
    if not rest:
        raise ArgumentError("a title is required")
    if not rest[0].isalnum():
        raise ArgumentError(f"title must start with a letter or digit, got {rest[0]!r}")
    return {"title": rest}


def name_argument(rest: str) -> Dict[str, Any]:
    name = rest.strip().lower()
    if not name:
        raise ArgumentError("a name is required")
    if not _NAME_RE.fullmatch(name):
        raise ArgumentError(f"name must be alphanumeric, got {name!r}")
    return {"name": name}


def _absolute_id(token: str) -> Optional[AbsoluteId]:
    match = _ABSOLUTE_RE.fullmatch(token)
    if not match:
        return None
    if not match.group(1):
        raise ArgumentError(f"{token!r} is missing the task number")
    digits = match.group(1).lstrip("0") or "0"
    # length check first: int() refuses very long digit strings
    if len(digits) > len(str(TASK_ID_MAX)) or int(digits) > TASK_ID_MAX:
        raise ArgumentError(f"task id {digits} is too large")
    return AbsoluteId(task_id=int(digits))


def optional_identifier(rest: str) -> Dict[str, Any]:
    token = rest.strip().lower()
    if not token:
        return {"task": None}
    # relative position first, then tsk-<digits>
    if _STACK_RE.fullmatch(token):
        token = token.lstrip("0") or "0"
        if len(token) > len(str(STACK_POSITION_MAX)) or int(token) > STACK_POSITION_MAX:
            raise ArgumentError(f"stack position {token} is out of range 0-{STACK_POSITION_MAX}")
        return {"task": StackPosition(position=int(token))}
    identifier = _absolute_id(token)
    if identifier is None:
        raise ArgumentError(f"{token!r} is not a task identifier")
    return {"task": identifier}


def absolute_identifier(rest: str) -> Dict[str, Any]:
    token = rest.strip().lower()
    if not token:
        raise ArgumentError("a task id (tsk-<number>) is required")
    identifier = _absolute_id(token)
    if identifier is None:
        raise ArgumentError(f"{token!r} is not a task id (tsk-<number>)")
    return {"task": identifier}


class GrammarEntry(NamedTuple):
    command: Type[Command]
    argument: Callable[[str], Dict[str, Any]]


# Priority order; earlier entries win keyword collisions.
GRAMMAR: List[GrammarEntry] = [
    GrammarEntry(Push, title_argument),
    GrammarEntry(Make, name_argument),
    GrammarEntry(Edit, optional_identifier),
    GrammarEntry(Drop, optional_identifier),
    GrammarEntry(Complete, optional_identifier),
    GrammarEntry(Start, no_argument),
    GrammarEntry(Todo, no_argument),
    GrammarEntry(Swap, no_argument),
    GrammarEntry(Rot, no_argument),
    GrammarEntry(NRot, no_argument),
    GrammarEntry(Reprioritize, absolute_identifier),
    GrammarEntry(Quit, no_argument),
]


def lookup(keyword: str) -> Optional[GrammarEntry]:
    """Find the first grammar entry whose full word or shorthand is `keyword`"""
    keyword = keyword.lower()
    for entry in GRAMMAR:
        if keyword == entry.command.keyword or keyword == entry.command.shorthand:
            return entry
    return None


def parse(text: str) -> Union[Command, ParseFailure]:
    """Parse one line of input. Never raises on user input."""
    match = _LINE_RE.match(text.lstrip())
    if not match:
        return ParseFailure(kind=ParseErrorKind.UNKNOWN_COMMAND, input=text)

    entry = lookup(match.group(1))
    if entry is None:
        return ParseFailure(kind=ParseErrorKind.UNKNOWN_COMMAND, input=text)

    rest = match.group(2) or ""
    try:
        return entry.command(**entry.argument(rest))
    except ArgumentError as e:
        return ParseFailure(kind=ParseErrorKind.INVALID_ARGUMENT, input=text, messages=[str(e)])
    except ValidationError as e:
        return ParseFailure(
            kind=ParseErrorKind.INVALID_ARGUMENT,
            input=text,
            messages=[err["msg"] for err in e.errors()],
        )
    except Exception as e:
        logger.exception(f"Unexpected error parsing {text!r}")
        return ParseFailure(kind=ParseErrorKind.UNKNOWN, input=text, messages=[str(e)])
