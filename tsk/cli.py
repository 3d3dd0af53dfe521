#!/usr/bin/env python3
"""
TSK - CLI Interface
===================
Command-line front end for the ordering engine.

Usage:
    tsk                          Interactive prompt
    tsk push buy milk            Run one command, then show the list
    tsk --json                   Print the top tasks as JSON

Commands (one per line, case-insensitive):
    p/push <title>       Create a task at the top
    m/make <name>        Create a tag
    e/edit [id]          Attach body/link to a task (default: top)
    d/drop [id]          Delete a task (default: top)
    c/complete [id]      Complete a task (default: top)
    s/start              Mark the top task in progress
    t/todo               Mark the top task todo
    swap                 Promote the second task
    rot / -/-rot         Rotate the top three tasks
    rep tsk-<n>          Move a task to the top
    quit                 Exit

    [id] is a stack position (0 is the top task) or tsk-<n>.
"""

import argparse
import json
import logging
import readline
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, Type

from .commands import (
    Command, Complete, Drop, Edit, Make, NRot, ParseFailure, Push, Quit,
    Reprioritize, Rot, Start, Swap, Todo, parse,
)
from .config import Config, load_config
from .errors import ConfigError, InternalError, StorageError, TskError
from .manager import TaskManager
from .storage import Database

logger = logging.getLogger("tsk")


def _prompt(text: str, prefill: str = "") -> str:
    """input() with the line pre-filled, so a rejected command can be corrected"""
    if prefill:
        readline.set_startup_hook(lambda: readline.insert_text(prefill))
    try:
        return input(text)
    finally:
        readline.set_startup_hook()


class Session:
    """What command handlers need: the engine, settings and a way to ask the user"""

    def __init__(
        self,
        manager: TaskManager,
        config: Config,
        prompt: Callable[..., str] = _prompt,
    ):
        self.manager = manager
        self.config = config
        self.prompt = prompt

    def target(self, command: Command) -> int:
        """Task a command applies to: its identifier, else the top task"""
        identifier = getattr(command, "task", None)
        if identifier is None:
            return self.manager.top_task_id()
        return self.manager.resolve(identifier, self.config.num_top_tasks)


# ========================================
# COMMAND HANDLERS
# ========================================

def _push(session: Session, command: Push) -> str:
    task_id = session.manager.push(command.title)
    return f"✅ Pushed tsk-{task_id}"


def _make(session: Session, command: Make) -> str:
    if session.manager.make_tag(command.name):
        return f"🏷️ Created tag: {command.name}"
    return f"Tag already exists: {command.name}"


def _edit(session: Session, command: Edit) -> str:
    task_id = session.target(command)
    task = session.manager.get_task(task_id)
    print(f"Editing [{task.label}] {task.title}")
    body = session.prompt("Body: ").strip()
    link = session.prompt("Link: ").strip()
    session.manager.edit(task_id, body=body or None, link=link or None)
    return f"💾 Saved tsk-{task_id}"


def _drop(session: Session, command: Drop) -> str:
    task_id = session.target(command)
    session.manager.drop(task_id)
    return f"🗑️ Dropped tsk-{task_id}"


def _complete(session: Session, command: Complete) -> str:
    task_id = session.target(command)
    session.manager.complete(task_id)
    return f"✅ Completed tsk-{task_id}"


def _start(session: Session, command: Start) -> str:
    task_id = session.target(command)
    session.manager.start(task_id)
    return f"▶️ Started tsk-{task_id}"


def _todo(session: Session, command: Todo) -> str:
    task_id = session.target(command)
    session.manager.mark_todo(task_id)
    return f"⬜ tsk-{task_id} back to todo"


def _swap(session: Session, command: Swap) -> Optional[str]:
    session.manager.swap_top_two()
    return None


def _rot(session: Session, command: Rot) -> Optional[str]:
    session.manager.rotate()
    return None


def _nrot(session: Session, command: NRot) -> Optional[str]:
    session.manager.rotate_back()
    return None


def _reprioritize(session: Session, command: Reprioritize) -> str:
    task_id = session.target(command)
    session.manager.prioritize(task_id)
    return f"⬆️ tsk-{task_id} is now on top"


HANDLERS: Dict[Type[Command], Callable] = {
    Push: _push,
    Make: _make,
    Edit: _edit,
    Drop: _drop,
    Complete: _complete,
    Start: _start,
    Todo: _todo,
    Swap: _swap,
    Rot: _rot,
    NRot: _nrot,
    Reprioritize: _reprioritize,
}


def execute(session: Session, command: Command) -> Optional[str]:
    """Run a parsed command. TskError propagates to the caller."""
    handler = HANDLERS.get(type(command))
    if handler is None:
        raise InternalError(f"No handler for command {type(command).__name__}")
    return handler(session, command)


def report_error(error: TskError) -> None:
    """Print a failure with a prefix naming its kind"""
    if isinstance(error, InternalError):
        logger.error(f"Internal error: {error}")
        print(f"🐛 Internal error (please report): {error}")
    elif isinstance(error, StorageError):
        print(f"❌ Storage error, nothing was changed: {error}")
    else:
        print(f"⚠️ {error}")


def run_command(session: Session, command: Command) -> None:
    """Run a command and report the outcome; failures never end the session"""
    try:
        message = execute(session, command)
    except TskError as e:
        report_error(e)
    else:
        if message:
            print(message)


def show_top(session: Session, as_json: bool = False) -> None:
    tasks = session.manager.get_top_n(session.config.num_top_tasks)
    if as_json:
        print(json.dumps([t.model_dump(mode="json") for t in tasks], indent=2))
    else:
        print(session.manager.render_top(tasks))


def repl(session: Session) -> None:
    """Read-eval-print loop; the list is redrawn from storage after every command"""
    retry = ""
    while True:
        try:
            show_top(session)
        except TskError as e:
            report_error(e)
        try:
            line = session.prompt("\n: ", retry).strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break
        retry = ""
        if not line:
            continue
        command = parse(line)
        if isinstance(command, ParseFailure):
            print(f"❓ {command.message}")
            retry = line
            continue
        if isinstance(command, Quit):
            break
        run_command(session, command)
    print("Goodbye.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsk",
        description="tsk - prioritized terminal task list",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tsk                          Start the interactive prompt
  tsk push write report        Push a task to the top
  tsk c                        Complete the top task
  tsk rep tsk-12               Move tsk-12 to the top
  tsk -n 5 --json              Show the top five tasks as JSON
        """
    )
    parser.add_argument("words", nargs="*", help="Run a single command instead of the prompt")
    parser.add_argument("--db", type=Path, help="Database file (default: XDG state dir)")
    parser.add_argument("--config", type=Path, help="config.toml to read")
    parser.add_argument("-n", "--num", type=int, help="Number of top tasks to show")
    parser.add_argument("--json", action="store_true", help="Output the task list as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        if args.num is not None:
            config = Config(**{**config.model_dump(), "num_top_tasks": args.num})
    except (ConfigError, ValueError) as e:
        print(f"❌ {e}")
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    db_file = args.db or config.database_file
    try:
        db_file.parent.mkdir(parents=True, exist_ok=True)
        db = Database.from_path(db_file)
    except (OSError, StorageError) as e:
        print(f"❌ Cannot open database {db_file}: {e}")
        return 1

    session = Session(TaskManager(db), config)
    try:
        if not args.words:
            if args.json:
                show_top(session, as_json=True)
            else:
                repl(session)
            return 0

        command = parse(" ".join(args.words))
        if isinstance(command, ParseFailure):
            print(f"❓ {command.message}")
            return 1
        if not isinstance(command, Quit):
            message = execute(session, command)
            if message:
                print(message)
        show_top(session, as_json=args.json)
        return 0
    except TskError as e:
        report_error(e)
        return 1
    finally:
        db.dispose()


if __name__ == "__main__":
    sys.exit(main())
