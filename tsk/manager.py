"""
TSK - Task Manager
==================
The ordering engine. Priority is a singly-linked chain of task ids
anchored at the root task (id 0):

    root -> t1 -> t2 -> ... -> tn -> None

root.next is the most important task. A task not reachable from root is
unprioritized but keeps its status history.

Every public operation runs inside exactly one database transaction, so
a relink either applies completely or not at all.

Usage:
    manager = TaskManager(Database.from_path("tsk.db"))
    task_id = manager.push("buy milk")
    manager.complete(task_id)
    print(manager.render_top(manager.get_top_n(20)))
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from .commands import AbsoluteId, StackPosition, TaskIdentifier
from .errors import ChainCorruptionError, InternalError, InvalidTaskError, TaskNotFoundError
from .schema import ROOT_TASK_ID, Task, TaskStatus, parse_link
from .storage import Database, TaskStore

logger = logging.getLogger("tsk")

ROTATION_DEPTH = 3


class TaskManager:
    """
    Ordering engine over a Database.

    Key features:
    - O(1) relinking with a single predecessor lookup
    - Append-only status history (current = newest record)
    - Traversals bounded by the requested count
    """

    def __init__(self, db: Database):
        self.db = db

    # ========================================
    # TASK OPERATIONS
    # ========================================

    def create_task(self, title: str) -> int:
        """Create an unprioritized Todo task and return its id"""
        with self.db.transaction() as store:
            task_id = self._create(store, title)
        logger.info(f"Created task tsk-{task_id}: {title}")
        return task_id

    def push(self, title: str) -> int:
        """Create a task and make it the top priority"""
        with self.db.transaction() as store:
            task_id = self._create(store, title)
            self._prioritize(store, task_id)
        logger.info(f"Pushed task tsk-{task_id}: {title}")
        return task_id

    def update_status(self, task_id: int, status: TaskStatus) -> None:
        """Append a status record; earlier records are never touched"""
        with self.db.transaction() as store:
            self._require(store, task_id)
            store.append_status(task_id, status)
        logger.info(f"Task tsk-{task_id} -> {status.value}")

    def start(self, task_id: int) -> None:
        self.update_status(task_id, TaskStatus.IN_PROGRESS)

    def mark_todo(self, task_id: int) -> None:
        self.update_status(task_id, TaskStatus.TODO)

    def complete(self, task_id: int) -> None:
        """Mark complete and take the task out of the ordering"""
        with self.db.transaction() as store:
            self._require(store, task_id)
            store.append_status(task_id, TaskStatus.COMPLETE)
            self._deprioritize(store, task_id)
        logger.info(f"Completed task tsk-{task_id}")

    def drop(self, task_id: int) -> None:
        """Unlink and delete a task along with its history, content and relationships"""
        with self.db.transaction() as store:
            self._require(store, task_id)
            self._deprioritize(store, task_id)
            store.delete_task(task_id)
        logger.info(f"Dropped task tsk-{task_id}")

    def edit(self, task_id: int, body: Optional[str] = None, link: Optional[str] = None) -> None:
        """Attach new content; the newest content record wins"""
        parsed = parse_link(link)
        if link and parsed is None:
            logger.warning(f"Dropping unparseable link for tsk-{task_id}: {link}")
        with self.db.transaction() as store:
            self._require(store, task_id)
            store.append_content(task_id, body or None, parsed)
        logger.debug(f"Updated content of tsk-{task_id}")

    def get_task(self, task_id: int) -> Task:
        with self.db.transaction() as store:
            self._require(store, task_id)
            return self._load(store, task_id)

    def status_history(self, task_id: int) -> List[Tuple[TaskStatus, datetime]]:
        with self.db.transaction() as store:
            self._require(store, task_id)
            return store.status_history(task_id)

    def make_tag(self, name: str) -> bool:
        """Create a tag; returns False if it already existed"""
        with self.db.transaction() as store:
            created = store.create_tag(name)
        if created:
            logger.info(f"Created tag: {name}")
        return created

    def connect(self, left_id: int, tag: str, right_id: int) -> None:
        """Relate two tasks through a tag, creating the tag if needed"""
        with self.db.transaction() as store:
            self._require(store, left_id)
            self._require(store, right_id)
            store.create_tag(tag)
            store.add_relationship(left_id, tag, right_id)

    def relationships(self, task_id: int) -> List[Tuple[int, str, int]]:
        with self.db.transaction() as store:
            return store.relationships(task_id)

    # ========================================
    # ORDERING
    # ========================================

    def prioritize(self, task_id: int) -> None:
        """Move a task to the front of the chain"""
        with self.db.transaction() as store:
            self._require(store, task_id)
            self._prioritize(store, task_id)
        logger.info(f"Prioritized tsk-{task_id}")

    def deprioritize(self, task_id: int) -> None:
        """Remove a task from the chain without deleting it"""
        with self.db.transaction() as store:
            self._require(store, task_id)
            self._deprioritize(store, task_id)
        logger.info(f"Deprioritized tsk-{task_id}")

    def swap_top_two(self) -> None:
        """Promote the second task to first"""
        with self.db.transaction() as store:
            top = self._walk(store, 2)
            if len(top) < 2:
                logger.debug("Swap ignored: fewer than two prioritized tasks")
                return
            self._prioritize(store, top[1])

    def rotate(self) -> None:
        """Bring the third task to the top: [a, b, c] -> [c, a, b]"""
        with self.db.transaction() as store:
            top = self._walk(store, ROTATION_DEPTH)
            if len(top) < 2:
                return
            self._prioritize(store, top[-1])

    def rotate_back(self) -> None:
        """Sink the top task to third: [a, b, c] -> [b, c, a]"""
        with self.db.transaction() as store:
            top = self._walk(store, ROTATION_DEPTH)
            if len(top) < 2:
                return
            first, last = top[0], top[-1]
            self._deprioritize(store, first)
            self._insert_after(store, last, first)

    def get_top_n(self, n: int) -> List[Task]:
        """First n tasks in priority order, each with its current status"""
        with self.db.transaction() as store:
            return [self._load(store, task_id) for task_id in self._walk(store, n)]

    def chain_ids(self) -> List[int]:
        """Every prioritized task id, in order"""
        with self.db.transaction() as store:
            return self._walk(store, store.count_tasks())

    # ========================================
    # IDENTIFIER RESOLUTION
    # ========================================

    def resolve(self, identifier: TaskIdentifier, n: int) -> int:
        """Turn a TaskIdentifier into a task id against the top n tasks"""
        if isinstance(identifier, AbsoluteId):
            if identifier.task_id == ROOT_TASK_ID:
                raise TaskNotFoundError(identifier, "the root task cannot be addressed")
            with self.db.transaction() as store:
                self._require(store, identifier.task_id)
            return identifier.task_id
        if isinstance(identifier, StackPosition):
            with self.db.transaction() as store:
                top = self._walk(store, min(n, identifier.position + 1))
            if identifier.position >= n:
                raise TaskNotFoundError(identifier, f"outside the top {n}")
            if identifier.position >= len(top):
                raise TaskNotFoundError(identifier, f"only {len(top)} prioritized tasks")
            return top[identifier.position]
        raise InternalError(f"Unsupported task identifier: {identifier!r}")

    def top_task_id(self) -> int:
        with self.db.transaction() as store:
            top = self._walk(store, 1)
        if not top:
            raise TaskNotFoundError("top", "no prioritized tasks")
        return top[0]

    # ========================================
    # REPORTING
    # ========================================

    def render_top(self, tasks: List[Task]) -> str:
        """Generate human-readable task listing"""
        if not tasks:
            return "No prioritized tasks. Push one with: push <title>"

        status_icons = {
            TaskStatus.TODO: "⬜",
            TaskStatus.IN_PROGRESS: "🔵",
            TaskStatus.COMPLETE: "✅",
            TaskStatus.CANCELLED: "❌",
            TaskStatus.HIDDEN: "👻",
        }

        lines = []
        for position, task in enumerate(tasks):
            icon = status_icons.get(task.status, "❓")
            lines.append(f"  {position:>3} {icon} [{task.label}] {task.title}")
            if task.content and task.content.link:
                lines.append(f"          🔗 {task.content.link}")
        return "\n".join(lines)

    # ========================================
    # HELPER METHODS
    # ========================================

    def _create(self, store: TaskStore, title: str) -> int:
        if not title or not title.strip():
            raise InvalidTaskError("Task title must not be empty")
        task_id = store.create_task(title)
        store.append_status(task_id, TaskStatus.TODO)
        return task_id

    def _require(self, store: TaskStore, task_id: int) -> None:
        if task_id == ROOT_TASK_ID or not store.task_exists(task_id):
            raise TaskNotFoundError(f"tsk-{task_id}")

    def _load(self, store: TaskStore, task_id: int) -> Task:
        row = store.get_task_row(task_id)
        status = store.current_status(task_id)
        if status is None:
            raise InternalError(
                f"Task tsk-{task_id} has no status history, this is a bug.",
                details={"task_id": task_id},
            )
        return Task(
            id=row.id,
            title=row.title,
            status=status,
            created=row.created,
            content=store.latest_content(task_id),
        )

    def _walk(self, store: TaskStore, n: int) -> List[int]:
        """Follow next pointers from root for at most n steps"""
        visited = []
        seen = set()
        current = store.get_next(ROOT_TASK_ID)
        while current is not None and len(visited) < n:
            if current in seen or current == ROOT_TASK_ID:
                raise ChainCorruptionError(current, visited)
            visited.append(current)
            seen.add(current)
            current = store.get_next(current)
        return visited

    def _deprioritize(self, store: TaskStore, task_id: int) -> None:
        parent = store.predecessor(task_id)
        if parent is None:
            return
        successor = store.get_next(task_id)
        # clear first: next is unique, two rows may never share a successor
        store.set_next(task_id, None)
        store.set_next(parent, successor)

    def _insert_after(self, store: TaskStore, anchor: int, task_id: int) -> None:
        successor = store.get_next(anchor)
        store.set_next(anchor, task_id)
        store.set_next(task_id, successor)

    def _prioritize(self, store: TaskStore, task_id: int) -> None:
        head = store.get_next(ROOT_TASK_ID)
        if head == task_id:
            return
        self._deprioritize(store, task_id)
        store.set_next(ROOT_TASK_ID, task_id)
        store.set_next(task_id, head)
