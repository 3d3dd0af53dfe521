"""
TSK - Storage
=============
SQLite persistence through SQLAlchemy. The ordering chain lives in the
`next` column of the tasks table; status and content are append-only
histories keyed by task id.

Only tsk.manager talks to this module. Every unit of work goes through
Database.transaction(), which yields a TaskStore bound to one session and
commits or rolls back as a whole.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text,
    create_engine, event, func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .errors import InternalError, StorageError
from .schema import ROOT_TASK_ID, TaskContent, TaskStatus

logger = logging.getLogger("tsk")

Base = declarative_base()


class TaskRow(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("next_id IS NULL OR next_id != 0", name="next_not_root"),
        CheckConstraint("next_id IS NULL OR next_id != id", name="next_not_self"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    created = Column(DateTime, nullable=False, default=datetime.utcnow)
    # at most one task may point at any given task
    next_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, unique=True)

    statuses = relationship("StatusRecord", cascade="all, delete-orphan", passive_deletes=True)
    contents = relationship("ContentRecord", cascade="all, delete-orphan", passive_deletes=True)


class StatusRecord(Base):
    __tablename__ = "task_status"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Integer, nullable=False, default=0)
    updated = Column(DateTime, nullable=False, default=datetime.utcnow)


class ContentRecord(Base):
    __tablename__ = "task_content"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    body = Column(Text, nullable=True)
    link = Column(String, nullable=True)
    updated = Column(DateTime, nullable=False, default=datetime.utcnow)


class TagRow(Base):
    __tablename__ = "tags"

    name = Column(String, primary_key=True)


class RelationshipRow(Base):
    __tablename__ = "relationships"

    left_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    tag = Column(String, ForeignKey("tags.name", ondelete="CASCADE"), primary_key=True)
    right_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)


@event.listens_for(Engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE clauses unless this is set per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class TaskStore:
    """CRUD over one open session. Obtain through Database.transaction()."""

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # TASKS
    # ========================================

    def create_task(self, title: str) -> int:
        row = TaskRow(title=title)
        self.session.add(row)
        self.session.flush()
        return row.id

    def get_task_row(self, task_id: int) -> Optional[TaskRow]:
        return self.session.get(TaskRow, task_id)

    def task_exists(self, task_id: int) -> bool:
        return self.get_task_row(task_id) is not None

    def count_tasks(self) -> int:
        return self.session.query(func.count(TaskRow.id)).scalar()

    def delete_task(self, task_id: int) -> bool:
        """Delete a task with its status history, content and relationships"""
        if task_id == ROOT_TASK_ID:
            raise InternalError("Refusing to delete the root task, this is a bug.")
        row = self.get_task_row(task_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    # ========================================
    # ORDERING LINKS
    # ========================================

    def get_next(self, task_id: int) -> Optional[int]:
        row = self.get_task_row(task_id)
        if row is None:
            raise InternalError(f"Task {task_id} vanished while following the chain")
        return row.next_id

    def set_next(self, task_id: int, next_id: Optional[int]) -> None:
        row = self.get_task_row(task_id)
        if row is None:
            raise InternalError(f"Cannot link missing task {task_id}")
        row.next_id = next_id
        # flush per step so constraint checks see each link change in order
        self.session.flush()

    def predecessor(self, task_id: int) -> Optional[int]:
        """Id of the task whose next is task_id, if any"""
        row = self.session.query(TaskRow).filter(TaskRow.next_id == task_id).one_or_none()
        return row.id if row is not None else None

    # ========================================
    # STATUS HISTORY
    # ========================================

    def append_status(self, task_id: int, status: TaskStatus) -> None:
        self.session.add(StatusRecord(task_id=task_id, status=status.code, updated=datetime.utcnow()))
        self.session.flush()

    def current_status(self, task_id: int) -> Optional[TaskStatus]:
        record = (
            self.session.query(StatusRecord)
            .filter(StatusRecord.task_id == task_id)
            .order_by(StatusRecord.updated.desc(), StatusRecord.id.desc())
            .first()
        )
        if record is None:
            return None
        return TaskStatus.from_code(record.status)

    def status_history(self, task_id: int) -> List[Tuple[TaskStatus, datetime]]:
        records = (
            self.session.query(StatusRecord)
            .filter(StatusRecord.task_id == task_id)
            .order_by(StatusRecord.updated, StatusRecord.id)
            .all()
        )
        return [(TaskStatus.from_code(r.status), r.updated) for r in records]

    # ========================================
    # CONTENT
    # ========================================

    def append_content(self, task_id: int, body: Optional[str], link: Optional[str]) -> None:
        self.session.add(ContentRecord(task_id=task_id, body=body, link=link, updated=datetime.utcnow()))
        self.session.flush()

    def latest_content(self, task_id: int) -> Optional[TaskContent]:
        record = (
            self.session.query(ContentRecord)
            .filter(ContentRecord.task_id == task_id)
            .order_by(ContentRecord.updated.desc(), ContentRecord.id.desc())
            .first()
        )
        if record is None:
            return None
        content = TaskContent(body=record.body, link=record.link, updated=record.updated)
        return None if content.is_empty else content

    # ========================================
    # TAGS & RELATIONSHIPS
    # ========================================

    def create_tag(self, name: str) -> bool:
        if self.session.get(TagRow, name) is not None:
            return False
        self.session.add(TagRow(name=name))
        self.session.flush()
        return True

    def add_relationship(self, left_id: int, tag: str, right_id: int) -> None:
        self.session.add(RelationshipRow(left_id=left_id, tag=tag, right_id=right_id))
        self.session.flush()

    def relationships(self, task_id: int) -> List[Tuple[int, str, int]]:
        rows = (
            self.session.query(RelationshipRow)
            .filter((RelationshipRow.left_id == task_id) | (RelationshipRow.right_id == task_id))
            .all()
        )
        return [(r.left_id, r.tag, r.right_id) for r in rows]


class Database:
    """
    Owns the engine and session factory.

    Creating a Database initializes the schema and the root task (id 0),
    which anchors the ordering chain and is never displayed.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        try:
            self.engine = create_engine(url, echo=echo)
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
            self.initialize()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not open database {url}: {e}") from e
        logger.debug(f"Database initialized: {url}")

    @classmethod
    def from_path(cls, path) -> "Database":
        return cls(f"sqlite:///{path}")

    def initialize(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        with self.SessionLocal() as session:
            if session.get(TaskRow, ROOT_TASK_ID) is None:
                session.add(TaskRow(id=ROOT_TASK_ID, title="ROOT", created=datetime(1970, 1, 1)))
                session.commit()

    @contextmanager
    def transaction(self) -> Iterator[TaskStore]:
        """Run a unit of work; commit on success, roll back on any error"""
        session = self.SessionLocal()
        try:
            yield TaskStore(session)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error, rolled back: {e}")
            raise StorageError(f"There was a database error: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
