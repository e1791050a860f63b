"""
Database abstraction: a unit-of-work interface with a SQLAlchemy
implementation and an in-memory implementation for development and tests.

Every service call opens one unit of work. Leaving the `with` block normally
commits every write made through it; an exception rolls all of them back.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import ContextManager, Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from taskboard.errors import Conflict, PersistenceError
from taskboard.records import (
    BoardRecord,
    PendingRequest,
    RequestStatus,
    Role,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    UserRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    """Reads and writes that belong to one transaction."""

    # Users
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def get_users(self, user_ids: list[str]) -> list[UserRecord]:
        ...

    def find_users_by_emails(self, emails: list[str]) -> list[UserRecord]:
        ...

    def list_users(self) -> list[UserRecord]:
        ...

    def add_user(self, user: UserRecord) -> None:
        ...

    def save_user(self, user: UserRecord) -> None:
        ...

    def delete_user(self, user_id: str) -> None:
        ...

    def pull_contact(self, user_id: str) -> int:
        ...

    def pull_requests_from(self, user_id: str) -> int:
        ...

    # Boards
    def get_board(self, board_id: str) -> Optional[BoardRecord]:
        ...

    def list_boards_for_member(self, user_id: str) -> list[BoardRecord]:
        ...

    def list_boards_owned_by(self, user_id: str) -> list[BoardRecord]:
        ...

    def add_board(self, board: BoardRecord) -> None:
        ...

    def save_board(self, board: BoardRecord) -> None:
        ...

    def delete_board(self, board_id: str) -> None:
        ...

    def pull_member(self, user_id: str) -> int:
        ...

    # Tasks
    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        ...

    def list_tasks_for_board(self, board_id: str) -> list[TaskRecord]:
        ...

    def count_tasks_for_board(self, board_id: str) -> int:
        ...

    def add_task(self, task: TaskRecord) -> None:
        ...

    def save_task(self, task: TaskRecord) -> None:
        ...

    def delete_task(self, task_id: str) -> None:
        ...

    def delete_tasks_for_board(self, board_id: str) -> int:
        ...

    def delete_tasks_by_author(self, user_id: str) -> int:
        ...


class DbClient(Protocol):
    """Interface for database access."""

    def unit_of_work(self) -> ContextManager[UnitOfWork]:
        ...


@dataclass
class InMemoryStore:
    users: Dict[str, UserRecord] = field(default_factory=dict)
    boards: Dict[str, BoardRecord] = field(default_factory=dict)
    tasks: Dict[str, TaskRecord] = field(default_factory=dict)


class InMemoryUnitOfWork:
    """Works on a private copy of the store; records are copied in and out."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return copy.deepcopy(self.store.users.get(user_id))

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.store.users.values():
            if user.email == email:
                return copy.deepcopy(user)
        return None

    def get_users(self, user_ids: list[str]) -> list[UserRecord]:
        return [
            copy.deepcopy(self.store.users[user_id])
            for user_id in user_ids
            if user_id in self.store.users
        ]

    def find_users_by_emails(self, emails: list[str]) -> list[UserRecord]:
        wanted = set(emails)
        return [
            copy.deepcopy(user)
            for user in self.store.users.values()
            if user.email in wanted
        ]

    def list_users(self) -> list[UserRecord]:
        return [copy.deepcopy(user) for user in self.store.users.values()]

    def add_user(self, user: UserRecord) -> None:
        if any(u.email == user.email for u in self.store.users.values()):
            raise Conflict("User already exists")
        self.store.users[user.id] = copy.deepcopy(user)

    def save_user(self, user: UserRecord) -> None:
        user.updated_at = utcnow()
        self.store.users[user.id] = copy.deepcopy(user)

    def delete_user(self, user_id: str) -> None:
        self.store.users.pop(user_id, None)

    def pull_contact(self, user_id: str) -> int:
        changed = 0
        for user in self.store.users.values():
            if user_id in user.contacts:
                user.contacts = [c for c in user.contacts if c != user_id]
                changed += 1
        return changed

    def pull_requests_from(self, user_id: str) -> int:
        changed = 0
        for user in self.store.users.values():
            kept = [r for r in user.pending_requests if r.user != user_id]
            if len(kept) != len(user.pending_requests):
                user.pending_requests = kept
                changed += 1
        return changed

    def get_board(self, board_id: str) -> Optional[BoardRecord]:
        return copy.deepcopy(self.store.boards.get(board_id))

    def list_boards_for_member(self, user_id: str) -> list[BoardRecord]:
        return [
            copy.deepcopy(board)
            for board in self.store.boards.values()
            if user_id in board.members
        ]

    def list_boards_owned_by(self, user_id: str) -> list[BoardRecord]:
        return [
            copy.deepcopy(board)
            for board in self.store.boards.values()
            if board.owner == user_id
        ]

    def add_board(self, board: BoardRecord) -> None:
        self.store.boards[board.id] = copy.deepcopy(board)

    def save_board(self, board: BoardRecord) -> None:
        board.updated_at = utcnow()
        self.store.boards[board.id] = copy.deepcopy(board)

    def delete_board(self, board_id: str) -> None:
        self.store.boards.pop(board_id, None)

    def pull_member(self, user_id: str) -> int:
        changed = 0
        for board in self.store.boards.values():
            if user_id in board.members:
                board.members = [m for m in board.members if m != user_id]
                changed += 1
        return changed

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return copy.deepcopy(self.store.tasks.get(task_id))

    def list_tasks_for_board(self, board_id: str) -> list[TaskRecord]:
        return [
            copy.deepcopy(task)
            for task in self.store.tasks.values()
            if task.board == board_id
        ]

    def count_tasks_for_board(self, board_id: str) -> int:
        return sum(1 for task in self.store.tasks.values() if task.board == board_id)

    def add_task(self, task: TaskRecord) -> None:
        self.store.tasks[task.id] = copy.deepcopy(task)

    def save_task(self, task: TaskRecord) -> None:
        task.updated_at = utcnow()
        self.store.tasks[task.id] = copy.deepcopy(task)

    def delete_task(self, task_id: str) -> None:
        self.store.tasks.pop(task_id, None)

    def delete_tasks_for_board(self, board_id: str) -> int:
        doomed = [t.id for t in self.store.tasks.values() if t.board == board_id]
        for task_id in doomed:
            del self.store.tasks[task_id]
        return len(doomed)

    def delete_tasks_by_author(self, user_id: str) -> int:
        doomed = [t.id for t in self.store.tasks.values() if t.author == user_id]
        for task_id in doomed:
            del self.store.tasks[task_id]
        return len(doomed)


class InMemoryDbClient:
    """Simple in-memory database for development and tests.

    A unit of work holds the client lock for its whole lifetime and only
    replaces the shared store when it finishes without an exception.
    """

    unit_of_work_class = InMemoryUnitOfWork

    def __init__(self):
        self._store = InMemoryStore()
        self._lock = threading.RLock()

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryUnitOfWork]:
        with self._lock:
            uow = self.unit_of_work_class(copy.deepcopy(self._store))
            yield uow
            self._store = uow.store

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self._store = InMemoryStore()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        engine_options = dict(future=True, pool_pre_ping=True, pool_recycle=1800)
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # Share the single in-memory database across threads.
            engine_options.update(
                poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
        self.engine = create_engine(database_url, **engine_options)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def unit_of_work(self) -> Iterator["SqlUnitOfWork"]:
        session = self.Session()
        try:
            with session.begin():
                yield SqlUnitOfWork(session)
        except IntegrityError as exc:
            logger.warning("Integrity error, transaction rolled back: %s", exc.orig)
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            logger.exception("Database error, transaction rolled back")
            raise PersistenceError() from exc
        finally:
            session.close()


class SqlUnitOfWork:
    """Unit of work bound to one SQLAlchemy session transaction."""

    def __init__(self, session: Session):
        self.session = session

    # Users

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        contacts = self.session.execute(
            select(ContactRow.contact_id)
            .where(ContactRow.user_id == row.id)
            .order_by(ContactRow.position)
        ).scalars()
        requests = self.session.execute(
            select(
                FriendRequestRow.id,
                FriendRequestRow.sender_id,
                FriendRequestRow.status,
            )
            .where(FriendRequestRow.recipient_id == row.id)
            .order_by(FriendRequestRow.position)
        ).all()
        return UserRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            password=row.password,
            profile_image=row.profile_image,
            profile_image_key=row.profile_image_key,
            role=Role(row.role),
            contacts=list(contacts),
            pending_requests=[
                PendingRequest(
                    id=r.id, user=r.sender_id, status=RequestStatus(r.status)
                )
                for r in requests
            ],
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _write_user_links(self, user: UserRecord) -> None:
        self.session.execute(delete(ContactRow).where(ContactRow.user_id == user.id))
        self.session.execute(
            delete(FriendRequestRow).where(FriendRequestRow.recipient_id == user.id)
        )
        for position, contact_id in enumerate(user.contacts):
            self.session.add(
                ContactRow(user_id=user.id, contact_id=contact_id, position=position)
            )
        for position, request in enumerate(user.pending_requests):
            self.session.add(
                FriendRequestRow(
                    id=request.id,
                    recipient_id=user.id,
                    sender_id=request.user,
                    status=request.status.value,
                    position=position,
                )
            )
        self.session.flush()

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self.session.get(UserRow, user_id)
        return self._to_user_record(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = self.session.execute(
            select(UserRow).where(UserRow.email == email)
        ).scalar_one_or_none()
        return self._to_user_record(row) if row else None

    def get_users(self, user_ids: list[str]) -> list[UserRecord]:
        if not user_ids:
            return []
        rows = self.session.execute(
            select(UserRow).where(UserRow.id.in_(user_ids))
        ).scalars()
        by_id = {row.id: row for row in rows}
        return [
            self._to_user_record(by_id[user_id])
            for user_id in user_ids
            if user_id in by_id
        ]

    def find_users_by_emails(self, emails: list[str]) -> list[UserRecord]:
        if not emails:
            return []
        rows = self.session.execute(
            select(UserRow).where(UserRow.email.in_(emails)).order_by(UserRow.created_at)
        ).scalars()
        return [self._to_user_record(row) for row in rows]

    def list_users(self) -> list[UserRecord]:
        rows = self.session.execute(
            select(UserRow).order_by(UserRow.created_at)
        ).scalars()
        return [self._to_user_record(row) for row in rows]

    def add_user(self, user: UserRecord) -> None:
        self.session.add(
            UserRow(
                id=user.id,
                name=user.name,
                email=user.email,
                password=user.password,
                profile_image=user.profile_image,
                profile_image_key=user.profile_image_key,
                role=user.role.value,
                created_at=user.created_at,
                updated_at=user.updated_at,
            )
        )
        self.session.flush()
        self._write_user_links(user)

    def save_user(self, user: UserRecord) -> None:
        row = self.session.get(UserRow, user.id)
        if row is None:
            raise PersistenceError(f"User {user.id} no longer exists")
        user.updated_at = utcnow()
        row.name = user.name
        row.email = user.email
        row.password = user.password
        row.profile_image = user.profile_image
        row.profile_image_key = user.profile_image_key
        row.role = user.role.value
        row.updated_at = user.updated_at
        self.session.flush()
        self._write_user_links(user)

    def delete_user(self, user_id: str) -> None:
        self.session.execute(delete(ContactRow).where(ContactRow.user_id == user_id))
        self.session.execute(
            delete(FriendRequestRow).where(FriendRequestRow.recipient_id == user_id)
        )
        self.session.execute(delete(UserRow).where(UserRow.id == user_id))

    def pull_contact(self, user_id: str) -> int:
        result = self.session.execute(
            delete(ContactRow).where(ContactRow.contact_id == user_id)
        )
        return result.rowcount or 0

    def pull_requests_from(self, user_id: str) -> int:
        result = self.session.execute(
            delete(FriendRequestRow).where(FriendRequestRow.sender_id == user_id)
        )
        return result.rowcount or 0

    # Boards

    def _to_board_record(self, row: "BoardRow") -> BoardRecord:
        members = self.session.execute(
            select(BoardMemberRow.user_id)
            .where(BoardMemberRow.board_id == row.id)
            .order_by(BoardMemberRow.position)
        ).scalars()
        return BoardRecord(
            id=row.id,
            title=row.title,
            description=row.description,
            owner=row.owner_id,
            members=list(members),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _write_members(self, board: BoardRecord) -> None:
        self.session.execute(
            delete(BoardMemberRow).where(BoardMemberRow.board_id == board.id)
        )
        for position, user_id in enumerate(board.members):
            self.session.add(
                BoardMemberRow(board_id=board.id, user_id=user_id, position=position)
            )
        self.session.flush()

    def get_board(self, board_id: str) -> Optional[BoardRecord]:
        row = self.session.get(BoardRow, board_id)
        return self._to_board_record(row) if row else None

    def list_boards_for_member(self, user_id: str) -> list[BoardRecord]:
        rows = self.session.execute(
            select(BoardRow)
            .join(BoardMemberRow, BoardMemberRow.board_id == BoardRow.id)
            .where(BoardMemberRow.user_id == user_id)
            .order_by(BoardRow.created_at)
        ).scalars()
        return [self._to_board_record(row) for row in rows]

    def list_boards_owned_by(self, user_id: str) -> list[BoardRecord]:
        rows = self.session.execute(
            select(BoardRow)
            .where(BoardRow.owner_id == user_id)
            .order_by(BoardRow.created_at)
        ).scalars()
        return [self._to_board_record(row) for row in rows]

    def add_board(self, board: BoardRecord) -> None:
        self.session.add(
            BoardRow(
                id=board.id,
                title=board.title,
                description=board.description,
                owner_id=board.owner,
                created_at=board.created_at,
                updated_at=board.updated_at,
            )
        )
        self.session.flush()
        self._write_members(board)

    def save_board(self, board: BoardRecord) -> None:
        row = self.session.get(BoardRow, board.id)
        if row is None:
            raise PersistenceError(f"Board {board.id} no longer exists")
        board.updated_at = utcnow()
        row.title = board.title
        row.description = board.description
        row.updated_at = board.updated_at
        self.session.flush()
        self._write_members(board)

    def delete_board(self, board_id: str) -> None:
        self.session.execute(
            delete(BoardMemberRow).where(BoardMemberRow.board_id == board_id)
        )
        self.session.execute(delete(BoardRow).where(BoardRow.id == board_id))

    def pull_member(self, user_id: str) -> int:
        result = self.session.execute(
            delete(BoardMemberRow).where(BoardMemberRow.user_id == user_id)
        )
        return result.rowcount or 0

    # Tasks

    @staticmethod
    def _to_task_record(row: "TaskRow") -> TaskRecord:
        return TaskRecord(
            id=row.id,
            title=row.title,
            description=row.description,
            status=TaskStatus(row.status),
            priority=TaskPriority(row.priority),
            author=row.author_id,
            board=row.board_id,
            due_date=row.due_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        row = self.session.get(TaskRow, task_id)
        return self._to_task_record(row) if row else None

    def list_tasks_for_board(self, board_id: str) -> list[TaskRecord]:
        rows = self.session.execute(
            select(TaskRow)
            .where(TaskRow.board_id == board_id)
            .order_by(TaskRow.created_at)
        ).scalars()
        return [self._to_task_record(row) for row in rows]

    def count_tasks_for_board(self, board_id: str) -> int:
        return self.session.execute(
            select(func.count()).select_from(TaskRow).where(TaskRow.board_id == board_id)
        ).scalar_one()

    def add_task(self, task: TaskRecord) -> None:
        self.session.add(
            TaskRow(
                id=task.id,
                title=task.title,
                description=task.description,
                status=task.status.value,
                priority=task.priority.value,
                author_id=task.author,
                board_id=task.board,
                due_date=task.due_date,
                created_at=task.created_at,
                updated_at=task.updated_at,
            )
        )
        self.session.flush()

    def save_task(self, task: TaskRecord) -> None:
        row = self.session.get(TaskRow, task.id)
        if row is None:
            raise PersistenceError(f"Task {task.id} no longer exists")
        task.updated_at = utcnow()
        row.title = task.title
        row.description = task.description
        row.status = task.status.value
        row.priority = task.priority.value
        row.due_date = task.due_date
        row.updated_at = task.updated_at
        self.session.flush()

    def delete_task(self, task_id: str) -> None:
        self.session.execute(delete(TaskRow).where(TaskRow.id == task_id))

    def delete_tasks_for_board(self, board_id: str) -> int:
        result = self.session.execute(delete(TaskRow).where(TaskRow.board_id == board_id))
        return result.rowcount or 0

    def delete_tasks_by_author(self, user_id: str) -> int:
        result = self.session.execute(delete(TaskRow).where(TaskRow.author_id == user_id))
        return result.rowcount or 0


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String(60), nullable=False)
    email = Column(String(60), nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)
    profile_image = Column(String, nullable=False, default="")
    profile_image_key = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default=Role.USER.value)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ContactRow(Base):
    __tablename__ = "user_contacts"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    contact_id = Column(String, ForeignKey("users.id"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)


class FriendRequestRow(Base):
    __tablename__ = "friend_requests"

    id = Column(String, primary_key=True)
    recipient_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    sender_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default=RequestStatus.PENDING.value)
    position = Column(Integer, nullable=False, default=0)


class BoardRow(Base):
    __tablename__ = "boards"

    id = Column(String, primary_key=True)
    title = Column(String(40), nullable=False)
    description = Column(String(150), nullable=False, default="")
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class BoardMemberRow(Base):
    __tablename__ = "board_members"

    board_id = Column(String, ForeignKey("boards.id"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)


class TaskRow(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    title = Column(String(40), nullable=False)
    description = Column(String(150), nullable=False, default="")
    status = Column(String, nullable=False, default=TaskStatus.TODO.value)
    priority = Column(String, nullable=False, default=TaskPriority.MEDIUM.value)
    author_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    board_id = Column(String, ForeignKey("boards.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
