"""
Plain record types shared by the database clients and the services.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class PendingRequest:
    """A contact invitation stored on the recipient; `user` is the sender."""

    user: str
    status: RequestStatus = RequestStatus.PENDING
    id: str = field(default_factory=new_id)


@dataclass
class UserRecord:
    name: str
    email: str
    password: str
    id: str = field(default_factory=new_id)
    profile_image: str = ""
    profile_image_key: str = ""
    contacts: list[str] = field(default_factory=list)
    pending_requests: list[PendingRequest] = field(default_factory=list)
    role: Role = Role.USER
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def find_request(self, request_id: str) -> Optional[PendingRequest]:
        for request in self.pending_requests:
            if request.id == request_id:
                return request
        return None

    def has_pending_request_from(self, user_id: str) -> bool:
        return any(
            r.user == user_id and r.status == RequestStatus.PENDING
            for r in self.pending_requests
        )

    def add_contact(self, user_id: str) -> None:
        if user_id not in self.contacts:
            self.contacts.append(user_id)

    def remove_request(self, request_id: str) -> None:
        self.pending_requests = [
            r for r in self.pending_requests if r.id != request_id
        ]


@dataclass
class BoardRecord:
    title: str
    owner: str
    description: str = ""
    members: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members


@dataclass
class TaskRecord:
    title: str
    author: str
    board: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


def merge_members(members: list[str], owner: str) -> list[str]:
    """De-duplicated member list (first occurrence wins) that always holds the owner."""
    merged: list[str] = []
    for user_id in [*members, owner]:
        if user_id not in merged:
            merged.append(user_id)
    return merged
