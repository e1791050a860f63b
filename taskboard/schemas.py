"""
Pydantic schemas for the taskboard API.

Payloads use camelCase keys and expose record ids as `_id`.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from taskboard.boards import BoardDetail, BoardSummary
from taskboard.records import BoardRecord, PendingRequest, TaskRecord, UserRecord
from taskboard.tasks import TaskDetail
from taskboard.users import ProfileView


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests


class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    profile_image: Optional[str] = None


class FindByEmailRequest(CamelModel):
    emails: Any = None


class FriendRequestPayload(CamelModel):
    email: str


class RequestIdPayload(CamelModel):
    request_id: str


class BoardCreateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    members: list[str] = Field(default_factory=list)


class BoardUpdateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    members: Optional[list[str]] = None


class TaskCreateRequest(CamelModel):
    board: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None


class TaskUpdateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None


# Users


class MessageResponse(CamelModel):
    message: str


class TokenResponse(CamelModel):
    token: str


class UserSummary(CamelModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    profile_image: str = ""

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserSummary":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            profile_image=user.profile_image,
        )


class EmailEntry(CamelModel):
    id: str = Field(alias="_id")
    email: str


class PendingRequestOut(CamelModel):
    id: str = Field(alias="_id")
    user: str
    status: str

    @classmethod
    def from_record(cls, request: PendingRequest) -> "PendingRequestOut":
        return cls(id=request.id, user=request.user, status=request.status.value)


class PublicUser(CamelModel):
    """A user as returned to clients; the password hash is never included."""

    id: str = Field(alias="_id")
    name: str
    email: str
    profile_image: str
    role: str
    contacts: list[str]
    pending_requests: list[PendingRequestOut]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, user: UserRecord) -> "PublicUser":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            profile_image=user.profile_image,
            role=user.role.value,
            contacts=list(user.contacts),
            pending_requests=[
                PendingRequestOut.from_record(r) for r in user.pending_requests
            ],
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class VerifyResponse(CamelModel):
    user: PublicUser


class ProfileRequestOut(CamelModel):
    id: str = Field(alias="_id")
    user: Optional[UserSummary]
    status: str


class ProfileResponse(CamelModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    profile_image: str
    role: str
    contacts: list[UserSummary]
    pending_requests: list[ProfileRequestOut]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_view(cls, view: ProfileView) -> "ProfileResponse":
        user = view.user
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            profile_image=user.profile_image,
            role=user.role.value,
            contacts=[UserSummary.from_record(c) for c in view.contacts],
            pending_requests=[
                ProfileRequestOut(
                    id=item.request.id,
                    user=UserSummary.from_record(item.sender) if item.sender else None,
                    status=item.request.status.value,
                )
                for item in view.requests
            ],
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UpdateProfileResponse(CamelModel):
    message: str
    user: UserSummary


class AcceptRequestResponse(CamelModel):
    message: str
    new_contact: UserSummary


# Boards


class BoardOut(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str
    owner: str
    members: list[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, board: BoardRecord) -> "BoardOut":
        return cls(
            id=board.id,
            title=board.title,
            description=board.description,
            owner=board.owner,
            members=list(board.members),
            created_at=board.created_at,
            updated_at=board.updated_at,
        )


class BoardResponse(CamelModel):
    message: str
    board: BoardOut


class OwnerRef(CamelModel):
    id: str = Field(alias="_id")
    name: str


class BoardListItem(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str
    owner: Optional[OwnerRef]
    members: list[str]
    task_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_summary(cls, summary: BoardSummary) -> "BoardListItem":
        board = summary.board
        return cls(
            id=board.id,
            title=board.title,
            description=board.description,
            owner=(
                OwnerRef(id=summary.owner.id, name=summary.owner.name)
                if summary.owner
                else None
            ),
            members=list(board.members),
            task_count=summary.task_count,
            created_at=board.created_at,
            updated_at=board.updated_at,
        )


class BoardDetailOut(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str
    owner: Optional[UserSummary]
    members: list[UserSummary]
    created_at: datetime
    updated_at: datetime


class TaskOut(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str
    status: str
    priority: str
    author: str
    board: str
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, task: TaskRecord) -> "TaskOut":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status.value,
            priority=task.priority.value,
            author=task.author,
            board=task.board,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class BoardDetailResponse(CamelModel):
    board: BoardDetailOut
    tasks: list[TaskOut]

    @classmethod
    def from_detail(cls, detail: BoardDetail) -> "BoardDetailResponse":
        board = detail.board
        return cls(
            board=BoardDetailOut(
                id=board.id,
                title=board.title,
                description=board.description,
                owner=UserSummary.from_record(detail.owner) if detail.owner else None,
                members=[UserSummary.from_record(m) for m in detail.members],
                created_at=board.created_at,
                updated_at=board.updated_at,
            ),
            tasks=[TaskOut.from_record(t) for t in detail.tasks],
        )


# Tasks


class TaskResponse(CamelModel):
    message: str
    task: TaskOut


class TaskDetailOut(CamelModel):
    id: str = Field(alias="_id")
    title: str
    description: str
    status: str
    priority: str
    author: Optional[UserSummary]
    board: str
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_detail(cls, detail: TaskDetail) -> "TaskDetailOut":
        task = detail.task
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status.value,
            priority=task.priority.value,
            author=UserSummary.from_record(detail.author) if detail.author else None,
            board=task.board,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )
