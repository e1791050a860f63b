"""
HTTP routes for the taskboard API.

Every protected handler receives the authenticated `Principal` from the
`get_current_user` dependency and passes it to the service layer.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from taskboard import auth, boards, tasks, users
from taskboard.auth import Principal
from taskboard.config import Settings, get_settings
from taskboard.db import DbClient
from taskboard.dependencies import (
    get_current_user,
    get_db_client,
    get_storage_client,
    require_admin,
)
from taskboard.schemas import (
    AcceptRequestResponse,
    BoardCreateRequest,
    BoardDetailResponse,
    BoardListItem,
    BoardOut,
    BoardResponse,
    BoardUpdateRequest,
    EmailEntry,
    FindByEmailRequest,
    FriendRequestPayload,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    PublicUser,
    RegisterRequest,
    RequestIdPayload,
    TaskCreateRequest,
    TaskDetailOut,
    TaskOut,
    TaskResponse,
    TaskUpdateRequest,
    TokenResponse,
    UpdateProfileRequest,
    UpdateProfileResponse,
    UserSummary,
    VerifyResponse,
)
from taskboard.storage import StorageClient

auth_router = APIRouter()
user_router = APIRouter(dependencies=[Depends(get_current_user)])
board_router = APIRouter(dependencies=[Depends(get_current_user)])
task_router = APIRouter(dependencies=[Depends(get_current_user)])


# Authentication


@auth_router.post("/register", response_model=MessageResponse, status_code=201)
def register(payload: RegisterRequest, db: DbClient = Depends(get_db_client)):
    auth.register(db, payload.name, payload.email, payload.password)
    return MessageResponse(message="User registered successfully")


@auth_router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    token = auth.login(
        db,
        payload.email,
        payload.password,
        secret=settings.jwt_secret,
        expires_in=settings.jwt_expire,
    )
    return TokenResponse(token=token)


@auth_router.get("/verify", response_model=VerifyResponse)
def verify(
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    view = users.get_profile(db, principal)
    return VerifyResponse(user=PublicUser.from_record(view.user))


# Users


@user_router.get("/profile", response_model=ProfileResponse)
def get_profile(
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return ProfileResponse.from_view(users.get_profile(db, principal))


@user_router.put("/update", response_model=UpdateProfileResponse)
def update_profile(
    payload: UpdateProfileRequest,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    user = users.update_profile(
        db,
        storage,
        principal,
        name=payload.name,
        profile_image=payload.profile_image,
        max_image_bytes=settings.max_image_bytes,
    )
    return UpdateProfileResponse(
        message="Profile updated successfully", user=UserSummary.from_record(user)
    )


@user_router.post("/find-by-email", response_model=list[EmailEntry])
def find_by_email(payload: FindByEmailRequest, db: DbClient = Depends(get_db_client)):
    found = users.find_by_emails(db, payload.emails)
    return [EmailEntry(id=u.id, email=u.email) for u in found]


@user_router.post("/send-friend-request", response_model=MessageResponse)
def send_friend_request(
    payload: FriendRequestPayload,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    users.send_friend_request(db, principal, payload.email)
    return MessageResponse(message="Friend request sent")


@user_router.post("/accept-friend-request", response_model=AcceptRequestResponse)
def accept_friend_request(
    payload: RequestIdPayload,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    contact = users.accept_friend_request(db, principal, payload.request_id)
    return AcceptRequestResponse(
        message="Request accepted successfully",
        new_contact=UserSummary.from_record(contact),
    )


@user_router.post("/reject-friend-request", response_model=MessageResponse)
def reject_friend_request(
    payload: RequestIdPayload,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    users.reject_friend_request(db, principal, payload.request_id)
    return MessageResponse(message="Request rejected and removed")


@user_router.get("/contacts", response_model=list[UserSummary])
def get_contacts(
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [UserSummary.from_record(c) for c in users.get_contacts(db, principal)]


@user_router.get("/admin", response_model=list[PublicUser])
def list_users(
    principal: Principal = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return [PublicUser.from_record(u) for u in users.list_users(db)]


@user_router.delete("/admin/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    principal: Principal = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    users.delete_user(db, storage, principal, user_id)
    return MessageResponse(message="User, boards and tasks deleted successfully")


# Boards


@board_router.post("/create", response_model=BoardResponse, status_code=201)
def create_board(
    payload: BoardCreateRequest,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    board = boards.create_board(
        db,
        principal,
        title=payload.title,
        description=payload.description,
        members=payload.members,
    )
    return BoardResponse(message="Board created successfully", board=BoardOut.from_record(board))


@board_router.get("/", response_model=list[BoardListItem])
def list_boards(
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [BoardListItem.from_summary(s) for s in boards.list_boards(db, principal)]


@board_router.get("/{board_id}", response_model=BoardDetailResponse)
def get_board(
    board_id: str,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return BoardDetailResponse.from_detail(boards.get_board(db, principal, board_id))


@board_router.put("/{board_id}", response_model=BoardResponse)
def update_board(
    board_id: str,
    payload: BoardUpdateRequest,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    board = boards.update_board(
        db,
        principal,
        board_id,
        title=payload.title,
        description=payload.description,
        members=payload.members,
    )
    return BoardResponse(message="Board updated", board=BoardOut.from_record(board))


@board_router.delete("/{board_id}", response_model=MessageResponse)
def delete_board(
    board_id: str,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    boards.delete_board(db, principal, board_id)
    return MessageResponse(message="Board and its tasks deleted successfully")


# Tasks


@task_router.post("/create", response_model=TaskResponse, status_code=201)
def create_task(
    payload: TaskCreateRequest,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    task = tasks.create_task(
        db,
        principal,
        payload.board,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        priority=payload.priority,
        due_date=payload.due_date,
    )
    return TaskResponse(message="Task created successfully", task=TaskOut.from_record(task))


@task_router.get("/board/{board_id}", response_model=list[TaskOut])
def list_tasks(
    board_id: str,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [TaskOut.from_record(t) for t in tasks.list_tasks(db, principal, board_id)]


@task_router.get("/{task_id}", response_model=TaskDetailOut)
def get_task(
    task_id: str,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return TaskDetailOut.from_detail(tasks.get_task(db, principal, task_id))


@task_router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: TaskUpdateRequest,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    task = tasks.update_task(
        db, principal, task_id, payload.model_dump(exclude_unset=True)
    )
    return TaskResponse(message="Task updated successfully", task=TaskOut.from_record(task))


@task_router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: str,
    principal: Principal = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    tasks.delete_task(db, principal, task_id)
    return MessageResponse(message="Task deleted successfully")
