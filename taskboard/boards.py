"""
Board lifecycle: creation, membership, reads and cascading deletion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from taskboard import validation
from taskboard.auth import Principal
from taskboard.db import DbClient, UnitOfWork
from taskboard.errors import NotFound, PermissionDenied, ValidationFailed
from taskboard.records import BoardRecord, TaskRecord, UserRecord, merge_members

logger = logging.getLogger(__name__)


@dataclass
class BoardSummary:
    board: BoardRecord
    owner: Optional[UserRecord]
    task_count: int


@dataclass
class BoardDetail:
    board: BoardRecord
    owner: Optional[UserRecord]
    members: list[UserRecord]
    tasks: list[TaskRecord]


def _ensure_users_exist(uow: UnitOfWork, user_ids: list[str]) -> None:
    found = {user.id for user in uow.get_users(user_ids)}
    missing = [user_id for user_id in user_ids if user_id not in found]
    if missing:
        raise ValidationFailed("Some members do not exist", missing=missing)


def _get_owned_board(uow: UnitOfWork, actor: Principal, board_id: str, action: str) -> BoardRecord:
    board = uow.get_board(board_id)
    if not board:
        raise NotFound("Board not found")
    if board.owner != actor.id:
        raise PermissionDenied(f"Only the owner can {action} this board")
    return board


def create_board(
    db: DbClient,
    actor: Principal,
    title: str,
    description: Optional[str] = None,
    members: Optional[list[str]] = None,
) -> BoardRecord:
    board = BoardRecord(
        title=validation.board_title(title),
        description=validation.description(description),
        owner=actor.id,
        members=merge_members(members or [], actor.id),
    )
    with db.unit_of_work() as uow:
        _ensure_users_exist(uow, board.members)
        uow.add_board(board)
    logger.info("User %s created board %s", actor.id, board.id)
    return board


def list_boards(db: DbClient, actor: Principal) -> list[BoardSummary]:
    """Boards the actor belongs to, with the owner resolved and a task count."""
    with db.unit_of_work() as uow:
        boards = uow.list_boards_for_member(actor.id)
        owners = {u.id: u for u in uow.get_users(list({b.owner for b in boards}))}
        return [
            BoardSummary(
                board=board,
                owner=owners.get(board.owner),
                task_count=uow.count_tasks_for_board(board.id),
            )
            for board in boards
        ]


def get_board(db: DbClient, actor: Principal, board_id: str) -> BoardDetail:
    with db.unit_of_work() as uow:
        board = uow.get_board(board_id)
        if not board:
            raise NotFound("Board not found")
        if not board.is_member(actor.id):
            raise PermissionDenied("Access denied")
        people = {u.id: u for u in uow.get_users(board.members)}
        return BoardDetail(
            board=board,
            owner=people.get(board.owner),
            members=[
                people[m] for m in board.members if m != board.owner and m in people
            ],
            tasks=uow.list_tasks_for_board(board.id),
        )


def update_board(
    db: DbClient,
    actor: Principal,
    board_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    members: Optional[list[str]] = None,
) -> BoardRecord:
    with db.unit_of_work() as uow:
        board = _get_owned_board(uow, actor, board_id, "edit")
        if title is not None:
            board.title = validation.board_title(title)
        if description is not None:
            board.description = validation.description(description)
        if members is not None:
            board.members = merge_members(members, board.owner)
            _ensure_users_exist(uow, board.members)
        uow.save_board(board)
    logger.info("User %s updated board %s", actor.id, board.id)
    return board


def delete_board(db: DbClient, actor: Principal, board_id: str) -> int:
    """Delete a board and all of its tasks; returns the number of tasks removed."""
    with db.unit_of_work() as uow:
        board = _get_owned_board(uow, actor, board_id, "delete")
        removed = uow.delete_tasks_for_board(board.id)
        uow.delete_board(board.id)
    logger.info("User %s deleted board %s and %d tasks", actor.id, board_id, removed)
    return removed
