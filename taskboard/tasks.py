"""
Task lifecycle on boards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from taskboard import validation
from taskboard.auth import Principal
from taskboard.db import DbClient, UnitOfWork
from taskboard.errors import NotFound, PermissionDenied
from taskboard.records import BoardRecord, TaskRecord, UserRecord

logger = logging.getLogger(__name__)


@dataclass
class TaskDetail:
    task: TaskRecord
    author: Optional[UserRecord]


def _get_member_board(uow: UnitOfWork, actor: Principal, board_id: str) -> BoardRecord:
    board = uow.get_board(board_id)
    if not board:
        raise NotFound("Board does not exist")
    if not board.is_member(actor.id):
        raise PermissionDenied("You are not a member of this board")
    return board


def _get_visible_task(uow: UnitOfWork, actor: Principal, task_id: str) -> TaskRecord:
    task = uow.get_task(task_id)
    if not task:
        raise NotFound("Task not found")
    board = uow.get_board(task.board)
    if not board or not board.is_member(actor.id):
        raise PermissionDenied("You are not a member of this board")
    return task


def create_task(
    db: DbClient,
    actor: Principal,
    board_id: str,
    title: str,
    description: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Optional[date] = None,
) -> TaskRecord:
    task = TaskRecord(
        title=validation.task_title(title),
        description=validation.description(description),
        status=validation.task_status(status),
        priority=validation.task_priority(priority),
        due_date=due_date,
        author=actor.id,
        board=board_id,
    )
    with db.unit_of_work() as uow:
        _get_member_board(uow, actor, board_id)
        uow.add_task(task)
    logger.info("User %s created task %s on board %s", actor.id, task.id, board_id)
    return task


def list_tasks(db: DbClient, actor: Principal, board_id: str) -> list[TaskRecord]:
    with db.unit_of_work() as uow:
        _get_member_board(uow, actor, board_id)
        return uow.list_tasks_for_board(board_id)


def get_task(db: DbClient, actor: Principal, task_id: str) -> TaskDetail:
    with db.unit_of_work() as uow:
        task = _get_visible_task(uow, actor, task_id)
        return TaskDetail(task=task, author=uow.get_user(task.author))


def update_task(db: DbClient, actor: Principal, task_id: str, changes: dict) -> TaskRecord:
    """Apply only the fields present in `changes`.

    A null value leaves the field untouched, except `due_date` where it
    clears the date. An empty status or priority is also left untouched.
    Unknown keys are ignored.
    """
    with db.unit_of_work() as uow:
        task = _get_visible_task(uow, actor, task_id)
        if changes.get("title") is not None:
            task.title = validation.task_title(changes["title"])
        if changes.get("description") is not None:
            task.description = validation.description(changes["description"])
        if changes.get("status"):
            task.status = validation.task_status(changes["status"])
        if changes.get("priority"):
            task.priority = validation.task_priority(changes["priority"])
        if "due_date" in changes:
            task.due_date = changes["due_date"]
        uow.save_task(task)
    logger.info("User %s updated task %s", actor.id, task.id)
    return task


def delete_task(db: DbClient, actor: Principal, task_id: str) -> None:
    with db.unit_of_work() as uow:
        task = uow.get_task(task_id)
        if not task:
            raise NotFound("Task not found")
        if task.author != actor.id:
            raise PermissionDenied("You do not have permission to delete this task")
        uow.delete_task(task.id)
    logger.info("User %s deleted task %s", actor.id, task_id)
