"""
User profiles, contacts and the friend-request workflow.

A pending request lives on the recipient and names the sender. Accepting
links both users as contacts and drops the request in one unit of work;
rejecting only drops it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from taskboard import validation
from taskboard.auth import Principal
from taskboard.db import DbClient, UnitOfWork
from taskboard.errors import Conflict, NotFound, ValidationFailed
from taskboard.records import PendingRequest, RequestStatus, UserRecord
from taskboard.storage import StorageClient

logger = logging.getLogger(__name__)


@dataclass
class RequestView:
    request: PendingRequest
    sender: Optional[UserRecord]


@dataclass
class ProfileView:
    user: UserRecord
    contacts: list[UserRecord]
    requests: list[RequestView]


def _get_user(uow: UnitOfWork, user_id: str) -> UserRecord:
    user = uow.get_user(user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_profile(db: DbClient, actor: Principal) -> ProfileView:
    with db.unit_of_work() as uow:
        user = _get_user(uow, actor.id)
        senders = {
            u.id: u for u in uow.get_users([r.user for r in user.pending_requests])
        }
        return ProfileView(
            user=user,
            contacts=uow.get_users(user.contacts),
            requests=[
                RequestView(request=r, sender=senders.get(r.user))
                for r in user.pending_requests
            ],
        )


def _discard_object(storage: StorageClient, key: str) -> None:
    """Delete a stored object that the database no longer references."""
    if not key:
        return
    try:
        storage.delete_object(key)
    except Exception:
        logger.exception("Failed to delete stored object %s", key)


def update_profile(
    db: DbClient,
    storage: StorageClient,
    actor: Principal,
    name: Optional[str] = None,
    profile_image: Optional[str] = None,
    *,
    max_image_bytes: int,
) -> UserRecord:
    """Rename the actor and/or replace the profile image (a base64 data URI).

    The new image is uploaded before the write and the old one is deleted
    only after it commits, so a failure never leaves the user pointing at a
    missing object.
    """
    new_name = validation.user_name(name) if name else None
    image = (
        validation.image_data_uri(profile_image, max_image_bytes)
        if profile_image
        else None
    )
    stored = None
    old_key = ""
    try:
        with db.unit_of_work() as uow:
            user = _get_user(uow, actor.id)
            if new_name:
                user.name = new_name
            if image:
                data, content_type = image
                stored = storage.upload_image(data, content_type)
                old_key = user.profile_image_key
                user.profile_image = stored.url
                user.profile_image_key = stored.key
            uow.save_user(user)
    except Exception:
        if stored:
            _discard_object(storage, stored.key)
        raise
    _discard_object(storage, old_key)
    return user


def find_by_emails(db: DbClient, emails) -> list[UserRecord]:
    """Resolve every address or fail with the list of unknown ones."""
    if not isinstance(emails, list) or not all(isinstance(e, str) for e in emails):
        raise ValidationFailed("Expected a list of emails")
    with db.unit_of_work() as uow:
        users = uow.find_users_by_emails(emails)
    found = {user.email for user in users}
    not_found = [email for email in emails if email not in found]
    if not_found:
        raise NotFound("Some emails do not exist", notFound=not_found)
    return users


def send_friend_request(db: DbClient, actor: Principal, email: str) -> PendingRequest:
    email = (email or "").strip()
    if not email:
        raise ValidationFailed("Email is required")
    if email == actor.email:
        raise ValidationFailed("You cannot send a request to yourself")
    with db.unit_of_work() as uow:
        recipient = uow.get_user_by_email(email)
        if not recipient:
            raise NotFound("User not found")
        sender = _get_user(uow, actor.id)
        if sender.id in recipient.contacts or recipient.id in sender.contacts:
            raise Conflict("You are already contacts")
        if recipient.has_pending_request_from(sender.id) or sender.has_pending_request_from(
            recipient.id
        ):
            raise Conflict("A request is already pending")
        request = PendingRequest(user=sender.id)
        recipient.pending_requests.append(request)
        uow.save_user(recipient)
    logger.info("User %s sent a contact request to %s", actor.id, recipient.id)
    return request


def _get_pending_request(user: UserRecord, request_id: str) -> PendingRequest:
    request = user.find_request(request_id)
    if not request or request.status != RequestStatus.PENDING:
        raise NotFound("Request not found")
    return request


def accept_friend_request(db: DbClient, actor: Principal, request_id: str) -> UserRecord:
    """Link both users as contacts and drop the request; returns the new contact."""
    with db.unit_of_work() as uow:
        user = _get_user(uow, actor.id)
        request = _get_pending_request(user, request_id)
        sender = uow.get_user(request.user)
        if not sender:
            raise NotFound("Request not found")
        request.status = RequestStatus.ACCEPTED
        user.add_contact(sender.id)
        sender.add_contact(user.id)
        user.remove_request(request.id)
        uow.save_user(user)
        uow.save_user(sender)
    logger.info("User %s accepted contact request from %s", actor.id, sender.id)
    return sender


def reject_friend_request(db: DbClient, actor: Principal, request_id: str) -> None:
    with db.unit_of_work() as uow:
        user = _get_user(uow, actor.id)
        request = _get_pending_request(user, request_id)
        request.status = RequestStatus.REJECTED
        user.remove_request(request.id)
        uow.save_user(user)


def get_contacts(db: DbClient, actor: Principal) -> list[UserRecord]:
    with db.unit_of_work() as uow:
        user = _get_user(uow, actor.id)
        return uow.get_users(user.contacts)


def list_users(db: DbClient) -> list[UserRecord]:
    with db.unit_of_work() as uow:
        return uow.list_users()


def delete_user(db: DbClient, storage: StorageClient, actor: Principal, user_id: str) -> None:
    """Delete a user and every reference to it.

    Owned boards go with their tasks, tasks the user wrote elsewhere are
    removed, and the user is pulled from board members, contact lists and
    pending requests. The profile image is deleted once the write commits.
    """
    with db.unit_of_work() as uow:
        user = _get_user(uow, user_id)
        for board in uow.list_boards_owned_by(user.id):
            uow.delete_tasks_for_board(board.id)
            uow.delete_board(board.id)
        uow.delete_tasks_by_author(user.id)
        uow.pull_member(user.id)
        uow.pull_contact(user.id)
        uow.pull_requests_from(user.id)
        uow.delete_user(user.id)
    _discard_object(storage, user.profile_image_key)
    logger.info("Admin %s deleted user %s", actor.id, user_id)
