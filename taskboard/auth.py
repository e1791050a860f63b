"""
Registration, login and resolution of the authenticated principal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from taskboard import validation
from taskboard.db import DbClient
from taskboard.errors import AuthenticationFailed, Conflict
from taskboard.records import Role, UserRecord
from taskboard.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated user, passed explicitly to every service call."""

    id: str
    name: str
    email: str
    role: Role
    profile_image: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user: UserRecord) -> "Principal":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            profile_image=user.profile_image,
        )


def register(db: DbClient, name: str, email: str, password: str) -> UserRecord:
    user = UserRecord(
        name=validation.user_name(name),
        email=validation.email(email),
        password=hash_password(validation.password(password)),
    )
    with db.unit_of_work() as uow:
        if uow.get_user_by_email(user.email):
            raise Conflict("User already exists")
        uow.add_user(user)
    logger.info("Registered user %s", user.id)
    return user


def login(
    db: DbClient, email: str, password: str, *, secret: str, expires_in: str
) -> str:
    with db.unit_of_work() as uow:
        user = uow.get_user_by_email((email or "").strip())
    if not user or not verify_password(password, user.password):
        logger.warning("Rejected login for %r", email)
        raise AuthenticationFailed("Invalid credentials")
    return create_access_token(user.id, secret, expires_in)


def resolve_principal(db: DbClient, token: str, secret: str) -> Principal:
    user_id = decode_access_token(token, secret)
    with db.unit_of_work() as uow:
        user = uow.get_user(user_id)
    if not user:
        logger.warning("Token for unknown user %s", user_id)
        raise AuthenticationFailed("User not found")
    return Principal.from_user(user)
