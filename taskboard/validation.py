"""
Input validation run by the services before any write.

Each helper returns the normalized value or raises `ValidationFailed`.
"""

from __future__ import annotations

import base64
import binascii
import re
from enum import Enum
from typing import Optional, TypeVar

from taskboard.errors import ValidationFailed
from taskboard.records import TaskPriority, TaskStatus

NAME_MAX_LENGTH = 60
EMAIL_MAX_LENGTH = 60
TITLE_MAX_LENGTH = 40
DESCRIPTION_MAX_LENGTH = 150

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")
DATA_URI_PATTERN = re.compile(
    r"^data:(?P<type>image/[a-zA-Z0-9.+-]+);base64,(?P<data>.+)$", re.DOTALL
)

E = TypeVar("E", bound=Enum)


def required_text(value: Optional[str], label: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationFailed(f"{label} is required")
    if len(text) > max_length:
        raise ValidationFailed(
            f"{label} cannot be longer than {max_length} characters"
        )
    return text


def optional_text(value: Optional[str], label: str, max_length: int) -> str:
    text = value or ""
    if len(text) > max_length:
        raise ValidationFailed(
            f"{label} cannot be longer than {max_length} characters"
        )
    return text


def enum_value(value, enum_cls: type[E], label: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailed(f"{label} must be one of: {allowed}") from None


def user_name(value: Optional[str]) -> str:
    return required_text(value, "Name", NAME_MAX_LENGTH)


def email(value: Optional[str]) -> str:
    address = required_text(value, "Email", EMAIL_MAX_LENGTH)
    if not EMAIL_PATTERN.match(address):
        raise ValidationFailed("Email is not valid")
    return address


def password(value: Optional[str]) -> str:
    if not value:
        raise ValidationFailed("Password is required")
    return value


def board_title(value: Optional[str]) -> str:
    return required_text(value, "Title", TITLE_MAX_LENGTH)


def task_title(value: Optional[str]) -> str:
    return required_text(value, "Task title", TITLE_MAX_LENGTH)


def description(value: Optional[str]) -> str:
    return optional_text(value, "Description", DESCRIPTION_MAX_LENGTH)


def task_status(value: Optional[str]) -> TaskStatus:
    return enum_value(value or TaskStatus.TODO.value, TaskStatus, "Status")


def task_priority(value: Optional[str]) -> TaskPriority:
    return enum_value(value or TaskPriority.MEDIUM.value, TaskPriority, "Priority")


def image_data_uri(value: str, max_bytes: int) -> tuple[bytes, str]:
    """Decode a `data:image/...;base64,` URI into (bytes, content type)."""
    match = DATA_URI_PATTERN.match(value.strip())
    if not match:
        raise ValidationFailed("Profile image must be a base64 image data URI")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("Profile image is not valid base64") from None
    if not data:
        raise ValidationFailed("Profile image is empty")
    if len(data) > max_bytes:
        raise ValidationFailed("Profile image is too large")
    return data, match.group("type")
