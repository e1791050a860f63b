"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from taskboard.auth import Principal, resolve_principal
from taskboard.config import Settings, get_settings
from taskboard.db import DbClient, InMemoryDbClient, PostgresDbClient
from taskboard.errors import AuthenticationFailed, PermissionDenied
from taskboard.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_url=settings.storage_public_url,
        )
    return _storage_client


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthenticationFailed("Access denied")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationFailed("Access denied")
    return token.strip()


def get_current_user(
    token: str = Depends(bearer_token),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> Principal:
    return resolve_principal(db, token, settings.jwt_secret)


def require_admin(principal: Principal = Depends(get_current_user)) -> Principal:
    if not principal.is_admin:
        raise PermissionDenied("Access denied: administrators only")
    return principal
