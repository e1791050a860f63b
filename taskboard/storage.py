"""
Object storage for profile images: S3-compatible and in-memory clients.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from typing import Optional, Protocol
from uuid import uuid4

import boto3
from botocore.config import Config

PROFILE_IMAGE_PREFIX = "profile_images"

# S3 caps presigned URLs at seven days.
MAX_PRESIGN_SECONDS = 7 * 24 * 3600


@dataclass
class StoredObject:
    key: str
    url: str


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_image(self, data: bytes, content_type: str) -> StoredObject:
        ...

    def delete_object(self, key: str) -> None:
        ...


def profile_image_key(content_type: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ""
    return f"{PROFILE_IMAGE_PREFIX}/{uuid4().hex}{extension}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_image(self, data: bytes, content_type: str) -> StoredObject:
        key = profile_image_key(content_type)
        self.stored_objects[key] = data
        return StoredObject(key=key, url=f"{self.base_url}/{key}")

    def delete_object(self, key: str) -> None:
        self.stored_objects.pop(key, None)

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def _url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{key}"
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=MAX_PRESIGN_SECONDS,
        )

    def upload_image(self, data: bytes, content_type: str) -> StoredObject:
        key = profile_image_key(content_type)
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return StoredObject(key=key, url=self._url_for(key))

    def delete_object(self, key: str) -> None:
        if not key:
            return
        self._client.delete_object(Bucket=self.bucket, Key=key)
