"""File storage for form logos and public uploads (local disk or S3)."""

import logging
import os
from typing import BinaryIO

import boto3
from botocore.exceptions import ClientError

from formrelay.core.config import settings

logger = logging.getLogger(__name__)


class StoredFileNotFound(LookupError):
    """Raised when a storage key has no content behind it."""


# =============================================================================
# Storage Backend
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        endpoint_url=settings.S3_ENDPOINT_URL or None,
    )


def _get_storage_backend() -> str:
    """Get configured storage backend."""
    return settings.STORAGE_BACKEND


def _get_local_storage_path() -> str:
    """Get local storage directory path."""
    path = settings.LOCAL_STORAGE_PATH
    os.makedirs(path, exist_ok=True)
    return path


def _local_path(storage_key: str) -> str:
    root = os.path.abspath(_get_local_storage_path())
    path = os.path.abspath(os.path.join(root, storage_key))
    if os.path.commonpath([root, path]) != root:
        raise ValueError("Invalid storage key")
    return path


def build_storage_key(
    workspace_id: str, form_id: object, kind: str, object_id: object, extension: str
) -> str:
    """Key layout: {workspace}/{form}/{kind}/{id}.{ext}"""
    suffix = f".{extension}" if extension else ""
    return f"{workspace_id}/{form_id}/{kind}/{object_id}{suffix}"


# =============================================================================
# File Operations
# =============================================================================

def store_file(storage_key: str, file: BinaryIO, content_type: str | None = None) -> None:
    """Store file to configured backend."""
    file.seek(0)
    if _get_storage_backend() == "s3":
        extra_args = {"ContentType": content_type} if content_type else None
        _get_s3_client().upload_fileobj(
            file, settings.S3_BUCKET, storage_key, ExtraArgs=extra_args
        )
        return

    path = _local_path(storage_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        for chunk in iter(lambda: file.read(64 * 1024), b""):
            f.write(chunk)


def load_file(storage_key: str) -> bytes:
    """Read stored content into memory."""
    if _get_storage_backend() == "s3":
        try:
            obj = _get_s3_client().get_object(Bucket=settings.S3_BUCKET, Key=storage_key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise StoredFileNotFound(storage_key) from exc
            raise
        return obj["Body"].read()

    path = _local_path(storage_key)
    if not os.path.exists(path):
        raise StoredFileNotFound(storage_key)
    with open(path, "rb") as f:
        return f.read()


def delete_file(storage_key: str) -> None:
    """Delete file from storage. Missing files are ignored."""
    if _get_storage_backend() == "s3":
        _get_s3_client().delete_object(Bucket=settings.S3_BUCKET, Key=storage_key)
        return

    path = _local_path(storage_key)
    if os.path.exists(path):
        os.remove(path)


def delete_files_quietly(storage_keys: list[str]) -> None:
    """Best-effort cleanup after the database rows are gone."""
    for key in storage_keys:
        try:
            delete_file(key)
        except (OSError, ClientError, ValueError):
            logger.warning("Failed to delete stored file %s", key, exc_info=True)
