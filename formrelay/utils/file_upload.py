"""Helpers for upload size checks and file names."""

from __future__ import annotations

import mimetypes
import re
from os import SEEK_END

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool


MULTIPART_OVERHEAD_BYTES = 64 * 1024
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._\- ]+")


def content_length_exceeds_limit(
    content_length_header: str | None,
    *,
    max_size_bytes: int,
    overhead_bytes: int = MULTIPART_OVERHEAD_BYTES,
) -> bool:
    """Return True when Content-Length clearly exceeds the allowed file size."""
    if not content_length_header:
        return False
    try:
        content_length = int(content_length_header)
    except (TypeError, ValueError):
        return False
    return content_length > (max_size_bytes + overhead_bytes)


async def get_upload_file_size(file: UploadFile) -> int:
    """Read size from the underlying file object without loading into memory."""

    def _get_size() -> int:
        stream = file.file
        original_pos = stream.tell()
        try:
            stream.seek(0, SEEK_END)
            return stream.tell()
        finally:
            stream.seek(original_pos)

    return await run_in_threadpool(_get_size)


def file_extension(filename: str | None) -> str:
    """Lowercase extension without the dot ('' when there is none)."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def safe_filename(filename: str | None, default: str = "file") -> str:
    """Strip path components and unusual characters from a client file name."""
    if not filename:
        return default
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip(" .")
    return name[:255] or default


def guess_content_type(filename: str, declared: str | None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"
