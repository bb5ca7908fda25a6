"""Tests for local file storage."""

import io

import pytest

from formrelay.services import storage_service


def test_store_load_delete():
    key = storage_service.build_storage_key("ws", "form", "uploads", "abc", "txt")
    assert key == "ws/form/uploads/abc.txt"

    storage_service.store_file(key, io.BytesIO(b"content"))
    assert storage_service.load_file(key) == b"content"

    storage_service.delete_file(key)
    with pytest.raises(storage_service.StoredFileNotFound):
        storage_service.load_file(key)


def test_storage_key_without_extension():
    assert storage_service.build_storage_key("ws", "f", "logo", "id", "") == "ws/f/logo/id"


def test_keys_cannot_escape_storage_root():
    with pytest.raises(ValueError, match="Invalid storage key"):
        storage_service.load_file("../../etc/passwd")


def test_delete_files_quietly_ignores_missing_and_invalid_keys():
    storage_service.delete_files_quietly(["ws/f/uploads/missing.txt", "../outside"])


def test_s3_backend_uses_bucket(monkeypatch):
    calls = {}

    class FakeS3:
        def upload_fileobj(self, file, bucket, key, ExtraArgs=None):
            calls["upload"] = (bucket, key, file.read(), ExtraArgs)

        def delete_object(self, Bucket, Key):
            calls["delete"] = (Bucket, Key)

    monkeypatch.setattr(storage_service.settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(storage_service.settings, "S3_BUCKET", "forms-bucket")
    monkeypatch.setattr(storage_service, "_get_s3_client", lambda: FakeS3())

    storage_service.store_file("ws/f/logo/x.png", io.BytesIO(b"png"), "image/png")
    storage_service.delete_file("ws/f/logo/x.png")

    assert calls["upload"] == ("forms-bucket", "ws/f/logo/x.png", b"png", {"ContentType": "image/png"})
    assert calls["delete"] == ("forms-bucket", "ws/f/logo/x.png")
