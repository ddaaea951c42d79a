# tests/test_storage.py

from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError

from backup_keeper.core.ports import RemoteHandle
from backup_keeper.storage.local_store import LocalFolderStore
from backup_keeper.storage.s3_store import S3Store


def test_local_store_upload_find_read_delete(tmp_path) -> None:
    store = LocalFolderStore(tmp_path / "remote")
    src = tmp_path / "notes.txt"
    src.write_text("v1", "utf-8")

    res = store.upload(src, "logs", "text/plain")
    assert res.ok
    assert res.value == RemoteHandle(id="logs/notes.txt", name="notes.txt", scope="logs")

    handle = store.find("notes.txt", "logs")
    assert handle is not None
    assert store.read_text(handle).value == "v1"

    src.write_text("v2", "utf-8")
    assert store.upload(src, "logs").ok
    assert store.read_text(handle).value == "v2"
    # No temp files are left next to the object.
    assert [p.name for p in (tmp_path / "remote" / "logs").iterdir()] == ["notes.txt"]

    assert store.delete(handle).ok
    assert store.find("notes.txt", "logs") is None
    assert store.delete(handle).ok


def test_local_store_missing_source_and_bad_scope(tmp_path) -> None:
    store = LocalFolderStore(tmp_path / "remote")

    assert not store.upload(tmp_path / "nope.db", "database").ok

    src = tmp_path / "a.txt"
    src.write_text("x", "utf-8")
    res = store.upload(src, "../outside")
    assert not res.ok
    assert not (tmp_path / "outside").exists()

    with pytest.raises(ValueError):
        store.find("a.txt", "../outside")


class _FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}

    def head_object(self, *, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[Key][0])}

    def put_object(self, *, Bucket: str, Key: str, Body, ContentType: str) -> dict:
        self.objects[Key] = (Body.read(), ContentType)
        return {}

    def delete_object(self, *, Bucket: str, Key: str) -> dict:
        self.objects.pop(Key, None)
        return {}

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key][0])}


def test_s3_store_keys_objects_by_prefix_and_scope(tmp_path) -> None:
    client = _FakeS3Client()
    store = S3Store("backups", prefix="/webistecs/", client=client)
    src = tmp_path / "scheduled_tasks_status.json"
    src.write_text("{}", "utf-8")

    assert store.find(src.name, "config") is None

    res = store.upload(src, "config", "application/json")
    assert res.ok
    assert client.objects["webistecs/config/scheduled_tasks_status.json"] == (b"{}", "application/json")

    handle = store.find(src.name, "config")
    assert handle == RemoteHandle(id="webistecs/config/scheduled_tasks_status.json", name=src.name, scope="config")
    assert store.read_text(handle).value == "{}"

    assert store.delete(handle).ok
    assert store.find(src.name, "config") is None
    assert not store.read_text(handle).ok


def test_s3_store_upload_of_missing_file_fails(tmp_path) -> None:
    store = S3Store("backups", client=_FakeS3Client())

    res = store.upload(tmp_path / "missing.zip", "monitoring")

    assert not res.ok


def test_s3_store_requires_bucket() -> None:
    with pytest.raises(ValueError):
        S3Store("", client=_FakeS3Client())
