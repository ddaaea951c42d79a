# src/backup_keeper/storage/s3_store.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.outcome import Outcome
from ..core.ports import RemoteHandle

logger = logging.getLogger(__name__)


class S3Store:
    """
    RemoteStore backed by an S3-compatible bucket (AWS S3, R2, MinIO...).

    Scope maps to a key prefix: <prefix>/<scope>/<file name>.
    put_object replaces an object in one request, which gives the
    whole-document-or-nothing behaviour the schedule store relies on.
    """

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        client: Any | None = None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required")
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._client = client or boto3.client("s3", endpoint_url=endpoint_url or None, region_name=region_name or None)
        self._log = log or logger
        self._log.info("S3Store ready bucket=%s prefix=%s", bucket, self._prefix or "/")

    def _key(self, name: str, scope: str) -> str:
        parts = [p for p in (self._prefix, scope.strip("/"), name) if p]
        return "/".join(parts)

    def find(self, name: str, scope: str) -> RemoteHandle | None:
        key = self._key(name, scope)
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in ("404", "NoSuchKey", "NotFound"):
                self._log.error("Error looking up %s: %s", key, e)
            return None
        except BotoCoreError as e:
            self._log.error("Error looking up %s: %s", key, e)
            return None
        return RemoteHandle(id=key, name=name, scope=scope)

    def upload(
        self,
        path: str | Path,
        scope: str,
        content_type: str = "application/octet-stream",
    ) -> Outcome[RemoteHandle]:
        source = Path(path)
        key = self._key(source.name, scope)
        try:
            with source.open("rb") as f:
                self._client.put_object(Bucket=self._bucket, Key=key, Body=f, ContentType=content_type)
        except OSError as e:
            self._log.error("File does not exist or is unreadable: %s (%s)", source, e)
            return Outcome.failure(str(e))
        except (ClientError, BotoCoreError) as e:
            self._log.error("Failed to upload %s to %s: %s", source.name, key, e)
            return Outcome.failure(str(e))

        self._log.info("Uploaded %s to s3://%s/%s", source.name, self._bucket, key)
        return Outcome.success(RemoteHandle(id=key, name=source.name, scope=scope))

    def delete(self, handle: RemoteHandle) -> Outcome[None]:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=handle.id)
        except (ClientError, BotoCoreError) as e:
            self._log.error("Failed to delete %s: %s", handle.id, e)
            return Outcome.failure(str(e))
        self._log.info("Deleted s3://%s/%s", self._bucket, handle.id)
        return Outcome.success(None)

    def read_text(self, handle: RemoteHandle) -> Outcome[str]:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=handle.id)
            body = resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            self._log.error("Failed to read %s: %s", handle.id, e)
            return Outcome.failure(str(e))

        try:
            return Outcome.success(body.decode("utf-8"))
        except UnicodeDecodeError as e:
            self._log.error("Object %s is not UTF-8 text: %s", handle.id, e)
            return Outcome.failure(str(e))
