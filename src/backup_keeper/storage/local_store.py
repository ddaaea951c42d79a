# src/backup_keeper/storage/local_store.py

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..core.outcome import Outcome
from ..core.ports import RemoteHandle

logger = logging.getLogger(__name__)


class LocalFolderStore:
    """
    RemoteStore backed by a directory tree: <root>/<scope>/<file name>.

    Useful for a mounted network share / synced folder and for local runs.
    Uploads are copied to a temp file in the target directory and moved into
    place with os.replace, so readers never see a half-written object.
    """

    def __init__(self, root: str | Path, *, log: logging.Logger | None = None) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._log = log or logger
        self._log.info("LocalFolderStore ready root=%s", self._root)

    def _scope_dir(self, scope: str) -> Path:
        scope = (scope or "").strip().strip("/")
        if ".." in Path(scope).parts:
            raise ValueError(f"invalid scope: {scope!r}")
        return self._root / scope if scope else self._root

    def _handle(self, path: Path, scope: str) -> RemoteHandle:
        return RemoteHandle(id=path.relative_to(self._root).as_posix(), name=path.name, scope=scope)

    def find(self, name: str, scope: str) -> RemoteHandle | None:
        path = self._scope_dir(scope) / name
        if not path.is_file():
            self._log.debug("'%s' not found in scope %s", name, scope)
            return None
        return self._handle(path, scope)

    def upload(
        self,
        path: str | Path,
        scope: str,
        content_type: str = "application/octet-stream",
    ) -> Outcome[RemoteHandle]:
        source = Path(path)
        if not source.is_file():
            self._log.error("File does not exist: %s", source)
            return Outcome.failure(f"file does not exist: {source}")

        try:
            target_dir = self._scope_dir(scope)
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / source.name
            existed = target.exists()

            fd, tmp_name = tempfile.mkstemp(prefix=".upload-", dir=target_dir)
            os.close(fd)
            try:
                shutil.copyfile(source, tmp_name)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, ValueError) as e:
            self._log.error("Failed to upload %s to scope %s: %s", source.name, scope, e)
            return Outcome.failure(str(e))

        self._log.info(
            "%s %s in scope %s (%s)",
            "Updated" if existed else "Uploaded",
            source.name,
            scope,
            content_type,
        )
        return Outcome.success(self._handle(target, scope))

    def delete(self, handle: RemoteHandle) -> Outcome[None]:
        path = self._root / handle.id
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._log.error("Failed to delete %s: %s", handle.id, e)
            return Outcome.failure(str(e))
        self._log.info("Deleted %s", handle.id)
        return Outcome.success(None)

    def read_text(self, handle: RemoteHandle) -> Outcome[str]:
        try:
            return Outcome.success((self._root / handle.id).read_text("utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            self._log.error("Failed to read %s: %s", handle.id, e)
            return Outcome.failure(str(e))
