# src/backup_keeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler and the log aggregator depend on Protocols instead of concrete
implementations. This keeps storage backends / HTTP sources swappable and makes
testing easier (see tests/fakes.py).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .outcome import Outcome


@dataclass(slots=True, frozen=True)
class RemoteHandle:
    """Opaque reference to a stored object (file id, object key, path...)."""

    id: str
    name: str
    scope: str


@dataclass(slots=True, frozen=True)
class LogEntry:
    """One raw line as returned by the log query source."""

    timestamp_ns: int
    line: str


class RemoteStore(Protocol):
    """
    Durable named-file store (cloud folder, bucket prefix, local directory).

    `upload` is an upsert: if an object with the same file name exists in the
    scope it is replaced in a single call, otherwise a new one is created.
    """

    def find(self, name: str, scope: str) -> RemoteHandle | None: ...

    def upload(self, path: str | Path, scope: str, content_type: str = "application/octet-stream") -> Outcome[RemoteHandle]: ...

    def delete(self, handle: RemoteHandle) -> Outcome[None]: ...

    def read_text(self, handle: RemoteHandle) -> Outcome[str]: ...


class LogSource(Protocol):
    """Paginated, time-range-queryable log store (most recent entries first)."""

    async def query(
            self,
            filter_expr: str,
            *,
            start_ns: int,
            end_ns: int,
            limit: int,
    ) -> Outcome[list[LogEntry]]: ...


class HealthProbe(Protocol):
    async def check(self) -> bool: ...


class RunnableTask(Protocol):
    """A scheduled job. Raising from `run` marks the run as failed."""

    async def run(self) -> None: ...
