# src/backup_keeper/core/outcome.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Outcome(Generic[T]):
    """
    Result of a recoverable I/O operation (query, upload, delete, download).

    Adapters convert transport/storage exceptions into a failed Outcome at their
    boundary, so callers branch on `ok` instead of catching.
    """

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Outcome[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> Outcome[T]:
        return cls(ok=False, error=error or "unknown error")

    def __bool__(self) -> bool:
        return self.ok
