# src/backup_keeper/logs/aggregator.py

from __future__ import annotations

"""
Log aggregation pipeline.

Pulls a time window from a LogSource with backward pagination, folds
continuation lines (stack frames etc.) into the record they belong to, orders
the result newest-first and appends it to a dated file, then prunes old files.

Pagination contract:
- each page queries [start, current_end] with `limit=page_size`, most recent first
- a page shorter than page_size is the last one
- otherwise current_end moves to the oldest timestamp seen in that page
- a failed or cancelled page stops the loop; records collected so far are kept
"""

import asyncio
import contextlib
import hashlib
import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta
from enum import StrEnum
from pathlib import Path

from ..core.outcome import Outcome
from ..core.ports import LogEntry, LogSource

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
LOG_FILE_GLOB = "logs-*.log"

# CRI container log prefix: "<rfc3339 ts> <stream> <F|P> <message>"
_CRI_STREAM = re.compile(r"^(?:stdout|stderr) [FP](?: |$)")
_LEADING_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_FRACTION = re.compile(r"(\.\d{6})\d+")
# Start of a record block in a written file (see LogRecord.render()).
_BLOCK_START = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3} ")

CONTINUATION_PREFIXES = (" ", "\t", "at ", "---")


@dataclass(slots=True, frozen=True)
class LogRecord:
    timestamp: datetime
    text: str


class CollectStatus(StrEnum):
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class CollectResult:
    records: list[LogRecord] = field(default_factory=list)
    pages: int = 0
    entries: int = 0
    status: CollectStatus = CollectStatus.COMPLETE
    error: str | None = None


def to_unix_ns(dt: datetime) -> int:
    """Millisecond precision, expressed in nanoseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return (dt - EPOCH) // timedelta(milliseconds=1) * 1_000_000


def from_unix_ns(ns: int) -> datetime:
    return EPOCH + timedelta(microseconds=ns // 1000)


def format_display_ts(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime(DISPLAY_FORMAT)[:-3]


def parse_leading_timestamp(token: str) -> datetime | None:
    """Parse an ISO-8601 date/datetime token ("2024-01-01", "2024-01-01T10:00:00.123456789Z")."""
    if not _LEADING_DATE.match(token):
        return None
    s = _FRACTION.sub(r"\1", token.replace("Z", "+00:00"))
    try:
        dt = datetime.fromisoformat(s)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)
    except (ValueError, OverflowError):
        return None


def clean_line(raw: str, fallback: datetime) -> tuple[datetime, str]:
    """
    Split a raw line into (display timestamp, body).

    A leading timestamp token is consumed, then a CRI stream marker
    ("stdout F ", "stderr P ") directly at the start of what remains. The
    message body itself is never rewritten; its leading whitespace marks
    continuation lines.
    """
    line = raw.rstrip("\r\n")
    ts = fallback

    if line[:1] not in (" ", "\t"):
        token, sep, rest = line.partition(" ")
        parsed = parse_leading_timestamp(token)
        if parsed is not None:
            ts = parsed
            line = rest if sep else ""
        m = _CRI_STREAM.match(line)
        if m:
            line = line[m.end():]

    return ts, line.rstrip()


def is_continuation(body: str) -> bool:
    return body.startswith(CONTINUATION_PREFIXES)


def fold_entries(entries: Iterable[LogEntry]) -> list[LogRecord]:
    """
    Fold continuation lines into the preceding record, in source order.

    A continuation line with nothing open before it starts a record of its own.
    Blank bodies are dropped.
    """
    records: list[LogRecord] = []
    buf: list[str] = []
    buf_ts: datetime | None = None

    def flush() -> None:
        nonlocal buf, buf_ts
        if buf and buf_ts is not None:
            records.append(LogRecord(timestamp=buf_ts, text="\n".join(buf)))
        buf = []
        buf_ts = None

    for entry in entries:
        ts, body = clean_line(entry.line, from_unix_ns(entry.timestamp_ns))
        if not body.strip():
            continue

        if buf and is_continuation(body):
            buf.append(body)
            continue

        flush()
        buf = [f"{format_display_ts(ts)} {body.lstrip() if is_continuation(body) else body}"]
        buf_ts = ts

    flush()
    return records


def log_file_name(day: datetime) -> str:
    return f"logs-{day:%d-%m}.log"


def _created_at(path: Path) -> float:
    st = path.stat()
    # st_birthtime is only exposed on some platforms; mtime is the closest stand-in elsewhere.
    return float(getattr(st, "st_birthtime", st.st_mtime))


def _block_hashes(text: str) -> set[str]:
    hashes: set[str] = set()
    block: list[str] = []
    for line in text.splitlines():
        if _BLOCK_START.match(line) and block:
            hashes.add(hashlib.sha256("\n".join(block).encode("utf-8")).hexdigest())
            block = []
        block.append(line)
    if block:
        hashes.add(hashlib.sha256("\n".join(block).encode("utf-8")).hexdigest())
    return hashes


class LogAggregator:
    def __init__(
        self,
        source: LogSource,
        *,
        output_dir: str | Path,
        filter_expr: str,
        page_size: int = 1000,
        keep_files: int = 7,
        dedupe: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._source = source
        self._output_dir = Path(output_dir)
        self._filter_expr = filter_expr
        self._page_size = int(page_size)
        self._keep_files = max(1, int(keep_files))
        self._dedupe = dedupe
        self._log = log or logger

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def _fetch_page(
            self,
            filter_expr: str,
            start_ns: int,
            end_ns: int,
            limit: int,
            cancel_event: asyncio.Event | None,
    ) -> Outcome[list[LogEntry]] | None:
        """Returns None when cancel_event fires before the page arrives."""
        fetch = self._source.query(filter_expr, start_ns=start_ns, end_ns=end_ns, limit=limit)
        if cancel_event is None:
            return await fetch

        fetch_task = asyncio.ensure_future(fetch)
        stop_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({fetch_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            fetch_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if fetch_task in done:
            return fetch_task.result()

        fetch_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await fetch_task
        return None

    async def collect(
            self,
            window_start: datetime,
            window_end: datetime,
            *,
            filter_expr: str | None = None,
            page_size: int | None = None,
            cancel_event: asyncio.Event | None = None,
    ) -> CollectResult:
        query = filter_expr if filter_expr is not None else self._filter_expr
        limit = int(page_size or self._page_size)
        start_ns = to_unix_ns(window_start)
        current_end = to_unix_ns(window_end)

        result = CollectResult()
        seen: set[LogEntry] = set()
        records: list[LogRecord] = []

        self._log.info("Fetching logs from %s to %s (UTC)", window_start.isoformat(), window_end.isoformat())

        while True:
            if cancel_event is not None and cancel_event.is_set():
                result.status = CollectStatus.CANCELLED
                break

            page = await self._fetch_page(query, start_ns, current_end, limit, cancel_event)
            if page is None:
                self._log.warning("Log collection cancelled after %d page(s); keeping partial results.", result.pages)
                result.status = CollectStatus.CANCELLED
                break
            if not page.ok:
                self._log.error("Log query failed after %d page(s): %s", result.pages, page.error)
                result.status = CollectStatus.FAILED
                result.error = page.error
                break

            entries = page.value or []
            result.pages += 1

            fresh = [e for e in entries if e not in seen]
            seen.update(fresh)
            result.entries += len(fresh)
            records.extend(fold_entries(fresh))

            self._log.info("Fetched %d log entries (%d new).", len(entries), len(fresh))

            if len(entries) < limit:
                break

            oldest = min(e.timestamp_ns for e in entries)
            if oldest >= current_end or not fresh:
                self._log.warning("Pagination did not advance past %s; stopping.", current_end)
                break
            self._log.debug("Continuing pagination: new end timestamp %s", oldest)
            current_end = oldest

        result.records = sorted(records, key=lambda r: r.timestamp, reverse=True)
        return result

    def write(self, records: list[LogRecord], day: datetime) -> Path:
        """Append records to the file for `day` (created if missing). Never rewrites existing content."""
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / log_file_name(day)

        to_write = records
        if self._dedupe and path.exists():
            known = _block_hashes(path.read_text("utf-8", errors="replace"))
            to_write = [
                r for r in records if hashlib.sha256(r.text.encode("utf-8")).hexdigest() not in known
            ]
            if len(to_write) != len(records):
                self._log.info("Skipping %d record(s) already present in %s", len(records) - len(to_write), path.name)

        existed = path.exists()
        with path.open("a", encoding="utf-8") as f:
            for r in to_write:
                f.write(r.text)
                f.write("\n")

        if existed:
            self._log.info("Appended %d log entries to existing file %s", len(to_write), path)
        else:
            self._log.info("Created new log file %s with %d entries", path, len(to_write))
        return path

    def enforce_retention(self, keep: int | None = None) -> list[Path]:
        """Keep the `keep` most recently created dated log files, delete the rest."""
        keep = self._keep_files if keep is None else max(0, int(keep))
        if not self._output_dir.is_dir():
            return []

        files = sorted(self._output_dir.glob(LOG_FILE_GLOB), key=_created_at, reverse=True)
        deleted: list[Path] = []
        for path in files[keep:]:
            try:
                os.remove(path)
            except OSError as e:
                self._log.error("Failed to delete old log file %s: %s", path.name, e)
                continue
            self._log.info("Deleted old log file: %s", path.name)
            deleted.append(path)
        return deleted

    async def run(self, now: datetime, *, cancel_event: asyncio.Event | None = None) -> tuple[Path, CollectResult]:
        """Collect today's logs (00:00 UTC .. now), append them to today's file, prune old files."""
        now = now.astimezone(UTC) if now.tzinfo else now.replace(tzinfo=UTC)
        day_start = datetime.combine(now.date(), time.min, tzinfo=UTC)

        result = await self.collect(day_start, now, cancel_event=cancel_event)
        path = self.write(result.records, now)
        self.enforce_retention()
        return path, result
