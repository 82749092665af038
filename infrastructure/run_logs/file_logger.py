"""Per-run audit files for remote task runs.

Each run gets one append-only text file under the configured directory. Entries
look like::

    [2025-01-01T00:00:00.000Z] [SSE_task_run.state]
    { ...payload, indented... }
    ================================================================================

Audit logging never affects a run: every failure is downgraded to a warning.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from core.exceptions import LoggingError
from core.utils.background import DetachedTasks
from core.utils.json_serialization import dumps_pretty, sanitize_for_json

logger = logging.getLogger(__name__)

ENTRY_SEPARATOR = "=" * 80
_UNSAFE_RUN_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_SECONDS_PER_DAY = 24 * 60 * 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """Millisecond ISO-8601 timestamp with a ``Z`` suffix."""

    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_log_filename(run_id: str, moment: datetime) -> str:
    stamp = iso_timestamp(moment).replace(":", "-").replace(".", "-")
    return f"{stamp}_{_UNSAFE_RUN_ID_CHARS.sub('_', run_id)}.log"


def format_entry(event_type: str, payload: Any, moment: datetime) -> str:
    body = dumps_pretty(payload if isinstance(payload, str) else sanitize_for_json(payload))
    return f"[{iso_timestamp(moment)}] [{event_type}]\n{body}\n{ENTRY_SEPARATOR}\n\n"


class DurableRunLogger:
    """Append-only audit trail, one file per run id."""

    def __init__(
        self,
        directory: Path | str,
        *,
        retention_days: int = 30,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.directory = Path(directory)
        self.retention_days = retention_days
        self._clock = clock
        self._files: Dict[str, Path] = {}
        self._run_locks: Dict[str, asyncio.Lock] = {}
        self._pending = DetachedTasks("run-log")

    def log_path(self, handle: Any) -> Optional[Path]:
        return self._files.get(str(handle))

    async def open_log(self, handle: Any, meta: Optional[Mapping[str, Any]] = None) -> Optional[Path]:
        """Create the run file with a ``RUN_START`` entry; returns its path or ``None``.

        A run that already has a file keeps it.
        """

        run_id = str(handle)
        try:
            async with self._run_lock(run_id):
                return self._files.get(run_id) or await self._create(run_id, meta)
        except Exception as exc:
            self._warn(LoggingError(f"Failed to create run log: {exc}", run_id=run_id), exc)
            return None

    async def record(self, handle: Any, event_type: str, payload: Any = None) -> None:
        """Append one entry, opening the file lazily for runs seen first here."""

        run_id = str(handle)
        try:
            async with self._run_lock(run_id):
                await self._append_entry(run_id, event_type, payload)
        except Exception as exc:
            self._warn(
                LoggingError(f"Failed to write {event_type} entry: {exc}", run_id=run_id),
                exc,
            )

    def emit(self, handle: Any, event_type: str, payload: Any = None) -> None:
        """Schedule :meth:`record` without waiting for the write."""

        self._pending.spawn(
            self.record(handle, event_type, payload),
            description=f"run log {event_type}",
        )

    def emit_open(self, handle: Any, meta: Optional[Mapping[str, Any]], created: Mapping[str, Any]) -> None:
        """Detached ``open_log`` followed by a ``TASK_CREATED`` entry, in that order."""

        run_id = str(handle)

        async def _open_then_record() -> None:
            try:
                async with self._run_lock(run_id):
                    if run_id not in self._files:
                        await self._create(run_id, meta)
                    await self._append_entry(run_id, "TASK_CREATED", dict(created))
            except Exception as exc:
                self._warn(LoggingError(f"Failed to open run log: {exc}", run_id=run_id), exc)

        self._pending.spawn(_open_then_record(), description="run log open")

    async def drain(self) -> None:
        await self._pending.drain()

    async def sweep(self, older_than_days: Optional[int] = None) -> int:
        """Delete ``*.log`` files whose mtime is older than the retention window."""

        days = self.retention_days if older_than_days is None else older_than_days
        try:
            removed = await asyncio.to_thread(self._sweep_sync, days * _SECONDS_PER_DAY)
        except Exception as exc:
            self._warn(LoggingError(f"Failed to sweep run logs: {exc}"), exc)
            return 0

        if removed:
            removed_set = set(removed)
            for run_id, path in list(self._files.items()):
                if path in removed_set:
                    self._files.pop(run_id, None)
                    self._run_locks.pop(run_id, None)
            logger.info("Removed %s expired run log(s) from %s", len(removed), self.directory)
        return len(removed)

    def _run_lock(self, run_id: str) -> asyncio.Lock:
        # one writer per run; waiters are served in arrival order
        lock = self._run_locks.get(run_id)
        if lock is None:
            lock = self._run_locks[run_id] = asyncio.Lock()
        return lock

    async def _append_entry(self, run_id: str, event_type: str, payload: Any) -> None:
        path = self._files.get(run_id)
        if path is None:
            path = await self._create(run_id, {"serviceName": "Unknown"})
        entry = format_entry(event_type, payload, self._clock())
        await asyncio.to_thread(self._append, path, entry)

    async def _create(self, run_id: str, meta: Optional[Mapping[str, Any]]) -> Path:
        moment = self._clock()
        path = self.directory / build_log_filename(run_id, moment)
        entry = format_entry(
            "RUN_START",
            {"runId": run_id, "timestamp": iso_timestamp(moment), "metadata": dict(meta or {})},
            moment,
        )
        await asyncio.to_thread(self._write_new, path, entry)
        self._files[run_id] = path
        logger.info("Created run log %s", path, extra={"run_id": run_id})
        return path

    def _write_new(self, path: Path, entry: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(entry, encoding="utf-8")

    @staticmethod
    def _append(path: Path, entry: str) -> None:
        with path.open("a", encoding="utf-8") as handle:
            handle.write(entry)

    def _sweep_sync(self, max_age_seconds: float) -> list[Path]:
        if not self.directory.is_dir():
            return []
        now = time.time()
        removed: list[Path] = []
        for path in self.directory.glob("*.log"):
            try:
                if now - path.stat().st_mtime > max_age_seconds:
                    path.unlink()
                    removed.append(path)
            except FileNotFoundError:
                continue
        return removed

    @staticmethod
    def _warn(error: LoggingError, cause: BaseException) -> None:
        logger.warning("%s", error.message, exc_info=cause, extra={"run_id": error.run_id})


__all__ = ["DurableRunLogger", "ENTRY_SEPARATOR", "build_log_filename", "format_entry", "iso_timestamp"]
