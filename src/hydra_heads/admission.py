"""Capacity accounting and the persistent spawn queue.

Admission is advisory: nothing is reserved between a capacity check and the
spawn that follows, so concurrent invocations may overshoot the ceiling
slightly.

Queue entries are individual ``.queue`` files named
``<priority:03d>_<ns:020d>_<branch>_<pid>.queue``. Sorting filenames yields
priority order, then arrival order. ``process`` deletes an entry's file
before spawning it, so an entry is attempted at most once even if the
process dies mid-spawn (the request is then lost).
"""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from . import log as hydra_log
from . import paths
from .errors import CapacityExceededError, ValidationFailedError
from .locks import LockManager
from .models import QueueEntry
from .state import StateStore

QUEUE_ADD_LOCK = "queue_add"
MIN_PRIORITY = 0
MAX_PRIORITY = 99
DEFAULT_PRIORITY = 50
UNLIMITED = "unlimited"

QueueFormat = Literal["text", "json"]


def _log_debug(message: str) -> None:
    hydra_log.debug(f"[queue] {message}")


def _log_warning(message: str) -> None:
    hydra_log.warning(f"[queue] {message}")


@dataclass(frozen=True)
class SpawnRequest:
    branch: str
    layout: str = "default"
    ai_tool: str | None = None
    group: str | None = None
    deps: tuple[str, ...] = ()


@dataclass(frozen=True)
class SpawnResult:
    branch: str
    session_id: str


class Spawner(Protocol):
    """Creates a head; raises when it cannot.

    Queue processing logs any exception from ``spawn`` and moves on to the
    next entry.
    """

    def spawn(self, request: SpawnRequest) -> SpawnResult: ...


@dataclass(frozen=True)
class QueuedSpawn:
    """A queue entry annotated with how long it has waited."""

    entry: QueueEntry
    position: int
    wait_seconds: int

    def to_payload(self) -> dict[str, object]:
        return {
            "branch": self.entry.branch,
            "ai": self.entry.ai_tool,
            "group": self.entry.group,
            "layout": self.entry.layout,
            "priority": self.entry.priority,
            "requested_at": self.entry.requested_at,
            "wait_seconds": self.wait_seconds,
        }


def format_duration(seconds: int) -> str:
    """Render a wait duration compactly.

    Example:
        >>> [format_duration(s) for s in (45, 185, 7440, 97200)]
        ['45s', '3m 5s', '2h 4m', '1d 3h']
    """
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    if seconds < 86400:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
    return f"{seconds // 86400}d {(seconds % 86400) // 3600}h"


def queue_filename(branch: str, priority: int, arrival_ns: int, pid: int) -> str:
    """Build a queue filename whose sort order is priority, then arrival.

    Example:
        >>> queue_filename("feat/x", 7, 12, 99)
        '007_00000000000000000012_feat_x_99.queue'
    """
    safe_branch = paths.sanitize_name(branch)
    return f"{priority:03d}_{arrival_ns:020d}_{safe_branch}_{pid}{paths.QUEUE_SUFFIX}"


def render_queue(items: list[QueuedSpawn], fmt: QueueFormat = "text") -> str:
    """Render queue entries as a text listing or a JSON document."""
    if fmt == "json":
        return json.dumps({"queue": [item.to_payload() for item in items]})
    if not items:
        return "No pending spawns in queue"
    lines: list[str] = []
    for item in items:
        entry = item.entry
        group = f" [group: {entry.group}]" if entry.group else ""
        lines.append(
            f"  [{item.position}] {entry.branch} ({entry.ai_tool}, pri={entry.priority},"
            f" waiting {format_duration(item.wait_seconds)}){group}"
        )
    lines.append("")
    lines.append(f"Total: {len(items)} pending spawn(s)")
    return "\n".join(lines)


class AdmissionController:
    """Session ceiling checks plus the on-disk spawn queue.

    Args:
        max_sessions: Ceiling on registered heads; 0 means unlimited.
        store: Head registry used for the active count.
        locks: Lock manager for the queue-add lock.
        queue_dir: Directory holding ``.queue`` files.
        spawner: Operation that creates a head for a queued request.
    """

    def __init__(
        self,
        max_sessions: int,
        store: StateStore,
        locks: LockManager,
        queue_dir: Path,
        spawner: Spawner | None = None,
        *,
        clock: Callable[[], float] = time.time,
        arrival_clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._max_sessions = max(0, int(max_sessions))
        self.store = store
        self.locks = locks
        self.queue_dir = queue_dir
        self.spawner = spawner
        self._clock = clock
        self._arrival_clock = arrival_clock
        self._last_arrival_ns = 0

    # -- capacity ----------------------------------------------------------

    def max_capacity(self) -> int:
        return self._max_sessions

    def limit_enabled(self) -> bool:
        return self._max_sessions > 0

    def active_count(self) -> int:
        return self.store.count()

    def would_exceed(self, requested: int = 1) -> bool:
        if not self.limit_enabled():
            return False
        return self.active_count() + requested > self._max_sessions

    def available_capacity(self) -> int | str:
        if not self.limit_enabled():
            return UNLIMITED
        return max(0, self._max_sessions - self.active_count())

    def ensure_capacity(self, requested: int = 1) -> None:
        """Raise when ``requested`` more heads would exceed the ceiling."""
        if self.would_exceed(requested):
            raise CapacityExceededError(self.active_count(), self._max_sessions, requested)

    # -- queue -------------------------------------------------------------

    def _entry_paths(self) -> list[Path]:
        if not self.queue_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.queue_dir.glob(f"*{paths.QUEUE_SUFFIX}")
            if path.is_file() and not path.name.startswith(".")
        )

    def _read_entry(self, path: Path) -> QueueEntry | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return QueueEntry.from_text(text, path=path)
        except ValueError as exc:
            _log_warning(f"ignoring unreadable queue entry {path.name}: {exc}")
            return None

    def entries(self) -> list[QueueEntry]:
        """Queue entries in processing order."""
        loaded = [entry for path in self._entry_paths() if (entry := self._read_entry(path))]
        return sorted(
            loaded,
            key=lambda entry: (entry.priority, entry.path.name if entry.path else ""),
        )

    def _next_arrival_ns(self) -> int:
        # Strictly increasing even when the clock repeats a value.
        self._last_arrival_ns = max(self._arrival_clock(), self._last_arrival_ns + 1)
        return self._last_arrival_ns

    def enqueue(
        self,
        branch: str,
        ai_tool: str | None = None,
        group: str | None = None,
        layout: str | None = None,
        priority: int = DEFAULT_PRIORITY,
    ) -> Path:
        """Persist a spawn request and return its queue file path."""
        if not branch:
            raise ValidationFailedError("branch is required")
        if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            raise ValidationFailedError(
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}"
            )
        entry = QueueEntry(
            branch=branch,
            ai_tool=ai_tool or "claude",
            group=group or None,
            layout=layout or "default",
            priority=priority,
            requested_at=int(self._clock()),
        )
        target = self.queue_dir / queue_filename(
            branch, priority, self._next_arrival_ns(), os.getpid()
        )
        with self.locks.held(QUEUE_ADD_LOCK) as acquired:
            if not acquired:
                _log_warning(f"queue lock busy; adding {branch} without lock (best effort)")
            paths.write_text_atomic(target, entry.to_text())
        _log_debug(f"enqueued branch={branch} priority={priority} file={target.name}")
        return target

    def count(self) -> int:
        return len(self._entry_paths())

    def list(self) -> list[QueuedSpawn]:
        now = self._clock()
        return [
            QueuedSpawn(entry=entry, position=index, wait_seconds=entry.wait_seconds(now))
            for index, entry in enumerate(self.entries(), start=1)
        ]

    def render(self, fmt: QueueFormat = "text") -> str:
        return render_queue(self.list(), fmt)

    def dequeue(self, branch: str) -> bool:
        """Remove the first queued entry for ``branch``; False when none."""
        for entry in self.entries():
            if entry.branch != branch or entry.path is None:
                continue
            try:
                entry.path.unlink()
            except FileNotFoundError:
                continue
            _log_debug(f"dequeued branch={branch} file={entry.path.name}")
            return True
        return False

    def clear(self) -> int:
        cleared = 0
        for path in self._entry_paths():
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            cleared += 1
        return cleared

    def process(self) -> int:
        """Spawn queued requests while capacity allows.

        Returns:
            Number of successful spawns.
        """
        if self.spawner is None:
            raise ValidationFailedError("no spawner configured for queue processing")
        self.store.invalidate()
        if self.available_capacity() == 0:
            _log_debug("no capacity; queue left untouched")
            return 0
        spawned = 0
        for entry in self.entries():
            self.store.invalidate()
            if self.would_exceed(1):
                _log_debug("capacity reached; stopping queue processing")
                break
            if entry.path is None:
                continue
            try:
                entry.path.unlink()
            except FileNotFoundError:
                _log_debug(f"entry {entry.path.name} already taken by another process")
                continue
            hydra_log.info(f"Processing queued spawn: {entry.branch}...")
            request = SpawnRequest(
                branch=entry.branch,
                layout=entry.layout,
                ai_tool=entry.ai_tool,
                group=entry.group,
            )
            try:
                self.spawner.spawn(request)
            except Exception as exc:
                _log_warning(f"failed to spawn {entry.branch}: {exc}")
                continue
            spawned += 1
            hydra_log.success(f"  Spawned {entry.branch} successfully")
        return spawned
