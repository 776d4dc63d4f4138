"""File-backed inter-head messaging.

Each head has ``messages/<branch>/queue/`` and ``messages/<branch>/archive/``.
A message is one file named ``<ns:020d>_<sender>_<hash>`` whose contents are
the body, so filename order is send order. Receiving is destructive unless
peeking; consumed messages are deleted or moved to the archive.
"""

from __future__ import annotations

import hashlib
import itertools
import os
import shutil
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from . import log as hydra_log
from . import paths
from .errors import ValidationFailedError
from .locks import LockManager
from .models import Message

DEFAULT_RETENTION_DAYS = 7.0
UNKNOWN_SENDER = "unknown"
_NS_PER_SECOND = 1_000_000_000
_sequence = itertools.count()


def _log_debug(message: str) -> None:
    hydra_log.debug(f"[mail] {message}")


def parse_message_filename(name: str) -> tuple[int, str] | None:
    """Split ``<ns>_<sender>_<hash>`` into send time (seconds) and sender.

    Example:
        >>> parse_message_filename("00000000002000000000_feat_x_ab12cd34")
        (2, 'feat_x')
    """
    stamp, sep, rest = name.partition("_")
    sender, sep2, _digest = rest.rpartition("_")
    if not sep or not sep2 or not stamp.isdigit():
        return None
    return int(stamp) // _NS_PER_SECOND, sender or UNKNOWN_SENDER


class Mailbox:
    """Per-head message queues under one Hydra home."""

    def __init__(
        self,
        home: Path,
        locks: LockManager,
        *,
        clock_ns: Callable[[], int] = time.time_ns,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.home = home
        self.locks = locks
        self._clock_ns = clock_ns
        self._clock = clock
        self._last_stamp_ns = 0

    @property
    def root(self) -> Path:
        return paths.messages_root(self.home)

    def dir_for(self, branch: str) -> Path:
        return paths.message_dir(self.home, branch)

    def queue_dir(self, branch: str) -> Path:
        return self.dir_for(branch) / paths.MESSAGE_QUEUE_DIRNAME

    def archive_dir(self, branch: str) -> Path:
        return self.dir_for(branch) / paths.MESSAGE_ARCHIVE_DIRNAME

    def ensure_dirs(self, branch: str) -> None:
        paths.ensure_dir(self.queue_dir(branch))
        paths.ensure_dir(self.archive_dir(branch))

    def _next_stamp_ns(self) -> int:
        # Strictly increasing even when the clock repeats a value.
        self._last_stamp_ns = max(self._clock_ns(), self._last_stamp_ns + 1)
        return self._last_stamp_ns

    def _message_name(self, sender: str, stamp_ns: int) -> str:
        seed = f"{stamp_ns}:{sender}:{os.getpid()}:{next(_sequence)}"
        digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]
        return f"{stamp_ns:020d}_{paths.sanitize_name(sender)}_{digest}"

    def send(self, target: str, body: str, sender: str | None = None) -> Path:
        """Queue ``body`` for ``target``; returns the message file path."""
        if not target:
            raise ValidationFailedError("target branch is required")
        if not body:
            raise ValidationFailedError("message body is required")
        sender = sender or UNKNOWN_SENDER
        self.ensure_dirs(target)
        name = self._message_name(sender, self._next_stamp_ns())
        staged = self.dir_for(target) / name
        destination = self.queue_dir(target) / name
        lock_name = f"msg_{paths.sanitize_name(target)}"
        with self.locks.held(lock_name) as acquired:
            if not acquired:
                _log_debug(f"mailbox lock busy for {target}; writing without lock")
            paths.write_text_atomic(staged, f"{body}\n")
            os.replace(staged, destination)
        _log_debug(f"sent {name} to {target}")
        return destination

    def broadcast(
        self, targets: Iterable[str], body: str, sender: str | None = None
    ) -> list[str]:
        """Send ``body`` to each target except the sender; returns recipients."""
        delivered: list[str] = []
        for target in dict.fromkeys(targets):
            if sender and target == sender:
                continue
            self.send(target, body, sender)
            delivered.append(target)
        return delivered

    def _queued_files(self, branch: str) -> list[Path]:
        queue_dir = self.queue_dir(branch)
        if not queue_dir.is_dir():
            return []
        return sorted(
            path
            for path in queue_dir.iterdir()
            if path.is_file() and not path.name.startswith(".")
        )

    def _consume(self, path: Path, branch: str, *, archive: bool) -> bool:
        if archive:
            try:
                paths.ensure_dir(self.archive_dir(branch))
                os.replace(path, self.archive_dir(branch) / path.name)
                return True
            except FileNotFoundError:
                return False
            except OSError as exc:
                _log_debug(f"archive failed for {path.name}: {exc}; deleting instead")
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def receive(
        self, branch: str, *, peek: bool = False, archive: bool = False
    ) -> list[Message]:
        """Read queued messages in send order.

        Unless ``peek``, every returned message has been removed from the
        queue. A message another process consumed first is skipped.
        """
        if not branch:
            raise ValidationFailedError("branch is required")
        received: list[Message] = []
        for path in self._queued_files(branch):
            parsed = parse_message_filename(path.name)
            sent_at, sender = parsed if parsed else (0, UNKNOWN_SENDER)
            try:
                body = path.read_text(encoding="utf-8").rstrip("\n")
            except FileNotFoundError:
                continue
            archived = False
            if not peek:
                if not self._consume(path, branch, archive=archive):
                    continue
                archived = archive and (self.archive_dir(branch) / path.name).exists()
            received.append(
                Message(
                    target_branch=branch,
                    sender_branch=sender,
                    sent_at=sent_at,
                    body=body,
                    archived=archived,
                    path=path,
                )
            )
        return received

    def count(self, branch: str) -> int:
        if not branch:
            return 0
        return len(self._queued_files(branch))

    def cleanup_old(self, days: float = DEFAULT_RETENTION_DAYS) -> int:
        """Delete archived messages older than ``days`` and prune empty dirs.

        Returns:
            Number of archived messages deleted.
        """
        root = self.root
        if not root.is_dir():
            return 0
        cutoff = self._clock() - days * 86400
        removed = 0
        for archived in root.glob(f"*/{paths.MESSAGE_ARCHIVE_DIRNAME}/*"):
            try:
                if archived.is_file() and archived.stat().st_mtime < cutoff:
                    archived.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        self._prune_empty(root)
        if removed:
            hydra_log.debug(f"[mail] removed {removed} archived message(s) older than {days}d")
        return removed

    def _prune_empty(self, root: Path) -> None:
        directories = sorted(
            (path for path in root.rglob("*") if path.is_dir()),
            key=lambda path: len(path.parts),
            reverse=True,
        )
        for directory in directories:
            try:
                directory.rmdir()
            except OSError:
                continue

    def cleanup_for(self, branch: str) -> None:
        """Remove a head's whole mailbox (queue and archive)."""
        if not branch:
            return
        mailbox = self.dir_for(branch)
        if mailbox.is_dir():
            shutil.rmtree(mailbox, ignore_errors=True)
            _log_debug(f"removed mailbox for {branch}")
