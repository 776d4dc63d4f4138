"""Authoritative head registry with a per-process read cache.

The registry is a line-per-head text file (see ``HeadRecord.to_line``). Every
mutation is a read-modify-write under the ``state`` lock that replaces the
file through a temporary file and ``os.replace``, so concurrent readers see
either the old or the new registry and never a truncated one. When the lock
stays busy the write still happens without it (liveness over strict
exclusion) and a warning is logged.

Reads go through ``RegistryCache``: the first read in a process parses the
whole file into branch and session indexes; every write drops the cache so
the next read reparses from disk.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from . import log as hydra_log
from . import paths
from .errors import HeadNotFoundError, HydraFailure, ValidationFailedError
from .locks import LockManager
from .models import ABSENT, HeadRecord

STATE_LOCK = "state"
SESSION_LOCK_PREFIX = "session-"
MAX_SESSION_NAME_ATTEMPTS = 100

SessionAliveFn = Callable[[str], bool]
BranchExistsFn = Callable[[str], bool]


def _log_debug(message: str) -> None:
    hydra_log.debug(f"[state] {message}")


def _log_warning(message: str) -> None:
    hydra_log.warning(f"[state] {message}")


@dataclass
class RegistryCache:
    """Indexed snapshot of the registry taken on the first read."""

    records: list[HeadRecord] = field(default_factory=list)
    by_branch: dict[str, HeadRecord] = field(default_factory=dict)
    session_to_branch: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, records: Iterable[HeadRecord]) -> RegistryCache:
        cache = cls()
        for record in records:
            cache.records.append(record)
            cache.by_branch[record.branch] = record
            cache.session_to_branch[record.session_id] = record.branch
        return cache


@dataclass(frozen=True)
class ParsedRegistry:
    records: list[HeadRecord]
    malformed: list[tuple[int, str]]


@dataclass(frozen=True)
class RegistryIssue:
    """A record whose branch or session is gone."""

    record: HeadRecord
    branch_missing: bool
    session_missing: bool

    def describe(self) -> list[str]:
        problems: list[str] = []
        if self.branch_missing:
            problems.append(f"branch '{self.record.branch}' no longer exists")
        if self.session_missing:
            problems.append(f"session '{self.record.session_id}' no longer exists")
        return problems


def parse_registry(text: str) -> ParsedRegistry:
    """Parse registry text, keeping the last record per branch.

    Example:
        >>> parsed = parse_registry("a s1 - - 1 - -\\nbroken\\na s2 - - 2 - -\\n")
        >>> [r.session_id for r in parsed.records], parsed.malformed
        (['s2'], [(2, 'broken')])
    """
    by_branch: dict[str, HeadRecord] = {}
    malformed: list[tuple[int, str]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = HeadRecord.from_line(line)
        except ValueError:
            malformed.append((lineno, line))
            continue
        by_branch.pop(record.branch, None)
        by_branch[record.branch] = record
    return ParsedRegistry(records=list(by_branch.values()), malformed=malformed)


def render_registry(records: Iterable[HeadRecord]) -> str:
    lines = [record.to_line() for record in records]
    return "".join(f"{line}\n" for line in lines)


def _validate_token(name: str, value: str | None, *, required: bool) -> None:
    if value is None or value == "":
        if required:
            raise ValidationFailedError(f"{name} is required")
        return
    if value == ABSENT:
        raise ValidationFailedError(f"{name} must not be '{ABSENT}'")
    if any(char.isspace() for char in value):
        raise ValidationFailedError(f"{name} must not contain whitespace: {value!r}")


def _validate_record(record: HeadRecord) -> None:
    _validate_token("branch", record.branch, required=True)
    _validate_token("session", record.session_id, required=True)
    _validate_token("ai tool", record.ai_tool, required=False)
    _validate_token("group", record.group, required=False)
    for dep in record.deps:
        _validate_token("dependency", dep, required=True)
        if "," in dep:
            raise ValidationFailedError(f"dependency must not contain ',': {dep!r}")


class StateStore:
    """File-backed head registry.

    Args:
        path: Registry file.
        locks: Lock manager guarding writes.
        session_alive: Predicate telling whether a session is running.
        branch_exists: Predicate telling whether a branch still exists.
        clock: Source of unix timestamps for new records and backups.
    """

    def __init__(
        self,
        path: Path,
        locks: LockManager,
        *,
        session_alive: SessionAliveFn,
        branch_exists: BranchExistsFn,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.locks = locks
        self.session_alive = session_alive
        self.branch_exists = branch_exists
        self._clock = clock
        self._cache: RegistryCache | None = None

    # -- cache -------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop the read cache so the next read reparses the file."""
        self._cache = None

    def _snapshot(self) -> RegistryCache:
        if self._cache is None:
            self._cache = RegistryCache.build(self._load())
            _log_debug(f"loaded {len(self._cache.records)} record(s) from {self.path}")
        return self._cache

    # -- disk --------------------------------------------------------------

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def _backup_corrupt(self, text: str, malformed: list[tuple[int, str]]) -> None:
        backup = self.path.with_name(f"{self.path.name}.corrupt-{int(self._clock())}")
        paths.write_text_atomic(backup, text)
        line_numbers = ", ".join(str(lineno) for lineno, _ in malformed)
        _log_warning(
            f"registry {self.path} had {len(malformed)} malformed line(s)"
            f" ({line_numbers}); dropped them, backup at {backup}"
        )

    def _load(self) -> list[HeadRecord]:
        parsed = parse_registry(self._read_text())
        if parsed.malformed:
            self._repair()
        return parsed.records

    def _repair(self) -> None:
        try:
            with self.locks.held(STATE_LOCK) as acquired:
                if not acquired:
                    _log_warning(
                        f"registry {self.path} has malformed lines; repair deferred"
                        " while another process holds the state lock"
                    )
                    return
                text = self._read_text()
                parsed = parse_registry(text)
                if not parsed.malformed:
                    return
                self._backup_corrupt(text, parsed.malformed)
                paths.write_text_atomic(self.path, render_registry(parsed.records))
        except HydraFailure as exc:
            _log_warning(f"could not repair registry {self.path}: {exc}")

    def _mutate(
        self,
        action: str,
        change: Callable[[list[HeadRecord]], list[HeadRecord]],
    ) -> None:
        with self.locks.held(STATE_LOCK) as acquired:
            if not acquired:
                _log_warning(f"state lock busy; {action} without lock (best effort)")
            text = self._read_text()
            parsed = parse_registry(text)
            if parsed.malformed:
                self._backup_corrupt(text, parsed.malformed)
            updated = change(list(parsed.records))
            paths.write_text_atomic(self.path, render_registry(updated))
            self.invalidate()
            _log_debug(f"{action} ok records={len(updated)}")

    # -- writes ------------------------------------------------------------

    def add(self, record: HeadRecord) -> None:
        """Insert ``record``, atomically replacing any record for its branch."""
        _validate_record(record)

        def change(records: list[HeadRecord]) -> list[HeadRecord]:
            kept = [item for item in records if item.branch != record.branch]
            kept.append(record)
            return kept

        self._mutate(f"add branch={record.branch}", change)

    def register(
        self,
        branch: str,
        session_id: str,
        *,
        ai_tool: str | None = None,
        group: str | None = None,
        deps: Iterable[str] = (),
        pr_number: int | None = None,
    ) -> HeadRecord:
        """Build a record stamped with the current time and ``add`` it."""
        record = HeadRecord(
            branch=branch,
            session_id=session_id,
            ai_tool=ai_tool or None,
            group=group or None,
            created_at=int(self._clock()),
            deps=tuple(dict.fromkeys(deps)),
            pr_number=pr_number,
        )
        self.add(record)
        return record

    def remove(self, branch: str) -> bool:
        """Remove the record for ``branch``; returns whether one existed."""
        if not branch:
            raise ValidationFailedError("branch is required")
        if not self.path.exists():
            return False
        removed: list[HeadRecord] = []

        def change(records: list[HeadRecord]) -> list[HeadRecord]:
            kept: list[HeadRecord] = []
            for item in records:
                (removed if item.branch == branch else kept).append(item)
            return kept

        self._mutate(f"remove branch={branch}", change)
        return bool(removed)

    def _update(self, branch: str, action: str, **changes: object) -> HeadRecord:
        updated: list[HeadRecord] = []

        def change(records: list[HeadRecord]) -> list[HeadRecord]:
            result: list[HeadRecord] = []
            for item in records:
                if item.branch == branch:
                    item = dataclasses.replace(item, **changes)
                    _validate_record(item)
                    updated.append(item)
                result.append(item)
            if not updated:
                raise HeadNotFoundError(branch)
            return result

        self._mutate(f"{action} branch={branch}", change)
        return updated[0]

    def set_group(self, branch: str, group: str | None) -> HeadRecord:
        return self._update(branch, "set group", group=group or None)

    def set_pr_number(self, branch: str, pr_number: int | None) -> HeadRecord:
        return self._update(branch, "set pr", pr_number=pr_number)

    def set_deps(self, branch: str, deps: Iterable[str]) -> HeadRecord:
        return self._update(branch, "set deps", deps=tuple(dict.fromkeys(deps)))

    # -- reads -------------------------------------------------------------

    def list(self) -> list[HeadRecord]:
        return list(self._snapshot().records)

    def count(self) -> int:
        return len(self._snapshot().records)

    def get_by_branch(self, branch: str) -> HeadRecord | None:
        return self._snapshot().by_branch.get(branch)

    def get_by_session(self, session_id: str) -> HeadRecord | None:
        snapshot = self._snapshot()
        branch = snapshot.session_to_branch.get(session_id)
        if branch is None:
            return None
        return snapshot.by_branch.get(branch)

    def get_deps(self, branch: str) -> tuple[str, ...]:
        record = self.get_by_branch(branch)
        return record.deps if record else ()

    def list_group(self, group: str) -> list[HeadRecord]:
        return [record for record in self._snapshot().records if record.group == group]

    # -- liveness ----------------------------------------------------------

    def _check(self, record: HeadRecord) -> RegistryIssue | None:
        branch_missing = not self.branch_exists(record.branch)
        session_missing = not self.session_alive(record.session_id)
        if not branch_missing and not session_missing:
            return None
        return RegistryIssue(record, branch_missing, session_missing)

    def validate(self) -> list[RegistryIssue]:
        """Flag records whose branch or session is gone; never mutates."""
        issues: list[RegistryIssue] = []
        for record in self.list():
            issue = self._check(record)
            if issue is None:
                continue
            for problem in issue.describe():
                _log_warning(problem)
            issues.append(issue)
        return issues

    def reconcile(self) -> list[HeadRecord]:
        """Rewrite the registry keeping only live records.

        Returns:
            Records that were dropped.
        """
        if not self.path.exists():
            return []
        dropped: list[HeadRecord] = []

        def change(records: list[HeadRecord]) -> list[HeadRecord]:
            kept: list[HeadRecord] = []
            for record in records:
                if self._check(record) is None:
                    kept.append(record)
                else:
                    dropped.append(record)
            return kept

        self._mutate("reconcile", change)
        for record in dropped:
            hydra_log.info(f"[state] dropped stale head {record.branch} ({record.session_id})")
        return dropped

    # -- session names -----------------------------------------------------

    def _session_name_free(self, candidate: str, branch: str) -> bool:
        owner = self.get_by_session(candidate)
        if owner is not None and owner.branch != branch:
            return False
        if self.session_alive(candidate):
            return False
        return self.locks.try_acquire(f"{SESSION_LOCK_PREFIX}{candidate}")

    def generate_session_name(
        self, branch: str, *, max_attempts: int = MAX_SESSION_NAME_ATTEMPTS
    ) -> str:
        """Reserve a unique session name for ``branch``.

        Probes ``base``, ``base_1`` … ``base_<max_attempts>`` and falls back to
        ``base_<unix-ts>``. The chosen name's lock stays held until
        ``release_session_name`` is called.

        Example:
            >>> import tempfile
            >>> home = Path(tempfile.mkdtemp())
            >>> store = StateStore(home / "map", LockManager(home),
            ...     session_alive=lambda s: s == "feat_x", branch_exists=lambda b: True)
            >>> store.generate_session_name("feat/x")
            'feat_x_1'
        """
        if not branch:
            raise ValidationFailedError("branch is required")
        base = paths.sanitize_name(branch)
        candidates = [base] + [f"{base}_{num}" for num in range(1, max_attempts + 1)]
        for candidate in candidates:
            if self._session_name_free(candidate, branch):
                _log_debug(f"reserved session name={candidate} branch={branch}")
                return candidate
        fallback = f"{base}_{int(self._clock())}"
        self.locks.try_acquire(f"{SESSION_LOCK_PREFIX}{fallback}")
        _log_debug(f"session names exhausted; using {fallback}")
        return fallback

    def release_session_name(self, session_id: str) -> None:
        self.locks.release(f"{SESSION_LOCK_PREFIX}{session_id}")
