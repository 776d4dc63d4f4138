"""Dependency specs between heads: validation, cycle checks, and waiting.

A dependency spec is a comma-separated list of branch names. A dependency is
complete when its branch has no registered head or the head's session is no
longer alive; absence of tracking means "already done".
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from . import log as hydra_log
from .errors import (
    DependencyCycleError,
    DependencyWaitTimeoutError,
    InvalidDependencySpecError,
)
from .models import ABSENT
from .state import SessionAliveFn, StateStore

DEFAULT_WAIT_TIMEOUT = 3600.0
DEFAULT_POLL_INTERVAL = 5.0

_SPEC_CHARS = re.compile(r"^[A-Za-z0-9_/,-]+$")

ProgressFn = Callable[["WaitProgress"], None]


@dataclass(frozen=True)
class WaitProgress:
    """One polling tick of ``DependencyResolver.wait``."""

    pending: tuple[str, ...]
    elapsed: float


def split_spec(spec: str | None) -> tuple[str, ...]:
    """Split a spec without validating it; ``None``/``""``/``-`` mean no deps.

    Example:
        >>> split_spec("a,,b,a")
        ('a', 'b')
    """
    if not spec or spec == ABSENT:
        return ()
    return tuple(dict.fromkeys(item for item in spec.split(",") if item))


def parse_spec(spec: str | None) -> tuple[str, ...]:
    """Validate a spec's syntax and return its entries in order.

    Raises:
        InvalidDependencySpecError: Empty spec, characters outside
            ``[A-Za-z0-9_/-]``, or an empty entry between commas.

    Example:
        >>> parse_spec("feat-a,fix/b")
        ('feat-a', 'fix/b')
    """
    if spec is None or spec == "":
        raise InvalidDependencySpecError("empty dependency specification")
    if not _SPEC_CHARS.match(spec):
        raise InvalidDependencySpecError(
            f"invalid characters in dependency specification: {spec!r}",
            recovery_hint="use branch names made of letters, digits, '_', '/', '-'",
        )
    entries = spec.split(",")
    if any(entry == "" for entry in entries):
        raise InvalidDependencySpecError(
            f"empty dependency in specification: {spec!r}"
        )
    return tuple(dict.fromkeys(entries))


class DependencyResolver:
    """Dependency checks over the head registry."""

    def __init__(
        self,
        store: StateStore,
        session_alive: SessionAliveFn,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.session_alive = session_alive
        self._clock = clock
        self._sleep = sleep

    def validate_spec(self, spec: str | None) -> tuple[str, ...]:
        """Validate ``spec``; unknown branches only produce a warning.

        Returns:
            The parsed dependency branches.
        """
        deps = parse_spec(spec)
        for dep in deps:
            if self.store.get_by_branch(dep) is None:
                hydra_log.warning(f"[deps] dependency '{dep}' has no registered head")
        return deps

    def check_cycle(self, target: str, spec: str | None) -> None:
        """Reject ``spec`` for ``target`` if it would close a cycle.

        The walk starts at ``target``'s proposed deps and follows each branch's
        persisted deps; ``target``'s own persisted deps are replaced by the
        proposal.

        Raises:
            DependencyCycleError: A branch reappears in the current chain.
        """
        proposed = split_spec(spec)
        if not proposed:
            return

        def deps_of(branch: str) -> tuple[str, ...]:
            if branch == target:
                return proposed
            return self.store.get_deps(branch)

        chain: list[str] = [target]
        on_chain: set[str] = {target}
        finished: set[str] = set()
        stack: list[tuple[str, list[str]]] = [(target, list(proposed))]
        while stack:
            branch, remaining = stack[-1]
            if not remaining:
                stack.pop()
                chain.pop()
                on_chain.discard(branch)
                finished.add(branch)
                continue
            dep = remaining.pop(0)
            if dep in on_chain:
                raise DependencyCycleError(dep, tuple(chain))
            if dep in finished:
                continue
            chain.append(dep)
            on_chain.add(dep)
            stack.append((dep, list(deps_of(dep))))

    def is_complete(self, branch: str) -> bool:
        record = self.store.get_by_branch(branch)
        if record is None:
            return True
        return not self.session_alive(record.session_id)

    def pending(self, spec: str | None) -> tuple[str, ...]:
        return tuple(dep for dep in split_spec(spec) if not self.is_complete(dep))

    def count_pending(self, spec: str | None) -> int:
        return len(self.pending(spec))

    def all_complete(self, spec: str | None) -> bool:
        return not self.pending(spec)

    def wait(
        self,
        spec: str | None,
        *,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressFn | None = None,
    ) -> None:
        """Poll until every dependency completes.

        Each tick re-reads the registry and reports the pending subset to
        ``on_progress`` (or the log).

        Raises:
            DependencyWaitTimeoutError: ``timeout`` elapsed with deps pending.
        """
        if not split_spec(spec):
            return
        started = self._clock()
        while True:
            self.store.invalidate()
            pending = self.pending(spec)
            elapsed = self._clock() - started
            if not pending:
                return
            if elapsed >= timeout:
                raise DependencyWaitTimeoutError(pending, elapsed)
            progress = WaitProgress(pending=pending, elapsed=elapsed)
            if on_progress is not None:
                on_progress(progress)
            else:
                hydra_log.info(
                    f"[deps] waiting for: {', '.join(pending)} ({int(elapsed)}s elapsed)"
                )
            self._sleep(max(0.0, min(poll_interval, timeout - elapsed)))

    def dependents_of(self, branch: str) -> set[str]:
        return {record.branch for record in self.store.list() if branch in record.deps}

    def build_tree(self, branch: str, indent: str = "") -> str:
        """Render ``branch`` and its direct deps with completion markers.

        Example output::

            feat-b
              depends on:
                [done] feat-a
                [wait] fix-c
        """
        deps = self.store.get_deps(branch)
        lines = [f"{indent}{branch}"]
        if deps:
            lines.append(f"{indent}  depends on:")
            for dep in deps:
                marker = "[done]" if self.is_complete(dep) else "[wait]"
                lines.append(f"{indent}    {marker} {dep}")
        return "\n".join(lines)

    def build_full_tree(self) -> str:
        """Render trees for every branch that declares dependencies."""
        blocks = [
            self.build_tree(record.branch) for record in self.store.list() if record.deps
        ]
        return "\n\n".join(blocks)
