"""Failure contracts for the coordination core.

Components raise HydraFailure subclasses on expected domain/policy/runtime
failures. Programmer bugs raise normal exceptions. Lock contention, registry
corruption, stale locks, and failed queued spawns are never raised: they are
logged and the documented fallback runs instead.
"""

from __future__ import annotations

from typing import Literal

HydraFailureCode = Literal[
    "validation_failed",
    "dependency_missing",
    "policy_blocked",
    "external_command_failed",
    "io_failed",
]


class HydraFailure(Exception):
    """Expected failure: validation, policy, or runtime error.

    Use ``raise HydraFailure(...) from exc`` to chain a causing exception; it
    is available as ``__cause__``. The CLI catches HydraFailure and reports
    the message plus the optional recovery hint.
    """

    def __init__(
        self,
        code: HydraFailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class ValidationFailedError(HydraFailure):
    """Validation failed (invalid input, constraint violation)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class DependencyMissingError(HydraFailure):
    """Required external tool is missing or unavailable."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("dependency_missing", message, recovery_hint=recovery_hint)


class PolicyBlockedError(HydraFailure):
    """Policy gate blocked the operation."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("policy_blocked", message, recovery_hint=recovery_hint)


class ExternalCommandFailedError(HydraFailure):
    """External command (tmux, git, etc.) failed."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)


class IoFailedError(HydraFailure):
    """I/O operation failed (read, write, config)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("io_failed", message, recovery_hint=recovery_hint)


class HeadNotFoundError(ValidationFailedError):
    """No head is registered for the requested branch."""

    def __init__(self, branch: str) -> None:
        super().__init__(f"no head registered for branch '{branch}'")
        self.branch = branch


class InvalidDependencySpecError(ValidationFailedError):
    """A dependency spec contains bad characters or empty entries."""


class DependencyCycleError(ValidationFailedError):
    """Committing a dependency spec would introduce a cycle."""

    def __init__(self, branch: str, chain: tuple[str, ...]) -> None:
        path = " -> ".join((*chain, branch))
        super().__init__(
            f"circular dependency detected: '{branch}' already in chain ({path})"
        )
        self.branch = branch
        self.chain = chain


class DependencyWaitTimeoutError(PolicyBlockedError):
    """Dependencies were still running when the wait timed out."""

    def __init__(self, pending: tuple[str, ...], elapsed: float) -> None:
        super().__init__(
            f"timeout waiting for dependencies after {int(elapsed)}s;"
            f" still pending: {', '.join(pending)}",
            recovery_hint="rerun with a longer --timeout or spawn without waiting",
        )
        self.pending = pending
        self.elapsed = elapsed


class CapacityExceededError(PolicyBlockedError):
    """Spawning would exceed the configured session ceiling."""

    def __init__(self, active: int, limit: int, requested: int = 1) -> None:
        super().__init__(
            f"session limit reached: {active} active, limit {limit},"
            f" requested {requested}",
            recovery_hint="queue the spawn or raise HYDRA_MAX_SESSIONS",
        )
        self.active = active
        self.limit = limit
        self.requested = requested


class HomeNotWritableError(IoFailedError):
    """The Hydra home directory cannot be written."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            f"cannot write under {path}: {detail}",
            recovery_hint="set HYDRA_HOME to a writable directory",
        )
        self.path = path


class SpawnFailedError(ExternalCommandFailedError):
    """The spawn operation could not create a head."""
