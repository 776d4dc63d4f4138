"""Advisory, non-blocking locks backed by atomic directory creation.

A lock named ``state`` is held while ``<home>/locks/state.lock/`` exists.
``mkdir`` either creates the directory or fails because it already exists,
which makes acquisition atomic across unrelated processes on one host. There
is no blocking acquire: callers decide whether to retry, fall back to an
unlocked best-effort write, or give up.
"""

from __future__ import annotations

import os
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from . import log as hydra_log
from . import paths

DEFAULT_STALE_SECONDS = 60.0
# 10 ms doubling up to 250 ms: roughly 3 s of retries before giving up.
FALLBACK_ATTEMPTS = 16
FALLBACK_DELAY_SECONDS = 0.01
FALLBACK_MAX_DELAY_SECONDS = 0.25


def _log_debug(message: str) -> None:
    hydra_log.debug(f"[locks] {message}")


class LockManager:
    """Named advisory locks under one Hydra home.

    Example:
        >>> import tempfile
        >>> locks = LockManager(Path(tempfile.mkdtemp()))
        >>> locks.try_acquire("state"), locks.try_acquire("state")
        (True, False)
        >>> locks.release("state"); locks.try_acquire("state")
        True
    """

    def __init__(
        self,
        home: Path,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self.home = home
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter

    @property
    def root(self) -> Path:
        return paths.locks_dir(self.home)

    def path_for(self, name: str) -> Path:
        return paths.lock_path(self.home, paths.sanitize_name(name))

    def try_acquire(self, name: str) -> bool:
        """Take the lock if nobody holds it; never waits.

        Raises:
            HomeNotWritableError: The locks directory cannot be created.
        """
        paths.ensure_dir(self.root)
        try:
            os.mkdir(self.path_for(name))
        except FileExistsError:
            return False
        except PermissionError as exc:
            _log_debug(f"acquire denied name={name} detail={exc}")
            return False
        _log_debug(f"acquired name={name}")
        return True

    def acquire(
        self,
        name: str,
        *,
        attempts: int = FALLBACK_ATTEMPTS,
        delay: float = FALLBACK_DELAY_SECONDS,
        max_delay: float = FALLBACK_MAX_DELAY_SECONDS,
    ) -> bool:
        """Try a bounded number of times with jittered exponential backoff.

        The pause before retry ``n`` is ``min(delay * 2**(n-1), max_delay)``
        scaled by a factor in ``[0.5, 1.5)`` so contending processes spread
        out instead of retrying in lockstep.
        """
        step = delay
        for attempt in range(max(1, attempts)):
            if attempt:
                self._sleep(step * (0.5 + self._jitter()))
                step = min(step * 2, max_delay)
            if self.try_acquire(name):
                return True
        return False

    def release(self, name: str) -> None:
        """Release the lock; safe when it is not held."""
        try:
            os.rmdir(self.path_for(name))
        except FileNotFoundError:
            return
        except OSError as exc:
            _log_debug(f"release failed name={name} detail={exc}")
            return
        _log_debug(f"released name={name}")

    def is_held(self, name: str) -> bool:
        return self.path_for(name).is_dir()

    def age(self, name: str) -> float | None:
        """Seconds since the lock was taken, or ``None`` when free."""
        try:
            mtime = self.path_for(name).stat().st_mtime
        except OSError:
            return None
        return max(0.0, self._clock() - mtime)

    def reap_stale(self, max_age: float = DEFAULT_STALE_SECONDS) -> list[str]:
        """Remove locks older than ``max_age`` seconds; best-effort.

        Returns:
            Names of the locks that were removed.
        """
        root = self.root
        if not root.is_dir():
            return []
        now = self._clock()
        reaped: list[str] = []
        for entry in sorted(root.glob(f"*{paths.LOCK_SUFFIX}")):
            try:
                if not entry.is_dir() or now - entry.stat().st_mtime <= max_age:
                    continue
                os.rmdir(entry)
            except OSError as exc:
                _log_debug(f"reap skipped path={entry} detail={exc}")
                continue
            name = entry.name[: -len(paths.LOCK_SUFFIX)]
            reaped.append(name)
            hydra_log.debug(f"[locks] reaped stale lock name={name}")
        return reaped

    @contextmanager
    def held(
        self,
        name: str,
        *,
        attempts: int = FALLBACK_ATTEMPTS,
        delay: float = FALLBACK_DELAY_SECONDS,
        max_delay: float = FALLBACK_MAX_DELAY_SECONDS,
    ) -> Iterator[bool]:
        """Hold the lock for a block; yields whether it was acquired.

        The block runs either way. It is released afterwards only when this
        call acquired it.
        """
        acquired = self.acquire(name, attempts=attempts, delay=delay, max_delay=max_delay)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(name)
