"""TTL cache for pull-request status lookups.

The cache file holds one ``<pr_number> <status> <unix-ts>`` line per PR and is
replaced atomically on every update.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from . import paths


class PrStatusCache:
    """Remember PR statuses for ``ttl`` seconds."""

    def __init__(
        self,
        path: Path,
        ttl: float,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.ttl = ttl
        self._clock = clock

    def _entries(self) -> dict[int, tuple[str, int]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        entries: dict[int, tuple[str, int]] = {}
        for line in text.splitlines():
            parts = line.split()
            if len(parts) != 3 or not parts[0].isdigit() or not parts[2].isdigit():
                continue
            entries[int(parts[0])] = (parts[1], int(parts[2]))
        return entries

    def get(self, pr_number: int) -> str | None:
        """Return the cached status while it is younger than the TTL."""
        cached = self._entries().get(pr_number)
        if cached is None:
            return None
        status, stamp = cached
        if self._clock() - stamp >= self.ttl:
            return None
        return status

    def put(self, pr_number: int, status: str) -> None:
        entries = self._entries()
        normalized = "_".join(status.split()).upper() or "UNKNOWN"
        entries[pr_number] = (normalized, int(self._clock()))
        content = "".join(
            f"{number} {value} {stamp}\n" for number, (value, stamp) in sorted(entries.items())
        )
        paths.write_text_atomic(self.path, content)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
