"""Lock maintenance commands."""

from __future__ import annotations

from ..io import say
from .resolve import resolve_context


def reap_locks(args: object) -> None:
    """Remove lock directories older than ``--max-age`` seconds."""
    context = resolve_context()
    max_age = getattr(args, "max_age", None)
    if max_age is None:
        max_age = context.settings.lock_stale_seconds
    reaped = context.locks.reap_stale(max_age)
    for name in reaped:
        say(f"Removed stale lock {name}")
    say(f"Reaped {len(reaped)} lock(s)")
