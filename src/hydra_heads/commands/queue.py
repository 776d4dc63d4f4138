"""Spawn queue and capacity commands."""

from __future__ import annotations

import json

from ..admission import DEFAULT_PRIORITY
from ..io import die, say
from .resolve import resolve_context


def add_to_queue(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    path = resolve_context().admission.enqueue(
        branch,
        ai_tool=getattr(args, "ai", None),
        group=getattr(args, "group", None),
        layout=getattr(args, "layout", None),
        priority=getattr(args, "priority", DEFAULT_PRIORITY),
    )
    say(f"Queued {branch} ({path.name})")


def list_queue(args: object) -> None:
    fmt = "json" if getattr(args, "json", False) else "text"
    say(resolve_context().admission.render(fmt))


def remove_from_queue(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    if not resolve_context().admission.dequeue(branch):
        die(f"no queued spawn for branch '{branch}'")
    say(f"Removed {branch} from queue")


def clear_queue(args: object) -> None:
    del args
    cleared = resolve_context().admission.clear()
    say(f"Cleared {cleared} queued spawn(s)")


def process_queue(args: object) -> None:
    del args
    context = resolve_context()
    context.reap_stale_locks()
    spawned = context.admission.process()
    say(f"Spawned {spawned} queued head(s); {context.admission.count()} still queued")


def show_capacity(args: object) -> None:
    admission = resolve_context().admission
    payload = {
        "active": admission.active_count(),
        "max": admission.max_capacity() if admission.limit_enabled() else None,
        "available": admission.available_capacity(),
        "queued": admission.count(),
    }
    if getattr(args, "json", False):
        say(json.dumps(payload))
        return
    limit = payload["max"] if payload["max"] is not None else "unlimited"
    say(f"Active: {payload['active']}")
    say(f"Limit: {limit}")
    say(f"Available: {payload['available']}")
    say(f"Queued: {payload['queued']}")
