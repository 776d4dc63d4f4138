"""Head registry commands: list, show, group, remove, validate, reconcile, spawn."""

from __future__ import annotations

import json

from .. import log as hydra_log
from ..admission import SpawnRequest
from ..io import die, say
from ..models import HeadRecord
from ..term import tmux
from .resolve import render_rows, resolve_context


def _record_payload(record: HeadRecord) -> dict[str, object]:
    return {
        "branch": record.branch,
        "session": record.session_id,
        "ai_tool": record.ai_tool,
        "group": record.group,
        "created_at": record.created_at,
        "deps": list(record.deps),
        "pr_number": record.pr_number,
    }


def list_heads(args: object) -> None:
    """List registered heads.

    Example:
        $ hydra-heads list --json
    """
    context = resolve_context()
    records = context.store.list()
    if getattr(args, "json", False):
        say(json.dumps({"heads": [_record_payload(record) for record in records]}))
        return
    if not records:
        say("No heads registered.")
        return
    rows = [("branch", "session", "ai", "group", "deps")]
    for record in records:
        rows.append(
            (
                record.branch,
                record.session_id,
                record.ai_tool or "-",
                record.group or "-",
                record.deps_spec or "-",
            )
        )
    for line in render_rows(rows):
        say(line)


def show_head(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    context = resolve_context()
    record = context.store.get_by_branch(branch)
    if record is None:
        die(f"no head registered for branch '{branch}'")
    payload = _record_payload(record)
    payload["alive"] = context.session_alive(record.session_id)
    payload["pending_deps"] = list(context.resolver.pending(record.deps_spec))
    payload["messages"] = context.mailbox.count(branch)
    say(json.dumps(payload, indent=2))


def set_group(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    group = getattr(args, "group", None) or None
    record = resolve_context().store.set_group(branch, group)
    say(f"Set group for {record.branch} to {record.group or '-'}")


def remove_head(args: object) -> None:
    """Forget a head: drop its record and mailbox, optionally kill its session."""
    branch = getattr(args, "branch", None) or ""
    context = resolve_context()
    record = context.store.get_by_branch(branch)
    if record is None:
        die(f"no head registered for branch '{branch}'")
    if getattr(args, "kill_session", False) and not tmux.kill_session(record.session_id):
        hydra_log.warning(f"session '{record.session_id}' was not running")
    context.store.remove(branch)
    context.mailbox.cleanup_for(branch)
    say(f"Removed head {branch}")
    if getattr(args, "process_queue", True) and context.admission.count():
        spawned = context.admission.process()
        say(f"Spawned {spawned} queued head(s)")


def validate_heads(args: object) -> None:
    del args
    issues = resolve_context().store.validate()
    if issues:
        die(f"{len(issues)} head(s) have a missing branch or session")
    say("All heads are valid.")


def reconcile_heads(args: object) -> None:
    del args
    context = resolve_context()
    dropped = context.store.reconcile()
    for record in dropped:
        context.mailbox.cleanup_for(record.branch)
    say(f"Removed {len(dropped)} stale head(s)")


def spawn_head(args: object) -> None:
    """Admit and spawn a head, honouring dependencies and the session limit.

    Example:
        $ hydra-heads spawn feat-b --deps feat-a --no-wait
    """
    branch = getattr(args, "branch", None) or ""
    deps_spec = getattr(args, "deps", None)
    context = resolve_context()
    context.reap_stale_locks()

    deps: tuple[str, ...] = ()
    if deps_spec:
        deps = context.resolver.validate_spec(deps_spec)
        context.resolver.check_cycle(branch, deps_spec)
        if getattr(args, "wait", True):
            context.resolver.wait(
                deps_spec,
                timeout=getattr(args, "timeout", 3600.0),
                poll_interval=getattr(args, "poll_interval", 5.0),
            )
        elif context.resolver.count_pending(deps_spec):
            hydra_log.warning(
                f"spawning before dependencies finish: "
                f"{', '.join(context.resolver.pending(deps_spec))}"
            )

    admission = context.admission
    if admission.would_exceed(1):
        if not getattr(args, "queue", True):
            admission.ensure_capacity(1)
        if deps:
            hydra_log.warning("queued spawns do not keep dependency specs")
        path = admission.enqueue(
            branch,
            ai_tool=getattr(args, "ai", None),
            group=getattr(args, "group", None),
            layout=getattr(args, "layout", None),
            priority=getattr(args, "priority", 50),
        )
        say(f"Session limit reached; queued {branch} ({path.name})")
        return

    result = context.spawner.spawn(
        SpawnRequest(
            branch=branch,
            layout=getattr(args, "layout", None) or "default",
            ai_tool=getattr(args, "ai", None),
            group=getattr(args, "group", None),
            deps=deps,
        )
    )
    hydra_log.success(f"Spawned {result.branch} in session '{result.session_id}'")


def set_pr(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    pr_number = getattr(args, "pr_number", None)
    record = resolve_context().store.set_pr_number(branch, pr_number)
    linked = f"#{record.pr_number}" if record.pr_number is not None else "none"
    say(f"Linked {record.branch} to PR {linked}")
