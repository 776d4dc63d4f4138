"""Inter-head messaging commands."""

from __future__ import annotations

import json

from .. import log as hydra_log
from ..context import HydraContext
from ..io import die, say
from ..mailbox import UNKNOWN_SENDER
from ..term import tmux
from .resolve import resolve_context


def _resolve_sender(context: HydraContext, explicit: str | None) -> str:
    """Use ``--from`` when given, else the head owning the current tmux session."""
    if explicit:
        return explicit
    session = tmux.current_session()
    if session:
        record = context.store.get_by_session(session)
        if record is not None:
            return record.branch
    return UNKNOWN_SENDER


def _resolve_branch(context: HydraContext, explicit: str | None) -> str:
    if explicit:
        return explicit
    sender = _resolve_sender(context, None)
    if sender == UNKNOWN_SENDER:
        die("branch is required outside a Hydra session")
    return sender


def send_message(args: object) -> None:
    """Queue a message for another head.

    Example:
        $ hydra-heads msg send feat-b "schema is merged" --from feat-a
    """
    context = resolve_context()
    target = getattr(args, "target", None) or ""
    if context.store.get_by_branch(target) is None:
        hydra_log.warning(f"'{target}' has no registered head; message queued anyway")
    sender = _resolve_sender(context, getattr(args, "sender", None))
    context.mailbox.send(target, getattr(args, "body", None) or "", sender)
    say(f"Message sent to {target}")


def recv_messages(args: object) -> None:
    context = resolve_context()
    branch = _resolve_branch(context, getattr(args, "branch", None))
    messages = context.mailbox.receive(
        branch,
        peek=getattr(args, "peek", False),
        archive=getattr(args, "archive", False),
    )
    if getattr(args, "json", False):
        payload = [
            {"from": message.sender_branch, "sent_at": message.sent_at, "body": message.body}
            for message in messages
        ]
        say(json.dumps({"messages": payload}))
        return
    for message in messages:
        say(message.format())


def count_messages(args: object) -> None:
    context = resolve_context()
    branch = _resolve_branch(context, getattr(args, "branch", None))
    say(str(context.mailbox.count(branch)))


def broadcast_message(args: object) -> None:
    context = resolve_context()
    group = getattr(args, "group", None) or ""
    members = [record.branch for record in context.store.list_group(group)]
    if not members:
        die(f"no heads in group '{group}'")
    sender = _resolve_sender(context, getattr(args, "sender", None))
    delivered = context.mailbox.broadcast(members, getattr(args, "body", None) or "", sender)
    say(f"Broadcast to {len(delivered)} head(s) in group {group}")


def cleanup_messages(args: object) -> None:
    context = resolve_context()
    days = getattr(args, "days", None)
    if days is None:
        days = context.settings.message_retention_days
    removed = context.mailbox.cleanup_old(days)
    say(f"Removed {removed} archived message(s)")
