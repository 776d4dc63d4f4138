"""Command implementations exposed by the Hydra CLI."""

from .deps import check_deps, set_deps, show_dependents, show_tree, wait_deps
from .heads import (
    list_heads,
    reconcile_heads,
    remove_head,
    set_group,
    set_pr,
    show_head,
    spawn_head,
    validate_heads,
)
from .locks import reap_locks
from .mail import broadcast_message, cleanup_messages, count_messages, recv_messages, send_message
from .queue import (
    add_to_queue,
    clear_queue,
    list_queue,
    process_queue,
    remove_from_queue,
    show_capacity,
)

__all__ = [
    "add_to_queue",
    "broadcast_message",
    "check_deps",
    "cleanup_messages",
    "clear_queue",
    "count_messages",
    "list_heads",
    "list_queue",
    "process_queue",
    "reap_locks",
    "reconcile_heads",
    "recv_messages",
    "remove_from_queue",
    "remove_head",
    "send_message",
    "set_deps",
    "set_group",
    "set_pr",
    "show_capacity",
    "show_dependents",
    "show_head",
    "show_tree",
    "spawn_head",
    "validate_heads",
    "wait_deps",
]
