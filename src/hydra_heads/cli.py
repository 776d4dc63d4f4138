"""Command-line entry point for hydra-heads."""

from collections.abc import Callable
from enum import Enum
from types import SimpleNamespace

import typer

from . import __version__
from . import log as hydra_log
from .commands import deps as deps_cmd
from .commands import heads as heads_cmd
from .commands import locks as locks_cmd
from .commands import mail as mail_cmd
from .commands import queue as queue_cmd
from .errors import HydraFailure
from .io import die_on_failure

app = typer.Typer(
    help="Coordinate parallel AI heads: registry, dependencies, queue, and mail.",
    no_args_is_help=True,
    add_completion=False,
)
deps_app = typer.Typer(help="Inspect and wait on head dependencies.", no_args_is_help=True)
queue_app = typer.Typer(help="Manage the pending spawn queue.", no_args_is_help=True)
msg_app = typer.Typer(help="Send and receive messages between heads.", no_args_is_help=True)
locks_app = typer.Typer(help="Maintain coordination locks.", no_args_is_help=True)
app.add_typer(deps_app, name="deps")
app.add_typer(queue_app, name="queue")
app.add_typer(msg_app, name="msg")
app.add_typer(locks_app, name="locks")


class LogLevelChoice(str, Enum):
    trace = "trace"
    debug = "debug"
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


def _run(command: Callable[[object], None], **values: object) -> None:
    try:
        command(SimpleNamespace(**values))
    except HydraFailure as exc:
        die_on_failure(exc)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hydra-heads {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: LogLevelChoice | None = typer.Option(
        None, "--log-level", help="Minimum log level to print.", case_sensitive=False
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored log output."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    del version
    if log_level is not None:
        hydra_log.set_level(log_level.value)
    if no_color:
        hydra_log.set_no_color(True)


# -- heads -----------------------------------------------------------------


@app.command("list")
def list_command(
    json_output: bool = typer.Option(False, "--json", help="Emit JSON."),
) -> None:
    """List registered heads."""
    _run(heads_cmd.list_heads, json=json_output)


@app.command("show")
def show_command(branch: str = typer.Argument(..., help="Branch of the head.")) -> None:
    """Show one head with liveness, pending deps, and mail count."""
    _run(heads_cmd.show_head, branch=branch)


@app.command("set-group")
def set_group_command(
    branch: str = typer.Argument(..., help="Branch of the head."),
    group: str = typer.Argument("", help="Group label; omit to clear."),
) -> None:
    """Assign or clear a head's group."""
    _run(heads_cmd.set_group, branch=branch, group=group)


@app.command("set-pr")
def set_pr_command(
    branch: str = typer.Argument(..., help="Branch of the head."),
    pr_number: int | None = typer.Argument(None, help="Pull request number; omit to unlink."),
) -> None:
    """Link a head to a pull request."""
    _run(heads_cmd.set_pr, branch=branch, pr_number=pr_number)


@app.command("remove")
def remove_command(
    branch: str = typer.Argument(..., help="Branch of the head."),
    kill_session: bool = typer.Option(
        False, "--kill-session", help="Kill the head's tmux session too."
    ),
    process_queue: bool = typer.Option(
        True,
        "--process-queue/--no-process-queue",
        help="Spawn queued heads into the freed capacity.",
    ),
) -> None:
    """Forget a head and its mailbox."""
    _run(
        heads_cmd.remove_head,
        branch=branch,
        kill_session=kill_session,
        process_queue=process_queue,
    )


@app.command("validate")
def validate_command() -> None:
    """Check every head's branch and session still exist."""
    _run(heads_cmd.validate_heads)


@app.command("reconcile")
def reconcile_command() -> None:
    """Drop heads whose branch or session is gone."""
    _run(heads_cmd.reconcile_heads)


@app.command("spawn")
def spawn_command(
    branch: str = typer.Argument(..., help="Branch to spawn a head for."),
    ai: str | None = typer.Option(None, "--ai", help="AI command to start."),
    group: str | None = typer.Option(None, "--group", help="Group label."),
    layout: str | None = typer.Option(None, "--layout", help="Layout name."),
    deps: str | None = typer.Option(
        None, "--deps", help="Comma-separated branches to wait for."
    ),
    priority: int = typer.Option(
        50, "--priority", min=0, max=99, help="Queue priority if over capacity."
    ),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for dependencies."),
    timeout: float = typer.Option(3600.0, "--timeout", help="Dependency wait timeout."),
    poll_interval: float = typer.Option(
        5.0, "--poll-interval", help="Seconds between dependency checks."
    ),
    queue: bool = typer.Option(
        True, "--queue/--no-queue", help="Queue instead of failing when over capacity."
    ),
) -> None:
    """Spawn a head, or queue it when the session limit is reached."""
    _run(
        heads_cmd.spawn_head,
        branch=branch,
        ai=ai,
        group=group,
        layout=layout,
        deps=deps,
        priority=priority,
        wait=wait,
        timeout=timeout,
        poll_interval=poll_interval,
        queue=queue,
    )


# -- deps ------------------------------------------------------------------


@deps_app.command("check")
def deps_check_command(branch: str = typer.Argument(..., help="Branch of the head.")) -> None:
    """Exit non-zero while any dependency is still running."""
    _run(deps_cmd.check_deps, branch=branch)


@deps_app.command("tree")
def deps_tree_command(
    branch: str | None = typer.Argument(None, help="Branch; omit for all heads."),
) -> None:
    """Render dependency trees."""
    _run(deps_cmd.show_tree, branch=branch)


@deps_app.command("set")
def deps_set_command(
    branch: str = typer.Argument(..., help="Branch of the head."),
    spec: str = typer.Argument(..., help="Comma-separated branches."),
) -> None:
    """Replace a head's dependencies, rejecting cycles."""
    _run(deps_cmd.set_deps, branch=branch, spec=spec)


@deps_app.command("wait")
def deps_wait_command(
    spec: str = typer.Argument(..., help="Comma-separated branches."),
    timeout: float = typer.Option(3600.0, "--timeout", help="Seconds before giving up."),
    poll_interval: float = typer.Option(
        5.0, "--poll-interval", help="Seconds between checks."
    ),
) -> None:
    """Block until the given branches have finished."""
    _run(deps_cmd.wait_deps, spec=spec, timeout=timeout, poll_interval=poll_interval)


@deps_app.command("dependents")
def deps_dependents_command(
    branch: str = typer.Argument(..., help="Branch to look up."),
) -> None:
    """List heads that depend on a branch."""
    _run(deps_cmd.show_dependents, branch=branch)


# -- queue -----------------------------------------------------------------


@queue_app.command("add")
def queue_add_command(
    branch: str = typer.Argument(..., help="Branch to queue."),
    ai: str | None = typer.Option(None, "--ai", help="AI command to start."),
    group: str | None = typer.Option(None, "--group", help="Group label."),
    layout: str | None = typer.Option(None, "--layout", help="Layout name."),
    priority: int = typer.Option(50, "--priority", help="0 (first) to 99 (last)."),
) -> None:
    """Queue a spawn request."""
    _run(
        queue_cmd.add_to_queue,
        branch=branch,
        ai=ai,
        group=group,
        layout=layout,
        priority=priority,
    )


@queue_app.command("list")
def queue_list_command(
    json_output: bool = typer.Option(False, "--json", help="Emit JSON."),
) -> None:
    """Show pending spawns in processing order."""
    _run(queue_cmd.list_queue, json=json_output)


@queue_app.command("remove")
def queue_remove_command(branch: str = typer.Argument(..., help="Branch to drop.")) -> None:
    """Drop the first queued spawn for a branch."""
    _run(queue_cmd.remove_from_queue, branch=branch)


@queue_app.command("clear")
def queue_clear_command() -> None:
    """Drop every queued spawn."""
    _run(queue_cmd.clear_queue)


@queue_app.command("process")
def queue_process_command() -> None:
    """Spawn queued heads while capacity allows."""
    _run(queue_cmd.process_queue)


@app.command("capacity")
def capacity_command(
    json_output: bool = typer.Option(False, "--json", help="Emit JSON."),
) -> None:
    """Show active heads against the session limit."""
    _run(queue_cmd.show_capacity, json=json_output)


# -- msg -------------------------------------------------------------------


@msg_app.command("send")
def msg_send_command(
    target: str = typer.Argument(..., help="Recipient branch."),
    body: str = typer.Argument(..., help="Message text."),
    sender: str | None = typer.Option(None, "--from", help="Sender branch."),
) -> None:
    """Send a message to a head."""
    _run(mail_cmd.send_message, target=target, body=body, sender=sender)


@msg_app.command("recv")
def msg_recv_command(
    branch: str | None = typer.Argument(None, help="Branch; defaults to this session's."),
    peek: bool = typer.Option(False, "--peek", help="Read without consuming."),
    archive: bool = typer.Option(False, "--archive", help="Archive instead of deleting."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON."),
) -> None:
    """Receive queued messages in send order."""
    _run(
        mail_cmd.recv_messages,
        branch=branch,
        peek=peek,
        archive=archive,
        json=json_output,
    )


@msg_app.command("count")
def msg_count_command(
    branch: str | None = typer.Argument(None, help="Branch; defaults to this session's."),
) -> None:
    """Print the number of queued messages."""
    _run(mail_cmd.count_messages, branch=branch)


@msg_app.command("broadcast")
def msg_broadcast_command(
    group: str = typer.Argument(..., help="Group to message."),
    body: str = typer.Argument(..., help="Message text."),
    sender: str | None = typer.Option(None, "--from", help="Sender branch."),
) -> None:
    """Send a message to every head in a group except the sender."""
    _run(mail_cmd.broadcast_message, group=group, body=body, sender=sender)


@msg_app.command("cleanup")
def msg_cleanup_command(
    days: float | None = typer.Option(None, "--days", help="Retention in days."),
) -> None:
    """Delete archived messages past retention."""
    _run(mail_cmd.cleanup_messages, days=days)


# -- locks -----------------------------------------------------------------


@locks_app.command("reap")
def locks_reap_command(
    max_age: float | None = typer.Option(None, "--max-age", help="Seconds before a lock is stale."),
) -> None:
    """Remove stale lock directories."""
    _run(locks_cmd.reap_locks, max_age=max_age)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
