"""tmux session adapter."""

from __future__ import annotations

import os
from pathlib import Path

from .. import exec as exec_util


def session_exists(session: str) -> bool:
    """Return whether tmux has a session with exactly this name."""
    if not session:
        return False
    result = exec_util.try_run_command(["tmux", "has-session", "-t", f"={session}"])
    return bool(result and result.returncode == 0)


def current_session() -> str | None:
    """Return the tmux session this process runs in, if any."""
    if not os.environ.get("TMUX"):
        return None
    result = exec_util.try_run_command(["tmux", "display-message", "-p", "#S"])
    if not result or result.returncode != 0:
        return None
    name = (result.stdout or "").strip()
    return name or None


def new_session(session: str, cwd: Path) -> None:
    """Create a detached session rooted at ``cwd``."""
    exec_util.run_checked(["tmux", "new-session", "-d", "-s", session, "-c", str(cwd)])


def send_keys(session: str, command: str) -> None:
    """Type a command into the session's active pane and press enter."""
    exec_util.run_checked(["tmux", "send-keys", "-t", session, command, "Enter"])


def kill_session(session: str) -> bool:
    result = exec_util.try_run_command(["tmux", "kill-session", "-t", f"={session}"])
    return bool(result and result.returncode == 0)
