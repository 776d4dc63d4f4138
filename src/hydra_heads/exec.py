"""Subprocess helpers for running external commands."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

from .errors import DependencyMissingError, ExternalCommandFailedError


def try_run_command(
    cmd: list[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """Run a command and return ``None`` if the executable is missing.

    Args:
        cmd: Command and arguments to execute.
        cwd: Optional working directory.

    Returns:
        ``CompletedProcess`` on execution, otherwise ``None``.

    Example:
        >>> isinstance(try_run_command(["true"]), subprocess.CompletedProcess)
        True
    """
    try:
        return subprocess.run(
            cmd, cwd=cwd, env=env, capture_output=True, text=True, check=False
        )
    except FileNotFoundError:
        return None


def run_checked(
    cmd: list[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run a command and return its stdout, raising on any failure.

    Raises:
        DependencyMissingError: The executable is not installed.
        ExternalCommandFailedError: The command exited non-zero.
    """
    result = try_run_command(cmd, cwd=cwd, env=env)
    if result is None:
        raise DependencyMissingError(f"missing required command: {cmd[0]}")
    if result.returncode != 0:
        output = (result.stderr or result.stdout or "").strip()
        detail = f"command failed: {' '.join(cmd)}"
        if output:
            detail = f"{detail}\n{output}"
        raise ExternalCommandFailedError(detail)
    return result.stdout or ""
