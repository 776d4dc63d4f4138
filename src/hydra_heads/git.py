"""Git helpers used for registry liveness checks."""

from __future__ import annotations

from pathlib import Path

from . import exec as exec_util


def git_command(args: list[str], *, repo_dir: Path | None = None) -> list[str]:
    """Build a git command, optionally pinned to a repository directory.

    Example:
        >>> git_command(["status"], repo_dir=Path("/repo"))
        ['git', '-C', '/repo', 'status']
    """
    if repo_dir is None:
        return ["git", *args]
    return ["git", "-C", str(repo_dir), *args]


def branch_exists(branch: str, repo_dir: Path | None = None) -> bool:
    """Return whether a local branch exists.

    A missing git executable or a directory outside a repository counts as
    "does not exist".
    """
    if not branch:
        return False
    result = exec_util.try_run_command(
        git_command(
            ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
            repo_dir=repo_dir,
        )
    )
    return bool(result and result.returncode == 0)
