"""Path helpers for locating Hydra data directories and files."""

from __future__ import annotations

import os
import re
from pathlib import Path
from tempfile import NamedTemporaryFile

from platformdirs import user_data_dir

from .errors import HomeNotWritableError

HYDRA_APP_NAME = "hydra"
REGISTRY_FILENAME = "map"
LOCKS_DIRNAME = "locks"
LOCK_SUFFIX = ".lock"
QUEUE_DIRNAME = "queue"
QUEUE_SUFFIX = ".queue"
MESSAGES_DIRNAME = "messages"
MESSAGE_QUEUE_DIRNAME = "queue"
MESSAGE_ARCHIVE_DIRNAME = "archive"
PR_CACHE_FILENAME = "pr_status_cache"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def default_home() -> Path:
    """Return the default Hydra home directory.

    Returns:
        Path to the user data directory for Hydra.

    Example:
        >>> isinstance(default_home(), Path)
        True
    """
    return Path(user_data_dir(HYDRA_APP_NAME))


def sanitize_name(value: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``.

    Example:
        >>> sanitize_name("feature/login.v2")
        'feature_login_v2'
    """
    return _UNSAFE_NAME_CHARS.sub("_", value)


def registry_path(home: Path) -> Path:
    """Return the default registry file path under a home directory.

    Example:
        >>> registry_path(Path("/tmp/hydra")).name == REGISTRY_FILENAME
        True
    """
    return home / REGISTRY_FILENAME


def locks_dir(home: Path) -> Path:
    """Return the directory holding lock directories."""
    return home / LOCKS_DIRNAME


def lock_path(home: Path, name: str) -> Path:
    """Return the lock directory for a lock name.

    Example:
        >>> lock_path(Path("/tmp/hydra"), "state").name
        'state.lock'
    """
    return locks_dir(home) / f"{name}{LOCK_SUFFIX}"


def queue_dir(home: Path) -> Path:
    """Return the spawn queue directory."""
    return home / QUEUE_DIRNAME


def messages_root(home: Path) -> Path:
    """Return the root of all per-head mailboxes."""
    return home / MESSAGES_DIRNAME


def message_dir(home: Path, branch: str) -> Path:
    """Return the mailbox directory for a branch.

    Example:
        >>> message_dir(Path("/tmp/hydra"), "feat/x").name
        'feat_x'
    """
    return messages_root(home) / sanitize_name(branch)


def pr_cache_path(home: Path) -> Path:
    """Return the PR status cache file path."""
    return home / PR_CACHE_FILENAME


def ensure_dir(path: Path) -> None:
    """Create a directory if it does not exist.

    Raises:
        HomeNotWritableError: The directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise HomeNotWritableError(str(path), exc.strerror or str(exc)) from exc


def write_text_atomic(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically replace a text file with new content.

    The content goes to a hidden temporary file in the same directory which is
    then renamed over ``path``, so readers see either the old or the new file.

    Raises:
        HomeNotWritableError: The directory or file cannot be written.
    """
    ensure_dir(path.parent)
    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            "w",
            encoding=encoding,
            delete=False,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            handle.write(content)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
    except OSError as exc:
        raise HomeNotWritableError(str(path.parent), exc.strerror or str(exc)) from exc
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
