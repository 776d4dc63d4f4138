"""Default spawn operation: one detached tmux session per head."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from . import log as hydra_log
from .admission import SpawnRequest, SpawnResult
from .errors import HydraFailure, SpawnFailedError
from .state import SessionAliveFn, StateStore
from .term import tmux

NewSessionFn = Callable[[str, Path], None]
SendKeysFn = Callable[[str, str], None]


class TmuxSpawner:
    """Create a tmux session for a branch and register the head.

    The session starts in ``workdir``; worktree creation and pane layouts are
    left to the caller. ``layout`` is accepted for interface compatibility
    only.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        workdir: Path,
        ai_command: str = "claude",
        skip_ai: bool = False,
        session_alive: SessionAliveFn = tmux.session_exists,
        new_session: NewSessionFn = tmux.new_session,
        send_keys: SendKeysFn = tmux.send_keys,
    ) -> None:
        self.store = store
        self.workdir = workdir
        self.ai_command = ai_command
        self.skip_ai = skip_ai
        self._session_alive = session_alive
        self._new_session = new_session
        self._send_keys = send_keys

    def spawn(self, request: SpawnRequest) -> SpawnResult:
        existing = self.store.get_by_branch(request.branch)
        if existing is not None and self._session_alive(existing.session_id):
            raise SpawnFailedError(
                f"branch '{request.branch}' already has an active session"
                f" '{existing.session_id}'"
            )
        session = self.store.generate_session_name(request.branch)
        try:
            hydra_log.info(f"Creating tmux session '{session}'...")
            self._new_session(session, self.workdir)
        except HydraFailure as exc:
            raise SpawnFailedError(
                f"could not create session for '{request.branch}': {exc}"
            ) from exc
        finally:
            self.store.release_session_name(session)
        ai_tool = request.ai_tool or self.ai_command
        # Registry fields are whitespace-delimited; record the executable only.
        self.store.register(
            request.branch,
            session,
            ai_tool=ai_tool.split()[0] if ai_tool.strip() else None,
            group=request.group,
            deps=request.deps,
        )
        if not self.skip_ai:
            hydra_log.info(f"Starting {ai_tool} in session '{session}'...")
            self._send_keys(session, ai_tool)
        return SpawnResult(branch=request.branch, session_id=session)
