"""Process-lifetime wiring of the coordination components."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from . import git, paths
from .admission import AdmissionController, Spawner
from .config import HydraSettings, load_settings
from .deps import DependencyResolver
from .locks import LockManager
from .mailbox import Mailbox
from .pr_cache import PrStatusCache
from .spawn import TmuxSpawner
from .state import BranchExistsFn, SessionAliveFn, StateStore
from .term import tmux


@dataclass
class HydraContext:
    """Owns one instance of every component for a single invocation.

    The state store, and therefore its read cache, lives exactly as long as
    this context.
    """

    settings: HydraSettings
    workdir: Path = field(default_factory=Path.cwd)
    session_alive: SessionAliveFn = tmux.session_exists
    branch_exists: BranchExistsFn | None = None
    spawner_override: Spawner | None = None

    @classmethod
    def from_env(cls) -> HydraContext:
        return cls(settings=load_settings())

    @property
    def home(self) -> Path:
        return self.settings.home

    @cached_property
    def locks(self) -> LockManager:
        return LockManager(self.home)

    @cached_property
    def store(self) -> StateStore:
        branch_exists = self.branch_exists or (
            lambda branch: git.branch_exists(branch, repo_dir=self.workdir)
        )
        return StateStore(
            self.settings.registry_file,
            self.locks,
            session_alive=self.session_alive,
            branch_exists=branch_exists,
        )

    @cached_property
    def resolver(self) -> DependencyResolver:
        return DependencyResolver(self.store, self.session_alive)

    @cached_property
    def spawner(self) -> Spawner:
        if self.spawner_override is not None:
            return self.spawner_override
        return TmuxSpawner(
            self.store,
            workdir=self.workdir,
            ai_command=self.settings.ai_command,
            skip_ai=self.settings.skip_ai,
            session_alive=self.session_alive,
        )

    @cached_property
    def admission(self) -> AdmissionController:
        return AdmissionController(
            self.settings.max_sessions,
            self.store,
            self.locks,
            paths.queue_dir(self.home),
            self.spawner,
        )

    @cached_property
    def mailbox(self) -> Mailbox:
        return Mailbox(self.home, self.locks)

    @cached_property
    def pr_cache(self) -> PrStatusCache:
        return PrStatusCache(paths.pr_cache_path(self.home), self.settings.pr_cache_ttl)

    def reap_stale_locks(self) -> list[str]:
        return self.locks.reap_stale(self.settings.lock_stale_seconds)
