# ruff: noqa: E402

import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import hydra_heads.log as hydra_log
from hydra_heads.config import ENV_FIELDS
from hydra_heads.locks import LockManager
from hydra_heads.state import StateStore

DOCTEST_MODULES = {
    ROOT / "src" / "hydra_heads" / "__init__.py",
    ROOT / "src" / "hydra_heads" / "admission.py",
    ROOT / "src" / "hydra_heads" / "config.py",
    ROOT / "src" / "hydra_heads" / "deps.py",
    ROOT / "src" / "hydra_heads" / "io.py",
    ROOT / "src" / "hydra_heads" / "locks.py",
    ROOT / "src" / "hydra_heads" / "mailbox.py",
    ROOT / "src" / "hydra_heads" / "models.py",
    ROOT / "src" / "hydra_heads" / "paths.py",
    ROOT / "src" / "hydra_heads" / "state.py",
}


class FakeTmux:
    """In-memory stand-in for the set of running tmux sessions."""

    def __init__(self) -> None:
        self.sessions: set[str] = set()
        self.missing_branches: set[str] = set()

    def session_alive(self, session: str) -> bool:
        return session in self.sessions

    def branch_exists(self, branch: str) -> bool:
        return branch not in self.missing_branches


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in [*ENV_FIELDS, "HYDRA_LOG_LEVEL", "HYDRA_NO_COLOR", "TMUX"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HYDRA_HOME", str(tmp_path / "hydra"))
    monkeypatch.setattr(hydra_log, "_configured_level", None)
    monkeypatch.setattr(hydra_log, "_no_color_override", None)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "hydra"


@pytest.fixture
def tmux() -> FakeTmux:
    return FakeTmux()


@pytest.fixture
def locks(home: Path) -> LockManager:
    return LockManager(home, sleep=lambda _seconds: None)


@pytest.fixture
def store(home: Path, locks: LockManager, tmux: FakeTmux) -> StateStore:
    return StateStore(
        home / "map",
        locks,
        session_alive=tmux.session_alive,
        branch_exists=tmux.branch_exists,
        clock=lambda: 1_700_000_000.0,
    )


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
