"""Tests for paths, logging, console, and subprocess adapters."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

import hydra_heads.git as git
import hydra_heads.io as hydra_io
import hydra_heads.log as hydra_log
import hydra_heads.paths as paths
from hydra_heads import exec as exec_util
from hydra_heads.config import load_settings
from hydra_heads.context import HydraContext
from hydra_heads.errors import (
    DependencyMissingError,
    ExternalCommandFailedError,
    HomeNotWritableError,
    PolicyBlockedError,
)
from hydra_heads.spawn import TmuxSpawner
from hydra_heads.term import tmux


def test_write_text_atomic_replaces_content(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "file"

    paths.write_text_atomic(target, "one\n")
    paths.write_text_atomic(target, "two\n")

    assert target.read_text(encoding="utf-8") == "two\n"
    assert [path.name for path in target.parent.iterdir()] == ["file"]


def test_write_text_atomic_reports_unwritable_parent(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(HomeNotWritableError) as excinfo:
        paths.write_text_atomic(blocker / "file", "x")

    assert excinfo.value.recovery_hint == "set HYDRA_HOME to a writable directory"


def test_layout_helpers(tmp_path: Path) -> None:
    assert paths.queue_dir(tmp_path) == tmp_path / "queue"
    assert paths.messages_root(tmp_path) == tmp_path / "messages"
    assert paths.pr_cache_path(tmp_path) == tmp_path / "pr_status_cache"
    assert paths.lock_path(tmp_path, "state") == tmp_path / "locks" / "state.lock"


def test_log_level_filters_messages(capsys: pytest.CaptureFixture[str]) -> None:
    hydra_log.set_level("warning")
    hydra_log.info("hidden")
    hydra_log.warning("shown")

    captured = capsys.readouterr()
    assert "hidden" not in captured.out
    assert "shown" in captured.err


def test_log_level_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HYDRA_LOG_LEVEL", "debug")

    assert hydra_log.configured_level() is hydra_log.LogLevel.DEBUG


def test_unknown_log_level_falls_back_to_info() -> None:
    hydra_log.set_level("loud")

    assert hydra_log.configured_level() is hydra_log.LogLevel.INFO


def test_no_color_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    assert hydra_log._no_color() is False
    monkeypatch.setenv("NO_COLOR", "1")
    assert hydra_log._no_color() is True
    monkeypatch.delenv("NO_COLOR")
    hydra_log.set_no_color(True)
    assert hydra_log._no_color() is True


def test_die_on_failure_prints_hint(capsys: pytest.CaptureFixture[str]) -> None:
    failure = PolicyBlockedError("blocked", recovery_hint="try later")

    with pytest.raises(SystemExit) as excinfo:
        hydra_io.die_on_failure(failure)

    assert excinfo.value.code == 1
    assert capsys.readouterr().err == "error: blocked\nhint: try later\n"


def test_run_checked_raises_for_missing_and_failing_commands() -> None:
    with patch("hydra_heads.exec.try_run_command", return_value=None):
        with pytest.raises(DependencyMissingError):
            exec_util.run_checked(["tmux", "ls"])
    with patch(
        "hydra_heads.exec.try_run_command",
        return_value=subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="no server"
        ),
    ):
        with pytest.raises(ExternalCommandFailedError) as excinfo:
            exec_util.run_checked(["tmux", "ls"])
    assert "no server" in str(excinfo.value)


def test_try_run_command_returns_none_when_missing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def missing(*_args: object, **_kwargs: object) -> None:
        raise FileNotFoundError("tmux")

    monkeypatch.setattr(subprocess, "run", missing)

    assert exec_util.try_run_command(["tmux"]) is None


def test_tmux_session_exists_uses_exact_match() -> None:
    with patch(
        "hydra_heads.exec.try_run_command",
        return_value=subprocess.CompletedProcess(args=[], returncode=0),
    ) as run:
        assert tmux.session_exists("feat") is True

    run.assert_called_once_with(["tmux", "has-session", "-t", "=feat"])
    assert tmux.session_exists("") is False


def test_tmux_current_session_requires_tmux_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert tmux.current_session() is None

    monkeypatch.setenv("TMUX", "/tmp/tmux-0/default,1,0")
    with patch(
        "hydra_heads.exec.try_run_command",
        return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="feat\n"),
    ):
        assert tmux.current_session() == "feat"


def test_git_branch_exists_checks_local_ref() -> None:
    with patch(
        "hydra_heads.exec.try_run_command",
        return_value=subprocess.CompletedProcess(args=[], returncode=1),
    ) as run:
        assert git.branch_exists("feat", repo_dir=Path("/repo")) is False

    run.assert_called_once_with(
        ["git", "-C", "/repo", "show-ref", "--verify", "--quiet", "refs/heads/feat"]
    )
    with patch("hydra_heads.exec.try_run_command", return_value=None):
        assert git.branch_exists("feat") is False


def test_context_wires_components_under_home(tmp_path: Path) -> None:
    context = HydraContext(
        settings=load_settings({"HYDRA_HOME": str(tmp_path), "HYDRA_MAX_SESSIONS": "2"}),
        workdir=tmp_path,
        session_alive=lambda _session: False,
        branch_exists=lambda _branch: True,
    )

    assert context.store is context.resolver.store
    assert context.store.path == tmp_path / "map"
    assert context.admission.queue_dir == tmp_path / "queue"
    assert context.admission.max_capacity() == 2
    assert isinstance(context.spawner, TmuxSpawner)
    assert context.pr_cache.path == tmp_path / "pr_status_cache"
    assert context.mailbox.root == tmp_path / "messages"
    assert context.reap_stale_locks() == []
