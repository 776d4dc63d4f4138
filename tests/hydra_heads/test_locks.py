import os
from pathlib import Path

import pytest

import hydra_heads.paths as paths
from hydra_heads.errors import HomeNotWritableError
from hydra_heads.locks import LockManager


def test_try_acquire_is_exclusive_until_released(locks: LockManager) -> None:
    assert locks.try_acquire("state") is True
    assert locks.try_acquire("state") is False
    assert locks.is_held("state") is True

    locks.release("state")

    assert locks.is_held("state") is False
    assert locks.try_acquire("state") is True


def test_lock_is_a_directory_under_home(home: Path, locks: LockManager) -> None:
    locks.try_acquire("queue_add")

    assert (home / paths.LOCKS_DIRNAME / "queue_add.lock").is_dir()


def test_release_is_idempotent(locks: LockManager) -> None:
    locks.release("never-taken")
    locks.try_acquire("state")
    locks.release("state")
    locks.release("state")

    assert locks.is_held("state") is False


def test_lock_names_are_sanitized(home: Path, locks: LockManager) -> None:
    assert locks.try_acquire("msg_feat/login") is True

    assert locks.path_for("msg_feat/login").name == "msg_feat_login.lock"
    assert locks.path_for("msg_feat/login").parent == home / paths.LOCKS_DIRNAME


def test_acquire_backs_off_exponentially_up_to_cap(home: Path) -> None:
    sleeps: list[float] = []
    locks = LockManager(home, sleep=sleeps.append, jitter=lambda: 0.5)
    locks.try_acquire("state")

    assert locks.acquire("state", attempts=5, delay=0.25, max_delay=1.0) is False
    assert sleeps == [0.25, 0.5, 1.0, 1.0]


def test_acquire_jitter_scales_each_pause(home: Path) -> None:
    sleeps: list[float] = []
    locks = LockManager(home, sleep=sleeps.append, jitter=lambda: 0.0)
    locks.try_acquire("state")

    assert locks.acquire("state", attempts=3, delay=0.5, max_delay=4.0) is False
    assert sleeps == [0.25, 0.5]


def test_default_retry_budget_covers_seconds_of_contention(home: Path) -> None:
    sleeps: list[float] = []
    locks = LockManager(home, sleep=sleeps.append, jitter=lambda: 0.5)
    locks.try_acquire("state")

    assert locks.acquire("state") is False
    assert 2.0 <= sum(sleeps) <= 4.0
    assert max(sleeps) == pytest.approx(0.25)


def test_held_yields_acquired_and_releases(locks: LockManager) -> None:
    with locks.held("state") as acquired:
        assert acquired is True
        assert locks.is_held("state") is True

    assert locks.is_held("state") is False


def test_held_runs_block_without_releasing_foreign_lock(locks: LockManager) -> None:
    locks.try_acquire("state")

    with locks.held("state", attempts=1) as acquired:
        assert acquired is False

    assert locks.is_held("state") is True


def test_reap_stale_removes_only_old_locks(home: Path) -> None:
    now = 10_000.0
    locks = LockManager(home, clock=lambda: now)
    locks.try_acquire("old")
    locks.try_acquire("fresh")
    os.utime(locks.path_for("old"), (now - 120, now - 120))
    os.utime(locks.path_for("fresh"), (now - 5, now - 5))

    reaped = locks.reap_stale(60)

    assert reaped == ["old"]
    assert locks.is_held("old") is False
    assert locks.is_held("fresh") is True


def test_age_reports_seconds_since_acquired(home: Path) -> None:
    now = 5_000.0
    locks = LockManager(home, clock=lambda: now)
    assert locks.age("state") is None

    locks.try_acquire("state")
    os.utime(locks.path_for("state"), (now - 30, now - 30))

    assert locks.age("state") == pytest.approx(30.0)


def test_reap_without_locks_dir_returns_empty(locks: LockManager) -> None:
    assert locks.reap_stale() == []


def test_unwritable_home_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    locks = LockManager(blocker)

    with pytest.raises(HomeNotWritableError):
        locks.try_acquire("state")
