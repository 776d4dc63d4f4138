from pathlib import Path

from hydra_heads.pr_cache import PrStatusCache


class Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_status_expires_after_ttl(tmp_path: Path) -> None:
    clock = Clock(1_000.0)
    cache = PrStatusCache(tmp_path / "pr_status_cache", 300, clock=clock)

    cache.put(12, "open")

    assert cache.get(12) == "OPEN"
    clock.now = 1_299.0
    assert cache.get(12) == "OPEN"
    clock.now = 1_300.0
    assert cache.get(12) is None


def test_entries_are_kept_per_pr(tmp_path: Path) -> None:
    path = tmp_path / "pr_status_cache"
    cache = PrStatusCache(path, 300, clock=Clock(50.0))

    cache.put(7, "merged")
    cache.put(3, "changes requested")
    cache.put(7, "closed")

    assert path.read_text(encoding="utf-8").splitlines() == [
        "3 CHANGES_REQUESTED 50",
        "7 CLOSED 50",
    ]
    assert cache.get(3) == "CHANGES_REQUESTED"
    assert cache.get(99) is None


def test_garbage_lines_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "pr_status_cache"
    path.write_text("junk\n5 OPEN 10\nx y z\n", encoding="utf-8")
    cache = PrStatusCache(path, 300, clock=Clock(20.0))

    assert cache.get(5) == "OPEN"


def test_clear_removes_file(tmp_path: Path) -> None:
    path = tmp_path / "pr_status_cache"
    cache = PrStatusCache(path, 300, clock=Clock(0.0))
    cache.put(1, "open")

    cache.clear()
    cache.clear()

    assert not path.exists()
    assert cache.get(1) is None
