import os
from pathlib import Path

import pytest

from hydra_heads.errors import ValidationFailedError
from hydra_heads.locks import LockManager
from hydra_heads.mailbox import Mailbox, parse_message_filename


class NsClock:
    def __init__(self, start: int = 1_000_000_000_000_000_000) -> None:
        self.value = start

    def __call__(self) -> int:
        self.value += 1_000_000_000
        return self.value


@pytest.fixture
def mailbox(home: Path, locks: LockManager) -> Mailbox:
    return Mailbox(home, locks, clock_ns=NsClock(), clock=lambda: 2_000_000_000.0)


def test_receive_returns_messages_in_send_order(mailbox: Mailbox) -> None:
    for body in ("m1", "m2", "m3"):
        mailbox.send("feat-b", body, "feat-a")

    messages = mailbox.receive("feat-b")

    assert [message.body for message in messages] == ["m1", "m2", "m3"]
    assert [message.format() for message in messages] == [
        "FROM feat-a: m1",
        "FROM feat-a: m2",
        "FROM feat-a: m3",
    ]
    assert mailbox.receive("feat-b") == []
    assert mailbox.count("feat-b") == 0


def test_send_places_file_in_queue_dir(home: Path, mailbox: Mailbox) -> None:
    path = mailbox.send("feat/b", "hello", "feat/a")

    assert path.parent == home / "messages" / "feat_b" / "queue"
    assert path.read_text(encoding="utf-8") == "hello\n"
    assert parse_message_filename(path.name) == (1_000_000_001, "feat_a")
    assert not [p for p in (home / "messages" / "feat_b").iterdir() if p.is_file()]


def test_send_without_sender_uses_unknown(mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "hi")

    assert mailbox.receive("feat-b")[0].sender_branch == "unknown"


@pytest.mark.parametrize(("target", "body"), [("", "hi"), ("feat-b", "")])
def test_send_validates_target_and_body(mailbox: Mailbox, target: str, body: str) -> None:
    with pytest.raises(ValidationFailedError):
        mailbox.send(target, body, "feat-a")


def test_multiline_body_round_trips(mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "line one\nline two", "feat-a")

    assert mailbox.receive("feat-b")[0].body == "line one\nline two"


def test_peek_leaves_messages_queued(mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "m1", "feat-a")

    assert [message.body for message in mailbox.receive("feat-b", peek=True)] == ["m1"]
    assert mailbox.count("feat-b") == 1
    assert [message.body for message in mailbox.receive("feat-b")] == ["m1"]


def test_archive_moves_consumed_messages(home: Path, mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "m1", "feat-a")

    messages = mailbox.receive("feat-b", archive=True)

    assert messages[0].archived is True
    archived = list((home / "messages" / "feat-b" / "archive").iterdir())
    assert len(archived) == 1
    assert archived[0].read_text(encoding="utf-8") == "m1\n"
    assert mailbox.count("feat-b") == 0


def test_receive_requires_branch(mailbox: Mailbox) -> None:
    with pytest.raises(ValidationFailedError):
        mailbox.receive("")


def test_count_of_unknown_branch_is_zero(mailbox: Mailbox) -> None:
    assert mailbox.count("nobody") == 0
    assert mailbox.count("") == 0


def test_send_proceeds_when_mailbox_lock_is_busy(
    mailbox: Mailbox, locks: LockManager
) -> None:
    locks.try_acquire("msg_feat-b")

    mailbox.send("feat-b", "m1", "feat-a")

    assert mailbox.count("feat-b") == 1


def test_broadcast_skips_sender(mailbox: Mailbox) -> None:
    delivered = mailbox.broadcast(["a", "b", "c", "b"], "sync up", sender="a")

    assert delivered == ["b", "c"]
    assert mailbox.count("a") == 0
    assert mailbox.count("b") == 1
    assert mailbox.count("c") == 1


def test_cleanup_old_deletes_expired_archives(home: Path, mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "old", "feat-a")
    mailbox.send("feat-b", "new", "feat-a")
    mailbox.receive("feat-b", archive=True)
    archive = home / "messages" / "feat-b" / "archive"
    now = 2_000_000_000.0
    old, new = sorted(archive.iterdir())
    os.utime(old, (now - 8 * 86400, now - 8 * 86400))
    os.utime(new, (now - 86400, now - 86400))

    assert mailbox.cleanup_old(7) == 1
    assert [path.read_text(encoding="utf-8") for path in archive.iterdir()] == ["new\n"]


def test_cleanup_old_prunes_empty_directories(home: Path, mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "m1", "feat-a")
    mailbox.receive("feat-b")

    assert mailbox.cleanup_old() == 0
    assert not (home / "messages" / "feat-b").exists()


def test_cleanup_for_removes_whole_mailbox(home: Path, mailbox: Mailbox) -> None:
    mailbox.send("feat-b", "m1", "feat-a")

    mailbox.cleanup_for("feat-b")

    assert not (home / "messages" / "feat-b").exists()
    assert mailbox.count("feat-b") == 0


@pytest.mark.parametrize("name", ["nounderscore", "abc_sender_hash", "123_nohash"])
def test_parse_message_filename_rejects_foreign_names(name: str) -> None:
    assert parse_message_filename(name) is None


def test_send_order_survives_a_clock_that_repeats(home: Path, locks: LockManager) -> None:
    frozen = Mailbox(
        home, locks, clock_ns=lambda: 1_700_000_000_000_000_000, clock=lambda: 0.0
    )
    bodies = [f"m{index}" for index in range(1, 9)]
    for body in bodies:
        frozen.send("x", body, "s")

    messages = frozen.receive("x")

    assert [message.body for message in messages] == bodies
    assert {message.sent_at for message in messages} == {1_700_000_000}
