"""Data models for heads, queued spawns, and mailbox messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

ABSENT = "-"
REGISTRY_FIELD_COUNT = 7
LEGACY_FIELD_COUNTS = (5, 6)


def _optional(value: str) -> str | None:
    return None if value == ABSENT else value


def _field(value: str | None) -> str:
    return value if value else ABSENT


def split_deps(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated dependency field into an ordered set.

    Example:
        >>> split_deps("a,b,,a")
        ('a', 'b')
        >>> split_deps("-")
        ()
    """
    if not value or value == ABSENT:
        return ()
    ordered: dict[str, None] = {}
    for item in value.split(","):
        item = item.strip()
        if item:
            ordered.setdefault(item, None)
    return tuple(ordered)


@dataclass(frozen=True)
class HeadRecord:
    """One registered head: a branch bound to a live session.

    Attributes:
        branch: Unique key of the record.
        session_id: Terminal session backing the head.
        ai_tool: AI command started in the head, if any.
        group: Optional group label.
        created_at: Unix timestamp of registration.
        deps: Ordered set of branches this head depends on.
        pr_number: Linked pull request, if any.

    Example:
        >>> HeadRecord("feat-a", "feat-a", created_at=10).to_line()
        'feat-a feat-a - - 10 - -'
    """

    branch: str
    session_id: str
    ai_tool: str | None = None
    group: str | None = None
    created_at: int = 0
    deps: tuple[str, ...] = ()
    pr_number: int | None = None

    @property
    def deps_spec(self) -> str | None:
        return ",".join(self.deps) if self.deps else None

    def to_line(self) -> str:
        return " ".join(
            [
                self.branch,
                self.session_id,
                _field(self.ai_tool),
                _field(self.group),
                str(int(self.created_at)),
                _field(self.deps_spec),
                ABSENT if self.pr_number is None else str(self.pr_number),
            ]
        )

    @classmethod
    def from_line(cls, line: str) -> HeadRecord:
        """Parse one registry line.

        Raises:
            ValueError: The line has the wrong field count or a bad number.

        Example:
            >>> HeadRecord.from_line("b s claude - 5 x,y 12").deps
            ('x', 'y')
        """
        parts = line.split()
        if len(parts) not in (REGISTRY_FIELD_COUNT, *LEGACY_FIELD_COUNTS):
            raise ValueError(f"expected {REGISTRY_FIELD_COUNT} fields, got {len(parts)}")
        parts += [ABSENT] * (REGISTRY_FIELD_COUNT - len(parts))
        branch, session_id, ai_tool, group, created_at, deps, pr_number = parts
        if branch == ABSENT or session_id == ABSENT:
            raise ValueError("branch and session are required")
        return cls(
            branch=branch,
            session_id=session_id,
            ai_tool=_optional(ai_tool),
            group=_optional(group),
            created_at=int(created_at),
            deps=split_deps(deps),
            pr_number=None if pr_number == ABSENT else int(pr_number),
        )


@dataclass(frozen=True)
class QueueEntry:
    """A spawn request waiting for capacity.

    Example:
        >>> entry = QueueEntry("b1", priority=10, requested_at=100)
        >>> QueueEntry.from_text(entry.to_text()) == entry
        True
    """

    branch: str
    ai_tool: str = "claude"
    group: str | None = None
    layout: str = "default"
    priority: int = 50
    requested_at: int = 0
    path: Path | None = field(default=None, compare=False)

    def to_text(self) -> str:
        lines = [
            f"branch={self.branch}",
            f"ai_tool={self.ai_tool}",
            f"group={self.group or ''}",
            f"layout={self.layout}",
            f"priority={self.priority}",
            f"requested_at={self.requested_at}",
        ]
        return "\n".join(lines) + "\n"

    @classmethod
    def from_text(cls, text: str, *, path: Path | None = None) -> QueueEntry:
        """Parse ``key=value`` lines.

        Raises:
            ValueError: ``branch`` is missing or a number does not parse.
        """
        values: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                values[key.strip()] = value.strip()
        branch = values.get("branch", "")
        if not branch:
            raise ValueError("queue entry has no branch")
        return cls(
            branch=branch,
            ai_tool=values.get("ai_tool") or "claude",
            group=values.get("group") or None,
            layout=values.get("layout") or "default",
            priority=int(values.get("priority") or 50),
            requested_at=int(values.get("requested_at") or 0),
            path=path,
        )

    def wait_seconds(self, now: float) -> int:
        return max(0, int(now) - self.requested_at)


@dataclass(frozen=True)
class Message:
    """One mailbox message addressed to a head.

    Example:
        >>> Message("x", "s", 0, "hi").format()
        'FROM s: hi'
    """

    target_branch: str
    sender_branch: str
    sent_at: int
    body: str
    archived: bool = False
    path: Path | None = field(default=None, compare=False)

    def format(self) -> str:
        return f"FROM {self.sender_branch}: {self.body}"
