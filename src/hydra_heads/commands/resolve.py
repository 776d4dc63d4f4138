"""Shared context resolution helpers for commands."""

from __future__ import annotations

from ..context import HydraContext


def resolve_context() -> HydraContext:
    """Build the invocation context from the environment and working directory."""
    return HydraContext.from_env()


def render_rows(rows: list[tuple[str, ...]]) -> list[str]:
    """Left-align rows into columns separated by two spaces."""
    widths = [max(len(row[index]) for row in rows) for index in range(len(rows[0]))]
    return [
        "  ".join(value.ljust(widths[index]) for index, value in enumerate(row)).rstrip()
        for row in rows
    ]
