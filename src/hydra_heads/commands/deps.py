"""Dependency inspection commands."""

from __future__ import annotations

from ..deps import WaitProgress
from ..io import die, say
from .resolve import resolve_context


def check_deps(args: object) -> None:
    """Report whether a head's dependencies have finished.

    Exits non-zero while any dependency is still running.
    """
    branch = getattr(args, "branch", None) or ""
    context = resolve_context()
    deps = context.store.get_deps(branch)
    if not deps:
        say(f"{branch} has no dependencies")
        return
    pending = context.resolver.pending(",".join(deps))
    if pending:
        die(f"{branch} is waiting on: {', '.join(pending)}")
    say(f"All dependencies of {branch} are complete")


def show_tree(args: object) -> None:
    branch = getattr(args, "branch", None)
    resolver = resolve_context().resolver
    rendered = resolver.build_tree(branch) if branch else resolver.build_full_tree()
    say(rendered or "No dependencies registered.")


def show_dependents(args: object) -> None:
    branch = getattr(args, "branch", None) or ""
    dependents = sorted(resolve_context().resolver.dependents_of(branch))
    if not dependents:
        say(f"No heads depend on {branch}")
        return
    for dependent in dependents:
        say(dependent)


def wait_deps(args: object) -> None:
    spec = getattr(args, "spec", None)
    resolver = resolve_context().resolver
    resolver.validate_spec(spec)

    def report(progress: WaitProgress) -> None:
        say(f"Waiting for: {', '.join(progress.pending)} ({int(progress.elapsed)}s)")

    resolver.wait(
        spec,
        timeout=getattr(args, "timeout", 3600.0),
        poll_interval=getattr(args, "poll_interval", 5.0),
        on_progress=report,
    )
    say("All dependencies complete")


def set_deps(args: object) -> None:
    """Replace a head's dependencies after validating them and checking cycles."""
    branch = getattr(args, "branch", None) or ""
    spec = getattr(args, "spec", None)
    context = resolve_context()
    if context.store.get_by_branch(branch) is None:
        die(f"no head registered for branch '{branch}'")
    deps = context.resolver.validate_spec(spec)
    context.resolver.check_cycle(branch, spec)
    record = context.store.set_deps(branch, deps)
    say(f"Set dependencies for {record.branch}: {record.deps_spec}")
