"""Ports for post-commit work: downstream view refresh and background scheduling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable


@runtime_checkable
class ViewRefresher(Protocol):
    """Refreshes read-optimized cross-family views after new rows were written."""

    def refresh(self) -> None: ...


@runtime_checkable
class PostCommitScheduler(Protocol):
    """Runs best-effort tasks after a run committed. Must never raise into the caller."""

    def submit(self, name: str, task: Callable[[], None]) -> None: ...


__all__ = ["PostCommitScheduler", "ViewRefresher"]
