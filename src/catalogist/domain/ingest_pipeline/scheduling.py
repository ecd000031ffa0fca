"""Post-commit schedulers: best-effort work that must never fail a run."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


def _run_logged(name: str, task: Callable[[], None]) -> None:
    try:
        task()
    except Exception:
        log.exception("Post-commit task %s failed", name)


@dataclass(slots=True)
class InlineScheduler:
    """Runs tasks immediately on the caller's thread. Used by tests and the CLI."""

    completed: list[str] = field(default_factory=list[str])

    def submit(self, name: str, task: Callable[[], None]) -> None:
        _run_logged(name, task)
        self.completed.append(name)


@dataclass(slots=True)
class ThreadedScheduler:
    """Runs tasks on a small background pool so the caller never waits on them."""

    max_workers: int = 2
    _executor: ThreadPoolExecutor = field(init=False)

    def __post_init__(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="catalogist-post-commit"
        )

    def submit(self, name: str, task: Callable[[], None]) -> None:
        self._executor.submit(_run_logged, name, task)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
