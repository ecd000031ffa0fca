"""Timeout-bounded calls to external collaborators."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from logging import getLogger
from typing import TYPE_CHECKING

from catalogist.domain.errors import DocumentParseError, OracleUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="catalogist-external")

ABSORBED: tuple[type[Exception], ...] = (OracleUnavailableError, DocumentParseError)


def call_with_timeout[T](
    label: str,
    func: Callable[[], T],
    *,
    timeout: float,
    absorb: tuple[type[Exception], ...] = ABSORBED,
) -> T | None:
    """Run ``func`` with a hard timeout; ``None`` means "unavailable".

    Timeouts and the ``absorb`` exceptions are logged and swallowed so the caller
    falls back to heuristics. Anything else propagates.
    """

    if timeout <= 0:
        log.warning("%s skipped: no time left in run budget", label)
        return None
    future = _EXECUTOR.submit(func)
    try:
        return future.result(timeout=timeout)
    except TimeoutError:
        future.cancel()
        log.warning("%s timed out after %.1fs, treating as unavailable", label, timeout)
        return None
    except absorb as exc:
        log.warning("%s unavailable: %s", label, exc)
        return None
