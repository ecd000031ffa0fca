from __future__ import annotations

import threading

import pytest

from catalogist.domain.errors import DocumentParseError, OracleTimeoutError
from catalogist.domain.ingest_pipeline.external import call_with_timeout


def test_returns_the_result() -> None:
    assert call_with_timeout("answer", lambda: 42, timeout=1.0) == 42


@pytest.mark.parametrize("error", [OracleTimeoutError("slow"), DocumentParseError("garbled")])
def test_absorbed_errors_mean_unavailable(error: Exception) -> None:
    def fail() -> int:
        raise error

    assert call_with_timeout("failing", fail, timeout=1.0) is None


def test_other_errors_propagate() -> None:
    def fail() -> int:
        raise ValueError("bug")

    with pytest.raises(ValueError, match="bug"):
        call_with_timeout("buggy", fail, timeout=1.0)


def test_custom_absorb_tuple() -> None:
    def fail() -> int:
        raise KeyError("missing")

    assert call_with_timeout("lookup", fail, timeout=1.0, absorb=(KeyError,)) is None


def test_timeout_returns_none() -> None:
    release = threading.Event()

    def hang() -> int:
        release.wait(5.0)
        return 1

    try:
        assert call_with_timeout("hanging", hang, timeout=0.05) is None
    finally:
        release.set()


def test_no_budget_left_skips_the_call() -> None:
    calls: list[int] = []

    assert call_with_timeout("late", lambda: calls.append(1), timeout=0.0) is None
    assert calls == []
