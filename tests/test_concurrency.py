from __future__ import annotations

import threading
import time

import pytest

from asset_optimizer.orchestration.concurrency import run_bounded


def test_run_bounded_limits_parallelism() -> None:
    lock = threading.Lock()
    active = 0
    peak = 0

    def work(item: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return item * 2

    results = run_bounded(work, range(12), limit=3)

    assert sorted(results) == [value * 2 for value in range(12)]
    assert 1 <= peak <= 3


def test_run_bounded_with_no_items() -> None:
    assert run_bounded(lambda item: item, [], limit=2) == []


def test_run_bounded_rejects_invalid_limit() -> None:
    with pytest.raises(ValueError):
        run_bounded(lambda item: item, [1], limit=0)
