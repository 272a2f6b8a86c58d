from __future__ import annotations

import concurrent.futures
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(func: Callable[[T], R], items: Iterable[T], limit: int) -> List[R]:
    """Apply *func* to every item with at most *limit* calls in flight.

    Results come back in completion order.
    """

    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    items = list(items)
    if not items:
        return []

    results: List[R] = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=limit) as executor:
        futures = [executor.submit(func, item) for item in items]
        for future in concurrent.futures.as_completed(futures):
            results.append(future.result())
    return results
