from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, TypeVar
import logging
import os

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def default_workers() -> int:
    return max(1, os.cpu_count() or 1)


def map_days(fn: Callable[[T], R], tasks: Sequence[T], workers: Optional[int] = None) -> List[R]:
    """Run `fn` once per day-task on a fixed-size pool; results come back in task order.

    Each future is tagged with its task index and written into a pre-sized list,
    so the output never depends on completion order. Exceptions escaping `fn`
    are re-raised here, after the pool has shut down.
    """
    n = len(tasks)
    workers = default_workers() if workers is None else max(1, int(workers))
    out: List[Optional[R]] = [None] * n
    if n == 0:
        return []

    if workers == 1 or n == 1:
        for i, task in enumerate(tasks):
            out[i] = fn(task)
        return out  # type: ignore[return-value]

    logger.debug(f"dispatching {n} day tasks on {min(workers, n)} workers")
    with ThreadPoolExecutor(max_workers=min(workers, n), thread_name_prefix="day") as ex:
        futures = {ex.submit(fn, task): i for i, task in enumerate(tasks)}
        for fut in as_completed(futures):
            out[futures[fut]] = fut.result()
    return out  # type: ignore[return-value]
