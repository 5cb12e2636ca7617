"""Fork-join execution of independent tasks on a thread pool."""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

logger = logging.getLogger("volgrid")

_ENV_VAR = "VOLGRID_NUM_THREADS"
_num_threads: int | None = None


def _default_num_threads() -> int:
    value = os.environ.get(_ENV_VAR)
    if value:
        try:
            n = int(value)
        except ValueError:
            raise ValueError(f"{_ENV_VAR} must be an integer, got '{value}'")
        if n < 1:
            raise ValueError(f"{_ENV_VAR} must be at least 1, got {n}")
        return n
    return os.cpu_count() or 1


def get_num_threads() -> int:
    """Process-wide worker count used when a call does not specify one."""
    if _num_threads is None:
        return _default_num_threads()
    return _num_threads


def set_num_threads(n: int | None) -> None:
    """Set the process-wide worker count; ``None`` restores the default."""
    global _num_threads
    if n is not None and n < 1:
        raise ValueError(f"Thread count must be at least 1, got {n}")
    _num_threads = n


def slab_bounds(depth: int, num_workers: int) -> list[tuple[int, int]]:
    """Split ``[0, depth)`` into one contiguous slab per worker.

    Slabs are ``ceil(depth / num_workers)`` long; trailing workers may get
    an empty range when there are more workers than planes.
    """
    if num_workers < 1:
        raise ValueError(f"Worker count must be at least 1, got {num_workers}")
    block = math.ceil(depth / num_workers)
    bounds = []
    for t in range(num_workers):
        start = min(t * block, depth)
        end = min((t + 1) * block, depth)
        bounds.append((start, end))
    return bounds


def run_parallel(tasks: Sequence[Callable[[], None]], max_workers: int) -> None:
    """Run ``tasks`` concurrently and block until all have finished.

    The first exception raised by a task is re-raised here after the
    remaining tasks are cancelled or have completed. An interrupt while
    waiting cancels pending tasks and propagates.
    """
    if not tasks:
        return
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="volgrid") as executor:
        futures = [executor.submit(task) for task in tasks]
        try:
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        except BaseException:
            for future in futures:
                future.cancel()
            raise
        for future in not_done:
            future.cancel()
        for future in futures:
            if future in done and future.exception() is not None:
                raise future.exception()
    logger.debug("Completed %d parallel tasks", len(tasks))
