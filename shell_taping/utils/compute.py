"""Work partitioning and the thread-pool dispatch used by fitness evaluation.

Provides:
    - partition_ranges(): contiguous, gap-free index ranges for N items over W workers
    - WorkerPool: fixed-size pool exposing "submit N units, block until all complete"

The pool is the only concurrency primitive in the project. Units receive an
exclusive partition index and own all of their mutable state; the pool itself
never locks anything. There is no cancellation or timeout: a stuck unit
stalls ``run_jobs``.
"""

import concurrent.futures
import logging
from typing import Any, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)


def partition_ranges(n: int, workers: int) -> List[range]:
    """Split ``[0, n)`` into ``workers`` contiguous ranges.

    Parameters
    ----------
    n : int
        Number of items (>= 0)
    workers : int
        Number of partitions (>= 1)

    Returns
    -------
    list[range]
        Exactly ``workers`` ranges of length ``ceil(n / workers)``; the last
        non-empty range is truncated at ``n`` and any ranges past it are empty

    Notes
    -----
    The union of the returned ranges covers every index exactly once.

    Examples
    --------
    >>> partition_ranges(10, 4)
    [range(0, 3), range(3, 6), range(6, 9), range(9, 10)]
    >>> partition_ranges(4, 3)
    [range(0, 2), range(2, 4), range(4, 4)]
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")

    chunk = -(-n // workers)
    ranges = []
    for w in range(workers):
        start = min(w * chunk, n)
        end = min(start + chunk, n)
        ranges.append(range(start, end))
    return ranges


class WorkerPool:
    """Fixed-size thread pool with a join barrier.

    Parameters
    ----------
    worker_count : int
        Number of worker threads (>= 1)

    Examples
    --------
    >>> with WorkerPool(4) as pool:
    ...     pool.run_jobs(lambda i: do_work(i), range(pool.worker_count))
    """

    def __init__(self, worker_count: int):
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        self.worker_count = worker_count
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    def _ensure_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.worker_count,
                thread_name_prefix="fitness",
            )
        return self._executor

    def run_jobs(self, fn: Callable[[Any], Any], units: Iterable[Any]) -> List[Any]:
        """Run ``fn(unit)`` for every unit and wait for all of them.

        Parameters
        ----------
        fn : Callable
            Work function, called once per unit on a pool thread
        units : Iterable
            Work units (typically partition indices)

        Returns
        -------
        list
            Results in submission order

        Raises
        ------
        Exception
            The first failure in submission order, re-raised after every unit
            has finished
        """
        executor = self._ensure_executor()
        futures = [executor.submit(fn, unit) for unit in units]

        # Join barrier: nothing is returned or raised until all units are done
        concurrent.futures.wait(futures)

        results = []
        for future in futures:
            exc = future.exception()
            if exc is not None:
                logger.error(f"Worker unit failed: {exc!r}")
                raise exc
            results.append(future.result())
        return results

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"WorkerPool(worker_count={self.worker_count})"
