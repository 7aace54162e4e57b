"""Wall-clock timing for simulations and generations.

Provides:
    - timer(): one-off measurement reported to a sink callback
    - TimerAccumulator: repeated measurements with last/mean

Used by:
    - scripts/simulate.py: duration of a direct simulation
    - evolution.driver: per-generation time in GenerationStats and the final summary
"""

import time
from contextlib import contextmanager
from typing import Callable, Optional


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Time the enclosed block, also when it raises.

    Parameters
    ----------
    name : str
        Label passed to the sink
    sink : Callable[[str, float], None], optional
        Receives ``(name, seconds)``; printed to stdout when None

    Examples
    --------
    >>> with timer("simulate", sink=lambda n, t: logger.info(f"{n}: {t:.3f}s")):
    ...     layermap = simulator.simulate_taping(shell_cfg)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is None:
            print(f"{name}: {elapsed:.3f} s")
        else:
            sink(name, elapsed)


class TimerAccumulator:
    """Running total over repeated measurements of the same phase.

    ``last`` holds the most recent duration, so a caller can both record a
    generation's time and report the mean at the end of a search.
    """

    def __init__(self, name: str):
        self.name = name
        self.reset()

    def reset(self) -> None:
        self.total_time = 0.0
        self.count = 0
        self.last = 0.0

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.last = time.perf_counter() - start
            self.total_time += self.last
            self.count += 1

    def mean(self) -> float:
        """Seconds per measurement; 0.0 before the first one."""
        if self.count == 0:
            return 0.0
        return self.total_time / self.count

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
