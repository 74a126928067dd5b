"""
Random source for the Semaphore Contention Simulator.

Every worker owns an independent numpy Generator. With a run-level seed the
stream is a deterministic function of (seed, worker id); without one it is
seeded from fresh OS entropy.
"""

from typing import Optional

import numpy as np


MIN_DELAY_MS = 1


def make_rng(worker_id: int, seed: Optional[int] = None) -> np.random.Generator:
    """
    Create the random stream for one worker.

    Args:
        worker_id: Worker identifier (non-negative)
        seed: Run-level seed, or None for a non-reproducible stream

    Returns:
        Independent numpy Generator
    """
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng([int(seed), int(worker_id)])


def gaussian_ms(rng: np.random.Generator, mean_ms: float, std_dev_ms: float) -> int:
    """
    Draw a duration in whole milliseconds from N(mean, std_dev), floored at 1 ms.

    The draw is truncated toward zero before the floor is applied.
    """
    value = rng.normal(mean_ms, std_dev_ms) if std_dev_ms > 0 else float(mean_ms)
    return max(MIN_DELAY_MS, int(value))


def uniform_ms(rng: np.random.Generator, upper_ms: int) -> int:
    """Uniform whole-millisecond delay in [0, upper_ms)."""
    return int(rng.random() * upper_ms)


def pick_index(rng: np.random.Generator, size: int) -> int:
    """Uniformly choose an index in [0, size)."""
    return int(rng.integers(size))
