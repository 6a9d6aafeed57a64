"""Parallel execution utilities.

Rule evaluation is I/O bound on the DuckDB side and DuckDB releases the GIL
while executing, so the threading backend is the default.
"""

import os
from typing import Any, Callable, List, Optional

from joblib import Parallel, delayed

from rule_dedupe.utils.logging_utils import get_logger

logger = get_logger(__name__)

BACKENDS = ("threading", "sequential")


def get_optimal_workers(requested: Optional[int] = None) -> int:
    """Clamp a requested worker count to the available CPUs."""
    cpu_count = os.cpu_count() or 1
    if requested is None:
        return min(8, cpu_count)
    return max(1, min(int(requested), cpu_count))


def parallel_map(
    func: Callable[[Any], Any],
    items: List[Any],
    workers: Optional[int] = None,
    backend: str = "threading",
) -> List[Any]:
    """Parallel map function using joblib with deterministic ordering.

    Args:
        func: Function to apply to each item
        items: List of items to process
        workers: Number of workers (1 or None runs sequentially)
        backend: 'threading' or 'sequential'

    Returns:
        List of results in the same order as input items

    """
    if backend not in BACKENDS:
        raise ValueError(f"Unsupported parallel backend {backend!r}")

    if backend == "sequential" or workers is None or workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    logger.debug(f"parallel_map | backend={backend} | workers={workers} | items={len(items)}")
    results = Parallel(n_jobs=workers, backend=backend)(delayed(func)(item) for item in items)

    # Ensure we return a list (joblib Parallel returns Any)
    return list(results)
