"""Duration recording for scan timing."""

import logging
import time

logger = logging.getLogger("lfs_scanner.performance")


def record_duration(label: str, start: float) -> float:
    """Log the time elapsed since start under the given label.

    Args:
        label: Name of the timed operation (e.g. "scan")
        start: Value of time.perf_counter() when the operation began

    Returns:
        Elapsed seconds
    """
    elapsed = time.perf_counter() - start
    logger.debug(f"performance {label}: {elapsed:.6f}s")
    return elapsed
