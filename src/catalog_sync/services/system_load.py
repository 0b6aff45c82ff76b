"""Server load probe and the load-aware sizing policies."""

import time

import psutil
import structlog

from shared.constants import (
    BASE_BATCH_SIZE,
    BATCH_SIZE_LOAD_THRESHOLDS,
    CONCURRENCY_LOAD_THRESHOLDS,
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
)

logger = structlog.get_logger()


def current_load() -> float:
    """1-minute load average, or process memory share where unavailable."""
    try:
        return float(psutil.getloadavg()[0])
    except (AttributeError, OSError) as e:
        logger.debug("Load average unavailable, using memory share", error=str(e))

    total = psutil.virtual_memory().total
    if not total:
        return 0.0
    return psutil.Process().memory_info().rss / total


def max_concurrent_jobs(
    load: float,
    thresholds: tuple[float, float] = CONCURRENCY_LOAD_THRESHOLDS,
) -> int:
    """3 jobs under light load, 2 under medium, 1 otherwise."""
    low, medium = thresholds
    if load < low:
        return 3
    if load < medium:
        return 2
    return 1


def optimal_batch_size(
    load: float,
    base: int = BASE_BATCH_SIZE,
    floor: int = MIN_BATCH_SIZE,
    ceiling: int = MAX_BATCH_SIZE,
    thresholds: tuple[float, float] = BATCH_SIZE_LOAD_THRESHOLDS,
) -> int:
    """Double the base size under light load, halve it under heavy load."""
    low, medium = thresholds
    if load < low:
        size = base * 2
    elif load < medium:
        size = base
    else:
        size = base // 2
    return max(floor, min(ceiling, size))


class ResourceMeter:
    """Wall time and resident memory change since construction."""

    def __init__(self) -> None:
        self.process = psutil.Process()
        self.start_rss = self.process.memory_info().rss
        self.started = time.perf_counter()

    def elapsed(self) -> float:
        return time.perf_counter() - self.started

    def memory_delta(self) -> int:
        return self.process.memory_info().rss - self.start_rss
