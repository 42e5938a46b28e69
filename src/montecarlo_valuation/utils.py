"""Helper functions shared across the simulation and valuation modules."""

from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Iterator
import math
import time

__all__ = [
    "log_timing",
    "round_half_up",
    "clamped_quantile_index",
]


@contextmanager
def log_timing(logger, label: str, enabled: bool) -> Iterator[None]:
    """Log timing for a code block when enabled is True."""
    if not enabled:
        yield
        return
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("Timing %s: %.6fs", label, elapsed)


def round_half_up(x: float) -> int:
    """Round to the nearest integer, ties away from -inf (``floor(x + 0.5)``).

    Python's built-in ``round`` uses banker's rounding, which would shift
    quantile indices for sample sizes where ``(n + 1) * p`` is a half-integer.
    """
    return int(math.floor(x + 0.5))


def clamped_quantile_index(size: int, quantile: float) -> int:
    """Index into a sorted sample of ``size`` values for the given quantile.

    Quantiles outside the range representable by the sample are clamped to
    the first / last element.

    Examples
    ========
    >>> clamped_quantile_index(5, 0.5)
    2
    >>> clamped_quantile_index(5, 1.5)
    4
    """
    return min(max(round_half_up((size + 1) * quantile - 1), 0), size - 1)
