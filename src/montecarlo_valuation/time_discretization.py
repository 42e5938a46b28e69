"""Ordered simulation time grid (year fractions)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .exceptions import ValidationError

# One hour, expressed as a year fraction
DEFAULT_TICK_SIZE = 1.0 / (365.0 * 24.0)


@dataclass(frozen=True, slots=True)
class TimeDiscretization:
    """Strictly increasing time grid ``t_0 < t_1 < ... < t_N``.

    Input times are rounded to ``tick_size``; duplicates created by the
    rounding are removed and the grid is sorted.

    Attributes
    ==========
    times: np.ndarray
        Grid points as year fractions.
    tick_size: float
        Resolution of the grid.
    """

    times: np.ndarray
    tick_size: float = DEFAULT_TICK_SIZE

    def __post_init__(self) -> None:
        if not np.isfinite(self.tick_size) or self.tick_size <= 0.0:
            raise ValidationError(f"tick_size must be positive, got {self.tick_size}")
        t = np.asarray(self.times, dtype=float)
        if t.ndim != 1 or t.size == 0:
            raise ValidationError("times must be a non-empty 1-D array")
        if not np.all(np.isfinite(t)):
            raise ValidationError("times must be finite")
        t = np.unique(np.round(t / self.tick_size) * self.tick_size)
        t.setflags(write=False)
        object.__setattr__(self, "times", t)

    @classmethod
    def from_tenor(
        cls,
        initial: float,
        number_of_time_steps: int,
        delta_t: float,
        tick_size: float = DEFAULT_TICK_SIZE,
    ) -> TimeDiscretization:
        """Equidistant grid ``initial, initial + delta_t, ..., initial + N * delta_t``."""
        if number_of_time_steps < 1:
            raise ValidationError(
                f"number_of_time_steps must be >= 1, got {number_of_time_steps}"
            )
        if delta_t <= 0.0:
            raise ValidationError(f"delta_t must be positive, got {delta_t}")
        return cls(initial + delta_t * np.arange(number_of_time_steps + 1), tick_size)

    @classmethod
    def from_times(cls, times: Sequence[float], tick_size: float = DEFAULT_TICK_SIZE):
        return cls(np.asarray(times, dtype=float), tick_size)

    @property
    def number_of_time_steps(self) -> int:
        return int(self.times.size) - 1

    @property
    def number_of_times(self) -> int:
        return int(self.times.size)

    def time(self, time_index: int) -> float:
        return float(self.times[time_index])

    def time_step(self, time_index: int) -> float:
        """Length of the interval ``[t_i, t_{i+1}]``."""
        if not 0 <= time_index < self.number_of_time_steps:
            raise ValidationError(
                f"time_index must be in [0, {self.number_of_time_steps}), got {time_index}"
            )
        return float(self.times[time_index + 1] - self.times[time_index])

    def time_steps(self) -> np.ndarray:
        return np.diff(self.times)

    def _round(self, time: float) -> float:
        return float(np.round(time / self.tick_size) * self.tick_size)

    def time_index(self, time: float) -> int | None:
        """Index of ``time`` on the grid, or ``None`` if it is not a grid point."""
        t = self._round(time)
        index = int(np.searchsorted(self.times, t))
        if index < self.times.size and np.isclose(self.times[index], t, rtol=0.0, atol=1e-12):
            return index
        return None

    def time_index_nearest_less_or_equal(self, time: float) -> int:
        """Largest index with ``t_i <= time``; ``-1`` if ``time`` precedes the grid."""
        t = self._round(time)
        return int(np.searchsorted(self.times, t + 1e-12, side="right")) - 1

    def __len__(self) -> int:
        return int(self.times.size)

    def __iter__(self):
        return iter(self.times.tolist())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeDiscretization):
            return NotImplemented
        return self.tick_size == other.tick_size and np.array_equal(self.times, other.times)

    def __hash__(self) -> int:
        return hash((self.tick_size, self.times.tobytes()))
