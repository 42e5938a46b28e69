"""Vectorized random variables: the numeric value type of the simulation.

A :class:`RandomVariable` is either a deterministic scalar or a dense array
of per-path realizations, observed at a *filtration time*. Instances are
immutable: every operation returns a new instance and the realization
arrays are flagged read-only, so values can be shared freely between
threads and path caches.

Numerical degeneracy follows IEEE-754. Division by zero yields a signed
infinity, NaN propagates, and no floating point warning or exception is
raised by any operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence, Union
import logging
import math

import numpy as np

from .enums import Precision
from .exceptions import ValidationError
from .utils import clamped_quantile_index

if TYPE_CHECKING:
    from .regression import ConditionalExpectationRegression


logger = logging.getLogger(__name__)

__all__ = [
    "RandomVariable",
    "RandomVariableFactory",
    "Operand",
]

Operand = Union["RandomVariable", float, int]


def _unpack(operand: Operand) -> tuple[float, float, np.ndarray | None]:
    """Return ``(filtration_time, scalar_value, realizations)`` of an operand."""
    if isinstance(operand, RandomVariable):
        return operand._filtration_time, operand._value, operand._realizations
    return -np.inf, float(operand), None


def _freeze(values: np.ndarray) -> np.ndarray:
    values.setflags(write=False)
    return values


class RandomVariable:
    """Deterministic scalar or per-path realizations observed at a filtration time.

    Parameters
    ==========
    value: float or array-like
        A scalar for a deterministic random variable, or a 1-D sequence of
        realizations (one per path).
    filtration_time: float, default -inf
        Simulation time at which the value becomes known. Constants are
        known at all times.
    dtype: numpy dtype, default float64
        Storage precision of the realizations (``float64`` or ``float32``).

    Examples
    ========
    >>> x = RandomVariable([-4.0, -2.0, 0.0, 2.0, 4.0])
    >>> x.average(), x.variance()
    (0.0, 8.0)
    >>> RandomVariable(2.0).mult(x).max()
    8.0
    """

    __slots__ = ("_filtration_time", "_value", "_realizations")

    def __init__(
        self,
        value: Operand | Sequence[float] | np.ndarray,
        filtration_time: float = -np.inf,
        dtype: np.dtype | type = np.float64,
    ) -> None:
        self._filtration_time = float(filtration_time)
        if isinstance(value, RandomVariable):
            self._filtration_time = max(self._filtration_time, value._filtration_time)
            self._value = value._value
            self._realizations = value._realizations
            return

        array = np.asarray(value)
        if array.ndim == 0:
            self._value = float(np.dtype(dtype).type(array))
            self._realizations = None
        elif array.ndim == 1:
            self._value = math.nan
            self._realizations = _freeze(np.array(array, dtype=dtype, copy=True))
        else:
            raise ValidationError(
                f"realizations must be a scalar or 1-D array, got ndim={array.ndim}"
            )

    # ------------------------------------------------------------------
    # construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def constant(cls, value: float, filtration_time: float = -np.inf) -> RandomVariable:
        """Deterministic random variable."""
        return cls(float(value), filtration_time)

    @classmethod
    def from_realizations(
        cls,
        realizations: Sequence[float] | np.ndarray,
        filtration_time: float = -np.inf,
        dtype: np.dtype | type = np.float64,
    ) -> RandomVariable:
        """Stochastic random variable from a 1-D array of path values."""
        return cls(np.asarray(realizations), filtration_time, dtype=dtype)

    @classmethod
    def _of(cls, filtration_time: float, value: float, realizations: np.ndarray | None):
        # Internal constructor: takes ownership of ``realizations`` without copying.
        rv = object.__new__(cls)
        rv._filtration_time = filtration_time
        if realizations is None or np.ndim(realizations) == 0:
            rv._value = float(value if realizations is None else realizations)
            rv._realizations = None
        else:
            rv._value = math.nan
            rv._realizations = _freeze(np.asarray(realizations))
        return rv

    @staticmethod
    def _coerce(operand: Operand) -> RandomVariable:
        if isinstance(operand, RandomVariable):
            return operand
        return RandomVariable.constant(operand)

    # ------------------------------------------------------------------
    # properties
    # ------------------------------------------------------------------

    @property
    def filtration_time(self) -> float:
        return self._filtration_time

    def is_deterministic(self) -> bool:
        return self._realizations is None

    @property
    def size(self) -> int:
        """Number of paths; a deterministic random variable has size 1."""
        if self._realizations is None:
            return 1
        return int(self._realizations.size)

    @property
    def dtype(self) -> np.dtype:
        if self._realizations is None:
            return np.dtype(np.float64)
        return self._realizations.dtype

    @property
    def realizations(self) -> np.ndarray:
        """Read-only view of the path values (length-1 array if deterministic)."""
        if self._realizations is None:
            return _freeze(np.array([self._value]))
        return self._realizations

    def get(self, path: int) -> float:
        if self._realizations is None:
            return self._value
        return float(self._realizations[path])

    def as_array(self, number_of_paths: int | None = None) -> np.ndarray:
        """Writable copy of the realizations, broadcasting a deterministic value.

        Parameters
        ==========
        number_of_paths: int, optional
            Length of the returned array for a deterministic random variable.
            Ignored for stochastic ones.
        """
        if self._realizations is None:
            return np.full(1 if number_of_paths is None else number_of_paths, self._value)
        return self._realizations.copy()

    def cache(self) -> RandomVariable:
        """Return a random variable that can be stored; instances are already immutable."""
        return self

    def equals(self, other: RandomVariable) -> bool:
        """Value equality: same filtration time and identical realizations."""
        if self._filtration_time != other._filtration_time:
            return False
        if self.is_deterministic() != other.is_deterministic():
            return False
        if self._realizations is None:
            return self._value == other._value
        return bool(np.array_equal(self._realizations, other._realizations))

    def __float__(self) -> float:
        if self._realizations is not None:
            raise ValidationError(
                "Cannot convert a stochastic random variable to float; use average()"
            )
        return self._value

    def __repr__(self) -> str:
        if self._realizations is None:
            return f"RandomVariable(value={self._value!r}, filtration_time={self._filtration_time!r})"
        return (
            f"RandomVariable(size={self._realizations.size}, dtype={self._realizations.dtype}, "
            f"average={self.average():.6g}, filtration_time={self._filtration_time!r})"
        )

    # ------------------------------------------------------------------
    # operator plumbing
    # ------------------------------------------------------------------

    def _unary(self, op: Callable[[np.ndarray], np.ndarray]) -> RandomVariable:
        with np.errstate(all="ignore"):
            if self._realizations is None:
                return RandomVariable._of(
                    self._filtration_time, float(op(np.float64(self._value))), None
                )
            return RandomVariable._of(self._filtration_time, math.nan, op(self._realizations))

    def _binary(self, other: Operand, op: Callable) -> RandomVariable:
        other_time, other_value, other_realizations = _unpack(other)
        time = max(self._filtration_time, other_time)
        with np.errstate(all="ignore"):
            if self._realizations is None and other_realizations is None:
                # scalar fast path: no array allocation
                return RandomVariable._of(
                    time, float(op(np.float64(self._value), np.float64(other_value))), None
                )
            if self._realizations is not None and other_realizations is not None:
                if self._realizations.size != other_realizations.size:
                    raise ValidationError(
                        "Path count mismatch: "
                        f"{self._realizations.size} vs {other_realizations.size}"
                    )
            left = self._value if self._realizations is None else self._realizations
            right = other_value if other_realizations is None else other_realizations
            return RandomVariable._of(time, math.nan, op(left, right))

    def _ternary(self, first: Operand, second: Operand, op: Callable) -> RandomVariable:
        t1, v1, r1 = _unpack(first)
        t2, v2, r2 = _unpack(second)
        time = max(self._filtration_time, t1, t2)
        sizes = {r.size for r in (self._realizations, r1, r2) if r is not None}
        if len(sizes) > 1:
            raise ValidationError(f"Path count mismatch: {sorted(sizes)}")
        a = self._value if self._realizations is None else self._realizations
        b = v1 if r1 is None else r1
        c = v2 if r2 is None else r2
        with np.errstate(all="ignore"):
            if not sizes:
                return RandomVariable._of(
                    time, float(op(np.float64(a), np.float64(b), np.float64(c))), None
                )
            return RandomVariable._of(time, math.nan, op(a, b, c))

    # ------------------------------------------------------------------
    # unary operations
    # ------------------------------------------------------------------

    def squared(self) -> RandomVariable:
        return self._unary(np.square)

    def sqrt(self) -> RandomVariable:
        return self._unary(np.sqrt)

    def exp(self) -> RandomVariable:
        return self._unary(np.exp)

    def expm1(self) -> RandomVariable:
        return self._unary(np.expm1)

    def log(self) -> RandomVariable:
        return self._unary(np.log)

    def abs(self) -> RandomVariable:
        return self._unary(np.abs)

    def invert(self) -> RandomVariable:
        return self._unary(lambda x: 1.0 / x)

    def pow(self, exponent: float) -> RandomVariable:
        return self._unary(lambda x: np.power(x, exponent))

    def is_nan(self) -> RandomVariable:
        """Indicator random variable: 1.0 on paths with NaN, 0.0 elsewhere."""
        return self._unary(lambda x: np.isnan(x).astype(float))

    def apply(self, function: Callable[..., np.ndarray], *arguments: Operand) -> RandomVariable:
        """Apply a vectorized numpy function to this and further random variables.

        ``function`` receives plain floats for deterministic operands and
        arrays for stochastic ones; it must broadcast like a numpy ufunc.
        """
        if not arguments:
            return self._unary(function)
        if len(arguments) == 1:
            return self._binary(arguments[0], function)
        if len(arguments) == 2:
            return self._ternary(arguments[0], arguments[1], function)
        raise ValidationError("apply supports at most two additional arguments")

    # ------------------------------------------------------------------
    # binary operations
    # ------------------------------------------------------------------

    def add(self, other: Operand) -> RandomVariable:
        return self._binary(other, np.add)

    def sub(self, other: Operand) -> RandomVariable:
        return self._binary(other, np.subtract)

    def bus(self, other: Operand) -> RandomVariable:
        """Reverse subtraction: ``other - self``."""
        return self._binary(other, lambda x, y: y - x)

    def mult(self, other: Operand) -> RandomVariable:
        return self._binary(other, np.multiply)

    def div(self, other: Operand) -> RandomVariable:
        return self._binary(other, np.true_divide)

    def vid(self, other: Operand) -> RandomVariable:
        """Reverse division: ``other / self``."""
        return self._binary(other, lambda x, y: y / x)

    def cap(self, other: Operand) -> RandomVariable:
        """Path-wise ``min(self, other)``."""
        return self._binary(other, np.minimum)

    def floor(self, other: Operand) -> RandomVariable:
        """Path-wise ``max(self, other)``."""
        return self._binary(other, np.maximum)

    def accrue(self, rate: Operand, period_length: float) -> RandomVariable:
        """``self * (1 + rate * period_length)``."""
        return self._binary(rate, lambda x, r: x * (1.0 + r * period_length))

    def discount(self, rate: Operand, period_length: float) -> RandomVariable:
        """``self / (1 + rate * period_length)``."""
        return self._binary(rate, lambda x, r: x / (1.0 + r * period_length))

    # ------------------------------------------------------------------
    # ternary / fused operations
    # ------------------------------------------------------------------

    def choose(self, value_if_non_negative: Operand, value_if_negative: Operand) -> RandomVariable:
        """Select path-wise by the sign of ``self``; a trigger of exactly zero is non-negative.

        NaN triggers select ``value_if_negative``.
        """
        if self._realizations is None:
            chosen = RandomVariable._coerce(
                value_if_non_negative if self._value >= 0.0 else value_if_negative
            )
            return RandomVariable._of(
                max(self._filtration_time, chosen._filtration_time),
                chosen._value,
                chosen._realizations,
            )
        return self._ternary(
            value_if_non_negative,
            value_if_negative,
            lambda trigger, a, b: np.where(trigger >= 0.0, a, b),
        )

    @staticmethod
    def barrier(
        trigger: Operand,
        value_if_triggered: Operand,
        value_if_not_triggered: Operand,
    ) -> RandomVariable:
        """``value_if_triggered`` where ``trigger >= 0``, else ``value_if_not_triggered``."""
        return RandomVariable._coerce(trigger).choose(value_if_triggered, value_if_not_triggered)

    def add_product(self, factor1: Operand, factor2: Operand) -> RandomVariable:
        """``self + factor1 * factor2``."""
        return self._ternary(factor1, factor2, lambda x, a, b: x + a * b)

    def add_sum_product(
        self, factors1: Sequence[Operand], factors2: Sequence[Operand]
    ) -> RandomVariable:
        """``self + sum_i factors1[i] * factors2[i]``."""
        if len(factors1) != len(factors2):
            raise ValidationError(
                f"add_sum_product needs equally long factor lists, got {len(factors1)} and {len(factors2)}"
            )
        result = self
        for factor1, factor2 in zip(factors1, factors2):
            result = result.add_product(factor1, factor2)
        return result

    def add_ratio(self, numerator: Operand, denominator: Operand) -> RandomVariable:
        """``self + numerator / denominator``."""
        return self._ternary(numerator, denominator, lambda x, n, d: x + n / d)

    def sub_ratio(self, numerator: Operand, denominator: Operand) -> RandomVariable:
        """``self - numerator / denominator``."""
        return self._ternary(numerator, denominator, lambda x, n, d: x - n / d)

    def get_conditional_expectation(
        self, estimator: ConditionalExpectationRegression
    ) -> RandomVariable:
        return estimator.conditional_expectation(self)

    # ------------------------------------------------------------------
    # python operators
    # ------------------------------------------------------------------

    def __add__(self, other: Operand) -> RandomVariable:
        return self.add(other)

    def __radd__(self, other: Operand) -> RandomVariable:
        return self.add(other)

    def __sub__(self, other: Operand) -> RandomVariable:
        return self.sub(other)

    def __rsub__(self, other: Operand) -> RandomVariable:
        return self.bus(other)

    def __mul__(self, other: Operand) -> RandomVariable:
        return self.mult(other)

    def __rmul__(self, other: Operand) -> RandomVariable:
        return self.mult(other)

    def __truediv__(self, other: Operand) -> RandomVariable:
        return self.div(other)

    def __rtruediv__(self, other: Operand) -> RandomVariable:
        return self.vid(other)

    def __pow__(self, exponent: float) -> RandomVariable:
        return self.pow(exponent)

    def __neg__(self) -> RandomVariable:
        return self._unary(np.negative)

    def __abs__(self) -> RandomVariable:
        return self.abs()

    # ------------------------------------------------------------------
    # reductions
    # ------------------------------------------------------------------

    def average(self) -> float:
        if self._realizations is None:
            return self._value
        if self._realizations.size == 0:
            return math.nan
        return float(np.mean(self._realizations, dtype=np.float64))

    def average_weighted(
        self, probabilities: RandomVariable, number_of_paths: int | None = None
    ) -> float:
        """Expectation ``sum(x * p)`` under path weights ``probabilities``.

        A deterministic value is spread over the paths of ``probabilities``.
        When both are deterministic the logical path count is
        ``number_of_paths``; without it the weights are taken to sum to one.
        """
        if self._realizations is None:
            if not probabilities.is_deterministic():
                weights = probabilities.realizations.astype(np.float64)
                return float(self._value * np.sum(weights, dtype=np.float64))
            if number_of_paths is None:
                return self._value
            return self._value * probabilities.average() * number_of_paths
        if self._realizations.size == 0:
            return math.nan
        weights = probabilities.as_array(self._realizations.size).astype(np.float64)
        return float(np.sum(self._realizations * weights, dtype=np.float64))

    def variance(self) -> float:
        """Population variance (divides by the number of paths)."""
        if self._realizations is None or self._realizations.size == 1:
            return 0.0
        if self._realizations.size == 0:
            return math.nan
        return float(np.var(self._realizations, dtype=np.float64))

    def variance_weighted(self, probabilities: RandomVariable) -> float:
        if self._realizations is None:
            return 0.0
        if self._realizations.size == 0:
            return math.nan
        weights = probabilities.as_array(self._realizations.size).astype(np.float64)
        mean = self.average_weighted(probabilities)
        deviation = self._realizations.astype(np.float64) - mean
        return float(np.sum(deviation * deviation * weights))

    def sample_variance(self) -> float:
        """Unbiased variance (divides by ``n - 1``)."""
        if self._realizations is None or self._realizations.size == 1:
            return 0.0
        if self._realizations.size == 0:
            return math.nan
        n = self._realizations.size
        return self.variance() * n / (n - 1)

    def standard_deviation(self) -> float:
        if self._realizations is None:
            return 0.0
        if self._realizations.size == 0:
            return math.nan
        return math.sqrt(self.variance())

    def standard_error(self) -> float:
        """Standard error of the path average."""
        if self._realizations is None:
            return 0.0
        if self._realizations.size == 0:
            return math.nan
        return self.standard_deviation() / math.sqrt(self._realizations.size)

    def min(self) -> float:
        if self._realizations is None:
            return self._value
        if self._realizations.size == 0:
            return math.nan
        return float(np.min(self._realizations))

    def max(self) -> float:
        if self._realizations is None:
            return self._value
        if self._realizations.size == 0:
            return math.nan
        return float(np.max(self._realizations))

    def _sorted(self) -> np.ndarray:
        # np.sort returns a copy, the realizations stay untouched
        return np.sort(self._realizations)

    def quantile(self, quantile: float) -> float:
        """Empirical quantile; requests outside the sample range are clamped."""
        if self._realizations is None:
            return self._value
        if self._realizations.size == 0:
            return math.nan
        index = clamped_quantile_index(self._realizations.size, quantile)
        return float(self._sorted()[index])

    def quantile_expectation(self, quantile_start: float, quantile_end: float) -> float:
        """Average of the realizations between two quantiles (inclusive)."""
        if self._realizations is None:
            return self._value
        if self._realizations.size == 0:
            return math.nan
        if quantile_start > quantile_end:
            return self.quantile_expectation(quantile_end, quantile_start)
        n = self._realizations.size
        start = clamped_quantile_index(n, quantile_start)
        end = clamped_quantile_index(n, quantile_end)
        return float(np.mean(self._sorted()[start : end + 1], dtype=np.float64))

    def histogram(self, interval_points: Sequence[float]) -> np.ndarray:
        """Relative frequencies of the realizations in the buckets defined by ``interval_points``.

        Returns ``len(interval_points) + 1`` values: bucket ``k`` counts values
        in ``(interval_points[k-1], interval_points[k]]`` and the last bucket
        counts values above the final point. All zeros for an empty sample.
        """
        points = np.asarray(interval_points, dtype=float)
        if points.ndim != 1:
            raise ValidationError("interval_points must be 1-D")
        if np.any(np.diff(points) < 0.0):
            raise ValidationError("interval_points must be non-decreasing")
        sample = self.realizations
        n = sample.size
        cumulative = np.searchsorted(np.sort(sample), points, side="right")
        counts = np.diff(np.concatenate([[0], cumulative, [n]])).astype(float)
        if n > 0:
            counts /= n
        return counts

    def histogram_with_anchors(
        self, number_of_points: int, standard_deviations: float
    ) -> tuple[np.ndarray, np.ndarray]:
        """Histogram over ``number_of_points`` points spanning +/- ``standard_deviations``.

        Returns
        =======
        (anchor_points, frequencies)
            ``number_of_points + 1`` bucket anchors and their relative frequencies.
        """
        if number_of_points < 2:
            raise ValidationError(f"number_of_points must be >= 2, got {number_of_points}")
        center = self.average()
        radius = standard_deviations * self.standard_deviation()
        step_size = (number_of_points - 1) / 2.0
        alpha = (np.arange(number_of_points) - (number_of_points - 1) / 2.0) / step_size
        interval_points = center + alpha * radius
        anchor_points = np.append(
            interval_points - radius / (2.0 * step_size),
            center + radius + radius / (2.0 * step_size),
        )
        return anchor_points, self.histogram(interval_points)


@dataclass(frozen=True, slots=True)
class RandomVariableFactory:
    """Creates random variables in a fixed storage precision.

    Attributes
    ==========
    precision: Precision
        ``Precision.DOUBLE`` (float64) or ``Precision.SINGLE`` (float32).
        Constants created by a single precision factory are rounded to
        float32 so that scalar and vector paths agree.
    """

    precision: Precision = Precision.DOUBLE

    def __post_init__(self) -> None:
        if isinstance(self.precision, str):
            object.__setattr__(self, "precision", Precision(self.precision))

    @property
    def dtype(self) -> np.dtype:
        return self.precision.dtype

    def constant(self, value: float, filtration_time: float = -np.inf) -> RandomVariable:
        return RandomVariable(float(value), filtration_time, dtype=self.dtype)

    def from_realizations(
        self,
        realizations: Sequence[float] | np.ndarray,
        filtration_time: float = -np.inf,
    ) -> RandomVariable:
        return RandomVariable(np.asarray(realizations), filtration_time, dtype=self.dtype)

    def full(self, number_of_paths: int, value: float, filtration_time: float = -np.inf):
        """Stochastic random variable with the same value on every path."""
        return RandomVariable(
            np.full(number_of_paths, value, dtype=self.dtype), filtration_time, dtype=self.dtype
        )
