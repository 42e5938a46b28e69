"""Concurrent valuation of weighted product portfolios.

Each product is valued in its own task on a thread pool scoped to the
call. The simulation model is shared between tasks: its path arena and
numeraire cache are thread safe, and random variables are immutable. The
numpy kernels release the GIL, so products valued on the same paths run
in parallel.
"""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from functools import partial
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar
import logging
import math
import os

import numpy as np
import pandas as pd

from .exceptions import CalculationFailure, ValidationError
from .params import PortfolioParams
from .random_variable import RandomVariable
from .utils import log_timing

if TYPE_CHECKING:
    from .products.base import Product
    from .simulation_model import MonteCarloSimulationModel

logger = logging.getLogger(__name__)

__all__ = ["value_portfolio", "PortfolioValuation"]

T = TypeVar("T")


def _pool_size(thread_count: int | None, number_of_tasks: int) -> int:
    if thread_count is not None and thread_count < 1:
        raise ValidationError(f"thread_count must be >= 1, got {thread_count}")
    requested = thread_count if thread_count is not None else (os.cpu_count() or 1)
    return max(1, min(requested, number_of_tasks))


def _run_all(tasks: Sequence[Callable[[], T]], thread_count: int | None) -> list[T]:
    """Run ``tasks`` on a scoped pool and return their results in task order.

    The first failing task cancels all tasks not yet started and is raised
    as :class:`CalculationFailure`; no partial result is returned.
    """
    workers = _pool_size(thread_count, len(tasks))
    logger.debug("Valuing %d product(s) on %d worker thread(s)", len(tasks), workers)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="valuation") as pool:
        futures: list[Future] = [pool.submit(task) for task in tasks]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [
            index
            for index, future in enumerate(futures)
            if future in done and future.exception() is not None
        ]
        if failed:
            for future in pending:
                future.cancel()
            index = failed[0]
            exc = futures[index].exception()
            raise CalculationFailure(
                f"Valuation of product {index} failed: {exc}. See cause for details."
            ) from exc
    return [future.result() for future in futures]


def _check_lengths(products: Sequence, weights: Sequence[float]) -> None:
    if len(products) != len(weights):
        raise ValidationError(f"Got {len(products)} product(s) but {len(weights)} weight(s)")


def value_portfolio(
    evaluation_time: float,
    model: MonteCarloSimulationModel,
    products: Sequence[Product],
    weights: Sequence[float],
    thread_count: int | None = None,
) -> RandomVariable:
    """Path-wise value of ``sum_i weights[i] * products[i]`` at ``evaluation_time``.

    Parameters
    ==========
    evaluation_time: float
        Time at which the products are valued.
    model: MonteCarloSimulationModel
        Simulation shared by all products.
    products: sequence of Product
    weights: sequence of float
        Position size per product (same length as ``products``).
    thread_count: int, optional
        Worker pool size; defaults to the number of CPUs. Never more
        workers than products are started.

    Returns
    =======
    RandomVariable
        Sum of the weighted product values, accumulated in product order so
        that the result does not depend on the number of threads.
    """
    _check_lengths(products, weights)
    if not products:
        return model.random_variable_for_constant(0.0)

    def weighted_value(product: Product, weight: float) -> RandomVariable:
        return product.get_value(evaluation_time, model).mult(weight)

    tasks = [
        partial(weighted_value, product, weight) for product, weight in zip(products, weights)
    ]
    values = _run_all(tasks, thread_count)

    total = model.random_variable_for_constant(0.0)
    for value in values:
        total = total.add(value)
    return total


def _warn_if_high_std_error(value: RandomVariable, params: PortfolioParams, label: str) -> None:
    """Emit a warning log if the MC standard error is high relative to the value."""
    if params.std_error_warn_ratio is None or value.size < 2:
        return
    average = value.average()
    std_error = math.sqrt(value.sample_variance() / value.size)
    ratio = std_error / max(abs(average), 1.0e-12)
    logger.debug(
        "MC %s std_error=%.6g ratio=%.6g paths=%d", label, std_error, ratio, value.size
    )
    if ratio > params.std_error_warn_ratio:
        logger.warning(
            "MC %s standard error high: std_error=%.6g ratio=%.6g (>%.3g) paths=%d",
            label,
            std_error,
            ratio,
            params.std_error_warn_ratio,
            value.size,
        )


class PortfolioValuation:
    """A fixed set of weighted products with portfolio level reporting.

    Parameters
    ==========
    products: sequence of Product
    weights: sequence of float
    names: sequence of str, optional
        Labels for the statistics table; defaults to the product class
        name and position.
    params: PortfolioParams, optional
        Pool size, timing logs and the standard error warning threshold.
    """

    def __init__(
        self,
        products: Sequence[Product],
        weights: Sequence[float],
        names: Sequence[str] | None = None,
        params: PortfolioParams | None = None,
    ) -> None:
        _check_lengths(products, weights)
        if names is None:
            names = [f"{type(product).__name__}_{i}" for i, product in enumerate(products)]
        if len(names) != len(products):
            raise ValidationError(f"Got {len(products)} product(s) but {len(names)} name(s)")
        self.products = tuple(products)
        self.weights = tuple(float(w) for w in weights)
        self.names = tuple(names)
        self.params = params if params is not None else PortfolioParams()

    def value(self, evaluation_time: float, model: MonteCarloSimulationModel) -> RandomVariable:
        """Path-wise portfolio value, see :func:`value_portfolio`."""
        with log_timing(logger, "portfolio value", self.params.log_timings):
            value = value_portfolio(
                evaluation_time,
                model,
                self.products,
                self.weights,
                thread_count=self.params.thread_count,
            )
        _warn_if_high_std_error(value, self.params, "portfolio")
        return value

    def get_statistics(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> pd.DataFrame:
        """Per position Monte Carlo estimates.

        Returns
        =======
        pandas.DataFrame
            One row per product with columns ``name``, ``weight``, ``value``
            (path average of the unit product value), ``std_error`` and
            ``position_value`` (``weight * value``).
        """
        tasks = [partial(product.get_value, evaluation_time, model) for product in self.products]
        with log_timing(logger, "portfolio statistics", self.params.log_timings):
            values = _run_all(tasks, self.params.thread_count) if tasks else []

        averages = np.array([value.average() for value in values], dtype=float)
        return pd.DataFrame(
            {
                "name": list(self.names),
                "weight": np.array(self.weights, dtype=float),
                "value": averages,
                "std_error": np.array([value.standard_error() for value in values], dtype=float),
                "position_value": np.array(self.weights, dtype=float) * averages,
            }
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(positions={len(self.products)}, params={self.params!r})"
