"""Seeded Brownian increments driving the Euler scheme."""

from __future__ import annotations

import logging
import threading

import numpy as np

from .exceptions import ValidationError
from .random_variable import RandomVariable, RandomVariableFactory
from .time_discretization import TimeDiscretization

logger = logging.getLogger(__name__)


class BrownianMotion:
    """Independent Brownian increments ``dW_k(t_i)`` for each time step and factor.

    Increments are generated lazily on first access, all at once, from
    ``numpy.random.default_rng(seed)``. Generation is guarded by a lock so
    concurrent first readers see a single set of increments.

    Parameters
    ==========
    time_discretization: TimeDiscretization
        Simulation grid; increment ``i`` spans ``[t_i, t_{i+1}]``.
    number_of_factors: int
        Number of independent drivers.
    number_of_paths: int
        Number of simulated paths.
    seed: int
        Seed of the random number generator.
    factory: RandomVariableFactory, optional
        Controls the storage precision of the increments.
    """

    def __init__(
        self,
        time_discretization: TimeDiscretization,
        number_of_factors: int,
        number_of_paths: int,
        seed: int,
        factory: RandomVariableFactory | None = None,
    ) -> None:
        if number_of_factors < 1:
            raise ValidationError(
                f"Number of factors must be greater or equal 1 (given {number_of_factors})."
            )
        if number_of_paths < 1:
            raise ValidationError(
                f"Number of paths must be greater or equal 1 (given {number_of_paths})."
            )
        self.time_discretization = time_discretization
        self.number_of_factors = number_of_factors
        self.number_of_paths = number_of_paths
        self.seed = seed
        self.factory = factory if factory is not None else RandomVariableFactory()

        self._increments: list[list[RandomVariable]] | None = None
        self._lock = threading.Lock()

    def _generate(self) -> list[list[RandomVariable]]:
        td = self.time_discretization
        rng = np.random.default_rng(self.seed)
        normals = rng.standard_normal(
            (td.number_of_time_steps, self.number_of_factors, self.number_of_paths)
        )
        sqrt_dt = np.sqrt(td.time_steps())
        increments = []
        for time_index in range(td.number_of_time_steps):
            time = td.time(time_index + 1)
            increments.append(
                [
                    self.factory.from_realizations(
                        normals[time_index, factor] * sqrt_dt[time_index], time
                    )
                    for factor in range(self.number_of_factors)
                ]
            )
        logger.debug(
            "Generated Brownian increments steps=%d factors=%d paths=%d seed=%d",
            td.number_of_time_steps,
            self.number_of_factors,
            self.number_of_paths,
            self.seed,
        )
        return increments

    def increment(self, time_index: int, factor: int) -> RandomVariable:
        """Brownian increment over ``[t_i, t_{i+1}]`` for the given factor."""
        if self._increments is None:
            with self._lock:
                if self._increments is None:
                    self._increments = self._generate()
        return self._increments[time_index][factor]

    def increments(self, time_index: int) -> list[RandomVariable]:
        return [self.increment(time_index, factor) for factor in range(self.number_of_factors)]

    def random_variable_for_constant(self, value: float) -> RandomVariable:
        return self.factory.constant(value)

    def clone_with_modified_seed(self, seed: int) -> BrownianMotion:
        return BrownianMotion(
            self.time_discretization,
            self.number_of_factors,
            self.number_of_paths,
            seed,
            factory=self.factory,
        )

    def clone_with_modified_time_discretization(
        self, time_discretization: TimeDiscretization
    ) -> BrownianMotion:
        return BrownianMotion(
            time_discretization,
            self.number_of_factors,
            self.number_of_paths,
            self.seed,
            factory=self.factory,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(number_of_time_steps={self.time_discretization.number_of_time_steps}, "
            f"number_of_factors={self.number_of_factors}, number_of_paths={self.number_of_paths}, "
            f"seed={self.seed}, precision={self.factory.precision.value})"
        )
