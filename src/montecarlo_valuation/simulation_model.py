"""Simulation model handed to products: asset values and numeraire by time."""

from __future__ import annotations

from .exceptions import ValidationError
from .models.base import ProcessModel
from .process import EulerSchemeProcess
from .random_variable import RandomVariable
from .time_discretization import TimeDiscretization


class MonteCarloSimulationModel:
    """Time based view on an :class:`EulerSchemeProcess`.

    Products ask for values at *times*; a time between two grid points is
    mapped to the last grid point at or before it (the value known at that
    time).
    """

    def __init__(self, process: EulerSchemeProcess) -> None:
        self.process = process

    @property
    def model(self) -> ProcessModel:
        return self.process.model

    @property
    def time_discretization(self) -> TimeDiscretization:
        return self.process.time_discretization

    @property
    def number_of_paths(self) -> int:
        return self.process.number_of_paths

    @property
    def number_of_components(self) -> int:
        return self.process.number_of_components

    def time(self, time_index: int) -> float:
        return self.process.time(time_index)

    def time_index(self, time: float) -> int:
        """Grid index of ``time``, or of the last grid point before it."""
        index = self.time_discretization.time_index(time)
        if index is None:
            index = self.time_discretization.time_index_nearest_less_or_equal(time)
        if index < 0:
            raise ValidationError(
                f"time {time} precedes the simulation start {self.time_discretization.time(0)}"
            )
        return index

    def asset_value(self, time: float, component: int = 0) -> RandomVariable:
        return self.process.process_value(self.time_index(time), component)

    def asset_value_at_index(self, time_index: int, component: int = 0) -> RandomVariable:
        return self.process.process_value(time_index, component)

    def numeraire(self, time: float) -> RandomVariable:
        return self.process.numeraire(time)

    def monte_carlo_weights(self, time: float) -> RandomVariable:
        return self.process.monte_carlo_weights(self.time_index(time))

    def random_variable_for_constant(self, value: float) -> RandomVariable:
        return self.process.random_variable_for_constant(value)

    def clone_with_modified_seed(self, seed: int) -> MonteCarloSimulationModel:
        return MonteCarloSimulationModel(self.process.clone_with_modified_seed(seed))

    def clone_with_modified_model(self, model: ProcessModel) -> MonteCarloSimulationModel:
        return MonteCarloSimulationModel(self.process.clone_with_modified_model(model))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(process={self.process!r})"
