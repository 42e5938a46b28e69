"""Product capability consumed by the portfolio valuation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..random_variable import RandomVariable

if TYPE_CHECKING:
    from ..simulation_model import MonteCarloSimulationModel


@runtime_checkable
class Product(Protocol):
    """Anything that values itself on a simulation model.

    ``get_value`` returns the path-wise value at ``evaluation_time`` in
    units of currency (not numeraire relative), conditional on the
    information at that time. It may raise ``CalculationFailure``.
    """

    def get_value(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> RandomVariable: ...


class AbstractProduct(ABC):
    """Base class for products with a scalar convenience accessor."""

    @abstractmethod
    def get_value(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> RandomVariable:
        raise NotImplementedError

    def get_value_scalar(self, evaluation_time: float, model: MonteCarloSimulationModel) -> float:
        """Monte Carlo estimate of the value: the path average of :meth:`get_value`."""
        return self.get_value(evaluation_time, model).average()
