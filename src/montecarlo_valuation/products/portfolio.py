"""A weighted portfolio of products, itself a product."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..exceptions import ValidationError
from ..portfolio import value_portfolio
from ..random_variable import RandomVariable
from .base import AbstractProduct

if TYPE_CHECKING:
    from ..simulation_model import MonteCarloSimulationModel
    from .base import Product


class Portfolio(AbstractProduct):
    """Sum of weighted products valued concurrently.

    Portfolios nest: a portfolio may hold other portfolios. Each level
    opens its own worker pool.
    """

    def __init__(
        self,
        products: Sequence[Product],
        weights: Sequence[float],
        thread_count: int | None = None,
    ) -> None:
        if len(products) != len(weights):
            raise ValidationError(
                f"Got {len(products)} product(s) but {len(weights)} weight(s)"
            )
        self.products = tuple(products)
        self.weights = tuple(float(w) for w in weights)
        self.thread_count = thread_count

    def get_value(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> RandomVariable:
        return value_portfolio(
            evaluation_time, model, self.products, self.weights, thread_count=self.thread_count
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(positions={len(self.products)})"
