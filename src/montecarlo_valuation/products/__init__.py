"""Products valued on a Monte Carlo simulation model."""

from .base import AbstractProduct, Product
from .bermudan import BermudanOption
from .european import EuropeanOption, vanilla_payoff
from .portfolio import Portfolio

__all__ = [
    "Product",
    "AbstractProduct",
    "EuropeanOption",
    "BermudanOption",
    "Portfolio",
    "vanilla_payoff",
]
