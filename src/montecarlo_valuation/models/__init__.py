"""Process models: initial state, drift and factor loadings of simulated SDEs."""

from .base import AbstractProcessModel, ProcessModel
from .bachelier import BachelierModel
from .black_scholes import BlackScholesModel
from .heston import HestonModel

__all__ = [
    "ProcessModel",
    "AbstractProcessModel",
    "BachelierModel",
    "BlackScholesModel",
    "HestonModel",
]
