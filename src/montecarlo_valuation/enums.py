"""Enums for simulation and valuation configuration."""

from enum import Enum

import numpy as np

__all__ = [
    "EulerScheme",
    "Precision",
    "OptionType",
    "ExerciseMethod",
]


class EulerScheme(Enum):
    EULER = "euler"
    PREDICTOR_CORRECTOR = "predictor_corrector"


class Precision(Enum):
    DOUBLE = "double"
    SINGLE = "single"

    @property
    def dtype(self) -> np.dtype:
        if self is Precision.SINGLE:
            return np.dtype(np.float32)
        return np.dtype(np.float64)


class OptionType(Enum):
    CALL = "call"
    PUT = "put"


class ExerciseMethod(Enum):
    """Exercise strategy of a Bermudan option.

    ESTIMATE_CONDITIONAL_EXPECTATION: exercise when the payoff exceeds the
    regression estimate of the continuation value (lower bound).
    UPPER_BOUND: exercise against the path-wise continuation value shifted
    by a martingale control, optimised over its weight.
    """

    ESTIMATE_CONDITIONAL_EXPECTATION = "estimate_conditional_expectation"
    UPPER_BOUND = "upper_bound"
