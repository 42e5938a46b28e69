"""Heston stochastic volatility model simulated with a full truncation Euler scheme.

References
----------
Heston, S. L. (1993). A closed-form solution for options with stochastic volatility
with applications to bond and currency options. The Review of Financial Studies, 6(2), 327-343.

Lord, R., Koekkoek, R., van Dijk, D. (2010). A comparison of biased simulation schemes
for stochastic volatility models. Quantitative Finance, 10(2), 177-194.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence
import math

from ..exceptions import ValidationError
from ..random_variable import RandomVariable
from .base import AbstractProcessModel

if TYPE_CHECKING:
    from ..process import EulerSchemeProcess

ASSET = 0
VARIANCE = 1


@dataclass(frozen=True, slots=True)
class HestonModel(AbstractProcessModel):
    """Two component Heston model.

    Model (under the risk-neutral measure):
        dS_t = r S_t dt + sqrt(V_t) S_t dW^S_t
        dV_t = kappa (theta - V_t) dt + xi sqrt(V_t) dW^V_t
        d<W^S, W^V>_t = rho dt

    Component 0 is simulated as ``log S`` (transformed with ``exp``),
    component 1 as the variance itself. Drift and factor loadings use the
    truncated variance ``max(V, 0)`` (full truncation); the stored variance
    may become slightly negative between steps.
    """

    initial_value: float
    risk_free_rate: float
    v0: float
    kappa: float
    theta: float
    xi: float
    rho: float

    number_of_components = 2
    number_of_factors = 2

    def __post_init__(self) -> None:
        if not self.initial_value > 0.0:
            raise ValidationError(f"initial_value must be positive, got {self.initial_value}")
        if not (self.v0 >= 0.0 and self.theta >= 0.0):
            raise ValidationError("v0 and theta must be non-negative")
        if not (self.kappa >= 0.0 and self.xi >= 0.0):
            raise ValidationError("kappa and xi must be non-negative")
        if not -1.0 <= self.rho <= 1.0:
            raise ValidationError(f"rho must be in [-1, 1], got {self.rho}")
        if not math.isfinite(self.risk_free_rate):
            raise ValidationError("risk_free_rate must be finite")

    def initial_state(self, process: EulerSchemeProcess) -> list[RandomVariable]:
        return [
            process.random_variable_for_constant(math.log(self.initial_value)),
            process.random_variable_for_constant(self.v0),
        ]

    @staticmethod
    def _truncated_variance(realization: Sequence[RandomVariable]) -> RandomVariable:
        return realization[VARIANCE].floor(0.0)

    def drift(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        realization: Sequence[RandomVariable],
        realization_predictor: Sequence[RandomVariable] | None,
    ) -> RandomVariable:
        state = realization if realization_predictor is None else realization_predictor
        variance = self._truncated_variance(state)
        if component == ASSET:
            return variance.mult(-0.5).add(self.risk_free_rate)
        return variance.bus(self.theta).mult(self.kappa)

    def factor_loading(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        factor: int,
        component: int,
        realization: Sequence[RandomVariable],
    ) -> RandomVariable:
        volatility = self._truncated_variance(realization).sqrt()
        if component == ASSET:
            # W^S is the first factor
            if factor == 0:
                return volatility
            return process.random_variable_for_constant(0.0)
        weight = self.rho if factor == 0 else math.sqrt(1.0 - self.rho**2)
        return volatility.mult(self.xi * weight)

    def apply_state_space_transform(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        state: RandomVariable,
    ) -> RandomVariable:
        if component == ASSET:
            return state.exp()
        return state

    def numeraire(self, process: EulerSchemeProcess, time: float) -> RandomVariable:
        return process.random_variable_for_constant(math.exp(self.risk_free_rate * time))
