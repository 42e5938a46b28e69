"""Black-Scholes model simulated with a log-Euler scheme."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence
import math

from ..exceptions import ValidationError
from ..random_variable import RandomVariable
from .base import AbstractProcessModel

if TYPE_CHECKING:
    from ..process import EulerSchemeProcess


@dataclass(frozen=True, slots=True)
class BlackScholesModel(AbstractProcessModel):
    """Geometric Brownian motion under the risk-neutral measure.

    Model:
        dS_t = r S_t dt + sigma S_t dW_t,   N_t = exp(r t)

    The state is ``Y = log S`` with constant drift ``r - sigma^2 / 2`` and
    factor loading ``sigma``; the state-space transform ``exp`` maps it back.
    The Euler scheme is therefore exact on the grid.
    """

    initial_value: float
    risk_free_rate: float
    volatility: float

    def __post_init__(self) -> None:
        if not self.initial_value > 0.0:
            raise ValidationError(f"initial_value must be positive, got {self.initial_value}")
        if not self.volatility >= 0.0:
            raise ValidationError(f"volatility must be non-negative, got {self.volatility}")
        if not math.isfinite(self.risk_free_rate):
            raise ValidationError("risk_free_rate must be finite")

    def initial_state(self, process: EulerSchemeProcess) -> list[RandomVariable]:
        return [process.random_variable_for_constant(math.log(self.initial_value))]

    def drift(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        realization: Sequence[RandomVariable],
        realization_predictor: Sequence[RandomVariable] | None,
    ) -> RandomVariable:
        return process.random_variable_for_constant(
            self.risk_free_rate - 0.5 * self.volatility**2
        )

    def factor_loading(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        factor: int,
        component: int,
        realization: Sequence[RandomVariable],
    ) -> RandomVariable:
        return process.random_variable_for_constant(self.volatility)

    def apply_state_space_transform(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        state: RandomVariable,
    ) -> RandomVariable:
        return state.exp()

    def numeraire(self, process: EulerSchemeProcess, time: float) -> RandomVariable:
        return process.random_variable_for_constant(math.exp(self.risk_free_rate * time))
