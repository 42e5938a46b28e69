"""Bachelier (normal) model with a state dependent risk-neutral drift."""

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
class BachelierModel(AbstractProcessModel):
    """Normal model under the risk-neutral measure.

    Model:
        dS_t = r S_t dt + sigma dW_t,   N_t = exp(r t)

    The drift depends on the current realization, so the plain Euler scheme
    carries a discretization bias that the predictor-corrector scheme
    reduces. With the predictor available the drift is evaluated on it.
    """

    initial_value: float
    risk_free_rate: float
    volatility: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.initial_value):
            raise ValidationError("initial_value must be finite")
        if not self.volatility >= 0.0:
            raise ValidationError(f"volatility must be non-negative, got {self.volatility}")
        if not math.isfinite(self.risk_free_rate):
            raise ValidationError("risk_free_rate must be finite")

    def initial_state(self, process: EulerSchemeProcess) -> list[RandomVariable]:
        return [process.random_variable_for_constant(self.initial_value)]

    def drift(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        realization: Sequence[RandomVariable],
        realization_predictor: Sequence[RandomVariable] | None,
    ) -> RandomVariable:
        state = realization if realization_predictor is None else realization_predictor
        return state[component].mult(self.risk_free_rate)

    def factor_loading(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        factor: int,
        component: int,
        realization: Sequence[RandomVariable],
    ) -> RandomVariable:
        return process.random_variable_for_constant(self.volatility)

    def numeraire(self, process: EulerSchemeProcess, time: float) -> RandomVariable:
        return process.random_variable_for_constant(math.exp(self.risk_free_rate * time))
