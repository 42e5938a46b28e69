"""European option on a single simulated asset."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
import math

from ..enums import OptionType
from ..exceptions import ConfigurationError, ValidationError
from ..random_variable import RandomVariable
from .base import AbstractProduct

if TYPE_CHECKING:
    from ..simulation_model import MonteCarloSimulationModel


def vanilla_payoff(option_type: OptionType, strike: float, spot: RandomVariable) -> RandomVariable:
    """Path-wise vanilla payoff: max(S-K,0) for calls, max(K-S,0) for puts."""
    if option_type is OptionType.CALL:
        return spot.sub(strike).floor(0.0)
    return spot.bus(strike).floor(0.0)


@dataclass(frozen=True, slots=True)
class EuropeanOption(AbstractProduct):
    """European call or put paying at ``maturity``.

    Attributes
    ==========
    maturity: float
        Exercise and payment time.
    strike: float
        Strike price.
    option_type: OptionType or str, default OptionType.CALL
    underlying_index: int, default 0
        Model component holding the underlying asset.
    """

    maturity: float
    strike: float
    option_type: OptionType | str = OptionType.CALL
    underlying_index: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.option_type, str):
            object.__setattr__(self, "option_type", OptionType(self.option_type))
        if not isinstance(self.option_type, OptionType):
            raise ConfigurationError(
                f"option_type must be an OptionType, got {type(self.option_type).__name__}"
            )
        if not math.isfinite(self.maturity) or self.maturity < 0.0:
            raise ValidationError(f"maturity must be finite and >= 0, got {self.maturity}")
        if not math.isfinite(self.strike):
            raise ValidationError(f"strike must be finite, got {self.strike}")
        if self.underlying_index < 0:
            raise ValidationError(f"underlying_index must be >= 0, got {self.underlying_index}")

    def get_value(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> RandomVariable:
        underlying_at_maturity = model.asset_value(self.maturity, self.underlying_index)
        payoff = vanilla_payoff(self.option_type, self.strike, underlying_at_maturity)

        # numeraire relative value at maturity, then back to currency at evaluation
        values = payoff.div(model.numeraire(self.maturity)).mult(
            model.monte_carlo_weights(self.maturity)
        )
        return values.mult(model.numeraire(evaluation_time)).div(
            model.monte_carlo_weights(evaluation_time)
        )
