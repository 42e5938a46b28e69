"""Closed-form European option values used to validate simulations."""

from __future__ import annotations

import math

import numpy as np
from scipy.stats import norm

from .enums import OptionType
from .exceptions import ValidationError

__all__ = ["black_scholes_option_value", "bachelier_option_value"]


def _coerce_option_type(option_type: OptionType | str) -> OptionType:
    if isinstance(option_type, str):
        return OptionType(option_type)
    return option_type


def black_scholes_option_value(
    initial_value: float,
    risk_free_rate: float,
    volatility: float,
    option_maturity: float,
    strike: float,
    option_type: OptionType | str = OptionType.CALL,
) -> float:
    """Black-Scholes value of a European call or put (no dividends).

    Parameters
    ----------
    initial_value
        Spot price at time 0.
    risk_free_rate
        Continuously compounded short rate.
    volatility
        Lognormal volatility (annualized).
    option_maturity
        Time to maturity in years.
    strike
        Strike price.
    option_type
        Call or put.

    Returns
    -------
    float
        Present value at time 0.
    """
    option_type = _coerce_option_type(option_type)
    if option_maturity < 0.0:
        raise ValidationError("option_maturity must be non-negative")
    if initial_value <= 0.0:
        raise ValidationError("initial_value must be positive")

    df = math.exp(-risk_free_rate * option_maturity)
    forward = initial_value / df
    denominator = volatility * math.sqrt(option_maturity)

    if denominator < 1e-300 or strike <= 0.0:
        # deterministic limit (or a strike the call always exceeds)
        intrinsic = forward - strike
        if option_type is OptionType.PUT:
            intrinsic = -intrinsic
        return df * max(intrinsic, 0.0)

    d1 = (math.log(forward / strike) + 0.5 * volatility**2 * option_maturity) / denominator
    d2 = d1 - denominator
    if option_type is OptionType.CALL:
        return float(df * (forward * norm.cdf(d1) - strike * norm.cdf(d2)))
    return float(df * (strike * norm.cdf(-d2) - forward * norm.cdf(-d1)))


def bachelier_option_value(
    forward: float,
    volatility: float,
    option_maturity: float,
    strike: float,
    payoff_unit: float = 1.0,
    option_type: OptionType | str = OptionType.CALL,
) -> float:
    """Bachelier (normal model) value of a European call or put.

    The underlying at maturity is normal with mean ``forward`` and standard
    deviation ``volatility * sqrt(option_maturity)``; ``payoff_unit`` is the
    discount factor to the payment date.
    """
    option_type = _coerce_option_type(option_type)
    if option_maturity < 0.0:
        raise ValidationError("option_maturity must be non-negative")

    moneyness = forward - strike
    if option_type is OptionType.PUT:
        moneyness = -moneyness
    deviation = volatility * np.sqrt(option_maturity)
    if deviation < 1e-300:
        return payoff_unit * max(moneyness, 0.0)

    d = moneyness / deviation
    return float(payoff_unit * (moneyness * norm.cdf(d) + deviation * norm.pdf(d)))
