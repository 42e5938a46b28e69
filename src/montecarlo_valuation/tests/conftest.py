"""Shared pytest fixtures for montecarlo_valuation tests."""

import pytest

from montecarlo_valuation.models import BachelierModel, BlackScholesModel
from montecarlo_valuation.time_discretization import TimeDiscretization


# ---------------------------------------------------------------------------
# Scalar constants
# ---------------------------------------------------------------------------

SPOT = 100.0
STRIKE = 100.0
RATE = 0.05
VOL = 0.20
MATURITY = 1.0


@pytest.fixture()
def spot() -> float:
    return SPOT


@pytest.fixture()
def strike() -> float:
    return STRIKE


@pytest.fixture()
def risk_free_rate() -> float:
    return RATE


@pytest.fixture()
def vol() -> float:
    return VOL


@pytest.fixture()
def maturity() -> float:
    return MATURITY


# ---------------------------------------------------------------------------
# Models and grids
# ---------------------------------------------------------------------------


@pytest.fixture()
def time_discretization() -> TimeDiscretization:
    """Quarterly grid over one year."""
    return TimeDiscretization.from_tenor(0.0, 4, 0.25)


@pytest.fixture()
def black_scholes_model(spot: float, risk_free_rate: float, vol: float) -> BlackScholesModel:
    return BlackScholesModel(initial_value=spot, risk_free_rate=risk_free_rate, volatility=vol)


@pytest.fixture()
def bachelier_model(spot: float) -> BachelierModel:
    """Zero rate normal model with 20% of spot as absolute volatility."""
    return BachelierModel(initial_value=spot, risk_free_rate=0.0, volatility=0.2 * spot)
