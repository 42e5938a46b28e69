import math

import numpy as np
import pytest

from montecarlo_valuation.exceptions import ValidationError
from montecarlo_valuation.models import (
    AbstractProcessModel,
    BachelierModel,
    BlackScholesModel,
    HestonModel,
    ProcessModel,
)

from montecarlo_valuation.tests.helpers import build_simulation


class TestModelInterface:
    """Structural interface of the concrete models"""

    @pytest.mark.parametrize(
        "model",
        [
            BlackScholesModel(100.0, 0.05, 0.2),
            BachelierModel(100.0, 0.0, 20.0),
            HestonModel(100.0, 0.05, 0.04, 2.0, 0.04, 0.3, -0.7),
        ],
    )
    def test_models_satisfy_protocol(self, model):
        assert isinstance(model, ProcessModel)

    def test_abstract_model_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            AbstractProcessModel()

    def test_models_are_immutable(self):
        model = BlackScholesModel(100.0, 0.05, 0.2)
        with pytest.raises(AttributeError):
            model.volatility = 0.3


class TestBlackScholesModel:
    """Tests for the log-Euler Black-Scholes model"""

    def test_discounted_asset_is_martingale(self, black_scholes_model):
        simulation = build_simulation(black_scholes_model, number_of_paths=100_000)
        discounted = simulation.asset_value(1.0).div(simulation.numeraire(1.0))
        assert discounted.average() == pytest.approx(100.0, abs=4 * discounted.standard_error())

    def test_paths_stay_positive(self, black_scholes_model):
        simulation = build_simulation(black_scholes_model, number_of_paths=10_000)
        assert simulation.asset_value(1.0).min() > 0.0

    def test_numeraire(self, black_scholes_model):
        simulation = build_simulation(black_scholes_model, number_of_paths=10)
        assert simulation.numeraire(0.5).average() == pytest.approx(math.exp(0.05 * 0.5))

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_value": 0.0, "risk_free_rate": 0.05, "volatility": 0.2},
            {"initial_value": 100.0, "risk_free_rate": 0.05, "volatility": -0.2},
            {"initial_value": 100.0, "risk_free_rate": math.inf, "volatility": 0.2},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValidationError):
            BlackScholesModel(**kwargs)


class TestBachelierModel:
    """Tests for the normal model"""

    def test_terminal_distribution(self, bachelier_model):
        simulation = build_simulation(bachelier_model, number_of_paths=100_000)
        terminal = simulation.asset_value(1.0)
        assert terminal.average() == pytest.approx(100.0, abs=0.5)
        assert terminal.standard_deviation() == pytest.approx(20.0, rel=0.02)
        # normal, not lognormal: negative values are possible
        assert terminal.min() < 50.0

    def test_invalid_volatility(self):
        with pytest.raises(ValidationError):
            BachelierModel(100.0, 0.0, -1.0)


class TestHestonModel:
    """Tests for the two factor Heston model"""

    def setup_method(self):
        self.model = HestonModel(
            initial_value=100.0,
            risk_free_rate=0.05,
            v0=0.04,
            kappa=2.0,
            theta=0.04,
            xi=0.3,
            rho=-0.7,
        )
        self.simulation = build_simulation(
            self.model, number_of_time_steps=10, delta_t=0.1, number_of_paths=50_000
        )

    def test_dimensions(self):
        assert self.simulation.number_of_components == 2
        assert self.simulation.process.number_of_factors == 2

    def test_discounted_asset_is_martingale(self):
        discounted = self.simulation.asset_value(1.0, 0).div(self.simulation.numeraire(1.0))
        assert discounted.average() == pytest.approx(100.0, abs=4 * discounted.standard_error())

    def test_variance_mean_reverts_to_theta(self):
        variance = self.simulation.asset_value(1.0, 1)
        assert variance.average() == pytest.approx(0.04, abs=0.002)

    def test_negative_correlation_between_asset_and_variance(self):
        log_return = np.log(self.simulation.asset_value(0.1, 0).realizations / 100.0)
        variance_change = self.simulation.asset_value(0.1, 1).realizations - 0.04
        assert np.corrcoef(log_return, variance_change)[0, 1] == pytest.approx(-0.7, abs=0.02)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"rho": 1.5},
            {"v0": -0.01},
            {"kappa": -1.0},
            {"initial_value": 0.0},
            {"v0": float("nan")},
            {"theta": float("nan")},
            {"kappa": float("nan")},
            {"xi": float("nan")},
            {"rho": float("nan")},
            {"risk_free_rate": float("inf")},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        params = dict(
            initial_value=100.0,
            risk_free_rate=0.05,
            v0=0.04,
            kappa=2.0,
            theta=0.04,
            xi=0.3,
            rho=0.0,
        )
        params.update(kwargs)
        with pytest.raises(ValidationError):
            HestonModel(**params)
