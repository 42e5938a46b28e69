import numpy as np
import pytest

from montecarlo_valuation.exceptions import ValidationError
from montecarlo_valuation.models import BlackScholesModel

from montecarlo_valuation.tests.helpers import build_simulation


class TestMonteCarloSimulationModel:
    """Time based access to simulated values"""

    @pytest.fixture(autouse=True)
    def _setup(self, black_scholes_model):
        self.simulation = build_simulation(black_scholes_model, number_of_paths=1000)

    def test_grid_properties(self):
        assert self.simulation.number_of_paths == 1000
        assert self.simulation.number_of_components == 1
        assert self.simulation.time(2) == pytest.approx(0.5)

    def test_time_index_on_grid(self):
        assert self.simulation.time_index(0.5) == 2
        assert self.simulation.time_index(1.0) == 4

    def test_off_grid_time_maps_to_previous_grid_point(self):
        assert self.simulation.time_index(0.6) == 2
        assert self.simulation.asset_value(0.6) is self.simulation.asset_value(0.5)

    def test_time_after_last_grid_point(self):
        assert self.simulation.time_index(2.0) == 4

    def test_time_before_start(self):
        with pytest.raises(ValidationError, match="precedes"):
            self.simulation.time_index(-0.1)

    def test_asset_value_at_index(self):
        assert self.simulation.asset_value_at_index(3) is self.simulation.asset_value(0.75)

    def test_numeraire_and_weights(self):
        assert self.simulation.numeraire(1.0).average() == pytest.approx(np.exp(0.05))
        assert self.simulation.monte_carlo_weights(1.0).average() == pytest.approx(1.0 / 1000)

    def test_constant(self):
        constant = self.simulation.random_variable_for_constant(2.5)
        assert constant.is_deterministic()
        assert constant.average() == 2.5

    def test_clone_with_modified_seed(self):
        clone = self.simulation.clone_with_modified_seed(7)
        assert clone.model is self.simulation.model
        assert not np.array_equal(
            clone.asset_value(1.0).realizations, self.simulation.asset_value(1.0).realizations
        )

    def test_clone_with_modified_model(self):
        model = BlackScholesModel(initial_value=50.0, risk_free_rate=0.05, volatility=0.2)
        clone = self.simulation.clone_with_modified_model(model)
        # same paths, scaled initial value
        np.testing.assert_allclose(
            clone.asset_value(1.0).realizations,
            0.5 * self.simulation.asset_value(1.0).realizations,
            rtol=1e-12,
        )
