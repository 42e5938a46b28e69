import random
import threading

import numpy as np
import pytest

from montecarlo_valuation.brownian_motion import BrownianMotion
from montecarlo_valuation.enums import EulerScheme, Precision
from montecarlo_valuation.exceptions import (
    CalculationFailure,
    ConfigurationError,
    ValidationError,
)
from montecarlo_valuation.models import BachelierModel, BlackScholesModel, HestonModel
from montecarlo_valuation.process import EulerSchemeProcess
from montecarlo_valuation.random_variable import RandomVariableFactory
from montecarlo_valuation.time_discretization import TimeDiscretization

from montecarlo_valuation.tests.helpers import CountingModel, MoneyMarketModel


def make_process(
    model, number_of_time_steps=4, delta_t=0.25, number_of_paths=1000, seed=7, **kwargs
):
    td = TimeDiscretization.from_tenor(0.0, number_of_time_steps, delta_t)
    bm = BrownianMotion(td, model.number_of_factors, number_of_paths, seed)
    return EulerSchemeProcess(model, bm, **kwargs)


class TestEulerScheme:
    """Tests for the Euler transition"""

    def test_black_scholes_log_euler_is_exact(self):
        model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        process = make_process(model)

        brownian = sum(
            process.stochastic_driver.increment(i, 0).realizations for i in range(4)
        )
        expected = 100.0 * np.exp((0.05 - 0.5 * 0.2**2) * 1.0 + 0.2 * brownian)
        np.testing.assert_allclose(process.process_value(4, 0).realizations, expected, rtol=1e-12)

    def test_initial_value(self):
        model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        process = make_process(model)
        initial = process.process_value(0, 0)
        assert initial.is_deterministic()
        assert initial.average() == pytest.approx(100.0)

    def test_arithmetic_transition(self):
        model = CountingModel(drift=0.1, volatility=0.3)
        process = make_process(model)
        dw = process.stochastic_driver.increment(0, 0).realizations
        np.testing.assert_allclose(
            process.process_value(1, 0).realizations, 1.0 + 0.1 * 0.25 + 0.3 * dw
        )

    def test_filtration_time_of_values(self):
        model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        process = make_process(model)
        assert process.process_value(2, 0).filtration_time == pytest.approx(0.5)

    def test_predictor_corrector_on_linear_drift(self):
        # zero volatility isolates the drift discretization
        model = BachelierModel(initial_value=100.0, risk_free_rate=0.2, volatility=0.0)
        euler = make_process(model, scheme=EulerScheme.EULER)
        corrected = make_process(model, scheme=EulerScheme.PREDICTOR_CORRECTOR)

        r_dt = 0.2 * 0.25
        assert euler.process_value(4, 0).average() == pytest.approx(100.0 * (1 + r_dt) ** 4)
        assert corrected.process_value(4, 0).average() == pytest.approx(
            100.0 * (1 + r_dt + 0.5 * r_dt**2) ** 4
        )

    def test_predictor_corrector_reduces_drift_bias(self):
        model = BachelierModel(initial_value=100.0, risk_free_rate=0.2, volatility=0.0)
        exact = 100.0 * np.exp(0.2)
        euler = make_process(model).process_value(4, 0).average()
        corrected = make_process(model, scheme="predictor_corrector").process_value(4, 0).average()
        assert abs(corrected - exact) < abs(euler - exact)

    def test_predictor_corrector_without_state_dependence_matches_euler(self):
        model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        euler = make_process(model)
        corrected = make_process(model, scheme=EulerScheme.PREDICTOR_CORRECTOR)
        np.testing.assert_allclose(
            corrected.process_value(4, 0).realizations,
            euler.process_value(4, 0).realizations,
            rtol=1e-12,
        )

    def test_none_drift_freezes_component(self):
        model = CountingModel(freeze_after=2)
        process = make_process(model)
        frozen = process.process_value(2, 0)
        assert process.process_value(3, 0) is frozen
        np.testing.assert_array_equal(process.process_value(4, 0).realizations, frozen.realizations)

    def test_monte_carlo_weights(self):
        process = make_process(CountingModel(), number_of_paths=200)
        assert process.monte_carlo_weights(2).average() == pytest.approx(1.0 / 200)


class TestPathCache:
    """Lazy evaluation and memoization"""

    def test_model_called_once_per_cell(self):
        model = CountingModel()
        process = make_process(model, number_of_time_steps=10, delta_t=0.1)

        first = process.process_value(10, 0)
        second = process.process_value(10, 0)

        assert first is second
        assert model.calls["initial_state"] == 1
        assert model.calls["drift"] == 10
        assert model.calls["factor_loading"] == 10

        # earlier cells were filled on the way and are not recomputed
        process.process_value(5, 0)
        assert model.calls["drift"] == 10

    def test_only_missing_cells_are_computed(self):
        model = CountingModel()
        process = make_process(model, number_of_time_steps=10, delta_t=0.1)
        process.process_value(3, 0)
        assert model.calls["drift"] == 3
        process.process_value(6, 0)
        assert model.calls["drift"] == 6

    def test_long_grid_does_not_recurse(self):
        model = CountingModel()
        process = make_process(model, number_of_time_steps=5000, delta_t=0.001, number_of_paths=4)
        assert process.process_value(5000, 0).size == 4
        assert model.calls["drift"] == 5000

    def test_numeraire_memoized(self):
        model = CountingModel()
        process = make_process(model)
        assert process.numeraire(0.5) is process.numeraire(0.5)
        assert model.calls["numeraire"] == 1

    def test_numeraire_built_from_earlier_numeraires(self):
        model = MoneyMarketModel(rate=0.04)
        process = make_process(model)
        results = []

        thread = threading.Thread(target=lambda: results.append(process.numeraire(1.0)))
        thread.start()
        thread.join(timeout=10)

        assert not thread.is_alive()
        assert results[0].average() == pytest.approx(1.01**4)
        assert model.calls["numeraire"] == 5
        assert process.numeraire(0.5).average() == pytest.approx(1.01**2)
        assert model.calls["numeraire"] == 5

    def test_concurrent_recursive_numeraires(self):
        model = MoneyMarketModel(rate=0.04)
        process = make_process(model, number_of_time_steps=20, delta_t=0.05)
        times = [process.time(i) for i in range(21)]
        barrier = threading.Barrier(8)
        errors = []

        def worker(seed):
            order = times[:]
            random.Random(seed).shuffle(order)
            barrier.wait()
            try:
                for time in order:
                    process.numeraire(time)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert model.calls["numeraire"] == 21
        assert process.numeraire(1.0).average() == pytest.approx(1.002**20)

    def test_concurrent_access_computes_each_cell_once(self):
        model = CountingModel(number_of_components=3)
        process = make_process(model, number_of_time_steps=20, delta_t=0.05, number_of_paths=5000)
        cells = [(i, c) for i in range(21) for c in range(3)]
        results = {}
        lock = threading.Lock()
        barrier = threading.Barrier(16)
        errors = []

        def worker(seed):
            order = cells[:]
            random.Random(seed).shuffle(order)
            barrier.wait()
            try:
                for time_index, component in order:
                    value = process.process_value(time_index, component)
                    with lock:
                        results.setdefault((time_index, component), set()).add(id(value))
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert all(len(ids) == 1 for ids in results.values())
        assert model.calls["initial_state"] == 1
        assert model.calls["drift"] == 20 * 3
        assert model.calls["factor_loading"] == 20 * 3

    def test_concurrent_result_matches_sequential(self):
        sequential = make_process(CountingModel(), number_of_time_steps=20, delta_t=0.05)
        concurrent = make_process(CountingModel(), number_of_time_steps=20, delta_t=0.05)

        threads = [
            threading.Thread(target=concurrent.process_value, args=(i, 0)) for i in range(20, 0, -1)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for i in range(21):
            np.testing.assert_array_equal(
                concurrent.process_value(i, 0).realizations,
                sequential.process_value(i, 0).realizations,
            )


class TestFailures:
    """Model failures and argument validation"""

    def test_model_exception_raises_calculation_failure(self):
        model = CountingModel(fail_at=2)
        process = make_process(model)
        with pytest.raises(CalculationFailure) as excinfo:
            process.process_value(4, 0)
        assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
        assert excinfo.value.cause is excinfo.value.__cause__
        assert "time index 2" in str(excinfo.value)

        # earlier cells are kept, the failed cell stays empty
        assert process.process_value(2, 0).size == 1000
        with pytest.raises(CalculationFailure):
            process.process_value(3, 0)

    def test_non_finite_drift_raises(self):
        process = make_process(CountingModel(drift_value=float("nan")))
        with pytest.raises(CalculationFailure, match="non-finite drift"):
            process.process_value(1, 0)

    def test_non_finite_drift_propagates_without_check(self):
        process = make_process(CountingModel(drift_value=float("nan")), check_finite=False)
        assert np.isnan(process.process_value(1, 0).average())

    def test_factor_count_mismatch(self):
        model = HestonModel(100.0, 0.05, 0.04, 2.0, 0.04, 0.3, -0.7)
        td = TimeDiscretization.from_tenor(0.0, 4, 0.25)
        with pytest.raises(ValidationError, match="factor"):
            EulerSchemeProcess(model, BrownianMotion(td, 1, 100, 1))

    def test_rejects_non_model(self):
        td = TimeDiscretization.from_tenor(0.0, 4, 0.25)
        with pytest.raises(ConfigurationError):
            EulerSchemeProcess(object(), BrownianMotion(td, 1, 100, 1))

    def test_rejects_unknown_scheme_type(self):
        with pytest.raises(ConfigurationError):
            make_process(CountingModel(), scheme=1)
        with pytest.raises(ValueError):
            make_process(CountingModel(), scheme="runge_kutta")

    def test_invalid_indices(self):
        process = make_process(CountingModel())
        with pytest.raises(ValidationError):
            process.process_value(5, 0)
        with pytest.raises(ValidationError):
            process.process_value(-1, 0)
        with pytest.raises(ValidationError):
            process.process_value(1, 1)


class TestClones:
    """Clone semantics"""

    def setup_method(self):
        self.model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        self.process = make_process(self.model)

    def test_clone_with_modified_seed(self):
        clone = self.process.clone_with_modified_seed(99)
        assert clone.model is self.model
        assert clone.scheme is self.process.scheme
        assert not np.array_equal(
            clone.process_value(4, 0).realizations, self.process.process_value(4, 0).realizations
        )

    def test_clone_with_modified_model_reuses_paths(self):
        higher_vol = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.4)
        clone = self.process.clone_with_modified_model(higher_vol)
        assert clone.stochastic_driver is self.process.stochastic_driver

        # same Brownian paths: log returns scale with the volatility
        base = np.log(self.process.process_value(4, 0).realizations / 100.0) - (0.05 - 0.02)
        scaled = np.log(clone.process_value(4, 0).realizations / 100.0) - (0.05 - 0.08)
        np.testing.assert_allclose(scaled, 2.0 * base, rtol=1e-9, atol=1e-12)


class TestPrecision:
    """Process values in single and double precision"""

    @pytest.mark.parametrize("precision", [Precision.DOUBLE, Precision.SINGLE])
    def test_value_dtype(self, precision):
        model = BlackScholesModel(initial_value=100.0, risk_free_rate=0.05, volatility=0.2)
        td = TimeDiscretization.from_tenor(0.0, 4, 0.25)
        bm = BrownianMotion(td, 1, 1000, 7, factory=RandomVariableFactory(precision))
        process = EulerSchemeProcess(model, bm)
        value = process.process_value(4, 0)
        assert value.dtype == precision.dtype
        assert value.average() == pytest.approx(100.0 * np.exp(0.05), rel=0.03)
