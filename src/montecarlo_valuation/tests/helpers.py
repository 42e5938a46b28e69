import threading

from montecarlo_valuation.enums import EulerScheme, Precision
from montecarlo_valuation.models import AbstractProcessModel
from montecarlo_valuation.params import SimulationParams
from montecarlo_valuation.time_discretization import TimeDiscretization


def build_simulation(
    model,
    number_of_time_steps=4,
    delta_t=0.25,
    number_of_paths=10_000,
    seed=3141,
    scheme=EulerScheme.EULER,
    precision=Precision.DOUBLE,
    check_finite=True,
):
    """Simulation model on an equidistant grid starting at 0."""
    time_discretization = TimeDiscretization.from_tenor(0.0, number_of_time_steps, delta_t)
    params = SimulationParams(
        number_of_paths=number_of_paths,
        number_of_factors=model.number_of_factors,
        seed=seed,
        scheme=scheme,
        precision=precision,
        check_finite=check_finite,
    )
    return params.build_model(model, time_discretization)


class CountingModel(AbstractProcessModel):
    """Arithmetic Brownian motion that counts how often it is called.

    ``fail_at`` makes the drift raise at that time index; ``freeze_after``
    returns ``None`` as drift from that time index on.
    """

    def __init__(
        self,
        drift=0.1,
        volatility=0.3,
        number_of_components=1,
        fail_at=None,
        freeze_after=None,
        drift_value=None,
    ):
        self.drift_rate = drift
        self.volatility = volatility
        self.number_of_components = number_of_components
        self.fail_at = fail_at
        self.freeze_after = freeze_after
        self.drift_value = drift_value
        self.calls = {"initial_state": 0, "drift": 0, "factor_loading": 0, "numeraire": 0}
        self._lock = threading.Lock()

    def _count(self, name):
        with self._lock:
            self.calls[name] += 1

    def initial_state(self, process):
        self._count("initial_state")
        return [
            process.random_variable_for_constant(1.0 + c) for c in range(self.number_of_components)
        ]

    def drift(self, process, time_index, component, realization, realization_predictor):
        self._count("drift")
        if self.fail_at is not None and time_index == self.fail_at:
            raise ZeroDivisionError("broken drift")
        if self.freeze_after is not None and time_index >= self.freeze_after:
            return None
        if self.drift_value is not None:
            return process.random_variable_for_constant(self.drift_value)
        return process.random_variable_for_constant(self.drift_rate)

    def factor_loading(self, process, time_index, factor, component, realization):
        self._count("factor_loading")
        return process.random_variable_for_constant(self.volatility)

    def numeraire(self, process, time):
        self._count("numeraire")
        return process.random_variable_for_constant(1.0)


class MoneyMarketModel(CountingModel):
    """Numeraire rolled over the grid: ``N(t_i) = N(t_{i-1}) * (1 + r dt)``."""

    def __init__(self, rate=0.04, **kwargs):
        super().__init__(**kwargs)
        self.rate = rate

    def numeraire(self, process, time):
        self._count("numeraire")
        time_index = process.time_index(time)
        if time_index == 0:
            return process.random_variable_for_constant(1.0)
        previous = process.numeraire(process.time(time_index - 1))
        period_length = process.time_discretization.time_step(time_index - 1)
        return previous.mult(1.0 + self.rate * period_length)
