"""Euler discretization of a process model with a lazily filled path cache.

For each component ``c`` the state ``Y`` is advanced by

    Y_c(t_{i+1}) = Y_c(t_i) + mu_c(t_i) dt_i + sum_k lambda_{k,c}(t_i) dW_k(t_i)

and observed through the model's state-space transform ``X_c = f_c(Y_c)``.
With the predictor-corrector scheme the Euler value serves as predictor
and the corrected state adds ``(mu_c(predictor) - mu_c) / 2 * dt_i``.

Realizations live in a preallocated ``(time index, component)`` arena of
write-once cells. A cell is computed on first request, at most once even
under concurrent access, and afterwards returned as the identical object.
"""

from __future__ import annotations

from typing import Callable, NamedTuple
import logging
import math
import threading

import numpy as np

from .brownian_motion import BrownianMotion
from .enums import EulerScheme
from .exceptions import (
    CalculationFailure,
    ConfigurationError,
    MonteCarloValuationError,
    ValidationError,
)
from .models.base import ProcessModel
from .random_variable import RandomVariable
from .time_discretization import TimeDiscretization

logger = logging.getLogger(__name__)

__all__ = ["EulerSchemeProcess"]


class _Cell(NamedTuple):
    state: RandomVariable  # Y, the Euler state
    value: RandomVariable  # X = f(Y), the observed value
    drift: RandomVariable | None = None  # drift used for the step (predictor cells only)


class _CellArena:
    """Preallocated grid of write-once cells with one lock per cell."""

    def __init__(self, number_of_times: int, number_of_components: int) -> None:
        self._cells: list[list[_Cell | None]] = [
            [None] * number_of_components for _ in range(number_of_times)
        ]
        self._locks = [
            [threading.Lock() for _ in range(number_of_components)]
            for _ in range(number_of_times)
        ]

    def get_or_compute(self, time_index: int, component: int, compute: Callable[[], _Cell]):
        cell = self._cells[time_index][component]
        if cell is not None:
            return cell
        with self._locks[time_index][component]:
            cell = self._cells[time_index][component]
            if cell is None:
                cell = compute()
                self._cells[time_index][component] = cell
        return cell

    def is_filled(self, time_index: int, component: int) -> bool:
        return self._cells[time_index][component] is not None


def _is_finite(random_variable: RandomVariable) -> bool:
    if random_variable.is_deterministic():
        return math.isfinite(random_variable.average())
    return bool(np.all(np.isfinite(random_variable.realizations)))


class EulerSchemeProcess:
    """Monte Carlo simulation of a process model driven by Brownian increments.

    Parameters
    ==========
    model: ProcessModel
        Supplies initial state, drift, factor loadings, state-space
        transform and numeraire.
    stochastic_driver: BrownianMotion
        Source of the increments; defines the time discretization, the
        number of paths and the number of factors.
    scheme: EulerScheme or str, default EulerScheme.EULER
        Plain Euler or predictor-corrector.
    check_finite: bool, default True
        Raise :class:`CalculationFailure` when a model returns a non-finite
        drift or factor loading instead of caching the broken state.

    Examples
    ========
    >>> from montecarlo_valuation.models import BlackScholesModel
    >>> td = TimeDiscretization.from_tenor(0.0, 4, 0.25)
    >>> bm = BrownianMotion(td, number_of_factors=1, number_of_paths=1000, seed=7)
    >>> process = EulerSchemeProcess(BlackScholesModel(100.0, 0.05, 0.2), bm)
    >>> process.process_value(4, 0).size
    1000
    """

    def __init__(
        self,
        model: ProcessModel,
        stochastic_driver: BrownianMotion,
        scheme: EulerScheme | str = EulerScheme.EULER,
        check_finite: bool = True,
    ) -> None:
        if isinstance(scheme, str):
            scheme = EulerScheme(scheme)
        if not isinstance(scheme, EulerScheme):
            raise ConfigurationError(f"scheme must be an EulerScheme, got {type(scheme).__name__}")
        if not isinstance(model, ProcessModel):
            raise ConfigurationError(
                f"model must implement the ProcessModel interface, got {type(model).__name__}"
            )
        if model.number_of_factors != stochastic_driver.number_of_factors:
            raise ValidationError(
                f"Model uses {model.number_of_factors} factor(s) but the stochastic driver "
                f"provides {stochastic_driver.number_of_factors}"
            )

        self.model = model
        self.stochastic_driver = stochastic_driver
        self.scheme = scheme
        self.check_finite = check_finite

        number_of_times = self.time_discretization.number_of_times
        self._arena = _CellArena(number_of_times, self.number_of_components)
        self._predictor_arena = (
            _CellArena(number_of_times, self.number_of_components)
            if scheme is EulerScheme.PREDICTOR_CORRECTOR
            else None
        )
        self._filled_rows = 0
        self._row_lock = threading.Lock()

        self._initial_state: list[RandomVariable] | None = None
        self._initial_state_lock = threading.Lock()

        self._numeraires: dict[float, RandomVariable] = {}
        self._numeraire_locks: dict[float, threading.Lock] = {}
        self._numeraire_lock = threading.Lock()

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def time_discretization(self) -> TimeDiscretization:
        return self.stochastic_driver.time_discretization

    @property
    def number_of_paths(self) -> int:
        return self.stochastic_driver.number_of_paths

    @property
    def number_of_factors(self) -> int:
        return self.stochastic_driver.number_of_factors

    @property
    def number_of_components(self) -> int:
        return self.model.number_of_components

    def time(self, time_index: int) -> float:
        return self.time_discretization.time(time_index)

    def time_index(self, time: float) -> int | None:
        return self.time_discretization.time_index(time)

    def random_variable_for_constant(self, value: float) -> RandomVariable:
        return self.stochastic_driver.random_variable_for_constant(value)

    def monte_carlo_weights(self, time_index: int) -> RandomVariable:
        """Path weights of the simulation (equal weights ``1 / number_of_paths``)."""
        self._check_time_index(time_index)
        return self.random_variable_for_constant(1.0 / self.number_of_paths)

    # ------------------------------------------------------------------
    # process values
    # ------------------------------------------------------------------

    def process_value(self, time_index: int, component: int) -> RandomVariable:
        """Realization of ``component`` at ``time_index``.

        Only missing cells are computed, moving forward from the last
        completely filled time index.
        """
        self._check_time_index(time_index)
        if not 0 <= component < self.number_of_components:
            raise ValidationError(
                f"component must be in [0, {self.number_of_components}), got {component}"
            )
        if not self._arena.is_filled(time_index, component):
            self._fill_rows_before(time_index)
        return self._cell(time_index, component).value

    def process_values(self, time_index: int) -> list[RandomVariable]:
        """Realizations of all components at ``time_index``."""
        return [self.process_value(time_index, c) for c in range(self.number_of_components)]

    def numeraire(self, time: float) -> RandomVariable:
        """Numeraire at ``time``, computed once per time.

        Each time has its own lock, so a model may build its numeraire from
        the numeraire at other times.
        """
        value = self._numeraires.get(time)
        if value is not None:
            return value
        with self._numeraire_lock:
            lock = self._numeraire_locks.setdefault(time, threading.Lock())
        with lock:
            value = self._numeraires.get(time)
            if value is None:
                try:
                    value = self.model.numeraire(self, time)
                except MonteCarloValuationError:
                    raise
                except Exception as exc:
                    raise CalculationFailure(
                        f"Numeraire calculation failed at time {time}. See cause for details."
                    ) from exc
                if self.check_finite and not _is_finite(value):
                    raise CalculationFailure(f"Model returned a non-finite numeraire at time {time}")
                self._numeraires[time] = value
        return value

    def _check_time_index(self, time_index: int) -> None:
        if not 0 <= time_index <= self.time_discretization.number_of_time_steps:
            raise ValidationError(
                f"time_index must be in [0, {self.time_discretization.number_of_time_steps}], "
                f"got {time_index}"
            )

    def _fill_rows_before(self, time_index: int) -> None:
        # Iterative forward fill keeps the call depth bounded for long grids.
        for i in range(self._filled_rows, time_index):
            for component in range(self.number_of_components):
                self._cell(i, component)
            with self._row_lock:
                if self._filled_rows == i:
                    self._filled_rows = i + 1
                    logger.debug("Process filled up to time index %d (t=%.6g)", i, self.time(i))

    def _realization(self, time_index: int) -> list[RandomVariable]:
        return [self._cell(time_index, c).value for c in range(self.number_of_components)]

    def _cell(self, time_index: int, component: int) -> _Cell:
        if time_index == 0:
            return self._arena.get_or_compute(0, component, lambda: self._initial_cell(component))
        if self._predictor_arena is None:
            return self._arena.get_or_compute(
                time_index,
                component,
                lambda: self._euler_cell(time_index, component)._replace(drift=None),
            )
        return self._arena.get_or_compute(
            time_index, component, lambda: self._corrected_cell(time_index, component)
        )

    def _initial_cell(self, component: int) -> _Cell:
        if self._initial_state is None:
            with self._initial_state_lock:
                if self._initial_state is None:
                    state = self._call_model(
                        "initial state", 0, component, self.model.initial_state, self
                    )
                    if len(state) != self.number_of_components:
                        raise ValidationError(
                            f"Model returned {len(state)} initial values for "
                            f"{self.number_of_components} component(s)"
                        )
                    self._initial_state = list(state)
        state = self._initial_state[component]
        value = self._call_model(
            "state space transform",
            0,
            component,
            self.model.apply_state_space_transform,
            self,
            0,
            component,
            state,
        )
        return _Cell(state, value)

    def _euler_cell(self, time_index: int, component: int) -> _Cell:
        """Euler step from ``time_index - 1`` to ``time_index``."""
        previous_index = time_index - 1
        previous = self._cell(previous_index, component)
        realization = self._realization(previous_index)

        drift = self._call_model(
            "drift",
            previous_index,
            component,
            self.model.drift,
            self,
            previous_index,
            component,
            realization,
            None,
        )
        if drift is None:
            # component stopped evolving
            return _Cell(previous.state, previous.value)
        self._check_finite("drift", previous_index, component, drift)

        factor_loadings = []
        for factor in range(self.number_of_factors):
            loading = self._call_model(
                "factor loading",
                previous_index,
                component,
                self.model.factor_loading,
                self,
                previous_index,
                factor,
                component,
                realization,
            )
            if loading is None:
                return _Cell(previous.state, previous.value)
            self._check_finite("factor loading", previous_index, component, loading)
            factor_loadings.append(loading)

        delta_t = self.time_discretization.time_step(previous_index)
        increments = self.stochastic_driver.increments(previous_index)
        state = previous.state.add_product(drift, delta_t).add_sum_product(
            factor_loadings, increments
        )
        return _Cell(state, self._transform(time_index, component, state), drift)

    def _corrected_cell(self, time_index: int, component: int) -> _Cell:
        """Predictor-corrector step: Euler predictor plus half the drift difference."""
        predictor = self._predictor_arena.get_or_compute(
            time_index, component, lambda: self._euler_cell(time_index, component)
        )
        if predictor.drift is None:
            return _Cell(predictor.state, predictor.value)

        predicted_realization = [
            self._predictor_arena.get_or_compute(
                time_index, c, lambda c=c: self._euler_cell(time_index, c)
            ).value
            for c in range(self.number_of_components)
        ]
        previous_index = time_index - 1
        drift_with_predictor = self._call_model(
            "drift",
            previous_index,
            component,
            self.model.drift,
            self,
            previous_index,
            component,
            self._realization(previous_index),
            predicted_realization,
        )
        if drift_with_predictor is None:
            return _Cell(predictor.state, predictor.value)
        self._check_finite("drift", previous_index, component, drift_with_predictor)

        delta_t = self.time_discretization.time_step(previous_index)
        adjustment = drift_with_predictor.sub(predictor.drift).mult(0.5 * delta_t)
        state = predictor.state.add(adjustment)
        return _Cell(state, self._transform(time_index, component, state))

    def _transform(self, time_index: int, component: int, state: RandomVariable) -> RandomVariable:
        return self._call_model(
            "state space transform",
            time_index,
            component,
            self.model.apply_state_space_transform,
            self,
            time_index,
            component,
            state,
        )

    def _call_model(self, label: str, time_index: int, component: int, function, *args):
        try:
            return function(*args)
        except MonteCarloValuationError:
            raise
        except Exception as exc:
            raise CalculationFailure(
                f"{label} calculation failed at time index {time_index} "
                f"(time={self.time(time_index)}) for component {component}. "
                "See cause of this exception for details."
            ) from exc

    def _check_finite(
        self, label: str, time_index: int, component: int, random_variable: RandomVariable
    ) -> None:
        if self.check_finite and not _is_finite(random_variable):
            raise CalculationFailure(
                f"Model returned a non-finite {label} at time index {time_index} "
                f"(time={self.time(time_index)}) for component {component}"
            )

    # ------------------------------------------------------------------
    # clones
    # ------------------------------------------------------------------

    def clone_with_modified_seed(self, seed: int) -> EulerSchemeProcess:
        """Same model and scheme on a statistically independent set of paths."""
        return EulerSchemeProcess(
            self.model,
            self.stochastic_driver.clone_with_modified_seed(seed),
            scheme=self.scheme,
            check_finite=self.check_finite,
        )

    def clone_with_modified_model(self, model: ProcessModel) -> EulerSchemeProcess:
        """Same paths (same Brownian increments) under a different model."""
        return EulerSchemeProcess(
            model,
            self.stochastic_driver,
            scheme=self.scheme,
            check_finite=self.check_finite,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(model={self.model!r}, "
            f"stochastic_driver={self.stochastic_driver!r}, scheme={self.scheme.value})"
        )
