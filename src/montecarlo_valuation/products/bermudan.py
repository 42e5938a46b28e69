"""Bermudan option valued by backward induction with regression based exercise.

At each exercise date, walking backwards, the holder receives
``notional * (S - K)`` if exercising. The continuation value is estimated by
regressing the (numeraire relative) value of the not-yet-exercised option on
basis functions of the underlying (Longstaff-Schwartz). Exercise happens on
paths where the continuation estimate falls below the exercise value.

References
----------
Longstaff, F. A., Schwartz, E. S. (2001). Valuing American options by
simulation: a simple least-squares approach. The Review of Financial
Studies, 14(1), 113-147.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence
import logging
import math

import numpy as np
from scipy import optimize

from ..enums import ExerciseMethod
from ..exceptions import ConfigurationError, ValidationError
from ..params import RegressionParams
from ..random_variable import RandomVariable
from ..regression import (
    ConditionalExpectationRegression,
    laguerre_basis_functions,
    monomial_basis_functions,
)
from .base import AbstractProduct

if TYPE_CHECKING:
    from ..simulation_model import MonteCarloSimulationModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BermudanOption(AbstractProduct):
    """Option exercisable at a finite set of dates.

    Attributes
    ==========
    exercise_dates: sequence of float
        Strictly increasing exercise (and payment) times.
    notionals: sequence of float
        Notional per exercise date. A negative notional turns the payoff
        ``notional * (S - K)`` into a put.
    strikes: sequence of float
        Strike per exercise date.
    exercise_method: ExerciseMethod or str
        Default: regression estimate of the continuation value.
    regression_params: RegressionParams
        Basis function degree and regularisation of the regression.
    intrinsic_value_as_basis_function: bool, default True
        Regress on the exercise value floored at zero instead of the
        underlying itself.
    underlying_index: int, default 0
        Model component holding the underlying asset.
    """

    exercise_dates: Sequence[float]
    notionals: Sequence[float]
    strikes: Sequence[float]
    exercise_method: ExerciseMethod | str = ExerciseMethod.ESTIMATE_CONDITIONAL_EXPECTATION
    regression_params: RegressionParams = field(default_factory=RegressionParams)
    intrinsic_value_as_basis_function: bool = True
    underlying_index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "exercise_dates", tuple(float(t) for t in self.exercise_dates))
        object.__setattr__(self, "notionals", tuple(float(n) for n in self.notionals))
        object.__setattr__(self, "strikes", tuple(float(k) for k in self.strikes))
        if isinstance(self.exercise_method, str):
            object.__setattr__(self, "exercise_method", ExerciseMethod(self.exercise_method))
        if not isinstance(self.exercise_method, ExerciseMethod):
            raise ConfigurationError(
                "exercise_method must be an ExerciseMethod, got "
                f"{type(self.exercise_method).__name__}"
            )
        if not isinstance(self.regression_params, RegressionParams):
            raise ConfigurationError("regression_params must be a RegressionParams instance")

        if not self.exercise_dates:
            raise ValidationError("At least one exercise date is required")
        if not len(self.exercise_dates) == len(self.notionals) == len(self.strikes):
            raise ValidationError(
                "exercise_dates, notionals and strikes must have the same length, got "
                f"{len(self.exercise_dates)}, {len(self.notionals)} and {len(self.strikes)}"
            )
        dates = self.exercise_dates
        if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
            raise ValidationError("exercise_dates must be strictly increasing")

    def get_value(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> RandomVariable:
        if self.exercise_method is ExerciseMethod.UPPER_BOUND:
            # The dual bound is minimised over the weight of the martingale control.
            result = optimize.minimize_scalar(
                lambda weight: self._values(evaluation_time, model, weight)[0].average(),
                bounds=(-1.0, 1.0),
                method="bounded",
            )
            logger.debug("Bermudan upper bound martingale weight=%.6g", result.x)
            return self._values(evaluation_time, model, float(result.x))[0]
        return self._values(evaluation_time, model, 0.0)[0]

    def exercise_probabilities(
        self, evaluation_time: float, model: MonteCarloSimulationModel
    ) -> np.ndarray:
        """Probability of exercising at each date; the last entry is "never exercised"."""
        _, exercise_time = self._values(evaluation_time, model, 0.0)
        return exercise_time.histogram(self.exercise_dates)

    def _values(
        self, evaluation_time: float, model: MonteCarloSimulationModel, martingale_weight: float
    ) -> tuple[RandomVariable, RandomVariable]:
        # value if never exercised is zero
        value = model.random_variable_for_constant(0.0)
        exercise_time = model.random_variable_for_constant(self.exercise_dates[-1] + 1.0)

        last = len(self.exercise_dates) - 1
        for index in range(last, -1, -1):
            exercise_date = self.exercise_dates[index]
            notional = self.notionals[index]
            strike = self.strikes[index]

            # grid time the underlying is observed at
            observation_time = model.time(model.time_index(exercise_date))
            underlying = model.asset_value(exercise_date, self.underlying_index)
            numeraire = model.numeraire(exercise_date)
            weights = model.monte_carlo_weights(exercise_date)

            exercise_value = underlying.sub(strike).mult(notional)
            value_if_exercised = exercise_value.div(numeraire).mult(weights)

            if self.exercise_method is ExerciseMethod.UPPER_BOUND:
                martingale = underlying.div(numeraire)
                martingale = (
                    martingale.sub(martingale.average()).mult(martingale_weight).mult(weights)
                )
                value_if_exercised = value_if_exercised.sub(martingale)
                if index == last:
                    value = value.sub(martingale)
                trigger = value.sub(value_if_exercised)
            else:
                if self.intrinsic_value_as_basis_function:
                    regressor = exercise_value.floor(0.0)
                else:
                    regressor = underlying
                estimator = ConditionalExpectationRegression(
                    self._basis_functions(regressor, strike),
                    evaluation_time=observation_time,
                    ridge_lambda=self.regression_params.ridge_lambda,
                    max_condition_number=self.regression_params.max_condition_number,
                )
                continuation = value.get_conditional_expectation(estimator)
                trigger = continuation.sub(value_if_exercised)

            # keep the option where the trigger is non-negative, otherwise exercise
            value = RandomVariable.barrier(trigger, value, value_if_exercised)
            exercise_time = RandomVariable.barrier(trigger, exercise_time, exercise_date)

        # value is numeraire relative and weighted
        value = value.mult(model.numeraire(evaluation_time)).div(
            model.monte_carlo_weights(evaluation_time)
        )
        return value, exercise_time

    def _basis_functions(self, regressor: RandomVariable, strike: float) -> list[RandomVariable]:
        params = self.regression_params
        if params.use_laguerre:
            normaliser = abs(strike) if strike != 0.0 else None
            return laguerre_basis_functions(regressor, params.degree, normaliser)

        # standardised monomials keep the Gram matrix well conditioned
        deviation = regressor.standard_deviation()
        if not deviation > 0.0 or not math.isfinite(deviation):
            # a regressor without variation carries no information beyond the constant
            return monomial_basis_functions(regressor, 0)
        standardised = regressor.sub(regressor.average()).div(deviation)
        return monomial_basis_functions(standardised, params.degree)
