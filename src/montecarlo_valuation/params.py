"""Parameter classes for simulation, regression and portfolio configuration.

Each concern has its own parameter class that explicitly documents the
configuration options available for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .brownian_motion import BrownianMotion
from .enums import EulerScheme, Precision
from .exceptions import ValidationError
from .process import EulerSchemeProcess
from .random_variable import RandomVariableFactory
from .simulation_model import MonteCarloSimulationModel

if TYPE_CHECKING:
    from .models.base import ProcessModel
    from .time_discretization import TimeDiscretization


@dataclass(frozen=True, slots=True)
class SimulationParams:
    """Parameters for Monte Carlo path simulation.

    Attributes
    ==========
    number_of_paths:
        Number of simulated paths.
    number_of_factors:
        Number of independent Brownian drivers. Must match the model.
        Default: 1.
    seed:
        Seed of the Brownian increments. Default: 3141.
    scheme:
        Euler or predictor-corrector discretization. Default: Euler.
    precision:
        Storage precision of the realizations. Default: double.
    check_finite:
        Fail with ``CalculationFailure`` on non-finite drift / factor
        loadings. Default: True.
    """

    number_of_paths: int
    number_of_factors: int = 1
    seed: int = 3141
    scheme: EulerScheme | str = EulerScheme.EULER
    precision: Precision | str = Precision.DOUBLE
    check_finite: bool = True

    def __post_init__(self):
        if isinstance(self.scheme, str):
            object.__setattr__(self, "scheme", EulerScheme(self.scheme))
        if isinstance(self.precision, str):
            object.__setattr__(self, "precision", Precision(self.precision))
        if self.number_of_paths < 1:
            raise ValidationError(f"number_of_paths must be >= 1, got {self.number_of_paths}")
        if self.number_of_factors < 1:
            raise ValidationError(f"number_of_factors must be >= 1, got {self.number_of_factors}")
        if not isinstance(self.scheme, EulerScheme):
            raise ValidationError(f"scheme must be an EulerScheme, got {self.scheme}")
        if not isinstance(self.precision, Precision):
            raise ValidationError(f"precision must be a Precision, got {self.precision}")

    def build_process(
        self, model: ProcessModel, time_discretization: TimeDiscretization
    ) -> EulerSchemeProcess:
        """Wire a process model and a seeded Brownian driver into an Euler scheme process."""
        driver = BrownianMotion(
            time_discretization,
            number_of_factors=self.number_of_factors,
            number_of_paths=self.number_of_paths,
            seed=self.seed,
            factory=RandomVariableFactory(self.precision),
        )
        return EulerSchemeProcess(
            model, driver, scheme=self.scheme, check_finite=self.check_finite
        )

    def build_model(
        self, model: ProcessModel, time_discretization: TimeDiscretization
    ) -> MonteCarloSimulationModel:
        """Simulation model over :meth:`build_process`, ready to hand to products."""
        return MonteCarloSimulationModel(self.build_process(model, time_discretization))


@dataclass(frozen=True, slots=True)
class RegressionParams:
    """Parameters for regression based conditional expectations.

    Attributes
    ==========
    degree:
        Polynomial degree of the basis functions. Typical range: 2-5.
        Default: 4.
    ridge_lambda:
        Tikhonov regularisation added to the Gram matrix diagonal.
        Default: 0.0 (ordinary least squares).
    max_condition_number:
        Gram matrices with a larger condition number are treated as
        singular. Default: 1e12.
    use_laguerre:
        Use Laguerre polynomials in normalised moneyness instead of
        monomials. Default: False.
    """

    degree: int = 4
    ridge_lambda: float = 0.0
    max_condition_number: float = 1e12
    use_laguerre: bool = False

    def __post_init__(self):
        if self.degree < 0:
            raise ValidationError(f"degree must be >= 0, got {self.degree}")
        if self.ridge_lambda < 0.0:
            raise ValidationError(f"ridge_lambda must be >= 0, got {self.ridge_lambda}")
        if not self.max_condition_number > 1.0:
            raise ValidationError(
                f"max_condition_number must be > 1, got {self.max_condition_number}"
            )


@dataclass(frozen=True, slots=True)
class PortfolioParams:
    """Parameters for concurrent portfolio valuation.

    Attributes
    ==========
    thread_count:
        Size of the worker pool. If None, uses the number of CPUs. The pool
        never exceeds the number of products.
    log_timings:
        Log the wall time of each valuation at debug level. Default: False.
    std_error_warn_ratio:
        Emit a warning when the Monte Carlo standard error relative to the
        portfolio value exceeds this ratio. If None, no check.
    """

    thread_count: int | None = None
    log_timings: bool = False
    std_error_warn_ratio: float | None = None

    def __post_init__(self):
        if self.thread_count is not None and self.thread_count < 1:
            raise ValidationError(f"thread_count must be >= 1, got {self.thread_count}")
        if self.std_error_warn_ratio is not None and self.std_error_warn_ratio <= 0.0:
            raise ValidationError(
                f"std_error_warn_ratio must be positive, got {self.std_error_warn_ratio}"
            )
