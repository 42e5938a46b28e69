"""Conditional expectation estimation by least squares regression on basis functions.

The estimator solves the normal equations

    G c = p,    G[i][j] = E[b_i b_j],    p[i] = E[y b_i]

where the expectations are Monte Carlo averages over paths. The conditional
expectation E[y | F_t] is then approximated by ``sum_i c_i b'_i`` with the
predictor basis functions ``b'_i`` (the estimator basis functions unless a
separate predictor set is given, e.g. for out-of-sample estimation).
"""

from __future__ import annotations

from typing import Sequence
import logging

import numpy as np

from .exceptions import SingularRegressionMatrixError, ValidationError
from .random_variable import RandomVariable

logger = logging.getLogger(__name__)

__all__ = [
    "ConditionalExpectationRegression",
    "monomial_basis_functions",
    "laguerre_basis_functions",
]


class ConditionalExpectationRegression:
    """Regression based estimator of conditional expectations.

    Parameters
    ==========
    basis_functions_estimator: sequence of RandomVariable or None
        Basis functions used to determine the regression coefficients.
        ``None`` entries are ignored.
    basis_functions_predictor: sequence of RandomVariable or None, optional
        Basis functions used to build the estimate from the coefficients.
        Paired with the estimator basis functions by position; a pair is
        dropped if either side is ``None``. Defaults to the estimator set.
    evaluation_time: float, optional
        If given, every basis function must be known at this time
        (``filtration_time <= evaluation_time``).
    ridge_lambda: float, default 0.0
        Tikhonov regularisation added to the diagonal of the Gram matrix.
    max_condition_number: float, default 1e12
        Gram matrices with a larger (or non-finite) condition number raise
        :class:`SingularRegressionMatrixError`.
    """

    def __init__(
        self,
        basis_functions_estimator: Sequence[RandomVariable | None],
        basis_functions_predictor: Sequence[RandomVariable | None] | None = None,
        evaluation_time: float | None = None,
        ridge_lambda: float = 0.0,
        max_condition_number: float = 1e12,
    ) -> None:
        if basis_functions_predictor is None:
            basis_functions_predictor = basis_functions_estimator
        if len(basis_functions_estimator) != len(basis_functions_predictor):
            raise ValidationError(
                "Estimator and predictor basis functions differ in length: "
                f"{len(basis_functions_estimator)} vs {len(basis_functions_predictor)}"
            )
        if ridge_lambda < 0.0:
            raise ValidationError(f"ridge_lambda must be >= 0, got {ridge_lambda}")

        pairs = [
            (estimator, predictor)
            for estimator, predictor in zip(basis_functions_estimator, basis_functions_predictor)
            if estimator is not None and predictor is not None
        ]
        if not pairs:
            raise ValidationError("At least one basis function is required")

        self.basis_functions_estimator = [estimator for estimator, _ in pairs]
        self.basis_functions_predictor = [predictor for _, predictor in pairs]
        self.evaluation_time = evaluation_time
        self.ridge_lambda = ridge_lambda
        self.max_condition_number = max_condition_number

        if evaluation_time is not None:
            for index, basis_function in enumerate(
                self.basis_functions_estimator + self.basis_functions_predictor
            ):
                if basis_function.filtration_time > evaluation_time:
                    raise ValidationError(
                        f"Basis function {index % len(pairs)} is observed at "
                        f"{basis_function.filtration_time}, after the evaluation time "
                        f"{evaluation_time}"
                    )

    @property
    def dimension(self) -> int:
        return len(self.basis_functions_estimator)

    def regression_coefficients(self, dependent: RandomVariable) -> np.ndarray:
        """Least squares coefficients of ``dependent`` on the estimator basis."""
        basis = self.basis_functions_estimator
        k = len(basis)

        gram = np.empty((k, k))
        for i in range(k):
            for j in range(i, k):
                gram[i, j] = gram[j, i] = basis[i].mult(basis[j]).average()
        projection = np.array([dependent.mult(b).average() for b in basis])

        if self.ridge_lambda > 0.0:
            gram = gram + self.ridge_lambda * np.eye(k)

        with np.errstate(all="ignore"):
            condition_number = (
                float(np.linalg.cond(gram)) if np.all(np.isfinite(gram)) else np.inf
            )
        logger.debug(
            "Regression dimension=%d condition_number=%.3g ridge_lambda=%.3g",
            k,
            condition_number,
            self.ridge_lambda,
        )
        if not np.isfinite(condition_number) or condition_number > self.max_condition_number:
            raise SingularRegressionMatrixError(
                f"Regression matrix of dimension {k} is singular or ill-conditioned "
                f"(condition number {condition_number:.3g} > {self.max_condition_number:.3g}). "
                "Remove linearly dependent basis functions or set ridge_lambda > 0."
            )
        try:
            return np.linalg.solve(gram, projection)
        except np.linalg.LinAlgError as exc:
            raise SingularRegressionMatrixError(
                f"Regression matrix of dimension {k} could not be solved"
            ) from exc

    def conditional_expectation(self, dependent: RandomVariable) -> RandomVariable:
        """Estimate of ``E[dependent | F]`` on the predictor basis."""
        coefficients = self.regression_coefficients(dependent)
        return RandomVariable.constant(0.0).add_sum_product(
            self.basis_functions_predictor, [float(c) for c in coefficients]
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(dimension={self.dimension}, "
            f"evaluation_time={self.evaluation_time}, ridge_lambda={self.ridge_lambda})"
        )


def monomial_basis_functions(underlying: RandomVariable, degree: int) -> list[RandomVariable]:
    """Basis ``1, x, x^2, ..., x^degree``.

    The constant carries the filtration time of ``underlying`` so the basis
    set as a whole is observed at the same time.
    """
    if degree < 0:
        raise ValidationError(f"degree must be >= 0, got {degree}")
    one = RandomVariable.constant(1.0, underlying.filtration_time)
    basis = [one]
    power = one
    for _ in range(degree):
        power = power.mult(underlying)
        basis.append(power)
    return basis


def laguerre_basis_functions(
    underlying: RandomVariable, degree: int, normaliser: float | None = None
) -> list[RandomVariable]:
    """Laguerre polynomials ``L_0, ..., L_degree`` in ``x = underlying / normaliser``.

    Uses the recurrence::

        L_0(x) = 1
        L_1(x) = 1 - x
        L_{k+1}(x) = ((2k + 1 - x) L_k(x) - k L_{k-1}(x)) / (k + 1)

    These are orthogonal on [0, inf) w.r.t. e^{-x}, which conditions the
    regression far better than raw powers of a spot price. If no normaliser
    is given, the mean of ``underlying`` is used.
    """
    if degree < 0:
        raise ValidationError(f"degree must be >= 0, got {degree}")
    if normaliser is None:
        normaliser = max(abs(underlying.average()), 1e-12)
    x = underlying.div(normaliser)
    basis = [RandomVariable.constant(1.0, underlying.filtration_time)]
    if degree >= 1:
        basis.append(x.bus(1.0))
    for k in range(1, degree):
        basis.append(x.bus(2 * k + 1).mult(basis[k]).sub(basis[k - 1].mult(k)).div(k + 1))
    return basis
