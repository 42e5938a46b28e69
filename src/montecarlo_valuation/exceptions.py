"""Custom exception hierarchy for the montecarlo_valuation library.

All library-specific exceptions inherit from :class:`MonteCarloValuationError`,
enabling callers to catch *any* library error with a single ``except`` clause::

    try:
        value = value_portfolio(0.0, model, products, weights)
    except MonteCarloValuationError as exc:
        log.error("Library error: %s", exc)

Numerical degeneracy (NaN, +/-inf produced by arithmetic) is never an
exception: it propagates through :class:`~montecarlo_valuation.random_variable.RandomVariable`
values following IEEE-754 rules.
"""

from __future__ import annotations


class MonteCarloValuationError(Exception):
    """Base exception for all library errors."""


# ── Usage errors ────────────────────────────────────────────────────


class ValidationError(MonteCarloValuationError):
    """Invalid input (path count mismatch, look-ahead basis function, bad index, etc.)."""


class ConfigurationError(MonteCarloValuationError):
    """Wrong types passed to a public API (e.g. raw int instead of enum)."""


# ── Structural failures ─────────────────────────────────────────────


class CalculationFailure(MonteCarloValuationError):
    """A valuation could not be carried out.

    Raised when a model produces an irrecoverable state, a worker task fails,
    or a regression cannot be solved. The originating exception, if any, is
    chained as ``__cause__`` and also exposed as :attr:`cause`.
    """

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


class SingularRegressionMatrixError(CalculationFailure):
    """The Gram matrix of a conditional expectation regression is (near) singular."""
