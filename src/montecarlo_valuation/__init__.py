from .analytic import bachelier_option_value, black_scholes_option_value
from .brownian_motion import BrownianMotion
from .enums import EulerScheme, ExerciseMethod, OptionType, Precision
from .exceptions import (
    CalculationFailure,
    ConfigurationError,
    MonteCarloValuationError,
    SingularRegressionMatrixError,
    ValidationError,
)
from .models import (
    AbstractProcessModel,
    BachelierModel,
    BlackScholesModel,
    HestonModel,
    ProcessModel,
)
from .params import PortfolioParams, RegressionParams, SimulationParams
from .portfolio import PortfolioValuation, value_portfolio
from .process import EulerSchemeProcess
from .products import AbstractProduct, BermudanOption, EuropeanOption, Portfolio, Product
from .random_variable import RandomVariable, RandomVariableFactory
from .regression import (
    ConditionalExpectationRegression,
    laguerre_basis_functions,
    monomial_basis_functions,
)
from .simulation_model import MonteCarloSimulationModel
from .time_discretization import TimeDiscretization


__all__ = [
    "RandomVariable",
    "RandomVariableFactory",
    "TimeDiscretization",
    "BrownianMotion",
    "ProcessModel",
    "AbstractProcessModel",
    "BlackScholesModel",
    "BachelierModel",
    "HestonModel",
    "EulerSchemeProcess",
    "MonteCarloSimulationModel",
    "ConditionalExpectationRegression",
    "monomial_basis_functions",
    "laguerre_basis_functions",
    "Product",
    "AbstractProduct",
    "EuropeanOption",
    "BermudanOption",
    "Portfolio",
    "value_portfolio",
    "PortfolioValuation",
    "SimulationParams",
    "RegressionParams",
    "PortfolioParams",
    "EulerScheme",
    "Precision",
    "OptionType",
    "ExerciseMethod",
    "black_scholes_option_value",
    "bachelier_option_value",
    "MonteCarloValuationError",
    "ValidationError",
    "ConfigurationError",
    "CalculationFailure",
    "SingularRegressionMatrixError",
]
