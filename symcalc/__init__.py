"""Symbolic calculator core: integration, equation solving and limits."""

from .config import EngineConfig
from .errors import (
    DefiniteBoundsIndeterminate,
    EngineError,
    InvalidInputType,
    ParseFailure,
    RecursionDepthExceeded,
    UnboundVariableEvaluation,
)
from .expression import (
    AdvancedSubstitutionFound,
    Bounds,
    ImproperIntegral,
    NumericalApproximation,
    PartialFractionSum,
    UnimplementedIntegral,
    parse,
    pretty,
)
from .integrate import definite_integral, indefinite_integral, integral, integrate, integrate_multivariable
from .limit import eval_limit, lim
from .report import Calculator, ComputationResult
from .solve import (
    NO_REAL_ROOTS,
    NO_SOLUTION,
    classify_complexity,
    filter_steps,
    match_cubic_eq,
    match_linear_eq,
    match_quadratic_eq,
    match_quartic_eq,
    poly_coeffs,
    solve,
)
from .steps import StepTrace

__version__ = "0.1.0"
