"""One- and two-sided limits.

The evaluator tries, in order: direct substitution, L'Hopital's rule for
``0/0`` and ``inf/inf`` quotients, numeric bracketing around a finite target
and leading-term comparison of rational functions at infinity. When all of
them fail the unevaluated ``Limit`` marker is returned. A L'Hopital chain that
does not settle hands the expression it started from to the remaining methods.
"""

import logging
import math
from typing import List, Optional, Tuple, Union

import sympy as sp

from .config import EngineConfig, resolve_config
from .errors import InvalidInputType
from .expression import (
    ExpressionInput,
    evaluate_numeric,
    is_finite_real,
    is_infinite,
    pretty,
    resolve_variable,
    snap_real,
    to_expression,
)
from .solve import poly_coeffs
from .steps import StepTrace

logger = logging.getLogger(__name__)

DIRECTIONS = (None, "+", "-")

# Derivatives containing these are only piecewise valid around the target
_NON_SMOOTH = (sp.sign, sp.Derivative, sp.re, sp.im, sp.DiracDelta, sp.Heaviside)


class LimitEvaluator:
    def __init__(self, config: Optional[EngineConfig] = None, trace: Optional[StepTrace] = None):
        self.config = resolve_config(config)
        self.trace = trace if trace is not None else StepTrace()

    def evaluate(
        self,
        expr: sp.Expr,
        var: sp.Symbol,
        target: sp.Expr,
        direction: Optional[str] = None,
    ) -> sp.Expr:
        result = self._resolve(expr, var, target, direction, 0)
        if result is not None:
            return result

        approach = f"{var} -> {pretty(target)}{direction or ''}"
        self.trace.add(f"Could not evaluate lim({approach}) {pretty(expr)}; left unevaluated")
        logger.info("limit of %s as %s left unevaluated", expr, approach)
        return sp.Limit(expr, var, target, dir=direction or "+-")

    def _resolve(self, expr, var, target, direction, applications) -> Optional[sp.Expr]:
        """Run the methods in order; ``None`` when none of them settles the limit."""
        value = self._direct_substitution(expr, var, target)
        if value is not None:
            self.trace.add(f"Substitute {var} = {pretty(target)} directly: {pretty(value)}")
            return value
        self.trace.add(f"Direct substitution into {pretty(expr)} is undefined", detail=True)

        result = self._lhopital(expr, var, target, direction, applications)
        if result is not None:
            return result

        if not is_infinite(target):
            return self._bracket(expr, var, target, direction)
        return self._leading_terms(expr, var, target)

    def _direct_substitution(self, expr: sp.Expr, var: sp.Symbol, target: sp.Expr) -> Optional[sp.Expr]:
        value = expr.subs(var, target)
        if value.has(sp.nan, sp.zoo, sp.oo, -sp.oo, sp.AccumBounds):
            return None
        if value.free_symbols:
            return value
        if not is_finite_real(evaluate_numeric(value)):
            return None
        return value

    def _vanishes(self, value: sp.Expr) -> bool:
        if value.is_zero:
            return True
        if value.free_symbols:
            return False
        return abs(evaluate_numeric(value)) < 1e-12

    def _lhopital(self, expr, var, target, direction, applications) -> Optional[sp.Expr]:
        numerator, denominator = sp.fraction(sp.together(expr))
        if not denominator.has(var):
            return None

        num_at = numerator.subs(var, target)
        den_at = denominator.subs(var, target)
        if self._vanishes(num_at) and self._vanishes(den_at):
            form = "0/0"
        elif is_infinite(num_at) and is_infinite(den_at):
            form = "∞/∞"
        else:
            return None

        if applications >= self.config.max_lhopital:
            self.trace.add(f"L'Hôpital's rule applied {applications} times without a result", detail=True)
            return None

        top = self._real_derivative(numerator, var)
        bottom = self._real_derivative(denominator, var)
        if top.has(*_NON_SMOOTH) or bottom.has(*_NON_SMOOTH):
            self.trace.add(f"L'Hôpital's rule does not apply: {pretty(expr)} is not differentiable there", detail=True)
            return None

        derived = top / bottom
        self.trace.add(f"{form} form: apply L'Hôpital's rule, lim ({pretty(top)})/({pretty(bottom)})")
        logger.debug("L'Hopital #%d on %s gives %s", applications + 1, expr, derived)
        result = self._resolve(derived, var, target, direction, applications + 1)
        if result is None:
            self.trace.add(f"L'Hôpital's rule did not settle the limit; return to {pretty(expr)}", detail=True)
        return result

    def _real_derivative(self, expr: sp.Expr, var: sp.Symbol) -> sp.Expr:
        # Limits are taken along the real line
        real = sp.Dummy(var.name, real=True)
        return sp.diff(expr.subs(var, real), real).subs(real, var)

    def _bracket(self, expr, var, target, direction) -> Optional[sp.Expr]:
        if expr.free_symbols - {var} or target.free_symbols:
            return None
        centre = evaluate_numeric(target)
        if not is_finite_real(centre):
            return None

        epsilon = self.config.limit_epsilon
        sides = {"+": (1,), "-": (-1,)}.get(direction, (-1, 1))
        samples = []
        for sign in sides:
            point = centre.real + sign * epsilon
            value = evaluate_numeric(expr, {var: sp.Float(point)})
            if not is_finite_real(value):
                return None
            samples.append(value.real)
            self.trace.add(f"f({point:.12g}) = {value.real:.10g}", detail=True)

        # Values this large near the target mean the function diverges
        ceiling = 1.0 / math.sqrt(epsilon)
        if all(abs(sample) > ceiling for sample in samples):
            if len({math.copysign(1.0, sample) for sample in samples}) > 1:
                self.trace.add("The one-sided limits diverge in opposite directions")
                return None
            result = sp.oo if samples[0] > 0 else -sp.oo
            self.trace.add(f"The function grows without bound near {pretty(target)}: {pretty(result)}")
            return result

        if len(samples) == 2 and abs(samples[0] - samples[1]) > self.config.limit_tolerance:
            self.trace.add(f"Left and right values differ ({samples[0]:.10g} vs {samples[1]:.10g})")
            return None
        result = snap_real(sum(samples) / len(samples), self.config.limit_tolerance)
        self.trace.add(f"Approach {pretty(target)} numerically: {pretty(result)}")
        return result

    def _leading_terms(self, expr, var, target) -> Optional[sp.Expr]:
        numerator, denominator = sp.fraction(sp.together(expr))
        top = poly_coeffs(numerator, var)
        bottom = poly_coeffs(denominator, var)
        if not top or not bottom:
            return None

        n, m = max(top), max(bottom)
        ratio = top[n] / bottom[m]
        self.trace.add(f"Compare leading terms: degree {n} over degree {m}")
        if n < m:
            result = sp.Integer(0)
        elif n == m:
            result = snap_real(ratio)
        else:
            sign = ratio if target == sp.oo else ratio * (-1) ** (n - m)
            result = sp.oo if sign > 0 else -sp.oo
        self.trace.add(f"lim = {pretty(result)}")
        return result


def eval_limit(
    expr: sp.Expr,
    var: Union[str, sp.Symbol],
    target: ExpressionInput,
    direction: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    trace: Optional[StepTrace] = None,
) -> sp.Expr:
    if direction not in DIRECTIONS:
        raise InvalidInputType(f"direction must be '+', '-' or None, got {direction!r}")
    tree = to_expression(expr)
    point = to_expression(target)
    if not isinstance(tree, sp.Expr) or not isinstance(point, sp.Expr):
        raise InvalidInputType("limits need an expression and a target value")
    symbol = resolve_variable(tree, var)
    return LimitEvaluator(config, trace).evaluate(tree, symbol, point, direction)


def lim(
    expr: ExpressionInput,
    variable: Union[str, sp.Symbol] = "x",
    target: ExpressionInput = "0",
    direction: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[sp.Expr, List[str]]:
    """Evaluate ``lim(variable -> target) expr``.

    ``direction`` is ``"+"`` (from the right), ``"-"`` (from the left) or
    ``None`` for a two-sided limit. Returns the value, or an unevaluated
    ``Limit`` when no method applies, together with the derivation steps.
    """
    trace = StepTrace()
    result = eval_limit(expr, variable, target, direction, config, trace)
    return result, trace.render()
