"""Rule-based symbolic integration with a derivation trace.

The engine tries a fixed cascade of rules on the shape of the integrand:
linear rules, quotients (``f'/f`` and two-factor partial fractions),
products (u-substitution, trigonometric-substitution detection, integration
by parts, chain-rule patterns, constant factors), powers and a table of
elementary functions. When no rule closes the integral the result is a
diagnostic expression, never an exception.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import sympy as sp

from .config import EngineConfig, resolve_config
from .errors import DefiniteBoundsIndeterminate, InvalidInputType, RecursionDepthExceeded
from .expression import (
    CONSTANT_OF_INTEGRATION,
    AdvancedSubstitutionFound,
    Bounds,
    ExpressionInput,
    ImproperIntegral,
    NumericalApproximation,
    PartialFractionSum,
    UnimplementedIntegral,
    evaluate_numeric,
    is_finite_real,
    is_infinite,
    is_unresolved,
    pretty,
    resolve_variable,
    snap_real,
    to_expression,
)
from .steps import StepTrace

logger = logging.getLogger(__name__)

_INVERSE_TRIG = (sp.asin, sp.acos, sp.atan, sp.acot, sp.asec, sp.acsc, sp.asinh, sp.acosh, sp.atanh)
_TRIG = (sp.sin, sp.cos, sp.tan, sp.cot, sp.sec, sp.csc)

# Antiderivatives with respect to the function's own argument
_FUNCTION_TABLE = {
    sp.sin: lambda a: -sp.cos(a),
    sp.cos: lambda a: sp.sin(a),
    sp.tan: lambda a: -sp.log(sp.Abs(sp.cos(a))),
    sp.cot: lambda a: sp.log(sp.Abs(sp.sin(a))),
    sp.sec: lambda a: sp.log(sp.Abs(sp.sec(a) + sp.tan(a))),
    sp.csc: lambda a: -sp.log(sp.Abs(sp.csc(a) + sp.cot(a))),
    sp.asin: lambda a: a * sp.asin(a) + sp.sqrt(1 - a ** 2),
    sp.acos: lambda a: a * sp.acos(a) - sp.sqrt(1 - a ** 2),
    sp.atan: lambda a: a * sp.atan(a) - sp.log(1 + a ** 2) / 2,
    sp.sinh: lambda a: sp.cosh(a),
    sp.cosh: lambda a: sp.sinh(a),
    sp.tanh: lambda a: sp.log(sp.cosh(a)),
    sp.exp: lambda a: sp.exp(a),
    sp.log: lambda a: a * sp.log(a) - a,
}

_SUBSTITUTION_NAMES = ("u", "w", "v", "t", "s")


class IntegrationEngine:
    """Integrates one expression; create a new engine per public call."""

    def __init__(self, config: Optional[EngineConfig] = None, trace: Optional[StepTrace] = None):
        self.config = resolve_config(config)
        self.trace = trace if trace is not None else StepTrace()

    def run(self, expr: sp.Expr, var: sp.Symbol, bounds: Optional[Bounds] = None) -> sp.Expr:
        self.trace.add(f"Identify the integrand: f({var}) = {pretty(expr)}")

        if bounds is not None and (is_infinite(bounds.lower) or is_infinite(bounds.upper)):
            self.trace.add("A bound is infinite: the integral is improper and is left unevaluated")
            logger.info("improper integral of %s over [%s, %s]", expr, bounds.lower, bounds.upper)
            return ImproperIntegral(sp.Integral(expr, (var, bounds.lower, bounds.upper)))

        antiderivative = self._integrate(expr, var, 0)

        if is_unresolved(antiderivative):
            if bounds is not None:
                self.trace.add("No closed form: the definite integral needs a numerical approximation")
                logger.info("definite integral of %s degraded to a numerical approximation", expr)
                return NumericalApproximation(sp.Integral(expr, (var, bounds.lower, bounds.upper)))
            if isinstance(antiderivative, AdvancedSubstitutionFound):
                return antiderivative
            logger.info("no closed form for the integral of %s", expr)
            return UnimplementedIntegral(sp.Integral(expr, var))

        if bounds is None:
            self.trace.add("Add the constant of integration, C.")
            return antiderivative + CONSTANT_OF_INTEGRATION
        return self._evaluate_bounds(antiderivative, var, bounds)

    def integrate_successively(self, expr: sp.Expr, variables: Sequence[sp.Symbol]) -> sp.Expr:
        self.trace.add(f"Identify the integrand: {pretty(expr)}")
        result = expr
        for var in variables:
            self.trace.add(f"Integrate with respect to {var}")
            result = self._integrate(result, var, 0)
            if is_unresolved(result):
                self.trace.add(f"Iterated integration stopped at {var}")
                return UnimplementedIntegral(sp.Integral(expr, *variables))
        self.trace.add("Add the constant of integration, C.")
        return result + CONSTANT_OF_INTEGRATION

    # ------------------------------------------------------------------
    # Rule cascade
    # ------------------------------------------------------------------

    def _integrate(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> sp.Expr:
        limit = self.config.max_integration_depth
        if depth > limit:
            raise RecursionDepthExceeded(f"integration recursed past {limit} levels at ∫ {pretty(expr)} d{var}")
        logger.debug("depth %d: integrate %s d%s", depth, expr, var)

        if not expr.has(var):
            result = expr * var
            self.trace.add(f"Constant rule: ∫ {pretty(expr)} d{var} = {pretty(result)}")
            return result

        if expr == var:
            result = var ** 2 / 2
            self.trace.add(f"Power rule: ∫ {var} d{var} = {pretty(result)}")
            return result

        if expr.is_Add:
            return self._integrate_sum(expr, var, depth)

        quotient = self._split_quotient(expr, var)
        if quotient is not None:
            result = self._integrate_quotient(quotient[0], quotient[1], var, depth)
            if result is not None:
                return result

        if expr.is_Mul:
            result = self._integrate_product(expr, var, depth)
            if result is not None:
                return result

        if expr.is_Pow:
            result = self._integrate_power(expr, var, depth)
            if result is not None:
                return result

        if expr.is_Function:
            result = self._integrate_function(expr, var)
            if result is not None:
                return result

        return self._unresolved(expr, var)

    def _integrate_sum(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> sp.Expr:
        self.trace.add(f"Sum rule: integrate the {len(expr.args)} terms of {pretty(expr)} separately")
        parts = []
        for term in expr.args:
            part = self._integrate(term, var, depth + 1)
            if is_unresolved(part):
                return self._unresolved(expr, var)
            parts.append(part)
        return sp.Add(*parts)

    def _split_quotient(self, expr: sp.Expr, var: sp.Symbol) -> Optional[Tuple[sp.Expr, sp.Expr]]:
        if not (expr.is_Mul or expr.is_Pow):
            return None
        numerator, denominator = sp.fraction(expr)
        if denominator == 1 or not denominator.has(var):
            return None
        return numerator, denominator

    def _integrate_quotient(self, numerator, denominator, var, depth) -> Optional[sp.Expr]:
        derivative = sp.diff(denominator, var)
        if derivative != 0:
            ratio = sp.simplify(numerator / derivative)
            if not ratio.has(var):
                result = ratio * sp.log(sp.Abs(denominator))
                self.trace.add(
                    f"The numerator is {pretty(ratio)} times the derivative of the denominator: "
                    f"∫ f'/f d{var} = ln|f|, giving {pretty(result)}"
                )
                return result

        if numerator.is_polynomial(var) and denominator.is_polynomial(var):
            result = self._partial_fractions(numerator, denominator, var, depth)
            if result is not None:
                return result

        self.trace.add(f"Treat {pretty(numerator)}/{pretty(denominator)} as a product with a negative power", detail=True)
        return None

    def _partial_fractions(self, numerator, denominator, var, depth) -> Optional[sp.Expr]:
        factored = sp.factor(denominator)
        scale = sp.Integer(1)
        roots = []
        for factor in sp.Mul.make_args(factored):
            if not factor.has(var):
                scale *= factor
                continue
            if not factor.is_polynomial(var) or sp.degree(factor, var) != 1:
                return None
            slope, offset = sp.Poly(factor, var).all_coeffs()
            root = -offset / slope
            if not root.is_integer:
                return None
            scale *= slope
            roots.append(root)

        # Repeated or irreducible factors fall through to the product rules
        if len(roots) != 2 or roots[0] == roots[1] or sp.degree(numerator, var) >= 2:
            return None

        first, second = roots
        terms = [
            numerator.subs(var, first) / (scale * (first - second)) / (var - first),
            numerator.subs(var, second) / (scale * (second - first)) / (var - second),
        ]
        self.trace.add(
            f"Partial fractions: {pretty(numerator)}/({pretty(factored)}) = {pretty(PartialFractionSum(*terms))}"
        )
        parts = []
        for term in terms:
            part = self._integrate(term, var, depth + 1)
            if is_unresolved(part):
                return None
            parts.append(part)
        return sp.Add(*parts)

    def _integrate_product(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> Optional[sp.Expr]:
        if expr.is_polynomial(var):
            expanded = sp.expand(expr)
            if expanded.is_Add:
                self.trace.add(f"Expand the polynomial: {pretty(expr)} = {pretty(expanded)}")
                return self._integrate(expanded, var, depth + 1)

        result = self._try_substitution(expr, var, depth)
        if result is not None:
            return result

        detected = self._detect_trig_substitution(expr, var)
        if detected is not None:
            return detected

        result = self._try_by_parts(expr, var, depth)
        if result is not None:
            return result

        result = self._try_exponential_chain(expr, var)
        if result is not None:
            return result

        result = self._try_power_chain(expr, var)
        if result is not None:
            return result

        coefficient, dependent = expr.as_independent(var, as_Add=False)
        if coefficient != 1:
            self.trace.add(f"Constant multiple: ∫ {pretty(expr)} d{var} = {pretty(coefficient)} · ∫ {pretty(dependent)} d{var}")
            inner = self._integrate(dependent, var, depth + 1)
            if not is_unresolved(inner):
                return coefficient * inner
        return None

    def _substitution_candidates(self, expr: sp.Expr, var: sp.Symbol) -> List[sp.Expr]:
        """Inner expressions whose derivative might appear as a co-factor."""
        candidates = []
        factors = sp.Mul.make_args(expr)
        for arg in factors:
            if arg.is_Pow:
                if arg.base.has(var) and arg.base != var:
                    candidates.append(arg.base)
                if arg.exp.has(var) and arg.exp != var:
                    candidates.append(arg.exp)
            elif arg.is_Function and arg.args:
                inner = arg.args[0]
                if inner.has(var) and inner != var:
                    candidates.append(inner)
        for arg in factors:
            if arg.has(var) and arg != var:
                candidates.append(arg)

        unique = []
        for candidate in candidates:
            if candidate not in unique:
                unique.append(candidate)
        return unique

    def _fresh_symbol(self, expr: sp.Expr) -> sp.Symbol:
        taken = {s.name for s in expr.free_symbols}
        for name in _SUBSTITUTION_NAMES:
            if name not in taken:
                return sp.Symbol(name)
        return sp.Dummy("u")

    def _try_substitution(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> Optional[sp.Expr]:
        u = self._fresh_symbol(expr)
        for u_expr in self._substitution_candidates(expr, var):
            du_expr = sp.diff(u_expr, var)
            if du_expr == 0:
                continue

            u_integrand = expr.subs(u_expr, u) / du_expr
            if u_integrand.has(var):
                u_integrand = sp.simplify(u_integrand)
            if u_integrand.has(var):
                continue

            self.trace.add(f"Substitute {u} = {pretty(u_expr)}, d{u} = {pretty(du_expr)} d{var}")
            self.trace.add(f"Rewrite as ∫ {pretty(u_integrand)} d{u}")
            antiderivative_u = self._integrate(u_integrand, u, depth + 1)
            if is_unresolved(antiderivative_u):
                self.trace.add(f"The substitution {u} = {pretty(u_expr)} does not close", detail=True)
                continue
            antiderivative = antiderivative_u.subs(u, u_expr)
            self.trace.add(f"Substitute {pretty(u_expr)} back in for {u}: {pretty(antiderivative)}")
            return antiderivative
        return None

    def _detect_trig_substitution(self, expr: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        for factor in sp.Mul.make_args(expr):
            if not (factor.is_Pow and factor.exp in (sp.S.Half, -sp.S.Half)):
                continue
            base = factor.base
            if not base.is_polynomial(var) or sp.degree(base, var) != 2:
                continue
            square, linear, constant = sp.Poly(base, var).all_coeffs()
            if linear != 0 or not (square.is_number and constant.is_number):
                continue
            if square.is_negative and constant.is_positive:
                method = f"{var} = a*sin(theta)"
            elif square.is_positive and constant.is_positive:
                method = f"{var} = a*tan(theta)"
            elif square.is_positive and constant.is_negative:
                method = f"{var} = a*sec(theta)"
            else:
                continue
            self.trace.add(f"√({pretty(base)}) calls for the trigonometric substitution {method}; not carried out")
            logger.info("trigonometric substitution %s detected in %s", method, expr)
            return AdvancedSubstitutionFound(sp.Integral(expr, var), sp.Symbol(method))
        return None

    def _liate_priority(self, factor: sp.Expr, var: sp.Symbol) -> int:
        if isinstance(factor, sp.log):
            return 1
        if isinstance(factor, _INVERSE_TRIG):
            return 2
        if factor.is_polynomial(var) or (factor.is_Pow and not factor.exp.has(var)):
            return 3
        if isinstance(factor, _TRIG):
            return 4
        if isinstance(factor, sp.exp) or (factor.is_Pow and not factor.base.has(var)):
            return 5
        return 6

    def _try_by_parts(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> Optional[sp.Expr]:
        factors = [factor for factor in sp.Mul.make_args(expr) if factor.has(var)]
        if len(factors) < 2:
            return None

        u_part = min(factors, key=lambda factor: self._liate_priority(factor, var))
        dv_part = expr / u_part
        self.trace.add(f"Integrate by parts (LIATE): u = {pretty(u_part)}, dv = {pretty(dv_part)} d{var}")

        v_part = self._integrate(dv_part, var, depth + 1)
        if is_unresolved(v_part):
            self.trace.add("Integration by parts abandoned: dv has no closed form", detail=True)
            return None
        du_part = sp.diff(u_part, var)
        self.trace.add(f"v = {pretty(v_part)}, du = {pretty(du_part)} d{var}")

        remaining = self._integrate(v_part * du_part, var, depth + 1)
        if is_unresolved(remaining):
            self.trace.add("Integration by parts abandoned: ∫ v du has no closed form", detail=True)
            return None
        result = u_part * v_part - remaining
        self.trace.add(f"∫ u dv = u·v - ∫ v du = {pretty(result)}")
        return result

    def _try_exponential_chain(self, expr: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        for factor in sp.Mul.make_args(expr):
            if not isinstance(factor, sp.exp):
                continue
            inner = factor.args[0]
            derivative = sp.diff(inner, var)
            if derivative == 0:
                continue
            ratio = sp.simplify(expr / factor / derivative)
            if not ratio.has(var):
                result = ratio * factor
                self.trace.add(f"Exponential chain rule: ∫ f'·e^f d{var} = e^f, giving {pretty(result)}")
                return result
        return None

    def _try_power_chain(self, expr: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        for factor in sp.Mul.make_args(expr):
            if not factor.is_Pow or factor.exp.has(var) or factor.base == var or not factor.base.has(var):
                continue
            base, exponent = factor.base, factor.exp
            derivative = sp.diff(base, var)
            ratio = sp.simplify(expr / factor / derivative)
            if ratio.has(var):
                continue
            if exponent == -1:
                result = ratio * sp.log(sp.Abs(base))
            else:
                result = ratio * base ** (exponent + 1) / (exponent + 1)
            self.trace.add(f"Power chain rule: ∫ f^n·f' d{var} = f^(n+1)/(n+1), giving {pretty(result)}")
            return result
        return None

    def _linear_slope(self, expr: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        slope = sp.diff(expr, var)
        if slope == 0 or slope.has(var):
            return None
        return slope

    def _integrate_power(self, expr: sp.Expr, var: sp.Symbol, depth: int) -> Optional[sp.Expr]:
        base, exponent = expr.base, expr.exp

        if base == var and not exponent.has(var):
            if exponent == -1:
                result = sp.log(sp.Abs(var))
                self.trace.add(f"∫ {var}^-1 d{var} = {pretty(result)}")
            else:
                result = var ** (exponent + 1) / (exponent + 1)
                self.trace.add(f"Power rule: ∫ {pretty(expr)} d{var} = {pretty(result)}")
            return result

        if not base.has(var):
            slope = self._linear_slope(exponent, var)
            if slope is None:
                return None
            result = expr / (slope * sp.log(base))
            self.trace.add(f"Exponential rule: ∫ a^{var} d{var} = a^{var}/ln(a), giving {pretty(result)}")
            return result

        if exponent.has(var):
            return None

        result = self._standard_form(base, exponent, var)
        if result is not None:
            return result

        slope = self._linear_slope(base, var)
        if slope is not None:
            if exponent == -1:
                result = sp.log(sp.Abs(base)) / slope
            else:
                result = base ** (exponent + 1) / (slope * (exponent + 1))
            self.trace.add(f"Power rule with a linear inner term: ∫ {pretty(expr)} d{var} = {pretty(result)}")
            return result

        return self._detect_trig_substitution(expr, var)

    def _standard_form(self, base: sp.Expr, exponent: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        """``1/(x^2 + k)`` and ``1/sqrt(k - x^2)`` for a positive number ``k``."""
        if exponent not in (-1, -sp.S.Half):
            return None
        if not base.is_polynomial(var) or sp.degree(base, var) != 2:
            return None
        square, linear, constant = sp.Poly(base, var).all_coeffs()
        if linear != 0 or not constant.is_number:
            return None

        if exponent == -1 and square == 1 and constant.is_positive:
            root = sp.sqrt(constant)
            result = sp.atan(var / root) / root
        elif exponent == -sp.S.Half and square == -1 and constant.is_positive:
            result = sp.asin(var / sp.sqrt(constant))
        else:
            return None
        self.trace.add(f"Standard form: ∫ {pretty(base ** exponent)} d{var} = {pretty(result)}")
        return result

    def _integrate_function(self, expr: sp.Expr, var: sp.Symbol) -> Optional[sp.Expr]:
        rule = _FUNCTION_TABLE.get(type(expr))
        if rule is None or len(expr.args) != 1:
            return None
        arg = expr.args[0]
        slope = sp.Integer(1) if arg == var else self._linear_slope(arg, var)
        if slope is None:
            self.trace.add(f"{pretty(expr)} needs the chain rule through {pretty(arg)}; left unresolved")
            return None
        result = rule(arg) / slope
        self.trace.add(f"Table integral: ∫ {pretty(expr)} d{var} = {pretty(result)}")
        return result

    def _unresolved(self, expr: sp.Expr, var: sp.Symbol) -> sp.Expr:
        self.trace.add(f"No rule applies to ∫ {pretty(expr)} d{var}")
        logger.debug("unresolved integrand %s", expr)
        return UnimplementedIntegral(sp.Integral(expr, var))

    # ------------------------------------------------------------------
    # Definite integrals
    # ------------------------------------------------------------------

    def _evaluate_bounds(self, antiderivative: sp.Expr, var: sp.Symbol, bounds: Bounds) -> sp.Expr:
        self.trace.add(f"Antiderivative F({var}) = {pretty(antiderivative)}")
        values = []
        for label, bound in (("upper", bounds.upper), ("lower", bounds.lower)):
            at_bound = antiderivative.subs(var, bound)
            value = evaluate_numeric(at_bound)
            if not is_finite_real(value):
                raise DefiniteBoundsIndeterminate(
                    f"F({pretty(bound)}) = {pretty(at_bound)} is not a finite real number at the {label} bound"
                )
            self.trace.add(f"F({pretty(bound)}) = {value.real:.10g}")
            values.append(value.real)
        result = snap_real(values[0] - values[1])
        self.trace.add(f"F({pretty(bounds.upper)}) - F({pretty(bounds.lower)}) = {pretty(result)}")
        return result


# ----------------------------------------------------------------------
# Public entry points
# ----------------------------------------------------------------------

BoundsInput = Union[Bounds, Tuple[ExpressionInput, ExpressionInput], List[ExpressionInput]]


def _coerce_bounds(bounds: Optional[BoundsInput]) -> Optional[Bounds]:
    if bounds is None:
        return None
    if not isinstance(bounds, (tuple, list)) or len(bounds) != 2:
        raise InvalidInputType("bounds must be a (lower, upper) pair")
    lower, upper = (to_expression(bound) for bound in bounds)
    return Bounds(lower, upper)


def integral(
    expr: ExpressionInput,
    variable: Union[str, sp.Symbol, None] = None,
    bounds: Optional[BoundsInput] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[sp.Expr, List[str]]:
    """Integrate ``expr``; returns the result and its derivation steps.

    An ``Integral`` input supplies its own variable and bounds. Integrands
    without a closed form come back as ``UnimplementedIntegral`` (or
    ``NumericalApproximation`` when bounds are given).
    """
    tree = to_expression(expr)
    if isinstance(tree, sp.Integral):
        if len(tree.limits) != 1:
            raise InvalidInputType("integrals over several variables go through integrate_multivariable")
        limits = tree.limits[0]
        var = limits[0]
        if len(limits) == 3:
            bounds = Bounds(limits[1], limits[2])
        tree = tree.function
    elif isinstance(tree, sp.Expr):
        var = resolve_variable(tree, variable)
    else:
        raise InvalidInputType(f"cannot integrate {pretty(tree)}")

    engine = IntegrationEngine(config)
    result = engine.run(tree, var, _coerce_bounds(bounds))
    return result, engine.trace.render()


integrate = integral


def definite_integral(
    expr: ExpressionInput,
    variable: Union[str, sp.Symbol, None],
    lower: ExpressionInput,
    upper: ExpressionInput,
    config: Optional[EngineConfig] = None,
) -> Tuple[sp.Expr, List[str]]:
    return integral(expr, variable, (lower, upper), config)


def indefinite_integral(
    expr: ExpressionInput,
    variable: Union[str, sp.Symbol, None] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[sp.Expr, List[str]]:
    return integral(expr, variable, None, config)


def integrate_multivariable(
    expr: ExpressionInput,
    variables: Sequence[Union[str, sp.Symbol]],
    config: Optional[EngineConfig] = None,
) -> Tuple[sp.Expr, List[str]]:
    """Integrate successively over ``variables``, innermost first."""
    if isinstance(variables, str) or not variables:
        raise InvalidInputType("iterated integration needs a non-empty list of variables")
    tree = to_expression(expr)
    if not isinstance(tree, sp.Expr) or isinstance(tree, sp.Integral):
        raise InvalidInputType(f"cannot integrate {pretty(tree)}")
    symbols = [resolve_variable(tree, name) for name in variables]

    engine = IntegrationEngine(config)
    result = engine.integrate_successively(tree, symbols)
    return result, engine.trace.render()
