"""Closed-form solving of polynomial equations of degree 1 to 4.

An equation is reduced to ``left - right = 0``, its coefficients are read off
with :func:`poly_coeffs` and the highest populated degree picks the method:
the linear formula, the quadratic formula (with a ``y = x^2`` shortcut for
biquadratics), Cardano's method, or integer factoring followed by Ferrari's
method. Roots are collected as Python complex values and lifted back into
SymPy expressions for display.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import sympy as sp

from .config import EngineConfig, resolve_config
from .errors import InvalidInputType
from .expression import ExpressionInput, evaluate_numeric, pretty, resolve_variable, to_expression
from .roots import ONE_REAL, REPEATED, THREE_REAL, is_real, lift, quadratic_roots, solve_cubic, solve_quartic
from .steps import StepTrace

logger = logging.getLogger(__name__)

NO_SOLUTION = "No solution found"
NO_REAL_ROOTS = "No real roots"

TRIVIAL = "trivial"
SIMPLE = "simple"
GENERAL = "general"

FACTOR_SEARCH_RANGE = range(-10, 11)

CoefficientMap = Dict[int, float]


class Root(NamedTuple):
    value: complex
    exact: Optional[sp.Expr] = None

    @property
    def expr(self) -> sp.Expr:
        return self.exact if self.exact is not None else lift(self.value)


def poly_coeffs(expr: sp.Expr, var: sp.Symbol) -> Optional[CoefficientMap]:
    """Map each power of ``var`` in ``expr`` to its real coefficient.

    Missing keys mean a zero coefficient. Any term that is not a real number
    times a non-negative integer power of ``var`` makes the whole extraction
    fail with ``None``.
    """
    coeffs: CoefficientMap = {}
    for term in sp.Add.make_args(sp.expand(expr)):
        degree = 0
        coefficient = 1.0
        for factor in sp.Mul.make_args(term):
            if factor == var:
                degree += 1
            elif factor.is_Pow and factor.base == var and factor.exp.is_Integer and factor.exp >= 0:
                degree += int(factor.exp)
            elif factor.is_number and factor.is_real:
                coefficient *= float(factor)
            else:
                logger.debug("%s is not polynomial in %s (term %s)", expr, var, term)
                return None
        coeffs[degree] = coeffs.get(degree, 0.0) + coefficient

    scale = max([abs(c) for c in coeffs.values()] + [1.0])
    return {k: c for k, c in coeffs.items() if abs(c) > 1e-12 * scale}


def _as_integers(values: Sequence[float]) -> Optional[List[int]]:
    integers = []
    for value in values:
        nearest = round(value)
        if abs(value - nearest) > 1e-9:
            return None
        integers.append(int(nearest))
    return integers


def _format_decimal(value: float, precision: int) -> str:
    nearest = round(value)
    if abs(value - nearest) < 1e-9:
        return str(int(nearest))
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _format_complex(value: complex, precision: int) -> str:
    if is_real(value):
        return _format_decimal(value.real, precision)
    imaginary = _format_decimal(abs(value.imag), precision)
    imaginary = "i" if imaginary == "1" else imaginary + "i"
    if abs(value.real) < 1e-9:
        return imaginary if value.imag > 0 else "-" + imaginary
    sign = "+" if value.imag > 0 else "-"
    return f"{_format_decimal(value.real, precision)} {sign} {imaginary}"


def format_root(root: Root, precision: int) -> str:
    decimal = _format_complex(root.value, precision)
    if root.exact is None or root.exact.is_Rational:
        return pretty(root.exact) if root.exact is not None else decimal
    if root.exact.atoms(sp.Pow):
        return f"{pretty(root.exact)} ≈ {decimal}"
    return decimal


def group_roots(roots: Sequence[Root], tolerance: float = 1e-7) -> List[Tuple[Root, int]]:
    """Sort roots by real then imaginary part and merge repeated ones."""
    grouped: List[Tuple[Root, int]] = []
    for root in sorted(roots, key=lambda r: (round(r.value.real, 9), round(r.value.imag, 9))):
        if grouped:
            previous, count = grouped[-1]
            if abs(previous.value - root.value) <= tolerance * max(1.0, abs(root.value)):
                grouped[-1] = (previous, count + 1)
                continue
        grouped.append((root, 1))
    return grouped


def classify_complexity(coeffs: CoefficientMap, degree: int) -> str:
    """Score an equation as ``trivial``, ``simple`` or ``general``.

    The score starts at the degree, rises for non-integer or large
    coefficients and drops for a pure ``a x^n + c`` form.
    """
    if degree <= 1:
        return TRIVIAL
    score = degree
    values = list(coeffs.values())
    if _as_integers(values) is None:
        score += 2
    if values and max(abs(v) for v in values) > 100:
        score += 1
    if set(coeffs) <= {degree, 0}:
        score -= 2
    if score <= 1:
        return TRIVIAL
    if score <= 3:
        return SIMPLE
    return GENERAL


def filter_steps(trace: StepTrace, complexity: str, verbose: bool = False) -> List[str]:
    """Render a trace, leaving out bookkeeping steps for easy equations."""
    return trace.render(include_details=verbose or complexity == GENERAL)


def _poly_text(coeffs: Sequence[float], var: str) -> str:
    """``[1, -3, 2]`` -> ``x^2 - 3x + 2`` (highest degree first)."""
    degree = len(coeffs) - 1
    parts = []
    for index, coefficient in enumerate(coeffs):
        power = degree - index
        if abs(coefficient) < 1e-12:
            continue
        magnitude = _format_decimal(abs(coefficient), 6)
        if power > 0 and magnitude == "1":
            magnitude = ""
        body = magnitude + (var if power >= 1 else "") + (f"^{power}" if power > 1 else "")
        sign = "-" if coefficient < 0 else "+"
        parts.append((sign, body))
    if not parts:
        return "0"
    first_sign, first = parts[0]
    text = ("-" if first_sign == "-" else "") + first
    for sign, body in parts[1:]:
        text += f" {sign} {body}"
    return text


class EquationSolver:
    """Solves one equation; create a new solver per public call."""

    def __init__(self, config: Optional[EngineConfig] = None, trace: Optional[StepTrace] = None):
        self.config = resolve_config(config)
        self.trace = trace if trace is not None else StepTrace()
        self.variable: Optional[sp.Symbol] = None
        self.difference: Optional[sp.Expr] = None
        self.coeffs: CoefficientMap = {}
        self.degree: Optional[int] = None
        self.roots: List[Root] = []
        self.complexity = TRIVIAL

    def run(self, expr: ExpressionInput, variable: Union[str, sp.Symbol, None] = None) -> str:
        equation = self.canonicalize(expr)
        var = resolve_variable(equation, variable)
        self.variable = var
        self.trace.add(f"Solve {pretty(equation)} for {var}")

        difference = sp.simplify(equation.lhs - equation.rhs)
        self.difference = difference
        self.trace.add(f"Move everything to one side: {pretty(difference)} = 0", detail=True)

        numerator, denominator = sp.fraction(sp.together(difference))
        if denominator.has(var):
            self.trace.add(f"Multiply through by {pretty(denominator)}: {pretty(numerator)} = 0")

        coeffs = poly_coeffs(numerator, var)
        if coeffs is None:
            self.trace.add(f"{pretty(numerator)} is not a polynomial in {var}")
            logger.info("no polynomial form for %s in %s", numerator, var)
            return NO_SOLUTION
        self.coeffs = coeffs
        self.degree = max(coeffs) if coeffs else 0
        self.complexity = classify_complexity(coeffs, self.degree)
        self.trace.add(
            "Coefficients: " + ", ".join(f"{var}^{k}: {coeffs[k]:g}" for k in sorted(coeffs, reverse=True)),
            detail=True,
        )

        roots = self.solve_degree(coeffs, var)
        if roots is None:
            return NO_SOLUTION

        if denominator.has(var):
            roots = self._drop_poles(roots, denominator, var)
        visible = self.visible(roots)
        self.roots = visible
        if not visible:
            logger.info("no visible roots for %s", pretty(equation))
            return NO_SOLUTION if self.config.complex_mode else NO_REAL_ROOTS
        return self.format(visible, var)

    @staticmethod
    def canonicalize(expr: ExpressionInput) -> sp.Equality:
        tree = to_expression(expr)
        if isinstance(tree, sp.Equality):
            return tree
        if isinstance(tree, sp.Expr):
            return sp.Eq(tree, 0, evaluate=False)
        raise InvalidInputType(f"cannot solve {pretty(tree)}")

    def solve_degree(self, coeffs: CoefficientMap, var: sp.Symbol) -> Optional[List[Root]]:
        """Dispatch on the highest degree; ``None`` when nothing was attempted."""
        degree = max(coeffs) if coeffs else 0
        c = [coeffs.get(k, 0.0) for k in range(degree, -1, -1)]

        if degree == 0:
            if not coeffs:
                self.trace.add(f"The equation holds for every {var}")
            else:
                self.trace.add(f"{c[0]:g} = 0 is a contradiction")
            return None
        if degree == 1:
            return self._linear(c[0], c[1], var)
        if degree == 2:
            return self._quadratic(c[0], c[1], c[2], var)
        if degree == 3:
            return self._cubic(c[0], c[1], c[2], c[3], var)
        if degree == 4:
            return self._quartic(c[0], c[1], c[2], c[3], c[4], var)

        self.trace.add(f"Equations of degree {degree} are not supported")
        logger.info("degree %d equation not attempted", degree)
        return None

    def visible(self, roots: Sequence[Root]) -> List[Root]:
        if self.config.complex_mode:
            return list(roots)
        real_roots = [root for root in roots if is_real(root.value)]
        if len(real_roots) < len(roots):
            self.trace.add(f"Discard {len(roots) - len(real_roots)} complex root(s)", detail=True)
            real_roots = [Root(complex(root.value.real), root.exact) for root in real_roots]
        return real_roots

    def format(self, roots: Sequence[Root], var: sp.Symbol) -> str:
        parts = []
        for root, multiplicity in group_roots(roots):
            text = f"{var} = {format_root(root, self.config.precision)}"
            if multiplicity > 1:
                text += f" (multiplicity {multiplicity})"
            parts.append(text)
        return ", ".join(parts)

    def _drop_poles(self, roots: List[Root], denominator: sp.Expr, var: sp.Symbol) -> List[Root]:
        kept = []
        for root in roots:
            value = evaluate_numeric(denominator, {var: root.expr})
            if abs(value) < 1e-9:
                self.trace.add(f"Reject {var} = {pretty(root.expr)}: the denominator vanishes there")
                continue
            kept.append(root)
        return kept

    # ------------------------------------------------------------------
    # Degree-specific methods
    # ------------------------------------------------------------------

    def _linear(self, a: float, b: float, var: sp.Symbol) -> List[Root]:
        integers = _as_integers([a, b])
        exact = sp.Rational(-integers[1], integers[0]) if integers else None
        value = complex(-b / a)
        shown = pretty(exact) if exact is not None else _format_decimal(value.real, self.config.precision)
        self.trace.add(f"Linear equation: {var} = -({b:g})/({a:g}) = {shown}")
        return [Root(value, exact)]

    def _quadratic(self, a: float, b: float, c: float, var: sp.Symbol, allow_complex: bool = False) -> List[Root]:
        discriminant = b * b - 4 * a * c
        self.trace.add(f"Quadratic {_poly_text([a, b, c], str(var))} = 0: Δ = b^2 - 4ac = {discriminant:g}")
        if discriminant < 0 and not (self.config.complex_mode or allow_complex):
            self.trace.add("Δ < 0: no real roots")
            return []

        integers = _as_integers([a, b, c])
        if integers is not None:
            ia, ib, ic = integers
            root = sp.sqrt(sp.Integer(ib * ib - 4 * ia * ic))
            exacts = [(-ib + root) / (2 * ia), (-ib - root) / (2 * ia)]
            roots = [Root(complex(sp.N(e)), e) for e in exacts]
        else:
            roots = [Root(value) for value in quadratic_roots(a, b, c)]

        if abs(discriminant) <= 1e-12 * max(1.0, b * b):
            self.trace.add(f"Δ = 0: one repeated root {var} = -b/(2a)")
        self.trace.add(
            f"{var} = (-b ± √Δ)/(2a): " + ", ".join(format_root(r, self.config.precision) for r in roots)
        )
        return roots

    def _cubic(self, a: float, b: float, c: float, d: float, var: sp.Symbol) -> List[Root]:
        solution = solve_cubic(a, b, c, d)
        self.trace.add(
            f"Cubic {_poly_text([a, b, c, d], str(var))} = 0: substitute {var} = t - {solution.shift:g} "
            f"to get t^3 + ({solution.p:g})t + ({solution.q:g}) = 0"
        )
        self.trace.add(f"(q/2)^2 + (p/3)^3 = {solution.discriminant:g}", detail=True)
        if solution.regime == ONE_REAL:
            self.trace.add("Positive discriminant: Cardano's formula gives one real root and a complex-conjugate pair")
        elif solution.regime == REPEATED:
            self.trace.add("Zero discriminant: the cubic has a repeated root")
        elif solution.regime == THREE_REAL:
            self.trace.add("Negative discriminant (casus irreducibilis): trigonometric form gives three real roots")
        roots = [Root(value) for value in solution.roots]
        self.trace.add("Roots: " + ", ".join(format_root(r, self.config.precision) for r in roots))
        return roots

    def _quartic(self, a: float, b: float, c: float, d: float, e: float, var: sp.Symbol) -> List[Root]:
        if abs(b) < 1e-12 and abs(d) < 1e-12:
            return self._biquadratic(a, c, e, var)

        factors = self._factor_quartic(a, b, c, d, e)
        if factors is not None:
            (p, q), (r, s) = factors
            name = str(var)
            self.trace.add(f"Factor as ({_poly_text([1, p, q], name)})({_poly_text([1, r, s], name)})")
            return self._quadratic(1, p, q, var) + self._quadratic(1, r, s, var)
        self.trace.add("No factorization into integer quadratics found", detail=True)
        return self._ferrari(a, b, c, d, e, var)

    def _biquadratic(self, a: float, c: float, e: float, var: sp.Symbol) -> List[Root]:
        self.trace.add(f"Biquadratic: substitute y = {var}^2 and solve {_poly_text([a, c, e], 'y')} = 0")
        roots = []
        for square in self._quadratic(a, c, e, sp.Symbol("y"), allow_complex=True):
            if not self.config.complex_mode and not (is_real(square.value) and square.value.real >= -1e-12):
                self.trace.add(f"y = {format_root(square, self.config.precision)} has no real square root", detail=True)
                continue
            value = complex(square.value.real) if is_real(square.value) else square.value
            positive = value ** 0.5
            exact = sp.sqrt(square.exact) if square.exact is not None else None
            roots.append(Root(positive, exact))
            roots.append(Root(-positive, -exact if exact is not None else None))
        if roots:
            self.trace.add(f"{var} = ±√y: " + ", ".join(format_root(r, self.config.precision) for r in roots))
        return roots

    def _factor_quartic(self, a, b, c, d, e) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
        """Search ``(x^2 + px + q)(x^2 + rx + s)`` over small integers."""
        integers = _as_integers([a, b, c, d, e])
        if integers is None:
            return None
        ia = integers[0]
        if any(k % ia for k in integers[1:]):
            return None
        _, nb, nc, nd, ne = (k // ia for k in integers)

        for p in FACTOR_SEARCH_RANGE:
            for r in FACTOR_SEARCH_RANGE:
                if p + r != nb:
                    continue
                for q in FACTOR_SEARCH_RANGE:
                    for s in FACTOR_SEARCH_RANGE:
                        if q + s + p * r == nc and p * s + q * r == nd and q * s == ne:
                            logger.debug("quartic factors p=%d q=%d r=%d s=%d", p, q, r, s)
                            return (p, q), (r, s)
        return None

    def _ferrari(self, a: float, b: float, c: float, d: float, e: float, var: sp.Symbol) -> List[Root]:
        solution = solve_quartic(a, b, c, d, e)
        self.trace.add(
            f"Ferrari's method: substitute {var} = y - {solution.shift:g} to get "
            f"y^4 + ({solution.p:g})y^2 + ({solution.q:g})y + ({solution.r:g}) = 0"
        )
        self.trace.add(f"Resolvent cubic: {_poly_text(list(solution.resolvent), 'z')} = 0")
        self.trace.add(f"Resolvent root z = {_format_complex(solution.resolvent_root, self.config.precision)}", detail=True)
        self.trace.add("Complete the square and split into two quadratics in y")
        roots = [Root(value) for value in solution.roots]
        self.trace.add("Roots: " + ", ".join(format_root(r, self.config.precision) for r in roots))
        return roots


# ----------------------------------------------------------------------
# Public entry points
# ----------------------------------------------------------------------


def solve(
    expr: ExpressionInput,
    variable: Union[str, sp.Symbol, None] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[str, List[str]]:
    """Solve a polynomial equation of degree 1-4.

    Returns the roots as text (``"x = -2, x = 2"``) or one of
    ``NO_SOLUTION`` / ``NO_REAL_ROOTS``, plus the filtered derivation steps.
    """
    solver = EquationSolver(config)
    result = solver.run(expr, variable)
    steps = filter_steps(solver.trace, solver.complexity, solver.config.verbose_steps)
    return result, steps


def _match(expr, variable, config, degrees) -> Optional[List[sp.Expr]]:
    solver = EquationSolver(config)
    equation = solver.canonicalize(expr)
    var = resolve_variable(equation, variable)
    coeffs = poly_coeffs(equation.lhs - equation.rhs, var)
    if not coeffs or max(coeffs) not in degrees:
        return None
    if max(coeffs) == 4 and (coeffs.get(3) or coeffs.get(1)) and 2 in degrees:
        return None
    roots = solver.solve_degree(coeffs, var)
    return [root.expr for root in solver.visible(roots or [])]


def match_linear_eq(expr, variable=None, config=None) -> Optional[List[sp.Expr]]:
    return _match(expr, variable, config, (1,))


def match_quadratic_eq(expr, variable=None, config=None) -> Optional[List[sp.Expr]]:
    """Quadratics and biquadratics ``a x^4 + c x^2 + e``."""
    return _match(expr, variable, config, (2, 4))


def match_cubic_eq(expr, variable=None, config=None) -> Optional[List[sp.Expr]]:
    return _match(expr, variable, config, (3,))


def match_quartic_eq(expr, variable=None, config=None) -> Optional[List[sp.Expr]]:
    return _match(expr, variable, config, (4,))
