"""Expression layer shared by the integration, solving and limit engines.

SymPy supplies the expression tree, the differentiator and the simplifier.
This module adds what the calculator needs on top of it: a forgiving text
parser, the diagnostic result types, a printer that reads like calculator
output and numeric evaluation that reports free symbols instead of guessing.
"""

import logging
import math
from tokenize import TokenError
from typing import NamedTuple, Optional, Union

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)
from sympy.printing.str import StrPrinter

from .errors import InvalidInputType, ParseFailure, UnboundVariableEvaluation

logger = logging.getLogger(__name__)

TRANSFORMATIONS = standard_transformations + (implicit_multiplication_application, convert_xor)

# Calculator spellings that differ from SymPy's names
LOCAL_NAMES = {
    "e": sp.E,
    "i": sp.I,
    "ln": sp.log,
    "arcsin": sp.asin,
    "arccos": sp.acos,
    "arctan": sp.atan,
    "inf": sp.oo,
    "infinity": sp.oo,
}

CONSTANT_OF_INTEGRATION = sp.Symbol("C")

ExpressionInput = Union[str, int, float, sp.Basic]


class UnimplementedIntegral(sp.Function):
    """An integral the rule cascade could not resolve, kept unevaluated."""

    nargs = 1


class NumericalApproximation(sp.Function):
    """A definite integral that needs quadrature; no value is computed."""

    nargs = 1


class ImproperIntegral(sp.Function):
    """A definite integral with an infinite bound, left unevaluated."""

    nargs = 1


class AdvancedSubstitutionFound(sp.Function):
    """A trigonometric substitution was recognized but not carried out."""

    nargs = 2


class PartialFractionSum(sp.Function):
    """The terms of a two-factor partial fraction decomposition."""


UNRESOLVED_TYPES = (UnimplementedIntegral, NumericalApproximation, ImproperIntegral, AdvancedSubstitutionFound)


class Bounds(NamedTuple):
    lower: sp.Expr
    upper: sp.Expr


def is_unresolved(expr: sp.Basic) -> bool:
    """True when an integration result is a diagnostic rather than a closed form."""
    return isinstance(expr, UNRESOLVED_TYPES)


class CalculatorPrinter(StrPrinter):
    """String printer using calculator notation (ln, |x|, i, e)."""

    def _print_ImaginaryUnit(self, expr):
        return "i"

    def _print_Exp1(self, expr):
        return "e"

    def _print_Float(self, expr):
        return "%.10g" % float(expr)

    def _print_log(self, expr):
        return "ln(%s)" % self._print(expr.args[0])

    def _print_Abs(self, expr):
        return "|%s|" % self._print(expr.args[0])

    def _print_Equality(self, expr):
        return "%s = %s" % (self._print(expr.lhs), self._print(expr.rhs))

    def _print_Limit(self, expr):
        body, var, target, direction = expr.args
        side = "" if str(direction) == "+-" or is_infinite(target) else str(direction)
        return "lim(%s -> %s%s) %s" % (self._print(var), self._print(target), side, self._print(body))

    def _print_UnimplementedIntegral(self, expr):
        integral = expr.args[0]
        return "∫(%s) d%s" % (self._print(integral.function), self._print(integral.limits[0][0]))

    def _print_NumericalApproximation(self, expr):
        return "≈" + self._print_bounded(expr.args[0])

    def _print_ImproperIntegral(self, expr):
        return self._print_bounded(expr.args[0]) + " (improper)"

    def _print_AdvancedSubstitutionFound(self, expr):
        integral, method = expr.args
        return "∫(%s) d%s [%s substitution]" % (
            self._print(integral.function),
            self._print(integral.limits[0][0]),
            method.name,
        )

    def _print_PartialFractionSum(self, expr):
        return " + ".join(self._print(term) for term in expr.args)

    def _print_bounded(self, integral):
        var, lower, upper = integral.limits[0]
        return "∫[%s, %s] (%s) d%s" % (
            self._print(lower),
            self._print(upper),
            self._print(integral.function),
            self._print(var),
        )


_PRINTER = CalculatorPrinter()


def pretty(expr) -> str:
    """Render an expression the way the calculator displays it."""
    if not isinstance(expr, sp.Basic):
        return str(expr)
    return _PRINTER.doprint(expr).replace("**", "^")


def parse(text: str) -> sp.Basic:
    """Parse calculator input into an expression, or ``Eq`` for ``lhs = rhs``."""
    if not isinstance(text, str):
        raise InvalidInputType(f"expected text to parse, got {type(text).__name__}")
    source = text.strip()
    if not source:
        raise ParseFailure("empty input")

    sides = source.split("=")
    if len(sides) > 2:
        raise ParseFailure(f"more than one '=' in {source!r}")
    if len(sides) == 2:
        left, right = (_parse_side(side, source) for side in sides)
        return sp.Eq(left, right, evaluate=False)
    return _parse_side(source, source)


def _parse_side(fragment: str, source: str) -> sp.Expr:
    if not fragment.strip():
        raise ParseFailure(f"missing side of the equation in {source!r}")
    try:
        tree = parse_expr(fragment, local_dict=dict(LOCAL_NAMES), transformations=TRANSFORMATIONS)
    except (sp.SympifyError, SyntaxError, TokenError, TypeError, ValueError, AttributeError) as exc:
        raise ParseFailure(f"could not parse {source!r}: {exc}") from exc
    if not isinstance(tree, sp.Expr):
        raise ParseFailure(f"{source!r} is not a mathematical expression")
    logger.debug("parsed %r as %s", fragment, sp.srepr(tree))
    return tree


def to_expression(value: ExpressionInput) -> sp.Basic:
    """Accept text, a Python number or an existing SymPy tree."""
    if isinstance(value, str):
        return parse(value)
    if isinstance(value, sp.Basic):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return sp.sympify(value)
    raise InvalidInputType(f"expected text, a number or an expression, got {type(value).__name__}")


def resolve_variable(tree: sp.Basic, name: Union[str, sp.Symbol, None] = None) -> sp.Symbol:
    """Find the symbol called ``name`` in ``tree``.

    Without a name, ``x`` is preferred, then the alphabetically first free
    symbol, then ``x`` again for constant input.
    """
    if isinstance(name, sp.Symbol):
        name = name.name
    if name is not None and not isinstance(name, str):
        raise InvalidInputType(f"variable must be a name, got {type(name).__name__}")

    symbols = sorted(
        (s for s in tree.free_symbols if isinstance(s, sp.Symbol) and s != CONSTANT_OF_INTEGRATION),
        key=lambda s: s.name,
    )
    if name is None:
        names = [s.name for s in symbols]
        name = "x" if "x" in names or not names else names[0]
    for symbol in symbols:
        if symbol.name == name:
            return symbol
    return sp.Symbol(name)


def is_infinite(value: sp.Basic) -> bool:
    return value in (sp.oo, sp.S.NegativeInfinity, sp.zoo)


def evaluate_numeric(expr: sp.Basic, bindings: Optional[dict] = None) -> complex:
    """Evaluate to a complex number; NaN when SymPy cannot produce one.

    Raises UnboundVariableEvaluation when free symbols remain.
    """
    value = expr.subs(bindings) if bindings else expr
    if value.free_symbols:
        names = ", ".join(sorted(str(s) for s in value.free_symbols))
        raise UnboundVariableEvaluation(f"{pretty(value)} still depends on {names}")
    if value.has(sp.zoo, sp.nan, sp.AccumBounds):
        return complex(math.nan, 0.0)
    try:
        return complex(sp.N(value))
    except (TypeError, ValueError) as exc:
        logger.debug("numeric evaluation of %s failed: %s", value, exc)
        return complex(math.nan, 0.0)


def is_finite_real(value: complex, tolerance: float = 1e-9) -> bool:
    if math.isnan(value.real) or math.isnan(value.imag):
        return False
    if math.isinf(value.real) or math.isinf(value.imag):
        return False
    return abs(value.imag) <= tolerance * max(1.0, abs(value.real))


def snap_real(value: float, tolerance: float = 1e-9) -> sp.Expr:
    """Turn a float into a SymPy number, as an Integer when it is one."""
    nearest = round(value)
    if abs(value - nearest) < tolerance:
        return sp.Integer(int(nearest))
    return sp.Float(value)
