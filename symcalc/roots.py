"""Numeric root formulas for cubic and quartic polynomials.

Everything here works on Python ``complex`` values. Results are lifted back
into SymPy expressions with :func:`lift` before they leave the solver.
"""

import cmath
import logging
import math
from typing import List, NamedTuple, Tuple

import sympy as sp

from .expression import snap_real

logger = logging.getLogger(__name__)

IMAGINARY_TOLERANCE = 1e-9

ONE_REAL = "one real root and a complex-conjugate pair"
REPEATED = "repeated root"
THREE_REAL = "three distinct real roots"


class CubicSolution(NamedTuple):
    regime: str
    shift: float
    p: float
    q: float
    discriminant: float
    roots: List[complex]


class QuarticSolution(NamedTuple):
    shift: float
    p: float
    q: float
    r: float
    resolvent: Tuple[float, float, float, float]
    resolvent_root: complex
    roots: List[complex]


def real_cbrt(value: float) -> float:
    return math.copysign(abs(value) ** (1.0 / 3.0), value)


def is_real(value: complex, tolerance: float = IMAGINARY_TOLERANCE) -> bool:
    return abs(value.imag) <= tolerance * max(1.0, abs(value.real))


def lift(value: complex) -> sp.Expr:
    """Convert a complex root into ``re + im*I`` (just ``re`` when real)."""
    real_part = snap_real(value.real)
    if is_real(value):
        return real_part
    return real_part + snap_real(value.imag) * sp.I


def quadratic_roots(a: complex, b: complex, c: complex) -> Tuple[complex, complex]:
    root = cmath.sqrt(b * b - 4 * a * c)
    return (-b + root) / (2 * a), (-b - root) / (2 * a)


def solve_cubic(a: float, b: float, c: float, d: float) -> CubicSolution:
    """Roots of ``a x^3 + b x^2 + c x + d`` via the depressed cubic ``t^3 + p t + q``.

    The sign of ``(q/2)^2 + (p/3)^3`` selects Cardano's formula, the
    repeated-root formula or the trigonometric form.
    """
    b, c, d = b / a, c / a, d / a
    shift = b / 3.0
    p = c - b * b / 3.0
    q = 2.0 * b ** 3 / 27.0 - b * c / 3.0 + d
    discriminant = (q / 2.0) ** 2 + (p / 3.0) ** 3
    tolerance = 1e-12 * max(1.0, (q / 2.0) ** 2, abs(p / 3.0) ** 3)
    logger.debug("depressed cubic p=%r q=%r discriminant=%r", p, q, discriminant)

    if abs(discriminant) <= tolerance:
        if abs(p) <= 1e-12 * max(1.0, abs(shift)):
            depressed = [0.0, 0.0, 0.0]
        else:
            u = real_cbrt(-q / 2.0)
            depressed = [2.0 * u, -u, -u]
        regime = REPEATED
        roots = [complex(t - shift) for t in depressed]
    elif discriminant > 0:
        root = math.sqrt(discriminant)
        u = real_cbrt(-q / 2.0 + root)
        v = real_cbrt(-q / 2.0 - root)
        real_part = -(u + v) / 2.0 - shift
        imaginary_part = math.sqrt(3.0) * (u - v) / 2.0
        regime = ONE_REAL
        roots = [
            complex(u + v - shift),
            complex(real_part, imaginary_part),
            complex(real_part, -imaginary_part),
        ]
    else:
        radius = 2.0 * math.sqrt(-p / 3.0)
        cosine = (3.0 * q / (2.0 * p)) * math.sqrt(-3.0 / p)
        phi = math.acos(max(-1.0, min(1.0, cosine)))
        regime = THREE_REAL
        roots = [
            complex(radius * math.cos(phi / 3.0 - 2.0 * math.pi * k / 3.0) - shift)
            for k in range(3)
        ]
    return CubicSolution(regime, shift, p, q, discriminant, roots)


def solve_quartic(a: float, b: float, c: float, d: float, e: float) -> QuarticSolution:
    """Ferrari's method for ``a x^4 + b x^3 + c x^2 + d x + e``.

    The depressed quartic ``y^4 + p y^2 + q y + r`` is split into two
    quadratics with the help of a root ``z`` of the resolvent cubic
    ``z^3 + 2p z^2 + (p^2 - 4r) z - q^2``.
    """
    b, c, d, e = b / a, c / a, d / a, e / a
    shift = b / 4.0
    p = c - 3.0 * b * b / 8.0
    q = b ** 3 / 8.0 - b * c / 2.0 + d
    r = e - 3.0 * b ** 4 / 256.0 + b * b * c / 16.0 - b * d / 4.0
    resolvent = (1.0, 2.0 * p, p * p - 4.0 * r, -q * q)
    logger.debug("depressed quartic p=%r q=%r r=%r", p, q, r)

    if abs(q) <= 1e-12 * max(1.0, abs(p), abs(r)):
        # y^4 + p y^2 + r: quadratic in y^2
        z = 0j
        depressed = []
        for square in quadratic_roots(1.0, p, r):
            root = cmath.sqrt(square)
            depressed.extend([root, -root])
    else:
        cubic = solve_cubic(*resolvent)
        real_roots = [root.real for root in cubic.roots if is_real(root)]
        z = complex(max(real_roots)) if real_roots else max(cubic.roots, key=lambda root: root.real)
        s = cmath.sqrt(z)
        half = (p + z) / 2.0
        depressed = list(quadratic_roots(1.0, -s, half + q / (2.0 * s)))
        depressed += list(quadratic_roots(1.0, s, half - q / (2.0 * s)))

    roots = [root - shift for root in depressed]
    return QuarticSolution(shift, p, q, r, resolvent, z, roots)
