"""
Tests for the degree 1-4 equation solver and its coefficient utilities.
"""

import pytest
import sympy as sp

from symcalc import (
    NO_REAL_ROOTS,
    NO_SOLUTION,
    EngineConfig,
    InvalidInputType,
    ParseFailure,
    classify_complexity,
    filter_steps,
    match_cubic_eq,
    match_linear_eq,
    match_quadratic_eq,
    match_quartic_eq,
    parse,
    poly_coeffs,
    solve,
)
from symcalc.solve import GENERAL, SIMPLE, TRIVIAL
from symcalc.steps import StepTrace


def as_floats(roots):
    return sorted(float(root) for root in roots)


def test_quadratic_real_roots():
    result, steps = solve("x^2-4=0", "x")
    assert result == "x = -2, x = 2"
    assert any("Δ" in step for step in steps)


def test_quadratic_matcher_roots_as_set():
    assert set(match_quadratic_eq("x^2-4=0", "x")) == {2, -2}


def test_no_real_roots():
    result, steps = solve("x^2+1=0", "x")
    assert result == NO_REAL_ROOTS
    assert "Δ < 0: no real roots" in steps


def test_complex_roots_when_enabled(complex_config):
    result, _ = solve("x^2+1=0", "x", config=complex_config)
    assert result == "x = -i, x = i"
    assert set(match_quadratic_eq("x^2+1=0", "x", complex_config)) == {sp.I, -sp.I}


def test_quadratic_with_radicals():
    result, _ = solve("x^2 - 2 = 0")
    assert result == "x = -sqrt(2) ≈ -1.4142, x = sqrt(2) ≈ 1.4142"


def test_precision_controls_decimals():
    result, _ = solve("x^2 - 2 = 0", config=EngineConfig(precision=2))
    assert "≈ 1.41" in result


def test_repeated_root_multiplicity():
    result, _ = solve("x^2 - 4x + 4 = 0")
    assert result == "x = 2 (multiplicity 2)"


def test_linear():
    assert solve("2x + 3 = 7")[0] == "x = 2"
    assert solve("3x = 1")[0] == "x = 1/3"
    assert solve("1/x = 2")[0] == "x = 1/2"


def test_cubic_casus_irreducibilis():
    result, steps = solve("x^3-6x^2+11x-6=0", "x")
    assert result == "x = 1, x = 2, x = 3"
    assert any("casus irreducibilis" in step for step in steps)
    assert as_floats(match_cubic_eq("x^3-6x^2+11x-6=0")) == pytest.approx([1, 2, 3])


def test_cubic_one_real_root(complex_config):
    result, steps = solve("x^3 - 1 = 0")
    assert result == "x = 1"
    assert any("Cardano" in step for step in steps)
    result, _ = solve("x^3 - 1 = 0", config=complex_config)
    assert result.count("x =") == 3
    assert "-0.5 + 0.866i" in result


def test_cubic_repeated_root():
    result, steps = solve("x^3 - 4x^2 + 5x - 2 = 0")
    assert result == "x = 1 (multiplicity 2), x = 2"
    assert any("repeated root" in step for step in steps)


def test_quartic_uses_factoring():
    result, steps = solve("x^4-10x^3+35x^2-50x+24=0", "x")
    assert result == "x = 1, x = 2, x = 3, x = 4"
    assert any(step.startswith("Factor as") for step in steps)
    assert not any("Ferrari" in step for step in steps)


def test_quartic_factored_input():
    result, _ = solve("(x-1)(x-2)(x-3)(x-4) = 0")
    assert result == "x = 1, x = 2, x = 3, x = 4"


def test_biquadratic():
    result, steps = solve("x^4 - 5x^2 + 4 = 0")
    assert result == "x = -2, x = -1, x = 1, x = 2"
    assert any(step.startswith("Biquadratic") for step in steps)
    assert as_floats(match_quadratic_eq("x^4 - 5x^2 + 4 = 0")) == pytest.approx([-2, -1, 1, 2])


def test_biquadratic_drops_negative_squares():
    result, _ = solve("x^4 + 3x^2 - 4 = 0")
    assert result == "x = -1, x = 1"


def test_quartic_ferrari():
    result, steps = solve("x^4 + x - 1 = 0")
    assert result.count("x =") == 2
    assert any("Ferrari" in step for step in steps)
    roots = match_quartic_eq("x^4 + x - 1 = 0")
    assert len(roots) == 2
    for root in roots:
        value = float(root)
        assert abs(value**4 + value - 1) < 1e-6


def test_variable_is_detected():
    assert solve("t^2 - 9 = 0")[0] == "t = -3, t = 3"


def test_bare_expression_means_equal_to_zero():
    assert solve("x^2 - 9")[0] == "x = -3, x = 3"


@pytest.mark.parametrize("text", ["x^5 - 1 = 0", "sin(x) = 0", "1 = 2", "x = x"])
def test_no_solution(text):
    assert solve(text)[0] == NO_SOLUTION


def test_degree_zero_steps():
    _, steps = solve("x = x")
    assert any("holds for every x" in step for step in steps)
    _, steps = solve("1 = 2")
    assert any("contradiction" in step for step in steps)


def test_errors_are_raised():
    with pytest.raises(ParseFailure):
        solve("x^2 = = 1")
    with pytest.raises(InvalidInputType):
        solve(42j)


def test_poly_coeffs(x):
    assert poly_coeffs(parse("3x^2 - 2x + 1"), x) == {2: 3.0, 1: -2.0, 0: 1.0}
    assert poly_coeffs(parse("(x + 1)^2"), x) == {2: 1.0, 1: 2.0, 0: 1.0}
    assert poly_coeffs(parse("x^2 - x^2 + 5"), x) == {0: 5.0}
    assert poly_coeffs(parse("x + sin(x)"), x) is None
    assert poly_coeffs(parse("sqrt(x)"), x) is None


@pytest.mark.parametrize(
    "coeffs, degree, expected",
    [
        ({1: 2.0, 0: 1.0}, 1, TRIVIAL),
        ({2: 1.0, 0: -4.0}, 2, TRIVIAL),
        ({3: 1.0, 2: -6.0, 1: 11.0, 0: -6.0}, 3, SIMPLE),
        ({4: 1.5, 3: 2.0, 1: 1.0, 0: 300.0}, 4, GENERAL),
    ],
)
def test_classify_complexity(coeffs, degree, expected):
    assert classify_complexity(coeffs, degree) == expected


def test_filter_steps():
    trace = StepTrace()
    trace.add("Quadratic formula")
    trace.add("Coefficients: x^2: 1", detail=True)
    assert filter_steps(trace, SIMPLE) == ["Quadratic formula"]
    assert filter_steps(trace, GENERAL) == ["Quadratic formula", "Coefficients: x^2: 1"]
    assert filter_steps(trace, TRIVIAL, verbose=True) == ["Quadratic formula", "Coefficients: x^2: 1"]


def test_verbose_steps_keep_coefficients(verbose_config):
    _, quiet = solve("x^2 - 4 = 0")
    _, verbose = solve("x^2 - 4 = 0", config=verbose_config)
    assert not any(step.startswith("Coefficients") for step in quiet)
    assert any(step.startswith("Coefficients") for step in verbose)


def test_matchers_reject_other_degrees():
    assert match_linear_eq("x^2 = 1") is None
    assert match_cubic_eq("x^2 = 1") is None
    assert match_quadratic_eq("x^4 + x^3 = 0") is None
    assert match_quartic_eq("sin(x) = 0") is None
    assert match_linear_eq("2x - 1 = 0") == [sp.Rational(1, 2)]
