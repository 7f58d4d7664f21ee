"""
Tests for the limit evaluator.
"""

import pytest
import sympy as sp

from symcalc import EngineConfig, InvalidInputType, eval_limit, lim
from symcalc.steps import StepTrace


def test_direct_substitution():
    result, steps = lim("3x + 3", "x", "2")
    assert result == 9
    assert steps == ["Substitute x = 2 directly: 9"]


def test_sin_x_over_x_uses_lhopital():
    result, steps = lim("sin(x)/x", "x", "0")
    assert result == 1
    assert any("L'Hôpital" in step for step in steps)


def test_removable_discontinuity():
    result, _ = lim("(x^2-1)/(x-1)", "x", "1")
    assert result == 2


def test_repeated_lhopital():
    result, steps = lim("(1 - cos(x))/x^2", "x", "0")
    assert result == sp.Rational(1, 2)
    assert sum("L'Hôpital" in step for step in steps) == 2


def test_lhopital_cap_is_configurable():
    result, steps = lim("(1 - cos(x))/x^2", "x", "0", config=EngineConfig(max_lhopital=1))
    assert float(result) == pytest.approx(0.5, abs=1e-6)
    assert sum("L'Hôpital" in step for step in steps) == 2
    assert any(step.startswith("Approach 0 numerically") for step in steps)


def test_symbolic_parameter():
    a = sp.Symbol("a")
    result, _ = lim("sin(a*x)/x", "x", "0")
    assert result == a


def test_numeric_bracketing():
    result, steps = lim("x*sin(1/x)", "x", "0")
    assert result == 0
    assert any(step.startswith("Approach 0 numerically") for step in steps)


def test_one_sided_divergence():
    assert lim("1/x", "x", "0", "+")[0] == sp.oo
    assert lim("1/x", "x", "0", "-")[0] == -sp.oo


def test_two_sided_divergence_is_left_unevaluated():
    x = sp.Symbol("x")
    result, _ = lim("1/x", "x", "0")
    assert isinstance(result, sp.Limit)
    assert result.args[0] == 1 / x


def test_jump_discontinuity_one_sided():
    assert lim("abs(x)/x", "x", "0", "+")[0] == 1
    assert lim("abs(x)/x", "x", "0", "-")[0] == -1


def test_jump_discontinuity_two_sided_keeps_original_expression():
    x = sp.Symbol("x")
    result, steps = lim("x/abs(x)", "x", "0")
    assert isinstance(result, sp.Limit)
    assert result.args[0] == x / sp.Abs(x)
    assert not any("L'Hôpital's rule," in step for step in steps)


def test_bracketing_snaps_within_tolerance():
    assert lim("x*ln(x)", "x", "0", "+")[0] == 0


def test_infinite_target():
    assert lim("1/x", "x", "inf")[0] == 0
    assert lim("(2x+1)/(x+3)", "x", "inf")[0] == 2
    assert lim("x*e^(-x)", "x", "inf")[0] == 0


def test_leading_terms_at_infinity():
    result, steps = lim("x^2", "x", "inf")
    assert result == sp.oo
    assert any(step.startswith("Compare leading terms") for step in steps)
    assert lim("x^3", "x", "-inf")[0] == -sp.oo
    assert lim("-x^2 + 1", "x", "-inf")[0] == -sp.oo


def test_oscillation_at_infinity_is_left_unevaluated():
    result, _ = lim("sin(x)", "x", "inf")
    assert isinstance(result, sp.Limit)


def test_invalid_direction():
    with pytest.raises(InvalidInputType):
        lim("x", "x", "0", "up")


def test_invalid_expression():
    with pytest.raises(InvalidInputType):
        lim("x = 1")


def test_eval_limit_shares_trace():
    trace = StepTrace()
    assert eval_limit("x^2", "x", 3, trace=trace) == 9
    assert len(trace) == 1
