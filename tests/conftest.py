import pytest
import sympy as sp

from symcalc import EngineConfig


@pytest.fixture
def x():
    return sp.Symbol("x")


@pytest.fixture
def C():
    return sp.Symbol("C")


@pytest.fixture
def complex_config():
    """Engine settings with complex roots shown."""
    return EngineConfig(complex_mode=True)


@pytest.fixture
def verbose_config():
    return EngineConfig(verbose_steps=True)
