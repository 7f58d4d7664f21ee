"""Per-call engine configuration."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EngineConfig(BaseModel):
    """Settings read once at the start of a public call.

    The model is frozen: a call never observes a setting change half way
    through, and two calls may run side by side with different settings.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Display
    complex_mode: bool = Field(default=False, description="Show roots with a non-zero imaginary part")
    precision: int = Field(default=4, ge=0, le=15, description="Digits after the decimal point in displayed roots")
    verbose_steps: bool = Field(default=False, description="Keep bookkeeping steps for simple equations")

    # Integration
    max_integration_depth: int = Field(default=100, gt=0, description="Recursion cap for the rule cascade")

    # Limits
    limit_epsilon: float = Field(default=1e-10, gt=0, description="Offset used for numeric bracketing")
    limit_tolerance: float = Field(default=1e-8, gt=0, description="Agreement required between both sides")
    max_lhopital: int = Field(default=8, gt=0, description="L'Hopital applications before giving up")


DEFAULT_CONFIG = EngineConfig()


def resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    """Return the config for one call, falling back to the defaults."""
    return DEFAULT_CONFIG if config is None else config
