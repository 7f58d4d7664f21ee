"""Typed failures raised by the public entry points.

Only malformed input and contract violations are raised. An integrand with
no closed form, an equation outside the supported degrees or a limit the
engine cannot settle are ordinary return values.
"""


class EngineError(Exception):
    """Base class for every error the engine raises."""

    kind = "engine"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"


class ParseFailure(EngineError):
    kind = "parse failure"


class UnboundVariableEvaluation(EngineError):
    kind = "unbound variable"


class DefiniteBoundsIndeterminate(EngineError):
    kind = "indeterminate bounds"


class RecursionDepthExceeded(EngineError):
    kind = "recursion depth exceeded"


class InvalidInputType(EngineError):
    kind = "invalid input"
