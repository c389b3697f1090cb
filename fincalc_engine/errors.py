from __future__ import annotations

import math
from typing import Optional


class EngineError(ValueError):
    """Base class for every failure raised by the calculation engine."""


class DomainError(EngineError):
    """Mathematically invalid input (yield <= -100%, sigma <= 0, T <= 0, salvage >= cost)."""


class InvalidInput(EngineError):
    """Structurally invalid input (empty flows, less than one period, infeasible bounds)."""


class NoRoot(EngineError):
    """No sign change inside the search bracket, so no root can be bracketed."""


class NotConverged(EngineError):
    """
    Root finder ran out of iterations.

    Carries the last estimate and its residual so the caller can decide what to do.
    """

    def __init__(self, estimate: float, residual: float, iterations: int, message: Optional[str] = None):
        self.estimate = estimate
        self.residual = residual
        self.iterations = iterations
        if message is None:
            message = f"No convergence after {iterations} iterations (estimate={estimate!r}, residual={residual!r})."
        super().__init__(message)


def ensure_finite(value: float, what: str) -> float:
    """Reject NaN/Inf results instead of handing them back to the caller."""
    value = float(value)
    if not math.isfinite(value):
        raise DomainError(f"{what} is not finite ({value!r}); inputs are too close to a singularity.")
    return value
