"""
errors.py
---------

Exception taxonomy for mcbo.

- ConfigurationError : invalid static parameters (fatal, construction aborts).
- SamplingError      : the hyperparameter sampler could not produce particles.
- SurrogateFitError  : numerical failure while fitting/updating a surrogate.
- EvaluationError    : a criterion failed at a specific query point.

Per-particle errors carry the failing particle index and the operation name,
so the outer loop can decide between retrying with fewer particles and
aborting the run.
"""

from __future__ import annotations


class MCBOError(Exception):
    """Base class for all mcbo errors."""


class ConfigurationError(MCBOError, ValueError):
    """Invalid dimension, particle count or configuration value."""


class SamplingError(MCBOError, RuntimeError):
    """Hyperparameter sampler failed to produce valid particles."""


class _ParticleError(MCBOError, RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        particle: int | None = None,
        operation: str | None = None,
    ):
        self.particle = particle
        self.operation = operation
        context = []
        if operation is not None:
            context.append(f"operation={operation}")
        if particle is not None:
            context.append(f"particle={particle}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class SurrogateFitError(_ParticleError):
    """Surrogate fit or incremental update failed (e.g. covariance not PD)."""


class EvaluationError(_ParticleError):
    """Criterion evaluation or update failed at a query point."""
