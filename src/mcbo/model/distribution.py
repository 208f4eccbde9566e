"""
distribution.py
---------------

Predictive distributions returned by surrogates.

Design
------
Criteria only need the first two moments of p(f(x*) | data, θ), so the
protocol mirrors the predictive posterior used for acquisition:
``mean`` and ``variance`` (plus ``std`` for convenience). Scalar moments are
returned for a single query point, arrays of shape (n,) for a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import jax.numpy as jnp


@runtime_checkable
class ProbabilityDistribution(Protocol):
    """Protocol for predictive distributions p(f(x*) | data)."""

    @property
    def mean(self) -> jnp.ndarray:
        """Predictive mean E[f(x*) | data]."""
        ...

    @property
    def variance(self) -> jnp.ndarray:
        """Predictive variance Var[f(x*) | data]."""
        ...


@dataclass(frozen=True)
class GaussianDistribution:
    """
    Gaussian predictive distribution N(mean, variance).

    Parameters
    ----------
    mean : jnp.ndarray
        Predictive mean, scalar or shape (n,).
    variance : jnp.ndarray
        Predictive variance, same shape as ``mean``.
    """

    mean: jnp.ndarray
    variance: jnp.ndarray

    @property
    def std(self) -> jnp.ndarray:
        """Predictive standard deviation."""
        return jnp.sqrt(self.variance)
