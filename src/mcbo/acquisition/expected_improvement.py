"""
expected_improvement.py
-----------------------

Expected Improvement (EI) acquisition function.

The most popular acquisition function for Bayesian optimization.
Balances exploration (high uncertainty) and exploitation (high mean).

References
----------
Mockus, J., Tiesis, V., & Zilinskas, A. (1978). The application of Bayesian
methods for seeking the extremum. Towards Global Optimization, 2, 117-129.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import jax.numpy as jnp
from jax.scipy import stats

from mcbo.acquisition.base import Criterion

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import ProbabilityDistribution


def expected_improvement(
    posterior: ProbabilityDistribution,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Expected improvement acquisition function.

    Computes E[max(0, f(x) - best_f)] for each candidate point.

    Parameters
    ----------
    posterior : ProbabilityDistribution
        Predictive distribution p(f(X*) | data)
    best_f : float
        Best observed value so far
    maximize : bool, default=True
        If True, maximize (higher is better).
        If False, minimize (lower is better).

    Returns
    -------
    jnp.ndarray
        EI values, same shape as posterior.mean

    Mathematical Details
    --------------------
    Let μ(x), σ(x) be the posterior mean and std at x.
    Let u = (μ(x) - best_f) / σ(x) (standardized improvement).

    Then:
        EI(x) = σ(x) * [u * Φ(u) + φ(u)]

    where Φ is the standard normal CDF and φ is the PDF.

    When σ(x) = 0 (no uncertainty), EI(x) = max(0, μ(x) - best_f).
    """
    mean = posterior.mean
    std = jnp.sqrt(posterior.variance)

    if not maximize:
        # For minimization, flip the improvement
        u = (best_f - mean) / (std + 1e-9)  # Numerical stability
    else:
        u = (mean - best_f) / (std + 1e-9)

    # EI formula: σ * [u * Φ(u) + φ(u)]
    normal_cdf = stats.norm.cdf(u)
    normal_pdf = stats.norm.pdf(u)

    ei = std * (u * normal_cdf + normal_pdf)

    # Handle numerical issues: EI should be non-negative
    ei = jnp.maximum(ei, 0.0)

    return ei


def log_expected_improvement(
    posterior: ProbabilityDistribution,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Log expected improvement for numerical stability.

    Since we only care about ranking, log(EI) preserves the order:
        argmax EI(x) = argmax log(EI(x))
    """
    ei = expected_improvement(posterior, best_f, maximize=maximize)

    # Add small constant for log stability
    return jnp.log(ei + 1e-25)


class ExpectedImprovement(Criterion):
    """
    EI criterion for minimization of the objective.

    Parameters
    ----------
    surrogate : Surrogate
        Surrogate providing predictions and the incumbent (lowest) value.
    key : jax.Array | None
        Unused; accepted for a uniform constructor.
    xi : float, default=0.0
        Required improvement margin over the incumbent.
    log : bool, default=False
        Score with log(EI) instead of EI.
    """

    name = "ei"

    def __init__(
        self, surrogate: Surrogate, key: Any = None, *, xi: float = 0.0, log: bool = False
    ):
        super().__init__(surrogate, key)
        self.xi = xi
        self.log = log

    def evaluate(self, query) -> jnp.ndarray:
        posterior = self.surrogate.predict(query)
        best_f = self.surrogate.best_observation - self.xi
        if self.log:
            return log_expected_improvement(posterior, best_f, maximize=False)
        return expected_improvement(posterior, best_f, maximize=False)
