"""
probability_of_improvement.py
-----------------------------

Probability of Improvement (PI) acquisition function.

References
----------
Kushner, H. J. (1964). A new method of locating the maximum point of an
arbitrary multipeak curve in the presence of noise. Journal of Basic
Engineering, 86(1), 97-106.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import jax.numpy as jnp
from jax.scipy import stats

from mcbo.acquisition.base import Criterion

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import ProbabilityDistribution


def probability_of_improvement(
    posterior: ProbabilityDistribution,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Probability that f(x) improves on ``best_f``.

    Parameters
    ----------
    posterior : ProbabilityDistribution
        Predictive distribution p(f(X*) | data)
    best_f : float
        Best observed value so far
    maximize : bool, default=True
        If False, improvement means going below ``best_f``.

    Returns
    -------
    jnp.ndarray
        Φ(u) with u the standardized improvement.
    """
    mean = posterior.mean
    std = jnp.sqrt(posterior.variance)
    if maximize:
        u = (mean - best_f) / (std + 1e-9)
    else:
        u = (best_f - mean) / (std + 1e-9)
    return stats.norm.cdf(u)


class ProbabilityOfImprovement(Criterion):
    """
    PI criterion for minimization of the objective.

    Parameters
    ----------
    surrogate : Surrogate
        Surrogate providing predictions and the incumbent (lowest) value.
    key : jax.Array | None
        Unused; accepted for a uniform constructor.
    xi : float, default=0.01
        Required improvement margin over the incumbent.
    """

    name = "poi"

    def __init__(self, surrogate: Surrogate, key: Any = None, *, xi: float = 0.01):
        super().__init__(surrogate, key)
        self.xi = xi

    def evaluate(self, query) -> jnp.ndarray:
        posterior = self.surrogate.predict(query)
        best_f = self.surrogate.best_observation - self.xi
        return probability_of_improvement(posterior, best_f, maximize=False)
