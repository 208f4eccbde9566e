"""
upper_confidence_bound.py
-------------------------

Upper/Lower Confidence Bound acquisition functions.

Balances exploration and exploitation via a tunable parameter β.

References
----------
Srinivas, N., Krause, A., Kakade, S. M., & Seeger, M. (2009).
Gaussian process optimization in the bandit setting: No regret and
experimental design. arXiv preprint arXiv:0912.3995.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

import jax.numpy as jnp

from mcbo.acquisition.base import Criterion

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import ProbabilityDistribution


def upper_confidence_bound(
    posterior: ProbabilityDistribution,
    beta: float = 2.0,
    maximize: bool = True,
) -> jnp.ndarray:
    r"""
    Upper confidence bound acquisition function.

    Computes μ(x) + β * \sigma(x) for maximization.
    Computes μ(x) - β * \sigma(x) for minimization.

    Parameters
    ----------
    posterior : ProbabilityDistribution
        Predictive distribution p(f(X*) | data)
    beta : float, default=2.0
        Exploration-exploitation trade-off parameter.
        - β = 0: Pure exploitation (greedy selection)
        - β = 1: Balanced
        - β > 2: Aggressive exploration
    maximize : bool, default=True
        If True, maximize (higher is better).
        If False, minimize (lower is better).

    Returns
    -------
    jnp.ndarray
        UCB values, same shape as posterior.mean
    """
    mean = posterior.mean
    std = jnp.sqrt(posterior.variance)

    return mean + beta * std if maximize else mean - beta * std


def lower_confidence_bound(
    posterior: ProbabilityDistribution,
    beta: float = 2.0,
) -> jnp.ndarray:
    """
    Lower confidence bound (LCB) for minimization.

    Alias for upper_confidence_bound(..., maximize=False).
    """
    return upper_confidence_bound(posterior, beta=beta, maximize=False)


class LowerConfidenceBound(Criterion):
    """
    LCB criterion for minimization: score(x) = β σ(x) - μ(x).

    Parameters
    ----------
    surrogate : Surrogate
        Surrogate providing predictions.
    key : jax.Array | None
        Unused; accepted for a uniform constructor.
    beta : float, default=1.0
        Fixed exploration weight.
    anneal : bool, default=False
        If True, β grows with the number of update() calls:
            β_t = sqrt(2 * log(input_dim * t^2 * π^2 / 6δ))
    delta : float, default=0.1
        Confidence parameter of the annealed schedule.
    """

    name = "lcb"

    def __init__(
        self,
        surrogate: Surrogate,
        key: Any = None,
        *,
        beta: float = 1.0,
        anneal: bool = False,
        delta: float = 0.1,
    ):
        super().__init__(surrogate, key)
        self.beta = beta
        self.anneal = anneal
        self.delta = delta

    @property
    def beta_t(self) -> float:
        if not self.anneal:
            return self.beta
        t = self.n_updates + 1
        d = self.surrogate.input_dim
        return math.sqrt(2.0 * math.log(d * t**2 * math.pi**2 / (6.0 * self.delta)))

    def evaluate(self, query) -> jnp.ndarray:
        posterior = self.surrogate.predict(query)
        return -lower_confidence_bound(posterior, beta=self.beta_t)
