"""
base.py
-------

Abstract base class for hyperparameter samplers.

All samplers implement ``sample(target, key, initial=None)`` and return a
list of particles drawn (approximately) from p(θ | data):

- SliceSampler    : coordinate-wise slice sampling (MCMC)
- LangevinSampler : unadjusted Langevin dynamics (MCMC)
- MAPOptimizer    : a single MAP particle (empirical Bayes)

The target couples the hyperparameter prior with the surrogate's log
marginal likelihood of all observations collected so far.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import jax.numpy as jnp

from mcbo.errors import ConfigurationError

if TYPE_CHECKING:
    from mcbo.model.prior import HyperparameterPrior


@dataclass(frozen=True)
class HyperparameterTarget:
    """
    Unnormalized log posterior over particles.

    log p(θ | data) = log p(θ) + log p(y | X, θ) + const

    Parameters
    ----------
    prior : HyperparameterPrior
        Prior over particles; fixes the particle layout and dimension.
    log_likelihood : callable
        θ -> log p(y | X, θ).
    """

    prior: HyperparameterPrior
    log_likelihood: Callable[[jnp.ndarray], jnp.ndarray]

    @property
    def dim(self) -> int:
        return self.prior.dim

    def log_prob(self, theta: jnp.ndarray) -> jnp.ndarray:
        """Log posterior; -inf where the likelihood is not finite."""
        lp = self.prior.log_prob(theta) + self.log_likelihood(theta)
        return jnp.where(jnp.isfinite(lp), lp, -jnp.inf)


class HyperparameterSampler(ABC):
    """
    Abstract interface for hyperparameter samplers.

    Parameters
    ----------
    n_particles : int
        Number of particles returned by sample().
    burn_in : int, default=0
        Transitions discarded before collecting.
    thinning : int, default=1
        Transitions between two collected particles.
    """

    def __init__(self, n_particles: int, *, burn_in: int = 0, thinning: int = 1):
        if n_particles < 1:
            raise ConfigurationError(f"n_particles must be >= 1, got {n_particles}")
        if burn_in < 0 or thinning < 1:
            raise ConfigurationError(
                f"Invalid schedule: burn_in={burn_in}, thinning={thinning}"
            )
        self.n_particles = n_particles
        self.burn_in = burn_in
        self.thinning = thinning

    @property
    def n_transitions(self) -> int:
        """Total transitions of one sample() call."""
        return self.burn_in + self.n_particles * self.thinning

    def _collects(self, step: int) -> bool:
        return step >= self.burn_in and (step - self.burn_in + 1) % self.thinning == 0

    @abstractmethod
    def sample(
        self, target: HyperparameterTarget, key: Any, initial: jnp.ndarray | None = None
    ) -> list[jnp.ndarray]:
        """
        Draw particles.

        Parameters
        ----------
        target : HyperparameterTarget
            Log density over particles.
        key : jax.Array
            PRNG key. Same key, same particles.
        initial : jnp.ndarray | None
            Starting particle. Defaults to the prior mean.

        Returns
        -------
        list of jnp.ndarray
            ``n_particles`` particles of shape (target.dim,).

        Raises
        ------
        SamplingError
            If no valid particles can be produced.
        """
        ...
