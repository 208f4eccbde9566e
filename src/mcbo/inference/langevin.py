"""
langevin.py
-----------

Langevin sampler for hyperparameter particles.

Implements the overdamped, unadjusted Langevin algorithm (ULA):

    θ ← θ + ε ∇ log p(θ | data) + sqrt(2ε) ξ,   ξ ~ N(0, I)

Gradients come from jax.grad of the target log density. Without a
Metropolis correction the chain is biased by O(ε); keep ε small.
"""

from __future__ import annotations

import logging
from typing import Any

import jax
import jax.numpy as jnp
import jax.random as jr

from mcbo.errors import ConfigurationError, SamplingError
from mcbo.inference.base import HyperparameterSampler, HyperparameterTarget

logger = logging.getLogger(__name__)


class LangevinSampler(HyperparameterSampler):
    """
    Unadjusted Langevin sampler.

    Parameters
    ----------
    n_particles : int
        Number of particles per sample() call.
    burn_in : int, default=100
        Discarded steps.
    thinning : int, default=1
        Steps between collected particles.
    step_size : float, default=1e-3
        Step size ε.
    """

    def __init__(
        self,
        n_particles: int,
        *,
        burn_in: int = 100,
        thinning: int = 1,
        step_size: float = 1e-3,
    ):
        super().__init__(n_particles, burn_in=burn_in, thinning=thinning)
        if step_size <= 0:
            raise ConfigurationError(f"step_size must be positive, got {step_size}")
        self.step_size = step_size

    def sample(
        self, target: HyperparameterTarget, key: Any, initial: jnp.ndarray | None = None
    ) -> list[jnp.ndarray]:
        theta = jnp.asarray(target.prior.mean() if initial is None else initial)
        eps = self.step_size

        @jax.jit
        def step(theta, key):
            logp, grad = jax.value_and_grad(target.log_prob)(theta)
            noise = jr.normal(key, theta.shape)
            return theta + eps * grad + jnp.sqrt(2.0 * eps) * noise, logp, grad

        particles = []
        for i in range(self.n_transitions):
            key, subkey = jr.split(key)
            new_theta, logp, grad = step(theta, subkey)
            if not (jnp.isfinite(logp) and jnp.all(jnp.isfinite(grad))):
                raise SamplingError(f"Langevin step {i}: log density or gradient not finite")
            theta = new_theta
            if self._collects(i):
                particles.append(theta)
        logger.debug("Langevin sampler ran %d steps", self.n_transitions)
        return particles
