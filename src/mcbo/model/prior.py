"""
prior.py
--------

Prior distribution over surrogate hyperparameters.

A particle is a flat vector in log space:

    θ = [log ℓ_1, ..., log ℓ_D, log σ_f², log σ_n²]

with one lengthscale per input dimension, the kernel signal variance and the
observation noise variance. Each entry gets an independent Gaussian prior.

Connections
-----------
- Posterior models call HyperparameterPrior.sample() for the initial (prior)
  particle set and HyperparameterPrior.mean() for fixed hyperparameters.
- Samplers add HyperparameterPrior.log_prob(θ) to the surrogate's log marginal
  likelihood to form the log posterior over θ.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import jax.numpy as jnp
import jax.random as jr

from mcbo.errors import ConfigurationError

if TYPE_CHECKING:
    from mcbo.parameters import Parameters


def unpack_hyperparameters(theta: jnp.ndarray, input_dim: int):
    """
    Split a particle into natural-scale hyperparameters.

    Returns
    -------
    lengthscales : jnp.ndarray, shape (input_dim,)
    signal_variance : jnp.ndarray, scalar
    noise_variance : jnp.ndarray, scalar
    """
    lengthscales = jnp.exp(theta[:input_dim])
    signal_variance = jnp.exp(theta[input_dim])
    noise_variance = jnp.exp(theta[input_dim + 1])
    return lengthscales, signal_variance, noise_variance


@dataclass
class HyperparameterPrior:
    """
    Independent log-normal prior over kernel and noise hyperparameters.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    lengthscale : (float, float), default=(0.0, 1.0)
        (mean, std) of log ℓ_d, shared by all dimensions.
    signal_variance : (float, float), default=(0.0, 1.0)
        (mean, std) of log σ_f².
    noise : (float, float), default=(log 1e-4, 1.0)
        (mean, std) of log σ_n².
    """

    input_dim: int
    lengthscale: tuple[float, float] = (0.0, 1.0)
    signal_variance: tuple[float, float] = (0.0, 1.0)
    noise: tuple[float, float] = (-9.210340371976182, 1.0)

    def __post_init__(self):
        """Validate dimensions."""
        if self.input_dim < 1:
            raise ConfigurationError(f"input_dim must be >= 1, got {self.input_dim}")

    @classmethod
    def from_parameters(cls, input_dim: int, params: Parameters) -> HyperparameterPrior:
        """Build the prior from posterior-model parameters."""
        return cls(
            input_dim=input_dim,
            lengthscale=params.lengthscale_prior,
            signal_variance=params.signal_variance_prior,
            noise=params.noise_prior,
        )

    @property
    def dim(self) -> int:
        """Length of a particle vector."""
        return self.input_dim + 2

    @property
    def loc(self) -> jnp.ndarray:
        return jnp.concatenate(
            [
                jnp.full((self.input_dim,), self.lengthscale[0]),
                jnp.array([self.signal_variance[0], self.noise[0]]),
            ]
        )

    @property
    def scale(self) -> jnp.ndarray:
        return jnp.concatenate(
            [
                jnp.full((self.input_dim,), self.lengthscale[1]),
                jnp.array([self.signal_variance[1], self.noise[1]]),
            ]
        )

    def mean(self) -> jnp.ndarray:
        """Prior mean particle."""
        return self.loc

    def sample(self, key: Any, n: int = 1) -> list[jnp.ndarray]:
        """
        Draw ``n`` particles from the prior.

        Parameters
        ----------
        key : JAX random key
        n : int, default=1
            Number of particles.

        Returns
        -------
        list of jnp.ndarray
            Particles, each of shape (dim,).
        """
        draws = self.loc + self.scale * jr.normal(key, shape=(n, self.dim))
        return list(draws)

    def log_prob(self, theta: jnp.ndarray) -> jnp.ndarray:
        """
        Compute log prior density (up to a constant).

        Parameters
        ----------
        theta : jnp.ndarray, shape (dim,)
            Particle in log space.

        Returns
        -------
        jnp.ndarray
            Scalar log prior.
        """
        z = (theta - self.loc) / self.scale
        return -0.5 * jnp.sum(z**2)
