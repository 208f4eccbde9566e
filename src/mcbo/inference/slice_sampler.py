"""
slice_sampler.py
----------------

Coordinate-wise slice sampler over hyperparameter particles.

One transition updates every coordinate in turn with the univariate
stepping-out / shrinkage procedure:

1. Draw the slice level  log y = log p(θ) - Exp(1).
2. Place a bracket of width w randomly around θ_d and step it out until both
   ends fall below the slice (at most m steps in total).
3. Sample uniformly in the bracket, shrinking it towards θ_d on rejection.

The chain runs on NumPy floats; only the log density is evaluated with JAX.

References
----------
Neal, R. M. (2003). Slice sampling. Annals of Statistics, 31(3), 705-767.
"""

from __future__ import annotations

import logging
from typing import Any

import jax.numpy as jnp
import numpy as np

from mcbo.errors import ConfigurationError, SamplingError
from mcbo.inference.base import HyperparameterSampler, HyperparameterTarget
from mcbo.utils.rng import numpy_generator

logger = logging.getLogger(__name__)


class SliceSampler(HyperparameterSampler):
    """
    Stepping-out slice sampler.

    Parameters
    ----------
    n_particles : int
        Number of particles per sample() call.
    burn_in : int, default=100
        Discarded sweeps.
    thinning : int, default=1
        Sweeps between collected particles.
    width : float, default=1.0
        Initial bracket width w (log-space units).
    max_steps : int, default=50
        Stepping-out budget m; shrinkage is capped at 10 m proposals.
    """

    def __init__(
        self,
        n_particles: int,
        *,
        burn_in: int = 100,
        thinning: int = 1,
        width: float = 1.0,
        max_steps: int = 50,
    ):
        super().__init__(n_particles, burn_in=burn_in, thinning=thinning)
        if width <= 0 or max_steps < 1:
            raise ConfigurationError(
                f"Invalid slice settings: width={width}, max_steps={max_steps}"
            )
        self.width = width
        self.max_steps = max_steps

    def sample(
        self, target: HyperparameterTarget, key: Any, initial: jnp.ndarray | None = None
    ) -> list[jnp.ndarray]:
        rng = numpy_generator(key)
        theta = np.array(target.prior.mean() if initial is None else initial, dtype=float)
        if theta.shape != (target.dim,):
            raise SamplingError(
                f"initial particle has shape {theta.shape}, expected ({target.dim},)"
            )

        def log_density(x: np.ndarray) -> float:
            return float(target.log_prob(jnp.asarray(x)))

        logp = log_density(theta)
        if not np.isfinite(logp):
            raise SamplingError("log density is not finite at the initial particle")

        particles = []
        for sweep in range(self.n_transitions):
            for d in range(target.dim):
                theta, logp = self._slice_coordinate(log_density, theta, logp, d, rng)
            if self._collects(sweep):
                particles.append(jnp.asarray(theta))
        logger.debug(
            "Slice sampler ran %d sweeps, final log density %.4f",
            self.n_transitions,
            logp,
        )
        return particles

    def _slice_coordinate(self, log_density, theta, logp, d, rng):
        log_y = logp - rng.exponential()
        x0 = theta[d]
        lower = x0 - self.width * rng.uniform()
        upper = lower + self.width

        def at(value):
            proposal = theta.copy()
            proposal[d] = value
            return proposal

        left = int(np.floor(self.max_steps * rng.uniform()))
        right = self.max_steps - 1 - left
        while left > 0 and log_density(at(lower)) > log_y:
            lower -= self.width
            left -= 1
        while right > 0 and log_density(at(upper)) > log_y:
            upper += self.width
            right -= 1

        for _ in range(10 * self.max_steps):
            proposal = at(lower + rng.uniform() * (upper - lower))
            logp_new = log_density(proposal)
            if logp_new > log_y:
                return proposal, logp_new
            if proposal[d] < x0:
                lower = proposal[d]
            else:
                upper = proposal[d]
        raise SamplingError(f"slice shrinkage failed on coordinate {d}")
