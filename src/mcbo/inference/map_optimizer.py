"""
map_optimizer.py
----------------

MAP (Maximum A Posteriori) hyperparameters using Optax.

- Uses gradient ascent on the log posterior over θ.
- Defaults to Adam, but any Optax optimizer can be passed in.

Connections
-----------
- Maximizes HyperparameterTarget.log_prob(θ).
- Returns a single particle, so empirical Bayes posteriors can use it through
  the same sampler interface as MCMC.
"""

from __future__ import annotations

import logging
from typing import Any

import jax
import jax.numpy as jnp
import optax

from mcbo.errors import SamplingError
from mcbo.inference.base import HyperparameterSampler, HyperparameterTarget

logger = logging.getLogger(__name__)


class MAPOptimizer(HyperparameterSampler):
    """
    MAP (Maximum A Posteriori) optimizer.

    Parameters
    ----------
    steps : int, default=200
        Number of optimization steps.
    learning_rate : float, default=0.05
        Learning rate for the default optimizer (Adam).
    optimizer : optax.GradientTransformation, optional
        Optax optimizer to use.
    track_history : bool, optional
        When True, record loss history during fitting for plotting.
    log_every : int, optional
        Record every N steps (also records the last step).

    Notes
    -----
    - Loss function = negative log posterior.
    - Gradients computed with jax.grad.
    """

    def __init__(
        self,
        steps: int = 200,
        learning_rate: float = 0.05,
        optimizer: optax.GradientTransformation | None = None,
        *,
        track_history: bool = False,
        log_every: int = 10,
    ):
        super().__init__(1)
        self.steps = steps
        self.optimizer = optimizer or optax.adam(learning_rate=learning_rate)
        self.track_history = track_history
        self.log_every = max(1, int(log_every))
        # Exposed after fit() when tracking is enabled
        self.loss_steps: list[int] = []
        self.loss_history: list[float] = []

    def fit(
        self, target: HyperparameterTarget, init_params: jnp.ndarray | None = None
    ) -> jnp.ndarray:
        """
        Maximize the log posterior.

        Parameters
        ----------
        target : HyperparameterTarget
            Log density over particles.
        init_params : jnp.ndarray | None, optional
            Starting particle. Defaults to the prior mean.

        Returns
        -------
        jnp.ndarray
            MAP particle.

        Raises
        ------
        SamplingError
            If the starting point or the optimum has a non-finite objective.
        """

        def loss_fn(theta):
            return -target.log_prob(theta)

        theta = jnp.asarray(target.prior.mean() if init_params is None else init_params)
        if not jnp.isfinite(loss_fn(theta)):
            raise SamplingError("log density is not finite at the initial particle")
        opt_state = self.optimizer.init(theta)

        @jax.jit
        def step(theta, opt_state):
            loss, grads = jax.value_and_grad(loss_fn)(theta)
            updates, opt_state = self.optimizer.update(grads, opt_state, theta)
            theta = optax.apply_updates(theta, updates)
            return theta, opt_state, loss

        if self.track_history:
            self.loss_steps.clear()
            self.loss_history.clear()

        for i in range(self.steps):
            new_theta, opt_state, loss = step(theta, opt_state)
            if self.track_history and (
                (i % self.log_every == 0) or (i == self.steps - 1)
            ):
                self.loss_steps.append(i)
                self.loss_history.append(float(loss))
            if not bool(jnp.all(jnp.isfinite(new_theta))):
                logger.warning("MAP optimization diverged at step %d, stopping early", i)
                break
            theta = new_theta

        final_loss = float(loss_fn(theta))
        if not jnp.isfinite(final_loss):
            raise SamplingError("MAP optimization did not reach a finite optimum")
        logger.debug("MAP optimization finished, loss %.4f", final_loss)
        return theta

    def sample(
        self, target: HyperparameterTarget, key: Any, initial: jnp.ndarray | None = None
    ) -> list[jnp.ndarray]:
        return [self.fit(target, init_params=initial)]

    # Optional helper
    def get_history(self) -> tuple[list[int], list[float]]:
        """Return (steps, losses) recorded during the last fit when tracking was enabled."""
        return self.loss_steps, self.loss_history
