"""
empirical.py
------------

Single-surrogate posterior models.

- EmpiricalBayesPosterior : hyperparameters are the MAP estimate under the
  current observations (type-II maximum likelihood with a prior).
- FixedPosterior          : hyperparameters stay at the prior mean.

Both expose the same interface as MCMCPosterior, so the optimization loop can
switch between hyperparameter treatments through ``Parameters.learning``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import jax.numpy as jnp

from mcbo.errors import EvaluationError, SurrogateFitError
from mcbo.inference import create_sampler
from mcbo.posterior.base_posterior import PosteriorModel, PrimaryParticle, call_particle

if TYPE_CHECKING:
    from mcbo.acquisition.base import CriterionFactory
    from mcbo.inference.base import HyperparameterSampler
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import GaussianDistribution
    from mcbo.parameters import Parameters

logger = logging.getLogger(__name__)


class EmpiricalBayesPosterior(PosteriorModel):
    """
    Posterior model with one surrogate at the MAP hyperparameters.

    Parameters
    ----------
    input_dim : int
    params : Parameters
    key : jax.Array
    sampler : HyperparameterSampler | None
        Defaults to MAPOptimizer built from params.
    surrogate_cls, criterion_factory
        As for MCMCPosterior.
    """

    def __init__(
        self,
        input_dim: int,
        params: Parameters,
        key: Any,
        *,
        sampler: HyperparameterSampler | None = None,
        surrogate_cls: type[Surrogate] | None = None,
        criterion_factory: CriterionFactory | None = None,
    ):
        super().__init__(
            input_dim,
            params,
            key,
            surrogate_cls=surrogate_cls,
            criterion_factory=criterion_factory,
        )
        self.sampler = sampler or create_sampler("map", params)
        self.theta = self.prior.mean()
        self._pair = self._build(self.theta)

    def _build(self, theta: jnp.ndarray) -> PrimaryParticle:
        surrogate = self.surrogate_cls(theta, self.input_dim, self.params)
        criterion = self.criterion_factory(surrogate, self.params, self._next_key())
        return PrimaryParticle(surrogate, criterion)

    @property
    def primary(self) -> PrimaryParticle:
        return self._pair

    @property
    def hyperparameters(self) -> jnp.ndarray:
        """Current particle, shape (1, input_dim + 2)."""
        return self.theta[None, :]

    def update_hyper_parameters(self) -> None:
        with self._lock:
            target = self._target()
            initial = self._initial_particle(target, self.theta)
            (theta, *_) = self._sample_particles(self.sampler, target, initial, None)
            pair = self._build(theta)
            self.theta, self._pair = theta, pair
        logger.info("Updated MAP hyperparameters from %d observations", len(self.data))

    def fit_surrogate_model(self) -> None:
        with self._lock:
            surrogate, data = self._pair.surrogate, self.data
            call_particle(lambda: surrogate.fit(data), SurrogateFitError, "fit")

    def update_surrogate_model(self) -> None:
        with self._lock:
            if len(self.data) == 0:
                raise SurrogateFitError("No observations to update with", operation="update")
            x, y = self.data.last()
            surrogate = self._pair.surrogate
            call_particle(lambda: surrogate.update(x, y), SurrogateFitError, "update")

    def evaluate_criteria(self, query) -> float | jnp.ndarray:
        q = self._as_query(query)
        criterion = self._pair.criterion
        value = jnp.asarray(
            call_particle(lambda: criterion.evaluate(q), EvaluationError, "evaluate")
        )
        if not bool(jnp.all(jnp.isfinite(value))):
            raise EvaluationError("criterion value is not finite", operation="evaluate")
        return float(value) if q.ndim <= 1 else value

    def update_criteria(self, query) -> None:
        q = self._as_query(query)
        criterion = self._pair.criterion
        call_particle(lambda: criterion.update(q), EvaluationError, "update_criteria")

    def criteria_requires_comparison(self) -> bool:
        return bool(self._pair.criterion.require_comparison())

    def set_first_criterium(self) -> None:
        self._pair.criterion.initial_criteria()

    def set_next_criterium(self, prev_result) -> bool:
        criterion = self._pair.criterion
        criterion.push_result(prev_result)
        return bool(criterion.rotate_criteria())

    def get_best_criteria(self) -> tuple[str, jnp.ndarray]:
        return self._pair.criterion.get_best_criteria()

    def get_prediction(self, query) -> GaussianDistribution:
        return self._pair.surrogate.predict(self._as_query(query))


class FixedPosterior(EmpiricalBayesPosterior):
    """
    Posterior model whose hyperparameters never leave the prior mean.

    update_hyper_parameters() only rebuilds the surrogate and criterion.
    """

    def update_hyper_parameters(self) -> None:
        with self._lock:
            self._target()
            self._pair = self._build(self.theta)
        logger.debug("Rebuilt surrogate at fixed hyperparameters")
