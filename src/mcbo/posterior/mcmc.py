"""
mcmc.py
-------

Fully Bayesian posterior model over surrogate hyperparameters.

MCMCPosterior keeps one (surrogate, criterion) pair per MCMC hyperparameter
particle and presents the whole ensemble to the optimization loop as a single
model:

- Criterion values are averaged over particles (Monte Carlo estimate of the
  integrated criterion).
- Fitting, incremental updates and criterion updates fan out to every
  particle.
- Shared decisions (does the criterion need comparison, which rotation member
  won, the predictive distribution) are delegated to particle 0.

Rebuilds are transactional: update_hyper_parameters() samples the new
particles and builds the complete new (particles, surrogates, criteria) set
before replacing the previous one in a single assignment.

Connections
-----------
- Particles come from a HyperparameterSampler (inference/).
- Surrogates and criteria come from the model/ and acquisition/ registries,
  or from injected factories.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Sequence

import jax.numpy as jnp

from mcbo.errors import ConfigurationError, EvaluationError, SurrogateFitError
from mcbo.inference import create_sampler
from mcbo.posterior.base_posterior import PosteriorModel, PrimaryParticle, call_particle
from mcbo.utils.rng import split

if TYPE_CHECKING:
    from mcbo.acquisition.base import Criterion, CriterionFactory
    from mcbo.inference.base import HyperparameterSampler
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import GaussianDistribution
    from mcbo.parameters import Parameters

logger = logging.getLogger(__name__)


class ParticleSet(NamedTuple):
    """
    Immutable snapshot of the ensemble.

    Entry i of every field belongs to particle i; criteria[i] is bound to
    surrogates[i].
    """

    particles: tuple[jnp.ndarray, ...]
    surrogates: tuple[Surrogate, ...]
    criteria: tuple[Criterion, ...]

    @property
    def n_particles(self) -> int:
        return len(self.particles)


class MCMCPosterior(PosteriorModel):
    """
    Ensemble posterior model with one surrogate per hyperparameter particle.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    params : Parameters
        Configuration; ``n_particles`` fixes the ensemble size.
    key : jax.Array
        PRNG key.
    sampler : HyperparameterSampler | None
        Defaults to the sampler named by params.sampler.
    surrogate_cls : type[Surrogate] | None
        Defaults to the surrogate named by params.surrogate.
    criterion_factory : callable | None
        (surrogate, params, key) -> Criterion.

    Notes
    -----
    The ensemble is populated from the hyperparameter prior at construction,
    so every operation is usable before the first update_hyper_parameters().
    With ``params.n_workers > 1`` per-particle work runs on a thread pool;
    call close() (or use the model as a context manager) to release it.

    Examples
    --------
    >>> model = MCMCPosterior(1, Parameters(n_particles=5), jr.PRNGKey(0))
    >>> model.set_samples(X, y)
    >>> model.update_hyper_parameters()
    >>> model.fit_surrogate_model()
    >>> model.evaluate_criteria(jnp.array([0.3]))
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
        if params.n_particles < 1:
            raise ConfigurationError(
                f"n_particles must be >= 1, got {params.n_particles}"
            )
        self._n_particles = params.n_particles
        self.sampler = sampler or create_sampler(params.sampler, params)
        self._check_sampler()
        self._executor: ThreadPoolExecutor | None = None
        self._particles = self._build(
            self.prior.sample(self._next_key(), self._n_particles)
        )

    def _check_sampler(self) -> None:
        if self._n_particles < 1:
            raise ConfigurationError(f"n_particles must be >= 1, got {self._n_particles}")
        if self.sampler.n_particles != self._n_particles:
            raise ConfigurationError(
                f"sampler draws {self.sampler.n_particles} particles, "
                f"ensemble holds {self._n_particles}"
            )

    # ------------------------------------------------------------------
    # Ensemble construction
    # ------------------------------------------------------------------

    def _set_surrogate_model(
        self, particles: Sequence[jnp.ndarray]
    ) -> tuple[Surrogate, ...]:
        """One fresh surrogate per particle."""
        return tuple(
            self.surrogate_cls(theta, self.input_dim, self.params) for theta in particles
        )

    def _set_criteria(self, surrogates: Sequence[Surrogate]) -> tuple[Criterion, ...]:
        """One fresh criterion per surrogate, each with its own key."""
        keys = split(self._next_key(), len(surrogates))
        return tuple(
            self.criterion_factory(surrogate, self.params, k)
            for surrogate, k in zip(surrogates, keys)
        )

    def _build(self, particles: Sequence[jnp.ndarray]) -> ParticleSet:
        surrogates = self._set_surrogate_model(particles)
        criteria = self._set_criteria(surrogates)
        return ParticleSet(tuple(particles), surrogates, criteria)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def n_particles(self) -> int:
        """Ensemble size, fixed at construction."""
        return self._n_particles

    @property
    def particles(self) -> ParticleSet:
        """Current ensemble snapshot."""
        return self._particles

    @property
    def primary(self) -> PrimaryParticle:
        """Particle 0's surrogate and criterion."""
        ps = self._particles
        return PrimaryParticle(ps.surrogates[0], ps.criteria[0])

    @property
    def hyperparameters(self) -> jnp.ndarray:
        """Stacked particles, shape (n_particles, input_dim + 2)."""
        return jnp.stack(self._particles.particles)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.params.n_workers, thread_name_prefix="mcbo-particle"
            )
        return self._executor

    def _fan_out(
        self,
        items: Sequence[Any],
        fn: Callable[[Any], Any],
        error_cls: type,
        operation: str,
    ) -> list:
        """
        Apply ``fn`` to every particle's item, in particle order.

        The error of the lowest failing particle index is raised. Sequential
        runs stop at the first failure; pooled runs wait for every particle.
        """

        def run(i, item):
            return call_particle(lambda: fn(item), error_cls, operation, particle=i)

        if self.params.n_workers <= 1 or len(items) <= 1:
            return [run(i, item) for i, item in enumerate(items)]

        executor = self._get_executor()
        futures = [executor.submit(run, i, item) for i, item in enumerate(items)]
        results, first_error = [], None
        for future in futures:
            try:
                results.append(future.result())
            except error_cls as err:
                if first_error is None:
                    first_error = err
        if first_error is not None:
            raise first_error
        return results

    # ------------------------------------------------------------------
    # Hyperparameters and surrogates
    # ------------------------------------------------------------------

    def update_hyper_parameters(self) -> None:
        """
        Resample hyperparameter particles and rebuild the ensemble.

        The chain starts from the last particle of the previous ensemble
        (falling back to the prior mean when that particle has no density
        under the current data). Surrogates and criteria are created fresh
        and are unfitted afterwards.

        Raises
        ------
        ConfigurationError
            Observation dimensionality does not match input_dim, or the
            sampler no longer draws n_particles particles.
        SamplingError
            Sampler failure, wrong particle count or non-finite particles.
            The previous ensemble is left untouched.
        """
        with self._lock:
            self._check_sampler()
            target = self._target()
            initial = self._initial_particle(target, self._particles.particles[-1])
            particles = self._sample_particles(
                self.sampler, target, initial, self.n_particles
            )
            new_set = self._build(particles)
            self._particles = new_set
        logger.info(
            "Resampled %d hyperparameter particles from %d observations",
            self.n_particles,
            len(self.data),
        )

    def _with_rollback(
        self,
        items: Sequence[Any],
        fn: Callable[[Any], Any],
        error_cls: type,
        operation: str,
        attr: str,
    ) -> None:
        """Fan ``fn`` out over ``items``; on failure restore every item's ``attr``."""
        snapshots = [getattr(item, attr) for item in items]
        try:
            self._fan_out(items, fn, error_cls, operation)
        except error_cls as err:
            for item, state in zip(items, snapshots):
                setattr(item, attr, state)
            logger.warning("%s failed, restored previous state: %s", operation, err)
            raise

    def fit_surrogate_model(self) -> None:
        """
        Fit every particle's surrogate to all observations.

        Raises
        ------
        SurrogateFitError
            Carries the lowest failing particle index. All surrogates are
            restored to their state before the call.
        """
        with self._lock:
            data = self.data
            self._with_rollback(
                self._particles.surrogates,
                lambda surrogate: surrogate.fit(data),
                SurrogateFitError,
                "fit",
                "state",
            )
        logger.debug("Fitted %d surrogates on %d observations", self.n_particles, len(data))

    def update_surrogate_model(self) -> None:
        """
        Add the most recent observation to every surrogate.

        Raises
        ------
        SurrogateFitError
            No observations, or a particle's update failed. All surrogates are
            restored to their state before the call.
        """
        with self._lock:
            if len(self.data) == 0:
                raise SurrogateFitError("No observations to update with", operation="update")
            x, y = self.data.last()
            self._with_rollback(
                self._particles.surrogates,
                lambda surrogate: surrogate.update(x, y),
                SurrogateFitError,
                "update",
                "state",
            )

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def evaluate_criteria(self, query) -> float | jnp.ndarray:
        """
        Arithmetic mean of every particle's criterion at ``query``.

        Parameters
        ----------
        query : array-like
            Shape (input_dim,) or (n, input_dim); a scalar when input_dim == 1.

        Returns
        -------
        float | jnp.ndarray
            A float for a single point, an array of shape (n,) otherwise.

        Raises
        ------
        EvaluationError
            A particle's criterion failed or returned a non-finite value.
        """
        q = self._as_query(query)
        with self._lock:
            values = self._fan_out(
                self._particles.criteria,
                lambda criterion: jnp.asarray(criterion.evaluate(q)),
                EvaluationError,
                "evaluate",
            )
        for i, value in enumerate(values):
            if not bool(jnp.all(jnp.isfinite(value))):
                raise EvaluationError(
                    "criterion value is not finite", particle=i, operation="evaluate"
                )
        mean = jnp.mean(jnp.stack(values), axis=0)
        return float(mean) if q.ndim <= 1 else mean

    def update_criteria(self, query) -> None:
        """
        Tell every particle's criterion that ``query`` was selected.

        Raises
        ------
        EvaluationError
            Carries the lowest failing particle index. Every criterion's
            update_state is restored to its value before the call.
        """
        q = self._as_query(query)
        with self._lock:
            self._with_rollback(
                self._particles.criteria,
                lambda criterion: criterion.update(q),
                EvaluationError,
                "update_criteria",
                "update_state",
            )

    def criteria_requires_comparison(self) -> bool:
        return bool(self.primary.criterion.require_comparison())

    def set_first_criterium(self) -> None:
        """Reset the rotation of every particle's criterion."""
        with self._lock:
            for criterion in self._particles.criteria:
                criterion.initial_criteria()

    def set_next_criterium(self, prev_result) -> bool:
        """
        Record the nominee of the active member and advance the rotation.

        The result is pushed to particle 0 only, since only particle 0 reports
        the winner. Every particle rotates so all rotations stay aligned, and
        the last particle's answer is returned.

        Returns
        -------
        bool
            True while further members remain to be evaluated.
        """
        with self._lock:
            criteria = self._particles.criteria
            criteria[0].push_result(prev_result)
            more = False
            for criterion in criteria:
                more = criterion.rotate_criteria()
            return bool(more)

    def get_best_criteria(self) -> tuple[str, jnp.ndarray]:
        """(label, best point) reported by particle 0's criterion."""
        with self._lock:
            return self.primary.criterion.get_best_criteria()

    def get_prediction(self, query) -> GaussianDistribution:
        """Predictive distribution of particle 0's surrogate."""
        return self.primary.surrogate.predict(self._as_query(query))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clone(self, key: Any = None) -> MCMCPosterior:
        """
        Independent copy with the same particles and observations.

        Surrogates and criteria are rebuilt (and refitted when the original
        ensemble was fitted); no state is shared with this model.
        """
        with self._lock:
            other = MCMCPosterior(
                self.input_dim,
                replace(self.params, n_particles=self._n_particles),
                self._next_key() if key is None else key,
                sampler=self.sampler,
                surrogate_cls=self.surrogate_cls,
                criterion_factory=self.criterion_factory,
            )
            other.data = self.data.copy()
            ps = self._particles
            other._particles = other._build(ps.particles)
            fitted = all(surrogate.is_fitted for surrogate in ps.surrogates)
        if fitted and len(other.data) > 0:
            other.fit_surrogate_model()
        return other

    def close(self) -> None:
        """Release the worker pool, if any."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> MCMCPosterior:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
