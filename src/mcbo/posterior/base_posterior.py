"""
base_posterior.py
-----------------

Abstract base class for posterior models in mcbo.

Defines the common interface for all posterior types:

- FixedPosterior          : one surrogate, prior-mean hyperparameters
- EmpiricalBayesPosterior : one surrogate, MAP hyperparameters
- MCMCPosterior           : one surrogate per MCMC hyperparameter particle

Why this matters
----------------
Different hyperparameter treatments yield very different internal
structures (one surrogate vs. an ensemble). A common interface lets the outer
optimization loop treat every posterior model as a single
surrogate + criterion pair:

    update_hyper_parameters -> fit_surrogate_model / update_surrogate_model
    -> evaluate_criteria / update_criteria
    -> criteria rotation (set_first_criterium, set_next_criterium,
       get_best_criteria) -> get_prediction
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, NamedTuple

import jax.numpy as jnp
import jax.random as jr
import numpy as np

from mcbo.acquisition import create_criterion
from mcbo.data import Dataset
from mcbo.errors import ConfigurationError, MCBOError, SamplingError
from mcbo.inference.base import HyperparameterTarget
from mcbo.model import HyperparameterPrior, get_surrogate_class

if TYPE_CHECKING:
    from mcbo.acquisition.base import Criterion, CriterionFactory
    from mcbo.model.base import Surrogate
    from mcbo.model.distribution import GaussianDistribution
    from mcbo.parameters import Parameters


class PrimaryParticle(NamedTuple):
    """The (surrogate, criterion) pair that owns shared decisions."""

    surrogate: Surrogate
    criterion: Criterion


def call_particle(
    fn: Callable[[], Any],
    error_cls: type[MCBOError],
    operation: str,
    particle: int | None = None,
) -> Any:
    """
    Run one per-particle call, re-raising any failure as ``error_cls``.

    The failing particle index and operation name are attached to the error.
    """
    try:
        return fn()
    except Exception as err:
        raise error_cls(
            f"{operation} failed: {err}", particle=particle, operation=operation
        ) from err


class PosteriorModel(ABC):
    """
    Abstract base class for posterior models.

    Parameters
    ----------
    input_dim : int
        Dimensionality of the query space.
    params : Parameters
        Configuration.
    key : jax.Array
        PRNG key; every random choice of the model is derived from it.
    surrogate_cls : type[Surrogate] | None
        Surrogate class. Defaults to the one named by params.surrogate.
    criterion_factory : callable | None
        (surrogate, params, key) -> Criterion. Defaults to the criterion
        named by params.criterion.

    Attributes
    ----------
    data : Dataset
        All observations collected so far.
    prior : HyperparameterPrior
        Prior over hyperparameter particles.

    Notes
    -----
    Posterior models own heap-allocated surrogate/criterion state; shallow or
    deep copies are refused. Use ``clone()`` where offered.
    """

    def __init__(
        self,
        input_dim: int,
        params: Parameters,
        key: Any,
        *,
        surrogate_cls: type[Surrogate] | None = None,
        criterion_factory: CriterionFactory | None = None,
    ):
        if input_dim < 1:
            raise ConfigurationError(f"input_dim must be >= 1, got {input_dim}")
        self.input_dim = input_dim
        self.params = params
        self._key = key
        self.data = Dataset()
        self.prior = HyperparameterPrior.from_parameters(input_dim, params)
        self.surrogate_cls = surrogate_cls or get_surrogate_class(params.surrogate)
        self.criterion_factory = criterion_factory or partial(
            create_criterion, params.criterion
        )
        self._lock = threading.RLock()

    def _next_key(self) -> Any:
        self._key, subkey = jr.split(self._key)
        return subkey

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied; use clone()")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied; use clone()")

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def add_sample(self, x, y: float) -> None:
        """Append one observation of the objective."""
        x = np.atleast_1d(np.asarray(x, dtype=float))
        if x.shape != (self.input_dim,):
            raise ConfigurationError(
                f"Dimension mismatch: expected ({self.input_dim},), got {x.shape}"
            )
        with self._lock:
            self.data.add_sample(x, y)

    def _as_query(self, query) -> jnp.ndarray:
        """Query as an array; a scalar counts as one point when input_dim == 1."""
        q = jnp.asarray(query)
        if q.ndim == 0 and self.input_dim == 1:
            q = q[None]
        return q

    def set_samples(self, X, y) -> None:
        """Replace all observations."""
        data = Dataset.from_arrays(X, y)
        if data.input_dim not in (None, self.input_dim):
            raise ConfigurationError(
                f"Dimension mismatch: expected {self.input_dim} inputs, "
                f"got {data.input_dim}"
            )
        with self._lock:
            self.data = data

    def best_observation(self) -> tuple[np.ndarray, float]:
        """Return the (x, y) pair with the lowest observed value."""
        return self.data.best()

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _target(self) -> HyperparameterTarget:
        if self.data.input_dim not in (None, self.input_dim):
            raise ConfigurationError(
                f"Dimension mismatch: observations have {self.data.input_dim} "
                f"inputs, model expects {self.input_dim}"
            )
        return HyperparameterTarget(
            prior=self.prior,
            log_likelihood=self.surrogate_cls.log_likelihood(self.data, self.params),
        )

    def _initial_particle(self, target: HyperparameterTarget, candidate) -> jnp.ndarray:
        """Start the chain at ``candidate`` when it has finite density."""
        if candidate is not None and bool(jnp.isfinite(target.log_prob(candidate))):
            return candidate
        return target.prior.mean()

    def _sample_particles(
        self, sampler, target: HyperparameterTarget, initial, n_expected: int | None
    ) -> list[jnp.ndarray]:
        """Run the sampler and validate its output."""
        try:
            particles = list(sampler.sample(target, self._next_key(), initial=initial))
        except SamplingError:
            raise
        except Exception as err:
            raise SamplingError(f"sampler failed: {err}") from err

        if n_expected is not None and len(particles) != n_expected:
            raise SamplingError(
                f"sampler returned {len(particles)} particles, expected {n_expected}"
            )
        if not particles:
            raise SamplingError("sampler returned no particles")
        validated = []
        for i, theta in enumerate(particles):
            theta = jnp.asarray(theta)
            if theta.shape != (target.dim,):
                raise SamplingError(
                    f"particle {i} has shape {theta.shape}, expected ({target.dim},)"
                )
            if not bool(jnp.all(jnp.isfinite(theta))):
                raise SamplingError(f"particle {i} is not finite")
            validated.append(theta)
        return validated

    # ------------------------------------------------------------------
    # Posterior model surface
    # ------------------------------------------------------------------

    @abstractmethod
    def update_hyper_parameters(self) -> None:
        """
        Re-learn hyperparameters from all observations and rebuild the
        surrogate(s) and criteria from scratch.

        Raises
        ------
        ConfigurationError
            Invalid particle count or dimensionality.
        SamplingError
            The sampler cannot produce valid particles.
        """
        ...

    @abstractmethod
    def fit_surrogate_model(self) -> None:
        """Fit the surrogate(s) to all observations."""
        ...

    @abstractmethod
    def update_surrogate_model(self) -> None:
        """Add the latest observation to the surrogate(s) incrementally."""
        ...

    @abstractmethod
    def evaluate_criteria(self, query) -> float | jnp.ndarray:
        """Criterion value at ``query`` (higher is better)."""
        ...

    @abstractmethod
    def update_criteria(self, query) -> None:
        """Tell the criteria that ``query`` was selected."""
        ...

    @abstractmethod
    def criteria_requires_comparison(self) -> bool:
        ...

    @abstractmethod
    def set_first_criterium(self) -> None:
        ...

    @abstractmethod
    def set_next_criterium(self, prev_result) -> bool:
        ...

    @abstractmethod
    def get_best_criteria(self) -> tuple[str, jnp.ndarray]:
        ...

    @abstractmethod
    def get_prediction(self, query) -> GaussianDistribution:
        ...
