"""
base.py
-------

Base class for surrogate models.

A surrogate is a regression model conditioned on one fixed hyperparameter
particle. The posterior layer owns one surrogate per particle and only ever
talks to it through this interface:

- fit(data)        --> condition on the full observation set
- update(x, y)     --> add one observation without refitting
- predict(query)   --> predictive distribution at query point(s)
- state            --> opaque fit state, read/written for rollback
- log_likelihood() --> log p(y | X, θ) as a function of θ, used by samplers

Design
------
Surrogates are cheap to rebuild and never change their particle: a new
hyperparameter sample means a new surrogate instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

import jax.numpy as jnp

from mcbo.parameters import Parameters

if TYPE_CHECKING:
    from mcbo.data import Dataset
    from mcbo.model.distribution import GaussianDistribution


class Surrogate(ABC):
    """
    Abstract base class for surrogate models.

    Parameters
    ----------
    theta : jnp.ndarray
        Hyperparameter particle (log space).
    input_dim : int
        Dimensionality of the query space.
    params : Parameters | None
        Posterior-model configuration. If None, uses defaults.

    Attributes
    ----------
    _state : Any
        Fit state; None until fit() succeeds.
    """

    name: str = "surrogate"

    def __init__(self, theta, input_dim: int, params: Parameters | None = None):
        self._theta = jnp.asarray(theta)
        self.input_dim = input_dim
        self.params = params or Parameters()
        self._state: Any = None

    @property
    def theta(self) -> jnp.ndarray:
        """The particle this surrogate is conditioned on."""
        return self._theta

    @property
    def state(self) -> Any:
        """Opaque fit state (None if not fitted)."""
        return self._state

    @state.setter
    def state(self, value: Any) -> None:
        self._state = value

    @property
    def is_fitted(self) -> bool:
        return self._state is not None

    @classmethod
    def n_hyperparameters(cls, input_dim: int) -> int:
        """Length of the particle vector this surrogate consumes."""
        return input_dim + 2

    # ------------------------------------------------------------------
    # Abstract methods (must be implemented by subclasses)
    # ------------------------------------------------------------------

    @abstractmethod
    def fit(self, data: Dataset) -> None:
        """
        Condition on all observations.

        Raises
        ------
        SurrogateFitError
            On numerical failure. The previous state must be left untouched.
        """
        ...

    @abstractmethod
    def update(self, x, y: float) -> None:
        """
        Add one observation incrementally.

        Raises
        ------
        SurrogateFitError
            On numerical failure or if called before fit().
        """
        ...

    @abstractmethod
    def predict(self, query) -> GaussianDistribution:
        """
        Predictive distribution at ``query``.

        Parameters
        ----------
        query : jnp.ndarray
            Shape (input_dim,) for one point or (n, input_dim) for a batch.
        """
        ...

    @property
    @abstractmethod
    def best_observation(self) -> float:
        """Lowest observed value the surrogate is conditioned on."""
        ...

    @classmethod
    @abstractmethod
    def log_likelihood(
        cls, data: Dataset, params: Parameters
    ) -> Callable[[jnp.ndarray], jnp.ndarray]:
        """
        Return θ -> log p(y | X, θ) for the given observations.
        """
        ...
