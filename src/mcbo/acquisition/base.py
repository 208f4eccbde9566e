"""
base.py
-------

Base class for criteria (acquisition functions bound to a surrogate).

Design
------
The functional acquisition forms (expected_improvement, ...) take a
predictive distribution and return scores. A *criterion* wraps one of them
around a specific surrogate so the posterior layer can hold one per particle
and drive them through a uniform protocol:

- evaluate(query)        --> score(s), higher = better
- update(query)          --> running statistics after a query is selected
- require_comparison()   --> True when several criteria compete (portfolio)
- initial_criteria()     --> reset the rotation at the first member
- push_result(x)         --> record the point nominated by the active member
- rotate_criteria()      --> move to the next member; False when exhausted
- get_best_criteria()    --> (label, best point) after a full rotation

Single criteria take part in the rotation protocol trivially: they never
require comparison, never rotate, and report the last pushed point.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

import jax.numpy as jnp
import jax.random as jr

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate


class Criterion(ABC):
    """
    Abstract base class for criteria.

    Parameters
    ----------
    surrogate : Surrogate
        Surrogate model the criterion reads predictions from.
    key : jax.Array | None
        PRNG key for criteria that make random choices.

    Attributes
    ----------
    n_updates : int
        Number of update() calls.
    last_query : jnp.ndarray | None
        Query passed to the last update() call.
    """

    name: str = "criterion"

    def __init__(self, surrogate: Surrogate, key: Any = None):
        self.surrogate = surrogate
        self._key = key if key is not None else jr.PRNGKey(0)
        self.n_updates = 0
        self.last_query: jnp.ndarray | None = None
        self._best: jnp.ndarray | None = None

    @abstractmethod
    def evaluate(self, query) -> jnp.ndarray:
        """
        Score query point(s).

        Parameters
        ----------
        query : jnp.ndarray
            Shape (input_dim,) or (n, input_dim).

        Returns
        -------
        jnp.ndarray
            Scalar or shape (n,). Higher is better.
        """
        ...

    def __call__(self, query) -> jnp.ndarray:
        return self.evaluate(query)

    def update(self, query) -> None:
        """Record that ``query`` was selected."""
        self.n_updates += 1
        self.last_query = jnp.asarray(query)

    @property
    def update_state(self) -> Any:
        """Everything update() changes; assign it back to undo updates."""
        return self.n_updates, self.last_query

    @update_state.setter
    def update_state(self, state: Any) -> None:
        self.n_updates, self.last_query = state

    # ------------------------------------------------------------------
    # Rotation protocol
    # ------------------------------------------------------------------

    @property
    def active_index(self) -> int:
        """Index of the active member criterion."""
        return 0

    @property
    def active_name(self) -> str:
        return self.name

    def require_comparison(self) -> bool:
        return False

    def initial_criteria(self) -> None:
        self._best = None

    def push_result(self, prev_result) -> None:
        self._best = jnp.asarray(prev_result)

    def rotate_criteria(self) -> bool:
        return False

    def get_best_criteria(self) -> tuple[str, jnp.ndarray]:
        """
        Return (label, best point).

        Raises
        ------
        RuntimeError
            If no result was pushed since initial_criteria().
        """
        if self._best is None:
            raise RuntimeError("No result pushed. Call push_result() first.")
        return self.name, self._best


# Type alias for convenience
CriterionFactory = Callable[..., Criterion]
