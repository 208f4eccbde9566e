"""
hedge.py
--------

GP-Hedge: online selection among a portfolio of criteria.

Each proposal round rotates through the member criteria. Every member
nominates its best point (push_result); the rotation reports exhaustion
(rotate_criteria -> False); then get_best_criteria picks one nominee at
random with probabilities softmax(η · gains) and charges every member its
loss, the surrogate's predicted objective value at its nominee.

State split
-----------
- Control state: active member index, nominees, gains, PRNG key.
- Evaluation state: the member criteria and their surrogate.

When used inside an ensemble, only the primary particle receives
push_result and get_best_criteria; all particles rotate together.

References
----------
Hoffman, M., Brochu, E., & de Freitas, N. (2011). Portfolio allocation for
Bayesian optimization. UAI.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Sequence

import jax
import jax.numpy as jnp
import jax.random as jr

from mcbo.acquisition.base import Criterion
from mcbo.errors import ConfigurationError

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate

logger = logging.getLogger(__name__)


class GPHedge(Criterion):
    """
    Hedge portfolio over member criteria.

    Parameters
    ----------
    surrogate : Surrogate
        Surrogate shared with the members; used to score nominees.
    key : jax.Array | None
        PRNG key for the random member choice.
    members : sequence of Criterion
        At least two criteria bound to the same surrogate.
    eta : float | None
        Learning rate. If None, η = min(10, sqrt(2 log K / spread)) where
        spread is the range of the current gains.

    Attributes
    ----------
    gains : jnp.ndarray, shape (K,)
        Cumulative (centered) rewards per member.
    probabilities : jnp.ndarray, shape (K,)
        Selection probabilities of the last round.
    """

    name = "hedge"

    def __init__(
        self,
        surrogate: Surrogate,
        key: Any = None,
        *,
        members: Sequence[Criterion],
        eta: float | None = None,
    ):
        super().__init__(surrogate, key)
        if len(members) < 2:
            raise ConfigurationError("hedge needs at least two member criteria")
        self.members = list(members)
        self.eta = eta
        self._index = 0
        self._nominees: list[jnp.ndarray] = []
        self._losses: list[float] = []
        self.gains = jnp.zeros(len(self.members))
        self.probabilities = jnp.full(len(self.members), 1.0 / len(self.members))

    @property
    def active_index(self) -> int:
        return self._index

    @property
    def active_name(self) -> str:
        return self.members[self._index].name

    def evaluate(self, query) -> jnp.ndarray:
        return self.members[self._index].evaluate(query)

    def update(self, query) -> None:
        super().update(query)
        for member in self.members:
            member.update(query)

    @property
    def update_state(self) -> Any:
        own = (self.n_updates, self.last_query)
        return own, tuple(member.update_state for member in self.members)

    @update_state.setter
    def update_state(self, state: Any) -> None:
        (self.n_updates, self.last_query), members = state
        for member, member_state in zip(self.members, members):
            member.update_state = member_state

    # ------------------------------------------------------------------
    # Rotation protocol
    # ------------------------------------------------------------------

    def require_comparison(self) -> bool:
        return True

    def initial_criteria(self) -> None:
        self._index = 0
        self._nominees = []
        self._losses = []

    def push_result(self, prev_result) -> None:
        x = jnp.asarray(prev_result)
        self._nominees.append(x)
        self._losses.append(float(self.surrogate.predict(x).mean))

    def rotate_criteria(self) -> bool:
        if self._index + 1 >= len(self.members):
            return False
        self._index += 1
        return True

    def get_best_criteria(self) -> tuple[str, jnp.ndarray]:
        if len(self._nominees) != len(self.members):
            raise RuntimeError(
                f"Hedge needs one nominee per member criterion, "
                f"got {len(self._nominees)}/{len(self.members)}"
            )
        choice = self._update_hedge()
        return self.members[choice].name, self._nominees[choice]

    def _learning_rate(self, gains: jnp.ndarray) -> float:
        if self.eta is not None:
            return self.eta
        spread = float(jnp.max(gains) - jnp.min(gains))
        if spread <= 0.0:
            return 10.0
        return min(10.0, math.sqrt(2.0 * math.log(len(self.members)) / spread))

    def _update_hedge(self) -> int:
        # Only differences matter; centering keeps the softmax finite.
        gains = self.gains - jnp.max(self.gains)
        eta = self._learning_rate(gains)
        probabilities = jax.nn.softmax(eta * gains)
        self.probabilities = probabilities
        self.gains = gains - jnp.asarray(self._losses)

        self._key, subkey = jr.split(self._key)
        if not bool(jnp.all(jnp.isfinite(probabilities))):
            logger.warning(
                "Error updating Hedge probabilities. Selecting first criterion."
            )
            return 0
        choice = int(jr.choice(subkey, len(self.members), p=probabilities))
        logger.debug(
            "Hedge selected %s (p=%s)", self.members[choice].name, probabilities
        )
        return choice
