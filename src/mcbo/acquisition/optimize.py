"""
optimize.py
-----------

Optimization utilities for acquisition functions.

Provides:
- optimize_acqf_discrete: Exhaustive search over candidate set
- optimize_acqf_random: Random search baseline
- select_next_point: one proposal round against a posterior model,
  including the criterion comparison protocol for portfolios

Design
------
    X_next, acq_value = optimize_acqf_discrete(acq_fn, candidates, q=1)

Criteria on ensemble posteriors are not jit-friendly (Python fan-out over
particles), so only derivative-free optimizers are offered.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

import jax.numpy as jnp
import jax.random as jr

if TYPE_CHECKING:
    from mcbo.posterior.base_posterior import PosteriorModel

logger = logging.getLogger(__name__)


def optimize_acqf_discrete(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    candidates: jnp.ndarray,
    q: int = 1,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function over discrete candidate set.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function. Takes (n_candidates, input_dim) array,
        returns (n_candidates,) scores.
    candidates : jnp.ndarray, shape (n_candidates, input_dim)
        Discrete candidate points to evaluate
    q : int, default=1
        Batch size (number of points to select)

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Selected candidate points
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values of selected points

    Examples
    --------
    >>> candidates = jnp.array([[0.0], [0.5], [1.0]])
    >>> X_next, acq_val = optimize_acqf_discrete(posterior.evaluate_criteria, candidates)
    """
    # Evaluate all candidates
    acq_values = jnp.asarray(acq_fn(candidates))

    # Select top-q by acquisition value
    top_indices = jnp.argsort(acq_values)[-q:][::-1]  # Descending order
    X_next = candidates[top_indices]
    selected_values = acq_values[top_indices]

    return X_next, selected_values


def optimize_acqf_random(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int = 1,
    *,
    num_samples: int = 1000,
    key: Any = None,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function via random search.

    Simple baseline: sample random points, evaluate, select best.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function
    bounds : jnp.ndarray, shape (input_dim, 2)
        Box constraints
    q : int, default=1
        Batch size
    num_samples : int, default=1000
        Number of random samples to evaluate
    key : jax.Array | None
        PRNG key

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Best random samples
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values
    """
    if key is None:
        key = jr.PRNGKey(0)

    bounds = jnp.asarray(bounds)
    input_dim = bounds.shape[0]
    random_samples = jr.uniform(key, (num_samples, input_dim))

    # Scale to bounds
    lower = bounds[:, 0]
    upper = bounds[:, 1]
    random_samples = lower + random_samples * (upper - lower)

    return optimize_acqf_discrete(acq_fn, random_samples, q=q)


def select_next_point(
    posterior: PosteriorModel, candidates: jnp.ndarray
) -> tuple[jnp.ndarray, str | None]:
    """
    Choose the next query point among ``candidates``.

    When the posterior's criterion is a portfolio, every member nominates its
    argmax in turn and the portfolio picks one nominee; otherwise the argmax
    of the (particle-averaged) criterion is returned.

    Parameters
    ----------
    posterior : PosteriorModel
        Fitted posterior model.
    candidates : jnp.ndarray, shape (n_candidates, input_dim)
        Candidate query points.

    Returns
    -------
    x_next : jnp.ndarray, shape (input_dim,)
        Selected point.
    label : str | None
        Name of the winning member criterion, None without comparison.
    """
    if not posterior.criteria_requires_comparison():
        X_next, _ = optimize_acqf_discrete(posterior.evaluate_criteria, candidates)
        return X_next[0], None

    posterior.set_first_criterium()
    changed = True
    while changed:
        X_next, _ = optimize_acqf_discrete(posterior.evaluate_criteria, candidates)
        changed = posterior.set_next_criterium(X_next[0])
    label, best = posterior.get_best_criteria()
    logger.debug("Criterion %s selected %s", label, best)
    return jnp.asarray(best), label
