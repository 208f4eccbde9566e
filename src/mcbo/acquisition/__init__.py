"""
acquisition
===========

Acquisition functions and criteria.

This module provides:
- Functional acquisition forms over a predictive distribution
  (expected_improvement, upper_confidence_bound, probability_of_improvement)
- Criterion classes binding a form to one surrogate (ExpectedImprovement,
  LowerConfidenceBound, ProbabilityOfImprovement) and the GPHedge portfolio
- CRITERIA / create_criterion: string-based selection
- Optimizers: optimize_acqf_discrete, optimize_acqf_random, select_next_point

Conventions
-----------
The objective is minimized. Criterion scores are "higher is better".

Examples
--------
>>> criterion = create_criterion("ei", surrogate, Parameters(), key)
>>> criterion.evaluate(jnp.array([0.5]))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import jax.random as jr

from mcbo.acquisition.base import Criterion, CriterionFactory
from mcbo.acquisition.expected_improvement import (
    ExpectedImprovement,
    expected_improvement,
    log_expected_improvement,
)
from mcbo.acquisition.hedge import GPHedge
from mcbo.acquisition.optimize import (
    optimize_acqf_discrete,
    optimize_acqf_random,
    select_next_point,
)
from mcbo.acquisition.probability_of_improvement import (
    ProbabilityOfImprovement,
    probability_of_improvement,
)
from mcbo.acquisition.upper_confidence_bound import (
    LowerConfidenceBound,
    lower_confidence_bound,
    upper_confidence_bound,
)
from mcbo.errors import ConfigurationError

if TYPE_CHECKING:
    from mcbo.model.base import Surrogate
    from mcbo.parameters import Parameters

# Registry for string-based criterion selection
CRITERIA: dict[str, type[Criterion]] = {
    "ei": ExpectedImprovement,
    "lcb": LowerConfidenceBound,
    "poi": ProbabilityOfImprovement,
    "hedge": GPHedge,
}


def _build(name: str, surrogate: Surrogate, key: Any, kwargs: dict, **extra) -> Criterion:
    try:
        cls = CRITERIA[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown criterion: {name}. Use one of {sorted(CRITERIA)}."
        ) from None
    try:
        return cls(surrogate, key, **kwargs, **extra)
    except TypeError as err:
        raise ConfigurationError(f"Invalid parameters for criterion {name}: {err}") from err


def create_criterion(
    name: str, surrogate: Surrogate, params: Parameters, key: Any = None
) -> Criterion:
    """
    Instantiate a criterion bound to ``surrogate``.

    Parameters
    ----------
    name : str
        Key of CRITERIA.
    surrogate : Surrogate
        Surrogate the criterion reads from.
    params : Parameters
        ``criterion_params`` holds constructor keyword arguments. For "hedge"
        it maps member names to their keyword arguments.
    key : jax.Array | None
        PRNG key.
    """
    if key is None:
        key = jr.PRNGKey(0)
    if name != "hedge":
        return _build(name, surrogate, key, params.criterion_params)

    keys = jr.split(key, len(params.hedge_criteria) + 1)
    members = [
        _build(member, surrogate, k, params.criterion_params.get(member, {}))
        for member, k in zip(params.hedge_criteria, keys[1:])
    ]
    return _build(
        "hedge", surrogate, keys[0], {}, members=members, eta=params.hedge_eta
    )


__all__ = [
    "Criterion",
    "CriterionFactory",
    "ExpectedImprovement",
    "LowerConfidenceBound",
    "ProbabilityOfImprovement",
    "GPHedge",
    "CRITERIA",
    "create_criterion",
    "expected_improvement",
    "log_expected_improvement",
    "upper_confidence_bound",
    "lower_confidence_bound",
    "probability_of_improvement",
    "optimize_acqf_discrete",
    "optimize_acqf_random",
    "select_next_point",
]
