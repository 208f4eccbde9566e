"""
posterior
=========

Posterior models over surrogate hyperparameters.

This subpackage provides:

- PosteriorModel : abstract interface used by the optimization loop.
- FixedPosterior : one surrogate at the prior-mean hyperparameters.
- EmpiricalBayesPosterior : one surrogate at the MAP hyperparameters.
- MCMCPosterior : one surrogate per MCMC particle, criteria averaged.

Use create_posterior() to select a model via ``Parameters.learning``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcbo.errors import ConfigurationError

from .base_posterior import PosteriorModel, PrimaryParticle
from .empirical import EmpiricalBayesPosterior, FixedPosterior
from .mcmc import MCMCPosterior, ParticleSet

if TYPE_CHECKING:
    from mcbo.parameters import Parameters

# Registry for string-based posterior selection
POSTERIOR_MODELS: dict[str, type[PosteriorModel]] = {
    "fixed": FixedPosterior,
    "empirical": EmpiricalBayesPosterior,
    "mcmc": MCMCPosterior,
}


def create_posterior(
    input_dim: int, params: Parameters, key: Any, **kwargs
) -> PosteriorModel:
    """
    Instantiate the posterior model named by ``params.learning``.

    Extra keyword arguments (sampler, surrogate_cls, criterion_factory) are
    passed to the constructor.
    """
    try:
        cls = POSTERIOR_MODELS[params.learning]
    except KeyError:
        raise ConfigurationError(
            f"Unknown learning mode: {params.learning}. "
            f"Use one of {sorted(POSTERIOR_MODELS)}."
        ) from None
    return cls(input_dim, params, key, **kwargs)


__all__ = [
    "PosteriorModel",
    "PrimaryParticle",
    "ParticleSet",
    "FixedPosterior",
    "EmpiricalBayesPosterior",
    "MCMCPosterior",
    "POSTERIOR_MODELS",
    "create_posterior",
]
