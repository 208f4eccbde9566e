"""
model
=====

Surrogate models and hyperparameter priors.

Exposes:
- Surrogate: base class for per-particle regression models
- GaussianProcess: ARD squared-exponential GP
- HyperparameterPrior: log-normal prior over particles
- GaussianDistribution: predictive distribution
- SURROGATES / create_surrogate: string-based selection
"""

from __future__ import annotations

from mcbo.errors import ConfigurationError

from .base import Surrogate
from .distribution import GaussianDistribution, ProbabilityDistribution
from .gaussian_process import GaussianProcess, GPState, log_marginal_likelihood
from .prior import HyperparameterPrior, unpack_hyperparameters

# Registry for string-based surrogate selection
SURROGATES: dict[str, type[Surrogate]] = {
    "gaussian_process": GaussianProcess,
    "gp": GaussianProcess,
}


def get_surrogate_class(name: str) -> type[Surrogate]:
    """Look up a surrogate class by name."""
    try:
        return SURROGATES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown surrogate: {name}. Use one of {sorted(SURROGATES)}."
        ) from None


def create_surrogate(name: str, theta, input_dim: int, params=None) -> Surrogate:
    """Instantiate a surrogate by name."""
    return get_surrogate_class(name)(theta, input_dim, params)


__all__ = [
    "Surrogate",
    "GaussianProcess",
    "GPState",
    "GaussianDistribution",
    "ProbabilityDistribution",
    "HyperparameterPrior",
    "SURROGATES",
    "create_surrogate",
    "get_surrogate_class",
    "log_marginal_likelihood",
    "unpack_hyperparameters",
]
