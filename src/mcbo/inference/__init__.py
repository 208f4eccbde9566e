"""
inference
=========

Hyperparameter inference for surrogate models.

This subpackage provides strategies that turn the observations into
hyperparameter particles:

- SliceSampler : MCMC particles via slice sampling.
- LangevinSampler : MCMC particles via unadjusted Langevin dynamics.
- MAPOptimizer : a single MAP particle with Optax optimizers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcbo.errors import ConfigurationError

from .base import HyperparameterSampler, HyperparameterTarget
from .langevin import LangevinSampler
from .map_optimizer import MAPOptimizer
from .slice_sampler import SliceSampler

if TYPE_CHECKING:
    from mcbo.parameters import Parameters

# Registry for string-based sampler selection
SAMPLERS = {
    "slice": SliceSampler,
    "langevin": LangevinSampler,
    "map": MAPOptimizer,
}


def create_sampler(
    name: str, params: Parameters, n_particles: int | None = None
) -> HyperparameterSampler:
    """
    Build a sampler from configuration.

    Parameters
    ----------
    name : str
        Key of SAMPLERS.
    params : Parameters
        Supplies the schedule and tuning values.
    n_particles : int | None
        Overrides params.n_particles.
    """
    n = params.n_particles if n_particles is None else n_particles
    if name == "slice":
        return SliceSampler(
            n,
            burn_in=params.burn_in,
            thinning=params.thinning,
            width=params.slice_width,
            max_steps=params.max_slice_steps,
        )
    if name == "langevin":
        return LangevinSampler(
            n,
            burn_in=params.burn_in,
            thinning=params.thinning,
            step_size=params.langevin_step_size,
        )
    if name == "map":
        return MAPOptimizer(steps=params.map_steps, learning_rate=params.map_learning_rate)
    raise ConfigurationError(f"Unknown sampler: {name}. Use one of {sorted(SAMPLERS)}.")


__all__ = [
    "HyperparameterSampler",
    "HyperparameterTarget",
    "SliceSampler",
    "LangevinSampler",
    "MAPOptimizer",
    "SAMPLERS",
    "create_sampler",
]
