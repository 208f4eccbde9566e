"""
parameters.py
-------------

Configuration for posterior models.

A single validated dataclass collects everything the posterior layer needs:
particle count, which learning mode / surrogate / criterion / sampler to use,
sampler tuning and the log-space hyperparameter prior.

Examples
--------
>>> params = Parameters(n_particles=5, criterion="hedge")
>>> params = Parameters.from_dict({"n_particles": 5, "sampler": "langevin"})
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Literal

from mcbo.errors import ConfigurationError

LEARNING_MODES = ("fixed", "empirical", "mcmc")


@dataclass
class Parameters:
    """
    Posterior model configuration.

    Attributes
    ----------
    n_particles : int, default=10
        Number of MCMC hyperparameter particles (ensemble size).
    learning : {"fixed", "empirical", "mcmc"}, default="mcmc"
        How kernel hyperparameters are learned.
    surrogate : str, default="gaussian_process"
        Surrogate model name (see mcbo.model.SURROGATES).
    criterion : str, default="ei"
        Criterion name (see mcbo.acquisition.CRITERIA).
    criterion_params : dict
        Keyword arguments forwarded to the criterion constructor.
    hedge_criteria : tuple of str, default=("ei", "lcb", "poi")
        Member criteria of the "hedge" portfolio.
    hedge_eta : float | None, default=None
        Hedge learning rate. If None, the rate is derived from the gains.
    sampler : str, default="slice"
        MCMC transition used for hyperparameters (see mcbo.inference.SAMPLERS).
    burn_in : int, default=100
        Number of discarded MCMC sweeps before collecting particles.
    thinning : int, default=1
        Sweeps between two collected particles.
    slice_width : float, default=1.0
        Initial bracket width of the slice sampler.
    max_slice_steps : int, default=50
        Cap on stepping-out and shrinkage iterations per coordinate.
    langevin_step_size : float, default=1e-3
        Step size of the Langevin sampler.
    map_steps : int, default=200
        Optimizer steps for empirical Bayes.
    map_learning_rate : float, default=0.05
        Adam learning rate for empirical Bayes.
    lengthscale_prior, signal_variance_prior, noise_prior : (float, float)
        (mean, std) of the Gaussian prior on the log hyperparameter.
    jitter : float, default=1e-6
        Diagonal jitter added to the kernel matrix.
    n_workers : int, default=1
        Thread pool size for per-particle fan-out (1 = sequential).
    """

    n_particles: int = 10
    learning: Literal["fixed", "empirical", "mcmc"] = "mcmc"
    surrogate: str = "gaussian_process"
    criterion: str = "ei"
    criterion_params: dict[str, Any] = field(default_factory=dict)
    hedge_criteria: tuple[str, ...] = ("ei", "lcb", "poi")
    hedge_eta: float | None = None
    sampler: str = "slice"
    burn_in: int = 100
    thinning: int = 1
    slice_width: float = 1.0
    max_slice_steps: int = 50
    langevin_step_size: float = 1e-3
    map_steps: int = 200
    map_learning_rate: float = 0.05
    lengthscale_prior: tuple[float, float] = (0.0, 1.0)
    signal_variance_prior: tuple[float, float] = (0.0, 1.0)
    noise_prior: tuple[float, float] = (math.log(1e-4), 1.0)
    jitter: float = 1e-6
    n_workers: int = 1

    def __post_init__(self):
        """Validate configuration."""
        if self.n_particles < 1:
            raise ConfigurationError(
                f"n_particles must be >= 1, got {self.n_particles}"
            )
        if self.learning not in LEARNING_MODES:
            raise ConfigurationError(
                f"Unknown learning mode: {self.learning}. Use one of {LEARNING_MODES}."
            )
        if self.learning == "mcmc" and self.sampler == "map" and self.n_particles > 1:
            raise ConfigurationError(
                f"sampler 'map' yields a single particle, got n_particles={self.n_particles}"
            )
        self.hedge_criteria = tuple(self.hedge_criteria)
        if "hedge" in self.hedge_criteria:
            raise ConfigurationError("hedge cannot be a member of itself")
        if self.criterion == "hedge" and len(self.hedge_criteria) < 2:
            raise ConfigurationError("hedge needs at least two member criteria")
        if self.hedge_eta is not None and self.hedge_eta <= 0:
            raise ConfigurationError(f"hedge_eta must be positive, got {self.hedge_eta}")
        if self.burn_in < 0:
            raise ConfigurationError(f"burn_in must be >= 0, got {self.burn_in}")
        if self.thinning < 1:
            raise ConfigurationError(f"thinning must be >= 1, got {self.thinning}")
        if self.slice_width <= 0:
            raise ConfigurationError(
                f"slice_width must be positive, got {self.slice_width}"
            )
        if self.max_slice_steps < 1:
            raise ConfigurationError(
                f"max_slice_steps must be >= 1, got {self.max_slice_steps}"
            )
        if self.langevin_step_size <= 0:
            raise ConfigurationError(
                f"langevin_step_size must be positive, got {self.langevin_step_size}"
            )
        if self.map_steps < 0:
            raise ConfigurationError(f"map_steps must be >= 0, got {self.map_steps}")
        for name in ("lengthscale_prior", "signal_variance_prior", "noise_prior"):
            mean, std = getattr(self, name)
            if std <= 0:
                raise ConfigurationError(f"{name} std must be positive, got {std}")
            setattr(self, name, (float(mean), float(std)))
        if self.jitter < 0:
            raise ConfigurationError(f"jitter must be >= 0, got {self.jitter}")
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {self.n_workers}")

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> Parameters:
        """
        Build Parameters from a plain mapping.

        Raises
        ------
        ConfigurationError
            If the mapping contains unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**config)
