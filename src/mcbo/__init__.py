"""
mcbo
====

Bayesian optimization with fully Bayesian surrogate hyperparameters.

This package implements an ensemble posterior model for Bayesian
optimization: surrogate hyperparameters are sampled by MCMC, one Gaussian
process and one criterion are kept per hyperparameter particle, and the
ensemble is presented to the optimization loop as a single model whose
criterion value is the particle average. Integrating out hyperparameters
this way makes the search robust when little data is available to pin
them down.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. Posterior models (posterior/):
   - MCMCPosterior: one (surrogate, criterion) pair per MCMC particle.
   - EmpiricalBayesPosterior: one pair at the MAP hyperparameters.
   - FixedPosterior: one pair at the prior-mean hyperparameters.

2. Surrogates (model/):
   - GaussianProcess with an ARD squared-exponential kernel.
   - HyperparameterPrior: log-normal prior over lengthscales, signal
     variance and noise variance.

3. Hyperparameter inference (inference/):
   - SliceSampler, LangevinSampler: MCMC particles.
   - MAPOptimizer: a single MAP particle (Optax).

4. Criteria (acquisition/):
   - ExpectedImprovement, LowerConfidenceBound, ProbabilityOfImprovement.
   - GPHedge: portfolio of criteria selected by the Hedge algorithm.

Unified import style
--------------------
Top-level:
  from mcbo import MCMCPosterior, Parameters, create_posterior, select_next_point

Subpackages:
  from mcbo.posterior import MCMCPosterior, EmpiricalBayesPosterior, FixedPosterior
  from mcbo.model import GaussianProcess, HyperparameterPrior
  from mcbo.inference import SliceSampler, LangevinSampler, MAPOptimizer
  from mcbo.acquisition import ExpectedImprovement, GPHedge, select_next_point
  from mcbo.utils import grid_candidates, sobol_candidates, setup_logger

Data flow
---------
One iteration of the outer optimization loop:

    model.add_sample(x, y)
    model.update_hyper_parameters()      # resample particles, rebuild
    model.fit_surrogate_model()          # or update_surrogate_model()
    x_next, label = select_next_point(model, candidates)
    model.update_criteria(x_next)

The objective is minimized; criterion values are "higher is better".

----------------------------------------------------------------------
"""

# Re-export subpackages for unified import style (e.g., mcbo.model, mcbo.inference)
from . import acquisition as acquisition
from . import data as data
from . import inference as inference
from . import model as model
from . import posterior as posterior
from . import utils as utils
from .acquisition import select_next_point
from .data.dataset import Dataset

# Errors
from .errors import (
    ConfigurationError,
    EvaluationError,
    MCBOError,
    SamplingError,
    SurrogateFitError,
)

# Inference
from .inference import LangevinSampler, MAPOptimizer, SliceSampler
from .model import GaussianProcess, HyperparameterPrior
from .parameters import Parameters

# Posterior
from .posterior import (
    EmpiricalBayesPosterior,
    FixedPosterior,
    MCMCPosterior,
    create_posterior,
)

__all__ = [
    # Configuration
    "Parameters",
    # Posterior models
    "MCMCPosterior",
    "EmpiricalBayesPosterior",
    "FixedPosterior",
    "create_posterior",
    # Surrogate
    "GaussianProcess",
    "HyperparameterPrior",
    # Inference
    "SliceSampler",
    "LangevinSampler",
    "MAPOptimizer",
    # Selection
    "select_next_point",
    # Data handling
    "Dataset",
    # Errors
    "MCBOError",
    "ConfigurationError",
    "SamplingError",
    "SurrogateFitError",
    "EvaluationError",
    # Subpackages
    "model",
    "inference",
    "posterior",
    "acquisition",
    "utils",
    "data",
]
