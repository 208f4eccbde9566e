"""
utils
=====

Shared utility functions and helpers for mcbo.

This subpackage provides:
- candidates : functions for generating candidate query pools.
- log : logging setup for applications.
- math : kernels and Cholesky helpers.
- rng : random number handling for reproducibility.
"""

from .candidates import grid_candidates, sobol_candidates
from .log import setup_logger
from .math import append_cholesky_row, ard_rbf_kernel
from .rng import numpy_generator, seed, split

__all__ = [
    # candidates
    "grid_candidates",
    "sobol_candidates",
    # log
    "setup_logger",
    # math
    "append_cholesky_row",
    "ard_rbf_kernel",
    # rng
    "numpy_generator",
    "seed",
    "split",
]
