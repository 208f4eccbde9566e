"""
candidates.py
-------------

Utilities for generating candidate query pools.

Separation of concerns
----------------------
- Candidate generation (this module) defines *what* query points are possible.
- Criteria and the proposal helper define *which* of those candidates to
  evaluate *next*.

Provided
--------
- Regular grids over a box.
- Sobol sequence candidates (low-discrepancy exploration).
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np


def grid_candidates(bounds: list[tuple[float, float]], n: int) -> jnp.ndarray:
    """
    Regular grid with ``n`` points per dimension.

    Parameters
    ----------
    bounds : list of (low, high)
        Bounds per dimension.
    n : int
        Points per dimension.

    Returns
    -------
    jnp.ndarray, shape (n ** D, D)
        Grid points.
    """
    if n < 1:
        raise ValueError("n must be >= 1")
    axes = [jnp.linspace(low, high, n) for low, high in bounds]
    mesh = jnp.meshgrid(*axes, indexing="ij")
    return jnp.stack([m.ravel() for m in mesh], axis=-1)


def sobol_candidates(
    bounds: list[tuple[float, float]], n: int, seed: int = 0
) -> jnp.ndarray:
    """
    Generate Sobol quasi-random candidates within bounds.

    Parameters
    ----------
    bounds : list of (low, high)
        Bounds per dimension.
    n : int
        Number of candidates to generate.
    seed : int, default=0
        Scrambling seed.

    Returns
    -------
    jnp.ndarray, shape (n, D)
        Candidate points.

    Notes
    -----
    Sobol is balanced for powers of two; other sizes emit a SciPy warning.
    """
    from scipy.stats.qmc import Sobol

    dim = len(bounds)
    engine = Sobol(d=dim, scramble=True, seed=seed)
    raw = engine.random(n)
    scaled = [low + (high - low) * raw[:, i] for i, (low, high) in enumerate(bounds)]
    return jnp.array(np.stack(scaled, axis=-1))
