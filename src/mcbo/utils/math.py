"""
math.py
-------

Math utilities for mcbo.

Includes:
- ard_rbf_kernel : squared-exponential kernel with one lengthscale per input.
- append_cholesky_row : rank-one extension of a Cholesky factor.

All functions use JAX (jax.numpy) for compatibility with autodiff.

Examples
--------
>>> import jax.numpy as jnp
>>> from mcbo.utils import math
>>> X = jnp.linspace(0, 1, 5)[:, None]
>>> math.ard_rbf_kernel(X, X, jnp.ones(1)).shape
(5, 5)
"""

from __future__ import annotations

import jax.numpy as jnp
from jax.scipy.linalg import solve_triangular


def ard_rbf_kernel(
    x1: jnp.ndarray,
    x2: jnp.ndarray,
    lengthscales: jnp.ndarray,
    signal_variance: float | jnp.ndarray = 1.0,
) -> jnp.ndarray:
    """
    Squared-exponential kernel with automatic relevance determination.

    Parameters
    ----------
    x1 : jnp.ndarray
        Shape (N, D).
    x2 : jnp.ndarray
        Shape (M, D).
    lengthscales : jnp.ndarray
        Shape (D,), one lengthscale per input dimension.
    signal_variance : float
        Kernel amplitude σ_f².

    Returns
    -------
    jnp.ndarray
        Kernel matrix of shape (N, M).

    Notes
    -----
    k(x, x') = σ_f² exp(-½ Σ_d (x_d - x'_d)² / ℓ_d²)
    """
    z1 = x1 / lengthscales
    z2 = x2 / lengthscales
    sqdist = jnp.sum((z1[:, None, :] - z2[None, :, :]) ** 2, axis=-1)
    return signal_variance * jnp.exp(-0.5 * sqdist)


def append_cholesky_row(
    L: jnp.ndarray, k_new: jnp.ndarray, k_self: float | jnp.ndarray
) -> jnp.ndarray:
    """
    Extend a lower Cholesky factor by one observation.

    Given L with L L^T = K, returns L' with L' L'^T = [[K, k], [k^T, k_self]].

    Parameters
    ----------
    L : jnp.ndarray
        Lower-triangular factor, shape (N, N).
    k_new : jnp.ndarray
        Cross-covariance between old points and the new one, shape (N,).
    k_self : float
        Prior variance of the new point (noise included).

    Returns
    -------
    jnp.ndarray
        Factor of shape (N + 1, N + 1). The last diagonal entry is NaN when
        the extended matrix is not positive definite.
    """
    n = L.shape[0]
    row = solve_triangular(L, k_new, lower=True)
    diag = jnp.sqrt(k_self - jnp.dot(row, row))
    L_new = jnp.zeros((n + 1, n + 1), dtype=L.dtype)
    L_new = L_new.at[:n, :n].set(L)
    L_new = L_new.at[n, :n].set(row)
    L_new = L_new.at[n, n].set(diag)
    return L_new
