"""
rng.py
------

Random number utilities for mcbo.

This module standardizes RNG handling across the package,
especially important when mixing NumPy and JAX.

- seed / split : wrappers around JAX PRNG keys.
- numpy_generator : a NumPy Generator derived deterministically from a key,
  for sequential samplers that draw many scalars in Python loops.

Examples
--------
>>> from mcbo.utils.rng import seed, split
>>> key = seed(0)
>>> k1, k2 = split(key)
"""

from __future__ import annotations

import jax
import jax.random as jr
import numpy as np


def seed(seed_value: int) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int
        Seed for random number generation.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    return jr.PRNGKey(seed_value)


def split(key: jax.Array, num: int = 2):
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    jax.Array
        Independent new PRNG keys, leading dimension ``num``.
    """
    return jr.split(key, num=num)


def numpy_generator(key: jax.Array) -> np.random.Generator:
    """
    Derive a NumPy Generator from a JAX key.

    The same key always yields the same generator stream.
    """
    if jax.dtypes.issubdtype(key.dtype, jax.dtypes.prng_key):
        key = jr.key_data(key)
    return np.random.default_rng(np.asarray(key, dtype=np.uint32).ravel())
