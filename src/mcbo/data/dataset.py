"""
dataset.py
----------

Core data container for mcbo.

defines:
- Dataset: container for (query, observed value) pairs of the objective

Notes
-----
- Data is stored in Python lists of NumPy arrays (mutable!).
- Convert to jax.numpy (jnp) (immutable!) arrays only when passing into
  surrogates or samplers that require JAX.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np


class Dataset:
    """
    Container for objective function observations.

    Attributes
    ----------
    inputs : list[np.ndarray]
        Query points, each of shape (input_dim,).
    values : list[float]
        Observed objective values.
    """

    def __init__(self) -> None:
        self.inputs: list[np.ndarray] = []
        self.values: list[float] = []

    def add_sample(self, x, y: float) -> None:
        """
        Append a single observation.

        Parameters
        ----------
        x : array-like, shape (input_dim,)
            Query point.
        y : float
            Observed objective value.
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        if x.ndim != 1:
            raise ValueError(f"x must be 1-D, got shape {x.shape}")
        if self.inputs and x.shape != self.inputs[0].shape:
            raise ValueError(
                f"Dimension mismatch: expected {self.inputs[0].shape}, got {x.shape}"
            )
        self.inputs.append(x)
        self.values.append(float(y))

    @property
    def input_dim(self) -> int | None:
        """Dimensionality of stored inputs (None when empty)."""
        return self.inputs[0].shape[0] if self.inputs else None

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Return inputs and values as numpy arrays.

        Returns
        -------
        X : np.ndarray, shape (n, input_dim)
        y : np.ndarray, shape (n,)
        """
        return np.array(self.inputs), np.array(self.values)

    def to_jax(self) -> tuple[jnp.ndarray, jnp.ndarray]:
        """Return inputs and values as jax arrays."""
        X, y = self.to_numpy()
        return jnp.asarray(X), jnp.asarray(y)

    def last(self) -> tuple[np.ndarray, float]:
        """Return the most recent (x, y) pair."""
        if not self.inputs:
            raise IndexError("Dataset is empty")
        return self.inputs[-1], self.values[-1]

    def best(self) -> tuple[np.ndarray, float]:
        """Return the (x, y) pair with the lowest observed value."""
        if not self.values:
            raise IndexError("Dataset is empty")
        idx = int(np.argmin(self.values))
        return self.inputs[idx], self.values[idx]

    def __len__(self) -> int:
        """Return number of observations."""
        return len(self.values)

    @classmethod
    def from_arrays(cls, X, y) -> Dataset:
        """
        Construct a Dataset from arrays.

        Parameters
        ----------
        X : array, shape (n, input_dim)
            Query points. A 1-D array is read as n one-dimensional points.
        y : array, shape (n,)
            Observed values.

        Examples
        --------
        >>> data = Dataset.from_arrays(jnp.array([[0.0], [0.5]]), jnp.array([1.0, 0.2]))
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim == 1:
            X = X[:, None]
        if X.ndim != 2 or X.shape[0] != y.shape[0]:
            raise ValueError(
                f"X must be (n, input_dim) with n == len(y); got {X.shape} and {y.shape}"
            )
        data = cls()
        for x, value in zip(X, y):
            data.add_sample(x, value)
        return data

    def copy(self) -> Dataset:
        """
        Create a copy of this dataset.

        Returns
        -------
        Dataset
            New dataset with copied lists.
        """
        new_data = Dataset()
        new_data.inputs = list(self.inputs)
        new_data.values = list(self.values)
        return new_data
