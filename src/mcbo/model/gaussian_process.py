"""
gaussian_process.py
-------------------

Gaussian process surrogate with an ARD squared-exponential kernel.

The GP is conditioned on one hyperparameter particle
θ = [log ℓ_1..ℓ_D, log σ_f², log σ_n²] (see mcbo.model.prior).

Fit
---
    K = k(X, X) + (σ_n² + jitter) I,   K = L Lᵀ,   α = K⁻¹ (y - ȳ)

Incremental update appends one row to L instead of refactorizing.

Prediction (latent f, not y)
----------------------------
    μ(x*)  = ȳ + k(x*, X) α
    σ²(x*) = σ_f² - ‖L⁻¹ k(X, x*)‖²
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, NamedTuple

import jax
import jax.numpy as jnp
from jax.scipy.linalg import cho_solve, solve_triangular

from mcbo.errors import ConfigurationError, SurrogateFitError
from mcbo.model.base import Surrogate
from mcbo.model.distribution import GaussianDistribution
from mcbo.model.prior import unpack_hyperparameters
from mcbo.utils.math import append_cholesky_row, ard_rbf_kernel

if TYPE_CHECKING:
    from mcbo.data import Dataset
    from mcbo.parameters import Parameters

logger = logging.getLogger(__name__)


class GPState(NamedTuple):
    """Immutable fit state of a GaussianProcess."""

    X: jnp.ndarray
    y: jnp.ndarray
    y_offset: jnp.ndarray
    L: jnp.ndarray
    alpha: jnp.ndarray


@jax.jit
def log_marginal_likelihood(
    theta: jnp.ndarray, X: jnp.ndarray, y: jnp.ndarray, jitter: float
) -> jnp.ndarray:
    """
    Log marginal likelihood log p(y | X, θ) of a zero-mean GP on centered y.

    Parameters
    ----------
    theta : jnp.ndarray, shape (D + 2,)
        Particle in log space.
    X : jnp.ndarray, shape (n, D)
    y : jnp.ndarray, shape (n,)
    jitter : float
        Diagonal jitter.

    Returns
    -------
    jnp.ndarray
        Scalar. NaN when the kernel matrix is not positive definite.
    """
    n, input_dim = X.shape
    lengthscales, signal_variance, noise_variance = unpack_hyperparameters(
        theta, input_dim
    )
    yc = y - jnp.mean(y)
    K = ard_rbf_kernel(X, X, lengthscales, signal_variance)
    K = K + (noise_variance + jitter) * jnp.eye(n)
    L = jnp.linalg.cholesky(K)
    alpha = cho_solve((L, True), yc)
    return (
        -0.5 * jnp.dot(yc, alpha)
        - jnp.sum(jnp.log(jnp.diag(L)))
        - 0.5 * n * jnp.log(2.0 * jnp.pi)
    )


def _is_positive_definite(L: jnp.ndarray, alpha: jnp.ndarray) -> bool:
    return bool(
        jnp.all(jnp.isfinite(L))
        and jnp.all(jnp.diag(L) > 0.0)
        and jnp.all(jnp.isfinite(alpha))
    )


class GaussianProcess(Surrogate):
    """
    Exact GP regression conditioned on a fixed hyperparameter particle.

    Parameters
    ----------
    theta : jnp.ndarray, shape (input_dim + 2,)
        Particle in log space.
    input_dim : int
        Dimensionality of the query space.
    params : Parameters | None
        Provides the kernel jitter.

    Examples
    --------
    >>> gp = GaussianProcess(jnp.zeros(3), input_dim=1)
    >>> gp.fit(Dataset.from_arrays(jnp.array([[0.0], [1.0]]), jnp.array([0.0, 1.0])))
    >>> gp.predict(jnp.array([0.5])).mean
    """

    name = "gaussian_process"

    def __init__(self, theta, input_dim: int, params: Parameters | None = None):
        super().__init__(theta, input_dim, params)
        expected = self.n_hyperparameters(input_dim)
        if self._theta.shape != (expected,):
            raise ConfigurationError(
                f"Dimension mismatch: particle of shape {self._theta.shape}, "
                f"expected ({expected},) for input_dim={input_dim}"
            )
        (
            self._lengthscales,
            self._signal_variance,
            self._noise_variance,
        ) = unpack_hyperparameters(self._theta, input_dim)
        self._jitter = self.params.jitter

    def _kernel(self, A: jnp.ndarray, B: jnp.ndarray) -> jnp.ndarray:
        return ard_rbf_kernel(A, B, self._lengthscales, self._signal_variance)

    # ------------------------------------------------------------------
    # Surrogate interface
    # ------------------------------------------------------------------

    def fit(self, data: Dataset) -> None:
        if len(data) == 0:
            raise SurrogateFitError("cannot fit a surrogate without observations")
        X, y = data.to_jax()
        if X.shape[1] != self.input_dim:
            raise SurrogateFitError(
                f"Dimension mismatch: data has {X.shape[1]} inputs, "
                f"surrogate expects {self.input_dim}"
            )
        y_offset = jnp.mean(y)
        n = X.shape[0]
        K = self._kernel(X, X) + (self._noise_variance + self._jitter) * jnp.eye(n)
        L = jnp.linalg.cholesky(K)
        alpha = cho_solve((L, True), y - y_offset)
        if not _is_positive_definite(L, alpha):
            raise SurrogateFitError("covariance matrix is not positive definite")
        self._state = GPState(X=X, y=y, y_offset=y_offset, L=L, alpha=alpha)
        logger.debug("GP fitted on %d observations", n)

    def update(self, x, y: float) -> None:
        state = self._state
        if state is None:
            raise SurrogateFitError("update() called before fit()")
        x = jnp.atleast_1d(jnp.asarray(x, dtype=state.X.dtype))
        k_new = self._kernel(state.X, x[None, :])[:, 0]
        k_self = self._signal_variance + self._noise_variance + self._jitter
        L = append_cholesky_row(state.L, k_new, k_self)
        X = jnp.vstack([state.X, x[None, :]])
        y_all = jnp.append(state.y, jnp.asarray(y, dtype=state.y.dtype))
        alpha = cho_solve((L, True), y_all - state.y_offset)
        if not _is_positive_definite(L, alpha):
            raise SurrogateFitError(
                "covariance matrix is not positive definite after update"
            )
        self._state = GPState(X=X, y=y_all, y_offset=state.y_offset, L=L, alpha=alpha)

    def predict(self, query) -> GaussianDistribution:
        state = self._state
        if state is None:
            raise RuntimeError("Must call fit() before predict()")
        q = jnp.asarray(query, dtype=state.X.dtype)
        if q.ndim == 0 and self.input_dim == 1:
            q = q[None]
        single = q.ndim == 1
        Q = q[None, :] if single else q
        Ks = self._kernel(Q, state.X)
        mean = state.y_offset + Ks @ state.alpha
        v = solve_triangular(state.L, Ks.T, lower=True)
        variance = jnp.maximum(self._signal_variance - jnp.sum(v**2, axis=0), 0.0)
        if single:
            return GaussianDistribution(mean=mean[0], variance=variance[0])
        return GaussianDistribution(mean=mean, variance=variance)

    @property
    def best_observation(self) -> float:
        if self._state is None:
            raise RuntimeError("Must call fit() before best_observation")
        return float(jnp.min(self._state.y))

    @classmethod
    def log_likelihood(
        cls, data: Dataset, params: Parameters
    ) -> Callable[[jnp.ndarray], jnp.ndarray]:
        if len(data) == 0:
            return lambda theta: jnp.asarray(0.0)
        X, y = data.to_jax()
        jitter = params.jitter

        def log_lik(theta):
            return log_marginal_likelihood(theta, X, y, jitter)

        return log_lik
