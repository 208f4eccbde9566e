"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Stubs**: light surrogate / criterion / sampler doubles with fully
  predictable behavior, used to test the posterior layer in isolation.

Notes
-----
- Contributors should
  install the package in editable mode (`pip install -e ".[test]"`) so that imports are resolved
  consistently in local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
"""

import jax.numpy as jnp
import jax.random as jr
import pytest

from mcbo.acquisition.base import Criterion
from mcbo.data import Dataset
from mcbo.inference.base import HyperparameterSampler
from mcbo.model.base import Surrogate
from mcbo.model.distribution import GaussianDistribution
from mcbo.parameters import Parameters

# ============================================================================
# Stubs
# ============================================================================


class StubSurrogate(Surrogate):
    """Predicts mean = theta[0] everywhere; fit/update record call counts."""

    name = "stub"

    def __init__(self, theta, input_dim, params=None):
        super().__init__(theta, input_dim, params)
        self.fail = False
        self.fit_calls = 0
        self.update_calls = 0

    def fit(self, data):
        self.fit_calls += 1
        if self.fail:
            raise ValueError("stub fit failure")
        self._state = ("fit", len(data))

    def update(self, x, y):
        self.update_calls += 1
        if self.fail:
            raise ValueError("stub update failure")
        self._state = ("update", self._state[1] + 1)

    def predict(self, query):
        q = jnp.asarray(query)
        shape = () if q.ndim == 1 else q.shape[:1]
        return GaussianDistribution(
            mean=jnp.full(shape, self.theta[0]), variance=jnp.ones(shape)
        )

    @property
    def best_observation(self):
        return 0.0

    @classmethod
    def log_likelihood(cls, data, params):
        return lambda theta: jnp.asarray(0.0)


class ConstantCriterion(Criterion):
    """Scores every query with its surrogate's theta[0]."""

    name = "constant"

    def __init__(self, surrogate, key=None):
        super().__init__(surrogate, key)
        self.fail = False
        self.pushed = []
        self.rotations_left = 0
        self.rotate_calls = 0
        self.initial_calls = 0

    def evaluate(self, query):
        if self.fail:
            raise ValueError("stub criterion failure")
        return self.surrogate.predict(query).mean

    def require_comparison(self):
        return self.rotations_left > 0

    def initial_criteria(self):
        super().initial_criteria()
        self.initial_calls += 1

    def push_result(self, prev_result):
        super().push_result(prev_result)
        self.pushed.append(jnp.asarray(prev_result))

    def rotate_criteria(self):
        self.rotate_calls += 1
        if self.rotations_left > 0:
            self.rotations_left -= 1
            return True
        return False


def constant_criterion_factory(surrogate, params, key):
    return ConstantCriterion(surrogate, key)


class StubSampler(HyperparameterSampler):
    """Returns prescribed particles and records how it was called."""

    def __init__(self, particles, *, n_particles=None, error=None):
        super().__init__(n_particles or len(particles))
        self.particles = [jnp.asarray(p, dtype=jnp.float32) for p in particles]
        self.error = error
        self.calls = 0
        self.initials = []

    def sample(self, target, key, initial=None):
        self.calls += 1
        self.initials.append(initial)
        if self.error is not None:
            raise self.error
        return list(self.particles)


def tagged_particles(values, input_dim=1):
    """Particles whose first entry is the given tag value."""
    return [
        jnp.concatenate([jnp.array([v]), jnp.zeros(input_dim + 1)]) for v in values
    ]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def key():
    return jr.PRNGKey(0)


@pytest.fixture
def quadratic_data():
    """Five noiseless observations of (x - 0.3)^2 on [0, 1]."""
    X = jnp.linspace(0.0, 1.0, 5)[:, None]
    y = (X[:, 0] - 0.3) ** 2
    return Dataset.from_arrays(X, y)


@pytest.fixture
def fast_params():
    """Real GP + slice sampler with a short chain."""
    return Parameters(n_particles=3, burn_in=5, max_slice_steps=10)
