import logging

import jax.numpy as jnp
import jax.random as jr
import numpy as np
import pytest
from conftest import StubSampler, StubSurrogate, constant_criterion_factory, tagged_particles

from mcbo.parameters import Parameters
from mcbo.posterior import MCMCPosterior
from mcbo.utils import (
    append_cholesky_row,
    ard_rbf_kernel,
    grid_candidates,
    numpy_generator,
    seed,
    setup_logger,
    sobol_candidates,
    split,
)


class TestCandidates:
    def test_grid_shape_and_bounds(self):
        grid = grid_candidates([(0.0, 1.0), (-2.0, 2.0)], 5)
        assert grid.shape == (25, 2)
        assert float(grid[:, 1].min()) == -2.0
        assert float(grid[:, 1].max()) == 2.0

    def test_grid_invalid_size(self):
        with pytest.raises(ValueError):
            grid_candidates([(0.0, 1.0)], 0)

    def test_sobol_within_bounds(self):
        points = sobol_candidates([(0.0, 1.0), (10.0, 20.0)], 16, seed=3)
        assert points.shape == (16, 2)
        assert bool(jnp.all((points[:, 1] >= 10.0) & (points[:, 1] <= 20.0)))

    def test_sobol_seeded(self):
        a = sobol_candidates([(0.0, 1.0)], 8, seed=1)
        b = sobol_candidates([(0.0, 1.0)], 8, seed=1)
        assert jnp.array_equal(a, b)


class TestRng:
    def test_split_count(self):
        keys = split(seed(0), 3)
        assert keys.shape[0] == 3

    def test_numpy_generator_is_deterministic(self):
        a = numpy_generator(jr.PRNGKey(7)).uniform(size=4)
        b = numpy_generator(jr.PRNGKey(7)).uniform(size=4)
        c = numpy_generator(jr.PRNGKey(8)).uniform(size=4)
        assert np.array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_numpy_generator_accepts_typed_keys(self):
        generator = numpy_generator(jr.key(7))
        assert isinstance(generator, np.random.Generator)


class TestKernels:
    def test_ard_matches_closed_form(self):
        x = jnp.linspace(0.0, 1.0, 4)[:, None]
        expected = jnp.exp(-0.5 * (x - x.T) ** 2 / 0.25)
        assert jnp.allclose(ard_rbf_kernel(x, x, jnp.array([0.5])), expected)

    def test_ard_scales_by_signal_variance(self):
        x = jnp.zeros((1, 2))
        K = ard_rbf_kernel(x, x, jnp.ones(2), signal_variance=3.0)
        assert float(K[0, 0]) == pytest.approx(3.0)

    def test_append_cholesky_row_matches_full_factor(self):
        x = jnp.linspace(0.0, 1.0, 4)[:, None]
        K = ard_rbf_kernel(x, x, jnp.array([0.4])) + 1e-3 * jnp.eye(4)
        L_small = jnp.linalg.cholesky(K[:3, :3])
        L = append_cholesky_row(L_small, K[:3, 3], K[3, 3])
        assert jnp.allclose(L, jnp.linalg.cholesky(K), atol=1e-5)

    def test_append_cholesky_row_flags_non_pd(self):
        L = append_cholesky_row(jnp.ones((1, 1)), jnp.array([1.0]), 0.5)
        assert bool(jnp.isnan(L[1, 1]))


class TestLogger:
    def test_setup_is_idempotent(self):
        name = "mcbo.tests.setup"
        logger = setup_logger(name, level=logging.DEBUG)
        again = setup_logger(name)
        assert logger is again
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger = setup_logger("mcbo.tests.file", log_file=str(log_file))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_posterior_logs_resampling(self, caplog):
        posterior = MCMCPosterior(
            1,
            Parameters(n_particles=2),
            jr.PRNGKey(0),
            sampler=StubSampler(tagged_particles([0.1, 0.2])),
            surrogate_cls=StubSurrogate,
            criterion_factory=constant_criterion_factory,
        )
        with caplog.at_level(logging.INFO, logger="mcbo"):
            posterior.update_hyper_parameters()
        assert "Resampled 2 hyperparameter particles" in caplog.text
