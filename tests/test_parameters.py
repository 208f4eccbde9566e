import math

import pytest

from mcbo.errors import ConfigurationError, MCBOError
from mcbo.parameters import LEARNING_MODES, Parameters


def test_defaults():
    params = Parameters()
    assert params.n_particles == 10
    assert params.learning == "mcmc"
    assert params.criterion == "ei"
    assert params.sampler == "slice"
    assert params.noise_prior == (math.log(1e-4), 1.0)
    assert params.n_workers == 1


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"n_particles": 0}, "n_particles"),
        ({"learning": "bayes"}, "learning mode"),
        ({"burn_in": -1}, "burn_in"),
        ({"thinning": 0}, "thinning"),
        ({"slice_width": 0.0}, "slice_width"),
        ({"lengthscale_prior": (0.0, -1.0)}, "lengthscale_prior"),
        ({"jitter": -1e-6}, "jitter"),
        ({"n_workers": 0}, "n_workers"),
        ({"hedge_eta": 0.0}, "hedge_eta"),
        ({"criterion": "hedge", "hedge_criteria": ("ei",)}, "at least two"),
        ({"learning": "mcmc", "sampler": "map", "n_particles": 3}, "single particle"),
    ],
)
def test_invalid_values_raise(kwargs, match):
    with pytest.raises(ConfigurationError, match=match):
        Parameters(**kwargs)


def test_map_sampler_allowed_for_one_particle():
    assert Parameters(sampler="map", n_particles=1).sampler == "map"
    assert Parameters(learning="empirical", sampler="map").n_particles == 10


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        Parameters(n_particles=-3)
    assert issubclass(ConfigurationError, MCBOError)


def test_learning_modes():
    assert LEARNING_MODES == ("fixed", "empirical", "mcmc")


def test_from_dict():
    params = Parameters.from_dict({"n_particles": 4, "hedge_criteria": ["ei", "poi"]})
    assert params.n_particles == 4
    assert params.hedge_criteria == ("ei", "poi")


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
        Parameters.from_dict({"particles": 4})


def test_prior_pairs_are_floats():
    params = Parameters(signal_variance_prior=(1, 2))
    assert params.signal_variance_prior == (1.0, 2.0)
