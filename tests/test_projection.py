# pylint: disable=redefined-outer-name
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from .helpers import importorskip

azb = importorskip("arviz_base")

from arviz_varsel import project
from arviz_varsel.errors import ConvergenceFailure
from arviz_varsel.families import Bernoulli, Gaussian, get_family
from arviz_varsel.projection import _select_draws


def _flat(da, *extra_dims):
    return da.transpose("chain", "draw", *extra_dims).values.reshape(-1, *da.shape[2:])


def test_project_all_predictors_reproduces_reference(linear_model):
    projected = project(linear_model, linear_model.predictors)
    posterior = linear_model.idata.posterior
    assert_allclose(
        _flat(projected.posterior["beta"], "predictor"),
        _flat(posterior["beta"], "predictor"),
        atol=1e-8,
    )
    assert_allclose(_flat(projected.posterior["intercept"]), _flat(posterior["intercept"]))
    assert_allclose(_flat(projected.posterior["sigma"]), _flat(posterior["sigma"]))
    assert_allclose(projected.sample_stats["kl"].values, 0, atol=1e-10)
    assert projected.attrs["kl"] < 1e-10


def test_project_structure(linear_model):
    projected = project(linear_model, ["x2", "x1"], ndraws=100)
    assert projected.posterior.sizes["chain"] == 1
    assert projected.posterior.sizes["draw"] == 100
    assert list(projected.posterior["predictor"].values) == ["x2", "x1"]
    assert set(projected.posterior.data_vars) == {"intercept", "beta", "sigma"}
    assert projected.log_likelihood["y"].sizes["obs_id"] == 60
    assert projected.sample_stats["kl"].sizes["draw"] == 100
    assert projected.attrs["predictors"] == ["x2", "x1"]
    assert_array_equal(projected.observed_data["y"].values, linear_model.observed())


def test_project_intercept_only(linear_model):
    projected = project(linear_model, [], ndraws=50)
    assert "beta" not in projected.posterior.data_vars
    assert projected.attrs["kl"] > 0
    # intercept only projection is the mean of the reference linear predictor
    eta = linear_model.linear_predictor().reshape(-1, 60)
    draw_idx = _select_draws(linear_model.n_samples, 50)
    assert_allclose(
        projected.posterior["intercept"].values.ravel(), eta[draw_idx].mean(axis=1)
    )


def test_project_kl_decreases_with_nested_submodels(linear_model):
    kls = [
        project(linear_model, predictors, ndraws=100).sample_stats["kl"].values.ravel()
        for predictors in ([], ["x1"], ["x1", "x2"], ["x1", "x2", "x3"])
    ]
    for smaller, larger in zip(kls[:-1], kls[1:]):
        assert np.all(larger <= smaller + 1e-12)
    assert kls[1].mean() > 3 * kls[2].mean()


def test_project_sigma_absorbs_residual(linear_model):
    projected = project(linear_model, ["x3"], ndraws=20)
    reference_sigma = linear_model.dispersion().ravel()[_select_draws(linear_model.n_samples, 20)]
    assert np.all(projected.posterior["sigma"].values.ravel() > reference_sigma)


def test_project_random_thinning(linear_model):
    first = project(linear_model, ["x1"], ndraws=30, thinning="random", seed=4)
    second = project(linear_model, ["x1"], ndraws=30, thinning="random", seed=4)
    assert_allclose(first.posterior["beta"].values, second.posterior["beta"].values)


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"predictors": ["x7"]}, "not in the reference model"),
        ({"predictors": ["x1", "x1"]}, "unique"),
        ({"predictors": ["x1"], "ndraws": 10**6}, "cannot be larger"),
        ({"predictors": ["x1"], "ndraws": 0}, "positive integer"),
        ({"predictors": ["x1"], "thinning": "odd"}, "thinning"),
    ],
)
def test_project_invalid_arguments(linear_model, kwargs, match):
    with pytest.raises(ValueError, match=match):
        project(linear_model, **kwargs)


def test_select_draws_even():
    idx = _select_draws(100, 5)
    assert_array_equal(idx, [0, 25, 50, 74, 99])
    assert_array_equal(_select_draws(10, None), np.arange(10))


def test_project_bernoulli(bernoulli_model):
    projected = project(bernoulli_model, ["x1", "x2"])
    beta = projected.posterior["beta"].values.reshape(-1, 2)
    reference = bernoulli_model.idata.posterior["beta"].values.reshape(-1, 2)
    assert_allclose(beta, reference, atol=1e-2)
    assert projected.attrs["kl"] < 1e-4
    assert "sigma" not in projected.posterior.data_vars


def test_project_bernoulli_submodel(bernoulli_model):
    projected = project(bernoulli_model, ["x1"], ndraws=10)
    assert projected.posterior.sizes["draw"] == 10
    assert projected.attrs["kl"] > 1e-3
    assert np.all(projected.log_likelihood["y"].values <= 0)


def test_gaussian_projection_non_finite():
    eta = np.array([[1.0, 2.0, 3.0]])
    with pytest.raises(ConvergenceFailure):
        Gaussian().project(eta, np.array([0.0]), np.ones((3, 1)))


def test_get_family():
    assert isinstance(get_family("Gaussian"), Gaussian)
    assert_allclose(Gaussian().inverse_link(np.array([-1.0, 2.0])), [-1.0, 2.0])
    assert_allclose(Bernoulli().inverse_link(np.array([0.0])), [0.5])
    family = Bernoulli()
    assert get_family(family) is family
    with pytest.raises(ValueError, match="Unsupported family"):
        get_family("poisson")


class CountingBernoulli(Bernoulli):
    def __init__(self):
        self.calls = 0

    def inverse_link(self, eta):
        self.calls += 1
        return super().inverse_link(eta)


def test_bernoulli_projection_uses_inverse_link():
    rng = np.random.default_rng(3)
    design = np.column_stack([np.ones(20), rng.normal(size=20)])
    eta = rng.normal(size=(4, 20))
    family = CountingBernoulli()
    projection = family.project(eta, None, design)
    assert family.calls > 0
    expected = Bernoulli().project(eta, None, design)
    assert_allclose(projection.coefs, expected.coefs)
    assert_allclose(projection.kl, expected.kl)
