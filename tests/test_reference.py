# pylint: disable=redefined-outer-name
import numpy as np
import pytest
from numpy.testing import assert_allclose

from .helpers import create_linear_data, importorskip

azb = importorskip("arviz_base")

from arviz_varsel import ConjugateLinearModel, ReferenceModel


def test_conjugate_model_structure(linear_model):
    assert linear_model.predictors == ["x1", "x2", "x3", "x4"]
    assert linear_model.n_data_points == 60
    assert linear_model.n_samples == 2000
    assert linear_model.obs_dim == "obs_id"
    assert linear_model.var_name == "y"
    assert linear_model.can_refit
    assert linear_model.concurrent_safe
    assert linear_model.idata.posterior["beta"].sizes["predictor"] == 4
    assert "ConjugateLinearModel('full'" in repr(linear_model)


def test_conjugate_posterior_recovers_coefficients(linear_model):
    beta_mean = linear_model.idata.posterior["beta"].mean(("chain", "draw")).values
    assert_allclose(beta_mean, [2.0, -1.0, 0.0, 0.0], atol=0.4)
    assert_allclose(linear_model.idata.posterior["intercept"].mean().item(), 1.0, atol=0.4)
    assert_allclose(linear_model.idata.posterior["sigma"].mean().item(), 1.0, atol=0.3)


def test_conjugate_log_likelihood_matches_family(linear_model):
    eta = linear_model.linear_predictor()
    log_lik = linear_model.family.log_likelihood(
        linear_model.observed(), eta, linear_model.dispersion()
    )
    stored = linear_model.idata.log_likelihood["y"].transpose("chain", "draw", "obs_id").values
    assert_allclose(log_lik, stored)


def test_linear_predictor_shape(linear_model):
    assert linear_model.linear_predictor().shape == (4, 500, 60)
    subset = linear_model.design_matrix([0, 1, 2], ["x2"])
    assert subset.shape == (3, 1)
    assert_allclose(subset[:, 0], linear_model.design_matrix()[:3, 1])


def test_fit_and_log_likelihood_i(linear_model):
    train_idx = np.arange(10, 60)
    fit = linear_model.fit(train_idx, seed=np.random.SeedSequence(0))
    assert fit.posterior.sizes["draw"] == 500
    assert list(fit.posterior["predictor"].values) == linear_model.predictors
    log_lik = linear_model.log_likelihood__i(np.arange(10), fit)
    assert log_lik.dims == ("chain", "draw", "obs_id")
    assert log_lik.sizes["obs_id"] == 10
    assert np.all(np.isfinite(log_lik.values))


def test_fit_reproducible(linear_model):
    first = linear_model.fit(np.arange(30), seed=5)
    second = linear_model.fit(np.arange(30), seed=5)
    assert_allclose(first.posterior["beta"].values, second.posterior["beta"].values)


def test_from_arrays_single_column():
    X, y = create_linear_data(n_predictors=1, coefs=(1.0,), n_obs=20)
    model = ConjugateLinearModel.from_arrays(X[:, 0], y, predictors=["age"], ndraws=50, seed=0)
    assert model.predictors == ["age"]
    assert model.n_samples == 200


@pytest.mark.parametrize(
    "X, y, predictors",
    [
        (np.ones((5, 2)), np.ones(4), None),
        (np.ones((5, 2)), np.ones(5), ["a"]),
        (np.ones((5, 2)), np.ones(5), ["a", "a"]),
    ],
)
def test_from_arrays_invalid(X, y, predictors):
    with pytest.raises(ValueError):
        ConjugateLinearModel.from_arrays(X, y, predictors=predictors, ndraws=10)


def test_reference_model_missing_group(linear_model):
    idata = linear_model.idata.copy()
    del idata["constant_data"]
    with pytest.raises(TypeError, match="constant_data"):
        ReferenceModel(idata)


def test_reference_model_missing_sigma(linear_model):
    idata = linear_model.idata.copy()
    idata["posterior"] = idata.posterior.to_dataset().drop_vars("sigma")
    with pytest.raises(ValueError, match="sigma"):
        ReferenceModel(idata)
    model = ReferenceModel(idata, family="bernoulli")
    assert model.dispersion() is None


def test_reference_model_cannot_refit(linear_model):
    model = ReferenceModel(linear_model.idata, name="plain")
    assert not model.can_refit
    assert model.check_implemented_methods(["fit"]) == ["fit"]
    with pytest.raises(NotImplementedError):
        model.fit(np.arange(10))
