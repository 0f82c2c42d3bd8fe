# pylint: disable=redefined-outer-name
"""Test related helper functions."""

import os
import sys
import warnings
from typing import Any

import numpy as np
import pytest


def importorskip(modname: str, reason: str | None = None) -> Any:
    """Import and return the requested module ``modname``.

    Doesn't allow skips when ``ARVIZ_REQUIRE_ALL_DEPS`` env var is defined.
    Borrowed and modified from ``pytest.importorskip``.

    Parameters
    ----------
    modname : str
        the name of the module to import
    reason : str, optional
        this reason is shown as skip message when the module cannot be imported.
    """
    __tracebackhide__ = True  # pylint: disable=unused-variable
    compile(modname, "", "eval")  # to catch syntaxerrors

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            __import__(modname)
        except ImportError as exc:
            if "ARVIZ_REQUIRE_ALL_DEPS" in os.environ:
                raise exc
            if reason is None:
                reason = f"could not import {modname!r}: {exc}"
            pytest.skip(reason, allow_module_level=True)

    mod = sys.modules[modname]
    return mod


def create_linear_data(seed=0, n_obs=60, n_predictors=4, coefs=(2.0, -1.0), noise=1.0):
    """Gaussian regression data where only the first ``len(coefs)`` predictors matter."""
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n_obs, n_predictors))
    y = 1.0 + X[:, : len(coefs)] @ np.asarray(coefs) + rng.normal(scale=noise, size=n_obs)
    return X, y


def create_dominant_predictor_data(seed=7, n_obs=10, orthogonal=True):
    """Response, a near copy of it and a noise column.

    With ``orthogonal=True`` the noise column is made orthogonal to the intercept, the
    response and the near copy, otherwise it is plain standard normal noise.
    """
    rng = np.random.default_rng(seed)
    y = rng.normal(size=n_obs)
    x1 = y + rng.normal(scale=0.1, size=n_obs)
    noise = rng.normal(size=n_obs)
    if not orthogonal:
        return np.column_stack([x1, noise]), y
    basis = np.column_stack([np.ones(n_obs), y, x1])
    coefs, *_ = np.linalg.lstsq(basis, noise, rcond=None)
    x2 = noise - basis @ coefs
    x2 /= x2.std()
    return np.column_stack([x1, x2]), y


def create_bernoulli_model(seed=5, n_obs=40, nchains=2, ndraws=25):
    """Logistic regression reference model with draws scattered around the true values."""
    from arviz_base import from_dict
    from scipy.special import expit

    from arviz_varsel import ReferenceModel

    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n_obs, 2))
    true_beta = np.array([1.0, -1.0])
    y = rng.binomial(1, expit(0.3 + X @ true_beta)).astype(float)
    intercept = 0.3 + 0.1 * rng.normal(size=(nchains, ndraws))
    beta = true_beta + 0.1 * rng.normal(size=(nchains, ndraws, 2))
    eta = intercept[..., None] + beta @ X.T
    idata = from_dict(
        {
            "posterior": {"intercept": intercept, "beta": beta},
            "log_likelihood": {"y": y * eta - np.logaddexp(0.0, eta)},
            "observed_data": {"y": y},
            "constant_data": {"X": X},
        },
        dims={"beta": ["predictor"], "y": ["obs_id"], "X": ["obs_id", "predictor"]},
        coords={"predictor": ["x1", "x2"], "obs_id": np.arange(n_obs)},
    )
    return ReferenceModel(idata, family="bernoulli", name="logistic")


def fake_elpd(elpd, se, unreliable=False, n_obs=10):
    """ELPDData with the given totals, spreading ``elpd`` evenly over the observations."""
    from xarray import DataArray

    from arviz_varsel import ELPDData

    return ELPDData(
        kind="loo",
        elpd=elpd,
        se=se,
        p=1.0,
        n_samples=100,
        n_data_points=n_obs,
        scale="log",
        warning=unreliable,
        elpd_i=DataArray(np.full(n_obs, elpd / n_obs), dims=["obs_id"], name="elpd_i"),
        unreliable=unreliable,
    )
