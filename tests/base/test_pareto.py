"""Test the generalized Pareto tail estimation."""

# pylint: disable=redefined-outer-name
import numpy as np
import pytest
from numpy.testing import assert_allclose

from ..helpers import importorskip

sp = importorskip("scipy")

from scipy.stats import genpareto

from arviz_varsel.base import gpdfit, gpinv, pareto_khat
from arviz_varsel.base.pareto import get_ps_tails, ps_tail
from arviz_varsel.errors import DegenerateTail, InsufficientTailSample


@pytest.mark.parametrize("k_true", [0.1, 0.3, 0.7])
def test_gpdfit_recovers_shape(k_true):
    rng = np.random.default_rng(11)
    sample = genpareto.rvs(c=k_true, scale=2.0, size=20000, random_state=rng)
    k_hat, sigma_hat = gpdfit(sample)
    assert abs(k_hat - k_true) < 0.05
    assert abs(sigma_hat - 2.0) < 0.15


def test_gpdfit_consistency():
    rng = np.random.default_rng(3)
    sample = genpareto.rvs(c=0.3, size=40000, random_state=rng)
    errors = [abs(gpdfit(sample[:n]).k - 0.3) for n in (40, 40000)]
    assert errors[1] < 0.03
    assert errors[1] <= errors[0] + 0.03


def test_gpdfit_too_few_values():
    with pytest.raises(InsufficientTailSample):
        gpdfit([0.1, 0.2, 0.3, 0.4])


def test_gpdfit_constant_values():
    with pytest.raises(DegenerateTail):
        gpdfit(np.ones(20))


@pytest.mark.parametrize("k", [-0.2, 0.3, 0.9])
def test_gpinv_matches_scipy(k):
    probs = np.linspace(0.05, 0.95, 10)
    assert_allclose(gpinv(probs, k, 1.5, 0.5), genpareto.ppf(probs, c=k, scale=1.5, loc=0.5))


def test_gpinv_exponential_limit():
    probs = np.array([0.1, 0.5, 0.9])
    assert_allclose(gpinv(probs, 0, 2.0), -2.0 * np.log1p(-probs))


def test_gpinv_invalid_sigma():
    assert np.all(np.isnan(gpinv([0.2, 0.4], 0.5, -1)))


@pytest.mark.parametrize(
    "n_draws, r_eff, expected",
    [(1000, 1, 95), (4000, 1, 190), (1000, 0.5, 135), (100, 1, 20), (4, 1, 1)],
)
def test_get_ps_tails(n_draws, r_eff, expected):
    assert get_ps_tails(n_draws, r_eff) == expected


def test_ps_tail_smoothing_keeps_order_and_body():
    rng = np.random.default_rng(0)
    ary = rng.standard_t(df=3, size=1000)
    smoothed, k = ps_tail(ary, 95, smooth_draws=True, tail="right")
    order = np.argsort(ary)
    assert np.isfinite(k)
    assert_allclose(smoothed[order[:-95]], ary[order[:-95]])
    assert np.all(np.diff(smoothed[order[-95:]]) >= 0)
    assert smoothed.max() <= ary.max()


def test_ps_tail_insufficient_draws():
    with pytest.raises(InsufficientTailSample):
        ps_tail(np.arange(10.0), 4)


def test_ps_tail_invalid_tail():
    with pytest.raises(ValueError, match="tail must be"):
        ps_tail(np.arange(10.0), 5, tail="middle")


def test_pareto_khat_light_and_heavy_tails():
    rng = np.random.default_rng(4)
    assert pareto_khat(rng.normal(size=4000)) < 0.5
    assert pareto_khat(rng.standard_cauchy(size=4000), tail="right") > 0.5


def test_pareto_khat_not_enough_draws():
    assert np.isnan(pareto_khat(np.arange(10.0)))
