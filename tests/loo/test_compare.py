# pylint: disable=redefined-outer-name
from dataclasses import replace

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from ..helpers import create_linear_data, importorskip

azb = importorskip("arviz_base")
pd = importorskip("pandas")

from arviz_varsel import ConjugateLinearModel, compare, compare_models, loo, loo_kfold
from arviz_varsel.errors import MismatchedObservationSets


@pytest.fixture(scope="module")
def loo_full(linear_model):
    return loo(linear_model)


@pytest.fixture(scope="module")
def loo_noise(small_linear_model):
    return loo(small_linear_model)


def test_compare_models_same_model(loo_full):
    result = compare_models(loo_full, loo_full)
    assert result.elpd_diff == 0
    assert result.se_diff == 0
    assert result.name_a == result.name_b == "full"


def test_compare_models_antisymmetric(loo_full, loo_noise):
    ab = compare_models(loo_full, loo_noise)
    ba = compare_models(loo_noise, loo_full)
    assert ab.elpd_diff == -ba.elpd_diff
    assert_allclose(ab.se_diff, ba.se_diff)
    assert ab.elpd_diff > 2 * ab.se_diff
    assert_allclose(ab.elpd_diff, loo_full.elpd - loo_noise.elpd)


def test_compare_models_print(loo_full, loo_noise):
    text = str(compare_models(loo_full, loo_noise))
    assert "elpd_diff(full - noise)" in text
    assert "se_diff" in text


def test_compare_models_different_sizes(loo_full):
    X, y = create_linear_data(n_obs=30)
    other = loo(ConjugateLinearModel.from_arrays(X, y, ndraws=200, seed=4))
    with pytest.raises(MismatchedObservationSets, match="numbers of observations"):
        compare_models(loo_full, other)


def test_compare_models_different_coords(loo_full, loo_noise):
    shifted = replace(loo_noise, elpd_i=loo_noise.elpd_i.assign_coords(obs_id=np.arange(60) + 100))
    with pytest.raises(MismatchedObservationSets, match="Coordinate values"):
        compare_models(loo_full, shifted)


def test_compare_models_different_dims(loo_full, loo_noise):
    renamed = replace(loo_noise, elpd_i=loo_noise.elpd_i.rename(obs_id="school"))
    with pytest.raises(MismatchedObservationSets, match="dimensions"):
        compare_models(loo_full, renamed)


def test_compare_models_missing_pointwise(loo_full, loo_noise):
    with pytest.raises(MismatchedObservationSets, match="pointwise"):
        compare_models(loo_full, replace(loo_noise, elpd_i=None))


def test_compare(linear_model, small_linear_model):
    cmp_df = compare({"noise": small_linear_model, "full": linear_model})
    assert isinstance(cmp_df, pd.DataFrame)
    assert list(cmp_df.index) == ["full", "noise"]
    assert list(cmp_df.columns) == ["rank", "elpd", "p", "elpd_diff", "se", "dse", "warning"]
    assert_array_equal(cmp_df["rank"].values, [0, 1])
    assert cmp_df.loc["full", "elpd_diff"] == 0
    assert cmp_df.loc["full", "dse"] == 0
    assert cmp_df.loc["noise", "elpd_diff"] > 0
    assert cmp_df["warning"].dtype == bool


def test_compare_precomputed(loo_full, loo_noise):
    cmp_df = compare({"a": loo_noise, "b": loo_full})
    diff = compare_models(loo_full, loo_noise)
    assert list(cmp_df.index) == ["b", "a"]
    assert_allclose(cmp_df.loc["a", "elpd_diff"], diff.elpd_diff)
    assert_allclose(cmp_df.loc["a", "dse"], diff.se_diff)


def test_compare_single_model(loo_full):
    with pytest.raises(ValueError, match="at least two"):
        compare({"full": loo_full})


def test_compare_mixed_methods_warns(loo_noise, linear_model):
    kfold_full = loo_kfold(linear_model, k=4, seed=5)
    with pytest.warns(UserWarning, match="Comparing LOO-CV to K-fold-CV"):
        cmp_df = compare({"noise": loo_noise, "full": kfold_full})
    assert cmp_df.index[0] == "full"


def test_compare_incompatible_methods(loo_full, loo_noise):
    other = replace(loo_noise, kind="waic")
    with pytest.raises(ValueError, match="incompatible"):
        compare({"full": loo_full, "other": other})
