# pylint: disable=redefined-outer-name
import numpy as np
import pytest

from ..helpers import fake_elpd, importorskip

xr = importorskip("xarray")

from arviz_varsel import SelectionPath, suggest_size
from arviz_varsel.errors import UnreliableEstimateWarning


def make_path(elpds, ses, unreliable=None, complete=True):
    if unreliable is None:
        unreliable = [False] * len(elpds)
    results = tuple(
        fake_elpd(elpd, se, unreliable=flag) for elpd, se, flag in zip(elpds, ses, unreliable)
    )
    n_predictors = len(elpds) - 1
    return SelectionPath(
        predictors=tuple(f"x{i + 1}" for i in range(n_predictors)),
        results=results,
        kl=tuple(np.linspace(1, 0, len(elpds))),
        complete=complete,
    )


@pytest.mark.parametrize(
    "elpds, ses, alpha, expected",
    [
        ([-100.0, -50.0, -49.9], [5.0, 5.0, 5.0], 0.1, 1),
        ([-100.0, -50.0, -49.0], [5.0, 5.0, 5.0], 0.1, 2),
        ([-100.0, -50.0, -49.0], [5.0, 5.0, 5.0], 0.5, 1),
        ([-10.0, -11.0, -12.0], [3.0, 3.0, 3.0], 0.1, 0),
        ([-50.0, -49.5, -49.0], [10.0, 10.0, 10.0], 0.1, 1),
        ([-20.0, -15.0, -16.0, -17.0], [4.0, 4.0, 4.0, 4.0], 0.1, 1),
        ([np.nan, -5.0, -6.0], [1.0, 1.0, 1.0], 0.1, 1),
    ],
)
def test_suggest_size(elpds, ses, alpha, expected):
    size = suggest_size(make_path(elpds, ses), alpha=alpha)
    assert size == expected
    assert isinstance(size, int)


def test_suggest_size_single_submodel():
    assert suggest_size(make_path([-10.0], [1.0])) == 0


def test_suggest_size_partial_path():
    path = make_path([-30.0, -20.0], [2.0, 2.0], complete=False)
    assert suggest_size(path) == 1


def test_suggest_size_unreliable_warns():
    path = make_path([-30.0, -20.0], [2.0, 2.0], unreliable=[False, True])
    with pytest.warns(UnreliableEstimateWarning, match="unreliable"):
        assert suggest_size(path) == 1


@pytest.mark.parametrize("alpha", [0, -0.1, np.inf, np.nan])
def test_suggest_size_invalid_alpha(alpha):
    with pytest.raises(ValueError, match="alpha"):
        suggest_size(make_path([-10.0, -9.0], [1.0, 1.0]), alpha=alpha)


def test_suggest_size_empty_path():
    path = SelectionPath(predictors=(), results=(), kl=())
    with pytest.raises(ValueError, match="no evaluated submodels"):
        suggest_size(path)


def test_suggest_size_all_nan():
    with pytest.raises(ValueError, match="NaN"):
        suggest_size(make_path([np.nan, np.nan], [1.0, 1.0]))
