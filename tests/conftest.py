# pylint: disable=redefined-outer-name
import pytest

from .helpers import create_bernoulli_model, create_linear_data, importorskip

importorskip("arviz_base")

from arviz_varsel import ConjugateLinearModel


class CountingLinearModel(ConjugateLinearModel):
    """Conjugate model that records how many times it has been refit."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fit_count = 0

    def fit(self, train_idx, seed=None):
        self.fit_count += 1
        return super().fit(train_idx, seed=seed)


@pytest.fixture(scope="session")
def linear_data():
    return create_linear_data()


@pytest.fixture(scope="session")
def linear_model(linear_data):
    X, y = linear_data
    return ConjugateLinearModel.from_arrays(X, y, ndraws=500, seed=1, name="full")


@pytest.fixture(scope="session")
def small_linear_model(linear_data):
    X, y = linear_data
    return ConjugateLinearModel.from_arrays(
        X[:, 2:], y, predictors=["x3", "x4"], ndraws=500, seed=2, name="noise"
    )


@pytest.fixture()
def counting_model(linear_data):
    X, y = linear_data
    return CountingLinearModel.from_arrays(X, y, ndraws=200, seed=3, name="counting")


@pytest.fixture(scope="session")
def bernoulli_model():
    return create_bernoulli_model()
