"""Helper functions for K-fold cross-validation."""

import logging
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import xarray as xr
from scipy.special import logsumexp

from arviz_varsel.reference import ReferenceModel
from arviz_varsel.validate import validate_n_jobs

__all__ = [
    "KfoldInputs",
    "_prepare_kfold_inputs",
    "_fit_folds",
    "_kfold_split_random",
    "_get_fold_indices",
    "_combine_fold_elpds",
    "_validate_k_value",
    "_validate_array_length",
]

_log = logging.getLogger(__name__)

KfoldInputs = namedtuple(
    "KfoldInputs", ["n_data_points", "folds", "k", "fold_indices", "fold_seeds"]
)


def _prepare_kfold_inputs(model, k, folds, seed):
    """Validate the model and build the fold assignments and per fold seeds."""
    if not isinstance(model, ReferenceModel):
        raise TypeError("model must be an instance of ReferenceModel")
    not_implemented = model.check_implemented_methods(["fit"])
    if not_implemented:
        raise ValueError(
            f"The following methods must be implemented to refit the model: {not_implemented}"
        )

    n_data_points = model.n_data_points
    seed_seq = np.random.SeedSequence(seed)
    split_seed, fold_seed = seed_seq.spawn(2)
    if folds is not None:
        folds = _validate_array_length(folds, n_data_points, "folds")
        unique_folds = np.unique(folds)
        k = len(unique_folds)
        if not np.array_equal(unique_folds, np.arange(1, k + 1)):
            raise ValueError(f"folds must be labelled 1 to k, got labels {unique_folds}")
        _validate_k_value(k, n_data_points)
    else:
        folds = _kfold_split_random(k=k, n=n_data_points, seed=split_seed)

    return KfoldInputs(
        n_data_points=n_data_points,
        folds=folds,
        k=k,
        fold_indices=_get_fold_indices(folds, k),
        fold_seeds=fold_seed.spawn(k),
    )


def _fit_folds(model, kfold_inputs, n_jobs=1):
    """Refit `model` once per fold, returning the fitted posteriors in fold order.

    Folds run in a thread pool only when the model declares its fit concurrent-safe.
    """
    n_jobs = validate_n_jobs(n_jobs)
    n_all = kfold_inputs.n_data_points
    fold_args = [
        (np.setdiff1d(np.arange(n_all), test_idx), fold_seed)
        for test_idx, fold_seed in zip(kfold_inputs.fold_indices, kfold_inputs.fold_seeds)
    ]

    def _fit(args):
        train_idx, fold_seed = args
        return model.fit(train_idx, seed=fold_seed)

    if model.concurrent_safe and n_jobs > 1:
        _log.info("Refitting %d folds with %d workers", kfold_inputs.k, n_jobs)
        with ThreadPoolExecutor(max_workers=min(n_jobs, kfold_inputs.k)) as pool:
            return list(pool.map(_fit, fold_args))
    _log.info("Refitting %d folds sequentially", kfold_inputs.k)
    return [_fit(args) for args in fold_args]


def _fold_elpd(log_lik_k):
    """Log predictive density of each held out observation, ``log_lik_k`` is ``(S, n_test)``."""
    n_samples = log_lik_k.shape[0]
    return logsumexp(log_lik_k, axis=0) - np.log(n_samples)


def _kfold_split_random(k=10, n=None, seed=None):
    """Split the data into K groups of equal size (or roughly equal size)."""
    if n is None:
        raise ValueError("n must be provided")
    if not isinstance(n, int | np.integer):
        raise ValueError("n must be an integer")
    n = int(n)
    k = _validate_k_value(k, n)

    fold_size = n // k
    remainder = n % k

    folds = np.zeros(n, dtype=int)
    start = 0
    for i in range(k):
        end = start + fold_size + (1 if i < remainder else 0)
        folds[start:end] = i + 1
        start = end

    rng = np.random.default_rng(seed)
    perm = rng.permutation(n)
    return folds[perm]


def _get_fold_indices(fold_assignments, k):
    """Get test indices for each fold, in fold order."""
    return [np.where(fold_assignments == i)[0] for i in range(1, k + 1)]


def _combine_fold_elpds(fold_indices, fold_elpds, n_data_points):
    """Combine ELPD values from all folds into final estimates in observation order."""
    elpds = np.empty(n_data_points)
    for test_idx, elpd_k in zip(fold_indices, fold_elpds):
        elpds[test_idx] = elpd_k
    elpd_kfold = float(np.sum(elpds))
    se_elpd_kfold = float(np.sqrt(n_data_points * np.var(elpds)))

    return {"elpd_kfold": elpd_kfold, "se_elpd_kfold": se_elpd_kfold, "pointwise": elpds}


def _validate_k_value(k, n, param_name="k"):
    """Validate k parameter for k-fold splitting."""
    if not isinstance(k, int | np.integer):
        raise ValueError(f"{param_name} must be an integer")
    k = int(k)
    if k <= 1:
        raise ValueError(f"{param_name} must be greater than 1")
    if k > n:
        raise ValueError(f"{param_name} must not be greater than n ({n})")
    return k


def _validate_array_length(array, expected_length, param_name):
    """Validate array length matches expected number of observations."""
    if isinstance(array, xr.DataArray):
        array_length = array.size
        array_values = array.values.flatten()
    else:
        array = np.asarray(array)
        array_length = len(array)
        array_values = array

    if array_length != expected_length:
        raise ValueError(
            f"Length of {param_name} ({array_length}) must match number of "
            f"observations ({expected_length})"
        )
    return array_values
