"""Helper functions for PSIS-LOO-CV."""

import warnings
from collections import namedtuple
from collections.abc import Mapping

import numpy as np
from arviz_base import convert_to_datatree
from xarray_einstats.stats import logsumexp

from arviz_varsel.base import dataarray_stats
from arviz_varsel.errors import UnreliableEstimateWarning
from arviz_varsel.utils import ELPDData, get_log_likelihood
from arviz_varsel.validate import validate_dims, validate_fraction

__all__ = [
    "LooInputs",
    "_compute_loo_results",
    "_prepare_loo_inputs",
    "_get_log_likelihood_i",
    "_get_r_eff",
    "_count_unreliable",
    "_warn_pareto_k",
]

UNRELIABLE_K = 0.7
VERY_UNRELIABLE_K = 1.0

LooInputs = namedtuple(
    "LooInputs",
    ["log_likelihood", "var_name", "sample_dims", "obs_dims", "n_samples", "n_data_points"],
)


def _prepare_loo_inputs(data, var_name, sample_dims=None):
    """Prepare inputs for PSIS-LOO-CV."""
    data = convert_to_datatree(data)

    log_likelihood = get_log_likelihood(data, var_name=var_name)
    if var_name is None and log_likelihood.name is not None:
        var_name = log_likelihood.name

    sample_dims = validate_dims(sample_dims)
    missing = [dim for dim in sample_dims if dim not in log_likelihood.dims]
    if missing:
        raise ValueError(f"log likelihood data is missing the sample dimensions {missing}")
    obs_dims = [dim for dim in log_likelihood.dims if dim not in sample_dims]
    if not obs_dims:
        raise ValueError("log likelihood data must have at least one observation dimension")
    n_samples = int(np.prod([log_likelihood.sizes[dim] for dim in sample_dims]))
    n_data_points = int(np.prod([log_likelihood.sizes[dim] for dim in obs_dims]))
    return LooInputs(
        log_likelihood,
        var_name,
        sample_dims,
        obs_dims,
        n_samples,
        n_data_points,
    )


def _get_r_eff(data, n_samples, sample_dims=None):
    """Mean relative efficiency of the posterior draws, 1 for a single chain."""
    if not hasattr(data, "posterior"):
        raise TypeError("Must be able to extract a posterior group from data.")
    sample_dims = validate_dims(sample_dims)
    posterior = data.posterior.to_dataset()
    if len(sample_dims) == 1 or posterior.sizes[sample_dims[0]] == 1:
        return 1.0
    ess_p = dataarray_stats.ess
    # this mean is over all data variables
    ess_values = np.hstack(
        [ess_p(posterior[v], sample_dims=sample_dims).values.ravel() for v in posterior.data_vars]
    )
    ess_values = ess_values[np.isfinite(ess_values)]
    if ess_values.size == 0:
        return 1.0
    return float(ess_values.mean() / n_samples)


def _count_unreliable(pareto_k):
    """Count observations at or above the unreliable and very unreliable Pareto k cutoffs.

    Observations where the tail fit failed (NaN k) count in both.
    """
    k_values = np.asarray(pareto_k, dtype=float)
    failed = ~np.isfinite(k_values)
    with np.errstate(invalid="ignore"):
        n_unreliable = int(np.sum((k_values >= UNRELIABLE_K) | failed))
        n_very_unreliable = int(np.sum((k_values >= VERY_UNRELIABLE_K) | failed))
    return n_unreliable, n_very_unreliable


def _warn_pareto_k(n_unreliable, n_data_points, unreliable, suppress=False):
    """Issue the Pareto k warnings for a loo result."""
    if suppress:
        return
    if unreliable:
        warnings.warn(
            "PSIS-LOO estimate is unreliable: Pareto k is at least 1 or the tail fit failed for "
            "too many observations. Check ``unreliable`` on the result before using it for "
            "decisions, and consider K-fold cross-validation instead.",
            UnreliableEstimateWarning,
            stacklevel=3,
        )
    elif n_unreliable:
        warnings.warn(
            f"Estimated shape parameter of Pareto distribution is at least {UNRELIABLE_K} "
            f"for {n_unreliable} of {n_data_points} observations. You should consider using a "
            "more robust model, this is because importance sampling is less likely to work well "
            "if the marginal posterior and LOO posterior are very different.",
            stacklevel=3,
        )


def _compute_loo_results(
    log_likelihood,
    sample_dims,
    n_samples,
    n_data_points,
    log_weights=None,
    pareto_k=None,
    reff=1.0,
    unreliable_fraction=0.0,
    name=None,
    suppress_warnings=False,
):
    """Compute PSIS-LOO-CV results from a pointwise log likelihood DataArray."""
    unreliable_fraction = validate_fraction(unreliable_fraction, "unreliable_fraction")
    obs_dims = [dim for dim in log_likelihood.dims if dim not in sample_dims]

    if log_weights is None:
        log_weights, pareto_k, psis_fallback = dataarray_stats.psislw(
            -log_likelihood, r_eff=reff, dim=sample_dims, warn=not suppress_warnings
        )
    else:
        for dim in sample_dims:
            if dim not in log_weights.dims:
                raise ValueError(f"log_weights must have sample dimension '{dim}'")
        if set(pareto_k.dims) != set(obs_dims):
            raise ValueError(
                f"pareto_k dimensions {list(pareto_k.dims)} must match "
                f"observation dimensions {obs_dims}"
            )
        psis_fallback = pareto_k.isnull().rename("psis_fallback")

    n_unreliable, n_very_unreliable = _count_unreliable(pareto_k)
    unreliable = bool(
        n_very_unreliable / n_data_points > unreliable_fraction or psis_fallback.any()
    )
    _warn_pareto_k(n_unreliable, n_data_points, unreliable, suppress=suppress_warnings)

    elpd_i = logsumexp(log_weights + log_likelihood, dims=sample_dims).rename("elpd_i")
    elpd = elpd_i.sum().item()

    lppd = logsumexp(log_likelihood, b=1 / n_samples, dims=sample_dims).sum().item()
    p_loo = lppd - elpd

    elpd_se = (n_data_points * np.var(elpd_i.values)) ** 0.5

    return ELPDData(
        kind="loo",
        elpd=elpd,
        se=elpd_se,
        p=p_loo,
        n_samples=n_samples,
        n_data_points=n_data_points,
        scale="log",
        warning=n_unreliable > 0,
        elpd_i=elpd_i,
        pareto_k=pareto_k,
        log_weights=log_weights,
        psis_fallback=psis_fallback,
        name=name,
        n_unreliable=n_unreliable,
        n_very_unreliable=n_very_unreliable,
        unreliable=unreliable,
    )


def _get_log_likelihood_i(log_likelihood, i, obs_dims):
    """Extract the log-likelihood for one observation `i`."""
    if isinstance(i, int | np.integer):
        idx = int(i)
        if len(obs_dims) == 1:
            return log_likelihood.isel({obs_dims[0]: slice(idx, idx + 1)}, drop=False)

        # multi-dim: stack, isel one, then unstack to preserve obs dims
        stacked_dim = "__obs__"
        stacked = log_likelihood.stack({stacked_dim: obs_dims})
        selected = stacked.isel({stacked_dim: slice(idx, idx + 1)}, drop=False)
        return selected.unstack(stacked_dim)

    if isinstance(i, Mapping):
        if set(i.keys()) != set(obs_dims):
            raise ValueError(f"Provide selections for all observation dims: {tuple(obs_dims)}")
        return log_likelihood.sel({dim: [label] for dim, label in i.items()}, drop=False)

    if len(obs_dims) == 1:
        return log_likelihood.sel({obs_dims[0]: [i]}, drop=False)

    raise TypeError(
        "i must be either a flattened integer index, a mapping of {obs_dim: coord_value} "
        "for all observation dims, or a single scalar label when there is exactly one "
        "observation dimension."
    )
