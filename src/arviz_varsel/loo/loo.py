"""Pareto-smoothed importance sampling LOO (PSIS-LOO-CV)."""

from xarray_einstats.stats import logsumexp

from arviz_varsel.base import dataarray_stats
from arviz_varsel.loo.helper_loo import (
    _compute_loo_results,
    _count_unreliable,
    _get_log_likelihood_i,
    _get_r_eff,
    _prepare_loo_inputs,
    _warn_pareto_k,
)
from arviz_varsel.reference import ReferenceModel
from arviz_varsel.utils import ELPDData


def _unpack_data(data, var_name, name):
    if isinstance(data, ReferenceModel):
        name = data.name if name is None else name
        var_name = data.var_name if var_name is None else var_name
        data = data.idata
    return data, var_name, name


def loo(
    data,
    var_name=None,
    reff=None,
    log_weights=None,
    pareto_k=None,
    unreliable_fraction=0.0,
    name=None,
):
    r"""Compute Pareto-smoothed importance sampling leave-one-out cross-validation (PSIS-LOO-CV).

    Estimates the expected log pointwise predictive density (elpd) using Pareto-smoothed
    importance sampling leave-one-out cross-validation (PSIS-LOO-CV). Also calculates LOO's
    standard error and the effective number of parameters. The method is described in [1]_
    and [2]_.

    Parameters
    ----------
    data : DataTree, InferenceData or ReferenceModel
        Input data. It should contain the posterior and the log_likelihood groups.
    var_name : str, optional
        The name of the variable in log_likelihood groups storing the pointwise log
        likelihood data to use for loo computation.
    reff : float, optional
        Relative MCMC efficiency, ``ess / n`` i.e. number of effective samples divided by the number
        of actual samples. Computed from the posterior by default.
    log_weights : DataArray, optional
        Smoothed log weights. It must have the same shape as the log likelihood data.
        Must be provided together with pareto_k or both must be None.
    pareto_k : DataArray, optional
        Pareto shape values, one per observation. NaN values mark observations where
        smoothing failed. Must be provided together with log_weights or both must be None.
    unreliable_fraction : float, default 0
        Largest fraction of observations with Pareto k of 1 or more tolerated before
        the result is flagged as ``unreliable``. Any failed tail fit flags the result.
    name : str, optional
        Model name stored in the result. Defaults to the reference model name if any.

    Returns
    -------
    ELPDData
        Object with the following attributes:

        - **kind**: "loo"
        - **elpd**: expected log pointwise predictive density, always ``elpd_i.sum()``
        - **se**: standard error of the elpd, ``sqrt(n * var(elpd_i))``
        - **p**: effective number of parameters
        - **n_samples**: number of samples
        - **n_data_points**: number of data points
        - **scale**: "log"
        - **warning**: True if any Pareto k is 0.7 or larger or could not be estimated
        - **elpd_i**: :class:`~xarray.DataArray` with the pointwise predictive accuracy
        - **pareto_k**: :class:`~xarray.DataArray` with Pareto shape values
        - **log_weights**: Smoothed log weights.
        - **psis_fallback**: :class:`~xarray.DataArray` flagging observations that use
          raw importance weights
        - **n_unreliable**, **n_very_unreliable**: observations with k of at least 0.7 and 1
        - **unreliable**: whether the estimate should not be used for decisions

    Warns
    -----
    UnreliableEstimateWarning
        When the result is flagged as unreliable.
    PSISFallbackWarning
        When Pareto smoothing failed for some observations.

    Examples
    --------
    Calculate LOO of a reference model:

    .. ipython::

        In [1]: import numpy as np
           ...: from arviz_varsel import ConjugateLinearModel, loo
           ...: rng = np.random.default_rng(3)
           ...: X = rng.normal(size=(50, 2))
           ...: y = 1 + X[:, 0] + rng.normal(size=50)
           ...: model = ConjugateLinearModel.from_arrays(X, y, seed=3, name="full")
           ...: loo_data = loo(model)
           ...: loo_data

    See Also
    --------
    compare_models : Paired difference between two elpd estimates.
    loo_kfold : K-fold cross-validation, for when PSIS-LOO is unreliable.

    References
    ----------

    .. [1] Vehtari et al. *Practical Bayesian model evaluation using leave-one-out cross-validation
       and WAIC*. Statistics and Computing. 27(5) (2017) https://doi.org/10.1007/s11222-016-9696-4
       arXiv preprint https://arxiv.org/abs/1507.04544.

    .. [2] Vehtari et al. *Pareto Smoothed Importance Sampling*.
       Journal of Machine Learning Research, 25(72) (2024) https://jmlr.org/papers/v25/19-556.html
       arXiv preprint https://arxiv.org/abs/1507.02646
    """
    data, var_name, name = _unpack_data(data, var_name, name)
    loo_inputs = _prepare_loo_inputs(data, var_name)

    if (log_weights is None) != (pareto_k is None):
        raise ValueError(
            "Both log_weights and pareto_k must be provided together or both must be None. "
            "Only one was provided."
        )

    if reff is None and log_weights is None:
        reff = _get_r_eff(data, loo_inputs.n_samples, loo_inputs.sample_dims)

    return _compute_loo_results(
        log_likelihood=loo_inputs.log_likelihood,
        sample_dims=loo_inputs.sample_dims,
        n_samples=loo_inputs.n_samples,
        n_data_points=loo_inputs.n_data_points,
        log_weights=log_weights,
        pareto_k=pareto_k,
        reff=reff,
        unreliable_fraction=unreliable_fraction,
        name=name,
    )


def loo_i(i, data, var_name=None, reff=None):
    r"""Compute PSIS-LOO-CV for a single observation.

    Parameters
    ----------
    i : int, scalar label or mapping
        Observation to evaluate: a flattened integer index, a coordinate value when there
        is a single observation dimension, or a mapping ``{obs_dim: coord_value}``.
    data : DataTree, InferenceData or ReferenceModel
    var_name : str, optional
    reff : float, optional
        Relative MCMC efficiency. Computed from the posterior by default.

    Returns
    -------
    ELPDData
        ``n_data_points`` is 1 and ``se`` is 0 as it is undefined for a single observation.
        ``elpd`` matches the corresponding value in ``loo(data).elpd_i``.
    """
    data, var_name, name = _unpack_data(data, var_name, None)
    loo_inputs = _prepare_loo_inputs(data, var_name)
    sample_dims = loo_inputs.sample_dims
    if reff is None:
        reff = _get_r_eff(data, loo_inputs.n_samples, sample_dims)

    log_lik_i = _get_log_likelihood_i(loo_inputs.log_likelihood, i, loo_inputs.obs_dims)
    log_weights_i, pareto_k_i, psis_fallback_i = dataarray_stats.psislw(
        -log_lik_i, r_eff=reff, dim=sample_dims
    )

    elpd_i = logsumexp(log_weights_i + log_lik_i, dims=sample_dims).rename("elpd_i")
    elpd = elpd_i.sum().item()
    lppd_i = logsumexp(log_lik_i, b=1 / loo_inputs.n_samples, dims=sample_dims).sum().item()

    n_unreliable, n_very_unreliable = _count_unreliable(pareto_k_i)
    unreliable = n_very_unreliable > 0
    _warn_pareto_k(n_unreliable, 1, unreliable)

    return ELPDData(
        kind="loo",
        elpd=elpd,
        se=0.0,
        p=lppd_i - elpd,
        n_samples=loo_inputs.n_samples,
        n_data_points=1,
        scale="log",
        warning=n_unreliable > 0,
        elpd_i=elpd_i,
        pareto_k=pareto_k_i,
        log_weights=log_weights_i,
        psis_fallback=psis_fallback_i,
        name=name,
        n_unreliable=n_unreliable,
        n_very_unreliable=n_very_unreliable,
        unreliable=unreliable,
    )
