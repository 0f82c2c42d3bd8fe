"""K-fold cross-validation."""

import numpy as np
from xarray import DataArray

from arviz_varsel.loo.helper_loo_kfold import (
    _combine_fold_elpds,
    _fit_folds,
    _fold_elpd,
    _prepare_kfold_inputs,
)
from arviz_varsel.projection import (
    _project_draws,
    _projected_log_likelihood,
    _select_draws,
    _validate_predictors,
)
from arviz_varsel.utils import ELPDData


def loo_kfold(
    model,
    k=10,
    folds=None,
    predictors=None,
    ndraws=None,
    n_jobs=1,
    seed=None,
    name=None,
):
    """Perform exact K-fold cross-validation.

    K-fold cross-validation evaluates model predictive accuracy by partitioning the data
    into K complementary subsets (folds), then iteratively refitting the model K times,
    each time holding out one fold as a test set and training on the remaining K-1 folds.
    Unlike PSIS-LOO-CV, which approximates cross-validation efficiently, K-fold requires
    actual model refitting but does not depend on importance sampling.

    Parameters
    ----------
    model : ReferenceModel
        Reference model implementing :meth:`~arviz_varsel.ReferenceModel.fit`.
    k : int, default 10
        The number of folds for cross-validation. The data will be partitioned into k subsets
        of equal (or approximately equal) size.
    folds : array or DataArray, optional
        Manual fold assignments (1 to k) for each observation. For example, [1,1,2,2,3,3,4,4]
        assigns first two obs to fold 1, next two to fold 2, etc. If not provided, creates k
        random folds of equal size.
    predictors : sequence of str, optional
        Evaluate the submodel with these predictors instead of the reference model. In each
        fold the refitted posterior is projected onto the submodel using the training data.
    ndraws : int, optional
        Number of draws to project per fold. Only used with `predictors`. Defaults to all.
    n_jobs : int, default 1
        Number of folds refitted at the same time, ``None`` or -1 use all CPUs.
        Ignored unless ``model.concurrent_safe`` is True.
    seed : int, optional
        Seed for the random fold split and the refits. Each fold gets its own seed
        derived from it, so results do not depend on `n_jobs`.
    name : str, optional
        Defaults to the name of the model.

    Returns
    -------
    ELPDData
        Object with the following attributes:

        - **kind**: "loo_kfold"
        - **elpd**: expected log pointwise predictive density
        - **se**: standard error of the elpd
        - **p**: effective number of parameters
        - **n_samples**: number of samples of the reference model
        - **n_data_points**: number of data points
        - **scale**: "log"
        - **warning**: False (not applicable for :math:`k`-fold)
        - **elpd_i**: :class:`~xarray.DataArray` with pointwise predictive accuracy,
          in observation order
        - **pareto_k**: None (not applicable for :math:`k`-fold)
        - **n_folds**: number of folds (:math:`k`)

    Notes
    -----
    When K equals the number of observations, this becomes exact leave-one-out
    cross-validation.

    See Also
    --------
    loo : Pareto-smoothed importance sampling LOO-CV
    ReferenceModel : Base class for models that can be refitted

    References
    ----------

    .. [1] Vehtari et al. *Practical Bayesian model evaluation using leave-one-out cross-validation
        and WAIC*. Statistics and Computing. 27(5) (2017) https://doi.org/10.1007/s11222-016-9696-4
        arXiv preprint https://arxiv.org/abs/1507.04544.
    """
    kfold_inputs = _prepare_kfold_inputs(model, k, folds, seed)
    if predictors is not None:
        predictors = _validate_predictors(model, predictors)
    fits = _fit_folds(model, kfold_inputs, n_jobs=n_jobs)
    return _kfold_results(
        model,
        kfold_inputs,
        fits,
        predictors=predictors,
        ndraws=ndraws,
        name=model.name if name is None else name,
    )


def _kfold_log_lik(model, test_idx, fit, predictors=None, ndraws=None):
    """Held out log likelihood ``(S, n_test)`` of one fold, optionally for a projected submodel."""
    if predictors is None:
        log_lik = model.log_likelihood__i(test_idx, fit)
        sample_dims = model.sample_dims
        return log_lik.transpose(*sample_dims, model.obs_dim).values.reshape(-1, len(test_idx))
    train_idx = np.setdiff1d(np.arange(model.n_data_points), test_idx)
    n_samples = int(np.prod([fit.posterior.sizes[dim] for dim in model.sample_dims]))
    draw_idx = _select_draws(n_samples, None if ndraws is None else min(ndraws, n_samples))
    projection = _project_draws(model, predictors, idata=fit, idx=train_idx, draw_idx=draw_idx)
    return _projected_log_likelihood(model, predictors, projection, idx=test_idx)


def _kfold_results(model, kfold_inputs, fits, predictors=None, ndraws=None, name=None):
    """Build the ``loo_kfold`` ELPDData from the per fold refits."""
    fold_elpds = [
        _fold_elpd(_kfold_log_lik(model, test_idx, fit, predictors=predictors, ndraws=ndraws))
        for test_idx, fit in zip(kfold_inputs.fold_indices, fits)
    ]
    combined = _combine_fold_elpds(
        kfold_inputs.fold_indices, fold_elpds, kfold_inputs.n_data_points
    )

    if predictors is None:
        full_log_lik = model.idata.log_likelihood[model.var_name]
        full_log_lik = full_log_lik.transpose(*model.sample_dims, model.obs_dim).values
        full_log_lik = full_log_lik.reshape(-1, kfold_inputs.n_data_points)
    else:
        draw_idx = _select_draws(model.n_samples, ndraws)
        projection = _project_draws(model, predictors, draw_idx=draw_idx)
        full_log_lik = _projected_log_likelihood(model, predictors, projection)
    lpds_full = _fold_elpd(full_log_lik)

    obs_coord = model.idata.observed_data[model.var_name][model.obs_dim].values
    elpd_i = DataArray(
        combined["pointwise"],
        dims=[model.obs_dim],
        coords={model.obs_dim: obs_coord},
        name="elpd_i",
    )
    return ELPDData(
        kind="loo_kfold",
        elpd=elpd_i.sum().item(),
        se=combined["se_elpd_kfold"],
        p=float(np.sum(lpds_full - combined["pointwise"])),
        n_samples=model.n_samples,
        n_data_points=kfold_inputs.n_data_points,
        scale="log",
        warning=False,
        elpd_i=elpd_i,
        name=name,
        n_folds=kfold_inputs.k,
    )
