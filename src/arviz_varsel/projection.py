"""Projected posteriors of submodels of a reference model."""

import logging

import numpy as np
from arviz_base import from_dict

from arviz_varsel.validate import validate_ndraws

__all__ = ["project"]

_log = logging.getLogger(__name__)


def project(model, predictors, ndraws=None, *, thinning="even", seed=None):
    r"""Project the posterior of a reference model onto a submodel.

    Each reference draw is replaced by the submodel parameters whose predictive
    distribution is closest, in Kullback-Leibler divergence, to the reference
    predictive distribution of that draw [1]_. For the gaussian family this is the
    least squares fit of the reference linear predictor plus a dispersion that
    absorbs the residual, for the bernoulli family a logistic regression fit to the
    reference probabilities.

    Parameters
    ----------
    model : ReferenceModel
    predictors : sequence of str
        Predictors of the submodel, a subset of ``model.predictors``. Can be empty
        for the intercept only model.
    ndraws : int, optional
        Number of projected draws. Defaults to all the reference draws.
    thinning : {"even", "random"}, default "even"
        How to pick `ndraws` reference draws. ``"even"`` takes evenly spaced draws
        and is deterministic, ``"random"`` samples without replacement using `seed`.
    seed : int or Generator, optional
        Only used with ``thinning="random"``.

    Returns
    -------
    DataTree
        With a ``posterior`` group holding ``intercept``, ``beta`` over the chosen
        predictors (omitted for the intercept only model) and ``sigma`` for families
        with dispersion, a ``log_likelihood`` group with the projected pointwise log
        likelihood, a ``sample_stats`` group with the per draw ``kl`` divergence and
        the ``observed_data`` group of the reference model. The mean KL divergence is
        stored in ``attrs["kl"]``. Draws are stored in a single chain.

    Raises
    ------
    ValueError
        If `predictors` contains names not in the reference model or duplicates.
    ConvergenceFailure
        If the projection produced non-finite parameters.

    References
    ----------

    .. [1] Piironen et al. *Projective inference in high-dimensional problems: prediction
       and feature selection*. Electronic Journal of Statistics. 14(1) (2020)
       https://doi.org/10.1214/20-EJS1711
    """
    predictors = _validate_predictors(model, predictors)
    draw_idx = _select_draws(model.n_samples, ndraws, thinning, seed)
    projection = _project_draws(model, predictors, draw_idx=draw_idx)
    log_lik = _projected_log_likelihood(model, predictors, projection)

    posterior = {"intercept": projection.coefs[None, :, 0]}
    if predictors:
        posterior["beta"] = projection.coefs[None, :, 1:]
    if projection.dispersion is not None:
        posterior["sigma"] = projection.dispersion[None, :]

    pred_dim = model.predictor_dim
    coords = {model.obs_dim: model.idata.observed_data[model.var_name][model.obs_dim].values}
    if predictors:
        coords[pred_dim] = predictors
    dt = from_dict(
        {
            "posterior": posterior,
            "log_likelihood": {model.var_name: log_lik[None]},
            "sample_stats": {"kl": projection.kl[None, :]},
            "observed_data": {model.var_name: model.observed()},
        },
        dims={"beta": [pred_dim], model.var_name: [model.obs_dim]},
        coords=coords,
    )
    dt.attrs["kl"] = float(np.mean(projection.kl))
    dt.attrs["predictors"] = list(predictors)
    return dt


def _validate_predictors(model, predictors):
    if isinstance(predictors, str):
        predictors = [predictors]
    predictors = [str(p) for p in predictors]
    unknown = [p for p in predictors if p not in model.predictors]
    if unknown:
        raise ValueError(
            f"Predictors {unknown} are not in the reference model, "
            f"valid names are {model.predictors}"
        )
    if len(set(predictors)) != len(predictors):
        raise ValueError(f"Predictors must be unique, got {predictors}")
    return predictors


def _select_draws(n_samples, ndraws, thinning="even", seed=None):
    """Indices of the flattened reference draws to project."""
    ndraws = validate_ndraws(ndraws, n_samples)
    if thinning == "even":
        return np.unique(np.linspace(0, n_samples - 1, ndraws).round().astype(int))
    if thinning == "random":
        rng = np.random.default_rng(seed)
        return np.sort(rng.choice(n_samples, size=ndraws, replace=False))
    raise ValueError(f"thinning must be 'even' or 'random' but got {thinning!r}")


def _subset_design(model, predictors, idx=None):
    """Submodel design matrix with the intercept in the first column."""
    n_obs = model.n_data_points if idx is None else len(idx)
    columns = [np.ones((n_obs, 1))]
    if predictors:
        columns.append(model.design_matrix(idx, predictors))
    return np.hstack(columns)


def _flat_draws(model, idata=None, idx=None, draw_idx=None):
    """Reference linear predictor ``(S, n)`` and dispersion ``(S,)`` with flattened draws."""
    eta = model.linear_predictor(idata, X=model.design_matrix(idx))
    eta = eta.reshape(-1, eta.shape[-1])
    dispersion = model.dispersion(idata)
    if dispersion is not None:
        dispersion = dispersion.ravel()
    if draw_idx is not None:
        eta = eta[draw_idx]
        dispersion = None if dispersion is None else dispersion[draw_idx]
    return eta, dispersion


def _project_draws(model, predictors, idata=None, idx=None, draw_idx=None):
    """Project reference draws onto `predictors` using the observations in `idx`."""
    eta, dispersion = _flat_draws(model, idata=idata, idx=idx, draw_idx=draw_idx)
    design = _subset_design(model, predictors, idx)
    _log.debug("Projecting %d draws onto %s", eta.shape[0], predictors)
    return model.family.project(eta, dispersion, design)


def _projected_log_likelihood(model, predictors, projection, idx=None):
    """Pointwise log likelihood ``(S, n)`` of the observations in `idx` under a projection."""
    eta = projection.coefs @ _subset_design(model, predictors, idx).T
    return model.family.log_likelihood(model.observed(idx), eta, projection.dispersion)
