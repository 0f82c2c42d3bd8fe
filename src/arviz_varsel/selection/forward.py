"""Projection predictive forward search."""

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from xarray import DataArray

from arviz_varsel.errors import ConvergenceFailure, UnreliableEstimateWarning
from arviz_varsel.loo.helper_loo import _compute_loo_results
from arviz_varsel.loo.helper_loo_kfold import _fit_folds, _prepare_kfold_inputs
from arviz_varsel.loo.loo_kfold import _kfold_results
from arviz_varsel.projection import _project_draws, _projected_log_likelihood, _select_draws
from arviz_varsel.reference import ReferenceModel
from arviz_varsel.selection.path import SelectionPath
from arviz_varsel.validate import validate_n_jobs

__all__ = ["select_forward", "iter_forward"]

_log = logging.getLogger(__name__)

CV_METHODS = ("loo", "kfold")


def select_forward(
    model,
    cv_method="loo",
    k=None,
    *,
    max_size=None,
    ndraws_search=20,
    ndraws_pred=400,
    n_jobs=1,
    seed=None,
):
    """Rank the predictors of a reference model by projection predictive forward search.

    Starting from the intercept only submodel, each step adds the predictor whose
    submodel projection is closest to the reference model in KL divergence. Every
    submodel along the path is then evaluated by cross-validating its projected
    posterior [1]_.

    Parameters
    ----------
    model : ReferenceModel
    cv_method : {"loo", "kfold"}, default "loo"
        How to estimate the predictive performance of the submodels. With ``"loo"``,
        if any estimate along the path is flagged as unreliable and the model can be
        refit, the whole path is evaluated again with K-fold cross-validation.
    k : int, optional
        Number of folds for K-fold cross-validation. Defaults to ``min(10, n)``.
    max_size : int, optional
        Stop the search after this many predictors. Defaults to all of them.
    ndraws_search : int, default 20
        Number of reference draws projected to score candidates during the search.
    ndraws_pred : int, default 400
        Number of reference draws projected to evaluate each submodel.
    n_jobs : int, default 1
        Number of candidates scored concurrently, and of folds refitted concurrently
        when the model allows it. ``None`` or -1 use all CPUs.
    seed : int, optional
        Seed for the K-fold split and refits.

    Returns
    -------
    SelectionPath

    See Also
    --------
    iter_forward : Generator version yielding the path after every step.
    suggest_size : Pick a submodel size from the path.

    References
    ----------

    .. [1] Piironen et al. *Projective inference in high-dimensional problems: prediction
       and feature selection*. Electronic Journal of Statistics. 14(1) (2020)
       https://doi.org/10.1214/20-EJS1711
    """
    path = None
    for path in iter_forward(
        model,
        cv_method=cv_method,
        k=k,
        max_size=max_size,
        ndraws_search=ndraws_search,
        ndraws_pred=ndraws_pred,
        n_jobs=n_jobs,
        seed=seed,
    ):
        pass
    return path


def iter_forward(
    model,
    cv_method="loo",
    k=None,
    *,
    max_size=None,
    ndraws_search=20,
    ndraws_pred=400,
    n_jobs=1,
    seed=None,
):
    """Run the forward search yielding a :class:`SelectionPath` after every step.

    The first path yielded holds only the intercept only submodel. Each path is a
    complete, valid input to :func:`suggest_size`, so the search can be abandoned
    after any step. The last path yielded has ``complete=True`` unless every
    remaining candidate failed to be projected at some step.

    See :func:`select_forward` for the description of the arguments.
    """
    if not isinstance(model, ReferenceModel):
        raise TypeError("model must be an instance of ReferenceModel")
    if cv_method not in CV_METHODS:
        raise ValueError(f"cv_method must be one of {CV_METHODS} but got {cv_method!r}")
    if cv_method == "kfold" and not model.can_refit:
        raise ValueError(
            f"K-fold cross-validation needs a model implementing fit, {type(model).__name__} "
            "does not."
        )
    n_jobs = validate_n_jobs(n_jobs)
    candidates = list(model.predictors)
    if max_size is None:
        max_size = len(candidates)
    if not isinstance(max_size, int | np.integer) or not 0 <= max_size <= len(candidates):
        raise ValueError(f"max_size must be an integer between 0 and {len(candidates)}")

    search_idx = _select_draws(model.n_samples, min(ndraws_search, model.n_samples))
    evaluator = _PathEvaluator(model, cv_method, k, ndraws_pred, n_jobs, seed)

    selected = []
    kl_path = [_mean_kl(model, [], search_idx)]
    unscoreable = []
    results = [evaluator.evaluate([])]

    def _snapshot(complete):
        return SelectionPath(
            predictors=tuple(selected),
            results=tuple(results),
            kl=tuple(kl_path),
            cv_method=evaluator.cv_method,
            unscoreable=tuple(unscoreable),
            complete=complete,
            n_candidates=len(candidates),
            reference_name=model.name,
        )

    results = evaluator.check(results, selected)
    yield _snapshot(complete=max_size == 0)

    remaining = list(candidates)
    while len(selected) < max_size:
        scores, failed = _score_candidates(model, selected, remaining, search_idx, n_jobs)
        unscoreable.append(tuple(failed))
        if not scores:
            _log.warning(
                "Step %d: all %d remaining candidates failed, stopping the search",
                len(selected) + 1,
                len(remaining),
            )
            yield _snapshot(complete=False)
            return
        # ties go to the first candidate in predictor order
        best = min(scores, key=lambda name: (scores[name], remaining.index(name)))
        selected.append(best)
        remaining.remove(best)
        kl_path.append(scores[best])
        _log.info("Step %d: added %s (KL %.4g)", len(selected), best, scores[best])

        results.append(evaluator.evaluate(selected))
        results = evaluator.check(results, selected)
        yield _snapshot(complete=len(selected) == max_size)


def _mean_kl(model, predictors, draw_idx):
    return float(np.mean(_project_draws(model, predictors, draw_idx=draw_idx).kl))


def _try_score(model, predictors, draw_idx):
    try:
        return _mean_kl(model, predictors, draw_idx), None
    except (ConvergenceFailure, ValueError, ArithmeticError, np.linalg.LinAlgError) as err:
        return None, err


def _score_candidates(model, selected, candidates, draw_idx, n_jobs):
    """Score every candidate by the KL divergence of ``selected + [candidate]``.

    Returns the scores of the candidates that could be projected and the names of
    those that failed.
    """
    subsets = [[*selected, candidate] for candidate in candidates]
    if n_jobs > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=min(n_jobs, len(candidates))) as pool:
            futures = [pool.submit(_try_score, model, subset, draw_idx) for subset in subsets]
            outcomes = [future.result() for future in futures]
    else:
        outcomes = [_try_score(model, subset, draw_idx) for subset in subsets]

    scores = {}
    failed = []
    for candidate, (score, err) in zip(candidates, outcomes):
        if err is None:
            scores[candidate] = score
        else:
            _log.warning("Skipping candidate %s, projection failed: %s", candidate, err)
            failed.append(candidate)
    return scores, failed


class _PathEvaluator:
    """Cross-validate projected submodels, switching from PSIS-LOO to K-fold when needed."""

    def __init__(self, model, cv_method, k, ndraws_pred, n_jobs, seed):
        self.model = model
        self.cv_method = cv_method
        self.k = min(10, model.n_data_points) if k is None else k
        self.ndraws_pred = min(ndraws_pred, model.n_samples)
        self.n_jobs = n_jobs
        self.seed = seed
        self._kfold_inputs = None
        self._fits = None
        self._warned = False

    def evaluate(self, predictors):
        if self.cv_method == "loo":
            return self._loo(predictors)
        return self._kfold(predictors)

    def check(self, results, selected):
        """Fall back to K-fold if the last PSIS-LOO estimate is unreliable."""
        if self.cv_method != "loo" or not results[-1].unreliable:
            return results
        if not self.model.can_refit:
            if not self._warned:
                warnings.warn(
                    "PSIS-LOO estimates along the selection path are unreliable and the "
                    "reference model can't be refit for K-fold cross-validation. "
                    "Interpret the suggested size with caution.",
                    UnreliableEstimateWarning,
                    stacklevel=3,
                )
                self._warned = True
            return results
        warnings.warn(
            f"PSIS-LOO estimate for the submodel of size {len(results) - 1} is unreliable, "
            f"evaluating the selection path with {self.k}-fold cross-validation instead.",
            UnreliableEstimateWarning,
            stacklevel=3,
        )
        _log.warning("Switching to %d-fold cross-validation", self.k)
        self.cv_method = "kfold"
        return [self._kfold(selected[:size]) for size in range(len(results))]

    def _loo(self, predictors):
        model = self.model
        draw_idx = _select_draws(model.n_samples, self.ndraws_pred)
        projection = _project_draws(model, predictors, draw_idx=draw_idx)
        log_lik = _projected_log_likelihood(model, predictors, projection)
        sample_shape = (1,) * (len(model.sample_dims) - 1) + (len(draw_idx),)
        obs_coord = model.idata.observed_data[model.var_name][model.obs_dim].values
        log_lik = DataArray(
            log_lik.reshape(*sample_shape, -1),
            dims=[*model.sample_dims, model.obs_dim],
            coords={model.obs_dim: obs_coord},
            name=model.var_name,
        )
        return _compute_loo_results(
            log_lik,
            sample_dims=model.sample_dims,
            n_samples=len(draw_idx),
            n_data_points=model.n_data_points,
            reff=1.0,
            name=_submodel_name(predictors),
            suppress_warnings=True,
        )

    def _kfold(self, predictors):
        if self._fits is None:
            self._kfold_inputs = _prepare_kfold_inputs(self.model, self.k, None, self.seed)
            self._fits = _fit_folds(self.model, self._kfold_inputs, n_jobs=self.n_jobs)
        return _kfold_results(
            self.model,
            self._kfold_inputs,
            self._fits,
            predictors=list(predictors),
            ndraws=self.ndraws_pred,
            name=_submodel_name(predictors),
        )


def _submodel_name(predictors):
    return "intercept" if not predictors else " + ".join(predictors)
