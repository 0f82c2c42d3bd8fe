"""Decision rule to pick a submodel size from a selection path."""

import warnings

import numpy as np

from arviz_varsel.errors import UnreliableEstimateWarning
from arviz_varsel.validate import validate_alpha


def suggest_size(path, alpha=0.1):
    """Suggest the smallest submodel with predictive performance close to the best one.

    Returns the smallest size ``s`` such that
    ``elpd(best) - elpd(s) < alpha * se(best)``, where ``best`` is the size with the
    largest elpd along the path. A size of 0, the intercept only model, is a valid
    outcome and is expected when the predictors carry no signal.

    Parameters
    ----------
    path : SelectionPath
        Complete or partial path from :func:`select_forward` or :func:`iter_forward`.
    alpha : float, default 0.1
        Width of the tolerance as a fraction of the standard error of the best submodel.

    Returns
    -------
    int
        Suggested number of predictors, between 0 and ``path.size``.

    Warns
    -----
    UnreliableEstimateWarning
        If any of the estimates along the path is flagged as unreliable.
    """
    alpha = validate_alpha(alpha)
    if not path.results:
        raise ValueError("The selection path has no evaluated submodels")
    elpd = path.elpd
    if np.all(np.isnan(elpd)):
        raise ValueError("All elpd estimates along the selection path are NaN")
    if np.any(path.unreliable):
        warnings.warn(
            "Some elpd estimates along the selection path are unreliable, "
            "the suggested size may not be trustworthy.",
            UnreliableEstimateWarning,
            stacklevel=2,
        )

    best = int(np.nanargmax(elpd))
    threshold = alpha * path.results[best].se
    for size in range(best + 1):
        if size == best or elpd[best] - elpd[size] < threshold:
            return size
    return best
