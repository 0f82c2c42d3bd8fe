"""Generalized Pareto tail estimation used by PSIS and the k-hat diagnostic."""

from collections import namedtuple

import numpy as np

from arviz_varsel.errors import DegenerateTail, InsufficientTailSample

__all__ = ["ParetoFit", "gpdfit", "gpinv", "get_ps_tails", "ps_tail", "pareto_khat"]

ParetoFit = namedtuple("ParetoFit", ["k", "sigma"])

MIN_TAIL_DRAWS = 5


def gpdfit(ary):
    """Estimate the parameters for the Generalized Pareto Distribution (GPD).

    Empirical Bayes estimate for the parameters (k, sigma) of the generalized Pareto
    distribution given the data, following Zhang and Stephens (2009).

    The fit uses a prior for k to stabilize estimates for very small (effective)
    sample sizes. The weakly informative prior is a Gaussian centered at 0.5.
    See details in Vehtari et al., 2024 (https://doi.org/10.48550/arXiv.1507.02646)

    Parameters
    ----------
    ary : array_like
        1D array of positive exceedances over the tail cutoff. At least 5 values are needed.

    Returns
    -------
    ParetoFit
        Named tuple with the estimated shape ``k`` and scale ``sigma``.

    Raises
    ------
    InsufficientTailSample
        If fewer than 5 values are provided.
    DegenerateTail
        If all values are equal or the estimate is not finite.
    """
    ary = np.sort(np.asarray(ary, dtype=float).ravel())
    n = len(ary)
    if n < MIN_TAIL_DRAWS:
        raise InsufficientTailSample(
            f"At least {MIN_TAIL_DRAWS} tail values are needed to fit a generalized Pareto "
            f"distribution, got {n}"
        )
    if ary[-1] - ary[0] < np.finfo(float).tiny:
        raise DegenerateTail("All tail values are the same")

    prior_bs = 3
    prior_k = 10
    m_est = 30 + int(n**0.5)

    b_ary = 1 - np.sqrt(m_est / (np.arange(1, m_est + 1, dtype=float) - 0.5))
    b_ary /= prior_bs * ary[int(n / 4 + 0.5) - 1]
    b_ary += 1 / ary[-1]

    k_ary = np.log1p(-b_ary[:, None] * ary).mean(axis=1)  # pylint: disable=no-member
    len_scale = n * (np.log(-(b_ary / k_ary)) - k_ary - 1)
    weights = 1 / np.exp(len_scale - len_scale[:, None]).sum(axis=1)

    # remove negligible weights
    real_idxs = weights >= 10 * np.finfo(float).eps
    if not np.all(real_idxs):
        weights = weights[real_idxs]
        b_ary = b_ary[real_idxs]
    weights /= weights.sum()

    b_post = np.sum(b_ary * weights)
    k_post = np.log1p(-b_post * ary).mean()  # pylint: disable=invalid-unary-operand-type
    sigma = -k_post / b_post
    k_post = (n * k_post + prior_k * 0.5) / (n + prior_k)

    if not (np.isfinite(k_post) and np.isfinite(sigma)):
        raise DegenerateTail("Generalized Pareto fit did not produce finite estimates")

    return ParetoFit(float(k_post), float(sigma))


def gpinv(probs, k, sigma, mu=0):
    """Quantile function for generalized pareto distribution."""
    probs = np.asarray(probs, dtype=float)
    if sigma <= 0:
        return np.full_like(probs, np.nan)

    if k == 0:
        return mu - sigma * np.log1p(-probs)
    return mu + sigma * np.expm1(-k * np.log1p(-probs)) / k


def get_ps_tails(n_draws, r_eff=1):
    """Number of draws in the tail, ``ceil(min(0.2 * S, 3 * sqrt(S / r_eff)))``.

    The result is capped so at least one draw remains below the tail cutoff.
    """
    n_draws_tail = int(np.ceil(min(0.2 * n_draws, 3 * np.sqrt(n_draws / r_eff))))
    return min(n_draws_tail, n_draws - 1)


def ps_tail(ary, n_draws_tail, smooth_draws=True, tail="right", log_weights=False):
    """Fit and optionally smooth the tail of a sample with a generalized Pareto distribution.

    Parameters
    ----------
    ary : array
        1D array.
    n_draws_tail : int
        Number of draws in the tail.
    smooth_draws : bool, default True
        Replace the tail draws with the quantiles ``(i - 0.5) / M`` of the fitted distribution.
    tail : {"right", "left"}, default "right"
        Which tail to fit.
    log_weights : bool, default False
        Whether `ary` holds log-weights. The fit is then done on the weight scale and
        smoothed values are returned on the log scale.

    Returns
    -------
    ary : array
        Copy of `ary` with smoothed tail values.
    k : float
        Estimated shape parameter.
    """
    if tail not in ("right", "left"):
        raise ValueError('tail must be one of "right" or "left"')
    if n_draws_tail < MIN_TAIL_DRAWS:
        raise InsufficientTailSample(
            f"n_draws_tail must be at least {MIN_TAIL_DRAWS}, got {n_draws_tail}"
        )

    ary = np.array(ary, dtype=float)
    n_draws = len(ary)
    if log_weights:
        ary = ary - np.max(ary)
    if tail == "left":
        ary = -ary

    tail_ids = np.arange(n_draws - n_draws_tail, n_draws, dtype=int)
    ordered = np.argsort(ary)
    draws_tail = ary[ordered[tail_ids]]
    cutoff = ary[ordered[tail_ids[0] - 1]]  # largest value smaller than tail values
    max_tail = np.max(draws_tail)

    if max_tail - np.min(draws_tail) < np.finfo(float).tiny:
        raise DegenerateTail("All tail values are the same")

    if log_weights:
        draws_tail = np.exp(draws_tail)
        cutoff = np.exp(cutoff)

    k, sigma = gpdfit(draws_tail - cutoff)

    if smooth_draws:
        probs = (np.arange(1, n_draws_tail + 1) - 0.5) / n_draws_tail
        smoothed = gpinv(probs, k, sigma, cutoff)
        if log_weights:
            smoothed = np.log(smoothed)
        smoothed[smoothed > max_tail] = max_tail
        ary[ordered[tail_ids]] = smoothed

    if tail == "left":
        ary = -ary

    return ary, k


def pareto_khat(ary, r_eff=1, tail="both"):
    """Compute the Pareto k-hat diagnostic of a sample.

    Parameters
    ----------
    ary : array_like
        Draws, flattened before the computation.
    r_eff : float, default 1
        Relative efficiency. Effective sample size divided the number of samples.
    tail : {"both", "right", "left"}, default "both"
        Which tail to fit. With "both" the largest of the two estimates is returned.

    Returns
    -------
    float
        Pareto k-hat value, ``nan`` if the tail cannot be fit.
    """
    ary = np.asarray(ary, dtype=float).ravel()
    n_draws_tail = get_ps_tails(len(ary), r_eff)
    tails = ("left", "right") if tail == "both" else (tail,)
    try:
        return max(ps_tail(ary, n_draws_tail, smooth_draws=False, tail=t)[1] for t in tails)
    except (InsufficientTailSample, DegenerateTail):
        return np.nan
