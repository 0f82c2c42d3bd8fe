"""Numpy-only kernels for PSIS weights and sampling efficiency."""

import warnings

import numpy as np
from scipy.fft import next_fast_len

from arviz_varsel.base.pareto import get_ps_tails, pareto_khat, ps_tail
from arviz_varsel.base.stats_utils import logsumexp
from arviz_varsel.errors import DegenerateTail, InsufficientTailSample, PSISFallbackWarning


class _DiagnosticsBase:
    """Class with numpy+scipy only diagnostic related functions."""

    def autocov(self, ary, axis=-1):  # pylint: disable=no-self-use
        """Compute autocovariance estimates for every lag for the input array.

        Parameters
        ----------
        ary : array-like
        axis : int, default -1
        """
        axis = axis if axis >= 0 else len(ary.shape) + axis
        n = ary.shape[axis]
        m = next_fast_len(2 * n)

        ary = ary - ary.mean(axis, keepdims=True)

        ifft_ary = np.fft.rfft(ary, n=m, axis=axis)
        ifft_ary *= np.conjugate(ifft_ary)

        shape = tuple(
            slice(None) if dim_len != axis else slice(0, n) for dim_len, _ in enumerate(ary.shape)
        )
        cov = np.fft.irfft(ifft_ary, n=m, axis=axis)[shape]
        cov /= n

        return cov

    def _split_chains(self, ary):  # pylint: disable=no-self-use
        """Split and stack chains."""
        ary = np.asarray(ary)
        if len(ary.shape) <= 1:
            ary = np.atleast_2d(ary)
        _, n_draw = ary.shape
        half = n_draw // 2
        return np.vstack((ary[:, :half], ary[:, -half:]))

    def _ess(self, ary, relative=False):
        """Compute the effective sample size for a 2D array."""
        ary = np.asarray(ary, dtype=float)
        if (np.max(ary) - np.min(ary)) < np.finfo(float).resolution:  # pylint: disable=no-member
            return ary.size
        n_chain, n_draw = ary.shape
        acov = self.autocov(ary, axis=1)
        chain_mean = ary.mean(axis=1)
        mean_var = np.mean(acov[:, 0]) * n_draw / (n_draw - 1.0)
        var_plus = mean_var * (n_draw - 1.0) / n_draw
        if n_chain > 1:
            var_plus += np.var(chain_mean, axis=None, ddof=1)

        rho_hat_t = np.zeros(n_draw)
        rho_hat_even = 1.0
        rho_hat_t[0] = rho_hat_even
        rho_hat_odd = 1.0 - (mean_var - np.mean(acov[:, 1])) / var_plus
        rho_hat_t[1] = rho_hat_odd

        # Geyer's initial positive sequence
        t = 1
        while t < (n_draw - 3) and (rho_hat_even + rho_hat_odd) > 0.0:
            rho_hat_even = 1.0 - (mean_var - np.mean(acov[:, t + 1])) / var_plus
            rho_hat_odd = 1.0 - (mean_var - np.mean(acov[:, t + 2])) / var_plus
            if (rho_hat_even + rho_hat_odd) >= 0:
                rho_hat_t[t + 1] = rho_hat_even
                rho_hat_t[t + 2] = rho_hat_odd
            t += 2

        max_t = t - 2
        if rho_hat_even > 0:
            rho_hat_t[max_t + 1] = rho_hat_even
        # Geyer's initial monotone sequence
        t = 1
        while t <= max_t - 2:
            if (rho_hat_t[t + 1] + rho_hat_t[t + 2]) > (rho_hat_t[t - 1] + rho_hat_t[t]):
                rho_hat_t[t + 1] = (rho_hat_t[t - 1] + rho_hat_t[t]) / 2.0
                rho_hat_t[t + 2] = rho_hat_t[t + 1]
            t += 2

        ess = n_chain * n_draw
        tau_hat = (
            -1.0 + 2.0 * np.sum(rho_hat_t[: max_t + 1]) + np.sum(rho_hat_t[max_t + 1 : max_t + 2])
        )
        tau_hat = max(tau_hat, 1 / np.log10(ess))
        ess = (1 if relative else ess) / tau_hat
        if np.isnan(rho_hat_t).any():
            ess = np.nan
        return ess

    def _ess_mean(self, ary, relative=False):
        """Compute the effective sample size for the mean."""
        ary = np.asarray(ary)
        if ary.ndim != 2 or ary.shape[-1] < 4 or not np.all(np.isfinite(ary)):
            return np.nan
        return self._ess(self._split_chains(ary), relative=relative)

    def _psislw(self, ary, r_eff=1):
        """Pareto smoothed log weights for the log ratios of a single observation.

        Parameters
        ----------
        ary : np.ndarray
            Log importance ratios, any shape. Smoothing is done on the flattened array.
        r_eff : float, default 1

        Returns
        -------
        log_weights : np.ndarray
            Normalized log weights with the same shape as `ary`.
        khat : float
            Estimated Pareto shape, ``nan`` when the tail could not be fit.
        fallback : bool
            True if smoothing failed and the raw normalized weights are returned.
        """
        shape = np.shape(ary)
        raw = np.asarray(ary, dtype=float).ravel()
        raw = raw - np.max(raw)
        n_draws = len(raw)

        try:
            log_weights, khat = ps_tail(
                raw, get_ps_tails(n_draws, r_eff), smooth_draws=True, log_weights=True
            )
        except (InsufficientTailSample, DegenerateTail):
            log_weights = raw
            khat = np.nan
            fallback = True
        else:
            fallback = False
            # truncate at sqrt(S) times the mean raw weight
            log_cap = logsumexp(raw) - 0.5 * np.log(n_draws)
            log_weights = np.minimum(log_weights, log_cap)

        log_weights = log_weights - logsumexp(log_weights)
        return log_weights.reshape(shape), khat, fallback

    def _pareto_khat(self, ary, r_eff=1, tail="both"):  # pylint: disable=no-self-use
        return pareto_khat(ary, r_eff=r_eff, tail=tail)


def _warn_fallback(fallback):
    n_fallback = int(np.sum(fallback))
    if n_fallback:
        warnings.warn(
            f"Pareto smoothing failed for {n_fallback} observation(s); raw importance weights "
            "were used instead and their Pareto k values are set to NaN.",
            PSISFallbackWarning,
            stacklevel=3,
        )
    return n_fallback
