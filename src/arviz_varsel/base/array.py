"""Class with array functions.

"array" functions work on any dimension array,
batching as necessary.
"""

import numpy as np

from arviz_varsel.base.diagnostics import _DiagnosticsBase
from arviz_varsel.base.stats_utils import make_ufunc


def process_chain_none(ary, chain_axis, draw_axis):
    """Process array with chain and draw axis to cover the case ``chain_axis=None``."""
    if chain_axis is None:
        ary = np.expand_dims(ary, axis=0)
        chain_axis = 0
        draw_axis = draw_axis + 1 if draw_axis > 0 else draw_axis
    return ary, chain_axis, draw_axis


def process_ary_axes(ary, axes):
    """Process input array and axes to ensure input core dims are the last ones.

    Parameters
    ----------
    ary : array_like
    axes : int or sequence of int
    """
    if axes is None:
        axes = list(range(ary.ndim))
    if isinstance(axes, int):
        axes = [axes]
    axes = [ax if ax >= 0 else ary.ndim + ax for ax in axes]
    reordered_axes = [i for i in range(ary.ndim) if i not in axes] + list(axes)
    ary = np.transpose(ary, axes=reordered_axes)
    return ary, np.arange(-len(axes), 0, dtype=int)


class BaseArray(_DiagnosticsBase):
    """Class with numpy+scipy only functions that take array inputs.

    Notes
    -----
    If a new dimension is created by the function it must be added at the end of the array.
    Otherwise the functions won't be compatible with :func:`xarray.apply_ufunc`.
    """

    def ess(self, ary, chain_axis=-2, draw_axis=-1, relative=False):
        """Compute the effective sample size of the mean.

        Parameters
        ----------
        ary : array-like
        chain_axis : int or None, default -2
        draw_axis : int, default -1
        relative : bool, default False
            Return the ESS divided by the number of samples.
        """
        ary, chain_axis, draw_axis = process_chain_none(ary, chain_axis, draw_axis)
        ary, _ = process_ary_axes(ary, [chain_axis, draw_axis])
        ess_ufunc = make_ufunc(self._ess_mean, n_output=1, n_input=1, n_dims=2, ravel=False)
        return ess_ufunc(ary, relative=relative)

    def psislw(self, ary, r_eff=1, axis=-1):
        """Compute log weights for Pareto-smoothed importance sampling (PSIS) method.

        Parameters
        ----------
        ary : array-like
            Log importance ratios.
        r_eff : float, default 1
        axis : int, sequence of int or None, default -1

        Returns
        -------
        log_weights : array-like
            Same shape as `ary` but `axis` dimensions moved to the end
        khat : array-like
            Shape of `ary` minus dimensions indicated in `axis`
        fallback : array-like
            Same shape as `khat`, 1 where smoothing failed and raw weights were kept.
        """
        ary, axes = process_ary_axes(np.asarray(ary, dtype=float), axis)
        psl_ufunc = make_ufunc(
            self._psislw,
            n_output=3,
            n_input=1,
            n_dims=len(axes),
            ravel=False,
        )
        return psl_ufunc(
            ary, out_shape=[[ary.shape[i] for i in axes], [], []], r_eff=r_eff
        )

    def pareto_khat(self, ary, chain_axis=-2, draw_axis=-1, r_eff=1, tail="both"):
        """Compute Pareto k-hat diagnostic.

        Parameters
        ----------
        ary : array-like
        chain_axis : int or None, default -2
        draw_axis : int, default -1
        r_eff : float, default 1
        tail : {"both", "right", "left"}, default "both"
        """
        ary, chain_axis, draw_axis = process_chain_none(ary, chain_axis, draw_axis)
        ary, _ = process_ary_axes(ary, [chain_axis, draw_axis])
        khat_ufunc = make_ufunc(self._pareto_khat, n_output=1, n_input=1, n_dims=2, ravel=True)
        return khat_ufunc(ary, r_eff=r_eff, tail=tail)


array_stats = BaseArray()
