"""Class with dataarray functions.

"dataarray" functions take :class:`xarray.DataArray` as inputs.
"""

import numpy as np
from xarray import apply_ufunc

from arviz_varsel.base.array import array_stats
from arviz_varsel.base.diagnostics import _warn_fallback
from arviz_varsel.validate import validate_dims, validate_dims_chain_draw_axis


class BaseDataArray:
    """Class with numpy+scipy only functions that take DataArray inputs."""

    def __init__(self, array_class=None):
        self.array_class = array_stats if array_class is None else array_class

    def ess(self, da, sample_dims=None, relative=False):
        """Compute the effective sample size of the mean on DataArray input."""
        dims, chain_axis, draw_axis = validate_dims_chain_draw_axis(sample_dims)
        return apply_ufunc(
            self.array_class.ess,
            da,
            input_core_dims=[dims],
            output_core_dims=[[]],
            kwargs={"chain_axis": chain_axis, "draw_axis": draw_axis, "relative": relative},
        )

    def psislw(self, da, r_eff=1, dim=None, warn=True):
        """Compute log weights for Pareto-smoothed importance sampling (PSIS) method.

        Returns
        -------
        log_weights : DataArray
        pareto_k : DataArray
        fallback : DataArray of bool
            Observations whose tail could not be fit. Their ``pareto_k`` is NaN and
            `log_weights` hold the normalized raw ratios. Unless ``warn=False``,
            a :class:`~arviz_varsel.errors.PSISFallbackWarning` is issued when any is set.
        """
        dims = validate_dims(dim)
        log_weights, pareto_k, fallback = apply_ufunc(
            self.array_class.psislw,
            da,
            r_eff,
            input_core_dims=[dims, []],
            output_core_dims=[dims, [], []],
            kwargs={"axis": np.arange(-len(dims), 0, 1)},
        )
        fallback = fallback.astype(bool)
        if warn:
            _warn_fallback(fallback.values)
        return log_weights, pareto_k.rename("pareto_k"), fallback.rename("psis_fallback")

    def pareto_khat(self, da, sample_dims=None, r_eff=1, tail="both"):
        """Compute Pareto k-hat diagnostic on DataArray input."""
        dims, chain_axis, draw_axis = validate_dims_chain_draw_axis(sample_dims)
        return apply_ufunc(
            self.array_class.pareto_khat,
            da,
            input_core_dims=[dims],
            output_core_dims=[[]],
            kwargs={
                "chain_axis": chain_axis,
                "draw_axis": draw_axis,
                "r_eff": r_eff,
                "tail": tail,
            },
        ).rename("pareto_k")


dataarray_stats = BaseDataArray(array_class=array_stats)
