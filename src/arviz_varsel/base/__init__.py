"""ArviZ-varsel computational functions in NumPy.

Functions implemented in this folder should only depend on NumPy and SciPy,
``dataarray`` adds the xarray wrappers on top.
"""

from arviz_varsel.base.array import array_stats
from arviz_varsel.base.dataarray import dataarray_stats
from arviz_varsel.base.pareto import ParetoFit, gpdfit, gpinv, pareto_khat

__all__ = ["array_stats", "dataarray_stats", "ParetoFit", "gpdfit", "gpinv", "pareto_khat"]
