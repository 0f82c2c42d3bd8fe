"""Pareto-smoothed importance sampling LOO (PSIS-LOO-CV) and K-fold related functions."""

from arviz_varsel.loo.compare import compare, compare_models
from arviz_varsel.loo.loo import loo, loo_i
from arviz_varsel.loo.loo_kfold import loo_kfold

__all__ = ["compare", "compare_models", "loo", "loo_i", "loo_kfold"]
