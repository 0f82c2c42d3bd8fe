"""Projection predictive variable selection and cross-validation for ArviZ."""

from arviz_varsel import errors
from arviz_varsel.loo import compare, compare_models, loo, loo_i, loo_kfold
from arviz_varsel.projection import project
from arviz_varsel.reference import ConjugateLinearModel, ReferenceModel
from arviz_varsel.selection import SelectionPath, iter_forward, select_forward, suggest_size
from arviz_varsel.utils import ComparisonResult, ELPDData

__version__ = "0.1.0"

__all__ = [
    "errors",
    "compare",
    "compare_models",
    "loo",
    "loo_i",
    "loo_kfold",
    "project",
    "ReferenceModel",
    "ConjugateLinearModel",
    "SelectionPath",
    "iter_forward",
    "select_forward",
    "suggest_size",
    "ComparisonResult",
    "ELPDData",
]
