"""Projection predictive variable selection."""

from arviz_varsel.selection.decision import suggest_size
from arviz_varsel.selection.forward import iter_forward, select_forward
from arviz_varsel.selection.path import SelectionPath

__all__ = ["SelectionPath", "iter_forward", "select_forward", "suggest_size"]
