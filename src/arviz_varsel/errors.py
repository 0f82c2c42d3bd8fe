"""Exceptions and warning categories raised by arviz-varsel.

Errors that signal invalid input also subclass the builtin exception the rest of the
ArviZ stack raises in the same situation, so ``except ValueError`` keeps working.
"""

__all__ = [
    "VarselError",
    "InsufficientTailSample",
    "DegenerateTail",
    "MismatchedObservationSets",
    "ConvergenceFailure",
    "UnreliableEstimateWarning",
    "PSISFallbackWarning",
]


class VarselError(Exception):
    """Base exception for all arviz-varsel errors."""


class InsufficientTailSample(VarselError, ValueError):
    """Fewer than 5 draws are available to fit the generalized Pareto tail.

    Increase the number of posterior draws; the tail length grows with
    ``min(0.2 * S, 3 * sqrt(S / r_eff))``.
    """


class DegenerateTail(VarselError, ValueError):
    """All tail values are equal, so the generalized Pareto fit is undefined."""


class MismatchedObservationSets(VarselError, ValueError):
    """Pointwise results being compared do not refer to the same observations."""


class ConvergenceFailure(VarselError, RuntimeError):
    """A model fit or projection did not produce finite parameter values."""


class UnreliableEstimateWarning(UserWarning):
    """An ELPD estimate has been tagged as unreliable and should not drive decisions."""


class PSISFallbackWarning(UserWarning):
    """Pareto smoothing failed for some observations and raw weights were used instead."""
