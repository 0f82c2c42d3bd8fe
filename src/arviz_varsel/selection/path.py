"""Container for the result of a forward search."""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class SelectionPath:
    """Ranking of predictors and the predictive performance of each submodel along it.

    Attributes
    ----------
    predictors : tuple of str
        Predictors in the order they entered the search.
    results : tuple of ELPDData
        One elpd estimate per submodel size ``0..len(predictors)``. The size 0 submodel
        is the intercept only model.
    kl : tuple of float
        Mean KL divergence from the reference model of each submodel, used as search score.
    cv_method : {"loo", "kfold"}
        Method used for all the estimates in `results`.
    unscoreable : tuple of tuple of str
        Per search step, candidates whose projection failed and were skipped.
    complete : bool
        Whether the search ran to the end. Partial paths are still valid.
    n_candidates : int
        Number of predictors of the reference model.
    reference_name : str, optional
    """

    predictors: tuple
    results: tuple
    kl: tuple
    cv_method: str = "loo"
    unscoreable: tuple = field(default_factory=tuple)
    complete: bool = False
    n_candidates: int = None
    reference_name: str = None

    @property
    def size(self):
        """Largest submodel size evaluated."""
        return len(self.predictors)

    @property
    def elpd(self):
        return np.array([result.elpd for result in self.results])

    @property
    def se(self):
        return np.array([result.se for result in self.results])

    @property
    def unreliable(self):
        return np.array([bool(result.unreliable) for result in self.results])

    def submodel(self, size):
        """Predictors of the submodel with `size` predictors."""
        if not 0 <= size <= self.size:
            raise ValueError(f"size must be between 0 and {self.size} but got {size}")
        return list(self.predictors[:size])

    def summary(self):
        """Return a DataFrame with one row per submodel size.

        Columns are the predictor added at that size, the elpd estimate and its
        standard error, the difference with the best submodel, the KL divergence
        to the reference model and the reliability flag of the estimate.
        """
        elpd = self.elpd
        best = np.nanmax(elpd) if len(elpd) else np.nan
        return pd.DataFrame(
            {
                "predictor": [None, *self.predictors],
                "elpd": elpd,
                "se": self.se,
                "elpd_diff": elpd - best,
                "kl": np.asarray(self.kl, dtype=float),
                "unreliable": self.unreliable,
            },
            index=pd.RangeIndex(len(self.results), name="size"),
        )

    def __str__(self):
        status = "complete" if self.complete else "partial"
        header = f"Forward search path ({status}, {self.cv_method}"
        if self.reference_name is not None:
            header += f", reference {self.reference_name!r}"
        header += ")"
        return f"{header}\n{self.summary().to_string()}"

    def __repr__(self):
        """Alias to ``__str__``."""
        return self.__str__()
