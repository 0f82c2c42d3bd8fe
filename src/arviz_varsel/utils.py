"""ArviZ-varsel result containers and general utility functions."""

from dataclasses import dataclass

import numpy as np
from xarray import DataArray

__all__ = ["ELPDData", "ComparisonResult", "get_log_likelihood"]


def get_log_likelihood(idata, var_name=None):
    """Retrieve the log likelihood dataarray of a given variable."""
    if not hasattr(idata, "log_likelihood"):
        raise TypeError("log likelihood not found in inference data object")
    if var_name is None:
        var_names = list(idata.log_likelihood.data_vars)
        if len(var_names) > 1:
            raise TypeError(
                f"Found several log likelihood arrays {var_names}, var_name cannot be None"
            )
        return idata.log_likelihood[var_names[0]]
    try:
        log_likelihood = idata.log_likelihood[var_name]
    except KeyError as err:
        raise TypeError(f"No log likelihood data named {var_name} found") from err
    return log_likelihood


BASE_FMT = """Computed from {{n_samples}} posterior samples and \
{{n_points}} observations log-likelihood matrix.

{{0:{0}}} Estimate       SE
{{scale}}_{{kind}} {{ic_value:8.2f}}  {{ic_se:7.2f}}
p_{{kind:{1}}} {{p_value:8.2f}}        -"""
POINTWISE_LOO_FMT = """------

Pareto k diagnostic values:
                         {{0:>{0}}} {{1:>6}}
(-Inf, 0.5)   (good)     {{2:{0}d}} {{7:6.1f}}%
 [0.5, 0.7)   (ok)       {{3:{0}d}} {{8:6.1f}}%
   [0.7, 1)   (bad)      {{4:{0}d}} {{9:6.1f}}%
   [1, Inf)   (very bad) {{5:{0}d}} {{10:6.1f}}%
   failed                {{6:{0}d}} {{11:6.1f}}%
"""
SCALE_DICT = {"log": "elpd"}


@dataclass(frozen=True)
class ELPDData:  # pylint: disable=too-many-instance-attributes
    """Class to contain the data from an elpd estimate like loo or loo_kfold.

    ``elpd`` is always ``elpd_i.sum()``. When ``unreliable`` is set the estimate
    should not be used for decisions; ``n_unreliable`` counts observations with
    ``pareto_k >= 0.7`` and ``n_very_unreliable`` those with ``pareto_k >= 1``,
    both including observations whose tail fit failed.
    """

    kind: str
    elpd: float
    se: float
    p: float
    n_samples: int
    n_data_points: int
    scale: str
    warning: bool
    elpd_i: DataArray
    pareto_k: DataArray = None
    log_weights: DataArray = None
    psis_fallback: DataArray = None
    name: str = None
    n_unreliable: int = 0
    n_very_unreliable: int = 0
    unreliable: bool = False
    n_folds: int = None

    def __str__(self):
        """Print elpd data in a user friendly way."""
        kind = self.kind
        scale_str = SCALE_DICT[self["scale"]]

        if kind == "loo_kfold" and self.n_folds is not None:
            display_kind = "kfold"
            padding = len(scale_str) + len(display_kind) + 1
            base = f"Computed from {self.n_folds}-fold cross validation.\n\n"
            base += f"{{0:{padding}}} Estimate       SE\n"
            base += f"{scale_str}_{display_kind} {{ic_value:8.2f}}  {{ic_se:7.2f}}\n"
            base += f"p_{display_kind:{padding-2}} {{p_value:8.2f}}        -"
            base = base.format("", ic_value=self.elpd, ic_se=self.se, p_value=self.p)
        else:
            padding = len(scale_str) + len(kind) + 1
            base = BASE_FMT.format(padding, padding - 2)
            base = base.format(
                "",
                kind=kind,
                scale=scale_str,
                n_samples=self.n_samples,
                n_points=self.n_data_points,
                ic_value=self.elpd,
                ic_se=self.se,
                p_value=self.p,
            )

        if self.name is not None:
            base = f"Model: {self.name}\n" + base

        if self.unreliable:
            base += (
                "\n\nThis estimate is flagged as unreliable: "
                f"{self.n_very_unreliable} of {self.n_data_points} observations have "
                "Pareto k >= 1 or a failed tail fit."
            )
        elif self.warning:
            base += "\n\nThere has been a warning during the calculation. Please check the results."

        if kind == "loo" and self.pareto_k is not None:
            k_values = np.asarray(self.pareto_k).ravel()
            bins = np.asarray([-np.inf, 0.5, 0.7, 1, np.inf])
            counts, *_ = np.histogram(k_values[np.isfinite(k_values)], bins=bins, density=False)
            counts = [*counts, int(np.sum(~np.isfinite(k_values)))]
            extended = POINTWISE_LOO_FMT.format(max(4, len(str(np.max(counts)))))
            extended = extended.format(
                "Count",
                "Pct.",
                *[*counts, *(np.asarray(counts) / len(k_values) * 100)],
            )
            base = "\n".join([base, extended])

        return base

    def __repr__(self):
        """Alias to ``__str__``."""
        return self.__str__()

    def __getitem__(self, key):
        """Define getitem magic method."""
        return getattr(self, key)


@dataclass(frozen=True)
class ComparisonResult:
    """Paired difference between two elpd estimates over the same observations.

    Attributes
    ----------
    elpd_diff : float
        ``elpd(a) - elpd(b)``.
    se_diff : float
        Standard error of the difference, computed from the pointwise differences.
    name_a, name_b : str or None
        Names of the compared models, if known.
    """

    elpd_diff: float
    se_diff: float
    name_a: str = None
    name_b: str = None

    def __str__(self):
        """Print the comparison in a user friendly way."""
        name_a = "a" if self.name_a is None else self.name_a
        name_b = "b" if self.name_b is None else self.name_b
        return (
            f"elpd_diff({name_a} - {name_b}) {self.elpd_diff:8.2f}\n"
            f"se_diff {' ' * (len(name_a) + len(name_b) + 5)}{self.se_diff:8.2f}"
        )

    def __getitem__(self, key):
        """Define getitem magic method."""
        return getattr(self, key)
