"""Compare PSIS-LOO-CV and K-fold-CV results."""

import warnings
from copy import copy

import numpy as np
import pandas as pd

from arviz_varsel.errors import MismatchedObservationSets
from arviz_varsel.loo.loo import loo
from arviz_varsel.utils import ComparisonResult, ELPDData


def compare_models(elpd_a, elpd_b):
    r"""Compute the paired elpd difference between two models.

    The standard error is computed from the pointwise differences,
    ``se_diff = sqrt(n * var(elpd_i_a - elpd_i_b))``, which accounts for the
    correlation between the two estimates over the same observations.

    Parameters
    ----------
    elpd_a, elpd_b : ELPDData
        Results of :func:`loo` or :func:`loo_kfold` over the same observations.

    Returns
    -------
    ComparisonResult
        ``elpd_diff`` is ``elpd_a - elpd_b``, positive when model a predicts better.

    Raises
    ------
    MismatchedObservationSets
        If pointwise values are missing or the observations differ in number,
        dimensions or coordinate values.

    Examples
    --------
    .. ipython::

        In [1]: import numpy as np
           ...: from arviz_varsel import ConjugateLinearModel, compare_models, loo
           ...: rng = np.random.default_rng(3)
           ...: X = rng.normal(size=(50, 2))
           ...: y = 1 + X[:, 0] + rng.normal(size=50)
           ...: full = ConjugateLinearModel.from_arrays(X, y, seed=3, name="full")
           ...: small = ConjugateLinearModel.from_arrays(X[:, :1], y, seed=3, name="small")
           ...: compare_models(loo(full), loo(small))
    """
    elpd_i_a, elpd_i_b = _check_observation_sets(elpd_a, elpd_b)
    diff = elpd_i_a - elpd_i_b
    return ComparisonResult(
        elpd_diff=float(np.sum(diff)),
        se_diff=float(np.sqrt(len(diff) * np.var(diff))),
        name_a=getattr(elpd_a, "name", None),
        name_b=getattr(elpd_b, "name", None),
    )


def _check_observation_sets(elpd_a, elpd_b):
    """Check two results refer to the same observations and return the flat pointwise values."""
    for label, elpd_data in (("first", elpd_a), ("second", elpd_b)):
        if getattr(elpd_data, "elpd_i", None) is None:
            raise MismatchedObservationSets(
                f"The {label} result has no pointwise elpd values to compare."
            )
    elpd_i_a = elpd_a.elpd_i
    elpd_i_b = elpd_b.elpd_i
    if elpd_i_a.size != elpd_i_b.size:
        raise MismatchedObservationSets(
            f"Results have different numbers of observations: {elpd_i_a.size} and {elpd_i_b.size}"
        )
    if set(elpd_i_a.dims) != set(elpd_i_b.dims):
        raise MismatchedObservationSets(
            f"Results have different observation dimensions: {list(elpd_i_a.dims)} and "
            f"{list(elpd_i_b.dims)}"
        )
    elpd_i_b = elpd_i_b.transpose(*elpd_i_a.dims)
    for dim in elpd_i_a.dims:
        if elpd_i_a.sizes[dim] != elpd_i_b.sizes[dim]:
            raise MismatchedObservationSets(
                f"Dimension {dim!r} has sizes {elpd_i_a.sizes[dim]} and {elpd_i_b.sizes[dim]}"
            )
        if dim in elpd_i_a.coords and dim in elpd_i_b.coords:
            if not np.array_equal(elpd_i_a[dim].values, elpd_i_b[dim].values):
                raise MismatchedObservationSets(
                    f"Coordinate values of dimension {dim!r} differ between the results"
                )
    return elpd_i_a.values.ravel(), elpd_i_b.values.ravel()


def compare(compare_dict, var_name=None):
    r"""Compare models based on their expected log pointwise predictive density (ELPD).

    Parameters
    ----------
    compare_dict : dict of {str : DataTree, ReferenceModel or ELPDData}
        A dictionary of model names and data or precomputed results. Models that are not
        ``ELPDData`` are evaluated with :func:`loo`.
    var_name : str, optional
        If there is more than a single observed variable, which should be used as the basis
        for comparison.

    Returns
    -------
    DataFrame
        A DataFrame, ordered from best to worst model (measured by the ELPD).
        The index reflects the key with which the models are passed to this function.
        The columns are:

        - **rank**: The rank-order of the models. 0 is the best.
        - **elpd**: ELPD estimated by PSIS-LOO-CV or K-fold-CV.
        - **p**: Estimated effective number of parameters.
        - **elpd_diff**: The difference in ELPD between each model and the top-ranked model.
          It's always 0 for the top-ranked model.
        - **se**: Standard error of the ELPD estimate.
        - **dse**: Standard error of the difference in ELPD, computed from the pointwise
          differences with the top-ranked model. It's always 0 for the top-ranked model.
        - **warning**: True if the computation of the ELPD may not be reliable.

    Raises
    ------
    MismatchedObservationSets
        If the models were not evaluated over the same observations.
    ValueError
        If fewer than two models are given or the results mix incompatible methods.
    """
    if len(compare_dict) < 2:
        raise ValueError("compare needs at least two models")
    ics_dict = _calculate_ics(compare_dict, var_name=var_name)
    names = sorted(ics_dict, key=lambda name: ics_dict[name].elpd, reverse=True)
    best = ics_dict[names[0]]

    rows = []
    for rank, name in enumerate(names):
        elpd_data = ics_dict[name]
        if rank == 0:
            d_ic, d_std_err = 0.0, 0.0
        else:
            diff = compare_models(best, elpd_data)
            d_ic, d_std_err = diff.elpd_diff, diff.se_diff
        rows.append(
            {
                "rank": rank,
                "elpd": elpd_data.elpd,
                "p": elpd_data.p,
                "elpd_diff": d_ic,
                "se": elpd_data.se,
                "dse": d_std_err,
                "warning": bool(elpd_data.warning or elpd_data.unreliable),
            }
        )
    df_comp = pd.DataFrame(rows, index=pd.Index(names))
    df_comp["rank"] = df_comp["rank"].astype(int)
    df_comp["warning"] = df_comp["warning"].astype(bool)
    return df_comp


def _calculate_ics(compare_dict, var_name=None):
    """Calculate LOO only if necessary.

    Parameters
    ----------
    compare_dict :  dict of {str : DataTree, ReferenceModel or ELPDData}
    var_name : str, optional

    Returns
    -------
    compare_dict : dict of ELPDData
    """
    precomputed_elpds = {
        name: elpd_data
        for name, elpd_data in compare_dict.items()
        if isinstance(elpd_data, ELPDData)
    }
    if precomputed_elpds:
        for name, elpd_data in precomputed_elpds.items():
            if elpd_data.elpd_i is None:
                raise MismatchedObservationSets(
                    f"Model '{name}' is missing pointwise ELPD values."
                )

        methods_used = {}
        for name, elpd_data in precomputed_elpds.items():
            methods_used.setdefault(elpd_data.kind, []).append(name)

        if len(methods_used) > 1:
            if set(methods_used) == {"loo", "loo_kfold"}:
                warnings.warn(
                    "Comparing LOO-CV to K-fold-CV. "
                    "For a more accurate comparison use the same number of folds "
                    "or loo for all models compared.",
                    UserWarning,
                    stacklevel=3,
                )
            else:
                method_list = sorted(methods_used.keys())
                raise ValueError(
                    f"Cannot compare models with incompatible cross-validation methods: "
                    f"{method_list}. Only comparisons between 'loo' and 'loo_kfold' methods "
                    f"are supported currently."
                )

    compare_dict = copy(compare_dict)
    for name, dataset in compare_dict.items():
        if not isinstance(dataset, ELPDData):
            try:
                compare_dict[name] = loo(dataset, var_name=var_name, name=name)
            except Exception as e:
                raise e.__class__(
                    f"Encountered error trying to compute ELPD from model {name}."
                ) from e
    return compare_dict
