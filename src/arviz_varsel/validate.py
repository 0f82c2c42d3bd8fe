"""Validator functions for common arguments."""

import os

import numpy as np
from arviz_base import rcParams


def validate_dims(dims):
    """Validate `dims` argument.

    Uses the default in rcParams and ensures the returned object is a list.

    Parameters
    ----------
    dims : str, sequence of hashable, or None

    Returns
    -------
    list
    """
    if dims is None:
        dims = rcParams["data.sample_dims"]
    if isinstance(dims, str):
        dims = [dims]
    return list(dims)


def validate_dims_chain_draw_axis(dims):
    """Validate `dims` argument for functions that use chain_axis and draw_axis.

    In such cases, dims can have length 1 or 2 depending on there being a chain dimension.

    Returns
    -------
    list
        List of dimensions
    int or None
        Positional index for chain dimension
    int
        Positional index for draw dimension
    """
    dims = validate_dims(dims)
    draw_axis = -1
    if len(dims) == 1:
        chain_axis = None
    elif len(dims) == 2:
        chain_axis = -2
    else:
        raise ValueError("dims can only have 1 or 2 elements")
    return dims, chain_axis, draw_axis


def validate_fraction(value, name):
    """Validate a fraction in the closed interval [0, 1]."""
    if not 0 <= value <= 1:
        raise ValueError(f"The value of {name} should be in the interval [0, 1] but got {value}")
    return float(value)


def validate_alpha(alpha):
    """Validate the width of the SE envelope used to pick a submodel size."""
    if not np.isfinite(alpha) or alpha <= 0:
        raise ValueError(f"alpha must be a positive finite number but got {alpha}")
    return float(alpha)


def validate_n_jobs(n_jobs):
    """Turn ``n_jobs`` into a worker count.

    ``None`` and ``-1`` mean one worker per available CPU.
    """
    if n_jobs is None or n_jobs == -1:
        return os.cpu_count() or 1
    if not isinstance(n_jobs, int | np.integer) or n_jobs < 1:
        raise ValueError(f"n_jobs must be a positive integer, -1 or None but got {n_jobs}")
    return int(n_jobs)


def validate_ndraws(ndraws, n_samples, name="ndraws"):
    """Validate a requested number of draws against the available ones."""
    if ndraws is None:
        return n_samples
    if not isinstance(ndraws, int | np.integer) or ndraws < 1:
        raise ValueError(f"{name} must be a positive integer but got {ndraws}")
    if ndraws > n_samples:
        raise ValueError(
            f"{name} ({ndraws}) cannot be larger than the number of posterior draws ({n_samples})"
        )
    return int(ndraws)
