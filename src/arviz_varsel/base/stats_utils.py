"""Stats-utility functions for arviz-varsel."""

from collections.abc import Sequence

import numpy as np

__all__ = ["make_ufunc", "logsumexp"]


def make_ufunc(func, n_dims=2, n_output=1, n_input=1, ravel=True):
    """Make ufunc from a function taking 1D array input.

    Parameters
    ----------
    func : callable
    n_dims : int, optional
        Number of core dimensions not broadcasted. Dimensions are skipped from the end.
        At minimum n_dims > 0.
    n_output : int, optional
        Select number of results returned by `func`.
        If n_output > 1, ufunc returns a tuple of objects else returns an object.
    n_input : int, optional
        Number of **array** inputs to func, i.e. ``n_input=2`` means that func is called
        with ``func(ary1, ary2, *args, **kwargs)``
    ravel : bool, optional
        If true, ravel the ndarray before calling `func`.

    Returns
    -------
    callable
        ufunc wrapper for `func`.
    """
    if n_dims < 1:
        raise TypeError("n_dims must be one or higher.")

    def _ufunc(*args, out_shape=None, **kwargs):
        """General ufunc for single-output function."""
        arys = args[:n_input]
        element_shape = arys[0].shape[:-n_dims]
        out_shape = () if out_shape is None else tuple(out_shape)
        out = np.empty((*element_shape, *out_shape))
        for idx in np.ndindex(element_shape):
            arys_idx = [ary[idx].ravel() if ravel else ary[idx] for ary in arys]
            out[idx] = np.asarray(func(*arys_idx, *args[n_input:], **kwargs))
        return out

    def _multi_ufunc(*args, out_shape=None, **kwargs):
        """General ufunc for multi-output function."""
        arys = args[:n_input]
        element_shape = arys[0].shape[:-n_dims]
        if out_shape is None:
            out_shape = [() for _ in range(n_output)]
        out = tuple(np.empty((*element_shape, *tuple(out_shape[i]))) for i in range(n_output))
        for idx in np.ndindex(element_shape):
            arys_idx = [ary[idx].ravel() if ravel else ary[idx] for ary in arys]
            results = func(*arys_idx, *args[n_input:], **kwargs)
            for i, res in enumerate(results):
                out[i][idx] = np.asarray(res)
        return out

    ufunc = _multi_ufunc if n_output > 1 else _ufunc
    ufunc.__doc__ = f"Vectorized version of {getattr(func, '__name__', 'function')}."
    return ufunc


def logsumexp(ary, *, b=None, axis=None, keepdims=False):
    """Stable logsumexp when b >= 0 and b is scalar."""
    ary = np.asarray(ary, dtype=float)
    if b == 0:
        return -np.inf
    if isinstance(axis, Sequence):
        axis = tuple(axis)
    ary_max = np.max(ary, axis=axis, keepdims=True)
    ary_max = np.where(np.isfinite(ary_max), ary_max, 0)
    out = np.log(np.sum(np.exp(ary - ary_max), axis=axis, keepdims=keepdims))
    out += ary_max if keepdims else np.squeeze(ary_max, axis=axis)
    if b is not None:
        out += np.log(b)
    return out if np.ndim(out) else float(out)
