"""Reference models consumed by the loo, K-fold and selection functions.

A reference model bundles the posterior of a fitted GLM with the data needed to
project it, and optionally knows how to refit itself on a subset of the
observations for K-fold cross-validation.
"""

import numpy as np
from arviz_base import convert_to_datatree, from_dict
from xarray import DataArray

from arviz_varsel.families import get_family
from arviz_varsel.utils import get_log_likelihood
from arviz_varsel.validate import validate_dims

__all__ = ["ReferenceModel", "ConjugateLinearModel"]


class ReferenceModel:
    """Fitted GLM used as reference for projection predictive variable selection.

    The posterior group of `idata` must contain an ``intercept`` with only sample
    dimensions, a ``beta`` variable with an extra predictor dimension and, for the
    gaussian family, a ``sigma`` variable. The design matrix is read from the
    ``constant_data`` group and the response from ``observed_data``.

    To enable K-fold cross-validation, subclass and implement :meth:`fit`.

    Parameters
    ----------
    idata : DataTree or InferenceData
    family : {"gaussian", "bernoulli"} or Family, default "gaussian"
    var_name : str, optional
        Name of the observed variable, in both ``log_likelihood`` and ``observed_data``.
    name : str, optional
        Model name used in results and comparisons.
    concurrent_safe : bool, default False
        Whether :meth:`fit` can be called from several threads at once.
    design_var : str, default "X"
        Name of the design matrix in the ``constant_data`` group.
    predictor_dim : str, default "predictor"
    """

    def __init__(
        self,
        idata,
        family="gaussian",
        var_name=None,
        name=None,
        concurrent_safe=False,
        design_var="X",
        predictor_dim="predictor",
    ):
        self.idata = convert_to_datatree(idata)
        self.family = get_family(family)
        self.name = name
        self.concurrent_safe = concurrent_safe
        self.design_var = design_var
        self.predictor_dim = predictor_dim
        self.sample_dims = validate_dims(None)

        log_likelihood = get_log_likelihood(self.idata, var_name)
        self.var_name = log_likelihood.name if var_name is None else var_name
        obs_dims = [dim for dim in log_likelihood.dims if dim not in self.sample_dims]
        if len(obs_dims) != 1:
            raise ValueError(
                f"Reference models need exactly one observation dimension, found {obs_dims}"
            )
        self.obs_dim = obs_dims[0]

        for group in ("posterior", "observed_data", "constant_data"):
            if group not in self.idata.children:
                raise TypeError(f"Reference model data must contain a {group} group")
        required = ["intercept", "beta"] + (["sigma"] if self.family.has_dispersion else [])
        missing = [var for var in required if var not in self.idata.posterior.data_vars]
        if missing:
            raise ValueError(f"Posterior group is missing the variables {missing}")
        if design_var not in self.idata.constant_data.data_vars:
            raise ValueError(f"Design matrix {design_var!r} not found in constant_data")

    @property
    def predictors(self):
        """Names of the candidate predictors, in design matrix order."""
        design = self.idata.constant_data[self.design_var]
        return [str(p) for p in design[self.predictor_dim].values]

    @property
    def n_data_points(self):
        return self.idata.observed_data[self.var_name].sizes[self.obs_dim]

    @property
    def n_samples(self):
        posterior = self.idata.posterior
        return int(np.prod([posterior.sizes[dim] for dim in self.sample_dims]))

    @property
    def can_refit(self):
        """True if the model implements :meth:`fit`."""
        return not self.check_implemented_methods(["fit"])

    def check_implemented_methods(self, methods):
        """Return the methods in `methods` still using the not implemented base version."""
        return [
            method
            for method in methods
            if getattr(type(self), method, None) is getattr(ReferenceModel, method, None)
        ]

    def design_matrix(self, idx=None, predictors=None):
        """Design matrix with shape ``(n_obs, n_predictors)``, without intercept column."""
        X = self.idata.constant_data[self.design_var].transpose(self.obs_dim, self.predictor_dim)
        if predictors is not None:
            X = X.sel({self.predictor_dim: list(predictors)})
        X = X.values
        return X if idx is None else X[np.asarray(idx)]

    def observed(self, idx=None):
        y = self.idata.observed_data[self.var_name].values
        return y if idx is None else y[np.asarray(idx)]

    def _posterior(self, idata=None):
        idata = self.idata if idata is None else convert_to_datatree(idata)
        return idata.posterior

    def linear_predictor(self, idata=None, X=None):
        """Linear predictor draws with shape ``(*sample_shape, n_obs)``.

        Parameters
        ----------
        idata : DataTree, optional
            Alternative posterior, as returned by :meth:`fit`. Defaults to the reference one.
        X : ndarray (n_obs, n_predictors), optional
            Alternative design matrix. Defaults to the full design matrix.
        """
        posterior = self._posterior(idata)
        X = self.design_matrix() if X is None else np.asarray(X)
        intercept = posterior["intercept"].transpose(*self.sample_dims).values
        beta = posterior["beta"].transpose(*self.sample_dims, self.predictor_dim).values
        return intercept[..., None] + beta @ X.T

    def dispersion(self, idata=None):
        """Dispersion draws with shape ``sample_shape`` or None for families without one."""
        if not self.family.has_dispersion:
            return None
        return self._posterior(idata)["sigma"].transpose(*self.sample_dims).values

    def fit(self, train_idx, seed=None):
        """Refit the model on the observations in `train_idx`.

        Must return a DataTree with a posterior group following the same conventions
        as the reference one.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not implement fit, so it can't be used for K-fold "
            "cross-validation"
        )

    def log_likelihood__i(self, test_idx, idata__i):
        """Pointwise log likelihood of the held out observations under a refitted posterior."""
        test_idx = np.asarray(test_idx)
        eta = self.linear_predictor(idata__i, X=self.design_matrix(test_idx))
        log_lik = self.family.log_likelihood(
            self.observed(test_idx), eta, self.dispersion(idata__i)
        )
        posterior = self._posterior(idata__i)
        obs_coord = self.idata.observed_data[self.var_name][self.obs_dim].values[test_idx]
        return DataArray(
            log_lik,
            dims=[*self.sample_dims, self.obs_dim],
            coords={
                **{dim: posterior[dim].values for dim in self.sample_dims},
                self.obs_dim: obs_coord,
            },
            name=self.var_name,
        )

    def __repr__(self):
        name = "" if self.name is None else f"{self.name!r}, "
        return (
            f"{type(self).__name__}({name}family={self.family.name}, "
            f"n_data_points={self.n_data_points}, predictors={self.predictors})"
        )


class ConjugateLinearModel(ReferenceModel):
    r"""Gaussian linear regression with a conjugate Normal-Inverse-Gamma prior.

    Posterior draws are exact and independent, so the model can be refit cheaply
    and concurrently for K-fold cross-validation. The prior is

    .. math::

        \beta \mid \sigma^2 \sim N(0, \sigma^2 s^2 I), \quad
        \sigma^2 \sim \text{Inv-Gamma}(a_0, b_0)

    where :math:`\beta` includes the intercept and :math:`s` is ``prior_scale``.
    Use :meth:`from_arrays` to build one.
    """

    def __init__(
        self,
        idata,
        ndraws=1000,
        chains=4,
        prior_scale=10.0,
        sigma_prior=(0.1, 0.1),
        **kwargs,
    ):
        kwargs.setdefault("concurrent_safe", True)
        super().__init__(idata, family="gaussian", **kwargs)
        self.ndraws = ndraws
        self.chains = chains
        self.prior_scale = prior_scale
        self.sigma_prior = sigma_prior

    @classmethod
    def from_arrays(
        cls,
        X,
        y,
        predictors=None,
        ndraws=1000,
        chains=4,
        seed=None,
        prior_scale=10.0,
        sigma_prior=(0.1, 0.1),
        name=None,
        obs_dim="obs_id",
    ):
        """Sample the posterior for design matrix `X` and response `y`.

        Parameters
        ----------
        X : array_like (n_obs, n_predictors)
        y : array_like (n_obs,)
        predictors : list of str, optional
            Defaults to ``["x1", "x2", ...]``.
        ndraws, chains : int
            Posterior draws per chain and number of chains.
        seed : int or Generator, optional
        prior_scale : float, default 10
        sigma_prior : tuple of float, default (0.1, 0.1)
            Shape and scale of the inverse gamma prior on the residual variance.
        name : str, optional
        obs_dim : str, default "obs_id"
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim == 1:
            X = X[:, None]
        if X.ndim != 2 or y.ndim != 1 or X.shape[0] != y.shape[0]:
            raise ValueError(
                f"X must be 2D and y 1D with matching lengths, got shapes {X.shape} and {y.shape}"
            )
        if predictors is None:
            predictors = [f"x{i + 1}" for i in range(X.shape[1])]
        predictors = [str(p) for p in predictors]
        if len(predictors) != X.shape[1] or len(set(predictors)) != len(predictors):
            raise ValueError("predictors must have one unique name per column of X")

        rng = np.random.default_rng(seed)
        posterior = _sample_nig_posterior(X, y, ndraws, chains, rng, prior_scale, sigma_prior)
        log_lik = get_family("gaussian").log_likelihood(
            y, posterior["intercept"][..., None] + posterior["beta"] @ X.T, posterior["sigma"]
        )
        idata = from_dict(
            {
                "posterior": posterior,
                "log_likelihood": {"y": log_lik},
                "observed_data": {"y": y},
                "constant_data": {"X": X},
            },
            dims={"beta": ["predictor"], "y": [obs_dim], "X": [obs_dim, "predictor"]},
            coords={"predictor": predictors, obs_dim: np.arange(len(y))},
        )
        return cls(
            idata,
            ndraws=ndraws,
            chains=chains,
            prior_scale=prior_scale,
            sigma_prior=sigma_prior,
            var_name="y",
            name=name,
        )

    def fit(self, train_idx, seed=None):
        train_idx = np.asarray(train_idx)
        rng = np.random.default_rng(seed)
        posterior = _sample_nig_posterior(
            self.design_matrix(train_idx),
            self.observed(train_idx),
            self.ndraws,
            self.chains,
            rng,
            self.prior_scale,
            self.sigma_prior,
        )
        return from_dict(
            {"posterior": posterior},
            dims={"beta": [self.predictor_dim]},
            coords={self.predictor_dim: self.predictors},
        )


def _sample_nig_posterior(X, y, ndraws, chains, rng, prior_scale, sigma_prior):
    """Exact draws from the Normal-Inverse-Gamma posterior of a linear regression."""
    n_obs = len(y)
    design = np.column_stack([np.ones(n_obs), X])
    prior_prec = np.eye(design.shape[1]) / prior_scale**2
    precision = design.T @ design + prior_prec
    cov = np.linalg.inv(precision)
    mean = cov @ design.T @ y
    a_n = sigma_prior[0] + n_obs / 2
    b_n = sigma_prior[1] + 0.5 * (y @ y - mean @ precision @ mean)

    sigma2 = b_n / rng.gamma(a_n, size=(chains, ndraws))
    z = rng.standard_normal((chains, ndraws, design.shape[1]))
    coefs = mean + np.sqrt(sigma2)[..., None] * (z @ np.linalg.cholesky(cov).T)
    return {"intercept": coefs[..., 0], "beta": coefs[..., 1:], "sigma": np.sqrt(sigma2)}
