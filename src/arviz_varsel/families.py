"""GLM families supported by the reference model and the projection.

Each family knows how to evaluate the pointwise log likelihood given a linear
predictor and how to project a set of reference draws onto a restricted design
matrix. Only the canonical link is supported.

+-----------+-----------+----------+------------+
| Family    | Data type | Link     | Dispersion |
+===========+===========+==========+============+
| gaussian  | real      | identity | sigma      |
| bernoulli | {0, 1}    | logit    | none       |
+-----------+-----------+----------+------------+
"""

import logging
from collections import namedtuple

import numpy as np
from scipy.optimize import minimize
from scipy.special import expit
from scipy.stats import norm

from arviz_varsel.errors import ConvergenceFailure

__all__ = ["Gaussian", "Bernoulli", "Projection", "get_family"]

_log = logging.getLogger(__name__)

Projection = namedtuple("Projection", ["coefs", "dispersion", "kl"])


class Family:
    """Base class for the families.

    Subclasses implement :meth:`log_likelihood` and :meth:`project`.
    """

    name = None
    has_dispersion = False

    def inverse_link(self, eta):
        """Map the linear predictor to the mean of the response."""
        raise NotImplementedError

    def log_likelihood(self, y, eta, dispersion=None):
        """Pointwise log likelihood of `y` with linear predictor `eta`.

        `eta` has shape ``(..., n)`` and `dispersion`, when used, shape ``(...)``.
        """
        raise NotImplementedError

    def project(self, eta, dispersion, design):
        """Project reference draws onto the column space of `design`.

        Parameters
        ----------
        eta : ndarray (S, n)
            Reference linear predictor, one row per draw.
        dispersion : ndarray (S,) or None
        design : ndarray (n, d)
            Restricted design matrix, intercept column included.

        Returns
        -------
        Projection
            ``coefs`` with shape ``(S, d)``, ``dispersion`` with shape ``(S,)`` or None
            and ``kl`` with the per draw KL divergence from the reference, per observation.
        """
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class Gaussian(Family):
    """Gaussian family with identity link.

    The projection of each draw has a closed form: the restricted coefficients are
    the least squares fit to the reference linear predictor and the projected
    dispersion absorbs the mean squared residual, ``sigma_perp**2 = sigma**2 +
    mean(residual**2)``.
    """

    name = "gaussian"
    has_dispersion = True

    def inverse_link(self, eta):
        return eta

    def log_likelihood(self, y, eta, dispersion=None):
        if dispersion is None:
            raise ValueError("The gaussian family needs a dispersion (sigma) value")
        return norm.logpdf(y, loc=eta, scale=np.asarray(dispersion)[..., None])

    def project(self, eta, dispersion, design):
        eta = np.atleast_2d(eta)
        dispersion = np.asarray(dispersion, dtype=float)
        coefs, *_ = np.linalg.lstsq(design, eta.T, rcond=None)
        coefs = coefs.T
        resid = eta - coefs @ design.T
        sigma2 = dispersion**2
        sigma_perp2 = sigma2 + np.mean(resid**2, axis=1)
        kl = 0.5 * np.log(sigma_perp2 / sigma2)
        if not (np.all(np.isfinite(coefs)) and np.all(np.isfinite(kl))):
            raise ConvergenceFailure("Gaussian projection produced non-finite values")
        return Projection(coefs, np.sqrt(sigma_perp2), kl)


class Bernoulli(Family):
    """Bernoulli family with logit link.

    Each draw is projected by fitting a logistic regression with the reference
    probabilities as soft targets, which minimizes the KL divergence between the
    reference and restricted predictive distributions.
    """

    name = "bernoulli"

    def inverse_link(self, eta):
        return expit(eta)

    def log_likelihood(self, y, eta, dispersion=None):
        return y * eta - np.logaddexp(0.0, eta)

    def project(self, eta, dispersion, design):
        eta = np.atleast_2d(eta)
        n_draws = eta.shape[0]
        n_obs, n_coefs = design.shape
        coefs = np.empty((n_draws, n_coefs))
        kl = np.empty(n_draws)
        w_start = np.zeros(n_coefs)
        for s in range(n_draws):
            w_start, kl_sum = _project_logistic(eta[s], design, w_start, self.inverse_link)
            coefs[s] = w_start
            kl[s] = kl_sum / n_obs
        return Projection(coefs, None, kl)


def _project_logistic(eta, design, w0, inverse_link=expit):
    """Fit a logistic regression with soft targets ``inverse_link(eta)``.

    Minimizes ``KL(p_ref || p_sub)`` summed over observations, warm-starting at `w0`.
    """
    eps = 1e-12
    mu = np.clip(inverse_link(eta), eps, 1.0 - eps)

    # negative entropy of reference (constant w.r.t. w)
    neg_entropy = np.sum(mu * np.log(mu) + (1.0 - mu) * np.log(1.0 - mu))

    def objective(w):
        logits = design @ w
        cross_ent = np.sum(-mu * logits + np.logaddexp(0.0, logits))
        grad = design.T @ (inverse_link(logits) - mu)
        return cross_ent + neg_entropy, grad

    res = minimize(objective, w0, method="L-BFGS-B", jac=True)
    if not (np.all(np.isfinite(res.x)) and np.isfinite(res.fun)):
        raise ConvergenceFailure(f"Logistic projection did not converge: {res.message}")
    if not res.success:
        _log.debug("L-BFGS-B stopped early in logistic projection: %s", res.message)
    return res.x, max(float(res.fun), 0.0)


_FAMILIES = {"gaussian": Gaussian, "bernoulli": Bernoulli}


def get_family(family):
    """Return a family instance from its name or an instance."""
    if isinstance(family, Family):
        return family
    try:
        return _FAMILIES[str(family).lower()]()
    except KeyError as err:
        raise ValueError(
            f"Unsupported family {family!r}, valid options are {list(_FAMILIES)}"
        ) from err
