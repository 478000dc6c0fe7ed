"""
Dirichlet Regression for Compositional Features

Models each spot's feature vector as a point on the simplex. Uses the common
parametrization: for every component c, log(alpha_c) = Z @ beta_c, where Z is
the standardized predictor matrix with an intercept column. Coefficients are
found by maximizing the Dirichlet log-likelihood with L-BFGS-B.

Predictions are expected compositions alpha / sum(alpha).
"""

import warnings

import numpy as np
from scipy.optimize import minimize
from scipy.special import digamma, gammaln

from feature_enhancer.utils_enhancement import PreconditionError


# exp() stays finite and alpha stays positive inside this range
MAX_ETA = 30.0


def prepare_compositions(Y: np.ndarray) -> np.ndarray:
    """
    Normalize rows to the open simplex.

    Rows are scaled to sum to one. If any component sits on the boundary
    (exactly 0 or 1) every value is compressed with (y * (n - 1) + 1/C) / n,
    where n is the number of rows and C the number of components.

    Parameters:
    -----------
    Y : np.ndarray, shape (n_samples, n_components)
        Non-negative compositions

    Returns:
    --------
    np.ndarray
        Compositions strictly inside the simplex
    """
    Y = np.asarray(Y, dtype=float)
    if Y.ndim != 2:
        raise PreconditionError(f"Compositions must be 2D, got {Y.ndim} dimensions")
    if not np.all(np.isfinite(Y)):
        raise PreconditionError("Compositions must be finite")
    if np.any(Y < 0):
        raise PreconditionError("Compositions must be non-negative")

    totals = Y.sum(axis=1)
    if np.any(totals <= 0):
        raise PreconditionError("Every composition must have a positive total")

    Y = Y / totals[:, np.newaxis]

    if np.any((Y <= 0) | (Y >= 1)):
        n, n_components = Y.shape
        Y = (Y * (n - 1) + 1.0 / n_components) / n

    return Y


class DirichletRegression:
    """
    Dirichlet regression of compositions on continuous predictors.
    """

    def __init__(self, maxiter: int = 1000, tol: float = 1e-10):
        self.maxiter = maxiter
        self.tol = tol

        self.coef_ = None
        self.mean_ = None
        self.scale_ = None
        self.loglik_ = None
        self.converged_ = None
        self.n_iter_ = None

    def _design(self, X: np.ndarray) -> np.ndarray:
        Z = (np.asarray(X, dtype=float) - self.mean_) / self.scale_
        return np.column_stack([np.ones(len(Z)), Z])

    def fit(self, X: np.ndarray, Y: np.ndarray) -> 'DirichletRegression':
        """
        Fit the model.

        Parameters:
        -----------
        X : np.ndarray, shape (n_samples, n_predictors)
            Predictors
        Y : np.ndarray, shape (n_samples, n_components)
            Non-negative compositions (normalized with ``prepare_compositions``)

        Returns:
        --------
        self
        """
        X = np.asarray(X, dtype=float)
        Y = prepare_compositions(Y)
        if len(X) != len(Y):
            raise PreconditionError(f"X has {len(X)} samples, Y has {len(Y)}")

        self.mean_ = X.mean(axis=0)
        self.scale_ = X.std(axis=0)
        self.scale_[self.scale_ == 0] = 1.0

        Z = self._design(X)
        n_terms = Z.shape[1]
        n_components = Y.shape[1]
        log_Y = np.log(Y)

        def negative_loglik(theta):
            beta = theta.reshape(n_terms, n_components)
            alpha = np.exp(np.clip(Z @ beta, -MAX_ETA, MAX_ETA))
            alpha_sum = alpha.sum(axis=1)

            loglik = (gammaln(alpha_sum).sum()
                      - gammaln(alpha).sum()
                      + ((alpha - 1.0) * log_Y).sum())

            d_eta = alpha * (digamma(alpha_sum)[:, np.newaxis] - digamma(alpha) + log_Y)
            gradient = Z.T @ d_eta
            return -loglik, -gradient.ravel()

        # Start from the mean composition with unit precision per component
        beta0 = np.zeros((n_terms, n_components))
        beta0[0] = np.log(Y.mean(axis=0) * n_components)

        result = minimize(
            negative_loglik,
            beta0.ravel(),
            jac=True,
            method='L-BFGS-B',
            tol=self.tol,
            options={'maxiter': self.maxiter}
        )

        if not result.success:
            warnings.warn(
                f"Dirichlet regression did not converge: {result.message}",
                UserWarning
            )

        self.coef_ = result.x.reshape(n_terms, n_components)
        self.loglik_ = -float(result.fun)
        self.converged_ = bool(result.success)
        self.n_iter_ = int(result.nit)
        return self

    def predict_alpha(self, X: np.ndarray) -> np.ndarray:
        """Predicted Dirichlet parameters, shape (n_samples, n_components)."""
        if self.coef_ is None:
            raise RuntimeError("DirichletRegression must be fit before predicting")
        return np.exp(np.clip(self._design(X) @ self.coef_, -MAX_ETA, MAX_ETA))

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Expected compositions, shape (n_samples, n_components); rows sum to 1."""
        alpha = self.predict_alpha(X)
        return alpha / alpha.sum(axis=1, keepdims=True)
