"""
Enhancement Models

Three regression backends that map reference embeddings and reference
features to enhanced features:

- linear:        ordinary least squares per feature (statsmodels), R² diagnostics
- compositional: one joint Dirichlet regression over all selected features
- tree:          gradient-boosted trees per feature (XGBoost), training RMSE diagnostics

Every backend exposes ``fit_and_predict(X_ref, X_enh, Y_ref, feature_names)``
returning ``(Y_enh, diagnostics)``.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
import xgboost as xgb
from joblib import Parallel, delayed
from tqdm import tqdm

from feature_enhancer.dirichlet_regression import DirichletRegression
from feature_enhancer.utils_enhancement import PreconditionError, get_config_value


class EnhancementModel(str, Enum):
    """Closed set of model identifiers."""

    LINEAR = 'linear'
    COMPOSITIONAL = 'compositional'
    TREE = 'tree'

    @classmethod
    def _missing_(cls, value):
        aliases = {
            'lm': cls.LINEAR,
            'dirichlet': cls.COMPOSITIONAL,
            'xgboost': cls.TREE,
            'xgb': cls.TREE,
        }
        if isinstance(value, str):
            key = value.lower()
            if key in aliases:
                return aliases[key]
            for member in cls:
                if member.value == key:
                    return member
        return None

    @classmethod
    def parse(cls, value) -> 'EnhancementModel':
        """Resolve a model identifier; unknown identifiers raise PreconditionError."""
        try:
            return cls(value)
        except ValueError:
            valid = [m.value for m in cls] + ['lm', 'dirichlet', 'xgboost']
            raise PreconditionError(f"Unknown model '{value}'. Valid models: {valid}") from None

    @property
    def needs_tabular(self) -> bool:
        """Whether the backend consumes labeled DataFrames rather than raw arrays."""
        return self in (EnhancementModel.LINEAR, EnhancementModel.COMPOSITIONAL)


def _empty_prediction(feature_names: List[str], n_enh: int, columns=None) -> pd.DataFrame:
    return pd.DataFrame(
        np.full((len(feature_names), n_enh), np.nan),
        index=pd.Index(feature_names),
        columns=columns
    )


class _PerFeatureBackend:
    """
    Map over features producing (name, row, diagnostic) triples.

    Subclasses implement ``fit_feature``. With ``n_jobs`` > 1 the map runs
    through joblib; each worker only returns its own triple.
    """

    diagnostic_name = None

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.n_jobs = get_config_value(self.config, 'enhancement.n_jobs', 1)
        self.verbose = get_config_value(self.config, 'enhancement.verbose', True)

    def fit_feature(self, X_ref, X_enh, y_ref: np.ndarray) -> Tuple[np.ndarray, float]:
        raise NotImplementedError

    def _fit_one(self, name, X_ref, X_enh, y_ref) -> Tuple[str, np.ndarray, float]:
        row, diagnostic = self.fit_feature(X_ref, X_enh, y_ref)
        return name, row, diagnostic

    def fit_and_predict(self,
                        X_ref,
                        X_enh,
                        Y_ref: pd.DataFrame,
                        feature_names: List[str]) -> Tuple[pd.DataFrame, pd.Series]:
        """
        Fit one model per feature and predict on the enhanced embedding.

        Parameters:
        -----------
        X_ref : DataFrame or ndarray
            Reference embedding (n_ref × d)
        X_enh : DataFrame or ndarray
            Enhanced embedding (n_enh × d)
        Y_ref : pd.DataFrame
            Reference features (p × n_ref)
        feature_names : List[str]
            Features to predict

        Returns:
        --------
        Y_enh : pd.DataFrame
            Predicted features (len(feature_names) × n_enh)
        diagnostics : pd.Series
            One value per feature
        """
        columns = X_enh.index if isinstance(X_enh, pd.DataFrame) else None
        Y_enh = _empty_prediction(feature_names, len(X_enh), columns)
        diagnostics = pd.Series(np.nan, index=pd.Index(feature_names), name=self.diagnostic_name)

        if self.n_jobs == 1:
            iterator = tqdm(feature_names, desc=type(self).__name__,
                            disable=not self.verbose)
            results = [self._fit_one(name, X_ref, X_enh, Y_ref.loc[name].to_numpy(dtype=float))
                       for name in iterator]
        else:
            results = Parallel(n_jobs=self.n_jobs)(
                delayed(self._fit_one)(name, X_ref, X_enh, Y_ref.loc[name].to_numpy(dtype=float))
                for name in feature_names
            )

        for name, row, diagnostic in results:
            Y_enh.loc[name] = row
            diagnostics[name] = diagnostic

        return Y_enh, diagnostics


class LinearBackend(_PerFeatureBackend):
    """Ordinary least squares of each feature on all embedding dimensions."""

    diagnostic_name = 'r_squared'

    def fit_feature(self, X_ref: pd.DataFrame, X_enh: pd.DataFrame,
                    y_ref: np.ndarray) -> Tuple[np.ndarray, float]:
        design_ref = sm.add_constant(X_ref, has_constant='add')
        design_enh = sm.add_constant(X_enh, has_constant='add')

        fit = sm.OLS(y_ref, design_ref).fit()
        row = np.asarray(fit.predict(design_enh), dtype=float)
        return row, float(fit.rsquared)


class TreeBackend(_PerFeatureBackend):
    """Gradient-boosted regression trees per feature."""

    diagnostic_name = 'rmse'

    DEFAULT_PARAMS = {
        'max_depth': 2,
        'learning_rate': 0.03,
        'n_estimators': 100,
        'n_jobs': 1,
        'objective': 'reg:squarederror',
    }

    def __init__(self, config: Optional[Dict] = None):
        super().__init__(config)
        params = dict(self.DEFAULT_PARAMS)
        params.update(get_config_value(self.config, 'models.hyperparameters.tree', {}) or {})
        params.pop('nthread', None)
        params['verbosity'] = 0
        params['eval_metric'] = 'rmse'
        self.params = params

    def fit_feature(self, X_ref: np.ndarray, X_enh: np.ndarray,
                    y_ref: np.ndarray) -> Tuple[np.ndarray, float]:
        model = xgb.XGBRegressor(**self.params)
        model.fit(X_ref, y_ref, eval_set=[(X_ref, y_ref)], verbose=False)

        row = np.asarray(model.predict(X_enh), dtype=float)
        rmse = model.evals_result()['validation_0']['rmse'][-1]
        return row, float(rmse)


class CompositionalBackend:
    """Joint Dirichlet regression of the selected features' composition."""

    diagnostic_name = None

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}
        self.maxiter = get_config_value(self.config, 'models.hyperparameters.compositional.maxiter', 1000)
        self.tol = get_config_value(self.config, 'models.hyperparameters.compositional.tol', 1e-10)

    def fit_and_predict(self,
                        X_ref: pd.DataFrame,
                        X_enh: pd.DataFrame,
                        Y_ref: pd.DataFrame,
                        feature_names: List[str]) -> Tuple[pd.DataFrame, None]:
        """
        Fit one Dirichlet regression over ``feature_names`` and predict compositions.

        The composition is formed over the selected features only, so each
        predicted column sums to one over those features.

        Returns:
        --------
        Y_enh : pd.DataFrame
            Predicted compositions (len(feature_names) × n_enh)
        diagnostics : None
        """
        # Zero or one feature: the composition is trivial
        if len(feature_names) <= 1:
            Y_enh = pd.DataFrame(
                np.ones((len(feature_names), len(X_enh))),
                index=pd.Index(feature_names),
                columns=X_enh.index
            )
            return Y_enh, None

        compositions = Y_ref.loc[feature_names].to_numpy(dtype=float).T

        model = DirichletRegression(maxiter=self.maxiter, tol=self.tol)
        model.fit(X_ref.to_numpy(dtype=float), compositions)

        Y_enh = pd.DataFrame(
            model.predict(X_enh.to_numpy(dtype=float)).T,
            index=pd.Index(feature_names),
            columns=X_enh.index
        )
        return Y_enh, None


def get_backend(model: EnhancementModel, config: Optional[Dict] = None):
    """Instantiate the backend registered for ``model``."""
    backends = {
        EnhancementModel.LINEAR: LinearBackend,
        EnhancementModel.COMPOSITIONAL: CompositionalBackend,
        EnhancementModel.TREE: TreeBackend,
    }
    return backends[model](config)
