"""
Model Dispatch

Validates reference/enhanced embeddings and the reference feature matrix,
repairs mismatched embedding labels, converts embeddings to the
representation each backend needs and routes to that backend.
"""

import warnings
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from feature_enhancer.enhancement_models import EnhancementModel, get_backend
from feature_enhancer.utils_enhancement import PreconditionError


def as_embedding_frame(X: Union[pd.DataFrame, np.ndarray]) -> pd.DataFrame:
    """Return a (samples × dimensions) embedding as a DataFrame."""
    if isinstance(X, pd.DataFrame):
        return X
    values = np.asarray(X, dtype=float)
    if values.ndim != 2:
        raise PreconditionError(f"Embedding must be 2D, got {values.ndim} dimensions")
    return pd.DataFrame(values)


def realign_embedding(X_enh: pd.DataFrame, X_ref: pd.DataFrame) -> pd.DataFrame:
    """
    Give the enhanced embedding the reference embedding's dimension labels.

    Columns are matched by position. When labels already agree ``X_enh`` is
    returned as is; otherwise a relabeled copy is returned and a UserWarning
    is emitted.
    """
    if X_enh.columns.equals(X_ref.columns):
        return X_enh

    warnings.warn("Column names of the reference embedding and X_enh do not match.", UserWarning)
    warnings.warn("Setting X_enh column names to match the reference embedding.", UserWarning)

    realigned = X_enh.copy()
    realigned.columns = X_ref.columns.copy()
    return realigned


def prepare_embedding(X: pd.DataFrame, model: EnhancementModel):
    """
    Convert an embedding to the representation required by ``model``.

    Linear and compositional backends receive labeled DataFrames with string
    column names; the tree backend receives a raw float array.
    """
    if model.needs_tabular:
        frame = X.astype(float)
        frame.columns = [str(c) for c in X.columns]
        return frame
    return X.to_numpy(dtype=float)


def dispatch(X_enh: Union[pd.DataFrame, np.ndarray],
             X_ref: Union[pd.DataFrame, np.ndarray],
             Y_ref: pd.DataFrame,
             feature_names: Optional[Sequence[str]] = None,
             model: Union[str, EnhancementModel] = EnhancementModel.TREE,
             config: Optional[Dict] = None) -> Tuple[pd.DataFrame, Optional[pd.Series]]:
    """
    Predict enhanced features with the selected backend.

    Parameters:
    -----------
    X_enh : DataFrame or ndarray
        Enhanced embedding (n_enh × d)
    X_ref : DataFrame or ndarray
        Reference embedding (n_ref × d)
    Y_ref : pd.DataFrame
        Reference features (p × n_ref), rows labeled by feature name
    feature_names : Sequence[str], optional
        Features to predict (default: all rows of Y_ref)
    model : str or EnhancementModel
        linear, compositional or tree (or lm, dirichlet, xgboost)
    config : Dict, optional
        Configuration dictionary passed to the backend

    Returns:
    --------
    Y_enh : pd.DataFrame
        Predicted features (len(feature_names) × n_enh), columns = X_enh sample ids
    diagnostics : pd.Series or None
        R² (linear), training RMSE (tree) or None (compositional)
    """
    model = EnhancementModel.parse(model)
    X_ref = as_embedding_frame(X_ref)
    X_enh = as_embedding_frame(X_enh)

    if X_enh.shape[1] != X_ref.shape[1]:
        raise PreconditionError(
            f"Enhanced embedding has {X_enh.shape[1]} dimensions, "
            f"reference embedding has {X_ref.shape[1]}"
        )
    if Y_ref.shape[1] != X_ref.shape[0]:
        raise PreconditionError(
            f"Feature matrix has {Y_ref.shape[1]} spots, "
            f"reference embedding has {X_ref.shape[0]}"
        )

    if feature_names is None:
        feature_names = list(Y_ref.index)
    else:
        feature_names = list(feature_names)
        missing = [name for name in feature_names if name not in Y_ref.index]
        if missing:
            raise PreconditionError(f"Features not in feature matrix: {missing[:5]}")

    X_enh = realign_embedding(X_enh, X_ref)

    backend = get_backend(model, config)
    Y_enh, diagnostics = backend.fit_and_predict(
        prepare_embedding(X_ref, model),
        prepare_embedding(X_enh, model),
        Y_ref.loc[feature_names],
        feature_names
    )

    Y_enh.columns = X_enh.index
    return Y_enh, diagnostics
