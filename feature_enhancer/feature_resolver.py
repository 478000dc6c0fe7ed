"""
Feature Matrix Resolution and Feature Selection

Chooses which (features × spots) matrix to predict and which of its rows.
Precedence: explicit feature matrix > alternate feature set > measurement set.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from feature_enhancer.spot_experiment import SpotExperiment
from feature_enhancer.utils_enhancement import PreconditionError


logger = logging.getLogger(__name__)

MISSING_LABELS_MSG = "Spot features must have assigned rownames."


def as_feature_frame(matrix: Union[pd.DataFrame, xr.DataArray, np.ndarray]) -> pd.DataFrame:
    """
    Convert a (features × spots) matrix to a labeled DataFrame.

    Parameters:
    -----------
    matrix : DataFrame, DataArray or ndarray
        Feature matrix. Rows must be labeled with feature names.

    Returns:
    --------
    pd.DataFrame
        Float matrix indexed by feature name, columns by spot

    Raises:
    -------
    PreconditionError
        If the matrix carries no (or duplicated) feature names. A bare
        ndarray, a DataArray without a coordinate on its first dimension and
        a DataFrame with a default RangeIndex all count as unlabeled.
    """
    if isinstance(matrix, xr.DataArray):
        if matrix.ndim != 2:
            raise PreconditionError(f"Feature matrix must be 2D, got {matrix.ndim} dimensions")
        if matrix.dims[0] not in matrix.indexes:
            raise PreconditionError(MISSING_LABELS_MSG)
        frame = matrix.to_pandas()
    elif isinstance(matrix, pd.DataFrame):
        frame = matrix
    else:
        raise PreconditionError(MISSING_LABELS_MSG)

    if isinstance(frame.index, pd.RangeIndex) or frame.index.hasnans:
        raise PreconditionError(MISSING_LABELS_MSG)
    if frame.index.has_duplicates:
        duplicated = frame.index[frame.index.duplicated()].unique().tolist()
        raise PreconditionError(f"Feature names must be unique, duplicated: {duplicated[:5]}")

    return frame.astype(float)


def resolve_feature_matrix(sce_ref: SpotExperiment,
                           assay_type: Optional[str] = 'logcounts',
                           altexp_type: Optional[str] = None,
                           feature_matrix=None) -> pd.DataFrame:
    """
    Determine the reference feature matrix to predict.

    Parameters:
    -----------
    sce_ref : SpotExperiment
        Reference (spot-level) experiment
    assay_type : str
        Measurement set in ``sce_ref`` to predict
    altexp_type : str, optional
        Alternate feature set in ``sce_ref``; overrides ``assay_type``
    feature_matrix : matrix, optional
        Explicit (features × spots) matrix; overrides both sets

    Returns:
    --------
    pd.DataFrame
        Labeled (features × spots) reference matrix
    """
    if feature_matrix is not None:
        Y_ref = feature_matrix
    elif altexp_type is not None:
        Y_ref = sce_ref.get_measurement(altexp_type, alt=True)
    else:
        Y_ref = sce_ref.get_measurement(assay_type)

    return as_feature_frame(Y_ref)


def select_features(requested: Optional[Sequence[str]],
                    available: Sequence[str]) -> Tuple[List[str], List[str]]:
    """
    Intersect requested feature names with the available ones.

    Parameters:
    -----------
    requested : Sequence[str], optional
        Requested feature names; None or empty selects everything
    available : Sequence[str]
        Row names of the resolved feature matrix

    Returns:
    --------
    selected : List[str]
        Selected names, in the order of ``available``; empty when no
        requested name is available
    skipped : List[str]
        Requested names that are not available
    """
    available = list(available)
    if requested is None or len(requested) == 0:
        return available, []

    requested = list(dict.fromkeys(requested))
    requested_set = set(requested)
    available_set = set(available)

    selected = [name for name in available if name in requested_set]
    skipped = [name for name in requested if name not in available_set]

    if skipped:
        message = f"Skipping {len(skipped)} features not in reference"
        print(f"   ⚠️ {message}")
        logger.info(message)

    if not selected:
        print("   ⚠️ None of the requested features are in the reference")

    return selected, skipped
