"""
Output Materialization

Returns enhanced features either as a raw matrix or attached to a copy of
the enhanced experiment, depending on how the features were requested.
"""

from typing import Optional, Union

import pandas as pd

from feature_enhancer.spot_experiment import SpotExperiment


def attach_diagnostics(Y_enh: pd.DataFrame, diagnostics: Optional[pd.Series]) -> pd.DataFrame:
    """
    Store diagnostics in ``Y_enh.attrs`` under the diagnostics' name.

    Values are stored as a plain ``{feature: value}`` dict.
    """
    if diagnostics is not None:
        Y_enh.attrs[diagnostics.name] = diagnostics.to_dict()
    return Y_enh


def materialize(Y_enh: pd.DataFrame,
                diagnostics: Optional[pd.Series],
                sce_enhanced: SpotExperiment,
                n_available: int,
                explicit_matrix: bool = False,
                assay_type: Optional[str] = 'logcounts',
                altexp_type: Optional[str] = None) -> Union[pd.DataFrame, SpotExperiment]:
    """
    Decide the return form of the enhanced features.

    Parameters:
    -----------
    Y_enh : pd.DataFrame
        Predicted features (p_selected × n_enh)
    diagnostics : pd.Series or None
        Per-feature diagnostics
    sce_enhanced : SpotExperiment
        Enhanced experiment; never modified
    n_available : int
        Number of features in the resolved reference matrix
    explicit_matrix : bool
        Whether the caller supplied the feature matrix directly
    assay_type : str
        Measurement set to write when no alternate set was used
    altexp_type : str, optional
        Alternate feature set used for resolution

    Returns:
    --------
    pd.DataFrame or SpotExperiment
        The raw matrix (diagnostics in ``attrs``) for explicit or partial
        requests, otherwise a new experiment holding the enhanced features
    """
    if explicit_matrix or len(Y_enh) < n_available:
        return attach_diagnostics(Y_enh, diagnostics)

    if altexp_type is not None:
        return sce_enhanced.with_measurement(altexp_type, Y_enh, alt=True, diagnostics=diagnostics)

    return sce_enhanced.with_measurement(assay_type, Y_enh, diagnostics=diagnostics)
