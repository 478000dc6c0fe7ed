"""
Tests for choosing between raw matrix and experiment output.
"""

import numpy as np
import pandas as pd
import pytest

from feature_enhancer.output_materializer import materialize
from feature_enhancer.spot_experiment import SpotExperiment


@pytest.fixture
def predicted(X_enh):
    return pd.DataFrame(np.ones((3, 200)), index=['a', 'b', 'c'], columns=X_enh.index)


@pytest.fixture
def diagnostics():
    return pd.Series([0.1, 0.2, 0.3], index=['a', 'b', 'c'], name='r_squared')


class TestMaterialize:

    def test_explicit_matrix_returns_raw(self, predicted, diagnostics, sce_enhanced):
        result = materialize(predicted, diagnostics, sce_enhanced,
                             n_available=3, explicit_matrix=True)

        assert isinstance(result, pd.DataFrame)
        assert result.attrs['r_squared'] == {'a': 0.1, 'b': 0.2, 'c': 0.3}

    def test_partial_selection_returns_raw(self, predicted, diagnostics, sce_enhanced):
        result = materialize(predicted, diagnostics, sce_enhanced,
                             n_available=10, altexp_type='celltypes')
        assert isinstance(result, pd.DataFrame)

    def test_full_altexp_selection_attaches_altexp(self, predicted, diagnostics, sce_enhanced):
        result = materialize(predicted, diagnostics, sce_enhanced,
                             n_available=3, assay_type='logcounts', altexp_type='celltypes')

        assert isinstance(result, SpotExperiment)
        assert result.altexp_names == ['celltypes']
        assert result.assay_names == []
        assert 'celltypes_r_squared' in result.get_measurement('celltypes', alt=True).coords

    def test_full_assay_selection_attaches_assay(self, predicted, sce_enhanced):
        result = materialize(predicted, None, sce_enhanced,
                             n_available=3, assay_type='logcounts')

        assert isinstance(result, SpotExperiment)
        assert result.get_measurement('logcounts').shape == (3, 200)

    def test_enhanced_experiment_not_mutated(self, predicted, diagnostics, sce_enhanced):
        before = sce_enhanced.ds.copy(deep=True)

        result = materialize(predicted, diagnostics, sce_enhanced,
                             n_available=3, assay_type='logcounts')

        assert result is not sce_enhanced
        assert sce_enhanced.ds.identical(before)
        assert sce_enhanced.assay_names == []
