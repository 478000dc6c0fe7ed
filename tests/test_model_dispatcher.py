"""
Tests for input validation, label realignment and backend dispatch.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from feature_enhancer.enhancement_models import EnhancementModel
from feature_enhancer.model_dispatcher import dispatch, prepare_embedding, realign_embedding
from feature_enhancer.utils_enhancement import PreconditionError


class TestRealignEmbedding:

    def test_matching_labels_untouched(self, X_ref, X_enh):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            assert realign_embedding(X_enh, X_ref) is X_enh

    def test_mismatched_labels_overwritten(self, X_ref, X_enh):
        renamed = X_enh.rename(columns=lambda c: c.replace('PC', 'dim'))

        with pytest.warns(UserWarning, match="do not match"):
            realigned = realign_embedding(renamed, X_ref)

        assert list(realigned.columns) == list(X_ref.columns)
        assert list(renamed.columns)[0] == 'dim1'
        np.testing.assert_array_equal(realigned.to_numpy(), renamed.to_numpy())


class TestPrepareEmbedding:

    def test_tabular_for_linear_and_compositional(self, X_ref):
        for model in (EnhancementModel.LINEAR, EnhancementModel.COMPOSITIONAL):
            prepared = prepare_embedding(X_ref, model)
            assert isinstance(prepared, pd.DataFrame)
            assert list(prepared.columns) == list(X_ref.columns)

    def test_raw_matrix_for_tree(self, X_ref):
        prepared = prepare_embedding(X_ref, EnhancementModel.TREE)
        assert isinstance(prepared, np.ndarray)
        assert prepared.shape == X_ref.shape

    def test_labels_become_strings(self):
        X = pd.DataFrame(np.ones((3, 2)), columns=[0, 1])
        prepared = prepare_embedding(X, EnhancementModel.LINEAR)
        assert list(prepared.columns) == ['0', '1']


class TestDispatch:

    def test_dimension_mismatch_raises(self, config, X_ref, X_enh, Y_ref):
        with pytest.raises(PreconditionError, match="dimensions"):
            dispatch(X_enh.iloc[:, :10], X_ref, Y_ref, model='linear', config=config)

    def test_sample_mismatch_raises(self, config, X_ref, X_enh, Y_ref):
        with pytest.raises(PreconditionError, match="spots"):
            dispatch(X_enh, X_ref, Y_ref.iloc[:, :40], model='linear', config=config)

    def test_unknown_model_raises(self, config, X_ref, X_enh, Y_ref):
        with pytest.raises(PreconditionError, match="Unknown model"):
            dispatch(X_enh, X_ref, Y_ref, model='svm', config=config)

    def test_unknown_feature_raises(self, config, X_ref, X_enh, Y_ref):
        with pytest.raises(PreconditionError, match="not in feature matrix"):
            dispatch(X_enh, X_ref, Y_ref, ['gene0', 'nope'], model='linear', config=config)

    @pytest.mark.parametrize('model', ['linear', 'tree'])
    def test_output_labels(self, config, model, X_ref, X_enh, Y_ref):
        selected = ['gene2', 'gene5', 'gene7']
        Y_enh, diagnostics = dispatch(X_enh, X_ref, Y_ref, selected, model=model, config=config)

        assert Y_enh.shape == (3, 200)
        assert list(Y_enh.index) == selected
        assert list(Y_enh.columns) == list(X_enh.index)
        assert list(diagnostics.index) == selected

    def test_compositional_output_labels(self, config, X_ref, X_enh, proportions):
        Y_enh, diagnostics = dispatch(X_enh, X_ref, proportions, model='dirichlet', config=config)

        assert diagnostics is None
        assert list(Y_enh.index) == list(proportions.index)
        assert list(Y_enh.columns) == list(X_enh.index)

    def test_permuted_labels_warn_and_proceed(self, config, X_ref, X_enh, Y_ref):
        permuted = X_enh.copy()
        permuted.columns = list(reversed(X_enh.columns))

        with pytest.warns(UserWarning, match="do not match"):
            Y_enh, _ = dispatch(permuted, X_ref, Y_ref, model='linear', config=config)

        assert Y_enh.shape == (10, 200)
        # Positional alignment is kept: same result as the correctly labeled embedding
        expected, _ = dispatch(X_enh, X_ref, Y_ref, model='linear', config=config)
        pd.testing.assert_frame_equal(Y_enh, expected)

    def test_inputs_not_mutated(self, config, X_ref, X_enh, Y_ref):
        renamed = X_enh.rename(columns=lambda c: f"x{c}")
        before = renamed.copy()

        with pytest.warns(UserWarning):
            dispatch(renamed, X_ref, Y_ref, model='linear', config=config)

        pd.testing.assert_frame_equal(renamed, before)
