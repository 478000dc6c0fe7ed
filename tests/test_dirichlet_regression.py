"""
Tests for Dirichlet regression.
"""

import numpy as np
import pytest

from feature_enhancer.dirichlet_regression import DirichletRegression, prepare_compositions
from feature_enhancer.utils_enhancement import PreconditionError


class TestPrepareCompositions:

    def test_rows_normalized(self):
        Y = prepare_compositions(np.array([[1.0, 3.0], [2.0, 2.0]]))
        np.testing.assert_allclose(Y, [[0.25, 0.75], [0.5, 0.5]])

    def test_boundary_values_compressed(self):
        Y = prepare_compositions(np.array([[0.0, 1.0], [0.5, 0.5], [1.0, 0.0]]))

        # (y * (n - 1) + 1/C) / n with n = 3, C = 2
        np.testing.assert_allclose(Y[0], [1 / 6, 5 / 6])
        assert np.all(Y > 0) and np.all(Y < 1)
        np.testing.assert_allclose(Y.sum(axis=1), 1.0)

    def test_negative_values_raise(self):
        with pytest.raises(PreconditionError, match="non-negative"):
            prepare_compositions(np.array([[0.5, -0.1], [0.5, 0.5]]))

    def test_zero_total_raises(self):
        with pytest.raises(PreconditionError, match="positive total"):
            prepare_compositions(np.array([[0.0, 0.0], [0.5, 0.5]]))


class TestDirichletRegression:

    @pytest.fixture
    def data(self, rng):
        X = rng.normal(size=(120, 2))
        weights = np.array([[1.0, -1.0, 0.0], [0.0, 0.5, -0.5]])
        alpha = 20 * np.exp(X @ weights) / np.exp(X @ weights).sum(axis=1, keepdims=True)
        Y = np.vstack([rng.dirichlet(a) for a in alpha])
        return X, Y

    def test_predictions_lie_on_simplex(self, data, rng):
        X, Y = data
        model = DirichletRegression().fit(X, Y)

        predicted = model.predict(rng.normal(size=(30, 2)))

        assert predicted.shape == (30, 3)
        np.testing.assert_allclose(predicted.sum(axis=1), 1.0, atol=1e-10)
        assert np.all(predicted > 0)

    def test_tracks_composition_signal(self, data):
        X, Y = data
        model = DirichletRegression().fit(X, Y)

        predicted = model.predict(X)

        # First component rises with the first predictor
        assert np.corrcoef(X[:, 0], predicted[:, 0])[0, 1] > 0.7
        assert np.abs(predicted - Y).mean() < np.abs(Y.mean(axis=0) - Y).mean()

    def test_refit_is_deterministic(self, data):
        X, Y = data
        first = DirichletRegression().fit(X, Y).predict(X)
        second = DirichletRegression().fit(X, Y).predict(X)
        np.testing.assert_array_equal(first, second)

    def test_predict_before_fit_raises(self):
        with pytest.raises(RuntimeError):
            DirichletRegression().predict(np.zeros((2, 2)))
