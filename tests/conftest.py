"""
Pytest fixtures for feature enhancement tests.

Builds a small synthetic reference experiment (50 spots, 15 PCs, 10 genes,
4 cell-type proportions) and an enhanced experiment (200 subspots).
"""

import numpy as np
import pandas as pd
import pytest

from feature_enhancer.spot_experiment import SpotExperiment
from feature_enhancer.utils_enhancement import get_default_config


N_SPOTS = 50
N_SUBSPOTS = 200
N_DIMS = 15
N_GENES = 10
N_CELLTYPES = 4


def make_embedding(rng, n_samples, prefix):
    return pd.DataFrame(
        rng.normal(size=(n_samples, N_DIMS)),
        index=[f"{prefix}{i}" for i in range(n_samples)],
        columns=[f"PC{j + 1}" for j in range(N_DIMS)]
    )


@pytest.fixture
def rng():
    return np.random.default_rng(149)


@pytest.fixture
def X_ref(rng):
    return make_embedding(rng, N_SPOTS, 'spot')


@pytest.fixture
def X_enh(rng):
    return make_embedding(rng, N_SUBSPOTS, 'subspot')


@pytest.fixture
def Y_ref(rng, X_ref):
    """Genes linear in the PCs plus noise, (genes × spots)."""
    weights = rng.normal(size=(N_GENES, N_DIMS))
    values = weights @ X_ref.to_numpy().T + 0.5 * rng.normal(size=(N_GENES, N_SPOTS))
    return pd.DataFrame(
        values,
        index=[f"gene{i}" for i in range(N_GENES)],
        columns=X_ref.index
    )


@pytest.fixture
def proportions(rng, X_ref):
    """Cell-type proportions driven by the first PCs, (cell types × spots)."""
    weights = rng.normal(scale=0.5, size=(3, N_CELLTYPES))
    logits = X_ref.to_numpy()[:, :3] @ weights + 0.1 * rng.normal(size=(N_SPOTS, N_CELLTYPES))
    props = np.exp(logits)
    props /= props.sum(axis=1, keepdims=True)
    return pd.DataFrame(
        props.T,
        index=[f"celltype{i}" for i in range(N_CELLTYPES)],
        columns=X_ref.index
    )


@pytest.fixture
def sce_ref(X_ref, Y_ref, proportions):
    return SpotExperiment.from_frames(
        embeddings={'PCA': X_ref},
        assays={'logcounts': Y_ref},
        altexps={'celltypes': proportions}
    )


@pytest.fixture
def sce_enhanced(X_enh):
    return SpotExperiment.from_frames(embeddings={'PCA': X_enh})


@pytest.fixture
def config():
    """Built-in configuration without console output."""
    config = get_default_config()
    config['enhancement']['verbose'] = False
    return config
