"""
Feature Enhancement for Spatial Transcriptomics

This package predicts feature values (e.g. gene expression) at enhanced,
subspot resolution:
1. Read a shared low-dimensional embedding (e.g. PCA) at both resolutions
2. Fit one model per feature on the reference (spot) embedding
3. Evaluate the fitted models on the enhanced (subspot) embedding
4. Return the enhanced features as a matrix or attach them to the enhanced data

Linear, compositional (Dirichlet) and gradient-boosted tree models are supported.
"""

__version__ = "1.0.0"
