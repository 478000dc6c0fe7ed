"""
Feature Enhancement

Predict feature values (e.g. log-normalized expression) at enhanced, subspot
resolution from a low-dimensional embedding shared by spots and subspots.

By default a gradient-boosted tree model is fit per feature on the top
principal components of each spot, and the fitted model is evaluated on the
subspots' principal components. Linear and compositional (Dirichlet) models
are also available.

Feature matrices are (features × spots): p-dimensional feature vectors over
n spots.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from feature_enhancer.enhancement_models import EnhancementModel
from feature_enhancer.feature_resolver import resolve_feature_matrix, select_features
from feature_enhancer.model_dispatcher import dispatch
from feature_enhancer.output_materializer import materialize
from feature_enhancer.spot_experiment import SpotExperiment
from feature_enhancer.utils_enhancement import (
    get_config_value,
    get_default_config,
    print_statistics
)


class FeatureEnhancer:
    """
    Enhance reference features to subspot resolution.

    Attributes set by ``enhance``:
    selected_features_ : features that were predicted
    skipped_features_  : requested features missing from the reference
    diagnostics_       : per-feature R² (linear), RMSE (tree) or None
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize enhancer.

        Parameters:
        -----------
        config : Dict, optional
            Configuration dictionary (default: built-in configuration)
        """
        self.config = config if config is not None else get_default_config()

        self.use_dimred = get_config_value(self.config, 'enhancement.use_dimred', 'PCA')
        self.assay_type = get_config_value(self.config, 'enhancement.assay_type', 'logcounts')
        self.altexp_type = get_config_value(self.config, 'enhancement.altexp_type', None)
        self.model = EnhancementModel.parse(get_config_value(self.config, 'enhancement.model', 'tree'))
        self.verbose = get_config_value(self.config, 'enhancement.verbose', True)

        self.selected_features_ = None
        self.skipped_features_ = None
        self.diagnostics_ = None

        if self.verbose:
            print(f"🔧 Feature Enhancer initialized:")
            print(f"   Embedding: {self.use_dimred}")
            print(f"   Model: {self.model.value}")

    def enhance(self,
                sce_enhanced: SpotExperiment,
                sce_ref: SpotExperiment,
                use_dimred: Optional[str] = None,
                assay_type: Optional[str] = None,
                altexp_type: Optional[str] = None,
                feature_matrix=None,
                feature_names: Optional[Sequence[str]] = None,
                model: Optional[Union[str, EnhancementModel]] = None
                ) -> Union[pd.DataFrame, SpotExperiment]:
        """
        Predict enhanced features.

        Parameters:
        -----------
        sce_enhanced : SpotExperiment
            Experiment with the enhanced (subspot) embedding
        sce_ref : SpotExperiment
            Experiment with the reference (spot) embedding and features
        use_dimred : str, optional
            Embedding name shared by both experiments
        assay_type : str, optional
            Measurement set in ``sce_ref`` to predict
        altexp_type : str, optional
            Alternate feature set in ``sce_ref`` to predict; overrides ``assay_type``
        feature_matrix : matrix, optional
            (features × spots) matrix to predict if not stored in ``sce_ref``;
            overrides ``assay_type`` and ``altexp_type``
        feature_names : Sequence[str], optional
            Features to predict (default: all)
        model : str or EnhancementModel, optional
            linear, compositional or tree

        Returns:
        --------
        pd.DataFrame or SpotExperiment
            With an explicit ``feature_matrix`` or a subset of features, the
            enhanced (features × subspots) matrix with diagnostics in
            ``attrs``. Otherwise a copy of ``sce_enhanced`` with the enhanced
            features stored under ``altexp_type`` or ``assay_type``.
        """
        use_dimred = use_dimred or self.use_dimred
        assay_type = assay_type or self.assay_type
        altexp_type = altexp_type or self.altexp_type
        model = EnhancementModel.parse(model) if model is not None else self.model

        if self.verbose:
            print("\n" + "="*70)
            print("🔮 ENHANCING FEATURES")
            print("="*70)

        X_enh = sce_enhanced.get_embedding(use_dimred)
        X_ref = sce_ref.get_embedding(use_dimred)

        Y_ref = resolve_feature_matrix(sce_ref, assay_type, altexp_type, feature_matrix)
        if self.verbose:
            source = ("feature matrix" if feature_matrix is not None
                      else f"altexp '{altexp_type}'" if altexp_type is not None
                      else f"assay '{assay_type}'")
            print(f"   Source: {source} ({Y_ref.shape[0]} features × {Y_ref.shape[1]} spots)")
            print(f"   Reference embedding: {X_ref.shape[0]} spots × {X_ref.shape[1]} dims")
            print(f"   Enhanced embedding: {X_enh.shape[0]} subspots × {X_enh.shape[1]} dims")

        selected, skipped = select_features(feature_names, Y_ref.index)
        self.selected_features_ = selected
        self.skipped_features_ = skipped

        if self.verbose:
            print(f"\n🎯 Fitting {model.value} model for {len(selected)} features...")

        Y_enh, diagnostics = dispatch(X_enh, X_ref, Y_ref, selected, model, self.config)
        self.diagnostics_ = diagnostics

        if self.verbose and len(Y_enh) > 0:
            print_statistics(Y_enh.to_numpy(), "enhanced features")
            if diagnostics is not None:
                print(f"   Mean {diagnostics.name}: {np.nanmean(diagnostics.to_numpy()):.4f}")

        result = materialize(
            Y_enh,
            diagnostics,
            sce_enhanced,
            n_available=len(Y_ref),
            explicit_matrix=feature_matrix is not None,
            assay_type=assay_type,
            altexp_type=altexp_type
        )

        if self.verbose:
            if isinstance(result, pd.DataFrame):
                print(f"\n✅ Returning enhanced matrix: {result.shape[0]} × {result.shape[1]}")
            else:
                target = f"altexp '{altexp_type}'" if altexp_type is not None else f"assay '{assay_type}'"
                print(f"\n✅ Enhanced features stored in {target}")

        return result


def enhance_features(sce_enhanced: SpotExperiment,
                     sce_ref: SpotExperiment,
                     use_dimred: str = 'PCA',
                     assay_type: str = 'logcounts',
                     altexp_type: Optional[str] = None,
                     feature_matrix=None,
                     feature_names: Optional[Sequence[str]] = None,
                     model: Union[str, EnhancementModel] = 'tree',
                     config: Optional[Dict] = None) -> Union[pd.DataFrame, SpotExperiment]:
    """
    Predict enhanced feature values from the shared embedding.

    See ``FeatureEnhancer.enhance`` for parameters and return values.

    Example:
        enhanced = enhance_features(sce_enhanced, sce_ref, assay_type='logcounts')
    """
    config = config if config is not None else get_default_config()
    enhancer = FeatureEnhancer(config)
    return enhancer.enhance(
        sce_enhanced,
        sce_ref,
        use_dimred=use_dimred,
        assay_type=assay_type,
        altexp_type=altexp_type,
        feature_matrix=feature_matrix,
        feature_names=feature_names,
        model=model
    )


def _parse_feature_list(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [name.strip() for name in value.split(',') if name.strip()]


def main():
    """Command-line interface for feature enhancement."""
    import argparse
    from feature_enhancer.utils_enhancement import load_config, setup_logging

    parser = argparse.ArgumentParser(
        description="Predict features at enhanced (subspot) resolution"
    )
    parser.add_argument('--config',
                        help='Configuration file (default: packaged configuration)')
    parser.add_argument('--enhanced',
                        help='Enhanced experiment NetCDF (overrides config)')
    parser.add_argument('--reference',
                        help='Reference experiment NetCDF (overrides config)')
    parser.add_argument('--use-dimred',
                        help='Embedding shared by both experiments')
    parser.add_argument('--assay-type',
                        help='Measurement set to predict')
    parser.add_argument('--altexp-type',
                        help='Alternate feature set to predict')
    parser.add_argument('--model',
                        choices=[m.value for m in EnhancementModel] + ['lm', 'dirichlet', 'xgboost'],
                        help='Model used to predict enhanced values')
    parser.add_argument('--features',
                        help='Comma-separated features to predict (default: all)')
    parser.add_argument('--n-jobs', type=int,
                        help='Parallel per-feature fits')
    parser.add_argument('--output',
                        help='Output path (overrides config)')

    args = parser.parse_args()

    config = load_config(args.config)
    logger = setup_logging(config, 'feature_enhancer')

    enhancement = config.setdefault('enhancement', {})
    for key, value in (('use_dimred', args.use_dimred),
                       ('assay_type', args.assay_type),
                       ('altexp_type', args.altexp_type),
                       ('model', args.model),
                       ('n_jobs', args.n_jobs)):
        if value is not None:
            enhancement[key] = value

    enhanced_path = args.enhanced or get_config_value(config, 'paths.enhanced')
    reference_path = args.reference or get_config_value(config, 'paths.reference')
    output_path = Path(args.output or get_config_value(config, 'paths.output',
                                                       'enhanced_features.nc'))

    logger.info(f"Loading enhanced experiment: {enhanced_path}")
    sce_enhanced = SpotExperiment.from_netcdf(enhanced_path)
    logger.info(f"Loading reference experiment: {reference_path}")
    sce_ref = SpotExperiment.from_netcdf(reference_path)

    enhancer = FeatureEnhancer(config)
    result = enhancer.enhance(
        sce_enhanced,
        sce_ref,
        feature_names=_parse_feature_list(args.features)
    )

    if enhancer.skipped_features_:
        logger.info(f"Skipped {len(enhancer.skipped_features_)} features not in reference")

    if isinstance(result, pd.DataFrame):
        matrix_path = output_path.with_suffix('.csv')
        matrix_path.parent.mkdir(parents=True, exist_ok=True)
        result.to_csv(matrix_path)
        logger.info(f"✓ Saved enhanced matrix: {matrix_path}")

        if enhancer.diagnostics_ is not None:
            diagnostics_path = matrix_path.with_name(f"{matrix_path.stem}_diagnostics.csv")
            enhancer.diagnostics_.to_csv(diagnostics_path)
            logger.info(f"✓ Saved diagnostics: {diagnostics_path}")
    else:
        result.to_netcdf(output_path)
        logger.info(f"✓ Saved enhanced experiment: {output_path}")

    logger.info("✅ Feature enhancement complete!")


if __name__ == "__main__":
    main()
