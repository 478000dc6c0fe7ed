"""
Utility functions for feature enhancement
"""

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import yaml


DEFAULT_CONFIG_PATH = Path(__file__).parent / "config_enhance_features.yaml"

DEFAULT_CONFIG = {
    'enhancement': {
        'use_dimred': 'PCA',
        'assay_type': 'logcounts',
        'altexp_type': None,
        'model': 'tree',
        'n_jobs': 1,
        'verbose': True,
    },
    'models': {
        'hyperparameters': {
            'tree': {
                'max_depth': 2,
                'learning_rate': 0.03,
                'n_estimators': 100,
                'n_jobs': 1,
                'objective': 'reg:squarederror',
            },
            'compositional': {
                'maxiter': 1000,
                'tol': 1e-10,
            },
        },
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'save_to_file': False,
    },
    'paths': {
        'logs': 'logs_enhancement',
    },
}


class PreconditionError(ValueError):
    """Raised when inputs violate a precondition of feature enhancement."""


def load_config(config_path: Optional[str] = None) -> Dict:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    return config or {}


def get_default_config() -> Dict:
    """Return a fresh copy of the built-in configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def get_config_value(config: Optional[Dict], key_path: str, default=None):
    """
    Get nested config value using dot notation.

    Example: get_config_value(config, 'enhancement.model', 'tree')
    """
    keys = key_path.split('.')
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def calculate_statistics(data: np.ndarray) -> Dict:
    """
    Calculate summary statistics for an array, ignoring NaNs.

    Returns dictionary with mean, std, min, max, median, etc.
    """
    data = np.asarray(data, dtype=float)
    valid_data = data[~np.isnan(data)]

    if len(valid_data) == 0:
        return {
            'mean': np.nan,
            'std': np.nan,
            'min': np.nan,
            'max': np.nan,
            'median': np.nan,
            'n_valid': 0,
            'n_total': int(data.size),
            'pct_valid': 0.0
        }

    return {
        'mean': float(np.mean(valid_data)),
        'std': float(np.std(valid_data)),
        'min': float(np.min(valid_data)),
        'max': float(np.max(valid_data)),
        'median': float(np.median(valid_data)),
        'n_valid': int(len(valid_data)),
        'n_total': int(data.size),
        'pct_valid': float(100 * len(valid_data) / data.size)
    }


def print_statistics(data: np.ndarray, name: str = "Data"):
    """Pretty print data statistics."""
    stats = calculate_statistics(data)
    print(f"\n📊 Statistics for {name}:")
    print(f"   Mean: {stats['mean']:.4f} ± {stats['std']:.4f}")
    print(f"   Range: [{stats['min']:.4f}, {stats['max']:.4f}]")
    print(f"   Median: {stats['median']:.4f}")
    print(f"   Valid: {stats['n_valid']:,} / {stats['n_total']:,} ({stats['pct_valid']:.1f}%)")


def setup_logging(config: Optional[Dict], log_name: str = 'feature_enhancer') -> logging.Logger:
    """Setup logging configuration."""
    log_level = get_config_value(config, 'logging.level', 'INFO')
    log_format = get_config_value(config, 'logging.format',
                                  '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    save_to_file = get_config_value(config, 'logging.save_to_file', False)

    logger = logging.getLogger(log_name)
    logger.setLevel(getattr(logging, log_level))

    # Avoid stacking handlers when called repeatedly in one process
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, log_level))
        console_handler.setFormatter(logging.Formatter(log_format))
        logger.addHandler(console_handler)

        if save_to_file:
            log_dir = Path(get_config_value(config, 'paths.logs', 'logs_enhancement'))
            log_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_filename = log_dir / f'{log_name}_{timestamp}.log'

            file_handler = logging.FileHandler(log_filename)
            file_handler.setLevel(getattr(logging, log_level))
            file_handler.setFormatter(logging.Formatter(log_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_filename}")

    return logger
