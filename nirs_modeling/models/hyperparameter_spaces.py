#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Hyperparameter Grids for Regression Models
============================================

Defines the tuning grid for every model strategy in the project.  Each
space is a callable taking the grid size (``tune_length``) and the
shape of the training data, and returning ``{param: [values]}`` ready
for ``sklearn.model_selection.ParameterGrid``.

Keeping grids out of the strategies means:
    - Strategy code (strategies.py) only builds and fits estimators
    - Tuning code (training/tuning.py) only needs the grid
    - Grids are easy to extend or override per experiment

Supported Models:
    pls, svm_linear, svm_radial, rf

Usage:
------
    >>> from nirs_modeling.models.hyperparameter_spaces import get_search_space
    >>>
    >>> space_fn = get_search_space('pls')
    >>> space_fn(tune_length=5, n_samples=70, n_features=331)
    {'n_components': [1, 2, 3, 4, 5]}
"""

from typing import Any, Callable, Dict, List

import numpy as np

from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)

# (tune_length, n_samples, n_features) -> {param: [values]}
SpaceFunction = Callable[[int, int, int], Dict[str, List[Any]]]


def _cost_grid(tune_length: int) -> List[float]:
    """Powers of two starting at 0.25: 0.25, 0.5, 1, 2, ..."""
    return [float(2.0 ** (i - 2)) for i in range(tune_length)]


# =============================================================================
# SPACES
# =============================================================================

def _space_pls(tune_length: int, n_samples: int, n_features: int) -> Dict[str, List[Any]]:
    """Latent variables 1..tune_length, capped by the data size."""
    cap = max(1, min(tune_length, n_features, n_samples - 1))
    return {'n_components': list(range(1, cap + 1))}


def _space_svm_linear(tune_length: int, n_samples: int, n_features: int) -> Dict[str, List[Any]]:
    """Cost on a log2 grid."""
    return {'C': _cost_grid(tune_length)}


def _space_svm_radial(tune_length: int, n_samples: int, n_features: int) -> Dict[str, List[Any]]:
    """
    Cost on a log2 grid and kernel width around ``1 / n_features``.

    Spectra are standardised before the kernel, so ``1 / n_features`` is
    sklearn's ``'scale'`` value; it is listed first so ties keep it.
    """
    base = 1.0 / max(n_features, 1)
    factors = [1.0, 0.1, 10.0][:min(3, tune_length)]
    return {
        'C': _cost_grid(tune_length),
        'gamma': [base * f for f in factors],
    }


def _space_rf(tune_length: int, n_samples: int, n_features: int) -> Dict[str, List[Any]]:
    """Features tried per split, evenly spaced from 2 to ``n_features``."""
    if n_features <= 2:
        return {'max_features': list(range(1, n_features + 1))}
    grid = np.unique(np.linspace(2, n_features, tune_length).round().astype(int))
    return {'max_features': [int(v) for v in grid]}


# =============================================================================
# REGISTRY
# =============================================================================

_SEARCH_SPACES: Dict[str, SpaceFunction] = {
    'pls':        _space_pls,
    'svm_linear': _space_svm_linear,
    'svm_radial': _space_svm_radial,
    'rf':         _space_rf,
}


def get_search_space(model_name: str) -> SpaceFunction:
    """
    Get the grid builder for a model.

    Raises
    ------
    KeyError
        If model name is unknown.
    """
    if model_name not in _SEARCH_SPACES:
        available = ', '.join(sorted(_SEARCH_SPACES.keys()))
        raise KeyError(
            f"Unknown model: '{model_name}'. Available: {available}"
        )
    return _SEARCH_SPACES[model_name]


def list_tunable_models() -> List[str]:
    """Return sorted list of all tunable model names."""
    return sorted(_SEARCH_SPACES.keys())


def get_default_params(model_name: str) -> Dict[str, Any]:
    """
    Fixed (untuned) estimator parameters.

    Parameters
    ----------
    model_name : str
        Model identifier.

    Returns
    -------
    dict
        Parameters passed to the estimator alongside the tuned ones.
    """
    defaults = {
        'pls': {
            'scale': False, 'max_iter': 500,
        },
        'svm_linear': {
            'kernel': 'linear', 'epsilon': 0.1, 'cache_size': 500,
        },
        'svm_radial': {
            'kernel': 'rbf', 'epsilon': 0.1, 'cache_size': 500,
        },
        'rf': {
            'n_estimators': 500, 'min_samples_leaf': 5,
            'n_jobs': 1,
        },
    }

    if model_name not in defaults:
        raise KeyError(f"No defaults for model: '{model_name}'")
    return dict(defaults[model_name])
