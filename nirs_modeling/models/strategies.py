#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Regression Model Strategies
============================

Pluggable regression back-ends used by the train/eval loop:
    - Partial Least Squares (``pls``)
    - Support Vector Regression, linear kernel (``svm_linear``)
    - Support Vector Regression, radial kernel (``svm_radial``)
    - Random Forest (``rf``)

Every strategy exposes the same three operations:
    - ``fit(X, y, hyperparams)`` → ``FittedModel`` handle
    - ``predict(handle, X)`` → 1-D predictions
    - ``hyperparameter_space(tune_length, n_samples, n_features)``

The ``FittedModel`` handle wraps the sklearn estimator and adds:
    - Consistent ``model_name`` attribute
    - Timing of fit/predict
    - JSON-serialisable parameter snapshot

Usage:
------
    >>> from nirs_modeling.models.strategies import get_model_strategy
    >>>
    >>> strategy = get_model_strategy('pls')
    >>> handle = strategy.fit(X_train, y_train, {'n_components': 5})
    >>> preds = strategy.predict(handle, X_test)
    >>>
    >>> # With fixed parameter overrides
    >>> strategy = get_model_strategy('rf', n_estimators=100)
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.cross_decomposition import PLSRegression
from sklearn.ensemble import RandomForestRegressor
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVR

from nirs_modeling.models.hyperparameter_spaces import (
    get_default_params,
    get_search_space,
)
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# FITTED MODEL HANDLE
# =============================================================================

class FittedModel:
    """
    Opaque handle to a trained regressor.

    Parameters
    ----------
    model : sklearn-compatible estimator
        The fitted regressor (or pipeline).
    model_name : str
        Canonical strategy name (e.g. ``'pls'``).
    params : dict
        Tuned and fixed parameters the model was built with.

    Attributes
    ----------
    fit_time_ : float
        Seconds taken by ``fit()``.
    predict_time_ : float
        Seconds taken by the last ``predict()`` call.
    n_features_ : int
        Number of spectral columns seen during fit.
    """

    def __init__(self, model: Any, model_name: str, params: Dict[str, Any]):
        self.model = model
        self.model_name = model_name
        self.params = params
        self.fit_time_: float = 0.0
        self.predict_time_: float = 0.0
        self.n_features_: int = 0

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Predicted reference values, shape ``(n_samples,)``."""
        t0 = time.time()
        preds = np.asarray(self.model.predict(X), dtype=np.float64).ravel()
        self.predict_time_ = time.time() - t0
        return preds

    def summary(self) -> Dict[str, Any]:
        """Return a summary dictionary."""
        return {
            'model_name': self.model_name,
            'params': {k: str(v) for k, v in self.params.items()},
            'n_features': self.n_features_,
            'fit_time_s': self.fit_time_,
        }

    def __repr__(self) -> str:
        return f"FittedModel('{self.model_name}', n_features={self.n_features_})"


# =============================================================================
# STRATEGY BASE
# =============================================================================

class ModelStrategy(ABC):
    """
    Abstract regression back-end.

    Parameters
    ----------
    **override_params
        Fixed estimator parameters replacing the defaults from
        ``get_default_params``.
    """

    name: str = ''

    def __init__(self, **override_params):
        params = get_default_params(self.name)
        params.update(override_params)
        self.fixed_params = params

    @abstractmethod
    def _build(self, params: Dict[str, Any], random_state: Optional[int]) -> Any:
        """Create an unfitted estimator from the merged parameters."""

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        hyperparams: Optional[Dict[str, Any]] = None,
        random_state: Optional[int] = None,
    ) -> FittedModel:
        """
        Fit the model.

        Parameters
        ----------
        X : np.ndarray
            Training spectra, shape ``(n_samples, n_features)``.
        y : np.ndarray
            Reference values, shape ``(n_samples,)``.
        hyperparams : dict, optional
            Tuned parameters (one point of ``hyperparameter_space``).
        random_state : int, optional
            Seed for stochastic estimators.

        Returns
        -------
        FittedModel
        """
        params = dict(self.fixed_params)
        params.update(hyperparams or {})
        model = self._build(params, random_state)

        logger.debug("Fitting %s on %s with %s", self.name, X.shape, hyperparams)
        t0 = time.time()
        model.fit(X, np.asarray(y, dtype=np.float64).ravel())

        handle = FittedModel(model=model, model_name=self.name, params=params)
        handle.fit_time_ = time.time() - t0
        handle.n_features_ = X.shape[1]
        return handle

    def predict(self, handle: FittedModel, X: np.ndarray) -> np.ndarray:
        """Predict with a handle returned by :meth:`fit`."""
        if handle.n_features_ and X.shape[1] != handle.n_features_:
            raise ValueError(
                f"{self.name} model expects {handle.n_features_} features, got {X.shape[1]}"
            )
        return handle.predict(X)

    def hyperparameter_space(
        self,
        tune_length: int,
        n_samples: int,
        n_features: int,
    ) -> Dict[str, List[Any]]:
        """Tuning grid ``{param: [values]}`` for data of the given shape."""
        return get_search_space(self.name)(tune_length, n_samples, n_features)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


# =============================================================================
# STRATEGIES
# =============================================================================

class PLSStrategy(ModelStrategy):
    """Partial least squares regression on centred spectra."""

    name = 'pls'

    def _build(self, params, random_state):
        return PLSRegression(**params)


class _SVRStrategy(ModelStrategy):
    """Standardised spectra fed to an epsilon-SVR."""

    def _build(self, params, random_state):
        return make_pipeline(StandardScaler(), SVR(**params))


class LinearSVMStrategy(_SVRStrategy):
    name = 'svm_linear'


class RadialSVMStrategy(_SVRStrategy):
    name = 'svm_radial'


class RandomForestStrategy(ModelStrategy):
    """Random forest regression."""

    name = 'rf'

    def _build(self, params, random_state):
        return RandomForestRegressor(random_state=random_state, **params)


# =============================================================================
# REGISTRY
# =============================================================================

_STRATEGIES: Dict[str, type] = {
    'pls':        PLSStrategy,
    'svm_linear': LinearSVMStrategy,
    'svm_radial': RadialSVMStrategy,
    'rf':         RandomForestStrategy,
}


def get_model_strategy(model_name: str, **override_params) -> ModelStrategy:
    """
    Create a model strategy by name.

    Parameters
    ----------
    model_name : str
        Strategy identifier (see ``list_model_strategies()``).
    **override_params
        Override specific fixed estimator parameters.

    Returns
    -------
    ModelStrategy

    Raises
    ------
    KeyError
        If model name is unknown.

    Examples
    --------
    >>> strategy = get_model_strategy('rf', n_estimators=100)
    """
    if model_name not in _STRATEGIES:
        available = ', '.join(sorted(_STRATEGIES.keys()))
        raise KeyError(f"Unknown model: '{model_name}'. Available: {available}")
    return _STRATEGIES[model_name](**override_params)


def list_model_strategies() -> List[str]:
    """Return sorted list of available model strategy names."""
    return sorted(_STRATEGIES.keys())
