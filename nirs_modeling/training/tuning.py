#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Hyperparameter Tuning
======================

Exhaustive grid search on the training partition of a trial.  Every
candidate of the strategy's grid is scored by the mean RMSE over an
inner K-fold cross-validation; the lowest mean wins and ties go to the
candidate listed first.

The optional time budget is checked between candidate fits: once it is
exceeded the search stops with ``TrialTimeout``.

Usage:
------
    >>> from nirs_modeling.training.tuning import tune
    >>> result = tune(get_model_strategy('pls'), X_train, y_train, tune_length=10)
    >>> result.best_params
    {'n_components': 7}
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sklearn.model_selection import KFold, ParameterGrid

from nirs_modeling.exceptions import ConfigurationError, TrialFailure, TrialTimeout
from nirs_modeling.models.strategies import ModelStrategy
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TuningResult:
    """
    Outcome of a grid search.

    Attributes
    ----------
    best_params : dict
        Winning grid point.
    best_score : float
        Its mean inner-CV RMSE.
    scores : list of (dict, float)
        Every candidate with its mean RMSE (NaN when it failed), in grid
        order.
    elapsed_s : float
        Wall time of the search.
    """
    best_params: Dict[str, Any]
    best_score: float
    scores: List[Tuple[Dict[str, Any], float]] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def n_candidates(self) -> int:
        return len(self.scores)


def tune(
    strategy: ModelStrategy,
    X: np.ndarray,
    y: np.ndarray,
    tune_length: Optional[int] = None,
    inner_folds: Optional[int] = None,
    seed: Optional[int] = None,
    timeout_s: Optional[float] = None,
    config: Optional['Config'] = None,
) -> TuningResult:
    """
    Grid-search a strategy's hyperparameters.

    Parameters
    ----------
    strategy : ModelStrategy
        Back-end providing the grid, ``fit`` and ``predict``.
    X, y : np.ndarray
        Training partition.
    tune_length : int, optional
        Candidate values per hyperparameter (default from config, 5).
    inner_folds : int, optional
        K of the inner K-fold (default from config, 5; capped by the
        sample count).
    seed : int, optional
        Seed of the inner fold shuffle and of stochastic estimators.
    timeout_s : float, optional
        Time budget in seconds (default from config, unlimited).

    Returns
    -------
    TuningResult

    Raises
    ------
    TrialTimeout
        If the budget is exceeded before the grid is exhausted.
    TrialFailure
        If every candidate fails or there are too few samples.
    ConfigurationError
        If ``tune_length`` < 1 or ``inner_folds`` < 2.
    """
    tc = config.tuning if config is not None else None
    if tune_length is None:
        tune_length = tc.tune_length if tc else 5
    if inner_folds is None:
        inner_folds = tc.inner_folds if tc else 5
    if tune_length < 1 or inner_folds < 2:
        raise ConfigurationError(
            f"Need tune_length >= 1 and inner_folds >= 2, got {tune_length} and {inner_folds}"
        )
    if timeout_s is None and tc is not None:
        timeout_s = tc.timeout_s

    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64).ravel()
    n_samples, n_features = X.shape
    if n_samples < 2:
        raise TrialFailure(f"Cannot tune on {n_samples} training sample(s)")

    n_splits = min(inner_folds, n_samples)
    smallest_train = n_samples - int(np.ceil(n_samples / n_splits))
    grid = list(ParameterGrid(
        strategy.hyperparameter_space(tune_length, smallest_train, n_features)
    ))
    splits = list(KFold(n_splits=n_splits, shuffle=True, random_state=seed).split(X))

    start = time.monotonic()
    scores: List[Tuple[Dict[str, Any], float]] = []
    best_params: Optional[Dict[str, Any]] = None
    best_score = float('inf')

    for params in grid:
        fold_rmse = []
        try:
            for train_idx, val_idx in splits:
                elapsed = time.monotonic() - start
                if timeout_s is not None and elapsed > timeout_s:
                    raise TrialTimeout(
                        f"{strategy.name} search exceeded {timeout_s:g}s after "
                        f"{len(scores)} of {len(grid)} candidates"
                    )
                handle = strategy.fit(X[train_idx], y[train_idx], params, random_state=seed)
                pred = strategy.predict(handle, X[val_idx])
                fold_rmse.append(np.sqrt(np.mean((pred - y[val_idx]) ** 2)))
            score = float(np.mean(fold_rmse))
        except TrialFailure:
            raise
        except Exception as e:
            logger.debug("%s candidate %s failed: %s", strategy.name, params, e)
            score = float('nan')

        scores.append((params, score))
        if np.isfinite(score) and score < best_score:
            best_params, best_score = params, score

    if best_params is None:
        raise TrialFailure(f"All {len(grid)} {strategy.name} candidates failed")

    elapsed = time.monotonic() - start
    logger.debug(
        "%s tuned over %d candidates in %.2fs: %s (RMSE=%.4f)",
        strategy.name, len(grid), elapsed, best_params, best_score,
    )
    return TuningResult(
        best_params=dict(best_params),
        best_score=best_score,
        scores=scores,
        elapsed_s=elapsed,
    )
