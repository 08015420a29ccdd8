#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Regression Metrics
===================

Scalar quality measures computed on the test partition of every trial.

    RMSE      sqrt(mean((ŷ - y)²))
    Rsquared  1 - SS_res / SS_tot
    RPD       sd(y) / RMSE                 (sd with ddof=1)
    RPIQ      IQR(y) / RMSE
    Bias      mean(ŷ - y)
    SEP       sd(ŷ - y)                    (ddof=1, bias-corrected error)
    CCC       Lin's concordance correlation coefficient

Degenerate inputs (perfect predictions, constant reference, a single
sample) yield ``inf`` or ``nan`` instead of raising.

Usage:
------
    >>> from nirs_modeling.training.metrics import regression_metrics
    >>> regression_metrics([1.0, 2.0, 3.0], [1.1, 1.9, 3.2])['RMSE']
    0.1414...
"""

from typing import Dict, Sequence

import numpy as np

METRIC_NAMES = ('RMSE', 'Rsquared', 'RPD', 'RPIQ', 'Bias', 'SEP', 'CCC')

# Direction of "better" for each metric
LOWER_IS_BETTER = {'RMSE': True, 'Rsquared': False}


def _ratio(num: float, den: float) -> float:
    if den == 0:
        if num == 0 or np.isnan(num):
            return float('nan')
        return float('inf') if num > 0 else float('-inf')
    return float(num / den)


def regression_metrics(observed: Sequence[float], predicted: Sequence[float]) -> Dict[str, float]:
    """
    Compute all regression metrics.

    Parameters
    ----------
    observed : array-like
        Reference values ``y``.
    predicted : array-like
        Predictions ``ŷ`` (same length).

    Returns
    -------
    dict
        ``{metric_name: value}`` in ``METRIC_NAMES`` order.

    Raises
    ------
    ValueError
        If the inputs are empty or of different lengths.
    """
    y = np.asarray(observed, dtype=np.float64).ravel()
    y_hat = np.asarray(predicted, dtype=np.float64).ravel()
    if y.shape != y_hat.shape:
        raise ValueError(f"Length mismatch: {len(y)} observed vs {len(y_hat)} predicted")
    if len(y) == 0:
        raise ValueError("Cannot compute metrics on an empty partition")

    residuals = y_hat - y
    n = len(y)

    rmse = float(np.sqrt(np.mean(residuals ** 2)))
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    sd_y = float(np.std(y, ddof=1)) if n > 1 else float('nan')
    q75, q25 = np.percentile(y, [75, 25])
    sep = float(np.std(residuals, ddof=1)) if n > 1 else float('nan')

    cov = float(np.mean((y - y.mean()) * (y_hat - y_hat.mean())))
    ccc_den = float(y.var() + y_hat.var() + (y.mean() - y_hat.mean()) ** 2)

    return {
        'RMSE': rmse,
        'Rsquared': 1.0 - _ratio(ss_res, ss_tot),
        'RPD': _ratio(sd_y, rmse),
        'RPIQ': _ratio(float(q75 - q25), rmse),
        'Bias': float(residuals.mean()),
        'SEP': sep,
        'CCC': _ratio(2.0 * cov, ccc_den),
    }


def is_better(metric: str, candidate: float, incumbent: float) -> bool:
    """Strict improvement of ``candidate`` over ``incumbent``; non-finite values never win."""
    if not np.isfinite(candidate):
        return False
    if not np.isfinite(incumbent):
        return True
    if LOWER_IS_BETTER[metric]:
        return candidate < incumbent
    return candidate > incumbent
