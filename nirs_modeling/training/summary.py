#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Run Summaries and Best-Pretreatment Selection
==============================================

Reduces the per-trial results of a run to one row per pretreatment:

    pretreatment_id | pretreatment_name | n_trials | n_failed |
    RMSE_mean | RMSE_sd | RMSE_mode | ... | n_components_mode | n_components_mean

Failed trials are counted but excluded from every statistic.  Metric
modes are taken over values rounded to METRIC_MODE_DECIMALS places.
Modes break ties towards the smallest value.

Usage:
------
    >>> from nirs_modeling.training.summary import summarize, select_best
    >>> summary = summarize(run)
    >>> best = select_best(summary, 'RMSE')
    >>> best_hyperparameters(summary, best)
    {'n_components': 6}
"""

import numbers
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from nirs_modeling.preprocessing.pretreatments import pretreatment_name
from nirs_modeling.training.loop import RunResult, TrialResult
from nirs_modeling.training.metrics import LOWER_IS_BETTER, METRIC_NAMES, is_better
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Grid parameters that must stay integers after a CSV round trip
_INTEGER_PARAMS = {'n_components', 'max_features'}

METRIC_MODE_DECIMALS = 2


def _native(value: Any) -> Any:
    """numpy scalar -> Python scalar."""
    if isinstance(value, np.generic):
        return value.item()
    return value


def _mode(values: Sequence[Any]) -> Any:
    """Most frequent value; the smallest one among ties, NaN if empty."""
    modes = pd.Series(list(values), dtype=object).dropna()
    if modes.empty:
        return np.nan
    counts = modes.value_counts()
    tied = counts[counts == counts.max()].index
    return _native(min(tied))


def _is_numeric(values: Sequence[Any]) -> bool:
    return bool(values) and all(
        isinstance(v, numbers.Real) and not isinstance(v, bool) for v in values
    )


def summarize(
    results: Union[RunResult, Iterable[TrialResult]],
    metrics: Sequence[str] = METRIC_NAMES,
    config: Optional['Config'] = None,
) -> pd.DataFrame:
    """
    Per-pretreatment statistics of a run.

    Parameters
    ----------
    results : RunResult or iterable of TrialResult
        Trials to summarise.
    metrics : sequence of str
        Metrics to include.
    config : Config, optional
        Configuration the run used; names the Savitzky-Golay windows.

    Returns
    -------
    pd.DataFrame
        One row per pretreatment, ascending id.  Hyperparameter mode
        columns keep native Python types (object dtype).
    """
    trials = results.trials if isinstance(results, RunResult) else list(results)
    by_pretreatment: Dict[int, List[TrialResult]] = {}
    for t in trials:
        by_pretreatment.setdefault(t.pretreatment_id, []).append(t)

    param_names: List[str] = []
    for t in trials:
        for name in t.hyperparameters:
            if name not in param_names:
                param_names.append(name)

    rows = []
    for pid in sorted(by_pretreatment):
        group = by_pretreatment[pid]
        ok = [t for t in group if t.succeeded]
        row: Dict[str, Any] = {
            'pretreatment_id': pid,
            'pretreatment_name': pretreatment_name(pid, config),
            'n_trials': len(group),
            'n_failed': len(group) - len(ok),
        }
        for name in metrics:
            values = np.array([t.metrics[name] for t in ok if name in t.metrics], dtype=float)
            finite = values[np.isfinite(values)]
            row[f'{name}_mean'] = float(finite.mean()) if len(finite) else np.nan
            row[f'{name}_sd'] = float(finite.std(ddof=1)) if len(finite) > 1 else np.nan
            row[f'{name}_mode'] = _mode(np.round(finite, METRIC_MODE_DECIMALS).tolist())
        for name in param_names:
            values = [t.hyperparameters[name] for t in ok if name in t.hyperparameters]
            row[f'{name}_mode'] = _mode(values)
            if _is_numeric(values):
                row[f'{name}_mean'] = float(np.mean(values))
        rows.append(row)

        if ok:
            logger.debug(
                "Pretreatment %d: %d/%d trials succeeded", pid, len(ok), len(group),
            )
        else:
            logger.warning("Pretreatment %d: every trial failed", pid)

    summary = pd.DataFrame(rows)
    for name in param_names:
        col = f'{name}_mode'
        summary[col] = pd.Series([row.get(col, np.nan) for row in rows], dtype=object)
    summary.attrs['hyperparameters'] = list(param_names)
    return summary


def summary_name(summary: pd.DataFrame, pretreatment_id: int) -> str:
    """Pretreatment description as recorded in a summary."""
    if 'pretreatment_name' in summary.columns:
        rows = summary[summary['pretreatment_id'] == pretreatment_id]
        if not rows.empty:
            return rows['pretreatment_name'].iloc[0]
    return pretreatment_name(pretreatment_id)


def select_best(summary: pd.DataFrame, metric: str = 'RMSE') -> int:
    """
    Id of the best pretreatment by mean ``metric``.

    RMSE is minimised, Rsquared maximised; ties go to the lowest
    pretreatment id.

    Raises
    ------
    ValueError
        If the metric is not selectable or no pretreatment has a finite
        value.
    """
    if metric not in LOWER_IS_BETTER:
        raise ValueError(
            f"Cannot select by '{metric}'. Available: {', '.join(LOWER_IS_BETTER)}"
        )
    column = f'{metric}_mean'
    best, best_value = None, np.nan
    for pid, value in sorted(zip(summary['pretreatment_id'], summary[column].astype(float))):
        if is_better(metric, value, best_value):
            best, best_value = int(pid), value
    if best is None:
        raise ValueError(f"No pretreatment has a finite {column}")

    logger.info(
        "Best pretreatment by %s: %d (%s, %s=%.4f)",
        metric, best, summary_name(summary, best), column, best_value,
    )
    return best


def best_hyperparameters(summary: pd.DataFrame, pretreatment_id: int) -> Dict[str, Any]:
    """
    Modal hyperparameters of one pretreatment, as native Python values.

    Raises
    ------
    KeyError
        If the pretreatment is not in the summary.
    """
    rows = summary[summary['pretreatment_id'] == pretreatment_id]
    if rows.empty:
        raise KeyError(f"Pretreatment {pretreatment_id} not in summary")
    row = rows.iloc[0]

    names = summary.attrs.get('hyperparameters')
    if names is None:
        names = [
            col[:-len('_mode')] for col in summary.columns
            if col.endswith('_mode') and col[:-len('_mode')] not in METRIC_NAMES
        ]

    params = {}
    for name in names:
        value = row.get(f'{name}_mode')
        if value is None or (isinstance(value, float) and np.isnan(value)):
            continue
        value = _native(value)
        if isinstance(value, float) and value.is_integer() and name in _INTEGER_PARAMS:
            value = int(value)
        params[name] = value
    return params
