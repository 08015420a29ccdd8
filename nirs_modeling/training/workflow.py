#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Modeling Workflows
===================

End-to-end entry points tying the stages together:

    test_pretreatments  - optional outlier filter, train/eval loop over
                          the pretreatments, summary, best selection
    train_model         - fit one final model on a full table
    train_best_model    - test_pretreatments, then refit the winner with
                          its modal hyperparameters

Usage:
------
    >>> from nirs_modeling.training.workflow import test_pretreatments, train_best_model
    >>> report = test_pretreatments(table, pretreatments=[1, 2, 11], config=config)
    >>> report.best_pretreatment, report.best_hyperparameters
    (11, {'n_components': 6})
    >>> report.save('results/protein')
    >>>
    >>> artifact, report = train_best_model(table, config=config)
    >>> predictions = predict(artifact, new_table)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from nirs_modeling.config import Config
from nirs_modeling.data.outliers import OutlierReport, detect
from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import MalformedInputError, NIRSModelingError
from nirs_modeling.models.persistence import ModelArtifact, save_model
from nirs_modeling.models.strategies import get_model_strategy
from nirs_modeling.preprocessing.pretreatments import (
    PretreatmentLike,
    parse_pretreatment,
    pretreat_table,
    pretreatment_name,
)
from nirs_modeling.training.loop import RunResult, TrainEvalLoop, TrialResult
from nirs_modeling.training.metrics import regression_metrics
from nirs_modeling.training.summary import (
    best_hyperparameters,
    select_best,
    summarize,
    summary_name,
)
from nirs_modeling.training.tuning import tune
from nirs_modeling.utils.checkpoint import ensure_dir, save_dataframe, save_json
from nirs_modeling.utils.logging_utils import (
    LogTimer,
    get_logger,
    log_dataframe_info,
    log_metric,
    log_metrics_dict,
    log_stage_header,
)

logger = get_logger(__name__)


# =============================================================================
# REPORT
# =============================================================================

@dataclass
class ModelingReport:
    """
    Result of :func:`test_pretreatments`.

    Attributes
    ----------
    run : RunResult
        Every trial of the run.
    summary : pd.DataFrame
        One row per pretreatment (see ``summarize``).
    best_pretreatment : int or None
        Winning pretreatment id; None when every trial failed.
    best_hyperparameters : dict
        Modal hyperparameters of the winner.
    model_method : str
        Strategy name.
    best_metric : str
        Metric the winner was selected by.
    outlier_report : OutlierReport or None
        Outlier scan applied before training, if any.
    """
    run: RunResult
    summary: pd.DataFrame
    best_pretreatment: Optional[int]
    best_hyperparameters: Dict[str, Any] = field(default_factory=dict)
    model_method: str = ''
    best_metric: str = 'RMSE'
    outlier_report: Optional[OutlierReport] = None

    @property
    def trials(self) -> List[TrialResult]:
        return self.run.trials

    @property
    def training_table(self) -> Optional[SpectralTable]:
        """Table after outlier removal, when a scan was run."""
        return self.outlier_report.table if self.outlier_report is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly overview (no per-sample data)."""
        return {
            'model_method': self.model_method,
            'best_metric': self.best_metric,
            'best_pretreatment': self.best_pretreatment,
            'best_pretreatment_name': (
                summary_name(self.summary, self.best_pretreatment)
                if self.best_pretreatment is not None else None
            ),
            'best_hyperparameters': self.best_hyperparameters,
            'n_trials': len(self.run.trials),
            'n_failed': len(self.run.failed),
            'cancelled': self.run.cancelled,
            'n_outliers': (
                self.outlier_report.n_outliers if self.outlier_report is not None else None
            ),
            'failures': [
                {
                    'pretreatment_id': t.pretreatment_id,
                    'iteration': t.iteration,
                    'error': t.error,
                    'message': t.message,
                }
                for t in self.run.failed
            ],
        }

    def save(self, output_dir: Union[str, Path]) -> Path:
        """
        Write the report to ``output_dir``.

        Files: ``predictions.csv``, ``summary.csv``, ``trials.csv``,
        ``report.json`` and, after an outlier scan, ``outliers.csv``.
        """
        output_dir = ensure_dir(output_dir)
        save_dataframe(self.run.predictions_frame(), output_dir / 'predictions.csv')
        save_dataframe(self.summary, output_dir / 'summary.csv')
        save_dataframe(self.run.metrics_frame(), output_dir / 'trials.csv')
        if self.outlier_report is not None:
            save_dataframe(self.outlier_report.to_frame(), output_dir / 'outliers.csv')
        save_json(self.to_dict(), output_dir / 'report.json')
        logger.info("Modeling report saved to %s", output_dir)
        return output_dir


# =============================================================================
# WORKFLOWS
# =============================================================================

def test_pretreatments(
    table: SpectralTable,
    pretreatments: Optional[Iterable[PretreatmentLike]] = None,
    model_method: Optional[str] = None,
    config: Optional[Config] = None,
    num_iterations: Optional[int] = None,
    tune_length: Optional[int] = None,
    scheme: Optional[str] = None,
    stratified: bool = False,
    remove_outliers: bool = False,
    n_jobs: Optional[int] = None,
    cancel_event: Optional[Any] = None,
    output_dir: Optional[Union[str, Path]] = None,
    show_progress: bool = True,
    **cv_kwargs,
) -> ModelingReport:
    """
    Compare pretreatments by repeated cross-validation.

    Parameters
    ----------
    table : SpectralTable
        Labeled training table.
    pretreatments : iterable, optional
        Pretreatment ids or names (default: all thirteen).
    model_method : str, optional
        Strategy name (default from config, ``'pls'``).
    config : Config, optional
        Project configuration (validated before use).
    remove_outliers : bool
        Run the Mahalanobis filter first with ``config.outlier`` settings.
    output_dir : str or Path, optional
        Save the report there when given.

    Other parameters are forwarded to ``TrainEvalLoop.run``.

    Returns
    -------
    ModelingReport
    """
    config = (config or Config()).validate()
    if model_method is None:
        model_method = config.experiment.model_method
    best_metric = config.experiment.best_metric

    log_stage_header(logger, 'test_pretreatments', f"{model_method} on {table!r}")

    outlier_report = None
    if remove_outliers:
        outlier_report = detect(table, config=config)
        table = outlier_report.table

    loop = TrainEvalLoop(model_method, config=config, n_jobs=n_jobs, show_progress=show_progress)
    with LogTimer(logger, "train/eval loop"):
        run = loop.run(
            table,
            pretreatments=pretreatments,
            num_iterations=num_iterations,
            tune_length=tune_length,
            scheme=scheme,
            stratified=stratified,
            cancel_event=cancel_event,
            **cv_kwargs,
        )

    summary = summarize(run, config=config)
    log_dataframe_info(logger, summary, name='summary')

    best, best_params = None, {}
    if run.succeeded:
        best = select_best(summary, best_metric)
        best_params = best_hyperparameters(summary, best)
        row = summary[summary['pretreatment_id'] == best].iloc[0]
        log_metric(logger, f'{best_metric}_mean', float(row[f'{best_metric}_mean']),
                   context=f"best: {pretreatment_name(best, config)}")
    else:
        logger.warning("No trial succeeded; no best pretreatment selected")

    report = ModelingReport(
        run=run,
        summary=summary,
        best_pretreatment=best,
        best_hyperparameters=best_params,
        model_method=model_method,
        best_metric=best_metric,
        outlier_report=outlier_report,
    )
    if output_dir is not None:
        report.save(output_dir)
    return report


# Not a pytest test despite the name
test_pretreatments.__test__ = False


def train_model(
    table: SpectralTable,
    pretreatment: PretreatmentLike,
    hyperparameters: Optional[Dict[str, Any]] = None,
    model_method: Optional[str] = None,
    config: Optional[Config] = None,
    seed: Optional[int] = None,
    training_summary: Optional[Dict[str, Any]] = None,
) -> ModelArtifact:
    """
    Fit a final model on every sample of ``table``.

    Parameters
    ----------
    table : SpectralTable
        Labeled training table.
    pretreatment : int, str or Pretreatment
        Pretreatment applied before fitting.
    hyperparameters : dict, optional
        Fixed hyperparameters.  When None they are tuned on the full
        table by inner cross-validation.
    model_method : str, optional
        Strategy name (default from config, ``'pls'``).
    seed : int, optional
        Seed for tuning folds and stochastic estimators.
    training_summary : dict, optional
        Extra statistics stored on the artifact.

    Returns
    -------
    ModelArtifact

    Raises
    ------
    MalformedInputError
        If the table has no reference column.
    """
    if not table.has_reference:
        raise MalformedInputError("Training requires a table with a reference column")
    pretreatment = parse_pretreatment(pretreatment)
    if model_method is None:
        model_method = config.experiment.model_method if config else 'pls'
    seed = seed if seed is not None else (config.experiment.seed if config else 1)

    pretreated = pretreat_table(table, pretreatment, config)
    X, y = pretreated.spectra, pretreated.reference
    strategy = get_model_strategy(model_method)

    if hyperparameters is None:
        hyperparameters = tune(strategy, X, y, seed=seed, config=config).best_params
        logger.info("Tuned %s on %d samples: %s", model_method, len(y), hyperparameters)

    with LogTimer(logger, f"fit {model_method} ({pretreatment.name})"):
        handle = strategy.fit(X, y, hyperparameters, random_state=seed)

    fitted = regression_metrics(y, strategy.predict(handle, X))
    log_metrics_dict(logger, fitted, context=f"training fit {pretreatment.name}")

    summary = {
        'n_samples': int(table.n_samples),
        'reference_mean': float(np.mean(y)),
        'reference_sd': float(np.std(y, ddof=1)) if len(y) > 1 else float('nan'),
        'training_metrics': fitted,
    }
    summary.update(training_summary or {})

    return ModelArtifact(
        pretreatment_id=int(pretreatment),
        hyperparameters=dict(hyperparameters),
        model_method=model_method,
        model=handle,
        input_wavelengths=np.array(table.wavelengths),
        model_wavelengths=np.array(pretreated.wavelengths),
        settings=config.to_dict() if config is not None else {},
        training_summary=summary,
    )


def train_best_model(
    table: SpectralTable,
    pretreatments: Optional[Iterable[PretreatmentLike]] = None,
    model_method: Optional[str] = None,
    config: Optional[Config] = None,
    output_dir: Optional[Union[str, Path]] = None,
    **kwargs,
) -> Tuple[ModelArtifact, ModelingReport]:
    """
    Select the best pretreatment and refit it on the full table.

    The winner is chosen by ``config.experiment.best_metric`` and refit
    with its modal hyperparameters.  With ``output_dir`` the report and
    ``model.joblib`` are written there.

    Raises
    ------
    NIRSModelingError
        If no trial succeeded.
    """
    config = (config or Config()).validate()
    report = test_pretreatments(
        table, pretreatments=pretreatments, model_method=model_method,
        config=config, output_dir=output_dir, **kwargs,
    )
    if report.best_pretreatment is None:
        raise NIRSModelingError("Every trial failed; cannot select a model to train")

    row = report.summary[report.summary['pretreatment_id'] == report.best_pretreatment].iloc[0]
    cv_summary = {
        key: (value.item() if isinstance(value, np.generic) else value)
        for key, value in row.to_dict().items()
    }

    training_table = report.training_table if report.training_table is not None else table
    artifact = train_model(
        training_table,
        report.best_pretreatment,
        hyperparameters=report.best_hyperparameters or None,
        model_method=report.model_method,
        config=config,
        training_summary={'cross_validation': cv_summary},
    )
    if output_dir is not None:
        save_model(artifact, Path(output_dir) / 'model.joblib')
    return artifact, report
