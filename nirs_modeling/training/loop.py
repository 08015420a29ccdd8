#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Train / Evaluate Loop
======================

Runs every (pretreatment, iteration) trial of a modeling experiment.

Protocol per trial:
    1. Take the table pretreated once for this pretreatment.
    2. Build the iteration's train/test fold.
    3. Grid-search the model strategy's hyperparameters on the train
       partition (inner K-fold RMSE).
    4. Refit on the full train partition with the winning parameters.
    5. Predict the test partition and compute the regression metrics.

Trials are independent: each draws its fold from ``(seed, iteration)``
and its estimator seed from ``(seed, pretreatment_id, iteration)``, so
results do not depend on the order (or process) in which they run.  A
failing trial is recorded as a failed ``TrialResult`` with an error tag
and the batch continues.

Usage:
------
    >>> from nirs_modeling.training.loop import TrainEvalLoop
    >>> loop = TrainEvalLoop('pls', config=config, n_jobs=4)
    >>> run = loop.run(table, pretreatments=[1, 2, 8], num_iterations=10, tune_length=5)
    >>> run.metrics_frame().groupby('pretreatment_id')['RMSE'].mean()
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import (
    ConfigurationError,
    EmptyPartitionError,
    MalformedInputError,
    TrialFailure,
)
from nirs_modeling.models.strategies import ModelStrategy, get_model_strategy
from nirs_modeling.preprocessing.pretreatments import (
    ALL_PRETREATMENTS,
    PretreatmentLike,
    pretreat_all,
)
from nirs_modeling.training.cv_schemes import build_fold, check_inputs, resolve_options
from nirs_modeling.training.metrics import METRIC_NAMES, regression_metrics
from nirs_modeling.training.tuning import tune
from nirs_modeling.utils.logging_utils import LogTimer, get_logger, log_stage_header

logger = get_logger(__name__)


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True, eq=False)
class TrialResult:
    """
    Outcome of one (pretreatment, iteration) trial.

    Attributes
    ----------
    pretreatment_id : int
    iteration : int
    hyperparameters : dict
        Tuned parameters (empty when the trial failed before tuning).
    predictions : pd.DataFrame
        ``unique_id, observed, predicted`` for the test partition.
    metrics : dict
        ``{metric: value}``; empty for failed trials.
    error : str or None
        ``None`` on success, otherwise ``'trial_failure'``, ``'timeout'``
        or ``'empty_partition'``.
    message : str
        Error message of a failed trial.
    elapsed_s : float
        Wall time of the trial.
    """
    pretreatment_id: int
    iteration: int
    hyperparameters: Dict[str, Any] = field(default_factory=dict)
    predictions: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=['unique_id', 'observed', 'predicted'])
    )
    metrics: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None
    message: str = ''
    elapsed_s: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def key(self):
        return (self.pretreatment_id, self.iteration)


@dataclass
class RunResult:
    """All trials of a run, sorted by (pretreatment_id, iteration)."""
    trials: List[TrialResult]
    cancelled: bool = False
    model_method: str = ''

    @property
    def succeeded(self) -> List[TrialResult]:
        return [t for t in self.trials if t.succeeded]

    @property
    def failed(self) -> List[TrialResult]:
        return [t for t in self.trials if not t.succeeded]

    def predictions_frame(self) -> pd.DataFrame:
        """Test-set predictions of every successful trial."""
        columns = ['unique_id', 'iteration', 'pretreatment_id', 'observed', 'predicted']
        frames = []
        for t in self.succeeded:
            df = t.predictions.copy()
            df['iteration'] = t.iteration
            df['pretreatment_id'] = t.pretreatment_id
            frames.append(df[columns])
        if not frames:
            return pd.DataFrame(columns=columns)
        return pd.concat(frames, ignore_index=True)

    def metrics_frame(self) -> pd.DataFrame:
        """One row per trial: ids, status, metrics and hyperparameters."""
        rows = []
        for t in self.trials:
            row = {
                'pretreatment_id': t.pretreatment_id,
                'iteration': t.iteration,
                'error': t.error,
                'message': t.message,
                'elapsed_s': t.elapsed_s,
            }
            for name in METRIC_NAMES:
                row[name] = t.metrics.get(name, np.nan)
            row.update(t.hyperparameters)
            rows.append(row)
        return pd.DataFrame(rows)

    def __len__(self) -> int:
        return len(self.trials)


# =============================================================================
# TRIAL
# =============================================================================

def trial_seed(seed: int, pretreatment_id: int, iteration: int) -> int:
    """Deterministic 32-bit estimator seed of one trial."""
    return int(np.random.SeedSequence([seed, pretreatment_id, iteration]).generate_state(1)[0])


def _run_trial(
    strategy: ModelStrategy,
    table: SpectralTable,
    pretreatment_id: int,
    iteration: int,
    seed: int,
    tune_length: int,
    inner_folds: int,
    timeout_s: Optional[float],
    cv_kwargs: Dict[str, Any],
) -> TrialResult:
    """Run one trial; per-trial errors become a failed result, input errors propagate."""
    t0 = time.time()
    try:
        fold = build_fold(table, iteration, seed=seed, **cv_kwargs)
        X = table.spectra
        y = table.reference

        rs = trial_seed(seed, pretreatment_id, iteration)
        tuned = tune(
            strategy, X[fold.train], y[fold.train],
            tune_length=tune_length, inner_folds=inner_folds,
            seed=rs, timeout_s=timeout_s,
        )
        handle = strategy.fit(X[fold.train], y[fold.train], tuned.best_params, random_state=rs)
        predicted = strategy.predict(handle, X[fold.test])
        observed = y[fold.test]

        return TrialResult(
            pretreatment_id=pretreatment_id,
            iteration=iteration,
            hyperparameters=tuned.best_params,
            predictions=pd.DataFrame({
                'unique_id': table.ids[fold.test],
                'observed': observed,
                'predicted': predicted,
            }),
            metrics=regression_metrics(observed, predicted),
            elapsed_s=time.time() - t0,
        )
    except (MalformedInputError, ConfigurationError):
        raise
    except (TrialFailure, EmptyPartitionError) as e:
        tag, message = e.tag, str(e)
    except Exception as e:
        tag, message = TrialFailure.tag, f"{type(e).__name__}: {e}"

    return TrialResult(
        pretreatment_id=pretreatment_id,
        iteration=iteration,
        error=tag,
        message=message,
        elapsed_s=time.time() - t0,
    )


# =============================================================================
# LOOP
# =============================================================================

class TrainEvalLoop:
    """
    Repeated train/evaluate driver.

    Parameters
    ----------
    model_strategy : ModelStrategy or str
        Back-end, or its registry name.
    config : Config, optional
        Project configuration.  If None, uses the defaults.
    n_jobs : int, optional
        Parallel trial workers (default from config, 1).  ``-1`` uses
        every core.
    show_progress : bool
        Display a tqdm progress bar.
    """

    def __init__(
        self,
        model_strategy: Union[ModelStrategy, str],
        config: Optional['Config'] = None,
        n_jobs: Optional[int] = None,
        show_progress: bool = True,
    ):
        if isinstance(model_strategy, str):
            model_strategy = get_model_strategy(model_strategy)
        self.strategy = model_strategy
        self.config = config
        self.n_jobs = n_jobs if n_jobs is not None else (
            config.experiment.n_jobs if config is not None else 1
        )
        self.show_progress = show_progress

    def run(
        self,
        table: SpectralTable,
        pretreatments: Optional[Iterable[PretreatmentLike]] = None,
        num_iterations: Optional[int] = None,
        tune_length: Optional[int] = None,
        scheme: Optional[str] = None,
        stratified: bool = False,
        seed: Optional[int] = None,
        timeout_s: Optional[float] = None,
        cancel_event: Optional[Any] = None,
        **cv_kwargs,
    ) -> RunResult:
        """
        Run all trials.

        Parameters
        ----------
        table : SpectralTable
            Labeled training table.
        pretreatments : iterable, optional
            Pretreatment ids or names.  Default: all thirteen.
        num_iterations : int, optional
            CV iterations per pretreatment (default from config, 10).
        tune_length : int, optional
            Grid size per hyperparameter (default from config, 5).
        scheme : str, optional
            ``'random'``, ``'stratified'`` or ``'structured'`` (default
            from config).
        stratified : bool
            Shorthand for ``scheme='stratified'``.
        seed : int, optional
            Base seed (default from config, 1).
        timeout_s : float, optional
            Per-trial search budget (default from config, unlimited).
        cancel_event : threading.Event, optional
            When set, no further results are collected and the trials
            finished so far are returned with ``cancelled=True``.
        **cv_kwargs
            ``test_proportion``, ``n_bins``, ``group_column``,
            ``test_groups`` for the fold builder.

        Returns
        -------
        RunResult

        Raises
        ------
        MalformedInputError
            If the table is unlabeled, too short for a pretreatment, or
            lacks the group column of a structured scheme.
        ConfigurationError
            On invalid CV options or counts.
        """
        config = self.config
        if not table.has_reference:
            raise MalformedInputError("Training requires a table with a reference column")

        if num_iterations is None:
            num_iterations = config.cv.num_iterations if config else 10
        if num_iterations < 1:
            raise ConfigurationError(f"num_iterations must be >= 1, got {num_iterations}")
        seed = seed if seed is not None else (config.experiment.seed if config else 1)
        tc = config.tuning if config is not None else None
        if tune_length is None:
            tune_length = tc.tune_length if tc else 5
        if tune_length < 1:
            raise ConfigurationError(f"tune_length must be >= 1, got {tune_length}")
        inner_folds = tc.inner_folds if tc else 5
        if timeout_s is None and tc is not None:
            timeout_s = tc.timeout_s

        options = resolve_options(scheme, stratified, seed=seed, config=config, **cv_kwargs)
        check_inputs(table, options)
        scheme = options.scheme
        cv_kwargs = dict(cv_kwargs, scheme=scheme, config=config)

        pretreatments = list(pretreatments) if pretreatments is not None else list(ALL_PRETREATMENTS)
        log_stage_header(
            logger, 'train_eval',
            f"{self.strategy.name} | {len(pretreatments)} pretreatments x "
            f"{num_iterations} iterations ({scheme.value})",
        )

        with LogTimer(logger, "pretreatments"):
            pretreated = pretreat_all(table, pretreatments, config)

        tasks = [
            (pid, iteration)
            for pid in pretreated
            for iteration in range(1, num_iterations + 1)
        ]

        trials: List[TrialResult] = []
        cancelled = False
        total_start = time.time()

        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Run cancelled before start")
            return RunResult(trials=[], cancelled=True, model_method=self.strategy.name)

        parallel = Parallel(n_jobs=self.n_jobs, return_as="generator_unordered")
        outputs = parallel(
            delayed(_run_trial)(
                self.strategy, pretreated[pid], pid, iteration, seed,
                tune_length, inner_folds, timeout_s, cv_kwargs,
            )
            for pid, iteration in tasks
        )
        progress = tqdm(
            total=len(tasks), desc=f"Train/eval ({self.strategy.name})",
            disable=not self.show_progress,
        )
        try:
            for result in outputs:
                trials.append(result)
                progress.update(1)
                if not result.succeeded:
                    logger.warning(
                        "Trial (pretreatment %d, iteration %d) failed [%s]: %s",
                        result.pretreatment_id, result.iteration, result.error, result.message,
                    )
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
        except KeyboardInterrupt:
            cancelled = True
        finally:
            outputs.close()
            progress.close()

        if cancelled:
            logger.warning(
                "Run cancelled: %d of %d trials completed", len(trials), len(tasks),
            )

        trials.sort(key=lambda t: t.key)
        n_failed = sum(not t.succeeded for t in trials)
        logger.info(
            "Train/eval finished: %d trials (%d failed) in %.1f min",
            len(trials), n_failed, (time.time() - total_start) / 60,
        )
        return RunResult(trials=trials, cancelled=cancelled, model_method=self.strategy.name)
