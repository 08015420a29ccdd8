#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Training Package for NIRS Modeling
===================================

Modules:
    - cv_schemes: random / stratified / structured fold construction
    - tuning: grid search with inner K-fold RMSE
    - metrics: RMSE, Rsquared, RPD, RPIQ, Bias, SEP, CCC
    - loop: parallel (pretreatment, iteration) train/eval trials
    - summary: per-pretreatment statistics and best selection
    - workflow: end-to-end entry points and reports
"""

from nirs_modeling.training.cv_schemes import CVScheme, Fold, build, build_fold
from nirs_modeling.training.metrics import METRIC_NAMES, regression_metrics
from nirs_modeling.training.tuning import TuningResult, tune
from nirs_modeling.training.loop import RunResult, TrainEvalLoop, TrialResult
from nirs_modeling.training.summary import best_hyperparameters, select_best, summarize
from nirs_modeling.training.workflow import (
    ModelingReport,
    test_pretreatments,
    train_best_model,
    train_model,
)

__all__ = [
    "CVScheme",
    "Fold",
    "build",
    "build_fold",
    "METRIC_NAMES",
    "regression_metrics",
    "TuningResult",
    "tune",
    "TrialResult",
    "RunResult",
    "TrainEvalLoop",
    "summarize",
    "select_best",
    "best_hyperparameters",
    "ModelingReport",
    "test_pretreatments",
    "train_model",
    "train_best_model",
]
