#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Models Package for NIRS Modeling
=================================

Modules:
    - strategies: pluggable regression back-ends (PLS, SVM, RF)
    - hyperparameter_spaces: tuning grids per back-end
    - persistence: trained-model artifacts, save/load and prediction
"""

from nirs_modeling.models.strategies import (
    FittedModel,
    ModelStrategy,
    get_model_strategy,
    list_model_strategies,
)
from nirs_modeling.models.hyperparameter_spaces import (
    get_default_params,
    get_search_space,
)
from nirs_modeling.models.persistence import (
    ModelArtifact,
    load,
    load_model,
    predict,
    save,
    save_model,
)

__all__ = [
    "FittedModel",
    "ModelStrategy",
    "get_model_strategy",
    "list_model_strategies",
    "get_default_params",
    "get_search_space",
    "ModelArtifact",
    "save",
    "load",
    "save_model",
    "load_model",
    "predict",
]
