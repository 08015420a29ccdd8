#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Utilities Package for NIRS Modeling
====================================

Shared helpers used across the project:
    - checkpoint: joblib / JSON / CSV save and load, file hashing
    - logging_utils: centralized logging configuration and log helpers
"""

from nirs_modeling.utils.checkpoint import (
    dumps,
    ensure_dir,
    file_hash,
    load_json,
    load_pickle,
    loads,
    save_dataframe,
    save_json,
    save_pickle,
)

from nirs_modeling.utils.logging_utils import (
    LogTimer,
    get_logger,
    log_dataframe_info,
    log_metric,
    log_metrics_dict,
    log_stage_header,
    setup_logging,
)

__all__ = [
    # Checkpoint utilities
    "dumps",
    "loads",
    "ensure_dir",
    "save_pickle",
    "load_pickle",
    "save_json",
    "load_json",
    "save_dataframe",
    "file_hash",
    # Logging utilities
    "LogTimer",
    "get_logger",
    "setup_logging",
    "log_stage_header",
    "log_metric",
    "log_metrics_dict",
    "log_dataframe_info",
]
