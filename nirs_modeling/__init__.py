#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
NIRS Modeling
==============

Chemometric pipeline for near-infrared spectra: outlier filtering, scan
aggregation, spectral pretreatments, repeated cross-validated model
training and model persistence.

Subpackages:
    - data: spectral table, aggregation, outlier filter
    - preprocessing: pretreatment primitives and recipes
    - models: regression strategies, tuning grids, persistence
    - training: CV schemes, tuning, train/eval loop, summaries, workflows
    - utils: logging and checkpoint helpers
"""

__version__ = "0.1.0"
