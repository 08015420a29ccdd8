#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Preprocessing Package for NIRS Modeling
========================================

Spectral pretreatments evaluated as a first-class experimental variable.

Modules:
    - techniques: Individual pretreatment primitives (SNV, finite
      differences, Savitzky-Golay filters, gap-segment derivatives)
    - pretreatments: The thirteen numbered recipes built from those
      primitives, and table-level application

Usage:
------
    >>> from nirs_modeling.preprocessing import (
    ...     Pretreatment, apply, pretreat_all,
    ... )
    >>>
    >>> out = apply(X, wavelengths, Pretreatment.SG_D1_W11)
    >>> tables = pretreat_all(table, [1, 2, 11])
"""

from nirs_modeling.preprocessing.techniques import PreprocessingTechniques
from nirs_modeling.preprocessing.pretreatments import (
    ALL_PRETREATMENTS,
    PretreatedSpectra,
    Pretreatment,
    PreprocessingPipeline,
    apply,
    parse_pretreatment,
    pretreat_all,
    pretreat_table,
    pretreatment_name,
    recipe_steps,
)

__all__ = [
    "PreprocessingTechniques",
    "PreprocessingPipeline",
    "Pretreatment",
    "PretreatedSpectra",
    "ALL_PRETREATMENTS",
    "apply",
    "parse_pretreatment",
    "pretreat_all",
    "pretreat_table",
    "pretreatment_name",
    "recipe_steps",
]
