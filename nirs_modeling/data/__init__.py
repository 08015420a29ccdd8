#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Data Package for NIRS Modeling
===============================

Modules:
    - table: ``SpectralTable`` data model, schema validation and CSV reader
    - aggregation: collapse repeated scans by mean or median
    - outliers: Mahalanobis-distance outlier filter
"""

from nirs_modeling.data.table import (
    SpectralTable,
    TableSchema,
    format_wavelength,
    parse_wavelength,
    read_spectral_csv,
)
from nirs_modeling.data.aggregation import aggregate
from nirs_modeling.data.outliers import OutlierReport, detect

__all__ = [
    "SpectralTable",
    "TableSchema",
    "format_wavelength",
    "parse_wavelength",
    "read_spectral_csv",
    "aggregate",
    "OutlierReport",
    "detect",
]
