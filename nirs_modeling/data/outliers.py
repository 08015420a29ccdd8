#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Mahalanobis Outlier Filter
===========================

Flags spectra that are far from the sample mean in the metric of the
sample covariance.

Algorithm:
    1. Average the spectra over consecutive blocks of ``window_size``
       wavelengths.  This reduces dimensionality so the covariance
       estimate stays invertible when there are more wavelengths than
       samples.
    2. Compute the squared Mahalanobis distance of every windowed
       spectrum to the column mean, using the sample covariance.
    3. Flag samples whose squared distance exceeds the upper
       ``alpha`` quantile of a chi-square distribution with as many
       degrees of freedom as windowed columns.

Usage:
------
    >>> from nirs_modeling.data.outliers import detect
    >>> report = detect(table, window_size=10)
    >>> report.n_outliers
    2
    >>> clean = report.table
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.stats import chi2

from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import DegenerateCovarianceError
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class OutlierReport:
    """
    Result of an outlier scan.

    Attributes
    ----------
    ids : np.ndarray
        Sample identifiers of the scanned table.
    distances : np.ndarray
        Squared Mahalanobis distance per sample (NaN where it could not
        be computed).
    flags : np.ndarray
        Boolean outlier flag per sample.
    threshold : float
        Chi-square critical value the distances were compared to.
    n_features : int
        Number of windowed columns (chi-square degrees of freedom).
    table : SpectralTable
        The input table, without flagged rows when removal was on.
    """
    ids: np.ndarray
    distances: np.ndarray
    flags: np.ndarray
    threshold: float
    n_features: int
    table: SpectralTable

    @property
    def n_outliers(self) -> int:
        return int(self.flags.sum())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'unique_id': self.ids,
            'h_distance': self.distances,
            'outlier': self.flags,
        })


def window_spectra(spectra: np.ndarray, window_size: int) -> np.ndarray:
    """
    Average spectra over consecutive wavelength blocks.

    The trailing block holds the remaining ``n % window_size`` columns.

    Examples
    --------
    >>> window_spectra(np.arange(10.0).reshape(1, -1), 4)
    array([[1.5, 5.5, 8.5]])
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    if window_size == 1:
        return np.asarray(spectra, dtype=np.float64)
    starts = np.arange(0, spectra.shape[1], window_size)
    sums = np.add.reduceat(np.asarray(spectra, dtype=np.float64), starts, axis=1)
    widths = np.diff(np.append(starts, spectra.shape[1]))
    return sums / widths


def mahalanobis_distances(X: np.ndarray) -> np.ndarray:
    """
    Squared Mahalanobis distance of each row of ``X`` to the column mean.

    Raises
    ------
    DegenerateCovarianceError
        If the sample covariance is singular or not finite.
    """
    n_samples, n_features = X.shape
    finite_rows = np.all(np.isfinite(X), axis=1)
    if finite_rows.sum() <= n_features:
        raise DegenerateCovarianceError(
            f"Covariance of {n_features} features is singular with only "
            f"{int(finite_rows.sum())} complete samples; increase window_size"
        )

    X_ok = X[finite_rows]
    center = X_ok.mean(axis=0)
    cov = np.atleast_2d(np.cov(X_ok, rowvar=False))

    if not np.all(np.isfinite(cov)) or np.linalg.matrix_rank(cov) < n_features:
        raise DegenerateCovarianceError(
            f"Covariance matrix of {n_features} windowed features is singular; "
            f"increase window_size"
        )
    precision = np.linalg.inv(cov)

    distances = np.full(n_samples, np.nan)
    diff = X_ok - center
    distances[finite_rows] = np.einsum('ij,jk,ik->i', diff, precision, diff)
    return distances


def detect(
    table: SpectralTable,
    window_size: Optional[int] = None,
    alpha: Optional[float] = None,
    remove: Optional[bool] = None,
    config: Optional['Config'] = None,
) -> OutlierReport:
    """
    Scan a table for multivariate outliers.

    Parameters
    ----------
    table : SpectralTable
        Spectra to scan.
    window_size : int, optional
        Wavelengths averaged per window (default from config, 10).
    alpha : float, optional
        Significance level of the chi-square cut-off (default 0.05).
    remove : bool, optional
        Drop flagged rows from the returned table (default True).
        When False, distances and flags are reported only.
    config : Config, optional
        Project configuration providing the defaults.

    Returns
    -------
    OutlierReport

    Raises
    ------
    DegenerateCovarianceError
        If the covariance cannot be inverted for any sample.
    ValueError
        If ``window_size`` < 1 or ``alpha`` is outside (0, 1).
    """
    oc = config.outlier if config is not None else None
    if window_size is None:
        window_size = oc.window_size if oc else 10
    alpha = alpha if alpha is not None else (oc.alpha if oc else 0.05)
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")
    remove = remove if remove is not None else (oc.remove if oc else True)

    X = window_spectra(table.spectra, window_size)
    distances = mahalanobis_distances(X)

    n_features = X.shape[1]
    threshold = float(chi2.ppf(1.0 - alpha, df=n_features))

    unknown = ~np.isfinite(distances)
    if unknown.any():
        logger.warning(
            "Mahalanobis distance unavailable for %d samples: %s",
            int(unknown.sum()), ', '.join(table.ids[unknown][:10]),
        )
    flags = np.zeros(len(distances), dtype=bool)
    flags[~unknown] = distances[~unknown] > threshold

    logger.info(
        "Outlier scan: %d of %d samples flagged (window=%d, df=%d, alpha=%.3f, "
        "threshold=%.2f)",
        int(flags.sum()), table.n_samples, window_size, n_features, alpha, threshold,
    )

    out_table = table
    if remove and flags.any():
        out_table = table.subset(~flags)
        logger.info("Removed outliers: %s", ', '.join(table.ids[flags]))

    return OutlierReport(
        ids=table.ids,
        distances=distances,
        flags=flags,
        threshold=threshold,
        n_features=n_features,
        table=out_table,
    )
