#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Pretreatment Primitives for NIR Spectra
========================================

Stateless signal operations that the pretreatment recipes are composed
from.  Every method operates on either:
    - a single 1-D spectrum (``(n_wavelengths,)``)
    - a 2-D spectral matrix (``(n_samples, n_wavelengths)``)

and takes the current wavelength grid alongside the intensities::

    X_out, wavelengths_out = tech.method(X, wavelengths, **kwargs)

Operations that need neighbours (differences, Savitzky-Golay windows,
gap-segment derivatives) drop the boundary wavelengths that lack enough
neighbours instead of padding them, so the returned grid can be shorter
than the input grid.

Technique Categories:
    1. Normalization — SNV
    2. Smoothing     — Savitzky-Golay (valid region only)
    3. Derivatives   — finite differences, Savitzky-Golay derivatives,
                       gap-segment derivatives

Usage:
------
    >>> from nirs_modeling.preprocessing.techniques import PreprocessingTechniques
    >>> tech = PreprocessingTechniques(config)
    >>> X_snv, wl = tech.snv(X, wavelengths)
    >>> X_d1, wl_d1 = tech.finite_difference(X, wavelengths, order=1)
    >>> X_sg, wl_sg = tech.savgol(X, wavelengths, window_length=11)
"""

from typing import Optional, Tuple

import numpy as np
from scipy.signal import savgol_filter

from nirs_modeling.exceptions import MalformedInputError
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)

Grid = np.ndarray


# =============================================================================
# HELPERS
# =============================================================================

def _ensure_2d(X: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Ensure X is 2-D.  Returns (X_2d, was_1d).

    If input is 1-D, it is reshaped to ``(1, n_features)`` and
    ``was_1d=True`` so the caller can squeeze back if needed.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        return X.reshape(1, -1), True
    return X, False


def _maybe_squeeze(X: np.ndarray, was_1d: bool) -> np.ndarray:
    """Squeeze back to 1-D if the original input was 1-D."""
    if was_1d:
        return X.squeeze(axis=0)
    return X


def _require_points(n_points: int, needed: int, what: str):
    if n_points < needed:
        raise MalformedInputError(
            f"{what} needs at least {needed} wavelengths, spectrum has {n_points}"
        )


def _check_window(window_length: int, name: str = 'window_length'):
    if window_length < 1 or window_length % 2 == 0:
        raise ValueError(f"{name} must be odd and >= 1, got {window_length}")


# =============================================================================
# PREPROCESSING TECHNIQUES
# =============================================================================

class PreprocessingTechniques:
    """
    Collection of spectral pretreatment primitives.

    Parameters
    ----------
    config : Config, optional
        Project configuration.  If None, uses the defaults below.
    """

    def __init__(self, config: Optional['Config'] = None):
        self.config = config

        if config is not None:
            pp = config.preprocessing
            self.savgol_window = pp.savgol_window
            self.savgol_polyorder = pp.savgol_polyorder
            self.gap_window = pp.gap_window
            self.gap_segment = pp.gap_segment
        else:
            self.savgol_window = 11
            self.savgol_polyorder = 2
            self.gap_window = 11
            self.gap_segment = 5

    # =====================================================================
    # 1.  NORMALIZATION
    # =====================================================================

    def snv(self, X: np.ndarray, wavelengths: Grid) -> Tuple[np.ndarray, Grid]:
        """
        Standard Normal Variate (SNV) normalization.

        Each spectrum is centred on its own mean and scaled by its own
        standard deviation across wavelengths::

            X_snv[i] = (X[i] - mean(X[i])) / std(X[i])

        A flat spectrum (zero standard deviation) is only centred.
        The wavelength grid is unchanged.
        """
        X, was_1d = _ensure_2d(X)
        mean = X.mean(axis=1, keepdims=True)
        std = X.std(axis=1, keepdims=True)
        std = np.where(std < 1e-12, 1.0, std)
        result = (X - mean) / std
        return _maybe_squeeze(result, was_1d), np.asarray(wavelengths)

    # =====================================================================
    # 2.  SMOOTHING / SAVITZKY-GOLAY
    # =====================================================================

    def savgol(
        self,
        X: np.ndarray,
        wavelengths: Grid,
        window_length: Optional[int] = None,
        polyorder: Optional[int] = None,
        deriv: int = 0,
    ) -> Tuple[np.ndarray, Grid]:
        """
        Savitzky-Golay smoothing or differentiation.

        Each point is replaced by the value (or derivative) at the centre
        of a least-squares polynomial fitted over a sliding window.  The
        ``window_length // 2`` points at each end, which have no full
        window, are dropped.

        Parameters
        ----------
        X : np.ndarray
            1-D or 2-D spectral data.
        wavelengths : np.ndarray
            Grid of ``X``.
        window_length : int, optional
            Odd window length (default from config, 11).
        polyorder : int, optional
            Polynomial order (default from config, 2).  Raised to
            ``deriv`` when lower.
        deriv : int
            Derivative order (0 = smoothing).

        Returns
        -------
        (np.ndarray, np.ndarray)
            Filtered spectra and their shortened grid.
        """
        window_length = window_length or self.savgol_window
        polyorder = polyorder if polyorder is not None else self.savgol_polyorder
        polyorder = max(polyorder, deriv)
        _check_window(window_length)
        if polyorder >= window_length:
            raise ValueError(
                f"polyorder ({polyorder}) must be less than window_length ({window_length})"
            )

        X, was_1d = _ensure_2d(X)
        n_points = X.shape[1]
        _require_points(n_points, window_length, f"Savitzky-Golay window {window_length}")

        half = window_length // 2
        filtered = savgol_filter(
            X, window_length=window_length, polyorder=polyorder,
            deriv=deriv, axis=1,
        )
        result = filtered[:, half:n_points - half]
        return _maybe_squeeze(result, was_1d), np.asarray(wavelengths)[half:n_points - half]

    # =====================================================================
    # 3.  DERIVATIVES
    # =====================================================================

    def finite_difference(
        self,
        X: np.ndarray,
        wavelengths: Grid,
        order: int = 1,
        lag: int = 1,
    ) -> Tuple[np.ndarray, Grid]:
        """
        Finite-difference derivative.

        Each pass replaces ``x[j]`` by ``x[j + lag] - x[j]``; ``order``
        passes are applied.  Output points are labelled with the later
        wavelength of each pair, so ``lag * order`` leading wavelengths
        are dropped.
        """
        if order < 1 or lag < 1:
            raise ValueError(f"order and lag must be >= 1, got order={order}, lag={lag}")

        X, was_1d = _ensure_2d(X)
        _require_points(X.shape[1], lag * order + 1, f"Difference of order {order}")

        result = X
        for _ in range(order):
            result = result[:, lag:] - result[:, :-lag]
        return _maybe_squeeze(result, was_1d), np.asarray(wavelengths)[lag * order:]

    def gap_segment_derivative(
        self,
        X: np.ndarray,
        wavelengths: Grid,
        gap: Optional[int] = None,
        segment: Optional[int] = None,
        order: int = 1,
    ) -> Tuple[np.ndarray, Grid]:
        """
        Gap-segment (Norris-Williams) derivative.

        Each pass first averages the spectrum over a centred ``segment``,
        then takes the difference between the points ``gap // 2`` to
        either side, divided by their distance in points.  Boundary
        points lacking a full segment or gap are dropped.

        Parameters
        ----------
        gap : int, optional
            Odd gap window (default from config, 11).
        segment : int, optional
            Odd segment length (default from config, 5).
        order : int
            Derivative order (number of passes).
        """
        gap = gap or self.gap_window
        segment = segment or self.gap_segment
        _check_window(gap, 'gap')
        _check_window(segment, 'segment')
        if gap < 3:
            raise ValueError(f"gap must be >= 3, got {gap}")

        X, was_1d = _ensure_2d(X)
        wavelengths = np.asarray(wavelengths)
        seg_half = segment // 2
        gap_half = gap // 2
        _require_points(
            X.shape[1], order * (segment + gap - 2) + 1,
            f"Gap-segment derivative (gap={gap}, segment={segment})",
        )

        result = X
        for _ in range(order):
            if segment > 1:
                kernel = np.ones(segment) / segment
                result = np.apply_along_axis(
                    lambda row: np.convolve(row, kernel, mode='valid'), 1, result,
                )
                wavelengths = wavelengths[seg_half:len(wavelengths) - seg_half]
            result = (result[:, 2 * gap_half:] - result[:, :-2 * gap_half]) / (2 * gap_half)
            wavelengths = wavelengths[gap_half:len(wavelengths) - gap_half]

        return _maybe_squeeze(result, was_1d), wavelengths

    # =====================================================================
    # REGISTRY - maps string names to callables
    # =====================================================================

    def get_technique(self, name: str):
        """
        Get a primitive by name.

        Returns
        -------
        callable
            Function ``(X, wavelengths) -> (X_out, wavelengths_out)``.

        Raises
        ------
        KeyError
            If the name is unknown.
        """
        registry = self._build_registry()
        if name not in registry:
            available = ', '.join(sorted(registry.keys()))
            raise KeyError(
                f"Unknown technique: '{name}'. Available: {available}"
            )
        return registry[name]

    def _build_registry(self):
        """Build name → callable mapping."""
        windows = (
            tuple(self.config.preprocessing.sg_derivative_windows)
            if self.config is not None else (5, 11)
        )
        registry = {
            'identity': lambda X, wl: (np.array(X, dtype=np.float64), np.asarray(wl)),
            'snv':      self.snv,
            'd1':       lambda X, wl: self.finite_difference(X, wl, order=1),
            'd2':       lambda X, wl: self.finite_difference(X, wl, order=2),
            'savgol':   self.savgol,
            'gap_d1':   lambda X, wl: self.gap_segment_derivative(X, wl, order=1),
        }
        for w in windows:
            registry[f'savgol_d1_w{w}'] = (
                lambda X, wl, w=w: self.savgol(X, wl, window_length=w, deriv=1)
            )
            registry[f'savgol_d2_w{w}'] = (
                lambda X, wl, w=w: self.savgol(X, wl, window_length=w, deriv=2)
            )
        return registry

    def list_techniques(self):
        """Return sorted list of available technique names."""
        return sorted(self._build_registry().keys())
