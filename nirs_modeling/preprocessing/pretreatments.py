#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Pretreatment Recipes for NIR Spectra
=====================================

The thirteen numbered pretreatments evaluated by the modeling pipeline.
Each recipe is an ordered list of technique steps (see
``PreprocessingTechniques``) applied sequentially, carrying the
wavelength grid along so derivatives and windowed filters can drop the
boundary wavelengths they consume.

    ==  ==========  ==========================================
    id  name        steps
    ==  ==========  ==========================================
     1  RAW         (none)
     2  SNV         snv
     3  SNV_D1      snv → 1st difference
     4  SNV_D2      snv → 2nd difference
     5  D1          1st difference
     6  D2          2nd difference
     7  SG          Savitzky-Golay smoothing
     8  SNV_SG      snv → Savitzky-Golay smoothing
     9  GAP_D1      gap-segment 1st derivative
    10  SG_D1_W5    Savitzky-Golay 1st derivative, window 5
    11  SG_D1_W11   Savitzky-Golay 1st derivative, window 11
    12  SG_D2_W5    Savitzky-Golay 2nd derivative, window 5
    13  SG_D2_W11   Savitzky-Golay 2nd derivative, window 11
    ==  ==========  ==========================================

Usage:
------
    >>> from nirs_modeling.preprocessing.pretreatments import (
    ...     Pretreatment, apply, pretreat_table,
    ... )
    >>> out = apply(X, wavelengths, Pretreatment.SNV_D1)
    >>> out.spectra.shape, out.wavelengths[0]
    ((100, 330), 741.0)
    >>>
    >>> snv_table = pretreat_table(table, 'snv')
"""

from enum import IntEnum
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

import numpy as np

from nirs_modeling.data.table import SpectralTable
from nirs_modeling.preprocessing.techniques import PreprocessingTechniques
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# RECIPES
# =============================================================================

class Pretreatment(IntEnum):
    """Numbered pretreatment recipes."""
    RAW = 1
    SNV = 2
    SNV_D1 = 3
    SNV_D2 = 4
    D1 = 5
    D2 = 6
    SG = 7
    SNV_SG = 8
    GAP_D1 = 9
    SG_D1_W5 = 10
    SG_D1_W11 = 11
    SG_D2_W5 = 12
    SG_D2_W11 = 13


_DESCRIPTIONS: Dict[Pretreatment, str] = {
    Pretreatment.RAW:       'Raw data',
    Pretreatment.SNV:       'SNV',
    Pretreatment.SNV_D1:    'SNV + 1st derivative',
    Pretreatment.SNV_D2:    'SNV + 2nd derivative',
    Pretreatment.D1:        '1st derivative',
    Pretreatment.D2:        '2nd derivative',
    Pretreatment.SG:        'Savitzky-Golay smoothing',
    Pretreatment.SNV_SG:    'SNV + Savitzky-Golay smoothing',
    Pretreatment.GAP_D1:    'Gap-segment 1st derivative',
    Pretreatment.SG_D1_W5:  'Savitzky-Golay 1st derivative (window {short})',
    Pretreatment.SG_D1_W11: 'Savitzky-Golay 1st derivative (window {long})',
    Pretreatment.SG_D2_W5:  'Savitzky-Golay 2nd derivative (window {short})',
    Pretreatment.SG_D2_W11: 'Savitzky-Golay 2nd derivative (window {long})',
}

ALL_PRETREATMENTS = tuple(Pretreatment)

PretreatmentLike = Union[Pretreatment, int, str]


class PretreatedSpectra(NamedTuple):
    """Spectra after a pretreatment, with the grid they now live on."""
    spectra: np.ndarray
    wavelengths: np.ndarray


def parse_pretreatment(value: PretreatmentLike) -> Pretreatment:
    """
    Resolve a pretreatment from its id, enum member or name.

    Names are matched case-insensitively against the enum member names
    (``'snv_d1'``, ``'SG'``).

    Raises
    ------
    KeyError
        If the value names no pretreatment.
    """
    if isinstance(value, Pretreatment):
        return value
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        try:
            return Pretreatment(int(value))
        except ValueError:
            pass
    elif isinstance(value, str):
        key = value.strip().upper()
        if key.isdigit():
            return parse_pretreatment(int(key))
        if key in Pretreatment.__members__:
            return Pretreatment[key]

    available = ', '.join(f"{p.value}={p.name}" for p in Pretreatment)
    raise KeyError(f"Unknown pretreatment: {value!r}. Available: {available}")


def _sg_windows(config: Optional['Config']) -> Tuple[int, int]:
    if config is None:
        return 5, 11
    short, long_ = config.preprocessing.sg_derivative_windows
    return int(short), int(long_)


def pretreatment_name(value: PretreatmentLike, config: Optional['Config'] = None) -> str:
    """
    Human-readable description of a pretreatment.

    Savitzky-Golay derivative windows are taken from ``config`` (default
    ``(5, 11)``).
    """
    short, long_ = _sg_windows(config)
    return _DESCRIPTIONS[parse_pretreatment(value)].format(short=short, long=long_)


def recipe_steps(
    pretreatment: PretreatmentLike,
    config: Optional['Config'] = None,
) -> List[str]:
    """
    Technique step names making up a pretreatment.

    The two Savitzky-Golay derivative windows come from
    ``config.preprocessing.sg_derivative_windows`` (default ``(5, 11)``).
    """
    pretreatment = parse_pretreatment(pretreatment)
    short, long_ = _sg_windows(config)
    recipes = {
        Pretreatment.RAW:       [],
        Pretreatment.SNV:       ['snv'],
        Pretreatment.SNV_D1:    ['snv', 'd1'],
        Pretreatment.SNV_D2:    ['snv', 'd2'],
        Pretreatment.D1:        ['d1'],
        Pretreatment.D2:        ['d2'],
        Pretreatment.SG:        ['savgol'],
        Pretreatment.SNV_SG:    ['snv', 'savgol'],
        Pretreatment.GAP_D1:    ['gap_d1'],
        Pretreatment.SG_D1_W5:  [f'savgol_d1_w{short}'],
        Pretreatment.SG_D1_W11: [f'savgol_d1_w{long_}'],
        Pretreatment.SG_D2_W5:  [f'savgol_d2_w{short}'],
        Pretreatment.SG_D2_W11: [f'savgol_d2_w{long_}'],
    }
    return recipes[pretreatment]


# =============================================================================
# PIPELINE
# =============================================================================

class PreprocessingPipeline:
    """
    Sequential pretreatment pipeline.

    Parameters
    ----------
    steps : list of str
        Ordered technique names (see ``PreprocessingTechniques.list_techniques()``).
        ``'none'`` steps are skipped.
    config : Config, optional
        Project configuration.
    name : str, optional
        Human-readable pipeline name.  Auto-generated if None.

    Examples
    --------
    >>> pipe = PreprocessingPipeline(['snv', 'd1'])
    >>> X_out, wl_out = pipe.transform(X, wavelengths)
    """

    def __init__(
        self,
        steps: List[str],
        config: Optional['Config'] = None,
        name: Optional[str] = None,
    ):
        self.steps = [s.strip() for s in steps if s.strip().lower() != 'none']
        self.techniques = PreprocessingTechniques(config)
        self.name = name or self._auto_name()

        available = set(self.techniques.list_techniques())
        for step in self.steps:
            if step not in available:
                raise KeyError(
                    f"Unknown preprocessing step: '{step}'. "
                    f"Available: {sorted(available)}"
                )

    @classmethod
    def for_pretreatment(
        cls,
        pretreatment: PretreatmentLike,
        config: Optional['Config'] = None,
    ) -> 'PreprocessingPipeline':
        """Pipeline implementing one numbered pretreatment."""
        pretreatment = parse_pretreatment(pretreatment)
        return cls(
            steps=recipe_steps(pretreatment, config),
            config=config,
            name=pretreatment.name.lower(),
        )

    def _auto_name(self) -> str:
        if not self.steps:
            return 'raw'
        return '+'.join(self.steps)

    def transform(self, X: np.ndarray, wavelengths: np.ndarray) -> PretreatedSpectra:
        """
        Apply the pipeline to spectral data.

        Parameters
        ----------
        X : np.ndarray
            Spectral data, shape ``(n_samples, n_wavelengths)`` or
            ``(n_wavelengths,)``.
        wavelengths : np.ndarray
            Grid of ``X``.

        Returns
        -------
        PretreatedSpectra
            Processed spectra and their (possibly shortened) grid.

        Raises
        ------
        MalformedInputError
            If the spectra are too short for one of the steps.
        """
        result = np.array(X, dtype=np.float64, copy=True)
        grid = np.asarray(wavelengths, dtype=np.float64)
        if result.shape[-1] != grid.shape[0]:
            raise ValueError(
                f"Spectra have {result.shape[-1]} columns but the grid has "
                f"{grid.shape[0]} wavelengths"
            )

        for step_name in self.steps:
            func = self.techniques.get_technique(step_name)
            result, grid = func(result, grid)
            logger.debug(
                "Pipeline '%s' step '%s' -> %d wavelengths",
                self.name, step_name, grid.shape[0],
            )

        return PretreatedSpectra(spectra=result, wavelengths=np.asarray(grid))

    def __repr__(self) -> str:
        return f"PreprocessingPipeline(name='{self.name}', steps={self.steps})"

    def __str__(self) -> str:
        if not self.steps:
            return "Pipeline: [raw — no preprocessing]"
        return f"Pipeline: {' → '.join(self.steps)}"

    def __len__(self) -> int:
        return len(self.steps)


# =============================================================================
# TABLE-LEVEL API
# =============================================================================

def apply(
    spectra: np.ndarray,
    wavelengths: np.ndarray,
    pretreatment: PretreatmentLike,
    config: Optional['Config'] = None,
) -> PretreatedSpectra:
    """
    Apply one numbered pretreatment to a spectral matrix.

    Returns
    -------
    PretreatedSpectra
        ``(spectra, wavelengths)``; the row count is unchanged, the
        column count equals the length of the returned grid.
    """
    pipe = PreprocessingPipeline.for_pretreatment(pretreatment, config)
    return pipe.transform(spectra, wavelengths)


def pretreat_table(
    table: SpectralTable,
    pretreatment: PretreatmentLike,
    config: Optional['Config'] = None,
) -> SpectralTable:
    """Same samples and metadata with pretreated spectra."""
    out = apply(table.spectra, table.wavelengths, pretreatment, config)
    return table.with_spectra(out.spectra, out.wavelengths)


def pretreat_all(
    table: SpectralTable,
    pretreatments: Optional[Iterable[PretreatmentLike]] = None,
    config: Optional['Config'] = None,
) -> Dict[int, SpectralTable]:
    """
    Pretreat a table with several recipes.

    Parameters
    ----------
    pretreatments : iterable, optional
        Pretreatments to compute.  Default: all thirteen.

    Returns
    -------
    dict
        ``{pretreatment_id: SpectralTable}`` in ascending id order.
    """
    selected = sorted({
        parse_pretreatment(p) for p in (pretreatments or ALL_PRETREATMENTS)
    })
    results: Dict[int, SpectralTable] = {}
    for pretreatment in selected:
        results[int(pretreatment)] = pretreat_table(table, pretreatment, config)
        logger.info(
            "Pretreatment %2d %-12s -> %d wavelengths",
            int(pretreatment), pretreatment.name,
            results[int(pretreatment)].n_wavelengths,
        )
    return results
