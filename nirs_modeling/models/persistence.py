#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Model Persistence and Prediction
=================================

A trained model is stored together with everything needed to apply it
to new spectra: the pretreatment id, the tuned hyperparameters, the
wavelength grid it was trained on (before and after pretreatment) and
the pretreatment settings.

Usage:
------
    >>> from nirs_modeling.models.persistence import save_model, load_model, predict
    >>> save_model(artifact, 'results/protein_model.joblib')
    >>> artifact = load_model('results/protein_model.joblib')
    >>> predictions = predict(artifact, new_table)
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from nirs_modeling import __version__
from nirs_modeling.config import Config
from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import IncompatibleWavelengthGridError
from nirs_modeling.models.strategies import get_model_strategy
from nirs_modeling.preprocessing.pretreatments import apply, pretreatment_name
from nirs_modeling.utils.checkpoint import (
    dumps,
    file_hash,
    load_pickle,
    loads,
    save_pickle,
)
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class ModelArtifact:
    """
    Self-contained trained model.

    Attributes
    ----------
    pretreatment_id : int
        Pretreatment applied before the model.
    hyperparameters : dict
        Tuned parameters the model was fitted with.
    model_method : str
        Strategy name (``'pls'``, ``'svm_radial'``, ...).
    model : FittedModel
        Opaque handle returned by the strategy's ``fit``.
    input_wavelengths : np.ndarray
        Grid new spectra must be on.
    model_wavelengths : np.ndarray
        Grid after pretreatment (the model's feature columns).
    settings : dict
        ``Config.to_dict()`` snapshot used for pretreatment.
    training_summary : dict
        Free-form training statistics (sample count, CV summary row, ...).
    created_at : str
        ISO timestamp.
    version : str
        Package version that produced the artifact.
    """
    pretreatment_id: int
    hyperparameters: Dict[str, Any]
    model_method: str
    model: Any
    input_wavelengths: np.ndarray
    model_wavelengths: np.ndarray
    settings: Dict[str, Any] = field(default_factory=dict)
    training_summary: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    version: str = __version__

    @property
    def config(self) -> Optional[Config]:
        return Config.from_dict(self.settings) if self.settings else None

    def describe(self) -> Dict[str, Any]:
        return {
            'model_method': self.model_method,
            'pretreatment_id': self.pretreatment_id,
            'pretreatment_name': pretreatment_name(self.pretreatment_id, self.config),
            'hyperparameters': self.hyperparameters,
            'n_input_wavelengths': len(self.input_wavelengths),
            'n_model_wavelengths': len(self.model_wavelengths),
            'created_at': self.created_at,
            'version': self.version,
        }

    def __repr__(self) -> str:
        return (
            f"ModelArtifact(model_method='{self.model_method}', "
            f"pretreatment_id={self.pretreatment_id}, "
            f"hyperparameters={self.hyperparameters})"
        )


# =============================================================================
# SERIALISATION
# =============================================================================

def save(artifact: ModelArtifact) -> bytes:
    """Serialise an artifact to bytes."""
    return dumps(artifact)


def load(blob: bytes) -> ModelArtifact:
    """
    Restore an artifact serialised by :func:`save`.

    Raises
    ------
    TypeError
        If the blob holds something other than a ``ModelArtifact``.
    """
    artifact = loads(blob)
    if not isinstance(artifact, ModelArtifact):
        raise TypeError(f"Expected ModelArtifact, got {type(artifact).__name__}")
    return artifact


def save_model(artifact: ModelArtifact, filepath: Union[str, Path]) -> Path:
    """Write an artifact to disk and log its checksum."""
    path = save_pickle(artifact, filepath)
    logger.info(
        "Saved %s model (pretreatment %d) to %s [sha256=%s]",
        artifact.model_method, artifact.pretreatment_id, path, file_hash(path)[:12],
    )
    return path


def load_model(filepath: Union[str, Path]) -> ModelArtifact:
    """Read an artifact written by :func:`save_model`."""
    artifact = load_pickle(filepath)
    if not isinstance(artifact, ModelArtifact):
        raise TypeError(f"Expected ModelArtifact in {filepath}, got {type(artifact).__name__}")
    if artifact.version != __version__:
        logger.warning(
            "Model was saved by version %s, running %s", artifact.version, __version__,
        )
    return artifact


# =============================================================================
# PREDICTION
# =============================================================================

def check_grid(expected: np.ndarray, actual: np.ndarray, atol: float = 1e-6):
    """
    Raise unless two wavelength grids are the same.

    Raises
    ------
    IncompatibleWavelengthGridError
    """
    expected = np.asarray(expected, dtype=np.float64)
    actual = np.asarray(actual, dtype=np.float64)
    if expected.shape != actual.shape or not np.allclose(expected, actual, rtol=0.0, atol=atol):
        raise IncompatibleWavelengthGridError(
            f"Wavelength grid mismatch: model expects {len(expected)} wavelengths "
            f"({expected[0]:g}-{expected[-1]:g}), got {len(actual)}"
            + (f" ({actual[0]:g}-{actual[-1]:g})" if len(actual) else ""),
            expected=expected,
            actual=actual,
        )


def predict(artifact: ModelArtifact, new_table: SpectralTable) -> pd.DataFrame:
    """
    Predict reference values for new spectra.

    Parameters
    ----------
    artifact : ModelArtifact
        Trained model.
    new_table : SpectralTable
        Spectra on the artifact's input grid.  A reference column, if
        present, is reported as ``observed``.

    Returns
    -------
    pd.DataFrame
        Columns ``unique_id, pretreatment_id, observed, predicted``, one
        row per sample in input order.  ``observed`` is NaN for an
        unlabeled table.

    Raises
    ------
    IncompatibleWavelengthGridError
        If the table's grid differs from the training grid.
    """
    check_grid(artifact.input_wavelengths, new_table.wavelengths)

    pretreated = apply(
        new_table.spectra, new_table.wavelengths,
        artifact.pretreatment_id, artifact.config,
    )
    check_grid(artifact.model_wavelengths, pretreated.wavelengths)

    strategy = get_model_strategy(artifact.model_method)
    predicted = strategy.predict(artifact.model, pretreated.spectra)

    logger.info(
        "Predicted %d samples with %s (pretreatment %d)",
        new_table.n_samples, artifact.model_method, artifact.pretreatment_id,
    )
    observed = (
        new_table.reference if new_table.has_reference
        else np.full(new_table.n_samples, np.nan)
    )
    return pd.DataFrame({
        'unique_id': new_table.ids,
        'pretreatment_id': artifact.pretreatment_id,
        'observed': observed,
        'predicted': predicted,
    })
