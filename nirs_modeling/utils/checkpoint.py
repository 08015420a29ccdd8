#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Checkpoint Utilities for NIRS Modeling
=======================================

Small save/load primitives used by the model persister and the run
reports:
    - joblib serialisation to files and to in-memory blobs
    - JSON with numpy/pandas-aware encoding
    - CSV tables
    - File hashing for integrity checks

Usage:
------
    >>> from nirs_modeling.utils.checkpoint import save_pickle, load_pickle
    >>> save_pickle(artifact, 'results/model.joblib')
    >>> artifact = load_pickle('results/model.joblib')
"""

import hashlib
import io
import json
import pickle
from datetime import datetime
from pathlib import Path
from typing import Any, Union

import joblib
import numpy as np
import pandas as pd


# =============================================================================
# DIRECTORY UTILITIES
# =============================================================================

def ensure_dir(path: Union[str, Path], parents: bool = True) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    If ``path`` has a suffix it is treated as a file path and its
    parent directory is created instead.

    Examples
    --------
    >>> ensure_dir('results/run1')
    PosixPath('results/run1')
    >>> ensure_dir('results/run1/summary.csv')
    PosixPath('results/run1')
    """
    path = Path(path)
    dir_path = path.parent if path.suffix else path
    dir_path.mkdir(parents=parents, exist_ok=True)
    return dir_path


# =============================================================================
# JOBLIB SAVE / LOAD
# =============================================================================

def dumps(data: Any, compress: int = 3) -> bytes:
    """Serialise ``data`` to an in-memory joblib blob."""
    buffer = io.BytesIO()
    joblib.dump(data, buffer, compress=compress, protocol=pickle.HIGHEST_PROTOCOL)
    return buffer.getvalue()


def loads(blob: bytes) -> Any:
    """Inverse of :func:`dumps`."""
    return joblib.load(io.BytesIO(blob))


def save_pickle(
    data: Any,
    filepath: Union[str, Path],
    compress: int = 3,
    protocol: int = pickle.HIGHEST_PROTOCOL,
) -> Path:
    """
    Save data with joblib (handles large arrays and sklearn estimators).

    Parameters
    ----------
    data : Any
        Object to serialize.
    filepath : str or Path
        Destination file path.
    compress : int
        Joblib compression level (0–9).
    protocol : int
        Pickle protocol version.

    Returns
    -------
    Path
        Path to the saved file.
    """
    filepath = Path(filepath)
    ensure_dir(filepath)
    joblib.dump(data, filepath, compress=compress, protocol=protocol)
    return filepath


def load_pickle(filepath: Union[str, Path]) -> Any:
    """
    Load a joblib file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Checkpoint file not found: {filepath}")
    return joblib.load(filepath)


# =============================================================================
# JSON SAVE / LOAD
# =============================================================================

def _json_default_serializer(obj: Any) -> Any:
    """
    Serializer for objects the default JSON encoder rejects.

    Handles: datetime, Path, sets, numpy scalars/arrays, pandas objects.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, set):
        return sorted(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, pd.DataFrame):
        return obj.to_dict(orient='records')
    if isinstance(obj, pd.Series):
        return obj.to_dict()
    return str(obj)


def save_json(
    data: Any,
    filepath: Union[str, Path],
    indent: int = 2,
    sort_keys: bool = False,
) -> Path:
    """Save data to a JSON file with numpy/pandas-aware encoding."""
    filepath = Path(filepath)
    ensure_dir(filepath)

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(
            data, f,
            indent=indent,
            sort_keys=sort_keys,
            ensure_ascii=False,
            default=_json_default_serializer,
        )
    return filepath


def load_json(filepath: Union[str, Path]) -> Any:
    """Load a JSON file."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"JSON file not found: {filepath}")

    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


# =============================================================================
# DATAFRAMES
# =============================================================================

def save_dataframe(df: pd.DataFrame, filepath: Union[str, Path]) -> Path:
    """Write a DataFrame to CSV without the index."""
    filepath = Path(filepath)
    ensure_dir(filepath)
    df.to_csv(filepath, index=False)
    return filepath


# =============================================================================
# INTEGRITY
# =============================================================================

def file_hash(
    filepath: Union[str, Path],
    algorithm: str = 'sha256',
    chunk_size: int = 8192,
) -> str:
    """
    Compute a hex digest of a file.

    Parameters
    ----------
    filepath : str or Path
        File to hash.
    algorithm : str
        Any algorithm accepted by ``hashlib.new``.
    chunk_size : int
        Read chunk size in bytes.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Cannot hash — file not found: {filepath}")

    hasher = hashlib.new(algorithm)
    with open(filepath, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            hasher.update(chunk)
    return hasher.hexdigest()
