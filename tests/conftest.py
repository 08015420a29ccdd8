"""
Shared fixtures for the nirs_modeling test suite.

All data is synthetic; nothing is read from outside ``tmp_path``.
"""

import numpy as np
import pandas as pd
import pytest

from nirs_modeling.config import Config
from nirs_modeling.data.table import SpectralTable


WAVELENGTHS = np.arange(740.0, 1071.0)  # 331 points, 1 nm step


def make_linear_spectra(n_samples=50, seed=0, noise=0.001, wavelengths=WAVELENGTHS):
    """
    Spectra with a reference value encoded linearly in one absorption band.

    Returns ``(X, y)`` with ``y`` uniform in [10, 40].
    """
    rng = np.random.RandomState(seed)
    y = rng.uniform(10.0, 40.0, size=n_samples)
    baseline = 0.5 + 0.0005 * (wavelengths - wavelengths[0])
    band = np.exp(-0.5 * ((wavelengths - 900.0) / 20.0) ** 2)
    X = baseline + 0.01 * y[:, None] * band + rng.normal(0.0, noise, (n_samples, len(wavelengths)))
    return X, y


@pytest.fixture
def wavelengths():
    return WAVELENGTHS.copy()


@pytest.fixture
def linear_table():
    """50 labeled samples with a learnable linear signal."""
    X, y = make_linear_spectra()
    return SpectralTable.from_arrays(
        ids=[f"S{i:03d}" for i in range(len(y))],
        spectra=X,
        wavelengths=WAVELENGTHS,
        reference=y,
    )


@pytest.fixture
def grouped_table():
    """60 labeled samples in four studies of fifteen plots each."""
    X, y = make_linear_spectra(n_samples=60, seed=1)
    studies = np.repeat(['A', 'B', 'C', 'D'], 15)
    return SpectralTable.from_arrays(
        ids=[f"S{i:03d}" for i in range(60)],
        spectra=X,
        wavelengths=WAVELENGTHS,
        reference=y,
        groups={'study': studies},
    )


@pytest.fixture
def wide_frame():
    """Input-layout DataFrame: 3 metadata columns then 20 spectral columns."""
    rng = np.random.RandomState(3)
    n = 8
    spectral = pd.DataFrame(
        rng.uniform(0.2, 0.8, (n, 20)),
        columns=[f"X{w}" for w in range(740, 760)],
    )
    meta = pd.DataFrame({
        'unique_id': [f"P{i}" for i in range(n)],
        'reference': rng.uniform(10, 40, n),
        'study': ['s1', 's1', 's2', 's2', 's3', 's3', 's4', 's4'],
    })
    return pd.concat([meta, spectral], axis=1)


@pytest.fixture
def fast_config():
    """Config with small grids and few iterations for quick runs."""
    config = Config()
    config.cv.num_iterations = 3
    config.tuning.tune_length = 3
    config.tuning.inner_folds = 3
    return config.validate()


@pytest.fixture
def spectra_factory():
    """``make_linear_spectra`` for tests that need custom sizes."""
    return make_linear_spectra
