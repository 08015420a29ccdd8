#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Project Configuration
======================

Grouped settings read by every stage of the pipeline::

    config.outlier        - Mahalanobis filter (alpha, window size)
    config.preprocessing  - Savitzky-Golay and gap-segment parameters
    config.cv             - cross-validation scheme and iterations
    config.tuning         - hyperparameter grid and time budget
    config.experiment     - seed, parallelism, model method

Components accept ``config=None`` and then use the same defaults.

Usage:
------
    >>> from nirs_modeling.config import Config
    >>> config = Config()
    >>> config.cv.num_iterations = 5
    >>> config = config.validate()
    >>> Config.from_json(config.to_json()) == config
    True
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from nirs_modeling.exceptions import ConfigurationError

CV_SCHEMES = ('random', 'stratified', 'structured')
BEST_METRICS = ('RMSE', 'Rsquared')


@dataclass
class OutlierConfig:
    alpha: float = 0.05
    window_size: int = 10
    remove: bool = True


@dataclass
class PreprocessingConfig:
    savgol_window: int = 11
    savgol_polyorder: int = 2
    gap_window: int = 11
    gap_segment: int = 5
    sg_derivative_windows: Tuple[int, int] = (5, 11)


@dataclass
class CVConfig:
    scheme: str = 'random'
    test_proportion: float = 0.3
    num_iterations: int = 10
    n_bins: int = 5
    group_column: Optional[str] = None
    test_groups: Optional[Tuple[str, ...]] = None


@dataclass
class TuningConfig:
    tune_length: int = 5
    inner_folds: int = 5
    timeout_s: Optional[float] = None


@dataclass
class ExperimentConfig:
    seed: int = 1
    n_jobs: int = 1
    model_method: str = 'pls'
    best_metric: str = 'RMSE'


@dataclass
class Config:
    """Top-level configuration container."""

    outlier: OutlierConfig = field(default_factory=OutlierConfig)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    cv: CVConfig = field(default_factory=CVConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    experiment: ExperimentConfig = field(default_factory=ExperimentConfig)
    RESULTS_DIR: Path = Path('results')

    _SECTIONS = {
        'outlier': OutlierConfig,
        'preprocessing': PreprocessingConfig,
        'cv': CVConfig,
        'tuning': TuningConfig,
        'experiment': ExperimentConfig,
    }

    # ----- Validation ----------------------------------------------------

    def validate(self) -> 'Config':
        """
        Check value ranges.

        Raises
        ------
        ConfigurationError
            On the first invalid setting.
        """
        if not 0.0 < self.outlier.alpha < 1.0:
            raise ConfigurationError(
                f"outlier.alpha must be in (0, 1), got {self.outlier.alpha}"
            )
        if self.outlier.window_size < 1:
            raise ConfigurationError(
                f"outlier.window_size must be >= 1, got {self.outlier.window_size}"
            )
        for name in ('savgol_window', 'gap_window', 'gap_segment'):
            value = getattr(self.preprocessing, name)
            if value < 1 or value % 2 == 0:
                raise ConfigurationError(
                    f"preprocessing.{name} must be odd and >= 1, got {value}"
                )
        if self.cv.scheme not in CV_SCHEMES:
            raise ConfigurationError(
                f"Unknown cv.scheme: '{self.cv.scheme}'. Available: {', '.join(CV_SCHEMES)}"
            )
        if not 0.0 < self.cv.test_proportion < 1.0:
            raise ConfigurationError(
                f"cv.test_proportion must be in (0, 1), got {self.cv.test_proportion}"
            )
        if self.cv.num_iterations < 1:
            raise ConfigurationError(
                f"cv.num_iterations must be >= 1, got {self.cv.num_iterations}"
            )
        if self.cv.n_bins < 2:
            raise ConfigurationError(f"cv.n_bins must be >= 2, got {self.cv.n_bins}")
        if self.cv.scheme == 'structured' and not self.cv.group_column:
            raise ConfigurationError("cv.scheme='structured' requires cv.group_column")
        if self.tuning.tune_length < 1:
            raise ConfigurationError(
                f"tuning.tune_length must be >= 1, got {self.tuning.tune_length}"
            )
        if self.tuning.inner_folds < 2:
            raise ConfigurationError(
                f"tuning.inner_folds must be >= 2, got {self.tuning.inner_folds}"
            )
        if self.tuning.timeout_s is not None and self.tuning.timeout_s <= 0:
            raise ConfigurationError(
                f"tuning.timeout_s must be positive, got {self.tuning.timeout_s}"
            )
        if self.experiment.best_metric not in BEST_METRICS:
            raise ConfigurationError(
                f"Unknown experiment.best_metric: '{self.experiment.best_metric}'. "
                f"Available: {', '.join(BEST_METRICS)}"
            )
        return self

    # ----- Serialisation -------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = {name: asdict(getattr(self, name)) for name in self._SECTIONS}
        data['RESULTS_DIR'] = str(self.RESULTS_DIR)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """
        Build a config from a (possibly partial) nested dict.

        Unknown sections or keys raise ``ConfigurationError``.
        """
        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            if name == 'RESULTS_DIR':
                kwargs[name] = Path(value)
                continue
            if name not in cls._SECTIONS:
                raise ConfigurationError(f"Unknown config section: '{name}'")
            section_cls = cls._SECTIONS[name]
            try:
                section = section_cls(**value)
            except TypeError as e:
                raise ConfigurationError(f"Invalid keys in section '{name}': {e}") from e
            # JSON turns tuples into lists
            for key, current in list(vars(section).items()):
                if isinstance(current, list):
                    setattr(section, key, tuple(current))
            kwargs[name] = section
        return cls(**kwargs)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'Config':
        return cls.from_dict(json.loads(json_str))
