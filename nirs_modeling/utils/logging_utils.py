#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Logging Utilities for NIRS Modeling
====================================

Centralized logging configuration providing:
    - Consistent formatting across all modules
    - Console output through ``rich`` (or a plain stream handler)
    - Optional log file
    - Stage headers, metric lines, DataFrame summaries and timers

Every module obtains its logger via ``get_logger(__name__)``;
``setup_logging()`` is called once by the application.

Usage:
------
    >>> from nirs_modeling.utils.logging_utils import get_logger, setup_logging
    >>> setup_logging(level='INFO', log_dir='results/logs')
    >>> logger = get_logger(__name__)
    >>> logger.info("Pretreating %d spectra", n_samples)
"""

import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
RICH_FORMAT = '%(message)s'  # RichHandler renders time and level itself

LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

_logging_initialized = False


# =============================================================================
# CORE SETUP
# =============================================================================

def setup_logging(
    level: Union[str, int] = 'INFO',
    log_dir: Optional[Union[str, Path]] = None,
    log_filename: str = 'nirs_modeling.log',
    log_to_console: bool = True,
    log_to_file: bool = True,
    use_rich: bool = True,
    fmt: Optional[str] = None,
    date_fmt: Optional[str] = None,
    capture_warnings: bool = True,
    force: bool = False,
) -> logging.Logger:
    """
    Configure the root logger.

    Only the first call has an effect unless ``force=True``.

    Parameters
    ----------
    level : str or int
        Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
    log_dir : str or Path, optional
        Directory for the log file.  Created if missing.
    log_filename : str
        Name of the log file.
    log_to_console : bool
        Attach a console (stderr) handler.
    log_to_file : bool
        Attach a file handler (requires ``log_dir``).
    use_rich : bool
        Use ``rich.logging.RichHandler`` for the console.
    fmt, date_fmt : str, optional
        Override the format strings.
    capture_warnings : bool
        Route Python ``warnings`` through logging.
    force : bool
        Reconfigure even if logging was already set up.

    Returns
    -------
    logging.Logger
        The root logger.
    """
    global _logging_initialized

    if _logging_initialized and not force:
        return logging.getLogger()

    if isinstance(level, str):
        level = LEVEL_MAP.get(level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    log_fmt = fmt or DEFAULT_FORMAT
    log_date_fmt = date_fmt or DEFAULT_DATE_FORMAT

    if log_to_console:
        root_logger.addHandler(_create_console_handler(
            level=level, use_rich=use_rich, fmt=log_fmt, date_fmt=log_date_fmt,
        ))

    if log_to_file and log_dir is not None:
        root_logger.addHandler(_create_file_handler(
            log_dir=log_dir,
            filename=log_filename,
            level=level,
            fmt=log_fmt,
            date_fmt=log_date_fmt,
        ))

    if capture_warnings:
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.WARNING)

    _suppress_noisy_loggers()
    _logging_initialized = True

    root_logger.debug(
        "Logging initialized — level=%s, console=%s, file=%s",
        logging.getLevelName(level),
        log_to_console,
        log_to_file and log_dir is not None,
    )
    return root_logger


def _create_console_handler(
    level: int,
    use_rich: bool,
    fmt: str,
    date_fmt: str,
) -> logging.Handler:
    """Create the console handler."""
    if use_rich:
        handler = RichHandler(
            level=level,
            console=Console(stderr=True),
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
        handler.setFormatter(logging.Formatter(RICH_FORMAT))
        return handler

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=date_fmt))
    return handler


def _create_file_handler(
    log_dir: Union[str, Path],
    filename: str,
    level: int,
    fmt: str,
    date_fmt: str,
) -> logging.Handler:
    """Create a file handler."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_dir / filename, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=date_fmt))
    return handler


def _suppress_noisy_loggers():
    """Reduce verbosity of third-party loggers."""
    for name in ('matplotlib', 'PIL', 'numba', 'joblib', 'sklearn'):
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# LOGGER FACTORY
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger.

    Calling ``get_logger(__name__)`` keeps the logger hierarchy aligned
    with the package structure.
    """
    return logging.getLogger(name)


# =============================================================================
# STRUCTURED LOG HELPERS
# =============================================================================

def log_stage_header(
    logger: logging.Logger,
    stage_name: str,
    description: str = "",
    width: int = 70,
):
    """
    Log a visually prominent stage header.

    Example Output
    --------------
    ::

        ======================================================================
         STAGE: train_eval — 13 pretreatments x 10 iterations
        ======================================================================
    """
    separator = "=" * width
    title = f" STAGE: {stage_name}"
    if description:
        title += f" — {description}"

    logger.info(separator)
    logger.info(title)
    logger.info(separator)


def log_metric(
    logger: logging.Logger,
    name: str,
    value: Any,
    context: str = "",
    level: int = logging.INFO,
):
    """
    Log a single metric in a grep-friendly format.

    Format: ``[METRIC] <context> | <name> = <value>``

    Examples
    --------
    >>> log_metric(logger, 'RMSE', 0.8132, context='SNV iter-3')
    [METRIC] SNV iter-3 | RMSE = 0.813200
    """
    if isinstance(value, float):
        value_str = f"{value:.6f}"
    else:
        value_str = str(value)

    parts = ["[METRIC]"]
    if context:
        parts.append(f"{context} |")
    parts.append(f"{name} = {value_str}")

    logger.log(level, " ".join(parts))


def log_metrics_dict(
    logger: logging.Logger,
    metrics: Dict[str, Any],
    context: str = "",
    level: int = logging.INFO,
):
    """Log every entry of a metrics dictionary."""
    for name, value in sorted(metrics.items()):
        log_metric(logger, name, value, context=context, level=level)


def log_dataframe_info(
    logger: logging.Logger,
    df: 'pd.DataFrame',
    name: str = "DataFrame",
    level: int = logging.INFO,
):
    """
    Log shape, leading columns and memory footprint of a DataFrame.

    Example Output
    --------------
    ::

        [DF] summary — shape=(13, 31), columns=['pretreatment_id', ...], memory=0.0 MB
    """
    memory_mb = df.memory_usage(deep=True).sum() / (1024 ** 2)
    cols_preview = list(df.columns[:5])
    if len(df.columns) > 5:
        cols_preview.append("...")

    logger.log(
        level,
        "[DF] %s — shape=%s, columns=%s, memory=%.1f MB",
        name, df.shape, cols_preview, memory_mb,
    )


# =============================================================================
# TIMER LOGGING
# =============================================================================

class LogTimer:
    """
    Context manager that logs elapsed time for a code block.

    Examples
    --------
    >>> with LogTimer(logger, "pretreatment 5"):
    ...     pretreat_table(table, 5)
    [TIMER] pretreatment 5: 0.02s
    """

    def __init__(
        self,
        logger: logging.Logger,
        label: str = "",
        level: int = logging.INFO,
    ):
        self.logger = logger
        self.label = label
        self.level = level
        self.elapsed: float = 0.0
        self._start: Optional[float] = None

    def __enter__(self) -> 'LogTimer':
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc):
        self.elapsed = time.perf_counter() - self._start

        if self.elapsed < 60:
            time_str = f"{self.elapsed:.2f}s"
        elif self.elapsed < 3600:
            time_str = f"{self.elapsed / 60:.2f}m"
        else:
            time_str = f"{self.elapsed / 3600:.2f}h"

        self.logger.log(self.level, "[TIMER] %s: %s", self.label, time_str)
        return False
