#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Exceptions for the NIRS modeling pipeline.

Fatal errors (``MalformedInputError``, ``IncompatibleWavelengthGridError``)
propagate to the caller.  Per-trial errors (``TrialFailure``,
``TrialTimeout``, ``EmptyPartitionError``) are caught by the train/eval
loop and recorded on the failed ``TrialResult``.
"""

from typing import Optional, Sequence


class NIRSModelingError(Exception):
    """Base exception for the modeling pipeline."""
    pass


class ConfigurationError(NIRSModelingError):
    """Raised when a configuration value is invalid."""
    pass


class MalformedInputError(NIRSModelingError):
    """
    Raised when an input table does not match its declared schema.

    Parameters
    ----------
    message : str
        Description of the problem.
    column : str, optional
        Offending column header.
    sample : str, optional
        Offending sample identifier.
    """

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        sample: Optional[str] = None,
    ):
        super().__init__(message)
        self.column = column
        self.sample = sample


class DegenerateCovarianceError(NIRSModelingError):
    """Raised when the spectral covariance matrix cannot be inverted."""
    pass


class IncompatibleWavelengthGridError(NIRSModelingError):
    """Raised when prediction spectra do not match the trained grid."""

    def __init__(
        self,
        message: str,
        expected: Optional[Sequence[float]] = None,
        actual: Optional[Sequence[float]] = None,
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class TrialFailure(NIRSModelingError):
    """A single (pretreatment, iteration) training trial failed."""

    tag = 'trial_failure'

    def __init__(
        self,
        message: str,
        pretreatment_id: Optional[int] = None,
        iteration: Optional[int] = None,
    ):
        super().__init__(message)
        self.pretreatment_id = pretreatment_id
        self.iteration = iteration


class TrialTimeout(TrialFailure):
    """Hyperparameter search exceeded its time budget."""

    tag = 'timeout'


class EmptyPartitionError(NIRSModelingError):
    """A fold ended up with no training or no test samples."""

    tag = 'empty_partition'

    def __init__(self, message: str, iteration: Optional[int] = None, side: str = ''):
        super().__init__(message)
        self.iteration = iteration
        self.side = side
