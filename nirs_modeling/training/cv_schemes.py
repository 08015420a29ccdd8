#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Cross-Validation Schemes
=========================

Builds one train/test fold per iteration of the repeated holdout:

    random      - ShuffleSplit, a fresh random holdout each iteration
    stratified  - reference values binned by quantile, then
                  StratifiedShuffleSplit on the bin labels so train and
                  test cover the same reference range
    structured  - whole groups (trial, environment, ...) held out
                  together, either a fixed list of test groups or groups
                  drawn by GroupShuffleSplit

Each iteration draws its own seed from ``SeedSequence([seed, iteration])``,
so a fold depends only on the base seed and its iteration number, never
on the order in which folds are built.

Usage:
------
    >>> from nirs_modeling.training.cv_schemes import build
    >>> folds = build(table, 'stratified', num_iterations=10, seed=1)
    >>> folds[0].iteration, len(folds[0].train), len(folds[0].test)
    (1, 70, 30)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import (
    GroupShuffleSplit,
    ShuffleSplit,
    StratifiedShuffleSplit,
)

from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import ConfigurationError, EmptyPartitionError
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)


class CVScheme(str, Enum):
    RANDOM = 'random'
    STRATIFIED = 'stratified'
    STRUCTURED = 'structured'


@dataclass(frozen=True, eq=False)
class Fold:
    """
    Train/test partition of one iteration.

    ``train`` and ``test`` are sorted, disjoint row positions whose union
    is every row of the table the fold was built for.
    """
    iteration: int
    train: np.ndarray
    test: np.ndarray

    def __post_init__(self):
        for name in ('train', 'test'):
            arr = np.sort(np.asarray(getattr(self, name), dtype=np.intp))
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        if np.intersect1d(self.train, self.test).size:
            raise ValueError(f"Fold {self.iteration}: train and test overlap")

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)

    def __repr__(self) -> str:
        return f"Fold(iteration={self.iteration}, n_train={self.n_train}, n_test={self.n_test})"


# =============================================================================
# HELPERS
# =============================================================================

def iteration_seed(seed: int, iteration: int) -> int:
    """Deterministic 32-bit seed for one iteration."""
    return int(np.random.SeedSequence([seed, iteration]).generate_state(1)[0])


def resolve_scheme(
    scheme: Union[str, CVScheme, None] = None,
    stratified: bool = False,
) -> CVScheme:
    """
    Combine a scheme name with the ``stratified`` flag.

    Raises
    ------
    ConfigurationError
        If stratification is combined with structured partitioning, or
        the scheme is unknown.
    """
    try:
        scheme = CVScheme(scheme) if scheme is not None else CVScheme.RANDOM
    except ValueError:
        available = ', '.join(s.value for s in CVScheme)
        raise ConfigurationError(f"Unknown CV scheme: '{scheme}'. Available: {available}")

    if stratified:
        if scheme is CVScheme.STRUCTURED:
            raise ConfigurationError(
                "Stratified and structured partitioning cannot be combined"
            )
        return CVScheme.STRATIFIED
    return scheme


def stratification_bins(y: np.ndarray, n_bins: int, min_per_side: int) -> Optional[np.ndarray]:
    """
    Quantile bin labels for ``y``.

    The bin count starts at ``n_bins`` and is reduced until every bin
    holds at least two samples and there are no more bins than samples
    on the smaller side of the split.  Returns None when no binning with
    two or more bins is possible.
    """
    for bins in range(n_bins, 1, -1):
        if bins > min_per_side:
            continue
        labels = pd.qcut(y, q=bins, labels=False, duplicates='drop')
        labels = np.asarray(labels).astype(int)
        counts = np.bincount(labels)
        if len(counts) >= 2 and counts.min() >= 2:
            if bins != n_bins:
                logger.debug("Stratification reduced to %d bins", len(counts))
            return labels
    return None


def _check_sides(train: np.ndarray, test: np.ndarray, iteration: int):
    if len(train) == 0:
        raise EmptyPartitionError(
            f"Iteration {iteration}: no training samples", iteration=iteration, side='train',
        )
    if len(test) == 0:
        raise EmptyPartitionError(
            f"Iteration {iteration}: no test samples", iteration=iteration, side='test',
        )


# =============================================================================
# OPTIONS
# =============================================================================

@dataclass
class FoldOptions:
    """Fold-builder arguments after config and built-in defaults are applied."""
    scheme: CVScheme
    seed: int
    test_proportion: float
    n_bins: int
    group_column: Optional[str] = None
    test_groups: Optional[Sequence] = None


def resolve_options(
    scheme: Union[str, CVScheme, None] = None,
    stratified: bool = False,
    seed: Optional[int] = None,
    test_proportion: Optional[float] = None,
    n_bins: Optional[int] = None,
    group_column: Optional[str] = None,
    test_groups: Optional[Sequence] = None,
    config: Optional['Config'] = None,
) -> FoldOptions:
    """
    Fill unset fold arguments from ``config.cv`` (and
    ``config.experiment.seed``), then from the built-in defaults.

    Raises
    ------
    ConfigurationError
        On an out-of-range proportion or bin count, or an invalid scheme
        combination.
    """
    cv = config.cv if config is not None else None
    if scheme is None:
        scheme = cv.scheme if cv else 'random'
    if seed is None:
        seed = config.experiment.seed if config is not None else 1
    if test_proportion is None:
        test_proportion = cv.test_proportion if cv else 0.3
    if n_bins is None:
        n_bins = cv.n_bins if cv else 5
    if group_column is None and cv is not None:
        group_column = cv.group_column
    if test_groups is None and cv is not None:
        test_groups = cv.test_groups

    if not 0.0 < test_proportion < 1.0:
        raise ConfigurationError(f"test_proportion must be in (0, 1), got {test_proportion}")
    if n_bins < 2:
        raise ConfigurationError(f"n_bins must be >= 2, got {n_bins}")
    return FoldOptions(
        scheme=resolve_scheme(scheme, stratified),
        seed=seed,
        test_proportion=test_proportion,
        n_bins=n_bins,
        group_column=group_column,
        test_groups=test_groups,
    )


def check_inputs(table: SpectralTable, options: FoldOptions):
    """
    Fail on table/scheme mismatches that would break every iteration.

    Raises
    ------
    ConfigurationError
        If a structured scheme has no group column, or a stratified
        scheme has no reference column.
    MalformedInputError
        If the group column is not in the table.
    """
    if options.scheme is CVScheme.STRUCTURED:
        if not options.group_column:
            raise ConfigurationError("Structured partitioning requires a group_column")
        table.column(options.group_column)
    elif options.scheme is CVScheme.STRATIFIED and not table.has_reference:
        raise ConfigurationError("Stratified partitioning requires a reference column")


# =============================================================================
# BUILDERS
# =============================================================================

def build_fold(
    table: SpectralTable,
    iteration: int,
    scheme: Union[str, CVScheme, None] = None,
    stratified: bool = False,
    seed: Optional[int] = None,
    test_proportion: Optional[float] = None,
    n_bins: Optional[int] = None,
    group_column: Optional[str] = None,
    test_groups: Optional[Sequence] = None,
    config: Optional['Config'] = None,
) -> Fold:
    """
    Build the fold of one iteration.

    Arguments left as None are filled by :func:`resolve_options`.

    Raises
    ------
    EmptyPartitionError
        If the split leaves no train or no test samples.
    ConfigurationError
        On invalid options or a missing reference / group column.
    MalformedInputError
        If the group column is not in the table.
    """
    opts = resolve_options(
        scheme, stratified, seed, test_proportion, n_bins, group_column, test_groups, config,
    )
    check_inputs(table, opts)
    scheme, test_proportion, n_bins = opts.scheme, opts.test_proportion, opts.n_bins
    group_column, test_groups = opts.group_column, opts.test_groups

    n = table.n_samples
    rs = iteration_seed(opts.seed, iteration)
    X_dummy = np.zeros((n, 1))

    if n < 2:
        raise EmptyPartitionError(
            f"Iteration {iteration}: cannot split {n} sample(s)",
            iteration=iteration, side='train' if n == 0 else 'test',
        )

    if scheme is CVScheme.STRUCTURED:
        groups = table.column(group_column).astype(str)
        if test_groups:
            test_mask = np.isin(groups, [str(g) for g in test_groups])
            train, test = np.flatnonzero(~test_mask), np.flatnonzero(test_mask)
        else:
            if len(np.unique(groups)) < 2:
                raise EmptyPartitionError(
                    f"Iteration {iteration}: '{group_column}' has a single group",
                    iteration=iteration, side='test',
                )
            splitter = GroupShuffleSplit(n_splits=1, test_size=test_proportion, random_state=rs)
            train, test = next(splitter.split(X_dummy, groups=groups))

    elif scheme is CVScheme.STRATIFIED:
        n_test = math.ceil(test_proportion * n)
        labels = stratification_bins(table.reference, n_bins, min(n_test, n - n_test))
        if labels is None:
            logger.warning(
                "Iteration %d: too few samples to stratify, using a random split", iteration,
            )
            splitter = ShuffleSplit(n_splits=1, test_size=test_proportion, random_state=rs)
            train, test = next(splitter.split(X_dummy))
        else:
            splitter = StratifiedShuffleSplit(
                n_splits=1, test_size=test_proportion, random_state=rs,
            )
            train, test = next(splitter.split(X_dummy, labels))

    else:
        n_test = math.ceil(test_proportion * n)
        if n_test >= n:
            raise EmptyPartitionError(
                f"Iteration {iteration}: test proportion {test_proportion} of {n} "
                f"samples leaves no training samples",
                iteration=iteration, side='train',
            )
        splitter = ShuffleSplit(n_splits=1, test_size=test_proportion, random_state=rs)
        train, test = next(splitter.split(X_dummy))

    _check_sides(train, test, iteration)
    return Fold(iteration=iteration, train=train, test=test)


def build(
    table: SpectralTable,
    scheme: Union[str, CVScheme, None] = None,
    num_iterations: Optional[int] = None,
    stratified: bool = False,
    seed: Optional[int] = None,
    config: Optional['Config'] = None,
    **kwargs,
) -> List[Fold]:
    """
    Build the folds of iterations ``1..num_iterations``.

    Extra keyword arguments (``test_proportion``, ``n_bins``,
    ``group_column``, ``test_groups``) are passed to :func:`build_fold`.

    Returns
    -------
    list of Fold
        One fold per iteration, in iteration order.
    """
    if num_iterations is None:
        num_iterations = config.cv.num_iterations if config is not None else 10
    if num_iterations < 1:
        raise ConfigurationError(f"num_iterations must be >= 1, got {num_iterations}")
    if scheme is None:
        scheme = config.cv.scheme if config is not None else 'random'
    scheme = resolve_scheme(scheme, stratified)

    folds = [
        build_fold(table, iteration, scheme=scheme, seed=seed, config=config, **kwargs)
        for iteration in range(1, num_iterations + 1)
    ]
    logger.info(
        "Built %d folds (%s): %d train / %d test samples in iteration 1",
        len(folds), scheme.value, folds[0].n_train, folds[0].n_test,
    )
    return folds
