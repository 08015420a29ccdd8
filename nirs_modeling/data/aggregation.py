#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Scan Aggregation
=================

Collapses repeated scans of the same sample into one row.  Samples are
grouped by the tuple of grouping-key values; spectra and the reference
are reduced elementwise with the same function (mean or median).

Usage:
------
    >>> from nirs_modeling.data.aggregation import aggregate
    >>> per_plot = aggregate(scans, grouping_keys=['study', 'plot'], fn='mean')
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from nirs_modeling.data.table import SpectralTable, TableSchema
from nirs_modeling.exceptions import MalformedInputError
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)

_REDUCERS = {
    'mean': np.mean,
    'median': np.median,
}


def aggregate(
    table: SpectralTable,
    grouping_keys: Sequence[str],
    fn: str = 'mean',
    reference_column: Optional[str] = None,
) -> SpectralTable:
    """
    Reduce every group of rows to a single row.

    Parameters
    ----------
    table : SpectralTable
        Scans to aggregate.
    grouping_keys : sequence of str
        Metadata columns whose value tuple identifies a group.
    fn : {'mean', 'median'}
        Reduction applied to spectra, reference and numeric metadata.
    reference_column : str, optional
        Reference column to reduce.  Defaults to the table's own.

    Returns
    -------
    SpectralTable
        One row per distinct key tuple, in order of first appearance.
        ``unique_id`` is the key values joined with ``'_'``.

    Raises
    ------
    MalformedInputError
        If a grouping key or the reference column is missing.
    ValueError
        If ``fn`` is unknown.
    """
    if fn not in _REDUCERS:
        raise ValueError(
            f"Unknown aggregation function: '{fn}'. Available: {', '.join(_REDUCERS)}"
        )
    grouping_keys = list(grouping_keys)
    if not grouping_keys:
        raise MalformedInputError("At least one grouping key is required")

    metadata = table.metadata
    for key in grouping_keys:
        if key not in metadata.columns:
            raise MalformedInputError(f"Grouping key '{key}' not found", column=key)

    reference_column = reference_column or table.schema.reference_column
    if reference_column is not None and reference_column not in metadata.columns:
        raise MalformedInputError(
            f"Reference column '{reference_column}' not found", column=reference_column,
        )

    reducer = _REDUCERS[fn]
    id_column = table.schema.id_column

    codes = metadata.groupby(grouping_keys, sort=False, dropna=False).ngroup().to_numpy()
    n_groups = int(codes.max()) + 1 if len(codes) else 0

    spectra = np.vstack([
        reducer(table.spectra[codes == g], axis=0) for g in range(n_groups)
    ]) if n_groups else np.empty((0, table.n_wavelengths))

    # Columns other than id, keys and reference
    rest = [c for c in metadata.columns
            if c not in grouping_keys and c != id_column and c != reference_column]
    first_rows = [int(np.flatnonzero(codes == g)[0]) for g in range(n_groups)]

    out = pd.DataFrame({
        id_column: [
            '_'.join(str(metadata.at[i, k]) for k in grouping_keys) for i in first_rows
        ],
    })
    if reference_column is not None:
        ref = metadata[reference_column].to_numpy(dtype=np.float64)
        out[reference_column] = [float(reducer(ref[codes == g])) for g in range(n_groups)]
    for key in grouping_keys:
        out[key] = metadata[key].to_numpy()[first_rows]

    dropped = []
    for col in rest:
        values = metadata[col]
        if pd.api.types.is_numeric_dtype(values):
            arr = values.to_numpy(dtype=np.float64)
            out[col] = [float(reducer(arr[codes == g])) for g in range(n_groups)]
        elif values.groupby(codes).nunique(dropna=False).max() <= 1:
            out[col] = values.to_numpy()[first_rows]
        else:
            dropped.append(col)

    if dropped:
        logger.warning(
            "Dropped metadata columns that vary within a group: %s", ', '.join(dropped),
        )

    logger.info(
        "Aggregated %d rows into %d groups by %s (%s)",
        table.n_samples, n_groups, grouping_keys, fn,
    )

    schema = TableSchema(
        id_column=id_column,
        reference_column=reference_column,
        grouping_columns=tuple(k for k in table.schema.grouping_columns if k in out.columns),
        num_metadata_columns=out.shape[1],
    )
    return SpectralTable(
        metadata=out,
        spectra=spectra,
        wavelengths=table.wavelengths,
        schema=schema,
    )
