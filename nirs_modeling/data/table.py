#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Spectral Table
===============

The shared tabular model: a block of metadata columns (unique id,
optional reference value, grouping keys) followed by one column per
wavelength.

The schema is validated once, when the table is built.  Afterwards the
table is immutable; every transform returns a new table.

Input layout::

    unique_id | reference | study | genotype | X740 | X741 | ... | X1070
    \\________________ metadata _______________/ \\______ spectra ______/

Usage:
------
    >>> from nirs_modeling.data.table import SpectralTable, read_spectral_csv
    >>> table = read_spectral_csv(
    ...     'training.csv', num_metadata_columns=4,
    ...     id_column='unique_id', reference_column='reference',
    ...     grouping_columns=('study', 'genotype'),
    ... )
    >>> table.spectra.shape
    (420, 331)
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from nirs_modeling.exceptions import MalformedInputError
from nirs_modeling.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Optional non-numeric prefix ("X", "nm_", "wl ") followed by the wavelength
_WAVELENGTH_HEADER = re.compile(r'^[^\d\-+]*([-+]?\d+(?:\.\d+)?)$')


# =============================================================================
# SCHEMA
# =============================================================================

@dataclass(frozen=True)
class TableSchema:
    """
    Declared layout of a spectral table.

    Attributes
    ----------
    id_column : str
        Column holding the sample identifier.
    reference_column : str or None
        Column holding the reference trait; None for unlabeled data.
    grouping_columns : tuple of str
        Metadata columns identifying groups (study, genotype, ...).
    num_metadata_columns : int
        Number of leading non-spectral columns.
    """
    id_column: str
    reference_column: Optional[str] = None
    grouping_columns: Tuple[str, ...] = ()
    num_metadata_columns: int = 1

    @property
    def required_columns(self) -> Tuple[str, ...]:
        cols = [self.id_column]
        if self.reference_column is not None:
            cols.append(self.reference_column)
        cols.extend(self.grouping_columns)
        return tuple(cols)


def parse_wavelength(header) -> float:
    """
    Parse a spectral column header into a wavelength.

    Raises
    ------
    MalformedInputError
        If the header does not end in a number.

    Examples
    --------
    >>> parse_wavelength('X740')
    740.0
    >>> parse_wavelength('nm_950.5')
    950.5
    """
    match = _WAVELENGTH_HEADER.match(str(header).strip())
    if match is None:
        raise MalformedInputError(
            f"Cannot parse wavelength from column header '{header}'",
            column=str(header),
        )
    return float(match.group(1))


def format_wavelength(wavelength: float, prefix: str = 'X') -> str:
    """Inverse of :func:`parse_wavelength` (``740.0`` -> ``'X740'``)."""
    return f"{prefix}{float(wavelength):g}"


# =============================================================================
# TABLE
# =============================================================================

@dataclass(frozen=True, eq=False)
class SpectralTable:
    """
    Immutable collection of samples sharing one wavelength grid.

    Attributes
    ----------
    metadata : pd.DataFrame
        One row per sample, schema's metadata columns only.
    spectra : np.ndarray
        Read-only intensity matrix, shape ``(n_samples, n_wavelengths)``.
    wavelengths : np.ndarray
        Read-only wavelength grid, shape ``(n_wavelengths,)``.
    schema : TableSchema
        Column roles.
    """
    metadata: pd.DataFrame
    spectra: np.ndarray
    wavelengths: np.ndarray
    schema: TableSchema = field(default_factory=lambda: TableSchema(id_column='unique_id'))

    def __post_init__(self):
        spectra = np.array(self.spectra, dtype=np.float64, copy=True)
        if spectra.ndim != 2:
            raise MalformedInputError(
                f"Spectra must be 2-D (n_samples, n_wavelengths), got shape {spectra.shape}"
            )
        wavelengths = np.array(self.wavelengths, dtype=np.float64, copy=True).ravel()
        if wavelengths.shape[0] != spectra.shape[1]:
            raise MalformedInputError(
                f"Wavelength grid has {wavelengths.shape[0]} points but spectra "
                f"have {spectra.shape[1]} columns"
            )
        if len(self.metadata) != spectra.shape[0]:
            raise MalformedInputError(
                f"Metadata has {len(self.metadata)} rows but spectra have "
                f"{spectra.shape[0]} rows"
            )
        for col in self.schema.required_columns:
            if col not in self.metadata.columns:
                raise MalformedInputError(f"Missing required column '{col}'", column=col)

        spectra.setflags(write=False)
        wavelengths.setflags(write=False)
        object.__setattr__(self, 'spectra', spectra)
        object.__setattr__(self, 'wavelengths', wavelengths)
        object.__setattr__(self, 'metadata', self.metadata.reset_index(drop=True).copy())

    # ----- Construction --------------------------------------------------

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        num_metadata_columns: int,
        id_column: Optional[str] = None,
        reference_column: Optional[str] = None,
        grouping_columns: Iterable[str] = (),
    ) -> 'SpectralTable':
        """
        Validate a wide DataFrame and build a table from it.

        Parameters
        ----------
        df : pd.DataFrame
            Metadata columns first, then one column per wavelength.
        num_metadata_columns : int
            Number of leading metadata columns (id, reference, keys, ...).
        id_column : str, optional
            Identifier column.  Defaults to the first column.
        reference_column : str, optional
            Reference trait column.  Omit for unlabeled spectra.
        grouping_columns : iterable of str
            Grouping keys among the metadata columns.

        Returns
        -------
        SpectralTable

        Raises
        ------
        MalformedInputError
            Missing columns, unparseable wavelength headers, duplicate
            wavelengths or non-numeric intensities.
        """
        if num_metadata_columns < 1 or num_metadata_columns >= df.shape[1]:
            raise MalformedInputError(
                f"num_metadata_columns={num_metadata_columns} leaves no spectral "
                f"columns in a table with {df.shape[1]} columns"
            )

        meta_cols = [str(c) for c in df.columns[:num_metadata_columns]]
        spectral_cols = list(df.columns[num_metadata_columns:])
        df = df.reset_index(drop=True)
        df.columns = meta_cols + spectral_cols

        schema = TableSchema(
            id_column=id_column or meta_cols[0],
            reference_column=reference_column,
            grouping_columns=tuple(grouping_columns),
            num_metadata_columns=num_metadata_columns,
        )
        for col in schema.required_columns:
            if col not in meta_cols:
                raise MalformedInputError(
                    f"Required column '{col}' is not among the {num_metadata_columns} "
                    f"metadata columns {meta_cols}",
                    column=col,
                )

        wavelengths = np.array([parse_wavelength(c) for c in spectral_cols])
        seen = set()
        for col, wavelength in zip(spectral_cols, wavelengths):
            if wavelength in seen:
                raise MalformedInputError(
                    f"Duplicate wavelength column '{col}'", column=str(col),
                )
            seen.add(wavelength)

        ids = df[schema.id_column].astype(str)
        spectral = df[spectral_cols].apply(pd.to_numeric, errors='coerce')
        cls._check_numeric(df[spectral_cols], spectral, ids)

        metadata = df[meta_cols].copy()
        if schema.reference_column is not None:
            ref = pd.to_numeric(metadata[schema.reference_column], errors='coerce')
            cls._check_numeric(
                metadata[[schema.reference_column]], ref.to_frame(), ids,
            )
            metadata[schema.reference_column] = ref

        missing = metadata.isna().any(axis=1) | spectral.isna().any(axis=1)
        if missing.any():
            logger.warning(
                "Dropping %d of %d rows with missing values", int(missing.sum()), len(df),
            )
        keep = ~missing.to_numpy()
        metadata = metadata.loc[keep].copy()
        metadata[schema.id_column] = ids[keep]

        return cls(
            metadata=metadata,
            spectra=spectral.to_numpy(dtype=np.float64)[keep],
            wavelengths=wavelengths,
            schema=schema,
        )

    @staticmethod
    def _check_numeric(raw: pd.DataFrame, coerced: pd.DataFrame, ids: pd.Series):
        """Raise on cells that are present but not numbers."""
        bad = coerced.isna().to_numpy() & raw.notna().to_numpy()
        if bad.any():
            row, col = np.argwhere(bad)[0]
            raise MalformedInputError(
                f"Non-numeric value {raw.iat[row, col]!r} in column "
                f"'{raw.columns[col]}' for sample '{ids.iat[row]}'",
                column=str(raw.columns[col]),
                sample=str(ids.iat[row]),
            )

    @classmethod
    def from_arrays(
        cls,
        ids: Sequence,
        spectra: np.ndarray,
        wavelengths: Sequence[float],
        reference: Optional[Sequence[float]] = None,
        groups: Optional[dict] = None,
    ) -> 'SpectralTable':
        """
        Build a table directly from arrays.

        ``groups`` maps grouping column names to per-sample values.
        """
        metadata = pd.DataFrame({'unique_id': [str(i) for i in ids]})
        reference_column = None
        if reference is not None:
            metadata['reference'] = np.asarray(reference, dtype=np.float64)
            reference_column = 'reference'
        groups = groups or {}
        for name, values in groups.items():
            metadata[name] = list(values)
        schema = TableSchema(
            id_column='unique_id',
            reference_column=reference_column,
            grouping_columns=tuple(groups),
            num_metadata_columns=metadata.shape[1],
        )
        return cls(metadata=metadata, spectra=spectra, wavelengths=wavelengths, schema=schema)

    # ----- Accessors -----------------------------------------------------

    def __len__(self) -> int:
        return self.spectra.shape[0]

    @property
    def n_samples(self) -> int:
        return self.spectra.shape[0]

    @property
    def n_wavelengths(self) -> int:
        return self.spectra.shape[1]

    @property
    def ids(self) -> np.ndarray:
        return self.metadata[self.schema.id_column].astype(str).to_numpy()

    @property
    def has_reference(self) -> bool:
        return self.schema.reference_column is not None

    @property
    def reference(self) -> Optional[np.ndarray]:
        """Reference values, or None for unlabeled tables."""
        if not self.has_reference:
            return None
        return self.metadata[self.schema.reference_column].to_numpy(dtype=np.float64)

    def column(self, name: str) -> np.ndarray:
        """Values of one metadata column."""
        if name not in self.metadata.columns:
            raise MalformedInputError(f"Unknown metadata column '{name}'", column=name)
        return self.metadata[name].to_numpy()

    # ----- Derived tables ------------------------------------------------

    def subset(self, indices: Union[Sequence[int], np.ndarray]) -> 'SpectralTable':
        """Rows at ``indices`` (integer positions or boolean mask)."""
        indices = np.asarray(indices)
        if indices.dtype == bool:
            indices = np.flatnonzero(indices)
        return SpectralTable(
            metadata=self.metadata.iloc[indices],
            spectra=self.spectra[indices],
            wavelengths=self.wavelengths,
            schema=self.schema,
        )

    def with_spectra(self, spectra: np.ndarray, wavelengths: Sequence[float]) -> 'SpectralTable':
        """Same samples and metadata on a new spectral block."""
        return SpectralTable(
            metadata=self.metadata,
            spectra=spectra,
            wavelengths=wavelengths,
            schema=self.schema,
        )

    def drop_reference(self) -> 'SpectralTable':
        """Unlabeled copy of this table."""
        if not self.has_reference:
            return self
        metadata = self.metadata.drop(columns=[self.schema.reference_column])
        schema = TableSchema(
            id_column=self.schema.id_column,
            reference_column=None,
            grouping_columns=self.schema.grouping_columns,
            num_metadata_columns=metadata.shape[1],
        )
        return SpectralTable(
            metadata=metadata, spectra=self.spectra,
            wavelengths=self.wavelengths, schema=schema,
        )

    def to_dataframe(self, prefix: str = 'X') -> pd.DataFrame:
        """Wide DataFrame in the input layout."""
        spectral = pd.DataFrame(
            np.asarray(self.spectra),
            columns=[format_wavelength(w, prefix) for w in self.wavelengths],
        )
        return pd.concat([self.metadata.reset_index(drop=True), spectral], axis=1)

    def __repr__(self) -> str:
        grid = (
            f"{self.wavelengths[0]:g}-{self.wavelengths[-1]:g}"
            if self.n_wavelengths else "empty"
        )
        return (
            f"SpectralTable(n_samples={self.n_samples}, "
            f"n_wavelengths={self.n_wavelengths}, grid={grid}, "
            f"labeled={self.has_reference})"
        )


# =============================================================================
# READER
# =============================================================================

def read_spectral_csv(
    filepath: Union[str, Path],
    num_metadata_columns: int,
    id_column: Optional[str] = None,
    reference_column: Optional[str] = None,
    grouping_columns: Iterable[str] = (),
    **read_csv_kwargs,
) -> SpectralTable:
    """Read a wide CSV file into a validated :class:`SpectralTable`."""
    df = pd.read_csv(filepath, **read_csv_kwargs)
    logger.info("Read %s — shape=%s", filepath, df.shape)
    return SpectralTable.from_dataframe(
        df,
        num_metadata_columns=num_metadata_columns,
        id_column=id_column,
        reference_column=reference_column,
        grouping_columns=grouping_columns,
    )
