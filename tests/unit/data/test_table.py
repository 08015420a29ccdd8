"""Tests for nirs_modeling.data.table."""

import numpy as np
import pytest

from nirs_modeling.data.table import (
    SpectralTable,
    format_wavelength,
    parse_wavelength,
    read_spectral_csv,
)
from nirs_modeling.exceptions import MalformedInputError


class TestParseWavelength:
    """Tests for spectral header parsing."""

    @pytest.mark.parametrize("header, expected", [
        ('X740', 740.0),
        ('nm_950.5', 950.5),
        ('1100', 1100.0),
        ('wl 1002', 1002.0),
    ])
    def test_valid_headers(self, header, expected):
        """Prefix token followed by a number parses to that number."""
        assert parse_wavelength(header) == expected

    def test_invalid_header_names_column(self):
        """An unparseable header raises with the header attached."""
        with pytest.raises(MalformedInputError) as exc_info:
            parse_wavelength('moisture')
        assert exc_info.value.column == 'moisture'

    def test_format_is_inverse(self):
        """format_wavelength output parses back to the same value."""
        for w in (740.0, 950.5, 1100.0):
            assert parse_wavelength(format_wavelength(w)) == w


class TestFromDataframe:
    """Tests for SpectralTable.from_dataframe validation."""

    def test_basic_layout(self, wide_frame):
        """Metadata and spectra are split at num_metadata_columns."""
        table = SpectralTable.from_dataframe(
            wide_frame, num_metadata_columns=3,
            id_column='unique_id', reference_column='reference',
            grouping_columns=('study',),
        )
        assert table.n_samples == 8
        assert table.n_wavelengths == 20
        np.testing.assert_array_equal(table.wavelengths, np.arange(740.0, 760.0))
        np.testing.assert_allclose(table.reference, wide_frame['reference'].to_numpy())
        assert list(table.ids) == [f"P{i}" for i in range(8)]

    def test_spectra_are_read_only(self, wide_frame):
        """The spectral block cannot be modified in place."""
        table = SpectralTable.from_dataframe(wide_frame, num_metadata_columns=3)
        with pytest.raises(ValueError):
            table.spectra[0, 0] = 1.0

    def test_missing_reference_column(self, wide_frame):
        """A declared reference column that is absent is reported by name."""
        with pytest.raises(MalformedInputError) as exc_info:
            SpectralTable.from_dataframe(
                wide_frame, num_metadata_columns=3, reference_column='protein',
            )
        assert exc_info.value.column == 'protein'

    def test_bad_spectral_header(self, wide_frame):
        """A spectral header without a number is rejected."""
        df = wide_frame.rename(columns={'X745': 'notes'})
        with pytest.raises(MalformedInputError) as exc_info:
            SpectralTable.from_dataframe(df, num_metadata_columns=3)
        assert exc_info.value.column == 'notes'

    def test_non_numeric_intensity(self, wide_frame):
        """A text cell in the spectra names its column and sample."""
        df = wide_frame.copy()
        df['X750'] = df['X750'].astype(object)
        df.loc[2, 'X750'] = 'n/a'
        with pytest.raises(MalformedInputError) as exc_info:
            SpectralTable.from_dataframe(df, num_metadata_columns=3)
        assert exc_info.value.column == 'X750'
        assert exc_info.value.sample == 'P2'

    def test_rows_with_missing_values_dropped(self, wide_frame):
        """Rows with an empty cell anywhere are dropped."""
        df = wide_frame.copy()
        df.loc[1, 'X741'] = np.nan
        df.loc[4, 'reference'] = np.nan
        table = SpectralTable.from_dataframe(
            df, num_metadata_columns=3, reference_column='reference',
        )
        assert table.n_samples == 6
        assert 'P1' not in table.ids
        assert 'P4' not in table.ids

    def test_duplicate_ids_allowed(self, wide_frame):
        """Repeated scans of one sample are kept before aggregation."""
        df = wide_frame.copy()
        df['unique_id'] = ['A', 'A', 'B', 'B', 'C', 'C', 'D', 'D']
        table = SpectralTable.from_dataframe(df, num_metadata_columns=3)
        assert table.n_samples == 8


class TestTableOperations:
    """Tests for derived tables."""

    def test_subset_by_mask(self, linear_table):
        """Boolean masks and index lists select the same rows."""
        mask = np.zeros(linear_table.n_samples, dtype=bool)
        mask[[0, 5, 7]] = True
        by_mask = linear_table.subset(mask)
        by_index = linear_table.subset([0, 5, 7])
        np.testing.assert_array_equal(by_mask.spectra, by_index.spectra)
        assert list(by_mask.ids) == ['S000', 'S005', 'S007']

    def test_drop_reference(self, linear_table):
        """Unlabeled copy has no reference."""
        unlabeled = linear_table.drop_reference()
        assert not unlabeled.has_reference
        assert unlabeled.reference is None
        assert linear_table.has_reference

    def test_dataframe_round_trip(self, wide_frame):
        """to_dataframe restores the input layout."""
        table = SpectralTable.from_dataframe(
            wide_frame, num_metadata_columns=3, reference_column='reference',
        )
        out = table.to_dataframe()
        assert list(out.columns) == list(wide_frame.columns)
        np.testing.assert_allclose(
            out.iloc[:, 3:].to_numpy(), wide_frame.iloc[:, 3:].to_numpy(),
        )

    def test_read_csv(self, wide_frame, tmp_path):
        """read_spectral_csv produces the same table as from_dataframe."""
        path = tmp_path / 'scans.csv'
        wide_frame.to_csv(path, index=False)
        table = read_spectral_csv(
            path, num_metadata_columns=3,
            id_column='unique_id', reference_column='reference',
        )
        assert table.n_samples == 8
        np.testing.assert_allclose(table.spectra, wide_frame.iloc[:, 3:].to_numpy())

    def test_mismatched_grid_rejected(self):
        """Grid length must equal the spectral column count."""
        with pytest.raises(MalformedInputError):
            SpectralTable.from_arrays(['a', 'b'], np.ones((2, 5)), np.arange(4.0))
