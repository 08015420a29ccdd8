"""Tests for nirs_modeling.preprocessing.pretreatments."""

import numpy as np
import pytest

from nirs_modeling.config import Config
from nirs_modeling.exceptions import MalformedInputError
from nirs_modeling.preprocessing.pretreatments import (
    ALL_PRETREATMENTS,
    PreprocessingPipeline,
    Pretreatment,
    apply,
    parse_pretreatment,
    pretreat_all,
    pretreat_table,
    pretreatment_name,
    recipe_steps,
)


# Grid length after each pretreatment on the 331-point 740-1070 nm grid
EXPECTED_LENGTHS = {
    1: 331, 2: 331, 3: 330, 4: 329, 5: 330, 6: 329, 7: 321,
    8: 321, 9: 317, 10: 327, 11: 321, 12: 327, 13: 321,
}


class TestParse:
    """Tests for pretreatment lookup."""

    @pytest.mark.parametrize("value", [3, '3', 'snv_d1', 'SNV_D1', Pretreatment.SNV_D1])
    def test_accepted_forms(self, value):
        assert parse_pretreatment(value) is Pretreatment.SNV_D1

    @pytest.mark.parametrize("value", [0, 14, 'msc', True])
    def test_unknown(self, value):
        with pytest.raises(KeyError):
            parse_pretreatment(value)

    def test_names(self):
        assert pretreatment_name(1) == 'Raw data'
        assert pretreatment_name('gap_d1') == 'Gap-segment 1st derivative'
        assert pretreatment_name(12) == 'Savitzky-Golay 2nd derivative (window 5)'

    def test_names_use_configured_windows(self):
        config = Config()
        config.preprocessing.sg_derivative_windows = (7, 13)
        assert pretreatment_name('sg_d1_w5', config) == 'Savitzky-Golay 1st derivative (window 7)'
        assert pretreatment_name(11, config) == 'Savitzky-Golay 1st derivative (window 13)'

    def test_thirteen_recipes(self):
        assert [int(p) for p in ALL_PRETREATMENTS] == list(range(1, 14))

    def test_recipe_windows_follow_config(self):
        config = Config()
        config.preprocessing.sg_derivative_windows = (7, 15)
        assert recipe_steps(Pretreatment.SG_D2_W11, config) == ['savgol_d2_w15']


class TestApply:
    """Tests for applying numbered pretreatments."""

    @pytest.mark.parametrize("pid, n_points", sorted(EXPECTED_LENGTHS.items()))
    def test_grid_lengths(self, linear_table, pid, n_points):
        """Columns and grid shrink together and rows are preserved."""
        out = apply(linear_table.spectra, linear_table.wavelengths, pid)
        assert out.spectra.shape == (linear_table.n_samples, n_points)
        assert out.wavelengths.shape == (n_points,)
        assert np.all(np.diff(out.wavelengths) > 0)

    def test_raw_is_identity(self, linear_table):
        out = apply(linear_table.spectra, linear_table.wavelengths, Pretreatment.RAW)
        np.testing.assert_array_equal(out.spectra, linear_table.spectra)
        np.testing.assert_array_equal(out.wavelengths, linear_table.wavelengths)

    def test_input_not_modified(self, linear_table):
        before = linear_table.spectra.copy()
        apply(linear_table.spectra, linear_table.wavelengths, Pretreatment.SNV_D2)
        np.testing.assert_array_equal(linear_table.spectra, before)

    def test_snv_rows(self, linear_table):
        out = apply(linear_table.spectra, linear_table.wavelengths, 'snv')
        np.testing.assert_allclose(out.spectra.mean(axis=1), 0.0, atol=1e-10)
        np.testing.assert_allclose(out.spectra.std(axis=1), 1.0, rtol=1e-10)

    def test_rowwise(self, linear_table):
        """Pretreating one spectrum equals the matching row of the batch."""
        batch = apply(linear_table.spectra, linear_table.wavelengths, 11)
        single = apply(linear_table.spectra[3:4], linear_table.wavelengths, 11)
        np.testing.assert_allclose(single.spectra[0], batch.spectra[3])

    def test_too_short_spectra(self):
        with pytest.raises(MalformedInputError):
            apply(np.ones((3, 8)), np.arange(8.0), Pretreatment.SG)

    def test_grid_mismatch(self):
        with pytest.raises(ValueError):
            apply(np.ones((3, 8)), np.arange(9.0), Pretreatment.RAW)


class TestPipeline:
    """Tests for PreprocessingPipeline."""

    def test_for_pretreatment(self):
        pipe = PreprocessingPipeline.for_pretreatment(Pretreatment.SNV_SG)
        assert pipe.steps == ['snv', 'savgol']
        assert pipe.name == 'snv_sg'
        assert len(pipe) == 2

    def test_none_steps_skipped(self):
        pipe = PreprocessingPipeline(['none', 'snv'])
        assert pipe.steps == ['snv']

    def test_unknown_step(self):
        with pytest.raises(KeyError, match="Unknown preprocessing step"):
            PreprocessingPipeline(['snv', 'msc'])


class TestTables:
    """Tests for table-level pretreatment."""

    def test_pretreat_table_keeps_metadata(self, linear_table):
        out = pretreat_table(linear_table, Pretreatment.D1)
        np.testing.assert_array_equal(out.ids, linear_table.ids)
        np.testing.assert_array_equal(out.reference, linear_table.reference)
        assert out.n_wavelengths == 330

    def test_pretreat_all_sorted(self, linear_table):
        out = pretreat_all(linear_table, ['sg', 1, 5, Pretreatment.SG])
        assert list(out) == [1, 5, 7]

    def test_pretreat_all_default(self, linear_table):
        out = pretreat_all(linear_table)
        assert list(out) == list(range(1, 14))
        assert {pid: t.n_wavelengths for pid, t in out.items()} == EXPECTED_LENGTHS
