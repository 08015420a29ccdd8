"""Tests for nirs_modeling.models.persistence."""

import numpy as np
import pytest

from nirs_modeling import __version__
from nirs_modeling.config import Config
from nirs_modeling.data.table import SpectralTable
from nirs_modeling.exceptions import IncompatibleWavelengthGridError
from nirs_modeling.models.persistence import (
    check_grid,
    load,
    load_model,
    predict,
    save,
    save_model,
)
from nirs_modeling.training.workflow import train_model
from nirs_modeling.utils.checkpoint import dumps


@pytest.fixture
def artifact(linear_table):
    config = Config()
    config.preprocessing.sg_derivative_windows = (7, 11)
    return train_model(linear_table, 'sg_d1_w5', {'n_components': 3}, config=config)


class TestSerialisation:
    """Tests for byte and file round trips."""

    def test_bytes_round_trip(self, artifact, linear_table):
        """A restored artifact predicts exactly like the original."""
        restored = load(save(artifact))
        assert restored.pretreatment_id == artifact.pretreatment_id
        assert restored.hyperparameters == artifact.hyperparameters
        assert restored.version == __version__
        np.testing.assert_array_equal(
            predict(restored, linear_table)['predicted'],
            predict(artifact, linear_table)['predicted'],
        )

    def test_file_round_trip(self, artifact, tmp_path):
        path = save_model(artifact, tmp_path / 'models' / 'protein.joblib')
        assert path.exists()
        restored = load_model(path)
        np.testing.assert_array_equal(restored.model_wavelengths, artifact.model_wavelengths)
        assert restored.describe()['pretreatment_name'] == artifact.describe()['pretreatment_name']

    def test_settings_restored(self, artifact):
        """Pretreatment settings travel with the artifact."""
        restored = load(save(artifact))
        assert restored.config.preprocessing.sg_derivative_windows == (7, 11)
        assert len(restored.model_wavelengths) == 331 - 6

    def test_wrong_payload(self):
        with pytest.raises(TypeError):
            load(dumps({'not': 'a model'}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model(tmp_path / 'absent.joblib')


class TestPredict:
    """Tests for prediction on new spectra."""

    def test_output_frame(self, artifact, linear_table):
        new = linear_table.subset(range(10)).drop_reference()
        out = predict(artifact, new)
        assert list(out.columns) == ['unique_id', 'pretreatment_id', 'observed', 'predicted']
        assert list(out['unique_id']) == list(new.ids)
        assert (out['pretreatment_id'] == 10).all()
        assert out['observed'].isna().all()

    def test_observed_from_labeled_table(self, artifact, linear_table):
        """A labeled table reports its reference next to the prediction."""
        out = predict(artifact, linear_table.subset(range(5)))
        np.testing.assert_allclose(out['observed'], linear_table.reference[:5])

    def test_predictions_track_reference(self, artifact, linear_table):
        out = predict(artifact, linear_table)
        corr = np.corrcoef(out['predicted'], linear_table.reference)[0, 1]
        assert corr > 0.9

    def test_grid_mismatch(self, artifact, linear_table):
        """Spectra on another grid are rejected."""
        shifted = SpectralTable.from_arrays(
            ids=linear_table.ids,
            spectra=linear_table.spectra[:, :300],
            wavelengths=linear_table.wavelengths[:300],
        )
        with pytest.raises(IncompatibleWavelengthGridError) as exc_info:
            predict(artifact, shifted)
        assert len(exc_info.value.expected) == 331
        assert len(exc_info.value.actual) == 300

    def test_check_grid_tolerance(self):
        grid = np.arange(740.0, 750.0)
        check_grid(grid, grid + 1e-9)
        with pytest.raises(IncompatibleWavelengthGridError):
            check_grid(grid, grid + 0.5)
