"""Tests for nirs_modeling.training.workflow."""

import json

import numpy as np
import pandas as pd
import pytest

from nirs_modeling.exceptions import MalformedInputError, NIRSModelingError
from nirs_modeling.models.persistence import ModelArtifact, load_model, predict
from nirs_modeling.training import workflow


@pytest.fixture
def report(linear_table, fast_config, tmp_path):
    return workflow.test_pretreatments(
        linear_table,
        pretreatments=[1, 5],
        config=fast_config,
        num_iterations=2,
        output_dir=tmp_path / 'run',
        show_progress=False,
    )


class TestPretreatmentComparison:
    """Tests for the pretreatment comparison workflow."""

    def test_best_selected(self, report):
        assert report.best_pretreatment in (1, 5)
        assert report.model_method == 'pls'
        assert 'n_components' in report.best_hyperparameters
        assert isinstance(report.best_hyperparameters['n_components'], int)
        assert len(report.trials) == 4

    def test_files_written(self, report, tmp_path):
        """Report files are written to the output directory."""
        out = tmp_path / 'run'
        for name in ('predictions.csv', 'summary.csv', 'trials.csv', 'report.json'):
            assert (out / name).exists()
        assert not (out / 'outliers.csv').exists()

        predictions = pd.read_csv(out / 'predictions.csv')
        assert list(predictions.columns) == [
            'unique_id', 'iteration', 'pretreatment_id', 'observed', 'predicted',
        ]
        assert len(predictions) == 4 * 15

        meta = json.loads((out / 'report.json').read_text())
        assert meta['best_pretreatment'] == report.best_pretreatment
        assert meta['n_failed'] == 0

    def test_outlier_filter(self, linear_table, fast_config, tmp_path):
        """With remove_outliers the scan is kept on the report."""
        result = workflow.test_pretreatments(
            linear_table, pretreatments=[1], config=fast_config,
            num_iterations=1, remove_outliers=True, show_progress=False,
        )
        assert result.outlier_report is not None
        assert result.training_table.n_samples == (
            linear_table.n_samples - result.outlier_report.n_outliers
        )
        result.save(tmp_path / 'with_outliers')
        assert (tmp_path / 'with_outliers' / 'outliers.csv').exists()

    def test_every_trial_failed(self, linear_table, fast_config):
        """No best pretreatment when nothing succeeded."""
        small = linear_table.subset(range(5))
        result = workflow.test_pretreatments(
            small, pretreatments=[1], config=fast_config,
            test_proportion=0.99, show_progress=False,
        )
        assert result.best_pretreatment is None
        assert result.to_dict()['failures'][0]['error'] == 'empty_partition'

    def test_unknown_group_column_surfaces(self, grouped_table, fast_config):
        """A bad group column is reported, not turned into failed trials."""
        with pytest.raises(MalformedInputError, match="nope"):
            workflow.test_pretreatments(
                grouped_table, pretreatments=[1, 2], config=fast_config,
                scheme='structured', group_column='nope', show_progress=False,
            )


class TestTrainModel:
    """Tests for final model fitting."""

    def test_fixed_hyperparameters(self, linear_table):
        artifact = workflow.train_model(linear_table, 'sg_d1_w11', {'n_components': 3})
        assert artifact.pretreatment_id == 11
        assert artifact.hyperparameters == {'n_components': 3}
        assert len(artifact.input_wavelengths) == 331
        assert len(artifact.model_wavelengths) == 321
        assert artifact.training_summary['n_samples'] == 50

    def test_tuned_when_not_given(self, linear_table, fast_config):
        artifact = workflow.train_model(linear_table, 1, config=fast_config)
        assert 1 <= artifact.hyperparameters['n_components'] <= 3

    def test_requires_reference(self, linear_table):
        with pytest.raises(MalformedInputError):
            workflow.train_model(linear_table.drop_reference(), 1, {'n_components': 2})


class TestTrainBestModel:
    """Tests for select-then-refit."""

    def test_artifact_saved_and_usable(self, linear_table, fast_config, tmp_path):
        artifact, report = workflow.train_best_model(
            linear_table, pretreatments=[1, 2], config=fast_config,
            num_iterations=2, output_dir=tmp_path, show_progress=False,
        )
        assert isinstance(artifact, ModelArtifact)
        assert artifact.pretreatment_id == report.best_pretreatment
        assert artifact.hyperparameters == report.best_hyperparameters
        assert 'cross_validation' in artifact.training_summary

        loaded = load_model(tmp_path / 'model.joblib')
        out = predict(loaded, linear_table.drop_reference())
        assert len(out) == linear_table.n_samples
        assert np.all(np.isfinite(out['predicted']))

    def test_raises_when_all_failed(self, linear_table, fast_config):
        with pytest.raises(NIRSModelingError):
            workflow.train_best_model(
                linear_table.subset(range(5)), pretreatments=[1], config=fast_config,
                test_proportion=0.99, show_progress=False,
            )
