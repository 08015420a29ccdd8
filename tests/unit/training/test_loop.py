"""Tests for nirs_modeling.training.loop."""

import threading

import numpy as np
import pandas as pd
import pytest

from nirs_modeling.exceptions import ConfigurationError, MalformedInputError
from nirs_modeling.training.loop import RunResult, TrainEvalLoop, TrialResult, trial_seed


class CancelAfter:
    """Event-like object that reports set after ``n`` checks."""

    def __init__(self, n):
        self.n = n
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.n


def _run(table, strategy='pls', n_jobs=1, **kwargs):
    params = dict(pretreatments=[1, 2], num_iterations=3, tune_length=2, seed=1)
    params.update(kwargs)
    loop = TrainEvalLoop(strategy, n_jobs=n_jobs, show_progress=False)
    return loop.run(table, **params)


class TestTrainEvalLoop:
    """Tests for trial execution."""

    def test_all_trials_run(self, linear_table):
        """One successful trial per (pretreatment, iteration), sorted."""
        run = _run(linear_table)
        assert [t.key for t in run.trials] == [(1, 1), (1, 2), (1, 3), (2, 1), (2, 2), (2, 3)]
        assert len(run.succeeded) == 6
        assert not run.cancelled
        assert run.model_method == 'pls'

    def test_trial_contents(self, linear_table):
        """Predictions cover the test partition and metrics are finite."""
        trial = _run(linear_table).trials[0]
        assert len(trial.predictions) == 15
        assert list(trial.predictions.columns) == ['unique_id', 'observed', 'predicted']
        assert set(trial.predictions['unique_id']) <= set(linear_table.ids)
        assert np.isfinite(trial.metrics['RMSE'])
        assert 'n_components' in trial.hyperparameters

    def test_same_fold_across_pretreatments(self, linear_table):
        """An iteration uses the same test samples for every pretreatment."""
        run = _run(linear_table)
        by_key = {t.key: t for t in run.trials}
        for iteration in (1, 2, 3):
            ids_1 = sorted(by_key[(1, iteration)].predictions['unique_id'])
            ids_2 = sorted(by_key[(2, iteration)].predictions['unique_id'])
            assert ids_1 == ids_2

    def test_parallel_matches_sequential(self, linear_table):
        """Results do not depend on the number of workers."""
        seq = _run(linear_table, n_jobs=1)
        par = _run(linear_table, n_jobs=2)
        assert [t.key for t in seq.trials] == [t.key for t in par.trials]
        for a, b in zip(seq.trials, par.trials):
            assert a.hyperparameters == b.hyperparameters
            assert a.metrics['RMSE'] == pytest.approx(b.metrics['RMSE'])

    def test_failed_trials_tagged(self, linear_table, make_stub):
        """A failing strategy yields tagged failures and the run completes."""
        run = _run(linear_table, strategy=make_stub(fail=True))
        assert len(run.trials) == 6
        assert all(t.error == 'trial_failure' for t in run.trials)
        assert all(t.metrics == {} for t in run.trials)

    def test_timeout_tagged(self, linear_table, make_stub):
        run = _run(linear_table, strategy=make_stub(delay=0.05), timeout_s=0.01,
                   pretreatments=[1], num_iterations=2)
        assert [t.error for t in run.trials] == ['timeout', 'timeout']

    def test_empty_partition_tagged(self, linear_table):
        small = linear_table.subset(range(5))
        run = _run(small, test_proportion=0.99, pretreatments=[1], num_iterations=1)
        assert run.trials[0].error == 'empty_partition'
        assert run.failed == run.trials

    def test_cancel_midway(self, linear_table):
        """Cancellation keeps the finished trials and flags the run."""
        run = _run(linear_table, cancel_event=CancelAfter(2))
        assert run.cancelled
        assert 0 < len(run.trials) < 6

    def test_cancel_before_start(self, linear_table):
        event = threading.Event()
        event.set()
        run = _run(linear_table, cancel_event=event)
        assert run.cancelled
        assert run.trials == []

    def test_unlabeled_table(self, linear_table):
        with pytest.raises(MalformedInputError):
            _run(linear_table.drop_reference())

    def test_unknown_group_column_raises(self, grouped_table):
        """A misspelled group column stops the run before any trial."""
        with pytest.raises(MalformedInputError) as exc_info:
            _run(grouped_table, scheme='structured', group_column='no_such_column')
        assert exc_info.value.column == 'no_such_column'

    def test_structured_without_group_column_raises(self, grouped_table):
        with pytest.raises(ConfigurationError, match="group_column"):
            _run(grouped_table, scheme='structured')

    @pytest.mark.parametrize('kwargs', [
        {'test_proportion': 0.0},
        {'n_bins': 0, 'stratified': True},
        {'num_iterations': 0},
        {'tune_length': 0},
    ])
    def test_explicit_zero_rejected(self, linear_table, kwargs):
        """Zero is not replaced by a default."""
        with pytest.raises(ConfigurationError):
            _run(linear_table, **kwargs)

    def test_configuration_error_in_trial_propagates(self, linear_table, make_stub, monkeypatch):
        """Input errors raised inside a trial are not recorded as failures."""
        stub = make_stub()

        def bad_space(tune_length, n_samples, n_features):
            raise ConfigurationError("inconsistent grid")

        monkeypatch.setattr(stub, 'hyperparameter_space', bad_space)
        with pytest.raises(ConfigurationError, match="inconsistent grid"):
            _run(linear_table, strategy=stub, pretreatments=[1])

    def test_trial_seed_depends_on_all_parts(self):
        seeds = {trial_seed(1, p, i) for p in (1, 2) for i in (1, 2)}
        assert len(seeds) == 4
        assert trial_seed(1, 2, 3) == trial_seed(1, 2, 3)


class TestRunResult:
    """Tests for run result frames."""

    def _result(self):
        ok = TrialResult(
            pretreatment_id=2, iteration=1,
            hyperparameters={'n_components': 3},
            predictions=pd.DataFrame({
                'unique_id': ['a', 'b'], 'observed': [1.0, 2.0], 'predicted': [1.1, 1.9],
            }),
            metrics={'RMSE': 0.1},
        )
        failed = TrialResult(pretreatment_id=2, iteration=2, error='timeout', message='slow')
        return RunResult(trials=[ok, failed])

    def test_predictions_frame(self):
        df = self._result().predictions_frame()
        assert list(df.columns) == [
            'unique_id', 'iteration', 'pretreatment_id', 'observed', 'predicted',
        ]
        assert len(df) == 2

    def test_metrics_frame(self):
        df = self._result().metrics_frame()
        assert len(df) == 2
        assert df.loc[0, 'RMSE'] == 0.1
        assert np.isnan(df.loc[1, 'RMSE'])
        assert df.loc[1, 'error'] == 'timeout'

    def test_empty_predictions(self):
        assert RunResult(trials=[]).predictions_frame().empty
