"""Tests for nirs_modeling.training.metrics."""

import numpy as np
import pytest

from nirs_modeling.training.metrics import METRIC_NAMES, is_better, regression_metrics


class TestRegressionMetrics:
    """Tests for the metric set."""

    def test_known_values(self):
        """Constant offset of 0.5 on 1..4."""
        m = regression_metrics([1.0, 2.0, 3.0, 4.0], [1.5, 2.5, 3.5, 4.5])
        assert list(m) == list(METRIC_NAMES)
        assert m['RMSE'] == pytest.approx(0.5)
        assert m['Bias'] == pytest.approx(0.5)
        assert m['SEP'] == pytest.approx(0.0, abs=1e-12)
        assert m['Rsquared'] == pytest.approx(0.8)
        assert m['RPD'] == pytest.approx(np.std([1, 2, 3, 4], ddof=1) / 0.5)
        assert m['RPIQ'] == pytest.approx(3.0)
        assert m['CCC'] == pytest.approx(2.5 / 2.75)

    def test_perfect_predictions(self):
        """Zero error gives infinite ratios, not an exception."""
        y = [10.0, 12.0, 15.0]
        m = regression_metrics(y, y)
        assert m['RMSE'] == 0.0
        assert m['Rsquared'] == 1.0
        assert m['RPD'] == np.inf
        assert m['CCC'] == pytest.approx(1.0)

    def test_constant_reference(self):
        """Rsquared is undefined when the reference does not vary."""
        m = regression_metrics([5.0, 5.0, 5.0], [4.0, 5.0, 6.0])
        assert np.isinf(m['Rsquared']) or np.isnan(m['Rsquared'])
        assert m['RPD'] == 0.0

    def test_single_sample(self):
        m = regression_metrics([3.0], [2.0])
        assert m['RMSE'] == 1.0
        assert np.isnan(m['SEP'])

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="Length mismatch"):
            regression_metrics([1.0, 2.0], [1.0])

    def test_empty(self):
        with pytest.raises(ValueError):
            regression_metrics([], [])


class TestIsBetter:
    def test_directions(self):
        assert is_better('RMSE', 1.5, 2.0)
        assert not is_better('RMSE', 2.0, 2.0)
        assert is_better('Rsquared', 0.8, 0.6)

    def test_non_finite(self):
        assert not is_better('RMSE', np.nan, 2.0)
        assert is_better('RMSE', 2.0, np.nan)
        assert not is_better('RMSE', np.inf, 2.0)
        assert is_better('Rsquared', 0.1, -np.inf)
