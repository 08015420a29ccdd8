"""Stub model strategies for exercising tuning and the train/eval loop."""

import time

import numpy as np
import pytest

from nirs_modeling.models.strategies import ModelStrategy


class MeanRegressor:
    """Predicts the training mean; optionally slow or failing."""

    def __init__(self, delay=0.0, fail=False):
        self.delay = delay
        self.fail = fail
        self.mean_ = 0.0

    def fit(self, X, y):
        if self.fail:
            raise ValueError("singular system")
        time.sleep(self.delay)
        self.mean_ = float(np.mean(y))
        return self

    def predict(self, X):
        return np.full(len(X), self.mean_)


class StubStrategy(ModelStrategy):
    """Strategy with a fixed grid whose candidates all score the same."""

    name = 'stub'

    def __init__(self, grid=(3, 1, 2), delay=0.0, fail=False):
        self.fixed_params = {}
        self.grid = list(grid)
        self.delay = delay
        self.fail = fail

    def _build(self, params, random_state):
        return MeanRegressor(delay=self.delay, fail=self.fail)

    def hyperparameter_space(self, tune_length, n_samples, n_features):
        return {'alpha': self.grid}


@pytest.fixture
def make_stub():
    """Factory for ``StubStrategy`` instances."""
    return StubStrategy
