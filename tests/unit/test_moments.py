"""Unit tests for the moment calculators."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from ccp_models.moment_calculator import (
    compute_choice_shares,
    compute_global_mean,
    compute_global_std,
    compute_wage_moments,
)
from ccp_models.vfi.simulation.panel_simulator import PanelData


class TestChoiceShares:

    def test_overall_and_by_period(self):
        actions = np.array([[0, 1], [1, 2], [2, 2], [1, 1]])
        shares = compute_choice_shares(actions)
        np.testing.assert_allclose(shares["by_period"][0], [0.25, 0.5, 0.25])
        np.testing.assert_allclose(shares["by_period"][1], [0.0, 0.5, 0.5])
        np.testing.assert_allclose(shares["overall"], [0.125, 0.5, 0.375])


class TestGlobalMoments:

    def test_nan_safe_mean_and_std(self):
        data = np.array([[1.0, np.nan], [3.0, 5.0]])
        assert float(compute_global_mean(data)) == pytest.approx(3.0)
        assert float(compute_global_std(data)) == pytest.approx(2.0)

    def test_all_missing(self):
        data = np.full((2, 2), np.nan)
        assert float(compute_global_mean(data)) == 0.0


class TestWageMoments:

    def test_per_action(self):
        log_w = np.log(np.array([[np.nan, 2.0], [4.0, 3.0]]))
        panel = PanelData(
            actions=np.array([[0, 1], [2, 1]]),
            experience=np.zeros((2, 2), dtype=int),
            log_wages=log_w,
        )
        moments = compute_wage_moments(panel)
        assert moments["action_1"]["n_obs"] == 2
        assert moments["action_1"]["mean_wage"] == pytest.approx(2.5)
        assert moments["action_2"]["n_obs"] == 1
        assert moments["action_2"]["mean_log_wage"] == pytest.approx(np.log(4.0))
