"""Unit tests for empirical CCP counting and smoothing."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from ccp_models.ccp.empirical import ccp_from_counts, count_choices, estimate_ccp
from ccp_models.vfi.simulation.panel_simulator import PanelData


def _panel(actions, experience):
    actions = np.asarray(actions)
    log_wages = np.where(actions == 0, np.nan, 1.0)
    return PanelData(actions=actions, experience=np.asarray(experience), log_wages=log_wages)


class TestCountChoices:

    def test_counts_by_period_and_state(self):
        panel = _panel(
            actions=[[0, 1], [1, 2], [1, 1]],
            experience=[[0, 1], [0, 1], [1, 1]],
        )
        counts = count_choices(panel, n_experience=2)
        assert counts.shape == (2, 2, 3)
        np.testing.assert_array_equal(counts[0, 0], [1, 1, 0])
        np.testing.assert_array_equal(counts[0, 1], [0, 1, 0])
        np.testing.assert_array_equal(counts[1, 1], [0, 2, 1])
        assert counts.sum() == 6

    def test_out_of_range_experience_raises(self):
        panel = _panel(actions=[[0]], experience=[[3]])
        with pytest.raises(ValueError):
            count_choices(panel, n_experience=2)


class TestCcpFromCounts:

    def test_frequencies_for_full_cells(self):
        counts = np.array([[[2, 3, 5]]])
        ccp = ccp_from_counts(counts, probability_floor=1e-4)
        np.testing.assert_allclose(ccp.probabilities[0, 0], [0.2, 0.3, 0.5])
        assert ccp.n_zero_cells == 0
        assert ccp.n_smoothed == 0

    def test_zero_cell_floored_and_recorded(self):
        counts = np.array([[[0, 4, 6]]])
        ccp = ccp_from_counts(counts, probability_floor=1e-3)
        assert np.all(ccp.probabilities > 0)
        np.testing.assert_allclose(ccp.probabilities.sum(axis=-1), 1.0)
        assert ccp.n_zero_cells == 1
        assert ccp.n_smoothed == 1
        assert ccp.zero_cells[0, 0, 0]
        assert ccp.frequencies[0, 0, 0] == 0.0

    def test_unvisited_state_uniform(self):
        counts = np.array([[[0, 0, 0], [1, 1, 1]]])
        ccp = ccp_from_counts(counts)
        np.testing.assert_allclose(ccp.probabilities[0, 0], np.full(3, 1 / 3))
        assert not ccp.observed_states[0, 0]
        assert ccp.observed_states[0, 1]
        # Zero cells are only counted in visited states.
        assert ccp.n_zero_cells == 0

    @pytest.mark.parametrize("kwargs", [
        dict(zero_cell_policy="ignore"),
        dict(probability_floor=0.0),
        dict(probability_floor=0.4),
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            ccp_from_counts(np.ones((1, 1, 3)), **kwargs)

    def test_negative_counts_raise(self):
        with pytest.raises(ValueError):
            ccp_from_counts(np.array([[[1, -1, 2]]]))


class TestEstimateCcp:

    def test_from_panel(self):
        panel = _panel(actions=[[1], [1], [2], [0]], experience=[[0], [0], [0], [0]])
        ccp = estimate_ccp(panel, n_experience=1, zero_cell_policy="floor")
        np.testing.assert_allclose(ccp.probabilities[0, 0], [0.25, 0.5, 0.25])
        assert ccp.zero_cell_policy == "floor"
        np.testing.assert_array_equal(ccp.state_counts, [[4]])
