"""Unit tests for the first-stage wage-equation and kernel estimators."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from ccp_models.ccp.first_stage import (
    apply_transition_estimates,
    empirical_transition_matrix,
    estimate_transition_kernels,
    estimate_transition_params,
    estimate_wage_equation,
    estimate_wage_equations,
    transition_counts,
)
from ccp_models.vfi.finite_horizon import solve
from ccp_models.vfi.simulation.panel_simulator import PanelData, simulate

from conftest import make_test_params


@pytest.fixture(scope="module")
def panel_and_params():
    params = make_test_params(horizon=5, n_experience=8)
    panel = simulate(solve(params), 10_000, seed=123)
    return panel, params


class TestWageEquation:

    def test_pooled_recovers_coefficients(self, panel_and_params):
        panel, params = panel_and_params
        est = estimate_wage_equations(panel)
        np.testing.assert_allclose(est.intercept, params.wage_intercept, atol=0.03)
        np.testing.assert_allclose(est.experience, params.wage_experience, atol=0.01)
        assert est.age_return == pytest.approx(params.age_return, abs=0.01)
        assert est.shock_std == pytest.approx(params.wage_shock_std, rel=0.03)
        assert est.intercept[0] == 0.0 and est.experience[0] == 0.0

    def test_apply_to_replaces_wage_fields(self, panel_and_params):
        panel, params = panel_and_params
        est = estimate_wage_equations(panel)
        updated = est.apply_to(params)
        assert updated.wage_intercept == est.intercept
        assert updated.wage_shock_std == est.shock_std
        assert updated.preference_levels == params.preference_levels

    def test_single_action(self, panel_and_params):
        panel, params = panel_and_params
        est = estimate_wage_equation(panel, 2)
        assert est["intercept"] == pytest.approx(params.wage_intercept[2], abs=0.05)
        assert est["experience"] == pytest.approx(params.wage_experience[2], abs=0.01)
        assert est["n_obs"] == int(np.sum(panel.actions == 2))

    def test_home_action_rejected(self, panel_and_params):
        with pytest.raises(ValueError):
            estimate_wage_equation(panel_and_params[0], 0)

    def test_too_few_wages(self):
        panel = PanelData(
            actions=np.array([[1, 2]]),
            experience=np.array([[0, 1]]),
            log_wages=np.array([[0.5, 0.7]]),
        )
        with pytest.raises(ValueError):
            estimate_wage_equations(panel)


class TestTransitions:

    def test_counts_and_frequencies(self):
        panel = PanelData(
            actions=np.array([[2, 2, 0], [2, 1, 1]]),
            experience=np.array([[0, 1, 2], [0, 0, 0]]),
            log_wages=np.array([[1.0, 1.0, np.nan], [1.0, 1.0, 1.0]]),
        )
        counts = transition_counts(panel, 2, 3)
        np.testing.assert_array_equal(counts[0], [1, 1, 0])
        np.testing.assert_array_equal(counts[1], [0, 0, 1])
        freq, origin = empirical_transition_matrix(panel, 2, 3)
        np.testing.assert_allclose(freq[0], [0.5, 0.5, 0.0])
        np.testing.assert_array_equal(origin, [2, 1, 0])
        np.testing.assert_allclose(freq[2], 0.0)

    @pytest.mark.parametrize("action", [1, 2])
    def test_recovers_kernel_parameters(self, panel_and_params, action):
        panel, params = panel_and_params
        drift, dispersion = params.kernel_specs[action]
        est = estimate_transition_params(panel, action, params.n_experience, (0.0, 0.5))
        assert est.drift == pytest.approx(drift, abs=0.1)
        assert est.dispersion == pytest.approx(dispersion, abs=0.1)
        assert est.n_transitions > 0

    def test_no_transitions_raises(self):
        panel = PanelData(
            actions=np.array([[1, 1]]),
            experience=np.array([[0, 0]]),
            log_wages=np.array([[1.0, 1.0]]),
        )
        with pytest.raises(ValueError):
            estimate_transition_params(panel, 2, 3)

    def test_kernels_and_params_update(self, panel_and_params):
        panel, params = panel_and_params
        kernels, estimates = estimate_transition_kernels(
            panel, params.n_experience, initial_guesses=list(params.kernel_specs)
        )
        assert kernels.shape == (3, params.n_experience, params.n_experience)
        np.testing.assert_allclose(kernels.sum(axis=-1), 1.0, atol=1e-12)
        updated = apply_transition_estimates(params, estimates)
        assert updated.accumulation_drift == estimates[2].drift
        assert updated.depreciation_dispersion == estimates[0].dispersion
