"""End-to-end recovery of theta and rho from simulated panels.

These tests solve the default model (T=10, E=10), simulate panels with a
fixed seed and run the CCP inversion with the true wage equation and
experience kernels. They exercise the solver, simulator, empirical
probabilities, recursion and estimator together.
"""

import numpy as np
import pytest
import tensorflow as tf
tf.config.set_visible_devices([], 'GPU')

from ccp_models.ccp import estimate, estimate_ccp
from ccp_models.config.estimation_config import EstimationConfig
from ccp_models.config.model_params import ModelParams
from ccp_models.vfi import simulate, solve

RHO_GRID = (1.0, 1.5, 2.0, 2.5, 3.0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def true_solution():
    return solve(ModelParams())


@pytest.fixture(scope="module")
def panel_10k(true_solution):
    return simulate(true_solution, 10_000, seed=1234)


def _estimate(solution, panel, rho_grid):
    params = solution.params
    config = EstimationConfig(rho_grid=rho_grid)
    ccp = estimate_ccp(
        panel,
        params.n_experience,
        probability_floor=config.probability_floor,
        zero_cell_policy=config.zero_cell_policy,
    )
    return estimate(ccp, solution.kernels, params, rho_grid, config)


@pytest.fixture(scope="module")
def grid_result(true_solution, panel_10k):
    return _estimate(true_solution, panel_10k, RHO_GRID)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.slow
class TestRecovery:

    def test_theta_within_ten_percent_at_true_rho(self, true_solution, panel_10k):
        result = _estimate(true_solution, panel_10k, (2.0,))
        truth = true_solution.params.theta
        rel_err = np.abs(result.theta_hat - truth) / np.abs(truth)
        assert np.all(rel_err < 0.10), f"theta_hat={result.theta_hat}, truth={truth}"

    def test_rho_grid_selects_true_value(self, grid_result):
        assert grid_result.best_rho == 2.0, f"scores={grid_result.scores}"

    def test_score_peaks_at_true_rho(self, grid_result):
        scores = grid_result.scores
        assert scores[2.0] > scores[1.0]
        assert scores[2.0] > scores[3.0]

    def test_scores_finite_over_grid(self, grid_result):
        assert set(grid_result.scores) == set(RHO_GRID)
        assert all(np.isfinite(s) for s in grid_result.scores.values())

    def test_panel_shares_match_model_probabilities(self, true_solution, panel_10k):
        """First-period shares follow the solved choice probabilities."""
        params = true_solution.params
        prior = params.initial_prior()
        expected = prior @ np.asarray(true_solution.P[0])
        observed = np.bincount(panel_10k.actions[:, 0], minlength=3) / panel_10k.n_individuals
        np.testing.assert_allclose(observed, expected, atol=0.02)
