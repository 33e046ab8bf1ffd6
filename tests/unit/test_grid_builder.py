"""Unit tests for GridBuilder: per-action experience kernels."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

from ccp_models.vfi.grids.grid_builder import GridBuilder
from ccp_models.vfi.grids.grid_utils import build_transition

from conftest import make_test_params


class TestBuildExperienceKernels:
    """Kernel stack ordered home, activity-1, activity-2."""

    def test_shape_and_stochastic(self):
        params = make_test_params()
        G = GridBuilder.build_experience_kernels(params).numpy()
        assert G.shape == (3, params.n_experience, params.n_experience)
        np.testing.assert_allclose(G.sum(axis=-1), np.ones((3, params.n_experience)), atol=1e-12)

    def test_each_action_uses_its_regime(self):
        params = make_test_params(
            depreciation_drift=-0.5, depreciation_dispersion=0.2,
            stasis_drift=0.1, stasis_dispersion=0.4,
            accumulation_drift=0.7, accumulation_dispersion=0.25,
        )
        G = GridBuilder.build_experience_kernels(params).numpy()
        for a, (drift, disp) in enumerate(params.kernel_specs):
            expected = build_transition(drift, disp, params.n_experience).numpy()
            np.testing.assert_allclose(G[a], expected, atol=1e-12)

    def test_expected_level_ordering(self):
        """Mean next level: depreciation < stasis < accumulation."""
        params = make_test_params(n_experience=10)
        G = GridBuilder.build_experience_kernels(params).numpy()
        levels = np.arange(10)
        mean_next = G @ levels
        mid = 5
        assert mean_next[0, mid] < mean_next[1, mid] < mean_next[2, mid]
