"""Shared test fixtures and helper utilities for the unit tests."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

# Force CPU for CI; must run before any TF ops
tf.config.set_visible_devices([], 'GPU')

import pytest

from ccp_models.config.model_params import ModelParams


def make_test_params(**overrides) -> ModelParams:
    """Return a small ModelParams with sensible defaults for testing."""
    defaults = dict(
        horizon=4,
        n_experience=5,
        risk_aversion=2.0,
        utility_scale=1.2,
        wage_shock_std=0.3,
        wage_intercept=(0.0, 0.5, 0.2),
        wage_experience=(0.0, 0.10, 0.20),
        age_return=0.05,
        preference_levels=(0.0, 3.0, 2.0),
        discount_rate=0.1,
    )
    defaults.update(overrides)
    return ModelParams(**defaults)


@pytest.fixture
def small_params() -> ModelParams:
    return make_test_params()


@pytest.fixture(scope="module")
def small_solution():
    """Solve the small model once per test module."""
    from ccp_models.vfi.finite_horizon import solve

    return solve(make_test_params())


def random_probabilities(shape, seed: int = 0) -> np.ndarray:
    """Strictly positive probabilities normalised along the last axis."""
    rng = np.random.default_rng(seed)
    p = rng.uniform(0.05, 1.0, size=shape)
    return p / p.sum(axis=-1, keepdims=True)
