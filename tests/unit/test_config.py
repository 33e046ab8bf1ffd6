"""Unit tests for ModelParams, EstimationConfig and their JSON loaders."""

from __future__ import annotations

import json
import math

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

import pytest

from ccp_models.config.estimation_config import EstimationConfig, load_estimation_config
from ccp_models.config.model_params import ModelParams, load_model_params

from conftest import make_test_params


class TestModelParams:
    """Validation and derived quantities."""

    def test_defaults(self):
        params = ModelParams()
        assert params.horizon == 10
        assert params.n_experience == 10
        np.testing.assert_allclose(params.theta, [1.2, 3.0, 2.0])

    def test_derived_discounting(self):
        params = make_test_params(discount_rate=0.1)
        assert params.discount_factor == pytest.approx(1.0 / 1.1)
        assert params.perpetuity_multiplier == pytest.approx(11.0)
        assert params.terminal_euler_constant == pytest.approx(np.euler_gamma * 10.0)

    def test_lists_become_tuples(self):
        params = make_test_params(preference_levels=[0.0, 1.0, 2.0])
        assert params.preference_levels == (0.0, 1.0, 2.0)

    def test_is_frozen(self):
        params = make_test_params()
        with pytest.raises(Exception):
            params.horizon = 3

    def test_default_prior_inverse_index(self):
        params = make_test_params(n_experience=4)
        w = 1.0 / np.arange(1, 5)
        np.testing.assert_allclose(params.initial_prior(), w / w.sum())

    def test_explicit_prior_normalised(self):
        params = make_test_params(n_experience=3, initial_experience_weights=(2.0, 0.0, 2.0))
        np.testing.assert_allclose(params.initial_prior(), [0.5, 0.0, 0.5])

    @pytest.mark.parametrize("overrides", [
        dict(horizon=0),
        dict(n_experience=0),
        dict(risk_aversion=0.0),
        dict(discount_rate=0.0),
        dict(wage_shock_std=-0.1),
        dict(utility_scale=math.nan),
        dict(age_return=math.inf),
        dict(stasis_dispersion=0.0),
        dict(preference_levels=(0.0, 1.0)),
        dict(wage_intercept=(0.0, math.nan, 0.0)),
        dict(n_experience=3, initial_experience_weights=(1.0, 1.0)),
        dict(n_experience=3, initial_experience_weights=(1.0, -1.0, 1.0)),
        dict(n_experience=3, initial_experience_weights=(0.0, 0.0, 0.0)),
    ])
    def test_invalid_raises(self, overrides):
        with pytest.raises(ValueError):
            make_test_params(**overrides)


class TestEstimationConfig:

    def test_defaults(self):
        config = EstimationConfig()
        assert config.rho_grid == (1.0, 1.5, 2.0, 2.5, 3.0)
        assert config.zero_cell_policy == "drop"

    @pytest.mark.parametrize("overrides", [
        dict(rho_grid=()),
        dict(rho_grid=(1.0, -2.0)),
        dict(zero_cell_policy="ignore"),
        dict(weighting="optimal"),
        dict(score="aic"),
        dict(probability_floor=0.0),
        dict(probability_floor=0.5),
        dict(n_workers=0),
    ])
    def test_invalid_raises(self, overrides):
        with pytest.raises(ValueError):
            EstimationConfig(**overrides)


class TestLoaders:

    def test_round_trip_from_json(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({
            "model": {"horizon": 3, "n_experience": 4, "not_a_field": 1},
            "estimation": {"rho_grid": [1.0, 2.0], "seed": 7},
        }))
        params = load_model_params(str(path))
        config = load_estimation_config(str(path))
        assert params.horizon == 3
        assert params.n_experience == 4
        assert config.rho_grid == (1.0, 2.0)
        assert config.seed == 7

    def test_missing_model_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model_params(str(tmp_path / "missing.json"))

    def test_missing_estimation_section_uses_defaults(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"model": {}}))
        assert load_estimation_config(str(path)) == EstimationConfig()

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_model_params(str(path))

    def test_shipped_config_loads(self):
        import os
        root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        path = os.path.join(root, "hyperparam", "ccp_params.json")
        params = load_model_params(path)
        assert params == ModelParams()
