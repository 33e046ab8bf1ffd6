"""Smoke tests for the end-to-end estimation pipeline.

Runs ``run_pipeline`` from the CLI module on a small configuration, with
and without the first stage, and checks the report and artifacts.
"""

import json

import numpy as np
import pytest
import tensorflow as tf
tf.config.set_visible_devices([], 'GPU')

import ccp_models.cli.estimate_ccp as estimate_ccp_cli
from ccp_models.ccp import CCPEstimationError
from ccp_models.cli.estimate_ccp import main, run_pipeline, validate_recursion
from ccp_models.config.estimation_config import EstimationConfig
from ccp_models.config.model_params import THETA_NAMES, ModelParams
from ccp_models.io.artifacts import load_panel
from ccp_models.vfi import solve


def _small_params():
    return ModelParams(horizon=4, n_experience=5)


def _small_config(**overrides):
    kwargs = dict(n_individuals=5_000, seed=11, block_size=1_000, rho_grid=(1.5, 2.0, 2.5))
    kwargs.update(overrides)
    return EstimationConfig(**kwargs)


@pytest.fixture(scope="module")
def pipeline_output(tmp_path_factory):
    out = tmp_path_factory.mktemp("pipeline")
    report = run_pipeline(_small_params(), _small_config(), output_dir=str(out))
    return report, out


@pytest.mark.slow
class TestPipeline:

    def test_validate_recursion_small_gap(self):
        assert validate_recursion(solve(_small_params())) < 1e-6

    def test_report_keys(self, pipeline_output):
        report, _ = pipeline_output
        for key in ("true", "recursion_max_relative_gap", "choice_shares",
                    "wage_moments", "first_stage", "estimation"):
            assert key in report

    def test_report_recursion_gap(self, pipeline_output):
        report, _ = pipeline_output
        assert report["recursion_max_relative_gap"] < 1e-6

    def test_choice_shares_sum_to_one(self, pipeline_output):
        report, _ = pipeline_output
        assert sum(report["choice_shares"]) == pytest.approx(1.0)

    def test_first_stage_reported(self, pipeline_output):
        report, _ = pipeline_output
        assert len(report["first_stage"]["kernels"]) == 3
        assert report["first_stage"]["wage_equation"]["n_obs"] > 0

    def test_estimation_summary(self, pipeline_output):
        report, _ = pipeline_output
        summary = report["estimation"]
        assert summary["best_rho"] in (1.5, 2.0, 2.5)
        assert set(summary["theta_hat"]) == set(THETA_NAMES)
        assert all(np.isfinite(v) for v in summary["theta_hat"].values())

    def test_artifacts_written(self, pipeline_output):
        report, out = pipeline_output
        assert (out / "solution.npz").exists()
        panel = load_panel(str(out / "panel.npz"))
        assert panel.n_individuals == report["n_individuals"]
        with open(out / "estimation_report.json") as f:
            saved = json.load(f)
        assert saved["estimation"]["best_rho"] == report["estimation"]["best_rho"]

    def test_known_first_stage(self):
        report = run_pipeline(_small_params(), _small_config(), first_stage=False)
        assert report["first_stage"]["wage_equation"] is None
        assert report["first_stage"]["kernels"] == []

    def test_recursion_gap_stops_pipeline(self, tmp_path, monkeypatch):
        monkeypatch.setattr(estimate_ccp_cli, "validate_recursion", lambda solution: 1e-3)
        with pytest.raises(CCPEstimationError, match="relative gap"):
            run_pipeline(_small_params(), _small_config(), output_dir=str(tmp_path))
        assert not (tmp_path / "estimation_report.json").exists()

    def test_main_exits_on_bad_config(self, tmp_path, monkeypatch):
        config_path = tmp_path / "bad.json"
        config_path.write_text(json.dumps({"model": {"horizon": 0}}))
        monkeypatch.setattr(
            "sys.argv",
            ["estimate_ccp", "--config", str(config_path), "--output-dir", str(tmp_path)],
        )
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
