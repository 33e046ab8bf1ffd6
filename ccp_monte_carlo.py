#!/usr/bin/env python3
"""Monte Carlo study of the CCP (Hotz-Miller) estimator.

Solves the model once at the configured parameters, then for every
replication:

  - simulates a fresh panel from an independent seed
  - optionally runs the first stage (wage equation, experience kernels)
  - builds smoothed empirical choice probabilities
  - recovers θ = (γ, pref_1, pref_2) over the risk-aversion grid

and reports bias / RMSE of θ̂ at the selected ρ, the frequency with
which each grid point is selected, and the mean number of dropped
zero-cell regression rows.

Usage::

    # 20 replications at the default panel size
    python ccp_monte_carlo.py --mc-replications 20

    # Known first stage, larger panel
    python ccp_monte_carlo.py --skip-first-stage --n-individuals 50000
"""

from __future__ import annotations

import argparse
import csv
import dataclasses
import json
import logging
import os
import time
from typing import Any, Dict, List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from ccp_models.ccp import (
    apply_transition_estimates,
    estimate,
    estimate_ccp,
    estimate_transition_kernels,
    estimate_wage_equations,
)
from ccp_models.config.estimation_config import EstimationConfig, load_estimation_config
from ccp_models.config.model_params import THETA_NAMES, ModelParams, load_model_params
from ccp_models.vfi import DiscreteChoiceSolution, simulate, solve

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PARAMS_FILE = os.path.join(BASE_DIR, "hyperparam/ccp_params.json")


# =========================================================================
#  Replication record
# =========================================================================

@dataclasses.dataclass
class ReplicationResult:
    """Outcome of one Monte Carlo replication."""

    replication_id: int
    seed: int
    best_rho: float
    theta_hat: np.ndarray
    scores: Dict[float, float]
    n_dropped_rows: int
    n_zero_cells: int
    wall_time: float


# =========================================================================
#  Single replication
# =========================================================================

def run_single_replication(
    solution: DiscreteChoiceSolution,
    config: EstimationConfig,
    replication_id: int,
    seed: int,
    first_stage: bool = True,
) -> ReplicationResult:
    """Simulate one panel and estimate on it.

    Parameters
    ----------
    solution : DiscreteChoiceSolution
        Model solved at the true parameters.
    config : EstimationConfig
        Panel size, smoothing policy and the risk-aversion grid.
    replication_id : int
        Index used in logs and the CSV.
    seed : int
        Root seed of this replication's panel.
    first_stage : bool
        Estimate the wage equation and kernels instead of using the truth.

    Returns
    -------
    ReplicationResult
    """
    t0 = time.perf_counter()
    params = solution.params
    panel = simulate(
        solution,
        config.n_individuals,
        seed=seed,
        block_size=config.block_size,
        n_workers=config.n_workers,
    )

    if first_stage:
        wage_hat = estimate_wage_equations(panel)
        kernels, transition_hat = estimate_transition_kernels(
            panel, params.n_experience, initial_guesses=list(params.kernel_specs),
        )
        params_hat = apply_transition_estimates(wage_hat.apply_to(params), transition_hat)
    else:
        kernels, params_hat = solution.kernels, params

    ccp = estimate_ccp(
        panel,
        params.n_experience,
        probability_floor=config.probability_floor,
        zero_cell_policy=config.zero_cell_policy,
    )
    result = estimate(ccp, kernels, params_hat, config.rho_grid, config)
    best = next(est for est in result.estimates if est.rho == result.best_rho)

    wall_time = time.perf_counter() - t0
    logger.info(
        "Replication %d: rho=%.2f  θ̂=[%.4f, %.4f, %.4f]  (%.1f s)",
        replication_id, result.best_rho, *result.theta_hat, wall_time,
    )
    return ReplicationResult(
        replication_id=replication_id,
        seed=seed,
        best_rho=result.best_rho,
        theta_hat=np.asarray(result.theta_hat),
        scores=dict(result.scores),
        n_dropped_rows=best.n_dropped_rows,
        n_zero_cells=ccp.n_zero_cells,
        wall_time=wall_time,
    )


# =========================================================================
#  Aggregation and output
# =========================================================================

def aggregate_results(
    results: List[ReplicationResult],
    params: ModelParams,
    rho_grid: List[float],
) -> Dict[str, Any]:
    """Aggregate replications into bias / RMSE and ρ selection frequencies."""
    R = len(results)
    thetas = np.array([r.theta_hat for r in results])
    true_vals = params.theta

    bias = np.mean(thetas, axis=0) - true_vals
    bias_pct = 100.0 * bias / true_vals
    rmse = np.sqrt(np.mean((thetas - true_vals) ** 2, axis=0))
    rmse_pct = 100.0 * rmse / true_vals
    sd_theta = np.std(thetas, axis=0, ddof=1) if R > 1 else np.zeros(len(true_vals))

    best_rhos = np.array([r.best_rho for r in results])
    rho_freq = {str(rho): float(np.mean(np.isclose(best_rhos, rho))) for rho in rho_grid}

    summary: Dict[str, Any] = {
        "R": R,
        "param_names": list(THETA_NAMES),
        "true_values": true_vals.tolist(),
        "true_rho": params.risk_aversion,
        "mean_theta": np.mean(thetas, axis=0).tolist(),
        "sd_theta": sd_theta.tolist(),
        "bias": bias.tolist(),
        "bias_pct": bias_pct.tolist(),
        "rmse": rmse.tolist(),
        "rmse_pct": rmse_pct.tolist(),
        "rho_selection_frequency": rho_freq,
        "mean_dropped_rows": float(np.mean([r.n_dropped_rows for r in results])),
        "mean_wall_time": float(np.mean([r.wall_time for r in results])),
    }

    logger.info("\n" + "=" * 72)
    logger.info("CCP MONTE CARLO SUMMARY  (%d replications)", R)
    logger.info("=" * 72)
    logger.info("%-16s  %8s  %8s  %8s  %8s", "Param", "True", "Mean", "Bias%", "RMSE%")
    logger.info("-" * 72)
    for j, name in enumerate(THETA_NAMES):
        logger.info(
            "%-16s  %8.4f  %8.4f  %+7.2f%%  %7.2f%%",
            name, true_vals[j], summary["mean_theta"][j], bias_pct[j], rmse_pct[j],
        )
    logger.info("-" * 72)
    logger.info("ρ selection frequency: %s", rho_freq)
    logger.info("=" * 72)
    return summary


def save_replication_csv(results: List[ReplicationResult], output_path: str) -> None:
    """Save per-replication results to CSV."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    fieldnames = [
        "replication_id", "seed", "best_rho",
        *[f"{name}_hat" for name in THETA_NAMES],
        "n_dropped_rows", "n_zero_cells", "wall_time",
    ]
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for r in results:
            row = {
                "replication_id": r.replication_id,
                "seed": r.seed,
                "best_rho": r.best_rho,
                "n_dropped_rows": r.n_dropped_rows,
                "n_zero_cells": r.n_zero_cells,
                "wall_time": r.wall_time,
            }
            row.update({f"{name}_hat": float(v) for name, v in zip(THETA_NAMES, r.theta_hat)})
            writer.writerow(row)
    logger.info("Replication CSV saved: %s", output_path)


def save_summary_json(summary: Dict[str, Any], output_path: str) -> None:
    """Save Monte Carlo summary dictionary to a JSON file."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(summary, f, indent=2)
    logger.info("Summary JSON saved: %s", output_path)


def plot_monte_carlo(
    results: List[ReplicationResult],
    params: ModelParams,
    rho_grid: List[float],
    output_path: str,
) -> None:
    """Histogram θ̂ per parameter and bar-plot the ρ selection frequency.

    Parameters
    ----------
    results : list of ReplicationResult
        Individual replication results.
    params : ModelParams
        True parameters, drawn as reference lines.
    rho_grid : list of float
        Candidate risk-aversion values.
    output_path : str
        Destination PNG path.
    """
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    thetas = np.array([r.theta_hat for r in results])
    best_rhos = np.array([r.best_rho for r in results])

    fig, axes = plt.subplots(1, len(THETA_NAMES) + 1, figsize=(4 * (len(THETA_NAMES) + 1), 3.5))
    for j, name in enumerate(THETA_NAMES):
        ax = axes[j]
        ax.hist(thetas[:, j], bins=min(20, max(len(results), 1)), color="#4C72B0",
                alpha=0.7, edgecolor="white", linewidth=0.5)
        ax.axvline(params.theta[j], color="tab:red", linestyle="--", label="True")
        ax.set_title(name)
        ax.legend(fontsize=8)

    freq = [np.mean(np.isclose(best_rhos, rho)) for rho in rho_grid]
    axes[-1].bar([str(rho) for rho in rho_grid], freq, color="tab:blue")
    axes[-1].set_title(f"Selected ρ (true {params.risk_aversion})")
    axes[-1].set_ylim(0.0, 1.0)

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    logger.info("Figure saved: %s", output_path)


# =========================================================================
#  Main
# =========================================================================

def main() -> None:
    """Run the Monte Carlo experiment."""
    parser = argparse.ArgumentParser(description="Monte Carlo study of CCP estimation")
    parser.add_argument(
        "--config", type=str, default=CONFIG_PARAMS_FILE,
        help="JSON file with 'model' and 'estimation' sections",
    )
    parser.add_argument(
        "--mc-replications", type=int, default=10,
        help="Number of Monte Carlo replications (default: 10)",
    )
    parser.add_argument(
        "--n-individuals", type=int, default=None,
        help="Override the panel size",
    )
    parser.add_argument(
        "--skip-first-stage", action="store_true",
        help="Use the true wage equation and kernels",
    )
    parser.add_argument(
        "--output-dir", type=str, default="./results/ccp_monte_carlo",
        help="Output directory",
    )
    parser.add_argument(
        "--seed", type=int, default=2026,
        help="Master random seed",
    )
    parser.add_argument(
        "--no-plots", action="store_true",
        help="Skip the summary figure",
    )
    args = parser.parse_args()

    params = load_model_params(args.config)
    config = load_estimation_config(args.config)
    if args.n_individuals is not None:
        config = dataclasses.replace(config, n_individuals=args.n_individuals)

    logger.info("=" * 72)
    logger.info("CCP MONTE CARLO")
    logger.info("=" * 72)
    logger.info("  MC replications : %d", args.mc_replications)
    logger.info("  Panel           : N=%d, T=%d, E=%d",
                config.n_individuals, params.horizon, params.n_experience)
    logger.info("  ρ grid          : %s", config.rho_grid)
    logger.info("  First stage     : %s", "known" if args.skip_first_stage else "estimated")
    logger.info("  Output dir      : %s", args.output_dir)

    solution = solve(params)
    seeds = np.random.SeedSequence(args.seed).generate_state(args.mc_replications)

    results = [
        run_single_replication(
            solution, config, rep, int(seeds[rep]),
            first_stage=not args.skip_first_stage,
        )
        for rep in range(args.mc_replications)
    ]

    summary = aggregate_results(results, params, list(config.rho_grid))
    save_replication_csv(results, os.path.join(args.output_dir, "replications.csv"))
    save_summary_json(summary, os.path.join(args.output_dir, "summary.json"))
    if not args.no_plots:
        plot_monte_carlo(
            results, params, list(config.rho_grid),
            os.path.join(args.output_dir, "monte_carlo.png"),
        )


if __name__ == "__main__":
    main()
