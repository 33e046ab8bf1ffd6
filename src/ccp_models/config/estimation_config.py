# ccp_models/config/estimation_config.py
"""
Configuration for CCP estimation runs.

This module provides the configuration of the simulated panel, the
empirical choice-probability smoothing policy, the least-squares
weighting and the outer risk-aversion grid.

Example:
    >>> from ccp_models.config.estimation_config import load_estimation_config
    >>> config = load_estimation_config("hyperparam/ccp_params.json")
    >>> print(f"Risk-aversion grid: {config.rho_grid}")
"""

from dataclasses import dataclass, fields
from typing import Tuple
import os
import logging
import math

from ccp_models.io.file_utils import load_json_file

logger = logging.getLogger(__name__)

ZERO_CELL_POLICIES: Tuple[str, ...] = ("drop", "floor")
WEIGHTINGS: Tuple[str, ...] = ("inverse_variance", "uniform")
SCORES: Tuple[str, ...] = ("likelihood", "residual")


@dataclass(frozen=True)
class EstimationConfig:
    """
    Configuration for simulation size, CCP smoothing and the rho search.

    Attributes:
        rho_grid: Candidate risk-aversion values scored by the outer search.
        zero_cell_policy: ``"drop"`` excludes regression rows built from a
            zero-count action cell; ``"floor"`` keeps them with floored
            probabilities. Probabilities are floored for the value
            recursion under both policies.
        probability_floor: Minimum choice probability before taking logs.
        weighting: ``"inverse_variance"`` (minimum chi-square weights) or
            ``"uniform"`` least squares.
        score: ``"likelihood"`` (log-likelihood of observed choices) or
            ``"residual"`` (negative weighted sum of squared residuals).
        rank_tolerance: Relative singular-value threshold below which the
            regression design is declared rank deficient.
        n_individuals: Simulated panel size.
        seed: Root seed of the simulation.
        block_size: Individuals per independent random stream.
        n_workers: Threads used for simulation blocks and rho grid points.
    """

    rho_grid: Tuple[float, ...] = (1.0, 1.5, 2.0, 2.5, 3.0)
    zero_cell_policy: str = "drop"
    probability_floor: float = 1e-4
    weighting: str = "inverse_variance"
    score: str = "likelihood"
    rank_tolerance: float = 1e-10

    n_individuals: int = 10_000
    seed: int = 1234
    block_size: int = 1_000
    n_workers: int = 1

    def __post_init__(self) -> None:
        """Validate the configuration after initialization."""
        object.__setattr__(self, "rho_grid", tuple(float(r) for r in self.rho_grid))
        if len(self.rho_grid) == 0:
            raise ValueError("rho_grid must contain at least one value")
        if not all(math.isfinite(r) and r > 0 for r in self.rho_grid):
            raise ValueError(f"rho_grid values must be positive and finite, got {self.rho_grid}")
        if self.zero_cell_policy not in ZERO_CELL_POLICIES:
            raise ValueError(
                f"zero_cell_policy must be one of {ZERO_CELL_POLICIES}, "
                f"got {self.zero_cell_policy!r}"
            )
        if self.weighting not in WEIGHTINGS:
            raise ValueError(
                f"weighting must be one of {WEIGHTINGS}, got {self.weighting!r}"
            )
        if self.score not in SCORES:
            raise ValueError(f"score must be one of {SCORES}, got {self.score!r}")
        if not (0.0 < self.probability_floor < 1.0 / 3.0):
            raise ValueError(
                f"probability_floor must be in (0, 1/3), got {self.probability_floor}"
            )
        if not (self.rank_tolerance > 0):
            raise ValueError(f"rank_tolerance must be positive, got {self.rank_tolerance}")
        if self.n_individuals < 1:
            raise ValueError(f"n_individuals must be >= 1, got {self.n_individuals}")
        if self.block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {self.block_size}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")


def load_estimation_config(
    filename: str,
    section: str = "estimation"
) -> EstimationConfig:
    """
    Load the estimation configuration from a JSON file.

    Args:
        filename: Path to the JSON configuration file.
        section: Key in the JSON file holding the estimation settings.

    Returns:
        Populated EstimationConfig instance; defaults when the file or
        the section is missing.
    """
    if not os.path.exists(filename):
        logger.warning(
            f"Estimation config file '{filename}' not found. Using defaults."
        )
        return EstimationConfig()

    full_data = load_json_file(filename)
    if section not in full_data:
        logger.warning(f"Key '{section}' not in {filename}. Using defaults.")
        return EstimationConfig()

    section_data = full_data[section]
    valid_keys = {f.name for f in fields(EstimationConfig)}
    filtered_data = {k: v for k, v in section_data.items() if k in valid_keys}

    return EstimationConfig(**filtered_data)
