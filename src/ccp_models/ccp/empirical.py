# ccp_models/ccp/empirical.py
"""
Empirical conditional choice probabilities from panel data.

Choice frequencies are counted per (period, experience) state. Cells
with zero observed count are handled by an explicit policy:

    * probabilities are always floored at ``probability_floor`` and
      renormalised, so the value recursion never takes ``log 0``;
    * under ``"drop"`` the estimator additionally excludes regression
      rows built from a zero-count cell;
    * under ``"floor"`` those rows are kept with the floored value.

States nobody visits get uniform probabilities; they enter the value
recursion only through transitions out of visited states.

Example:
    >>> ccp = estimate_ccp(panel, n_experience=10)
    >>> ccp.n_zero_cells, ccp.n_smoothed
"""

from dataclasses import dataclass
import logging

import numpy as np

from ccp_models.config.estimation_config import ZERO_CELL_POLICIES
from ccp_models.config.model_params import N_ACTIONS
from ccp_models.core.math import floor_probabilities
from ccp_models.vfi.simulation.panel_simulator import PanelData

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class EmpiricalCCP:
    """
    Smoothed choice probabilities and the counts behind them.

    Attributes:
        probabilities: Floored probabilities, shape (T, E, n_actions).
        frequencies: Raw frequencies, zero for unvisited states.
        counts: Observed choice counts, shape (T, E, n_actions).
        zero_cell_policy: ``"drop"`` or ``"floor"``.
        probability_floor: Floor applied before renormalising.
        n_smoothed: Number of cells in visited states raised by the floor.
    """

    probabilities: np.ndarray
    frequencies: np.ndarray
    counts: np.ndarray
    zero_cell_policy: str
    probability_floor: float
    n_smoothed: int

    @property
    def state_counts(self) -> np.ndarray:
        """Observations per (period, experience) state."""
        return self.counts.sum(axis=-1)

    @property
    def observed_states(self) -> np.ndarray:
        """Boolean mask of visited states, shape (T, E)."""
        return self.state_counts > 0

    @property
    def zero_cells(self) -> np.ndarray:
        """Boolean mask of zero-count cells in visited states."""
        return (self.counts == 0) & self.observed_states[..., None]

    @property
    def n_zero_cells(self) -> int:
        return int(self.zero_cells.sum())


def count_choices(
    panel: PanelData,
    n_experience: int,
    n_actions: int = N_ACTIONS
) -> np.ndarray:
    """
    Count observed actions per (period, experience) state.

    Args:
        panel: Panel with zero-based experience indices.
        n_experience: Number of experience levels E.
        n_actions: Number of actions.

    Returns:
        Integer array of shape (T, E, n_actions).
    """
    horizon = panel.horizon
    if panel.experience.min() < 0 or panel.experience.max() >= n_experience:
        raise ValueError(
            f"experience indices must lie in [0, {n_experience - 1}]"
        )
    if panel.actions.min() < 0 or panel.actions.max() >= n_actions:
        raise ValueError(f"actions must lie in [0, {n_actions - 1}]")

    counts = np.zeros((horizon, n_experience, n_actions), dtype=np.int64)
    periods = np.broadcast_to(np.arange(horizon), panel.actions.shape)
    np.add.at(counts, (periods, panel.experience, panel.actions), 1)
    return counts


def ccp_from_counts(
    counts: np.ndarray,
    probability_floor: float = 1e-4,
    zero_cell_policy: str = "drop",
) -> EmpiricalCCP:
    """
    Turn choice counts into smoothed probabilities.

    Args:
        counts: Choice counts, shape (T, E, n_actions).
        probability_floor: Minimum probability before renormalising.
        zero_cell_policy: ``"drop"`` or ``"floor"``.

    Returns:
        EmpiricalCCP with the floored probabilities and bookkeeping.

    Raises:
        ValueError: On an unknown policy, a floor outside (0, 1 / n_actions)
            or negative counts.
    """
    if zero_cell_policy not in ZERO_CELL_POLICIES:
        raise ValueError(
            f"zero_cell_policy must be one of {ZERO_CELL_POLICIES}, "
            f"got {zero_cell_policy!r}"
        )
    counts = np.asarray(counts)
    n_actions = counts.shape[-1]
    if not (0.0 < probability_floor < 1.0 / n_actions):
        raise ValueError(
            f"probability_floor must be in (0, 1/{n_actions}), got {probability_floor}"
        )
    if np.any(counts < 0):
        raise ValueError("counts must be non-negative")

    state_counts = counts.sum(axis=-1, keepdims=True)
    visited = state_counts > 0
    frequencies = np.where(visited, counts / np.maximum(state_counts, 1), 0.0)

    uniform = np.full_like(frequencies, 1.0 / n_actions)
    raw = np.where(visited, frequencies, uniform)
    raised = (raw < probability_floor) & visited
    probabilities = floor_probabilities(raw, probability_floor).numpy()

    n_unvisited = int((~visited).sum())
    n_smoothed = int(raised.sum())
    if n_unvisited:
        logger.warning(f"{n_unvisited} unvisited states given uniform choice probabilities")
    if n_smoothed:
        logger.warning(
            f"{n_smoothed} zero/low-frequency cells floored at {probability_floor:g} "
            f"(policy={zero_cell_policy})"
        )

    return EmpiricalCCP(
        probabilities=probabilities,
        frequencies=frequencies,
        counts=counts,
        zero_cell_policy=zero_cell_policy,
        probability_floor=float(probability_floor),
        n_smoothed=n_smoothed,
    )


def estimate_ccp(
    panel: PanelData,
    n_experience: int,
    probability_floor: float = 1e-4,
    zero_cell_policy: str = "drop",
    n_actions: int = N_ACTIONS,
) -> EmpiricalCCP:
    """Count choices in *panel* and return smoothed empirical CCPs."""
    counts = count_choices(panel, n_experience, n_actions)
    return ccp_from_counts(counts, probability_floor, zero_cell_policy)
