"""First-stage estimation of the wage equation and the experience kernels.

Both objects are identified without solving the dynamic program:

* the wage equation by OLS on the log wages observed in market periods
  (selection on the logit shock does not bias it because wage shocks are
  realised after the choice);
* each action's experience kernel by minimum distance between the
  empirical transition frequencies and the quantile-grid normal kernel,
  searched over ``(drift, log dispersion)`` with Nelder-Mead.

The estimates feed the CCP inversion in place of the true values.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize

from ccp_models.config.model_params import MARKET_ACTIONS, N_ACTIONS, ModelParams
from ccp_models.vfi.grids.grid_utils import build_transition
from ccp_models.vfi.simulation.panel_simulator import PanelData

logger = logging.getLogger(__name__)

KERNEL_FIELDS: Tuple[str, ...] = ("depreciation", "stasis", "accumulation")
"""Kernel regime per action, matching the ``ModelParams`` field prefixes."""


# =========================================================================
#  Wage equation
# =========================================================================

@dataclasses.dataclass(frozen=True)
class WageEquationEstimate:
    """OLS estimates of ``log w = b0[a] + b1[a]·level + b_age·period + σ ε``.

    Attributes
    ----------
    intercept, experience : tuple of float
        Per-action coefficients; entry 0 (home) is 0.
    age_return : float
        Pooled return to one period of age.
    shock_std : float
        Residual standard deviation (degrees-of-freedom corrected).
    n_obs : int
        Observed wages used.
    """

    intercept: Tuple[float, ...]
    experience: Tuple[float, ...]
    age_return: float
    shock_std: float
    n_obs: int

    def apply_to(self, params: ModelParams) -> ModelParams:
        """Return *params* with the wage equation replaced by these estimates."""
        return dataclasses.replace(
            params,
            wage_intercept=self.intercept,
            wage_experience=self.experience,
            age_return=self.age_return,
            wage_shock_std=self.shock_std,
        )


def _wage_observations(panel: PanelData) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Flatten observed market wages into (action, level, period, log wage)."""
    periods = np.broadcast_to(np.arange(1, panel.horizon + 1), panel.actions.shape)
    observed = np.isin(panel.actions, MARKET_ACTIONS) & np.isfinite(panel.log_wages)
    return (
        panel.actions[observed],
        panel.experience[observed] + 1.0,
        periods[observed].astype(np.float64),
        panel.log_wages[observed],
    )


def estimate_wage_equation(panel: PanelData, action: int) -> Dict[str, float]:
    """OLS of log wages on ``[1, experience level, period]`` for one action.

    Returns
    -------
    dict
        ``intercept``, ``experience``, ``age_return``, ``shock_std``, ``n_obs``.

    Raises
    ------
    ValueError
        If *action* is not a market action or too few wages are observed.
    """
    if action not in MARKET_ACTIONS:
        raise ValueError(f"action must be one of {MARKET_ACTIONS}, got {action}")

    actions, levels, periods, log_w = _wage_observations(panel)
    keep = actions == action
    X = np.column_stack([np.ones(keep.sum()), levels[keep], periods[keep]])
    y = log_w[keep]
    coef, resid_std = _ols(X, y, f"action {action}")
    return {
        "intercept": float(coef[0]),
        "experience": float(coef[1]),
        "age_return": float(coef[2]),
        "shock_std": resid_std,
        "n_obs": int(y.size),
    }


def estimate_wage_equations(panel: PanelData) -> WageEquationEstimate:
    """Pooled OLS with action-specific intercepts and experience slopes.

    Regressors: ``[1{a=1}, 1{a=2}, 1{a=1}·level, 1{a=2}·level, period]``.
    """
    actions, levels, periods, log_w = _wage_observations(panel)
    d1 = (actions == MARKET_ACTIONS[0]).astype(np.float64)
    d2 = (actions == MARKET_ACTIONS[1]).astype(np.float64)
    X = np.column_stack([d1, d2, d1 * levels, d2 * levels, periods])
    coef, resid_std = _ols(X, log_w, "pooled")

    intercept = [0.0] * N_ACTIONS
    experience = [0.0] * N_ACTIONS
    intercept[MARKET_ACTIONS[0]], intercept[MARKET_ACTIONS[1]] = coef[0], coef[1]
    experience[MARKET_ACTIONS[0]], experience[MARKET_ACTIONS[1]] = coef[2], coef[3]

    estimate = WageEquationEstimate(
        intercept=tuple(float(c) for c in intercept),
        experience=tuple(float(c) for c in experience),
        age_return=float(coef[4]),
        shock_std=resid_std,
        n_obs=int(log_w.size),
    )
    logger.info(
        "Wage equation: b0=%s, b1=%s, b_age=%.4f, sigma=%.4f (n=%d)",
        np.round(estimate.intercept, 4), np.round(estimate.experience, 4),
        estimate.age_return, estimate.shock_std, estimate.n_obs,
    )
    return estimate


def _ols(X: np.ndarray, y: np.ndarray, label: str) -> Tuple[np.ndarray, float]:
    n_obs, n_reg = X.shape
    if n_obs <= n_reg:
        raise ValueError(
            f"Wage equation ({label}) needs more than {n_reg} observed wages, got {n_obs}"
        )
    coef, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)
    if rank < n_reg:
        raise ValueError(
            f"Wage equation ({label}) regressors are collinear (rank {rank} < {n_reg})"
        )
    resid = y - X @ coef
    return coef, float(np.sqrt(resid @ resid / (n_obs - n_reg)))


# =========================================================================
#  Experience transitions
# =========================================================================

@dataclasses.dataclass(frozen=True)
class TransitionEstimate:
    """Minimum-distance estimate of one action's kernel parameters."""

    action: int
    drift: float
    dispersion: float
    distance: float
    n_transitions: int
    converged: bool


def transition_counts(panel: PanelData, action: int, n_experience: int) -> np.ndarray:
    """Count ``e_t → e_{t+1}`` moves following *action*, shape ``(E, E)``."""
    chosen = panel.actions[:, :-1] == action
    origin = panel.experience[:, :-1][chosen]
    dest = panel.experience[:, 1:][chosen]
    counts = np.zeros((n_experience, n_experience), dtype=np.int64)
    np.add.at(counts, (origin, dest), 1)
    return counts


def empirical_transition_matrix(
    panel: PanelData,
    action: int,
    n_experience: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Empirical transition frequencies after *action*.

    Returns
    -------
    freq : np.ndarray
        Row-normalised frequencies ``(E, E)``; rows with no origin
        observations are zero.
    origin_counts : np.ndarray
        Observations per origin level, ``(E,)``.
    """
    counts = transition_counts(panel, action, n_experience)
    origin_counts = counts.sum(axis=1)
    freq = np.where(
        origin_counts[:, None] > 0,
        counts / np.maximum(origin_counts[:, None], 1),
        0.0,
    )
    return freq, origin_counts


def _transition_distance(
    x: np.ndarray,
    freq: np.ndarray,
    origin_counts: np.ndarray,
) -> float:
    """Origin-count-weighted squared distance; ``x = (drift, log dispersion)``."""
    drift, log_disp = float(x[0]), float(x[1])
    if not (np.isfinite(drift) and np.isfinite(log_disp)) or abs(log_disp) > 20:
        return 1e10
    kernel = build_transition(drift, float(np.exp(log_disp)), freq.shape[0]).numpy()
    return float(np.sum(origin_counts[:, None] * (freq - kernel) ** 2))


def estimate_transition_params(
    panel: PanelData,
    action: int,
    n_experience: int,
    initial_guess: Tuple[float, float] = (0.0, 0.3),
) -> TransitionEstimate:
    """Fit ``(drift, dispersion)`` of one action's kernel by minimum distance.

    Parameters
    ----------
    panel : PanelData
        Observed panel.
    action : int
        Action whose kernel is estimated.
    n_experience : int
        Number of experience levels E.
    initial_guess : tuple of float
        Starting ``(drift, dispersion)``.

    Raises
    ------
    ValueError
        If no transition after *action* is observed or the guess is invalid.
    """
    if initial_guess[1] <= 0:
        raise ValueError(f"initial dispersion must be positive, got {initial_guess[1]}")

    freq, origin_counts = empirical_transition_matrix(panel, action, n_experience)
    n_transitions = int(origin_counts.sum())
    if n_transitions == 0:
        raise ValueError(f"No transitions observed after action {action}")

    x0 = np.array([initial_guess[0], np.log(initial_guess[1])])
    result = minimize(
        _transition_distance,
        x0,
        args=(freq, origin_counts),
        method="Nelder-Mead",
        options={"xatol": 1e-6, "fatol": 1e-10, "maxiter": 2000, "adaptive": True},
    )
    if not result.success:
        logger.warning("Kernel fit for action %d did not converge: %s", action, result.message)

    estimate = TransitionEstimate(
        action=action,
        drift=float(result.x[0]),
        dispersion=float(np.exp(result.x[1])),
        distance=float(result.fun),
        n_transitions=n_transitions,
        converged=bool(result.success),
    )
    logger.info(
        "Kernel action %d (%s): drift=%.4f, dispersion=%.4f, distance=%.3e, n=%d",
        action, KERNEL_FIELDS[action], estimate.drift, estimate.dispersion,
        estimate.distance, n_transitions,
    )
    return estimate


def estimate_transition_kernels(
    panel: PanelData,
    n_experience: int,
    initial_guesses: Optional[Sequence[Tuple[float, float]]] = None,
) -> Tuple[np.ndarray, Tuple[TransitionEstimate, ...]]:
    """Estimate every action's kernel.

    Returns
    -------
    kernels : np.ndarray
        ``(n_actions, E, E)`` built from the estimated parameters.
    estimates : tuple of TransitionEstimate
    """
    if initial_guesses is None:
        initial_guesses = [(0.0, 0.3)] * N_ACTIONS
    estimates = tuple(
        estimate_transition_params(panel, a, n_experience, tuple(initial_guesses[a]))
        for a in range(N_ACTIONS)
    )
    kernels = np.stack(
        [build_transition(e.drift, e.dispersion, n_experience).numpy() for e in estimates]
    )
    return kernels, estimates


def apply_transition_estimates(
    params: ModelParams,
    estimates: Sequence[TransitionEstimate],
) -> ModelParams:
    """Return *params* with the kernel drifts and dispersions replaced."""
    updates = {}
    for est in estimates:
        prefix = KERNEL_FIELDS[est.action]
        updates[f"{prefix}_drift"] = est.drift
        updates[f"{prefix}_dispersion"] = est.dispersion
    return dataclasses.replace(params, **updates)
