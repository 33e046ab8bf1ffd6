"""Hotz-Miller parameter estimation with an outer risk-aversion search.

For a fixed risk aversion ``ρ`` the logit log-odds of every market
action against staying home are linear in ``θ = (γ, pref_1, pref_2)``:

    log P_a − log P_0 = [c_t Δbasis + β (G_a − G_0) B_{t+1}] θ
                        + c_t Δoffset + β (G_a − G_0) A_{t+1}

where ``(A, B)`` come from :mod:`ccp_models.ccp.recursion` driven by the
empirical probabilities and ``c_t`` is the perpetuity multiplier in the
last period (1 otherwise; the continuation term is absent there).
Stacking these rows over visited states gives a weighted least-squares
problem.  The outer loop repeats this over a grid of ``ρ`` and scores
each candidate by the log-likelihood of the observed choices.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import tensorflow as tf

from ccp_models.config.estimation_config import EstimationConfig
from ccp_models.config.model_params import HOME, MARKET_ACTIONS, THETA_NAMES, ModelParams
from ccp_models.core.types import TENSORFLOW_DTYPE, Array
from ccp_models.econ.utility import FlowUtilityBasis
from ccp_models.ccp.empirical import EmpiricalCCP
from ccp_models.ccp.errors import IllConditionedRegressionError
from ccp_models.ccp.recursion import CCPRecursion, LinearRepresentation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RhoEstimate:
    """Estimation result at one candidate risk aversion.

    Attributes
    ----------
    rho : float
        Risk aversion the basis was built with.
    theta : np.ndarray
        Least-squares estimate of ``(γ, pref_1, pref_2)``.
    log_likelihood : float
        Log-likelihood of the observed choices at ``θ̂(ρ)``.
    ssr : float
        Weighted sum of squared log-odds residuals.
    n_rows : int
        Regression rows used.
    n_dropped_rows : int
        Rows excluded by the ``"drop"`` zero-cell policy.
    singular_values : np.ndarray
        Singular values of the weighted design matrix.
    representation : LinearRepresentation
        ``(A, B)`` from the empirical probabilities.
    """

    rho: float
    theta: Array
    log_likelihood: float
    ssr: float
    n_rows: int
    n_dropped_rows: int
    singular_values: Array
    representation: LinearRepresentation

    def score(self, kind: str = "likelihood") -> float:
        """Return the score used to rank candidate ``ρ`` values."""
        return self.log_likelihood if kind == "likelihood" else -self.ssr


@dataclass(frozen=True, eq=False)
class GridSearchResult:
    """Outcome of the outer search over risk aversion."""

    best_rho: float
    theta_hat: Array
    scores: Dict[float, float]
    estimates: Tuple[RhoEstimate, ...]
    score_name: str

    def summary(self) -> Dict[str, object]:
        """JSON-serialisable summary of the search."""
        return {
            "best_rho": self.best_rho,
            "theta_hat": dict(zip(THETA_NAMES, map(float, self.theta_hat))),
            "score": self.score_name,
            "scores": {str(rho): float(s) for rho, s in self.scores.items()},
            "per_rho": [
                {
                    "rho": est.rho,
                    "theta": dict(zip(THETA_NAMES, map(float, est.theta))),
                    "log_likelihood": est.log_likelihood,
                    "ssr": est.ssr,
                    "n_rows": est.n_rows,
                    "n_dropped_rows": est.n_dropped_rows,
                }
                for est in self.estimates
            ],
        }


class HotzMillerEstimator:
    """CCP-inversion estimator of the linearly-entering utility parameters.

    Parameters
    ----------
    kernels : array-like
        Per-action experience kernels, ``(n_actions, E, E)``.
    params : ModelParams
        Supplies the (already estimated) wage equation, the wage-shock
        standard deviation, the discount rate and the home normalisation.
        Its ``θ`` and ``risk_aversion`` entries are not used.
    config : EstimationConfig, optional
        Weighting, scoring, rank tolerance and worker settings.
    log_wage : array-like, optional
        Expected log wages ``(T, E, n_actions)``; defaults to the wage
        equation in ``params``.
    """

    def __init__(
        self,
        kernels: Array,
        params: ModelParams,
        config: Optional[EstimationConfig] = None,
        log_wage: Optional[Array] = None,
    ) -> None:
        self.kernels = np.asarray(kernels, dtype=np.float64)
        self.params = params
        self.config = config if config is not None else EstimationConfig()
        self.log_wage = None if log_wage is None else np.asarray(log_wage, dtype=np.float64)
        self.recursion = CCPRecursion(self.kernels, params.discount_factor)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate_at(self, ccp: EmpiricalCCP, rho: float) -> RhoEstimate:
        """Estimate ``θ`` for a fixed risk aversion.

        Raises
        ------
        IllConditionedRegressionError
            If the stacked design matrix has fewer rows than parameters
            or is numerically rank deficient.
        """
        basis, offset = (
            t.numpy() for t in FlowUtilityBasis.build(self.params, rho, self.log_wage)
        )
        representation = self.recursion.run(ccp.probabilities, basis, offset)
        design, intercept = self._conditional_value_terms(basis, offset, representation)

        X, y, weights, n_dropped = self._stack_rows(ccp, design, intercept)
        theta, singular_values = self._weighted_least_squares(X, y, weights, rho)

        residuals = y - X @ theta
        ssr = float(np.sum(weights * residuals ** 2))
        log_likelihood = self._log_likelihood(ccp, design, intercept, theta)

        logger.info(
            "rho=%.3f: theta=%s, loglik=%.3f, ssr=%.4f, rows=%d, dropped=%d",
            rho, np.array2string(theta, precision=4), log_likelihood, ssr,
            X.shape[0], n_dropped,
        )
        return RhoEstimate(
            rho=float(rho),
            theta=theta,
            log_likelihood=log_likelihood,
            ssr=ssr,
            n_rows=int(X.shape[0]),
            n_dropped_rows=n_dropped,
            singular_values=singular_values,
            representation=representation,
        )

    def grid_search(
        self,
        ccp: EmpiricalCCP,
        rho_grid: Optional[Sequence[float]] = None,
    ) -> GridSearchResult:
        """Estimate at every candidate ``ρ`` and keep the best-scoring one."""
        grid = tuple(float(r) for r in (rho_grid if rho_grid is not None else self.config.rho_grid))
        if not grid:
            raise ValueError("rho_grid must contain at least one value")

        if self.config.n_workers > 1 and len(grid) > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_workers) as pool:
                estimates = tuple(pool.map(lambda r: self.estimate_at(ccp, r), grid))
        else:
            estimates = tuple(self.estimate_at(ccp, r) for r in grid)

        score_name = self.config.score
        scores = {est.rho: est.score(score_name) for est in estimates}
        best = max(estimates, key=lambda est: est.score(score_name))
        logger.info(
            "Best rho=%.3f (%s=%.4f), theta=%s",
            best.rho, score_name, scores[best.rho],
            np.array2string(best.theta, precision=4),
        )
        return GridSearchResult(
            best_rho=best.rho,
            theta_hat=best.theta,
            scores=scores,
            estimates=estimates,
            score_name=score_name,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _conditional_value_terms(
        self,
        basis: Array,
        offset: Array,
        representation: LinearRepresentation,
    ) -> Tuple[Array, Array]:
        """Write ``Q(θ) = design · θ + intercept`` up to action-invariant terms.

        Returns
        -------
        design : np.ndarray
            ``(T, E, n_actions, K)``.
        intercept : np.ndarray
            ``(T, E, n_actions)``.
        """
        beta = self.params.discount_factor
        multiplier = self.params.perpetuity_multiplier
        horizon = basis.shape[0]

        cont_a = np.zeros(offset.shape)
        cont_b = np.zeros(basis.shape)
        # G_a @ A_{t+1} for t < T-1; the last period has no continuation.
        cont_a[:-1] = beta * np.einsum("aij,tj->tia", self.kernels, representation.A[1:])
        cont_b[:-1] = beta * np.einsum("aij,tjk->tiak", self.kernels, representation.B[1:])

        scale = np.ones(horizon)
        scale[-1] = multiplier
        design = scale[:, None, None, None] * basis + cont_b
        intercept = scale[:, None, None] * offset + cont_a
        return design, intercept

    def _stack_rows(
        self,
        ccp: EmpiricalCCP,
        design: Array,
        intercept: Array,
    ) -> Tuple[Array, Array, Array, int]:
        """Stack log-odds rows of visited states for every market action."""
        log_p = np.log(ccp.probabilities)
        counts = ccp.counts
        state_counts = ccp.state_counts
        visited = ccp.observed_states

        rows_x, rows_y, rows_w = [], [], []
        n_dropped = 0
        for a in MARKET_ACTIONS:
            mask = visited.copy()
            if ccp.zero_cell_policy == "drop":
                usable = (counts[..., a] > 0) & (counts[..., HOME] > 0)
                n_dropped += int((mask & ~usable).sum())
                mask &= usable

            rows_x.append((design[..., a, :] - design[..., HOME, :])[mask])
            rows_y.append(
                (log_p[..., a] - log_p[..., HOME]
                 - intercept[..., a] + intercept[..., HOME])[mask]
            )
            if self.config.weighting == "inverse_variance":
                n_a = state_counts * ccp.probabilities[..., a]
                n_0 = state_counts * ccp.probabilities[..., HOME]
                rows_w.append((1.0 / (1.0 / n_a[mask] + 1.0 / n_0[mask])))
            else:
                rows_w.append(np.ones(int(mask.sum())))

        X = np.concatenate(rows_x, axis=0)
        y = np.concatenate(rows_y, axis=0)
        weights = np.concatenate(rows_w, axis=0)
        if n_dropped:
            logger.info("Dropped %d regression rows with zero-count cells", n_dropped)
        return X, y, weights, n_dropped

    def _weighted_least_squares(
        self,
        X: Array,
        y: Array,
        weights: Array,
        rho: float,
    ) -> Tuple[Array, Array]:
        """Solve ``min Σ w (y − X θ)²`` after a rank check."""
        n_rows, n_params = X.shape
        if n_rows < n_params:
            raise IllConditionedRegressionError(
                f"rho={rho}: {n_rows} regression rows cannot identify "
                f"{n_params} parameters",
                rank=n_rows,
                n_params=n_params,
            )

        sqrt_w = tf.constant(np.sqrt(weights)[:, None], dtype=TENSORFLOW_DTYPE)
        Xw = sqrt_w * tf.constant(X, dtype=TENSORFLOW_DTYPE)
        yw = sqrt_w * tf.constant(y[:, None], dtype=TENSORFLOW_DTYPE)

        singular_values = tf.linalg.svd(Xw, compute_uv=False).numpy()
        threshold = self.config.rank_tolerance * max(singular_values[0], np.finfo(float).tiny)
        rank = int(np.sum(singular_values > threshold))
        if rank < n_params:
            raise IllConditionedRegressionError(
                f"rho={rho}: design matrix has rank {rank} < {n_params} "
                f"(singular values {np.array2string(singular_values, precision=3)})",
                rank=rank,
                n_params=n_params,
                singular_values=singular_values,
            )

        theta = tf.linalg.lstsq(Xw, yw, fast=False)
        return theta.numpy()[:, 0], singular_values

    @staticmethod
    def _log_likelihood(
        ccp: EmpiricalCCP,
        design: Array,
        intercept: Array,
        theta: Array,
    ) -> float:
        """Log-likelihood of the observed choices under the implied logit."""
        q = tf.constant(design @ theta + intercept, dtype=TENSORFLOW_DTYPE)
        log_probs = tf.nn.log_softmax(q, axis=-1).numpy()
        return float(np.sum(ccp.counts * log_probs))


def estimate(
    empirical_ccp: EmpiricalCCP,
    kernels: Array,
    params: ModelParams,
    rho_grid: Optional[Sequence[float]] = None,
    config: Optional[EstimationConfig] = None,
    log_wage: Optional[Array] = None,
) -> GridSearchResult:
    """Recover ``θ`` over a grid of risk-aversion values and pick the best."""
    estimator = HotzMillerEstimator(kernels, params, config, log_wage)
    return estimator.grid_search(empirical_ccp, rho_grid)
