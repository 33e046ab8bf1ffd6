"""Backward induction for the finite-horizon discrete choice model.

Solves the agent's problem over periods ``t = T, T-1, ..., 1`` on the
experience grid.  Each period the agent picks one of three actions
(home, activity-1, activity-2) after observing i.i.d. type-1
extreme-value shocks, so every period reduces to a log-sum-exp over the
conditional values ``Q``.

Architecture note
-----------------
This module is a thin orchestrator.  Flow utilities come from
``econ.utility``, kernels from ``vfi.grids``, and the per-period
numerics from ``vfi.kernels.bellman_kernels``.  The result is an
immutable :class:`DiscreteChoiceSolution` consumed by the simulator and
by the CCP recursion; nothing downstream mutates it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np
import tensorflow as tf

from ccp_models.config.model_params import ModelParams
from ccp_models.core.types import TENSORFLOW_DTYPE, Array
from ccp_models.econ import FlowUtilityBasis, WageEquation
from ccp_models.vfi.grids.grid_builder import GridBuilder
from ccp_models.vfi.kernels.bellman_kernels import bellman_step, terminal_step

logger = logging.getLogger(__name__)


def _read_only(array: Array) -> Array:
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class DiscreteChoiceSolution:
    """Immutable snapshot of a solved model.

    Attributes
    ----------
    params : ModelParams
        Parameters the model was solved at.
    V : np.ndarray
        Smoothed value function, ``(T, E)``.
    Q : np.ndarray
        Conditional values, ``(T, E, n_actions)``.
    P : np.ndarray
        Logit choice probabilities, ``(T, E, n_actions)``.
    kernels : np.ndarray
        Per-action experience kernels, ``(n_actions, E, E)``.
    log_wage : np.ndarray
        Expected log wage, ``(T, E, n_actions)``; zero for home.
    flow : np.ndarray
        Flow utility, ``(T, E, n_actions)``.
    """

    params: ModelParams
    V: Array
    Q: Array
    P: Array
    kernels: Array
    log_wage: Array
    flow: Array

    def __post_init__(self) -> None:
        for name in ("V", "Q", "P", "kernels", "log_wage", "flow"):
            object.__setattr__(self, name, _read_only(getattr(self, name)))

    @property
    def horizon(self) -> int:
        return self.V.shape[0]

    @property
    def n_experience(self) -> int:
        return self.V.shape[1]

    def as_dict(self) -> Dict[str, Array]:
        """Return the arrays of the solution keyed by name."""
        return {
            "V": self.V,
            "Q": self.Q,
            "P": self.P,
            "kernels": self.kernels,
            "log_wage": self.log_wage,
            "flow": self.flow,
        }


class FiniteHorizonVFI:
    """Backward-induction solver.

    State space : (period t, experience e)
    Choice      : action a in {home, activity-1, activity-2}

    Parameters
    ----------
    params : ModelParams
        Structural parameters (frozen dataclass, validated on creation).
    """

    def __init__(self, params: ModelParams) -> None:
        self.params: ModelParams = params
        self.kernels: tf.Tensor = GridBuilder.build_experience_kernels(params)
        self.log_wage: tf.Tensor = WageEquation.expected_log_wage(params)
        self.flow: tf.Tensor = FlowUtilityBasis.flow_utility(params)

    def solve(self) -> DiscreteChoiceSolution:
        """Run backward induction from the last period to the first.

        Returns
        -------
        DiscreteChoiceSolution
            Value function, conditional values and choice probabilities
            for every (period, experience) pair.
        """
        params = self.params
        horizon = params.horizon
        beta = tf.constant(params.discount_factor, dtype=TENSORFLOW_DTYPE)
        multiplier = tf.constant(params.perpetuity_multiplier, dtype=TENSORFLOW_DTYPE)
        euler = tf.constant(params.terminal_euler_constant, dtype=TENSORFLOW_DTYPE)

        logger.info(
            "Solving model: T=%d, E=%d, rho=%.3f, beta=%.4f",
            horizon, params.n_experience, params.risk_aversion, params.discount_factor,
        )

        q_by_period = [None] * horizon
        v_by_period = [None] * horizon
        p_by_period = [None] * horizon

        q_t, v_t, p_t = terminal_step(self.flow[horizon - 1], multiplier, euler)
        q_by_period[-1], v_by_period[-1], p_by_period[-1] = q_t, v_t, p_t

        for t in range(horizon - 2, -1, -1):
            q_t, v_t, p_t = bellman_step(self.flow[t], v_t, self.kernels, beta)
            q_by_period[t], v_by_period[t], p_by_period[t] = q_t, v_t, p_t
            logger.debug(
                "Period %d: V in [%.4f, %.4f]",
                t + 1, float(tf.reduce_min(v_t)), float(tf.reduce_max(v_t)),
            )

        V = tf.stack(v_by_period, axis=0)
        if not bool(tf.reduce_all(tf.math.is_finite(V))):
            raise FloatingPointError("Backward induction produced a non-finite value function.")

        logger.info("Backward induction complete (V[0] mean=%.4f)", float(tf.reduce_mean(V[0])))

        return DiscreteChoiceSolution(
            params=params,
            V=V.numpy(),
            Q=tf.stack(q_by_period, axis=0).numpy(),
            P=tf.stack(p_by_period, axis=0).numpy(),
            kernels=self.kernels.numpy(),
            log_wage=self.log_wage.numpy(),
            flow=self.flow.numpy(),
        )


def solve(params: ModelParams) -> DiscreteChoiceSolution:
    """Solve the model at *params*; a pure function of the configuration."""
    return FiniteHorizonVFI(params).solve()
