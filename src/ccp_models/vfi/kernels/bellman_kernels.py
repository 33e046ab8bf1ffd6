"""Backward-induction XLA kernels for the finite-horizon logit model.

Contains three small XLA kernels:
- ``compute_ev``: discounted expected continuation value per action
- ``terminal_step``: perpetuity Q, smoothed max V and probabilities P
- ``bellman_step``: one backward step from V[t+1] to (Q[t], V[t], P[t])
"""

from __future__ import annotations

from typing import Tuple

import tensorflow as tf

from ccp_models.core.math import choice_probabilities, logsumexp_value

def compute_ev_core(
    v_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> tf.Tensor:
    """Compute discounted expected continuation value (undecorated).

    Returns ``β · (G[a] @ V)[e]`` arranged as ``(E, n_actions)``.

    Parameters
    ----------
    v_next : tf.Tensor
        Next-period value function, ``(E,)``.
    kernels : tf.Tensor
        Per-action transition kernels, ``(n_actions, E, E)``.
    beta : tf.Tensor
        Scalar discount factor.

    Returns
    -------
    tf.Tensor
        Discounted expected value, ``(E, n_actions)``.
    """
    ev = tf.einsum("aij,j->ia", kernels, v_next)
    return beta * ev


@tf.function(jit_compile=True)
def compute_ev(
    v_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> tf.Tensor:
    """Compute discounted expected continuation value (XLA-compiled).

    See :func:`compute_ev_core` for parameter documentation.
    """
    return compute_ev_core(v_next, kernels, beta)


def terminal_step_core(
    flow: tf.Tensor,
    multiplier: tf.Tensor,
    euler_constant: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Evaluate the last period with the perpetuity closed form (undecorated).

    ``Q = m · u + c`` where ``m`` sums the geometric discount series and
    ``c`` is the discounted mean of all later shocks.

    Parameters
    ----------
    flow : tf.Tensor
        Flow utility in the last period, ``(E, n_actions)``.
    multiplier : tf.Tensor
        Perpetuity multiplier ``1 / (1 − β)``.
    euler_constant : tf.Tensor
        Discount-adjusted Euler constant.

    Returns
    -------
    q : tf.Tensor
        Conditional values, ``(E, n_actions)``.
    v : tf.Tensor
        Smoothed maximum, ``(E,)``.
    p : tf.Tensor
        Choice probabilities, ``(E, n_actions)``.
    """
    q = multiplier * flow + euler_constant
    return q, logsumexp_value(q, axis=-1), choice_probabilities(q, axis=-1)


@tf.function(jit_compile=True)
def terminal_step(
    flow: tf.Tensor,
    multiplier: tf.Tensor,
    euler_constant: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Evaluate the last period (XLA-compiled).

    See :func:`terminal_step_core` for parameter documentation.
    """
    return terminal_step_core(flow, multiplier, euler_constant)


def bellman_step_core(
    flow: tf.Tensor,
    v_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """One backward-induction step (undecorated).

    ``Q[e, a] = u[e, a] + β (G[a] @ V_next)[e]``, followed by the
    log-sum-exp value and the logit probabilities.

    Parameters
    ----------
    flow : tf.Tensor
        Flow utility in period t, ``(E, n_actions)``.
    v_next : tf.Tensor
        Value function in period t + 1, ``(E,)``.
    kernels : tf.Tensor
        Per-action transition kernels, ``(n_actions, E, E)``.
    beta : tf.Tensor
        Scalar discount factor.

    Returns
    -------
    q, v, p : tf.Tensor
        Same layout as :func:`terminal_step_core`.
    """
    q = flow + compute_ev_core(v_next, kernels, beta)
    return q, logsumexp_value(q, axis=-1), choice_probabilities(q, axis=-1)


@tf.function(jit_compile=True)
def bellman_step(
    flow: tf.Tensor,
    v_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """One backward-induction step (XLA-compiled).

    See :func:`bellman_step_core` for parameter documentation.
    """
    return bellman_step_core(flow, v_next, kernels, beta)
