# ccp_models/core/math.py
"""
Numerically stable logit utilities.

Contains:
    * ``EULER_MASCHERONI``: mean of a type-1 extreme-value shock
    * ``logsumexp_value``: expected maximum of ``Q + shock`` (smoothed max)
    * ``choice_probabilities``: multinomial-logit probabilities from ``Q``
    * ``floor_probabilities``: smoothing floor applied before taking logs
    * ``choice_entropy``: ``-Σ_a P log P`` along the action axis

Every exponentiation goes through the shift-by-maximum pattern, so large
conditional values never overflow.
"""

import numpy as np
import tensorflow as tf

from ccp_models.core.types import TENSORFLOW_DTYPE, Tensor

EULER_MASCHERONI: float = float(np.euler_gamma)


def logsumexp_value(q_values: Tensor, axis: int = -1) -> Tensor:
    """
    Compute the expected maximum of ``Q`` plus i.i.d. EV1 shocks.

    Formula: V = m + log(Σ_a exp(Q_a - m)) + γ_c,  m = max_a Q_a

    Args:
        q_values: Conditional values, actions along ``axis``.
        axis: Action axis.

    Returns:
        Smoothed maximum with ``axis`` reduced.
    """
    q_values = tf.cast(q_values, TENSORFLOW_DTYPE)
    q_max = tf.reduce_max(q_values, axis=axis, keepdims=True)
    shifted = tf.reduce_sum(tf.exp(q_values - q_max), axis=axis, keepdims=True)
    value = tf.squeeze(q_max + tf.math.log(shifted), axis=axis)
    return value + tf.cast(EULER_MASCHERONI, TENSORFLOW_DTYPE)


def choice_probabilities(q_values: Tensor, axis: int = -1) -> Tensor:
    """
    Compute logit choice probabilities from conditional values.

    Args:
        q_values: Conditional values, actions along ``axis``.
        axis: Action axis.

    Returns:
        Probabilities with the same shape as *q_values*, summing to one
        along ``axis``.
    """
    q_values = tf.cast(q_values, TENSORFLOW_DTYPE)
    q_max = tf.reduce_max(q_values, axis=axis, keepdims=True)
    weights = tf.exp(q_values - q_max)
    return weights / tf.reduce_sum(weights, axis=axis, keepdims=True)


def floor_probabilities(
    probabilities: Tensor,
    floor: float,
    axis: int = -1
) -> Tensor:
    """
    Raise every probability to at least *floor* and renormalise.

    Args:
        probabilities: Choice probabilities, actions along ``axis``.
        floor: Minimum probability; zero leaves the input unchanged.
        axis: Action axis.

    Returns:
        Strictly positive probabilities when ``floor > 0``.
    """
    probabilities = tf.cast(probabilities, TENSORFLOW_DTYPE)
    if floor <= 0.0:
        return probabilities
    floored = tf.maximum(probabilities, tf.cast(floor, TENSORFLOW_DTYPE))
    return floored / tf.reduce_sum(floored, axis=axis, keepdims=True)


def choice_entropy(probabilities: Tensor, axis: int = -1) -> Tensor:
    """
    Compute ``-Σ_a P log P`` with the convention ``0 log 0 = 0``.

    Args:
        probabilities: Choice probabilities, actions along ``axis``.
        axis: Action axis.

    Returns:
        Entropy with ``axis`` reduced.
    """
    probabilities = tf.cast(probabilities, TENSORFLOW_DTYPE)
    safe = tf.where(probabilities > 0.0, probabilities, tf.ones_like(probabilities))
    return -tf.reduce_sum(probabilities * tf.math.log(safe), axis=axis)
