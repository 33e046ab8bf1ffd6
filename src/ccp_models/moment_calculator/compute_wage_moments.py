# src/ccp_models/moment_calculator/compute_wage_moments.py
"""Compute mean and standard deviation of observed wages."""

import numpy as np
import tensorflow as tf

from ccp_models.config.model_params import MARKET_ACTIONS
from ccp_models.core.types import TENSORFLOW_DTYPE


def compute_global_mean(data: tf.Tensor) -> tf.Tensor:
    """
    Compute global mean over finite entries.

    Args:
        data: Tensor of shape (n_individuals, n_periods); NaN marks missing

    Returns:
        Scalar tensor with global mean
    """
    data = tf.cast(data, dtype=TENSORFLOW_DTYPE)
    valid_mask = tf.math.is_finite(data)
    valid_data = tf.where(valid_mask, data, tf.zeros_like(data))

    n_valid = tf.cast(tf.reduce_sum(tf.cast(valid_mask, tf.int32)), TENSORFLOW_DTYPE)

    return tf.reduce_sum(valid_data) / tf.maximum(n_valid, 1.0)


def compute_global_std(data: tf.Tensor) -> tf.Tensor:
    """
    Compute global sample standard deviation over finite entries.

    Args:
        data: Tensor of shape (n_individuals, n_periods); NaN marks missing

    Returns:
        Scalar tensor with global standard deviation
    """
    data = tf.cast(data, dtype=TENSORFLOW_DTYPE)
    valid_mask = tf.math.is_finite(data)
    mean = compute_global_mean(data)
    squared_diff = tf.where(
        valid_mask,
        tf.square(data - mean),
        tf.zeros_like(data)
    )

    n_valid = tf.cast(tf.reduce_sum(tf.cast(valid_mask, tf.int32)), TENSORFLOW_DTYPE)
    variance = tf.reduce_sum(squared_diff) / tf.maximum(n_valid - 1.0, 1.0)

    return tf.sqrt(variance)


def compute_wage_moments(panel) -> dict:
    """
    Compute wage moments per market action.

    Args:
        panel: PanelData with actions and log_wages of shape (N, T)

    Returns:
        Dictionary keyed by ``action_<a>`` with ``n_obs``, ``mean_wage``,
        ``std_wage``, ``mean_log_wage`` and ``std_log_wage``.
    """
    result = {}
    for a in MARKET_ACTIONS:
        log_wages = np.where(panel.actions == a, panel.log_wages, np.nan)
        wages = np.exp(log_wages)
        result[f'action_{a}'] = {
            'n_obs': int(np.isfinite(log_wages).sum()),
            'mean_wage': float(compute_global_mean(wages)),
            'std_wage': float(compute_global_std(wages)),
            'mean_log_wage': float(compute_global_mean(log_wages)),
            'std_log_wage': float(compute_global_std(log_wages)),
        }
    return result
