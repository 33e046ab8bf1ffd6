# src/ccp_models/moment_calculator/compute_choice_shares.py
"""Compute choice share statistics."""

import numpy as np
import tensorflow as tf

from ccp_models.config.model_params import N_ACTIONS
from ccp_models.core.types import TENSORFLOW_DTYPE


def compute_choice_shares(actions, n_actions: int = N_ACTIONS) -> dict:
    """
    Compute overall and per-period choice shares.

    Args:
        actions: Integer array or tensor of shape (n_individuals, n_periods)
        n_actions: Number of actions

    Returns:
        Dictionary with:
            - overall: (n_actions,) share of all person-periods per action
            - by_period: (n_periods, n_actions) share per period
    """
    actions = tf.convert_to_tensor(np.asarray(actions, dtype=np.int64))
    one_hot = tf.one_hot(actions, depth=n_actions, dtype=TENSORFLOW_DTYPE)

    by_period = tf.reduce_mean(one_hot, axis=0)
    overall = tf.reduce_mean(by_period, axis=0)

    return {
        'overall': overall.numpy(),
        'by_period': by_period.numpy(),
    }
