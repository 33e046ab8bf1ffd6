# ccp_models/econ/wages.py
"""
Wage equation calculations.

This module implements the deterministic component of the log-wage
equation for the market activities.
"""

import tensorflow as tf

from ccp_models.config.model_params import MARKET_ACTIONS, ModelParams
from ccp_models.core.types import TENSORFLOW_DTYPE, Tensor


class WageEquation:
    """Static methods for wage-equation calculations."""

    @staticmethod
    def expected_log_wage(params: ModelParams) -> Tensor:
        """
        Compute the expected log wage for every (period, experience, action).

        Formula: mu(a, e, t) = b0[a] + b1[a] * (e + 1) + b_age * (t + 1)

        The home column carries no wage and is set to zero.

        Args:
            params: Model parameters with wage-equation coefficients.

        Returns:
            Tensor of shape (T, E, n_actions).
        """
        periods = tf.range(1, params.horizon + 1, dtype=TENSORFLOW_DTYPE)
        levels = tf.range(1, params.n_experience + 1, dtype=TENSORFLOW_DTYPE)
        intercept = tf.constant(params.wage_intercept, dtype=TENSORFLOW_DTYPE)
        slope = tf.constant(params.wage_experience, dtype=TENSORFLOW_DTYPE)

        mu = (
            intercept[None, None, :]
            + slope[None, None, :] * levels[None, :, None]
            + params.age_return * periods[:, None, None]
        )
        market_mask = tf.constant(
            [1.0 if a in MARKET_ACTIONS else 0.0 for a in range(params.n_actions)],
            dtype=TENSORFLOW_DTYPE,
        )
        return mu * market_mask
