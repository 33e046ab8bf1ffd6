# ccp_models/econ/utility.py
"""
Flow utility calculations.

This module implements the CRRA wage utility, the log-normal correction
for the wage shock, and the linear-in-parameters representation of
flow utility used by both the solver and the CCP inversion:

    u(a, e, t) = basis(a, e, t) . theta + offset(a, e, t)

with ``theta = (gamma, pref_1, pref_2)``. The home preference level is a
known normalisation and enters through ``offset``.
"""

import math
from typing import Optional, Tuple

import tensorflow as tf

from ccp_models.config.model_params import HOME, MARKET_ACTIONS, ModelParams
from ccp_models.core.types import TENSORFLOW_DTYPE, Tensor
from ccp_models.econ.wages import WageEquation


class UtilityFunctions:
    """Static methods for preference-related calculations."""

    @staticmethod
    def jensen_scale(risk_aversion: float, wage_shock_std: float) -> float:
        """
        Correction for the log-normal wage shock under CRRA utility.

        Formula: E[exp((1 - rho) * sigma * eps)] = exp(sigma^2 (1 - rho)^2 / 2)

        Args:
            risk_aversion: CRRA coefficient (rho).
            wage_shock_std: Standard deviation of the log-wage shock.

        Returns:
            Multiplicative scale applied to u0(exp(mu)).
        """
        if risk_aversion == 1.0:
            return 1.0
        one_minus_rho = 1.0 - risk_aversion
        return math.exp(0.5 * (wage_shock_std * one_minus_rho) ** 2)

    @staticmethod
    def expected_wage_utility(
        log_wage: Tensor,
        risk_aversion: float,
        wage_shock_std: float
    ) -> Tensor:
        """
        Expected CRRA utility per unit of gamma, given the expected log wage.

        Formula: scale * exp((1 - rho) * mu) / (1 - rho), or mu at rho = 1,
        where ``scale`` is :meth:`jensen_scale`.

        Computed in log space so large wages never overflow before the
        division.

        Args:
            log_wage: Expected log wage mu.
            risk_aversion: CRRA coefficient (rho).
            wage_shock_std: Standard deviation of the log-wage shock.

        Returns:
            Coefficient on gamma in the market flow utility.
        """
        log_wage = tf.cast(log_wage, TENSORFLOW_DTYPE)
        if risk_aversion == 1.0:
            return log_wage
        one_minus_rho = 1.0 - risk_aversion
        log_scale = math.log(UtilityFunctions.jensen_scale(risk_aversion, wage_shock_std))
        return tf.exp(one_minus_rho * log_wage + log_scale) / one_minus_rho


class FlowUtilityBasis:
    """Linear-in-parameters representation of flow utility."""

    @staticmethod
    def build(
        params: ModelParams,
        risk_aversion: Optional[float] = None,
        log_wage: Optional[Tensor] = None,
    ) -> Tuple[Tensor, Tensor]:
        """
        Build basis rows and known offsets for every state and action.

        Args:
            params: Model parameters (wage equation, home normalisation).
            risk_aversion: Overrides ``params.risk_aversion``; the outer
                estimation loop rebuilds the basis per candidate rho.
            log_wage: Expected log wages of shape (T, E, n_actions);
                defaults to :meth:`WageEquation.expected_log_wage`.

        Returns:
            Tuple containing:
                - basis: Tensor of shape (T, E, n_actions, 3).
                - offset: Tensor of shape (T, E, n_actions).
        """
        rho = params.risk_aversion if risk_aversion is None else float(risk_aversion)
        if log_wage is None:
            log_wage = WageEquation.expected_log_wage(params)
        log_wage = tf.cast(log_wage, TENSORFLOW_DTYPE)

        wage_term = UtilityFunctions.expected_wage_utility(
            log_wage, rho, params.wage_shock_std
        )
        n_actions = params.n_actions
        market = tf.constant(
            [1.0 if a in MARKET_ACTIONS else 0.0 for a in range(n_actions)],
            dtype=TENSORFLOW_DTYPE,
        )
        gamma_column = wage_term * market

        # Indicator columns for pref_1 and pref_2.
        indicators = tf.one_hot(
            [a for a in range(n_actions)], depth=n_actions, dtype=TENSORFLOW_DTYPE
        )[:, 1:]
        indicators = tf.broadcast_to(
            indicators, tf.concat([tf.shape(gamma_column), [n_actions - 1]], axis=0)
        )
        basis = tf.concat([gamma_column[..., None], indicators], axis=-1)

        home_level = tf.constant(
            [params.preference_levels[HOME] if a == HOME else 0.0 for a in range(n_actions)],
            dtype=TENSORFLOW_DTYPE,
        )
        offset = tf.zeros_like(gamma_column) + home_level
        return basis, offset

    @staticmethod
    def flow_utility(
        params: ModelParams,
        risk_aversion: Optional[float] = None
    ) -> Tensor:
        """
        Evaluate flow utility u(a, e, t) at the parameters in *params*.

        Returns:
            Tensor of shape (T, E, n_actions).
        """
        basis, offset = FlowUtilityBasis.build(params, risk_aversion)
        theta = tf.constant(params.theta, dtype=TENSORFLOW_DTYPE)
        return tf.linalg.matvec(basis, theta) + offset
