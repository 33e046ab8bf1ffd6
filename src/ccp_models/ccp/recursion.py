"""Hotz-Miller recursion: the value function as an affine map of theta.

Under logit shocks every conditional value satisfies
``V = Q_a − log P_a + γ_c``, so averaging over actions with weights ``P``

    V_t = Σ_a P_a (u_a + β G_a V_{t+1}) + γ_c − Σ_a P_a log P_a.

With ``u_a = basis_a · θ + offset_a`` and ``V_{t+1} = A_{t+1} + B_{t+1} θ``
the same identity gives ``A_t`` and ``B_t`` backward in time using only
the choice probabilities and the kernels.  The last period uses the
perpetuity closed form of the solver.

When ``P`` and ``θ`` are the model's own, ``A_t + B_t θ`` reproduces the
solver's ``V`` exactly; that identity is the correctness check before
empirical probabilities are plugged in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import tensorflow as tf

from ccp_models.core.math import EULER_MASCHERONI, choice_entropy
from ccp_models.core.types import TENSORFLOW_DTYPE, Array
from ccp_models.ccp.errors import NonFiniteRepresentationError

logger = logging.getLogger(__name__)

ACCUM_DTYPE: tf.DType = TENSORFLOW_DTYPE


def _as_tensor(values) -> tf.Tensor:
    if isinstance(values, tf.Tensor):
        return tf.cast(values, ACCUM_DTYPE)
    return tf.convert_to_tensor(np.asarray(values, dtype=np.float64))


@dataclass(frozen=True, eq=False)
class LinearRepresentation:
    """Affine representation ``V_t = A_t + B_t θ``.

    Attributes
    ----------
    A : np.ndarray
        Intercepts, ``(T, E)``.
    B : np.ndarray
        Loadings on θ, ``(T, E, K)``.
    """

    A: Array
    B: Array

    def value(self, theta: Array) -> Array:
        """Evaluate ``A + B θ`` for every (period, experience)."""
        return self.A + self.B @ np.asarray(theta, dtype=np.float64)


def terminal_representation_core(
    probs: tf.Tensor,
    basis: tf.Tensor,
    offset: tf.Tensor,
    multiplier: tf.Tensor,
    euler_constant: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor]:
    """Last-period ``(A_T, B_T)`` under the perpetuity closed form (undecorated).

    Parameters
    ----------
    probs : tf.Tensor
        Choice probabilities, ``(E, n_actions)``.
    basis : tf.Tensor
        Basis rows, ``(E, n_actions, K)``.
    offset : tf.Tensor
        Known utility offsets, ``(E, n_actions)``.
    multiplier : tf.Tensor
        Perpetuity multiplier ``1 / (1 − β)``.
    euler_constant : tf.Tensor
        Discount-adjusted Euler constant.

    Returns
    -------
    a_t : tf.Tensor
        ``(E,)``.
    b_t : tf.Tensor
        ``(E, K)``.
    """
    b_t = multiplier * tf.einsum("ea,eak->ek", probs, basis)
    a_t = (
        tf.reduce_sum(probs * (multiplier * offset + euler_constant), axis=-1)
        + EULER_MASCHERONI
        + choice_entropy(probs, axis=-1)
    )
    return a_t, b_t


@tf.function(jit_compile=True)
def terminal_representation(
    probs: tf.Tensor,
    basis: tf.Tensor,
    offset: tf.Tensor,
    multiplier: tf.Tensor,
    euler_constant: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor]:
    """Last-period ``(A_T, B_T)`` (XLA-compiled).

    See :func:`terminal_representation_core` for parameter documentation.
    """
    return terminal_representation_core(probs, basis, offset, multiplier, euler_constant)


def backward_representation_core(
    probs: tf.Tensor,
    basis: tf.Tensor,
    offset: tf.Tensor,
    a_next: tf.Tensor,
    b_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor]:
    """One backward step of the recursion (undecorated).

    ``B_t = Σ_a P_a (basis_a + β G_a B_{t+1})`` and
    ``A_t = Σ_a P_a (offset_a + β G_a A_{t+1}) + γ_c − Σ_a P_a log P_a``.

    Parameters
    ----------
    probs, basis, offset : tf.Tensor
        Period-t probabilities, basis rows and offsets.
    a_next : tf.Tensor
        ``A_{t+1}``, ``(E,)``.
    b_next : tf.Tensor
        ``B_{t+1}``, ``(E, K)``.
    kernels : tf.Tensor
        Per-action transition kernels, ``(n_actions, E, E)``.
    beta : tf.Tensor
        Scalar discount factor.

    Returns
    -------
    a_t, b_t : tf.Tensor
        Same layout as :func:`terminal_representation_core`.
    """
    cont_a = beta * tf.einsum("aij,j->ia", kernels, a_next)
    cont_b = beta * tf.einsum("aij,jk->iak", kernels, b_next)
    b_t = tf.einsum("ea,eak->ek", probs, basis + cont_b)
    a_t = (
        tf.reduce_sum(probs * (offset + cont_a), axis=-1)
        + EULER_MASCHERONI
        + choice_entropy(probs, axis=-1)
    )
    return a_t, b_t


@tf.function(jit_compile=True)
def backward_representation(
    probs: tf.Tensor,
    basis: tf.Tensor,
    offset: tf.Tensor,
    a_next: tf.Tensor,
    b_next: tf.Tensor,
    kernels: tf.Tensor,
    beta: tf.Tensor,
) -> Tuple[tf.Tensor, tf.Tensor]:
    """One backward step of the recursion (XLA-compiled).

    See :func:`backward_representation_core` for parameter documentation.
    """
    return backward_representation_core(probs, basis, offset, a_next, b_next, kernels, beta)


class CCPRecursion:
    """Backward recursion from choice probabilities to ``(A_t, B_t)``.

    Parameters
    ----------
    kernels : array-like
        Per-action transition kernels, ``(n_actions, E, E)``.
    discount_factor : float
        Discount factor β in (0, 1).  The perpetuity multiplier and the
        discount-adjusted Euler constant of the last period follow from it.
    """

    PROBABILITY_TOLERANCE: float = 1e-6

    def __init__(self, kernels: Array, discount_factor: float) -> None:
        if not 0.0 < discount_factor < 1.0:
            raise ValueError(
                f"Discount factor must be in (0, 1), got {discount_factor}."
            )
        self.kernels = _as_tensor(kernels)
        self.discount_factor = float(discount_factor)
        self.multiplier = 1.0 / (1.0 - self.discount_factor)
        self.euler_constant = EULER_MASCHERONI * self.discount_factor * self.multiplier

    def run(
        self,
        probabilities: Array,
        basis: Array,
        offset: Optional[Array] = None,
    ) -> LinearRepresentation:
        """Run the recursion from the last period to the first.

        Parameters
        ----------
        probabilities : array-like
            Choice probabilities, ``(T, E, n_actions)``.  Zero entries are
            allowed (``0 log 0 = 0``); empirical inputs are floored by
            :mod:`ccp_models.ccp.empirical` beforehand.
        basis : array-like
            Basis rows, ``(T, E, n_actions, K)``.
        offset : array-like, optional
            Known utility offsets, ``(T, E, n_actions)``; zero by default.

        Returns
        -------
        LinearRepresentation

        Raises
        ------
        ValueError
            If the probabilities are not a valid distribution per state
            or the shapes disagree.
        NonFiniteRepresentationError
            If the recursion produces NaN or Inf.
        """
        probs = self._validate_probabilities(probabilities)
        basis = _as_tensor(basis)
        offset = (
            tf.zeros(tf.shape(probs), dtype=ACCUM_DTYPE)
            if offset is None
            else _as_tensor(offset)
        )
        if basis.shape[:3] != probs.shape or offset.shape != probs.shape:
            raise ValueError(
                f"basis {basis.shape} and offset {offset.shape} must match "
                f"probabilities {probs.shape}"
            )
        if probs.shape[1:] != (self.kernels.shape[1], self.kernels.shape[0]):
            raise ValueError(
                f"probabilities {probs.shape} do not match kernels {self.kernels.shape}"
            )

        horizon = probs.shape[0]
        beta = tf.constant(self.discount_factor, dtype=ACCUM_DTYPE)
        multiplier = tf.constant(self.multiplier, dtype=ACCUM_DTYPE)
        euler = tf.constant(self.euler_constant, dtype=ACCUM_DTYPE)

        a_list = [None] * horizon
        b_list = [None] * horizon
        a_t, b_t = terminal_representation(
            probs[-1], basis[-1], offset[-1], multiplier, euler
        )
        a_list[-1], b_list[-1] = a_t, b_t

        for t in range(horizon - 2, -1, -1):
            a_t, b_t = backward_representation(
                probs[t], basis[t], offset[t], a_t, b_t, self.kernels, beta
            )
            a_list[t], b_list[t] = a_t, b_t

        A = tf.stack(a_list, axis=0).numpy()
        B = tf.stack(b_list, axis=0).numpy()
        if not (np.all(np.isfinite(A)) and np.all(np.isfinite(B))):
            raise NonFiniteRepresentationError(
                "CCP recursion produced non-finite A or B; check the "
                "probability floor and the basis rows."
            )
        logger.debug("CCP recursion complete over %d periods", horizon)
        return LinearRepresentation(A=A, B=B)

    def _validate_probabilities(self, probabilities: Array) -> tf.Tensor:
        probs = np.asarray(probabilities, dtype=np.float64)
        if probs.ndim != 3:
            raise ValueError(f"probabilities must be (T, E, n_actions), got {probs.shape}")
        if not np.all(np.isfinite(probs)) or np.any(probs < 0):
            raise ValueError("probabilities must be finite and non-negative")
        row_error = np.max(np.abs(probs.sum(axis=-1) - 1.0))
        if row_error > self.PROBABILITY_TOLERANCE:
            raise ValueError(
                f"probabilities must sum to one per state (max error {row_error:.2e})"
            )
        return tf.constant(probs, dtype=ACCUM_DTYPE)


def ccp_recursion(
    probabilities: Array,
    kernels: Array,
    basis: Array,
    discount_factor: float,
    offset: Optional[Array] = None,
) -> LinearRepresentation:
    """Express the value function as ``A_t + B_t θ`` from choice probabilities."""
    return CCPRecursion(kernels, discount_factor).run(probabilities, basis, offset)
