# ccp_models/vfi/grids/grid_utils.py
"""
Grid utility functions for the experience state space.

Contains:
    * ``quantile_grid``: reference grid uniform in standard-normal CDF
    * ``build_transition``: row-stochastic experience kernel for one
      drift/dispersion regime

These are pure numerical routines that operate on TensorFlow tensors
and do not depend on any model-specific state.
"""

import logging
import math

import tensorflow as tf
import tensorflow_probability as tfp

from ccp_models.core.types import TENSORFLOW_DTYPE

tfd = tfp.distributions

logger = logging.getLogger(__name__)


def quantile_grid(grid_size: int) -> tf.Tensor:
    """
    Quantile-spaced reference grid under a standard normal.

    Formula: z_j = Phi^{-1}((j + 0.5) / n),  j = 0, ..., n - 1

    Args:
        grid_size: Number of grid points.

    Returns:
        Tensor of shape (grid_size,), increasing and symmetric around 0.

    Raises:
        ValueError: If *grid_size* is smaller than 1.
    """
    n_int = int(grid_size)
    if n_int < 1 or n_int != grid_size:
        raise ValueError(f"grid_size must be an integer >= 1, got {grid_size}")

    dist = tfd.Normal(
        loc=tf.cast(0.0, TENSORFLOW_DTYPE),
        scale=tf.cast(1.0, TENSORFLOW_DTYPE),
    )
    levels = (tf.range(n_int, dtype=TENSORFLOW_DTYPE) + 0.5) / n_int
    return dist.quantile(levels)


def build_transition(
    drift: float,
    dispersion: float,
    grid_size: int
) -> tf.Tensor:
    """
    Build the experience transition kernel for one action.

    Entry (e, e') is proportional to the normal density of ``z_{e'}``
    centred at ``z_e + drift`` with standard deviation ``dispersion``,
    where ``z`` is the quantile-spaced reference grid.  Rows are
    normalised in log space so that tiny dispersions never produce an
    all-zero row.

    Args:
        drift: Shift of the conditional mean on the reference grid.
        dispersion: Conditional standard deviation (strictly positive).
        grid_size: Number of experience levels.

    Returns:
        Row-stochastic tensor of shape (grid_size, grid_size).

    Raises:
        ValueError: If *dispersion* is not positive, *drift* is not
            finite, or *grid_size* is smaller than 1.
    """
    if not math.isfinite(drift):
        raise ValueError(f"drift must be finite, got {drift}")
    if not math.isfinite(dispersion) or dispersion <= 0.0:
        raise ValueError(f"dispersion must be positive and finite, got {dispersion}")

    z = quantile_grid(grid_size)
    dist = tfd.Normal(
        loc=z[:, None] + tf.cast(drift, TENSORFLOW_DTYPE),
        scale=tf.cast(dispersion, TENSORFLOW_DTYPE),
    )
    log_density = dist.log_prob(z[None, :])

    # Shift each row by its maximum before exponentiating
    log_density -= tf.reduce_max(log_density, axis=1, keepdims=True)
    density = tf.exp(log_density)
    kernel = density / tf.reduce_sum(density, axis=1, keepdims=True)

    logger.debug(
        f"Built kernel (drift={drift}, dispersion={dispersion}, n={grid_size})"
    )
    return kernel
