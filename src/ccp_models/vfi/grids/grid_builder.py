# ccp_models/vfi/grids/grid_builder.py
"""
Grid construction utilities for the experience state space.

This module builds the per-action experience transition kernels:
depreciation while at home, stasis in activity-1 and accumulation in
activity-2.
"""

import tensorflow as tf

from ccp_models.config.model_params import ModelParams
from ccp_models.core.types import Tensor
from ccp_models.vfi.grids.grid_utils import build_transition


class GridBuilder:
    """
    Utility class for constructing experience kernels.

    The stacked kernels are consumed by the solver, the simulator and the
    CCP recursion.
    """

    @staticmethod
    def build_experience_kernels(params: ModelParams) -> Tensor:
        """
        Build one transition kernel per action.

        Args:
            params: Model parameters with the drift/dispersion regimes.

        Returns:
            Tensor of shape (n_actions, E, E); slice ``a`` is the kernel
            followed after choosing action ``a``.
        """
        kernels = [
            build_transition(drift, dispersion, params.n_experience)
            for drift, dispersion in params.kernel_specs
        ]
        return tf.stack(kernels, axis=0)
