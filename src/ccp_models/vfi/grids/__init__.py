# ccp_models/vfi/grids/__init__.py
"""
Grid management for the experience state space.

This package provides the quantile-spaced reference grid and the
per-action experience transition kernels.
"""

from ccp_models.vfi.grids.grid_builder import GridBuilder
from ccp_models.vfi.grids.grid_utils import build_transition, quantile_grid

__all__ = [
    'GridBuilder',
    'build_transition',
    'quantile_grid',
]
