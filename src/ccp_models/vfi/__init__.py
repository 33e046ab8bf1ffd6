"""Backward-induction solver and simulator for the discrete choice model.

This package provides:

* :class:`FiniteHorizonVFI`: backward induction over the finite horizon
  producing value functions, conditional values and logit choice
  probabilities for every (period, experience) pair.
* :class:`DiscreteChoiceSolution`: immutable snapshot of a solved model.
* :class:`PanelSimulator`: forward simulation of panel data.

Sub-packages
------------
kernels
    XLA-compiled Bellman kernels (expected value, terminal step,
    backward step).
grids
    Quantile-spaced experience grid and per-action transition kernels.
simulation
    Post-solve panel simulator.
"""

from ccp_models.vfi.finite_horizon import DiscreteChoiceSolution, FiniteHorizonVFI, solve
from ccp_models.vfi.simulation import PanelData, PanelSimulator, simulate

__all__ = [
    "DiscreteChoiceSolution",
    "FiniteHorizonVFI",
    "PanelData",
    "PanelSimulator",
    "simulate",
    "solve",
]
