"""Simulators for post-solve analysis.

Modules
-------
panel_simulator
    Forward Monte-Carlo panel generator driven by the solved choice
    probabilities and experience kernels.
"""

from ccp_models.vfi.simulation.panel_simulator import PanelData, PanelSimulator, simulate

__all__ = [
    "PanelData",
    "PanelSimulator",
    "simulate",
]
