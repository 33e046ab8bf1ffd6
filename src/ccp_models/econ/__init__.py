# ccp_models/econ/__init__.py
"""
Core economic logic module.

This package provides the wage equation and the flow-utility formulas
shared by the backward-induction solver and the CCP estimator.
"""

from ccp_models.econ.wages import WageEquation
from ccp_models.econ.utility import FlowUtilityBasis, UtilityFunctions


__all__ = [
    'FlowUtilityBasis',
    'UtilityFunctions',
    'WageEquation',
]
