# src/ccp_models/moment_calculator/__init__.py
"""Moment calculator module for computing descriptive moments from panel data."""

from .compute_choice_shares import compute_choice_shares
from .compute_wage_moments import compute_global_mean, compute_global_std, compute_wage_moments

__all__ = [
    'compute_choice_shares',
    'compute_global_mean',
    'compute_global_std',
    'compute_wage_moments',
]
