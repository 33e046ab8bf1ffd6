"""Conditional choice probability (Hotz-Miller) estimation.

This package provides:

* :func:`estimate_ccp`: smoothed empirical choice probabilities from a panel.
* :class:`CCPRecursion`: the value function as ``A_t + B_t θ`` driven by
  choice probabilities alone.
* :class:`HotzMillerEstimator`: least-squares recovery of ``θ`` for a
  fixed risk aversion and the outer search over risk aversion.
* First-stage wage-equation and experience-kernel estimators.
"""

from ccp_models.ccp.empirical import EmpiricalCCP, ccp_from_counts, count_choices, estimate_ccp
from ccp_models.ccp.errors import (
    CCPEstimationError,
    IllConditionedRegressionError,
    NonFiniteRepresentationError,
)
from ccp_models.ccp.estimator import GridSearchResult, HotzMillerEstimator, RhoEstimate, estimate
from ccp_models.ccp.first_stage import (
    TransitionEstimate,
    WageEquationEstimate,
    apply_transition_estimates,
    empirical_transition_matrix,
    estimate_transition_kernels,
    estimate_transition_params,
    estimate_wage_equation,
    estimate_wage_equations,
)
from ccp_models.ccp.recursion import CCPRecursion, LinearRepresentation, ccp_recursion

__all__ = [
    "CCPEstimationError",
    "CCPRecursion",
    "EmpiricalCCP",
    "GridSearchResult",
    "HotzMillerEstimator",
    "IllConditionedRegressionError",
    "LinearRepresentation",
    "NonFiniteRepresentationError",
    "RhoEstimate",
    "TransitionEstimate",
    "WageEquationEstimate",
    "apply_transition_estimates",
    "ccp_from_counts",
    "ccp_recursion",
    "count_choices",
    "empirical_transition_matrix",
    "estimate",
    "estimate_ccp",
    "estimate_transition_kernels",
    "estimate_transition_params",
    "estimate_wage_equation",
    "estimate_wage_equations",
]
