# ccp_models/ccp/errors.py
"""Exceptions raised by the CCP recursion and the parameter estimator."""

from typing import Optional

import numpy as np


class CCPEstimationError(Exception):
    """Base class for CCP estimation failures."""


class IllConditionedRegressionError(CCPEstimationError):
    """The stacked Hotz-Miller regression cannot identify theta.

    Attributes:
        rank: Numerical rank of the weighted design matrix.
        n_params: Number of parameters to identify.
        singular_values: Singular values of the weighted design matrix.
    """

    def __init__(
        self,
        message: str,
        rank: int,
        n_params: int,
        singular_values: Optional[np.ndarray] = None,
    ) -> None:
        super().__init__(message)
        self.rank = rank
        self.n_params = n_params
        self.singular_values = singular_values


class NonFiniteRepresentationError(CCPEstimationError):
    """The recursion produced NaN or Inf in A_t or B_t."""
