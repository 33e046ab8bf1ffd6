"""Core utilities shared by the solver, simulator and CCP estimator.

Provide the global precision settings and numerically stable logit
helpers (log-sum-exp, softmax, entropy) used across all modules.
"""

from ccp_models.core.types import TENSORFLOW_DTYPE, NUMPY_DTYPE, Tensor, Array
from ccp_models.core.math import (
    EULER_MASCHERONI,
    choice_entropy,
    choice_probabilities,
    floor_probabilities,
    logsumexp_value,
)
