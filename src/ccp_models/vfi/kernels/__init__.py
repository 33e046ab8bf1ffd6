"""XLA-compiled numerical kernels for the backward-induction solver.

Each function is decorated with ``@tf.function(jit_compile=True)``.
Corresponding ``_core`` variants (undecorated) are provided for nesting
inside other XLA scopes.

Modules
-------
bellman_kernels
    Expected-value computation, terminal perpetuity step and the
    backward Bellman step.
"""

from ccp_models.vfi.kernels.bellman_kernels import (
    bellman_step,
    bellman_step_core,
    compute_ev,
    compute_ev_core,
    terminal_step,
    terminal_step_core,
)

__all__ = [
    "bellman_step",
    "bellman_step_core",
    "compute_ev",
    "compute_ev_core",
    "terminal_step",
    "terminal_step_core",
]
