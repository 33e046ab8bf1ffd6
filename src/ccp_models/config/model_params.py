# ccp_models/config/model_params.py
"""
Structural model parameter definitions and loading utilities.

This module defines the parameters of the finite-horizon discrete choice
model: horizon and grid sizes, preferences, the wage equation, the
experience transition regimes and the initial-experience prior.
Parameters are immutable after initialization to prevent accidental
modification while the model is solved, simulated or estimated.

Example:
    >>> from ccp_models.config.model_params import load_model_params
    >>> params = load_model_params("hyperparam/ccp_params.json")
    >>> print(f"Discount factor: {params.discount_factor:.4f}")
"""

from dataclasses import dataclass, fields
from typing import Optional, Tuple
import logging
import math

import numpy as np

from ccp_models.core.math import EULER_MASCHERONI
from ccp_models.io.file_utils import load_json_file

logger = logging.getLogger(__name__)

N_ACTIONS: int = 3
"""Actions: 0 = stay home, 1 = activity-1, 2 = activity-2."""

HOME: int = 0
MARKET_ACTIONS: Tuple[int, ...] = (1, 2)

THETA_NAMES: Tuple[str, ...] = ("utility_scale", "preference_1", "preference_2")
"""Order of the linearly-entering parameter vector θ."""


@dataclass(frozen=True)
class ModelParams:
    """
    Immutable container for the structural model parameters.

    Attributes:
        horizon: Number of decision periods T.
        n_experience: Number of experience grid points E.
        risk_aversion: CRRA coefficient (rho).
        utility_scale: Multiplier on CRRA wage utility (gamma).
        wage_shock_std: Standard deviation of the log-wage shock (sigma).
        wage_intercept: Per-action wage-equation intercept (entry 0 unused).
        wage_experience: Per-action return to one experience level.
        age_return: Return to one period of age, shared by both activities.
        preference_levels: Per-action non-pecuniary preference level.
            Entry 0 is the home normalisation and is treated as known.
        discount_rate: Per-period discount rate r; the discount factor is
            1 / (1 + r).
        initial_experience_weights: Unnormalised prior over the initial
            experience index. ``None`` selects weights 1 / (e + 1).
        depreciation_drift, depreciation_dispersion: Experience kernel
            for staying home.
        stasis_drift, stasis_dispersion: Experience kernel for activity-1.
        accumulation_drift, accumulation_dispersion: Experience kernel for
            activity-2.

    Raises:
        ValueError: If any parameter is non-finite or out of range.
    """

    horizon: int = 10
    n_experience: int = 10
    risk_aversion: float = 2.0
    utility_scale: float = 1.2
    wage_shock_std: float = 0.3
    wage_intercept: Tuple[float, ...] = (0.0, 0.5, 0.2)
    wage_experience: Tuple[float, ...] = (0.0, 0.10, 0.20)
    age_return: float = 0.05
    preference_levels: Tuple[float, ...] = (0.0, 3.0, 2.0)
    discount_rate: float = 0.1
    initial_experience_weights: Optional[Tuple[float, ...]] = None

    depreciation_drift: float = -0.3
    depreciation_dispersion: float = 0.3
    stasis_drift: float = 0.0
    stasis_dispersion: float = 0.3
    accumulation_drift: float = 0.4
    accumulation_dispersion: float = 0.3

    def __post_init__(self) -> None:
        """Normalise sequence fields and validate."""
        for name in ("wage_intercept", "wage_experience", "preference_levels"):
            object.__setattr__(
                self, name, tuple(float(v) for v in getattr(self, name))
            )
        if self.initial_experience_weights is not None:
            object.__setattr__(
                self,
                "initial_experience_weights",
                tuple(float(v) for v in self.initial_experience_weights),
            )
        self._validate_sizes()
        self._validate_scalars()
        self._validate_per_action()
        self._validate_prior()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_sizes(self) -> None:
        if int(self.horizon) != self.horizon or self.horizon < 1:
            raise ValueError(f"horizon must be an integer >= 1, got {self.horizon}")
        if int(self.n_experience) != self.n_experience or self.n_experience < 1:
            raise ValueError(
                f"n_experience must be an integer >= 1, got {self.n_experience}"
            )

    def _validate_scalars(self) -> None:
        scalars = {
            "risk_aversion": self.risk_aversion,
            "utility_scale": self.utility_scale,
            "wage_shock_std": self.wage_shock_std,
            "age_return": self.age_return,
            "discount_rate": self.discount_rate,
            "depreciation_drift": self.depreciation_drift,
            "stasis_drift": self.stasis_drift,
            "accumulation_drift": self.accumulation_drift,
        }
        for name, value in scalars.items():
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if self.risk_aversion <= 0:
            raise ValueError(f"risk_aversion must be positive, got {self.risk_aversion}")
        if self.wage_shock_std < 0:
            raise ValueError(
                f"wage_shock_std must be non-negative, got {self.wage_shock_std}"
            )
        if self.discount_rate <= 0:
            raise ValueError(
                f"discount_rate must be positive, got {self.discount_rate}"
            )
        for name in (
            "depreciation_dispersion",
            "stasis_dispersion",
            "accumulation_dispersion",
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be positive and finite, got {value}")

    def _validate_per_action(self) -> None:
        for name in ("wage_intercept", "wage_experience", "preference_levels"):
            values = getattr(self, name)
            if len(values) != N_ACTIONS:
                raise ValueError(
                    f"{name} must have {N_ACTIONS} entries, got {len(values)}"
                )
            if not all(math.isfinite(v) for v in values):
                raise ValueError(f"{name} must be finite, got {values}")

    def _validate_prior(self) -> None:
        weights = self.initial_experience_weights
        if weights is None:
            return
        if len(weights) != self.n_experience:
            raise ValueError(
                f"initial_experience_weights must have {self.n_experience} "
                f"entries, got {len(weights)}"
            )
        if not all(math.isfinite(w) and w >= 0 for w in weights):
            raise ValueError(
                f"initial_experience_weights must be finite and non-negative, "
                f"got {weights}"
            )
        if sum(weights) <= 0:
            raise ValueError("initial_experience_weights must not all be zero")

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def n_actions(self) -> int:
        return N_ACTIONS

    @property
    def discount_factor(self) -> float:
        """Discount factor delta = 1 / (1 + r)."""
        return 1.0 / (1.0 + self.discount_rate)

    @property
    def perpetuity_multiplier(self) -> float:
        """Closed-form sum of delta^k over k >= 0, i.e. (1 + r) / r."""
        return 1.0 / (1.0 - self.discount_factor)

    @property
    def terminal_euler_constant(self) -> float:
        """Discounted mean of all shocks received after the last period."""
        delta = self.discount_factor
        return EULER_MASCHERONI * delta / (1.0 - delta)

    @property
    def theta(self) -> np.ndarray:
        """Linearly-entering parameters (gamma, pref_1, pref_2)."""
        return np.array(
            [self.utility_scale, self.preference_levels[1], self.preference_levels[2]],
            dtype=np.float64,
        )

    @property
    def kernel_specs(self) -> Tuple[Tuple[float, float], ...]:
        """(drift, dispersion) per action: depreciation, stasis, accumulation."""
        return (
            (self.depreciation_drift, self.depreciation_dispersion),
            (self.stasis_drift, self.stasis_dispersion),
            (self.accumulation_drift, self.accumulation_dispersion),
        )

    def initial_prior(self) -> np.ndarray:
        """Return the normalised prior over the initial experience index."""
        if self.initial_experience_weights is None:
            weights = 1.0 / np.arange(1, self.n_experience + 1, dtype=np.float64)
        else:
            weights = np.asarray(self.initial_experience_weights, dtype=np.float64)
        return weights / weights.sum()


def load_model_params(filename: str, section: str = "model") -> ModelParams:
    """
    Load model parameters from a JSON configuration file.

    Args:
        filename: Path to the JSON configuration file.
        section: Key holding the model parameters. When the key is absent
            the whole document is read as the parameter mapping.

    Returns:
        Populated ModelParams instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is malformed or parameters are invalid.
    """
    data = load_json_file(filename)
    model_data = data.get(section, data)

    valid_keys = {f.name for f in fields(ModelParams)}
    unknown = sorted(set(model_data) - valid_keys)
    if unknown:
        logger.warning(f"Ignoring unknown model keys in {filename}: {unknown}")
    filtered_data = {k: v for k, v in model_data.items() if k in valid_keys}

    return ModelParams(**filtered_data)
