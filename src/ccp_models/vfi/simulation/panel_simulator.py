"""Panel simulator for the finite-horizon discrete choice model.

Draws individual trajectories of (experience, action, wage) from a
solved model.  Individuals are split into blocks; every block owns an
independent random stream spawned from one root seed, so the panel is
identical whether blocks run sequentially or on a thread pool.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ccp_models.config.model_params import HOME
from ccp_models.vfi.finite_horizon import DiscreteChoiceSolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PanelData:
    """Simulated (or observed) panel of individual trajectories.

    Attributes
    ----------
    actions : np.ndarray
        Chosen action per individual and period, ``(N, T)`` int.
    experience : np.ndarray
        Zero-based experience index at the start of each period, ``(N, T)`` int.
    log_wages : np.ndarray
        Realised log wage, ``NaN`` when the individual stayed home, ``(N, T)``.
    """

    actions: np.ndarray
    experience: np.ndarray
    log_wages: np.ndarray

    def __post_init__(self) -> None:
        if self.actions.shape != self.experience.shape:
            raise ValueError(
                f"actions {self.actions.shape} and experience "
                f"{self.experience.shape} must have the same shape"
            )
        if self.log_wages.shape != self.actions.shape:
            raise ValueError(
                f"log_wages {self.log_wages.shape} must match actions {self.actions.shape}"
            )

    @property
    def wages(self) -> np.ndarray:
        """Wage levels, ``NaN`` when no wage is observed."""
        return np.exp(self.log_wages)

    @property
    def n_individuals(self) -> int:
        return self.actions.shape[0]

    @property
    def horizon(self) -> int:
        return self.actions.shape[1]


def _categorical(cum_probs: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Inverse-CDF categorical draw, one row of cumulative probabilities per draw."""
    idx = (u[:, None] > cum_probs).sum(axis=1)
    return np.minimum(idx, cum_probs.shape[1] - 1)


class PanelSimulator:
    """Simulate individual trajectories from a solved model.

    Parameters
    ----------
    n_individuals : int
        Number of simulated individuals N.
    seed : int, optional
        Root seed; identical seeds give identical panels.
    block_size : int
        Individuals per independent random stream.
    n_workers : int
        Threads used to simulate blocks.
    """

    def __init__(
        self,
        n_individuals: int = 10_000,
        seed: Optional[int] = None,
        block_size: int = 1_000,
        n_workers: int = 1,
    ) -> None:
        if n_individuals < 1:
            raise ValueError(f"n_individuals must be >= 1, got {n_individuals}")
        if block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {block_size}")
        self.n_individuals = int(n_individuals)
        self.seed = seed
        self.block_size = int(block_size)
        self.n_workers = max(int(n_workers), 1)

    def run(self, solution: DiscreteChoiceSolution) -> PanelData:
        """Simulate the panel.

        Parameters
        ----------
        solution : DiscreteChoiceSolution
            Output of :func:`ccp_models.vfi.finite_horizon.solve`.

        Returns
        -------
        PanelData
            ``N`` trajectories of length ``T``.
        """
        sizes = self._block_sizes()
        streams = np.random.SeedSequence(self.seed).spawn(len(sizes))
        jobs = [(size, stream) for size, stream in zip(sizes, streams)]

        logger.info(
            "Simulating %d individuals x %d periods in %d blocks",
            self.n_individuals, solution.horizon, len(jobs),
        )

        if self.n_workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.n_workers) as pool:
                blocks = list(
                    pool.map(lambda job: self._simulate_block(solution, *job), jobs)
                )
        else:
            blocks = [self._simulate_block(solution, *job) for job in jobs]

        actions, experience, log_wages = (
            np.concatenate(parts, axis=0) for parts in zip(*blocks)
        )
        return PanelData(actions=actions, experience=experience, log_wages=log_wages)

    def _block_sizes(self) -> List[int]:
        n_full, rest = divmod(self.n_individuals, self.block_size)
        return [self.block_size] * n_full + ([rest] if rest else [])

    @staticmethod
    def _simulate_block(
        solution: DiscreteChoiceSolution,
        size: int,
        stream: np.random.SeedSequence,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Simulate one block of individuals with its own generator."""
        rng = np.random.default_rng(stream)
        params = solution.params
        horizon = solution.horizon
        sigma = params.wage_shock_std

        cum_prior = np.cumsum(params.initial_prior())
        cum_policy = np.cumsum(solution.P, axis=-1)
        cum_kernels = np.cumsum(solution.kernels, axis=-1)

        actions = np.zeros((size, horizon), dtype=np.int64)
        experience = np.zeros((size, horizon), dtype=np.int64)
        log_wages = np.full((size, horizon), np.nan)

        e = _categorical(np.broadcast_to(cum_prior, (size, cum_prior.size)), rng.random(size))
        for t in range(horizon):
            experience[:, t] = e
            a = _categorical(cum_policy[t, e], rng.random(size))
            actions[:, t] = a

            shocks = rng.standard_normal(size)
            market = a != HOME
            log_wages[market, t] = solution.log_wage[t, e[market], a[market]] + sigma * shocks[market]

            if t < horizon - 1:
                e = _categorical(cum_kernels[a, e], rng.random(size))

        return actions, experience, log_wages


def simulate(
    solution: DiscreteChoiceSolution,
    n_individuals: int,
    seed: Optional[int] = None,
    block_size: int = 1_000,
    n_workers: int = 1,
) -> PanelData:
    """Simulate *n_individuals* trajectories from *solution*."""
    simulator = PanelSimulator(
        n_individuals=n_individuals,
        seed=seed,
        block_size=block_size,
        n_workers=n_workers,
    )
    return simulator.run(solution)
