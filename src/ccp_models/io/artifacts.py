# ccp_models/io/artifacts.py
"""
Utilities for saving and loading numerical artifacts.

This module handles persistence of solved models and simulated panels
using NumPy's ``.npz`` format. The parameters a solution was computed at
are stored alongside the arrays as a JSON string so the snapshot can be
rebuilt exactly.

Example:
    >>> from ccp_models.io.artifacts import save_solution, load_solution
    >>> save_solution(solution, "results/solution.npz")
    >>> solution = load_solution("results/solution.npz")
"""

import dataclasses
import json
import logging
import os

import numpy as np

from ccp_models.config.model_params import ModelParams
from ccp_models.vfi.finite_horizon import DiscreteChoiceSolution
from ccp_models.vfi.simulation.panel_simulator import PanelData

logger = logging.getLogger(__name__)

_PARAMS_KEY = "params_json"


def _ensure_directory(filename: str) -> None:
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)


def save_solution(solution: DiscreteChoiceSolution, filename: str) -> None:
    """
    Save a solved model to a NumPy archive.

    Args:
        solution: Solved model snapshot.
        filename: Target file path (should end with .npz).
    """
    _ensure_directory(filename)
    params_json = json.dumps(dataclasses.asdict(solution.params))
    with open(filename, "wb") as f:
        np.savez(f, **solution.as_dict(), **{_PARAMS_KEY: np.array(params_json)})
    logger.info(f"Saved solution to {filename}")


def load_solution(filename: str) -> DiscreteChoiceSolution:
    """
    Load a solved model saved by :func:`save_solution`.

    Args:
        filename: Path to the .npz file.

    Returns:
        DiscreteChoiceSolution with read-only arrays.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the archive lacks a required array.
    """
    if not os.path.exists(filename):
        logger.error(f"File '{filename}' not found.")
        raise FileNotFoundError(filename)

    with np.load(filename) as data:
        arrays = {key: data[key] for key in data.files}

    required = {"V", "Q", "P", "kernels", "log_wage", "flow", _PARAMS_KEY}
    missing = sorted(required - set(arrays))
    if missing:
        raise ValueError(f"{filename} is missing arrays {missing}")

    params = ModelParams(**json.loads(str(arrays.pop(_PARAMS_KEY))))
    return DiscreteChoiceSolution(params=params, **arrays)


def save_panel(panel: PanelData, filename: str) -> None:
    """
    Save a panel to a NumPy archive.

    Args:
        panel: Panel data.
        filename: Target file path (should end with .npz).
    """
    _ensure_directory(filename)
    with open(filename, "wb") as f:
        np.savez(
            f,
            actions=panel.actions,
            experience=panel.experience,
            log_wages=panel.log_wages,
        )
    logger.info(f"Saved panel ({panel.n_individuals} individuals) to {filename}")


def load_panel(filename: str) -> PanelData:
    """
    Load a panel saved by :func:`save_panel`.

    Args:
        filename: Path to the .npz file.

    Returns:
        PanelData.
    """
    if not os.path.exists(filename):
        logger.error(f"File '{filename}' not found.")
        raise FileNotFoundError(filename)

    with np.load(filename) as data:
        return PanelData(
            actions=data["actions"],
            experience=data["experience"],
            log_wages=data["log_wages"],
        )
