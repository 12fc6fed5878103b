"""Trajectory accumulation and pre-flight memory sizing."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pytrackit.core.models import TrajectoryMemoryError

logger = logging.getLogger(__name__)

_FLOAT_BYTES = np.dtype(np.float64).itemsize


def estimate_trajectory_nbytes(n_particles: int, n_steps: int) -> int:
    """Size in bytes of an ``(n_particles, 3, n_steps)`` float64 tensor."""
    return int(n_particles) * 3 * int(n_steps) * _FLOAT_BYTES


class TrajectoryStore:
    """Append-only per-step record of positions and cell indices.

    Capacity for the full horizon is allocated up front; ``trimmed()``
    returns views sliced to the steps actually written.

    Parameters
    ----------
    n_particles : int
        Number of particles N.
    capacity : int
        Configured horizon T.
    max_bytes : int, optional
        Refuse to allocate tensors larger than this.
    """

    def __init__(
        self,
        n_particles: int,
        capacity: int,
        max_bytes: Optional[int] = None,
    ) -> None:
        nbytes = estimate_trajectory_nbytes(n_particles, capacity)
        if max_bytes is not None and nbytes > max_bytes:
            raise TrajectoryMemoryError(
                f"Trajectory tensor of {n_particles} x 3 x {capacity} needs "
                f"{nbytes} bytes, above the {max_bytes} byte limit; "
                f"reduce the batch size or horizon",
                nbytes=nbytes,
            )
        try:
            self._positions = np.zeros((n_particles, 3, capacity), dtype=np.float64)
        except MemoryError as exc:
            raise TrajectoryMemoryError(
                f"Cannot allocate trajectory tensor of {nbytes} bytes "
                f"({n_particles} x 3 x {capacity})",
                nbytes=nbytes,
            ) from exc
        logger.debug(f"Allocated trajectory tensor: {nbytes} bytes")
        self.capacity = capacity
        self.count = 0
        self.indices: list[np.ndarray] = []
        self.indices_2d: list[np.ndarray] = []

    def append(
        self,
        positions: np.ndarray,
        cell_full: np.ndarray,
        cell: np.ndarray,
    ) -> None:
        """Write one step's snapshot and index maps."""
        if self.count >= self.capacity:
            raise IndexError(f"Trajectory store is full ({self.capacity} steps)")
        self._positions[:, :, self.count] = positions
        self.indices.append(np.array(cell_full, copy=True))
        self.indices_2d.append(np.array(cell, copy=True))
        self.count += 1

    def trimmed(self) -> np.ndarray:
        """Positions for the executed steps only, shape ``(N, 3, count)``.

        After an early exit the executed steps are copied out so the
        returned array does not keep the full-horizon buffer alive.
        """
        if self.count == self.capacity:
            return self._positions
        return self._positions[:, :, : self.count].copy()
