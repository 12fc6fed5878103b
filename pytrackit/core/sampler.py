"""Nearest-cell sampling of the current field at particle positions."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pytrackit.core.models import CurrentField
from pytrackit.core.spatial_index import KDTreeIndex


@dataclass
class FieldSample:
    """Per-particle field values for one step."""
    u: np.ndarray          # (N,) east-west current (m/s)
    v: np.ndarray          # (N,) north-south current (m/s)
    h: np.ndarray          # (N,) seabed depth of the matched cell (m)
    cell: np.ndarray       # (N,) int, horizontal cell index
    cell_full: np.ndarray  # (N,) int, full (lon, lat, depth) cell index


class VelocityFieldSampler:
    """Looks up current and seabed depth in the nearest grid cell.

    Purely a lookup: grid arrays are never modified.

    Parameters
    ----------
    current : CurrentField
        Current-field data.
    index : KDTreeIndex
        Full (lon, lat, depth) index.
    horizontal_index : KDTreeIndex
        Horizontal (lon, lat) index.
    """

    def __init__(
        self,
        current: CurrentField,
        index: KDTreeIndex,
        horizontal_index: KDTreeIndex,
    ) -> None:
        self.current = current
        self.index = index
        self.horizontal_index = horizontal_index

    def cells(self, positions: np.ndarray) -> np.ndarray:
        """Horizontal cell index for each row of *positions*."""
        idx, _ = self.horizontal_index.nearest(positions[:, :2])
        return idx

    def seabed(self, positions: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(cell, h)`` for each row of *positions*."""
        idx = self.cells(positions)
        return idx, self.current.h[idx]

    def sample(self, positions: np.ndarray) -> FieldSample:
        """Sample u, v and seabed depth at *positions*, shape ``(N, 3)``."""
        cell_full, _ = self.index.nearest(positions)
        cell = self.cells(positions)
        return FieldSample(
            u=self.current.u[cell],
            v=self.current.v[cell],
            h=self.current.h[cell],
            cell=cell,
            cell_full=cell_full,
        )
