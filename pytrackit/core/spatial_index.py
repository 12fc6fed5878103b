"""Nearest-neighbour spatial index over the current-field grid cells.

Wraps ``scipy.spatial.cKDTree`` so that arbitrary (lon, lat) or
(lon, lat, depth) query points map to the index of the closest grid cell.
Tie-breaking is whatever cKDTree does; the same tree must be reused for
reproducible runs.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial import cKDTree

from pytrackit.core.models import ConfigurationError, CurrentField

logger = logging.getLogger(__name__)


class KDTreeIndex:
    """Exact 1-nearest-neighbour index.

    Parameters
    ----------
    coordinates : np.ndarray
        Cell coordinates, shape ``(ncell, k)``.
    workers : int
        Number of threads used by each query (``-1`` = all cores).
    """

    def __init__(self, coordinates: np.ndarray, workers: int = 1) -> None:
        coords = np.asarray(coordinates, dtype=np.float64)
        if coords.ndim != 2 or coords.shape[0] == 0:
            raise ConfigurationError(
                f"Spatial index needs a non-empty (ncell, k) array, got shape {coords.shape}"
            )
        if not np.all(np.isfinite(coords)):
            raise ConfigurationError("Spatial index coordinates must be finite")
        self.ndim = coords.shape[1]
        self.workers = workers
        self._tree = cKDTree(coords)

    @property
    def size(self) -> int:
        return int(self._tree.n)

    def nearest(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(indices, distances)`` of the nearest cell for each point.

        Only the first ``ndim`` columns of *points* are used, so a full
        (lon, lat, depth) snapshot can be passed to a horizontal index.
        """
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim == 1:
            pts = pts.reshape(1, -1)
        distances, indices = self._tree.query(
            pts[:, : self.ndim], k=1, eps=0, workers=self.workers,
        )
        return np.asarray(indices, dtype=np.int64), np.asarray(distances)


def build_index(coordinates: np.ndarray, workers: int = 1) -> KDTreeIndex:
    """Build the full index over (lon, lat, depth) cell coordinates."""
    return KDTreeIndex(coordinates, workers=workers)


def build_horizontal_index(
    lon: np.ndarray, lat: np.ndarray, workers: int = 1,
) -> KDTreeIndex:
    """Build the horizontal index over (lon, lat) cell coordinates."""
    return KDTreeIndex(np.column_stack((np.ravel(lon), np.ravel(lat))), workers=workers)


def build_field_indices(
    current: CurrentField, workers: int = 1,
) -> tuple[KDTreeIndex, KDTreeIndex]:
    """Build both indices for a current field.

    Returns
    -------
    tuple[KDTreeIndex, KDTreeIndex]
        ``(full_index, horizontal_index)``.
    """
    logger.info(f"Building spatial indices over {current.ncell} grid cells")
    full = build_index(
        np.column_stack((current.lon, current.lat, current.depth)), workers=workers,
    )
    horizontal = build_horizontal_index(current.lon, current.lat, workers=workers)
    return full, horizontal
