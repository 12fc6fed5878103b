"""Domain-exit stopping rule.

A particle stops once its longitude or latitude leaves the bounding extent
of the current-field grid. Positions on the extent edge are still inside.
"""

from __future__ import annotations

import numpy as np

from pytrackit.core.models import CurrentField


class BoundaryHandler:
    """Flags particles outside the horizontal grid extent.

    Parameters
    ----------
    current : CurrentField
        Current-field data (used for the horizontal extent).
    extent : tuple[float, float, float, float], optional
        Explicit ``(lon_min, lon_max, lat_min, lat_max)`` overriding the
        extent derived from the grid cells.
    """

    def __init__(
        self,
        current: CurrentField,
        extent: tuple[float, float, float, float] | None = None,
    ) -> None:
        self.extent = extent if extent is not None else current.extent

    def outside(self, positions: np.ndarray) -> np.ndarray:
        """Boolean mask of rows whose (lon, lat) lies outside the extent."""
        return ~_inside_horizontal_grid(positions[:, 0], positions[:, 1], self.extent)


def _inside_horizontal_grid(
    lon: np.ndarray,
    lat: np.ndarray,
    extent: tuple[float, float, float, float],
) -> np.ndarray:
    lon_min, lon_max, lat_min, lat_max = extent
    return (
        (lon >= lon_min) & (lon <= lon_max)
        & (lat >= lat_min) & (lat <= lat_max)
    )
