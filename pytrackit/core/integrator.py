"""Explicit Euler advection on nautical-mile degrees.

One degree of latitude is taken as 60 nautical miles (1 nm = 1852 m); a
degree of longitude shrinks with cos(latitude). Depth is carried through
unchanged by the horizontal model.
"""

from __future__ import annotations

import numpy as np

from pytrackit.core.models import NumericalInstabilityError
from pytrackit.core.sampler import FieldSample

NAUTICAL_MILE = 1852.0          # metres
MINUTES_PER_DEGREE = 60.0
METERS_PER_DEGREE = NAUTICAL_MILE * MINUTES_PER_DEGREE


def advect_lonlat(
    lon: np.ndarray,
    lat: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    dt: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Compute new lon/lat after one advection step.

        Δlat = (v * dt) / M
        Δlon = (u * dt) / (M * cos(lat))

    with M = 1852 m * 60 metres per degree.

    Parameters
    ----------
    lon, lat : np.ndarray
        Current positions in degrees.
    u, v : np.ndarray
        East-west and north-south current components (m/s).
    dt : float
        Time step (seconds).

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        New (lon, lat) in degrees.
    """
    cos_lat = np.cos(np.asarray(lat) * np.pi / 180.0)
    new_lon = lon + (u * dt) / (METERS_PER_DEGREE * cos_lat)
    new_lat = lat + (v * dt) / METERS_PER_DEGREE
    return new_lon, new_lat


class EulerIntegrator:
    """Advances a whole position snapshot by one fixed step.

    Parameters
    ----------
    dt : float
        Per-step duration in seconds.
    """

    def __init__(self, dt: float) -> None:
        self.dt = dt

    def step(self, previous: np.ndarray, sample: FieldSample) -> np.ndarray:
        """Return the candidate snapshot for the next step.

        *previous* is not modified.

        Raises
        ------
        NumericalInstabilityError
            If the update produces NaN or Inf (e.g. a particle at a pole).
        """
        current = previous.copy()
        current[:, 0], current[:, 1] = advect_lonlat(
            previous[:, 0], previous[:, 1], sample.u, sample.v, self.dt,
        )
        if not np.all(np.isfinite(current[:, :2])):
            bad = np.nonzero(~np.all(np.isfinite(current[:, :2]), axis=1))[0]
            raise NumericalInstabilityError(
                f"Non-finite positions after advection for {bad.size} particle(s), "
                f"first index {int(bad[0])}"
            )
        return current
