"""Core data models and custom exceptions for pytrackit.

Defines dataclasses for the current field, the run configuration, the
sedimentation parameters and the tracking result, plus all custom exception
types used throughout the package.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

SECONDS_PER_DAY = 86400.0


# ---------------------------------------------------------------------------
# Custom Exceptions
# ---------------------------------------------------------------------------

class PyTrackitError(Exception):
    """Base exception for all pytrackit errors."""


class ConfigurationError(PyTrackitError):
    """Raised when run parameters are invalid before the loop starts."""


class ConfigParseError(ConfigurationError):
    """Raised when a &TRACKIT namelist has format errors.

    Attributes:
        line_number: The line number where the error was detected.
        expected: Description of the expected format.
    """

    def __init__(self, message: str, line_number: int | None = None,
                 expected: str | None = None):
        self.line_number = line_number
        self.expected = expected
        parts = [message]
        if line_number is not None:
            parts.append(f"line {line_number}")
        if expected is not None:
            parts.append(f"expected: {expected}")
        super().__init__(" | ".join(parts))


class InvalidCoordinateError(PyTrackitError):
    """Raised when particle coordinates are malformed or non-finite."""


class TrajectoryMemoryError(PyTrackitError, MemoryError):
    """Raised when the trajectory tensor cannot be allocated.

    Attributes:
        nbytes: Estimated size of the requested tensor in bytes.
    """

    def __init__(self, message: str, nbytes: int | None = None):
        self.nbytes = nbytes
        super().__init__(message)


class NumericalInstabilityError(PyTrackitError):
    """Raised when NaN or Inf values are detected during integration."""


class SedimentationInvariantError(PyTrackitError):
    """Raised when an occupied cell reports no occupants."""


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

class TrackStatus(enum.Enum):
    """State of the time-stepping loop."""
    RUNNING = "running"
    ALL_STOPPED = "all_stopped"
    HORIZON_REACHED = "horizon_reached"


@dataclass
class CurrentField:
    """Time-invariant current field on an unstructured set of grid cells.

    All arrays are 1-D and share the cell dimension ``(ncell,)``.

    Attributes
    ----------
    lon : np.ndarray
        Cell longitude (degrees).
    lat : np.ndarray
        Cell latitude (degrees).
    depth : np.ndarray
        Vertical coordinate of the cell (m), used only by the full
        (lon, lat, depth) spatial index.
    h : np.ndarray
        Seabed depth below the surface (m, positive down).
    u : np.ndarray
        East-west current component (m/s).
    v : np.ndarray
        North-south current component (m/s).
    w : np.ndarray, optional
        Vertical current component (m/s). Carried but not used by the
        horizontal dynamics.
    u_max, v_max : np.ndarray, optional
        Precomputed maximum current components per cell, used for
        sedimentation when ``TrackConfig.sed_at_max_speed`` is set.
    """
    lon: np.ndarray
    lat: np.ndarray
    depth: np.ndarray
    h: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: Optional[np.ndarray] = None
    u_max: Optional[np.ndarray] = None
    v_max: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        for name in ("lon", "lat", "depth", "h", "u", "v", "w", "u_max", "v_max"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, np.asarray(value, dtype=np.float64).ravel())

    @property
    def ncell(self) -> int:
        return int(self.lon.size)

    @property
    def extent(self) -> tuple[float, float, float, float]:
        """Bounding extent ``(lon_min, lon_max, lat_min, lat_max)``."""
        return (
            float(np.min(self.lon)),
            float(np.max(self.lon)),
            float(np.min(self.lat)),
            float(np.max(self.lat)),
        )

    @property
    def has_max_speed(self) -> bool:
        return self.u_max is not None and self.v_max is not None


@dataclass
class TrackConfig:
    """Run configuration for one tracking invocation."""
    w_sink: float = 100.0               # sinking rate (m/day, positive = down)
    days: float = 50.0                  # total run duration (days)
    time_step_s: float = 1800.0         # per-step duration (s)
    n_steps: Optional[int] = None       # explicit step-count override
    sedimentation: bool = False
    particle_radius: float = 0.00016    # m
    force_final_settling: bool = False
    uphill_restricted: Optional[float] = None  # slope threshold (m), None = off
    mean_move: bool = False
    sed_at_max_speed: bool = False
    seed: Optional[int] = None
    query_workers: int = 1              # KD-tree query fan-out (-1 = all cores)
    max_trajectory_bytes: Optional[int] = None

    @property
    def sink_speed(self) -> float:
        """Sinking speed in m/s, negative-down."""
        return -self.w_sink / SECONDS_PER_DAY

    @property
    def resolved_steps(self) -> int:
        """Number of steps in the configured horizon."""
        if self.n_steps is not None:
            return int(self.n_steps)
        return int(round(self.days * SECONDS_PER_DAY / self.time_step_s))


@dataclass(frozen=True)
class SedimentationParams:
    """Immutable sedimentation constants for one run.

    Attributes
    ----------
    critical_velocity_sq : float
        Squared critical current speed (m²/s²) below which deposition occurs.
    settling_fn : callable
        ``settling_fn(u_div, n_occupants) -> expected settling count``,
        vectorised over cells.
    """
    critical_velocity_sq: float
    settling_fn: Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclass
class TrackResult:
    """Outputs of one tracking run.

    Attributes
    ----------
    trajectories : np.ndarray
        Positions at every executed step, shape ``(N, 3, T)``.
    final : np.ndarray
        Position snapshot after the last executed step, shape ``(N, 3)``.
    previous : np.ndarray
        Snapshot the last executed step started from, shape ``(N, 3)``.
    stop_index : np.ndarray
        Per-particle stop step (1-based), 0 while still moving.
    indices : list[np.ndarray]
        Nearest full-grid cell per particle, one entry per step.
    indices_2d : list[np.ndarray]
        Nearest horizontal-grid cell per particle, one entry per step.
    status : TrackStatus
        Terminal state of the loop.
    """
    trajectories: np.ndarray
    final: np.ndarray
    previous: np.ndarray
    stop_index: np.ndarray
    indices: list[np.ndarray] = field(default_factory=list)
    indices_2d: list[np.ndarray] = field(default_factory=list)
    status: TrackStatus = TrackStatus.RUNNING

    @property
    def n_steps(self) -> int:
        return int(self.trajectories.shape[2])

    @property
    def stopped(self) -> np.ndarray:
        return self.stop_index != 0

    def stop_positions(self) -> np.ndarray:
        """Position of each particle at its stop step.

        Particles that never stopped get NaN rows.
        """
        n = self.stop_index.size
        out = np.full((n, 3), np.nan)
        mask = self.stopped
        rows = np.nonzero(mask)[0]
        out[mask] = self.trajectories[rows, :, self.stop_index[mask] - 1]
        return out
